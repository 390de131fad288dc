"""Shared fixtures: scripted stand-ins for the process table and the NFS binaries."""

from typing import Dict, Iterable, List, Optional

import pytest

from nfs_server.local import app_globals
from nfs_server.local.supervisor import Supervisor


class FakeProbe:
    """Answers liveness checks from a script instead of the process table."""

    def __init__(self, alive: Iterable[bool] = (), default: bool = False,
                 pids: Optional[Dict[str, List[int]]] = None):
        self._alive = list(alive)
        self.default = default
        self.pids = pids if pids is not None else {}
        self.alive_checks: List[str] = []

    def is_alive(self, name: str) -> bool:
        self.alive_checks.append(name)
        if self._alive:
            return self._alive.pop(0)
        return self.default

    def find_pids(self, name: str) -> List[int]:
        return list(self.pids.get(name, []))


class FakeLauncher:
    """Records commands and returns scripted exit statuses (0 by default)."""

    def __init__(self, returncodes: Optional[Dict[str, int]] = None):
        self.returncodes = returncodes or {}
        self.calls: List[str] = []

    def run(self, name: str, *extra_args: str) -> int:
        self.calls.append(name)
        return self.returncodes.get(name, 0)


@pytest.fixture
def config(tmp_path):
    shared = tmp_path / "nfsshare"
    shared.mkdir()
    settings = app_globals.get_all_settings()
    settings.update(
        EXPORTS_PATH=tmp_path / "exports",
        HOSTS_ALLOW_PATH=tmp_path / "hosts.allow",
        HOSTS_DENY_PATH=tmp_path / "hosts.deny",
        HOSTS_ALLOW_TEMPLATE_PATH=tmp_path / "hosts.allow.txt",
        SHARED_DIRECTORY=str(shared),
        SHARED_DIRECTORY_2="",
        PERMITTED="10.0.0.0/8",
        READ_ONLY=False,
        SYNC=False,
    )
    return settings


@pytest.fixture
def make_supervisor(config, monkeypatch):
    """Builds a Supervisor whose waits return at once and are recorded."""
    built = []

    def _make(probe=None, launcher=None, on_wait=None):
        supervisor = Supervisor(config=config, probe=probe or FakeProbe(),
                                launcher=launcher or FakeLauncher())
        supervisor.waits = []

        def fake_wait(seconds):
            supervisor.waits.append(seconds)
            if on_wait is not None:
                on_wait(supervisor)
            return supervisor.shutdown_requested()

        monkeypatch.setattr(supervisor, "wait", fake_wait)
        built.append(supervisor)
        return supervisor

    yield _make
    for supervisor in built:
        supervisor.close()
