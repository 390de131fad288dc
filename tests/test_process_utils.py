import os
import logging
import stat

import psutil
import pytest

from nfs_server.local.supervisor import process_utils
from nfs_server.local.supervisor.process_utils import (
    COMMAND_NOT_FOUND,
    ProcessLauncher,
    PsutilProcessProbe,
    get_process_args,
)


class FakeProc:
    def __init__(self, pid, **info):
        self.pid = pid
        self.info = {"name": None, "exe": None, "cmdline": None, "status": psutil.STATUS_SLEEPING}
        self.info.update(info)


@pytest.fixture
def process_table(monkeypatch):
    table = [
        FakeProc(1, name="python3", cmdline=["python3", "-m", "nfs_server"]),
        FakeProc(10, name="rpcbind", exe="/sbin/rpcbind"),
        FakeProc(11, name="rpc.mountd", exe="/usr/sbin/rpc.mountd"),
        FakeProc(12, name="rpc.mountd", status=psutil.STATUS_ZOMBIE),
        # Access denied: psutil reports missing attributes as None.
        FakeProc(13, cmdline=["/usr/sbin/rpc.mountd", "--debug", "all"]),
    ]
    monkeypatch.setattr(process_utils.psutil, "process_iter", lambda attrs: iter(table))
    return table


def test_probe_matches_like_pidof(process_table):
    probe = PsutilProcessProbe()
    assert probe.find_pids("rpc.mountd") == [11, 13]
    assert probe.find_pids("rpcbind") == [10]


def test_probe_reports_missing_process_as_not_alive(process_table):
    probe = PsutilProcessProbe()
    assert probe.find_pids("rpc.nfsd") == []
    assert probe.is_alive("rpc.nfsd") is False
    assert probe.is_alive("rpc.mountd") is True


def test_nfs_commands_are_restricted_to_v4_over_tcp(config):
    assert get_process_args(config, "nfsd") == [
        "/usr/sbin/rpc.nfsd", "--debug", "8",
        "--no-udp", "--no-nfs-version", "2", "--no-nfs-version", "3",
    ]
    assert get_process_args(config, "mountd") == [
        "/usr/sbin/rpc.mountd", "--debug", "all",
        "--no-udp", "--no-nfs-version", "2", "--no-nfs-version", "3",
    ]
    assert get_process_args(config, "rpcbind") == ["/sbin/rpcbind", "-w"]
    assert get_process_args(config, "exportfs_reexport") == ["/usr/sbin/exportfs", "-rv"]
    assert get_process_args(config, "exportfs_unexport") == ["/usr/sbin/exportfs", "-uav"]
    assert get_process_args(config, "nfsd_drain") == ["/usr/sbin/rpc.nfsd", "0"]


def test_unknown_command_is_rejected(config):
    with pytest.raises(ValueError):
        get_process_args(config, "rpc.statd")


def _script(path, body):
    path.write_text(f"#!/bin/sh\n{body}\n")
    path.chmod(path.stat().st_mode | stat.S_IEXEC)
    return path


def test_launcher_returns_exit_status_and_logs_output(config, tmp_path, caplog):
    config["EXPORTFS_PATH"] = _script(tmp_path / "exportfs", 'echo "exporting $1"; echo oops >&2; exit 3')
    launcher = ProcessLauncher(config)

    with caplog.at_level(logging.INFO):
        assert launcher.run("exportfs_reexport") == 3

    records = {(r.name, r.levelno, r.getMessage()) for r in caplog.records}
    assert ("proc.exportfs_reexport", logging.INFO, "exporting -rv") in records
    assert ("proc.exportfs_reexport", logging.ERROR, "oops") in records


def test_launcher_reports_missing_binary(config, tmp_path):
    config["RPCBIND_PATH"] = tmp_path / "no-such-rpcbind"
    assert ProcessLauncher(config).run("rpcbind") == COMMAND_NOT_FOUND


def test_launched_commands_get_their_own_session(config, tmp_path, caplog):
    config["EXPORTFS_PATH"] = _script(tmp_path / "exportfs", 'cat /proc/$$/stat')
    launcher = ProcessLauncher(config)

    with caplog.at_level(logging.INFO):
        assert launcher.run("exportfs_list") == 0

    stat_line = next(r.getMessage() for r in caplog.records if r.name == "proc.exportfs_list")
    pid = stat_line.split()[0]
    # Fields after the command name: state ppid pgrp session ...
    session = stat_line.rsplit(")", 1)[1].split()[3]
    assert session == pid
    assert int(session) != os.getsid(0)
