import psutil
import logging
from typing import TYPE_CHECKING, List
from nfs_server.local.supervisor.process_utils import get_process_from_pid

if TYPE_CHECKING:
    from .supervisor import Supervisor

log = logging.getLogger(__name__)


def _run_best_effort(manager: "Supervisor", name: str, description: str) -> None:
    """Runs a shutdown command, logging instead of raising when it fails."""
    try:
        returncode = manager.launcher.run(name)
    except Exception as e:
        log.error(f"Failed to {description}: {e}")
        return
    if returncode != 0:
        log.warning(f"Could not {description} (exit status {returncode}).")


def identify_processes_to_stop(manager: "Supervisor") -> List[int]:
    """
    Looks up the PIDs of every NFS process that should receive SIGTERM.

    :param manager: The Supervisor instance.
    :return: The PIDs found. Processes that are already gone are skipped.
    """
    pids: List[int] = []
    for name in manager.config["SHUTDOWN_PROCESS_NAMES"]:
        try:
            found = manager.probe.find_pids(name)
        except psutil.Error as e:
            log.warning(f"Could not look up {name}: {e}")
            continue
        if not found:
            log.debug(f"No running {name} process found.")
        pids.extend(found)
    return pids


def _terminate_processes(pids: List[int]) -> None:
    """Sends SIGTERM to all given PIDs."""
    for pid in pids:
        try:
            proc = get_process_from_pid(pid)
            log.debug(f"Sending SIGTERM to {proc.name()} (PID {pid})")
            proc.terminate()
        except psutil.NoSuchProcess:
            continue
        except psutil.Error as e:
            log.warning(f"Could not terminate PID {pid}: {e}")


def graceful_shutdown_sequence(manager: "Supervisor") -> None:
    """
    Unexports everything, quiesces the kernel server and stops the daemons.
    Every step is best-effort so the sequence always runs to the end.

    :param manager: The Supervisor instance.
    """
    log.info("SIGTERM caught, terminating NFS process(es)...")
    # Unexport before nfsd goes away so no export state is left in the kernel.
    _run_best_effort(manager, "exportfs_unexport", "unexport file systems")
    _run_best_effort(manager, "nfsd_drain", "stop the nfsd threads")
    _terminate_processes(identify_processes_to_stop(manager))
    log.info("Terminated.")
