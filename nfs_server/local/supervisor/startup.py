import time
import logging
from typing import TYPE_CHECKING
from nfs_server.local.supervisor import config_utils

if TYPE_CHECKING:
    from .supervisor import Supervisor

log = logging.getLogger(__name__)


class ExportValidationError(RuntimeError):
    """Raised when exportfs rejects the generated export table."""


def wait_for_rpcbind(manager: "Supervisor") -> bool:
    """
    Waits for rpcbind to answer rpcinfo queries.

    :param manager: The Supervisor instance.
    :return: True if rpcbind is up, False on timeout or shutdown.
    """
    timeout = manager.config.get("RPCBIND_READY_TIMEOUT", 10)
    interval = manager.config.get("RPCBIND_READY_POLL_INTERVAL", 0.5)

    log.info("Displaying rpcbind status...")
    start_time = time.monotonic()
    while True:
        if manager.launcher.run("rpcinfo") == 0:
            return True
        if time.monotonic() - start_time >= timeout:
            log.warning(f"rpcbind did not answer after {timeout} seconds, continuing anyway.")
            return False
        if manager.wait(interval):
            return False


def export_file_systems(manager: "Supervisor") -> None:
    """
    Loads the export table into the kernel and lists the result.

    :param manager: The Supervisor instance.
    :raises ExportValidationError: If exportfs rejects the export table.
    """
    log.info("Exporting File System...")
    if manager.launcher.run("exportfs_reexport") != 0:
        raise ExportValidationError("Export validation failed")
    manager.launcher.run("exportfs_list")


def start_all_processes(manager: "Supervisor") -> bool:
    """
    Runs one startup attempt, launching every NFS process in dependency order.

    :param manager: The Supervisor instance.
    :return: True if rpc.mountd is alive afterwards, False otherwise.
    :raises ExportValidationError: If exportfs rejects the export table.
    """
    config_utils.display_config_files(manager.config)

    # Normally only needed for NFSv3, but NFSv4 needs it to open its IPv6 socket.
    log.info("Starting rpcbind...")
    manager.launcher.run("rpcbind")
    wait_for_rpcbind(manager)
    if manager.shutdown_requested():
        return False

    log.info("Starting NFS in the background...")
    manager.launcher.run("nfsd")
    export_file_systems(manager)
    if manager.shutdown_requested():
        return False

    log.info("Starting Mountd in the background...")
    manager.launcher.run("mountd")

    return manager.probe.is_alive(manager.config["MOUNTD_PROCESS_NAME"])
