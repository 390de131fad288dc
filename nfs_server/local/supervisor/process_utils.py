import os
import psutil
import logging
import threading
import subprocess
from typing import Any, Dict, List

log = logging.getLogger(__name__)

# Conventional shell status for "command not found"
COMMAND_NOT_FOUND = 127


#* --- Process Status & Monitoring ---
def get_process_from_pid(pid: int) -> psutil.Process:
    """A wrapper for psutil.Process for easy testing/mocking if needed."""
    return psutil.Process(pid)

def _matches_name(info: Dict[str, Any], name: str) -> bool:
    """Mirrors pidof: match on the process name or the basename of its executable."""
    if info.get("status") == psutil.STATUS_ZOMBIE:
        return False
    if info.get("name") == name:
        return True
    exe = info.get("exe")
    if exe and os.path.basename(exe) == name:
        return True
    cmdline = info.get("cmdline")
    return bool(cmdline) and os.path.basename(cmdline[0]) == name


class PsutilProcessProbe:
    """
    Looks up managed processes in the OS process table.

    Finding nothing is an ordinary answer here, not an error: the NFS daemons
    are routinely absent while they are being (re)started.
    """

    def find_pids(self, name: str) -> List[int]:
        """Returns the PIDs of all live processes called `name`."""
        pids = []
        for proc in psutil.process_iter(["name", "exe", "cmdline", "status"]):
            try:
                if _matches_name(proc.info, name):
                    pids.append(proc.pid)
            except psutil.Error:
                continue
        return pids

    def is_alive(self, name: str) -> bool:
        """Returns True if at least one process called `name` is running."""
        return bool(self.find_pids(name))


#* --- Process Creation ---
def get_process_args(config: Dict[str, Any], process_name: str) -> List[str]:
    """Returns the command-line arguments for a logical process name."""
    nfsd = str(config["NFSD_PATH"])
    mountd = str(config["MOUNTD_PATH"])
    exportfs = str(config["EXPORTFS_PATH"])
    # Only NFSv4 over TCP is served.
    restrictions = ["--no-udp", "--no-nfs-version", "2", "--no-nfs-version", "3"]

    process_definitions = {
        "rpcbind": [str(config["RPCBIND_PATH"]), "-w"],
        "rpcinfo": [str(config["RPCINFO_PATH"])],
        "nfsd": [nfsd, "--debug", "8", *restrictions],
        "exportfs_reexport": [exportfs, "-rv"],
        "exportfs_list": [exportfs],
        "mountd": [mountd, "--debug", "all", *restrictions],
        "exportfs_unexport": [exportfs, "-uav"],
        "nfsd_drain": [nfsd, "0"],
    }

    if process_name in process_definitions:
        return process_definitions[process_name]
    raise ValueError(f"Unknown process name '{process_name}'. No arguments defined.")

def _read_pipe(pipe, process_name: str, level: int):
    """Target function for reader threads. Reads and logs lines from a subprocess pipe."""
    proc_logger = logging.getLogger(f"proc.{process_name}")
    try:
        for line_bytes in iter(pipe.readline, b""):
            line = line_bytes.decode("utf-8", errors="replace").rstrip()
            if line:
                proc_logger.log(level, line)
    except (OSError, ValueError) as e:
        proc_logger.debug(f"Pipe reader for {process_name} stream exited: {e}")
    finally:
        pipe.close()

def log_process_output(process: subprocess.Popen, name: str) -> List[threading.Thread]:
    """Starts background threads to consume and log a process's stdout/stderr."""
    readers = []
    if process.stdout:
        readers.append(threading.Thread(target=_read_pipe, args=(process.stdout, name, logging.INFO), daemon=True))
    if process.stderr:
        readers.append(threading.Thread(target=_read_pipe, args=(process.stderr, name, logging.ERROR), daemon=True))
    for reader in readers:
        reader.start()
    return readers


class ProcessLauncher:
    """
    Runs the NFS binaries by logical name.

    rpcbind and rpc.mountd fork into the background on their own, so waiting
    for the launched process only waits for the foreground part to finish.
    """

    def __init__(self, config: Dict[str, Any]) -> None:
        self.config = config

    def run(self, name: str, *extra_args: str) -> int:
        """
        Runs a command and returns its exit status.

        :param name: The logical name of the command, see get_process_args.
        :param extra_args: Arguments appended to the configured command line.
        :return: The exit status, or COMMAND_NOT_FOUND if it could not be started.
        """
        args = get_process_args(self.config, name) + list(extra_args)
        log.debug(f"Running {name}: {' '.join(args)}")
        try:
            # Own session: a terminal Ctrl-C reaches only the supervisor.
            p = subprocess.Popen(args, stdout=subprocess.PIPE, stderr=subprocess.PIPE, stdin=subprocess.DEVNULL, start_new_session=True)
        except OSError as e:
            log.error(f"Failed to run '{name}': {e}")
            return COMMAND_NOT_FOUND

        readers = log_process_output(p, name)
        returncode = p.wait()
        # A daemon that kept our pipes open must not block the caller.
        for reader in readers:
            reader.join(timeout=self.config.get("PROCESS_OUTPUT_JOIN_TIMEOUT", 1))
        if returncode != 0:
            log.debug(f"{name} exited with status {returncode}")
        return returncode
