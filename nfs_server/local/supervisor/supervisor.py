import os
import select
import logging
from typing import Any, Dict, Optional
from nfs_server.local import app_globals
from nfs_server.local.supervisor import config_utils, process_utils, shutdown, startup
from nfs_server.local.supervisor.state import SupervisorEvent, SupervisorState, transition

log = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_FAILURE = 1


class Supervisor:
    """
    Owns the lifetime of the NFS server processes inside the container.

    The supervisor configures, starts and then watches rpc.mountd. Signals
    do not interrupt it directly: they call `request_shutdown`, and the
    startup and monitor loops notice the flag at their next check or as soon
    as their current wait is woken.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None, probe=None, launcher=None) -> None:
        """
        Initializes the Supervisor state.

        :param config: Settings to use instead of the global configuration.
        :param probe: Object with is_alive(name) and find_pids(name).
        :param launcher: Object with run(name, *args) returning an exit status.
        """
        self.config: Dict[str, Any] = config if config is not None else app_globals.get_all_settings()
        self.probe = probe if probe is not None else process_utils.PsutilProcessProbe()
        self.launcher = launcher if launcher is not None else process_utils.ProcessLauncher(self.config)
        self.state = SupervisorState.CONFIGURING
        self.startup_attempts = 0
        self.shutdown_signum: Optional[int] = None
        self._shutdown_flag = False
        # Self-pipe: the signal path only writes a byte, the sleeping loop selects on it.
        self._wakeup_read, self._wakeup_write = os.pipe()
        os.set_blocking(self._wakeup_write, False)

    def _apply(self, event: SupervisorEvent) -> None:
        new_state = transition(self.state, event)
        log.debug(f"State {self.state.value} -> {new_state.value} on {event.value}")
        self.state = new_state

    def request_shutdown(self, signum: Optional[int] = None) -> None:
        """
        Asks the running loops to stop. Safe to call from a signal handler.

        Signal handlers run on the main thread, which may be inside a wait or
        holding a logging lock, so this must not take any lock.
        """
        self.shutdown_signum = signum
        self._shutdown_flag = True
        try:
            os.write(self._wakeup_write, b"\0")
        except OSError:
            # The pipe is full or closed; the flag alone is enough then.
            pass

    def shutdown_requested(self) -> bool:
        return self._shutdown_flag

    def wait(self, seconds: float) -> bool:
        """
        Sleeps for up to `seconds`, waking early on a shutdown request.

        :return: True if a shutdown was requested.
        """
        if self.shutdown_requested():
            return True
        select.select([self._wakeup_read], [], [], seconds)
        return self.shutdown_requested()

    def close(self) -> None:
        """Releases the wakeup pipe."""
        for fd in (self._wakeup_read, self._wakeup_write):
            try:
                os.close(fd)
            except OSError:
                continue

    def configure(self) -> None:
        """Writes the NFS configuration files from the environment."""
        config_utils.write_config_files(self.config)
        self._apply(SupervisorEvent.CONFIGURED)

    def start_all(self) -> bool:
        """
        Starts all NFS processes, retrying until rpc.mountd stays up.

        :return: True once running, False if a shutdown was requested first.
        :raises ExportValidationError: If exportfs rejects the export table.
        """
        delay = self.config.get("STARTUP_RETRY_DELAY", 2)
        while not self.shutdown_requested():
            self.startup_attempts += 1
            log.debug(f"Startup attempt #{self.startup_attempts}")
            if startup.start_all_processes(self):
                self._apply(SupervisorEvent.STARTUP_SUCCEEDED)
                log.info("Startup successful.")
                return True
            if self.shutdown_requested():
                break

            log.warning(f"Startup of NFS failed, sleeping for {delay}s, then retrying...")
            self._apply(SupervisorEvent.STARTUP_FAILED)
            if self.wait(delay):
                break
        return False

    def supervision_loop(self) -> bool:
        """
        Polls rpc.mountd until it dies or a shutdown is requested.

        :return: True if a shutdown was requested, False if rpc.mountd died.
        """
        interval = self.config.get("MONITOR_POLL_INTERVAL", 1)
        mountd = self.config["MOUNTD_PROCESS_NAME"]
        while not self.shutdown_requested():
            if not self.probe.is_alive(mountd):
                log.critical("NFS has failed, exiting, so Docker can restart the container...")
                self._apply(SupervisorEvent.PROCESS_DIED)
                return False
            if self.wait(interval):
                break
        return True

    def stop_all(self) -> int:
        """
        Stops all NFS processes gracefully.

        :return: The exit status for the container.
        """
        log.debug(f"Shutdown requested (signal {self.shutdown_signum}).")
        self._apply(SupervisorEvent.SHUTDOWN_REQUESTED)
        shutdown.graceful_shutdown_sequence(self)
        self._apply(SupervisorEvent.SHUTDOWN_COMPLETE)
        return EXIT_SUCCESS

    def run(self) -> int:
        """
        Drives the supervisor from configuration to exit.

        :return: The exit status for the container.
        """
        try:
            self.configure()
        except (config_utils.ConfigurationError, OSError) as e:
            log.critical(f"{e} Exiting...")
            self._apply(SupervisorEvent.CONFIGURATION_FAILED)
            return EXIT_FAILURE

        try:
            started = self.start_all()
        except startup.ExportValidationError as e:
            # exportfs may have been interrupted by the same signal.
            if self.shutdown_requested():
                log.warning(f"{e} during shutdown, stopping NFS anyway.")
                return self.stop_all()
            log.critical(f"{e}, exiting...")
            self._apply(SupervisorEvent.EXPORT_FAILED)
            return EXIT_FAILURE

        if not started or self.supervision_loop():
            return self.stop_all()
        return EXIT_FAILURE
