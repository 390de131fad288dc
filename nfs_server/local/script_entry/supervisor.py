"""
This is the container entrypoint for the NFS server supervisor.

Its sole responsibility is to name the process, set up logging, route
SIGTERM and SIGINT to the Supervisor, and turn the Supervisor's result into
the container's exit status.
"""
import setproctitle

import sys
import signal
import logging
from nfs_server.local import app_globals
from nfs_server.log.setup import setup_logging
from nfs_server.local.supervisor import Supervisor

# Global reference for signal handler
supervisor = None


def handle_shutdown_signal(signum, frame):
    """Handle shutdown signals gracefully."""
    if supervisor:
        supervisor.request_shutdown(signum)


def main() -> int:
    global supervisor

    setproctitle.setproctitle(app_globals.PROCESS_TITLE)
    setup_logging(getattr(logging, app_globals.LOG_LEVEL, logging.INFO))

    supervisor = Supervisor()

    # Set up signal handlers
    signal.signal(signal.SIGTERM, handle_shutdown_signal)
    signal.signal(signal.SIGINT, handle_shutdown_signal)

    try:
        return supervisor.run()
    finally:
        supervisor.close()


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
