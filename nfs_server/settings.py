"""
This module contains the configuration settings for the NFS server supervisor.
It defines file paths, binary locations, supervision timings and the export
options read from the container's environment.
"""

import os
import pathlib
from dotenv import load_dotenv

# Load environment variables from .env file (container env takes precedence)
load_dotenv()

#* --- Process Identity ---
PROCESS_TITLE = "NFS - Supervisor"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

#* --- NFS Configuration Files ---
EXPORTS_PATH = pathlib.Path("/etc/exports")
HOSTS_ALLOW_PATH = pathlib.Path("/etc/hosts.allow")
HOSTS_DENY_PATH = pathlib.Path("/etc/hosts.deny")
HOSTS_ALLOW_TEMPLATE_PATH = pathlib.Path("/etc/hosts.allow.txt")

#* --- External Executable Paths ---
RPCBIND_PATH = pathlib.Path("/sbin/rpcbind")
RPCINFO_PATH = pathlib.Path("/sbin/rpcinfo")
NFSD_PATH = pathlib.Path("/usr/sbin/rpc.nfsd")
MOUNTD_PATH = pathlib.Path("/usr/sbin/rpc.mountd")
EXPORTFS_PATH = pathlib.Path("/usr/sbin/exportfs")

#* --- Supervisor Settings ---
STARTUP_RETRY_DELAY = 2          # seconds between startup attempts, never grows
MONITOR_POLL_INTERVAL = 1        # seconds between mountd liveness checks
RPCBIND_READY_TIMEOUT = 10       # seconds
RPCBIND_READY_POLL_INTERVAL = 0.5
PROCESS_OUTPUT_JOIN_TIMEOUT = 1  # seconds to wait for a command's output to drain
MOUNTD_PROCESS_NAME = "rpc.mountd"
# rpcbind is killed too, to work around an IPv6 socket-binding bug in NFS
SHUTDOWN_PROCESS_NAMES = ("rpc.nfsd", "rpc.mountd", "rpcbind")

#* --- Export Options ---
SHARED_DIRECTORY = os.getenv("SHARED_DIRECTORY", "")
SHARED_DIRECTORY_2 = os.getenv("SHARED_DIRECTORY_2", "")
PERMITTED = os.getenv("PERMITTED", "")
# READ_ONLY and SYNC are switched on by being present, whatever their value
READ_ONLY = "READ_ONLY" in os.environ
SYNC = "SYNC" in os.environ
NETWORK_INTERFACE = os.getenv("NETWORK_INTERFACE", "eth0")
