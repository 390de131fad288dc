import os
import re
import socket
import psutil
import logging
import ipaddress
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

log = logging.getLogger(__name__)

EXPORT_OPTIONS_TEMPLATE = "{access},{sync},no_subtree_check,no_auth_nlm,insecure,no_root_squash,fsid={fsid}"
_ENV_REFERENCE = re.compile(r"\$(?:\{(?P<braced>[A-Za-z_][A-Za-z0-9_]*)\}|(?P<plain>[A-Za-z_][A-Za-z0-9_]*))")


class ConfigurationError(RuntimeError):
    """Raised when the environment does not describe a usable NFS export."""


def resolve_permitted(config: Dict[str, Any]) -> str:
    """Returns the clients allowed to mount, defaulting to everyone."""
    permitted = config.get("PERMITTED") or ""
    if not permitted:
        log.info("The PERMITTED environment variable is unset or null, defaulting to '*'.")
        log.info("This means any client can mount.")
        return "*"
    log.info(f"The permitted clients are: {permitted}.")
    return permitted


def _export_line(directory: Path, permitted: str, access: str, sync: str, fsid: int) -> str:
    options = EXPORT_OPTIONS_TEMPLATE.format(access=access, sync=sync, fsid=fsid)
    return f"{directory} {permitted}({options})"


def _candidate_subdirectories(shared_dir: Path, extra: str) -> List[Path]:
    """Lists the directories to export below the root, in fsid order."""
    names = extra.split() if extra else sorted(entry.name for entry in shared_dir.iterdir())
    candidates = []
    for name in names:
        path = Path(name)
        candidates.append(path if path.is_absolute() else shared_dir / path)
    return candidates


def create_etc_exports(config: Dict[str, Any], permitted: str) -> None:
    """
    Writes the export table for SHARED_DIRECTORY and its subdirectories.

    :param config: The supervisor configuration.
    :param permitted: The clients allowed to mount.
    :raises ConfigurationError: If SHARED_DIRECTORY is missing or not a directory.
    """
    exports_path = Path(config["EXPORTS_PATH"])
    exports_path.unlink(missing_ok=True)

    if config.get("READ_ONLY"):
        log.info("The READ_ONLY environment variable is set. Clients will have read-only access.")
        access = "ro"
    else:
        log.info("The READ_ONLY environment variable is unset, defaulting to 'rw'. Clients have read/write access.")
        access = "rw"

    if config.get("SYNC"):
        log.info("The SYNC environment variable is set, using 'sync' mode. Writes will be immediately written to disk.")
        sync = "sync"
    else:
        log.info("The SYNC environment variable is unset, defaulting to 'async' mode. Writes will not be immediately written to disk.")
        sync = "async"

    shared = config.get("SHARED_DIRECTORY") or ""
    if not shared:
        raise ConfigurationError("The SHARED_DIRECTORY environment variable is unset or null.")
    shared_dir = Path(shared)
    if not shared_dir.is_dir():
        raise ConfigurationError(f"The directory '{shared_dir}' does not exist.")

    lines = [_export_line(shared_dir, permitted, access, sync, fsid=0)]
    log.info(f"Writing {shared_dir} to {exports_path} file")
    for directory in _candidate_subdirectories(shared_dir, config.get("SHARED_DIRECTORY_2") or ""):
        if not directory.is_dir():
            continue
        lines.append(_export_line(directory, permitted, access, sync, fsid=len(lines)))
        log.info(f"Writing {directory} to {exports_path} file")

    exports_path.write_text("\n".join(lines) + "\n")


def detect_subnet(interface: str) -> Optional[str]:
    """
    Returns the IPv4 subnet of a network interface as '<network>/<netmask>'.

    :param interface: The interface name, e.g. 'eth0'.
    :return: The subnet, or None if the interface has no IPv4 address.
    """
    for addr in psutil.net_if_addrs().get(interface, []):
        if addr.family != socket.AF_INET or not addr.netmask:
            continue
        network = ipaddress.IPv4Network(f"{addr.address}/{addr.netmask}", strict=False)
        return f"{network.network_address}/{network.netmask}"
    return None


def substitute_env(template: str, variables: Mapping[str, str]) -> str:
    """Expands $VAR and ${VAR} like envsubst: unknown variables become empty."""
    def _replace(match: "re.Match") -> str:
        name = match.group("braced") or match.group("plain")
        return variables.get(name, "")
    return _ENV_REFERENCE.sub(_replace, template)


def create_etc_hosts_allow(config: Dict[str, Any], permitted: str) -> None:
    """
    Renders hosts.allow from its template, if the image ships one.

    :param config: The supervisor configuration.
    :param permitted: The clients allowed to mount, '*' meaning the local subnet.
    """
    template_path = Path(config["HOSTS_ALLOW_TEMPLATE_PATH"])
    if not template_path.is_file():
        log.debug(f"No {template_path} template found, leaving hosts.allow alone.")
        return

    hosts_allow_path = Path(config["HOSTS_ALLOW_PATH"])
    hosts_allow_path.unlink(missing_ok=True)

    if permitted == "*":
        interface = config.get("NETWORK_INTERFACE", "eth0")
        subnet = detect_subnet(interface)
        if subnet is None:
            raise ConfigurationError(f"Could not determine the IPv4 subnet of interface '{interface}'.")
        log.info(f"Permitting clients from the {interface} subnet {subnet}.")
        permitted = subnet

    variables = dict(os.environ)
    variables["PERMITTED"] = permitted
    hosts_allow_path.write_text(substitute_env(template_path.read_text(), variables))
    log.info(f"Wrote {hosts_allow_path} from {template_path}.")


def _is_read_only(path: Path) -> bool:
    return path.exists() and os.access(path, os.R_OK) and not os.access(path, os.W_OK)


def write_config_files(config: Dict[str, Any]) -> None:
    """
    Generates the export table and the host access list from the environment.
    Files mounted read-only into the container are left untouched.

    PERMITTED is resolved once, so an empty value becomes '*' for
    hosts.allow too, even when a read-only /etc/exports is skipped.

    :param config: The supervisor configuration.
    :raises ConfigurationError: If the environment cannot produce a valid export table.
    """
    permitted = resolve_permitted(config)
    generators = (
        (Path(config["EXPORTS_PATH"]), create_etc_exports),
        (Path(config["HOSTS_ALLOW_PATH"]), create_etc_hosts_allow),
    )
    for path, generate in generators:
        if _is_read_only(path):
            log.info(f"A read-only {path} exists so will not overwrite that one")
            continue
        generate(config, permitted)


def display_config_files(config: Dict[str, Any]) -> None:
    """Logs the contents of the files the NFS daemons are about to read."""
    for key in ("EXPORTS_PATH", "HOSTS_ALLOW_PATH", "HOSTS_DENY_PATH"):
        path = Path(config[key])
        try:
            contents = path.read_text()
        except OSError as e:
            log.warning(f"Could not display {path}: {e}")
            continue
        log.info(f"Displaying {path} contents:\n{contents}")
