"""
Host-specific configuration file selection.

A shared ``streamsync.env`` holds defaults for every machine, and an optional
``{hostname}-streamsync.env`` next to it overrides them for one host.
"""

import logging
import socket
from pathlib import Path
from typing import Tuple

BASE_SETTINGS_FILE = "streamsync.env"


def get_hostname() -> str:
    """Get the current hostname (without domain)."""
    return socket.gethostname().split(".")[0]


def get_host_settings_file(hostname: str = "") -> str:
    return f"{hostname or get_hostname()}-{BASE_SETTINGS_FILE}"


def get_settings_files() -> Tuple[str, ...]:
    """
    Get the settings files to load, in increasing priority.

    pydantic-settings skips files that do not exist, so both names are always
    returned; the host file is listed last so its values win.

    Returns:
        Tuple[str, ...]: (base settings file, host-specific settings file)
    """
    host_settings = get_host_settings_file()

    if Path(host_settings).exists():
        logging.debug(f"Using host-specific configuration: {host_settings}")

    return BASE_SETTINGS_FILE, host_settings


def list_all_settings_files() -> list[str]:
    """List all settings files present in the working directory."""
    settings_files = []

    if Path(BASE_SETTINGS_FILE).exists():
        settings_files.append(BASE_SETTINGS_FILE)

    for file_path in sorted(Path(".").glob(f"*-{BASE_SETTINGS_FILE}")):
        settings_files.append(str(file_path))

    return settings_files
