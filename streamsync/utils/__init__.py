"""
Utilities package for streamsync.

Small helpers without pipeline state.
"""

from .host_config import get_hostname, get_settings_files

__all__ = [
    "get_hostname",
    "get_settings_files",
]
