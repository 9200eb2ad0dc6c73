"""rsync command lines for discovery and transfer processes."""

from typing import List

from ...config import Settings
from ...models import SyncSource

FILES_FROM_STDIN = "--files-from=-"
NUL_SEPARATED = "--from0"


class RsyncCommandBuilder:
    """Builds argv lists from settings. Option lists are passed through untouched."""

    def __init__(self, settings: Settings):
        self._settings = settings

    def discovery_command(self, source: SyncSource) -> List[str]:
        return [
            self._settings.rsync_binary,
            *self._settings.discovery_options,
            source.path,
            source.destination,
        ]

    def transfer_command(self, source: SyncSource) -> List[str]:
        options = list(self._settings.transfer_options)

        # The batch arrives on stdin as a NUL separated list
        if not any(opt == FILES_FROM_STDIN or opt.startswith("--files-from=") for opt in options):
            options.append(FILES_FROM_STDIN)
        if NUL_SEPARATED not in options and "-0" not in options:
            options.append(NUL_SEPARATED)

        return [
            self._settings.rsync_binary,
            *options,
            source.transfer_path,
            source.destination,
        ]
