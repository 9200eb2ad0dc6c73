"""
Path stream reader - turns rsync discovery output into path strings.

Each discovery line carries a fixed-width itemize prefix (e.g. ">f+++++++++ ")
followed by the path. Lines are read one at a time so paths reach the queue
while rsync is still walking the tree.
"""

import asyncio
import logging
import os
import re
from typing import AsyncIterator, Optional

from ..core.exceptions import StreamReadFailure

# Itemize fields open with an update type and a file type, e.g. ">f" or "cd".
# rsync info lines such as "created directory ..." do not, and neither do
# "*deleting" messages, which name files that no longer exist on the source.
ITEMIZE_FIELD = re.compile(rb"[<>ch.][fdLDS]")

# "%L" appends " -> target" to symlinks and " => target" to hard links
SYMLINK_SUFFIX = b" -> "
HARDLINK_SUFFIX = b" => "


class PathStreamReader:
    def __init__(
        self,
        stream: asyncio.StreamReader,
        prefix_length: int,
        pid: Optional[int] = None,
        itemized: bool = False,
        link_suffix: bool = False,
    ):
        self._stream = stream
        self._prefix_length = prefix_length
        self._pid = pid
        self._itemized = itemized
        self._link_suffix = link_suffix
        self.lines_read = 0
        self.paths_yielded = 0
        self.failure: Optional[StreamReadFailure] = None

    def __aiter__(self) -> AsyncIterator[str]:
        return self._paths()

    async def _paths(self) -> AsyncIterator[str]:
        while True:
            try:
                raw = await self._stream.readline()
            except (OSError, ValueError) as e:
                # ValueError covers lines longer than the stream limit
                self.failure = StreamReadFailure(self._pid, e)
                logging.error(f"{self.failure}; treating as end of output")
                return

            if not raw:
                return

            self.lines_read += 1
            path = clean_line(
                raw, self._prefix_length, self._itemized, self._link_suffix
            )
            if path is None:
                continue

            self.paths_yielded += 1
            yield path


def clean_line(
    raw: bytes,
    prefix_length: int,
    itemized: bool = False,
    link_suffix: bool = False,
) -> Optional[str]:
    """
    Strip the line terminator and the itemize prefix from one output line.

    Returns None for lines that carry no path. Only the terminator is trimmed
    from the path itself so names with surrounding spaces survive. With
    ``link_suffix`` the link target rsync prints after symlinks and hard
    links is cut off as well.
    """
    line = raw.rstrip(b"\r\n")
    if not line.strip():
        return None

    if len(line) <= prefix_length:
        logging.debug(f"Skipping short discovery line: {line!r}")
        return None

    if itemized and not ITEMIZE_FIELD.match(line):
        logging.debug(f"Skipping non-itemized discovery line: {line!r}")
        return None

    path = line[prefix_length:]
    if itemized and link_suffix:
        path = _strip_link_target(line[:2], path)

    if not path.strip():
        return None

    return os.fsdecode(path)


def _strip_link_target(field: bytes, path: bytes) -> bytes:
    # A name containing the separator itself is ambiguous; the first one wins
    if field[1:2] == b"L":
        separator = SYMLINK_SUFFIX
    elif field[:1] == b"h":
        separator = HARDLINK_SUFFIX
    else:
        return path

    name, found, _target = path.partition(separator)
    return name if found else path
