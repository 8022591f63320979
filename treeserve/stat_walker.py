# python
"""
treeserve/stat_walker.py
Classifies filesystem paths as folder, datafolder, file or error.

Every probe is an os.stat/os.listdir call pushed onto a worker thread with
asyncio.to_thread, so a slow disk never stalls the event loop.
"""
import asyncio
import logging
import os
import stat as stat_mod
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

logger = logging.getLogger(__name__)

DEFAULT_MARKER = "tiddlywiki.info"

FOLDER = "folder"
DATAFOLDER = "datafolder"
FILE = "file"
ERROR = "error"

TERMINAL_KINDS = (DATAFOLDER, FILE, ERROR)


class FsProbe:
    """Async view of the two filesystem calls the classifier needs."""

    async def stat(self, path: str) -> os.stat_result:
        return await asyncio.to_thread(os.stat, path)

    async def listdir(self, path: str) -> List[str]:
        return await asyncio.to_thread(os.listdir, path)


DEFAULT_PROBE = FsProbe()


@dataclass
class PathStatus:
    path: str
    index: int
    kind: str
    stat: Optional[os.stat_result] = None
    marker_stat: Optional[os.stat_result] = None
    # ValueError for paths the OS refuses outright (embedded NUL)
    error: Optional[Union[OSError, ValueError]] = None

    @property
    def is_terminal(self) -> bool:
        """A plain folder is the only kind a walk continues into."""
        return self.kind in TERMINAL_KINDS

    @property
    def size(self) -> int:
        return self.stat.st_size if self.stat is not None else 0

    @property
    def not_found(self) -> bool:
        return isinstance(self.error, (FileNotFoundError, NotADirectoryError, ValueError))


def _kind_for(st: os.stat_result, marker_stat: Optional[os.stat_result]) -> str:
    if stat_mod.S_ISDIR(st.st_mode):
        return DATAFOLDER if marker_stat is not None else FOLDER
    if stat_mod.S_ISREG(st.st_mode):
        return FILE
    # sockets, fifos and devices are never served
    return ERROR


async def stat_one(
    path: str,
    index: int = 0,
    probe: Optional[FsProbe] = None,
    marker: str = DEFAULT_MARKER,
) -> PathStatus:
    """
    Probe a single path. Directories get a second probe for the marker file;
    a regular file by that name inside turns the directory into a datafolder.
    OS errors, and the ValueError raised for an unrepresentable path, are
    returned on the status, never raised.
    """
    probe = probe or DEFAULT_PROBE
    try:
        st = await probe.stat(path)
    except (OSError, ValueError) as exc:
        logger.debug("stat failed for %s: %s", path, exc)
        return PathStatus(path, index, ERROR, error=exc)

    marker_stat = None
    if stat_mod.S_ISDIR(st.st_mode):
        try:
            info = await probe.stat(os.path.join(path, marker))
        except (OSError, ValueError):
            info = None
        if info is not None and stat_mod.S_ISREG(info.st_mode):
            marker_stat = info

    return PathStatus(path, index, _kind_for(st, marker_stat), stat=st, marker_stat=marker_stat)


def candidate_paths(root: str, file_segments: Sequence[str]) -> List[str]:
    """root, root/s1, root/s1/s2, ... one candidate per prefix of the segments."""
    paths = [root]
    for seg in file_segments:
        # a blank segment names the same place as its parent
        paths.append(os.path.join(paths[-1], seg) if seg else paths[-1])
    return paths


async def walk(
    root: str,
    file_segments: Sequence[str],
    probe: Optional[FsProbe] = None,
    marker: str = DEFAULT_MARKER,
) -> PathStatus:
    """
    Walk from root towards root/file_segments one segment at a time.

    The walk stops at the first file, datafolder or error, so nothing beneath
    a datafolder is ever probed. If every candidate is a plain folder the
    status of the last one is returned.
    """
    status: Optional[PathStatus] = None
    for index, candidate in enumerate(candidate_paths(root, file_segments)):
        status = await stat_one(candidate, index, probe=probe, marker=marker)
        if status.is_terminal:
            if index < len(file_segments):
                logger.debug(
                    "walk stopped at %s (%s) with %d segment(s) left",
                    candidate,
                    status.kind,
                    len(file_segments) - index,
                )
            return status
    return status
