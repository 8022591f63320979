# python
"""
treeserve/listing.py
Builds directory listings for virtual-tree categories and real folders.
"""
import asyncio
import logging
import os
from dataclasses import asdict, dataclass, field
from operator import attrgetter
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from .errors import ProbeFailed
from .filetypes import TypeLookup
from .resolver import ResolvedPath
from .stat_walker import (
    DATAFOLDER,
    DEFAULT_MARKER,
    DEFAULT_PROBE,
    ERROR,
    FILE,
    FOLDER,
    FsProbe,
    PathStatus,
    stat_one,
)
from .tree import Category, Node, Root

logger = logging.getLogger(__name__)

CATEGORY = "category"
SIZE_TAGS = ("B", "KB", "MB", "GB", "TB", "PB")

# a child is either a nested category (nothing to probe) or a path on disk
ChildValue = Union[Category, str]


@dataclass
class DirectoryEntry:
    name: str
    path: str
    type: str
    size: str = ""


@dataclass
class Directory:
    path: str
    entries: List[DirectoryEntry] = field(default_factory=list)
    type: str = FOLDER

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def get_human_size(size: float) -> str:
    """1536 -> '1.5KB'. One decimal place, powers of 1024."""
    power = 0
    while size >= 1024 and power < len(SIZE_TAGS) - 1:
        size /= 1024
        power += 1
    return f"{size:.1f}{SIZE_TAGS[power]}"


async def list_children(
    node: Node, filesystem_path: str, probe: Optional[FsProbe] = None
) -> List[Tuple[str, ChildValue]]:
    """
    Enumerate the children of a category (its keys) or of a real directory
    (its entries on disk), in enumeration order.
    """
    if isinstance(node, Category):
        return [
            (name, child.path if isinstance(child, Root) else child)
            for name, child in node.items()
        ]
    probe = probe or DEFAULT_PROBE
    try:
        names = await probe.listdir(filesystem_path)
    except (OSError, ValueError) as exc:
        raise ProbeFailed(filesystem_path, exc) from exc
    return [(name, os.path.join(filesystem_path, name)) for name in names]


async def _classify(
    value: ChildValue, probe: Optional[FsProbe], marker: str
) -> Optional[PathStatus]:
    if isinstance(value, Category):
        return None
    return await stat_one(value, probe=probe, marker=marker)


def make_entry(name: str, status: Optional[PathStatus], type_lookup: TypeLookup) -> DirectoryEntry:
    if status is None:
        return DirectoryEntry(name=name, path=name + "/", type=CATEGORY)
    if status.kind == FILE:
        return DirectoryEntry(
            name=name,
            path=name,
            type=type_lookup.for_name(name),
            size=get_human_size(status.size),
        )
    if status.kind == FOLDER:
        return DirectoryEntry(name=name, path=name + "/", type=FOLDER)
    if status.kind == DATAFOLDER:
        return DirectoryEntry(name=name, path=name, type=DATAFOLDER)
    return DirectoryEntry(name=name, path=name, type=ERROR)


async def build_listing(
    node: Node,
    filesystem_path: str,
    label: str = "",
    type_lookup: Optional[TypeLookup] = None,
    probe: Optional[FsProbe] = None,
    marker: str = DEFAULT_MARKER,
) -> List[DirectoryEntry]:
    """
    List and classify every child of a folder-type location.

    Children are classified concurrently and the listing keeps their
    enumeration order. A child that cannot be probed becomes an `error`
    entry; only a failure to enumerate the location itself raises
    (ProbeFailed).
    """
    type_lookup = type_lookup or TypeLookup()
    children = await list_children(node, filesystem_path, probe)
    statuses = await asyncio.gather(
        *(_classify(value, probe, marker) for _, value in children)
    )
    entries = [
        make_entry(name, status, type_lookup)
        for (name, _), status in zip(children, statuses)
    ]
    errors = sum(1 for entry in entries if entry.type == ERROR)
    if errors:
        logger.debug("listing /%s: %d of %d children unreadable", label, errors, len(entries))
    return entries


async def directory_index(
    resolved: ResolvedPath,
    type_lookup: Optional[TypeLookup] = None,
    probe: Optional[FsProbe] = None,
    marker: str = DEFAULT_MARKER,
) -> Directory:
    """Listing for a resolved category or folder, labelled with its request path."""
    entries = await build_listing(
        resolved.node,
        resolved.filesystem_path,
        resolved.label,
        type_lookup=type_lookup,
        probe=probe,
        marker=marker,
    )
    kind = CATEGORY if resolved.is_category else FOLDER
    return Directory(path=resolved.label, entries=entries, type=kind)


def sort_entries(
    entries: List[DirectoryEntry],
    key: Union[str, Callable[[DirectoryEntry], Any]] = "name",
    reverse: bool = False,
) -> List[DirectoryEntry]:
    """Return a sorted copy, by field name or by a selector function."""
    selector = attrgetter(key) if isinstance(key, str) else key
    return sorted(entries, key=selector, reverse=reverse)
