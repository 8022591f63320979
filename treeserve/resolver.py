# python
"""
treeserve/resolver.py
Splits a request path into the part consumed by the virtual tree and the part
that has to be looked up on disk.
"""
import os
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple
from urllib.parse import unquote, urlsplit

from .errors import PathRejected
from .tree import Category, Node, Root

UNSAFE_SEGMENTS = (".", "..")


@dataclass(frozen=True)
class ResolvedPath:
    node: Node
    request_segments: Tuple[str, ...]
    tree_segments: Tuple[str, ...]
    file_segments: Tuple[str, ...]
    # empty unless the descent reached a filesystem root
    filesystem_path: str = ""

    @property
    def is_category(self) -> bool:
        return isinstance(self.node, Category)

    @property
    def root(self) -> Optional[str]:
        return self.node.path if isinstance(self.node, Root) else None

    @property
    def label(self) -> str:
        return "/".join(seg for seg in self.tree_segments + self.file_segments if seg)


def split_request_path(url_path: str) -> Tuple[str, ...]:
    """
    Percent-decode a URL path and split it into its non-empty segments.
    A query string or fragment is ignored.
    """
    path = urlsplit(url_path or "").path
    return tuple(seg for seg in unquote(path).split("/") if seg)


def safe_join(root: str, segments: Sequence[str]) -> Optional[str]:
    """
    Join segments onto root, returning None if the normalized result is not
    root itself or somewhere beneath it.
    """
    base = os.path.normpath(root)
    joined = os.path.normpath(os.path.join(base, *segments)) if segments else base
    if joined == base:
        return joined
    prefix = base if base.endswith(os.sep) else base + os.sep
    if not joined.startswith(prefix):
        return None
    return joined


def _descend(request_path: Sequence[str], tree: Node) -> Tuple[Optional[ResolvedPath], str]:
    segments = tuple(seg for seg in request_path if seg)
    if any(seg in UNSAFE_SEGMENTS for seg in segments):
        return None, "unsafe path segment"

    node = tree
    end = 0
    while end < len(segments) and isinstance(node, Category) and segments[end] in node:
        node = node.children[segments[end]]
        end += 1

    if isinstance(node, Category):
        if end < len(segments):
            return None, "no such category"
        return ResolvedPath(node, segments, segments, ()), ""

    # trimmed segments stay aligned with the request; blanks are skipped only when joining
    file_segments = tuple(seg.strip() for seg in segments[end:])
    if any(seg in UNSAFE_SEGMENTS for seg in file_segments):
        return None, "unsafe path segment"
    filesystem_path = safe_join(node.path, [seg for seg in file_segments if seg])
    if filesystem_path is None:
        return None, "path escapes its root"
    return (
        ResolvedPath(node, segments, segments[:end], file_segments, filesystem_path),
        "",
    )


def resolve(request_path: Sequence[str], tree: Node) -> Optional[ResolvedPath]:
    """
    Resolve request segments against the virtual tree.

    Descent follows category keys until a filesystem root is reached; every
    remaining segment is then joined onto that root. Returns None for a
    `.`/`..` segment or when a category has no child for the next segment.
    """
    result, _ = _descend(request_path, tree)
    return result


def resolve_strict(request_path: Sequence[str], tree: Node) -> ResolvedPath:
    """Like resolve() but raises PathRejected with the reason for the failure."""
    result, reason = _descend(request_path, tree)
    if result is None:
        raise PathRejected(request_path, reason)
    return result
