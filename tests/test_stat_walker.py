# python
"""
tests/test_stat_walker.py
Unit tests for path classification and the short-circuiting walk.
"""
import asyncio
import os
from pathlib import Path

from treeserve.resolver import resolve, split_request_path
from treeserve.stat_walker import candidate_paths, stat_one, walk
from treeserve.tree import build_tree


def _walk(root, segments, probe):
    return asyncio.run(walk(str(root), segments, probe=probe))


def test_candidate_paths_are_prefixes() -> None:
    assert candidate_paths("/r", ["a", "b"]) == [
        "/r",
        os.path.join("/r", "a"),
        os.path.join("/r", "a", "b"),
    ]


def test_folder_without_marker(content_root: Path, probe) -> None:
    tree = build_tree({"wiki": str(content_root / "wiki")})
    resolved = resolve(["wiki", "tiddlers"], tree)
    assert resolved.tree_segments == ("wiki",)
    assert resolved.file_segments == ("tiddlers",)

    status = _walk(resolved.root, resolved.file_segments, probe)
    assert status.kind == "folder"
    assert not status.is_terminal
    assert status.path == str(content_root / "wiki" / "tiddlers")
    assert status.index == 1
    assert status.error is None


def test_file_is_terminal(content_root: Path, probe) -> None:
    status = _walk(content_root / "wiki", ["tiddlers", "note.md"], probe)
    assert status.kind == "file"
    assert status.is_terminal
    assert status.size == 3


def test_marker_makes_a_datafolder(content_root: Path, probe) -> None:
    status = asyncio.run(stat_one(str(content_root / "wiki" / "site"), probe=probe))
    assert status.kind == "datafolder"
    assert status.is_terminal
    assert status.marker_stat is not None


def test_walk_stops_at_datafolder(content_root: Path, probe) -> None:
    site = content_root / "wiki" / "site"
    status = _walk(content_root / "wiki", ["site", "inner", "deep.txt"], probe)
    assert status.kind == "datafolder"
    assert status.path == str(site)
    assert status.index == 1
    assert str(site / "inner") not in probe.stat_calls
    assert str(site / "inner" / "deep.txt") not in probe.stat_calls


def test_datafolder_at_tree_root_is_never_walked_into(content_root: Path, probe) -> None:
    root = content_root / "other"
    status = _walk(root, ["sub"], probe)
    assert status.kind == "datafolder"
    assert status.path == str(root)
    assert probe.candidate_calls == [str(root)]
    assert str(root / "sub") not in probe.stat_calls


def test_missing_path_is_an_error(content_root: Path, probe) -> None:
    status = _walk(content_root / "wiki", ["nope", "deeper", "deepest"], probe)
    assert status.kind == "error"
    assert status.is_terminal
    assert isinstance(status.error, FileNotFoundError)
    assert status.not_found
    assert len(probe.candidate_calls) == 2


def test_walk_probe_count_is_bounded(content_root: Path, probe) -> None:
    segments = ["tiddlers", "note.md", "x", "y", "z"]
    status = _walk(content_root / "wiki", segments, probe)
    assert status.kind == "file"
    assert len(probe.candidate_calls) <= len(segments) + 1
    assert probe.candidate_calls == [
        str(content_root / "wiki"),
        str(content_root / "wiki" / "tiddlers"),
        str(content_root / "wiki" / "tiddlers" / "note.md"),
    ]


def test_marker_directory_is_not_a_marker(tmp_path: Path, probe) -> None:
    folder = tmp_path / "folder"
    (folder / "tiddlywiki.info").mkdir(parents=True)
    status = asyncio.run(stat_one(str(folder), probe=probe))
    assert status.kind == "folder"
    assert status.marker_stat is None


def test_custom_marker_name(tmp_path: Path, probe) -> None:
    folder = tmp_path / "book"
    folder.mkdir()
    (folder / "book.json").write_text("{}", encoding="utf-8")
    assert asyncio.run(stat_one(str(folder), probe=probe)).kind == "folder"
    assert asyncio.run(stat_one(str(folder), probe=probe, marker="book.json")).kind == "datafolder"


def test_permission_error_is_reported_not_raised(content_root: Path, make_probe) -> None:
    target = str(content_root / "wiki" / "tiddlers")
    probe = make_probe(fail={target: PermissionError(13, "Permission denied", target)})
    status = _walk(content_root / "wiki", ["tiddlers", "note.md"], probe)
    assert status.kind == "error"
    assert isinstance(status.error, PermissionError)
    assert not status.not_found
    assert str(content_root / "wiki" / "tiddlers" / "note.md") not in probe.stat_calls


def test_nul_byte_in_path_is_an_error(content_root: Path, probe) -> None:
    tree = build_tree({"wiki": str(content_root / "wiki")})
    resolved = resolve(split_request_path("/wiki/a%00b"), tree)
    assert resolved.file_segments == ("a\x00b",)
    status = _walk(resolved.root, resolved.file_segments, probe)
    assert status.kind == "error"
    assert isinstance(status.error, ValueError)
    assert status.not_found


def test_blank_segment_walks_in_place(content_root: Path, probe) -> None:
    status = _walk(content_root / "wiki", ["", "tiddlers"], probe)
    assert status.kind == "folder"
    assert status.index == 2
    assert status.path == str(content_root / "wiki" / "tiddlers")
