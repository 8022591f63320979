# Add project root to sys.path so pytest can import the treeserve package
import os
import sys
from pathlib import Path

import pytest

# Insert project root (parent of this tests/ directory) at front of sys.path
# This makes `import treeserve` work when running `pytest` from the repo root.
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from treeserve.stat_walker import DEFAULT_MARKER, FsProbe  # noqa: E402


class RecordingProbe(FsProbe):
    """FsProbe that remembers every path it was asked about."""

    def __init__(self, fail=None):
        self.stat_calls = []
        self.listdir_calls = []
        self.fail = dict(fail or {})

    async def stat(self, path):
        self.stat_calls.append(path)
        if path in self.fail:
            raise self.fail[path]
        return await super().stat(path)

    async def listdir(self, path):
        self.listdir_calls.append(path)
        if path in self.fail:
            raise self.fail[path]
        return await super().listdir(path)

    @property
    def candidate_calls(self):
        """stat calls other than marker-file checks"""
        return [p for p in self.stat_calls if os.path.basename(p) != DEFAULT_MARKER]


@pytest.fixture
def probe():
    return RecordingProbe()


@pytest.fixture
def content_root(tmp_path: Path) -> Path:
    """
    tmp/data/wiki/             plain folder
      tiddlers/                plain folder
        note.md                3 bytes
      site/                    data folder (has the marker)
        tiddlywiki.info
        inner/deep.txt
      index.html               1536 bytes
    tmp/data/other/            data folder at a tree root
      tiddlywiki.info
    """
    wiki = tmp_path / "data" / "wiki"
    (wiki / "tiddlers").mkdir(parents=True)
    (wiki / "tiddlers" / "note.md").write_text("abc", encoding="utf-8")
    (wiki / "site" / "inner").mkdir(parents=True)
    (wiki / "site" / DEFAULT_MARKER).write_text("{}", encoding="utf-8")
    (wiki / "site" / "inner" / "deep.txt").write_text("x", encoding="utf-8")
    (wiki / "index.html").write_bytes(b"x" * 1536)
    other = tmp_path / "data" / "other"
    other.mkdir(parents=True)
    (other / DEFAULT_MARKER).write_text("{}", encoding="utf-8")
    return tmp_path / "data"


@pytest.fixture
def make_probe():
    """Factory for probes that raise the given OSError for specific paths."""
    return RecordingProbe
