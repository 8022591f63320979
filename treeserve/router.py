# python
"""
treeserve/router.py
Drives one request through resolve -> walk -> listing, and dispatches the
shell commands that browse the namespace.
"""
import json
import logging
import os
import shlex
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from .config import AppConfig
from .errors import ProbeFailed
from .listing import CATEGORY, Directory, directory_index, get_human_size, sort_entries
from .resolver import ResolvedPath, resolve, split_request_path
from .session import RequestState, Session
from .stat_walker import DATAFOLDER, ERROR, FILE, FOLDER, FsProbe, PathStatus, walk

logger = logging.getLogger(__name__)

HELP_TEXT = "\n".join(
    [
        "pwd              print the current path",
        "cd [path]        enter a category or folder",
        "ls [-j] [path]   list a category or folder (-j for JSON)",
        "stat <path>      show what a path resolves to",
        "help             this text",
        "exit             close the session",
    ]
)


@dataclass
class RouteResult:
    resolved: Optional[ResolvedPath] = None
    status: Optional[PathStatus] = None
    directory: Optional[Directory] = None
    # segments addressed inside a datafolder
    remaining: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def kind(self) -> str:
        if self.resolved is None:
            return ERROR
        if self.resolved.is_category:
            return CATEGORY
        return self.status.kind if self.status else ERROR


def _format_entry_line(entry_type: str, size: str, name: str) -> str:
    return f"{entry_type:<12} {size:>8} {name}"


class Router:
    def __init__(
        self,
        app: AppConfig,
        probe: Optional[FsProbe] = None,
        max_output: int = 16_384,
    ):
        self.app = app
        self.probe = probe
        self.max_output = int(max_output)

    async def handle(self, state: RequestState, want_listing: bool = True) -> RouteResult:
        """
        Resolve state.path and classify it. Unresolvable paths and probe
        errors end the request through state.fail(); a folder-type result
        also gets its listing when want_listing is set.
        """
        resolved = resolve(state.path, self.app.tree)
        if resolved is None:
            state.log(-1, "path rejected").fail(404)
            return RouteResult()
        result = RouteResult(resolved=resolved)

        if resolved.is_category:
            if want_listing:
                result.directory = await self._listing(state, resolved)
            return result

        status = await walk(
            resolved.root,
            resolved.file_segments,
            probe=self.probe,
            marker=self.app.marker,
        )
        result.status = status
        if status.kind == ERROR:
            if status.error is None or status.not_found:
                state.log(-1, "%s not found", status.path).fail(404)
            else:
                state.log(2, "stat failed for %s: %s", status.path, status.error).fail(500)
            return result

        result.remaining = tuple(resolved.file_segments[status.index:])
        if status.kind == FILE and result.remaining:
            state.log(-1, "%s is a file, cannot descend into %s", status.path, "/".join(result.remaining))
            state.fail(404)
        elif status.kind == FOLDER and want_listing:
            result.directory = await self._listing(state, resolved)
        return result

    async def _listing(self, state: RequestState, resolved: ResolvedPath) -> Optional[Directory]:
        try:
            return await directory_index(
                resolved,
                type_lookup=self.app.types,
                probe=self.probe,
                marker=self.app.marker,
            )
        except ProbeFailed as exc:
            state.log(2, "Error calling readdir on folder %s: %s", exc.path, exc.original)
            state.fail(500)
            return None

    async def dispatch(self, session: Session, line: str) -> Tuple[str, bool]:
        """
        Dispatch a single input line and return (output, truncated_flag).
        """
        line = (line or "").strip()

        if not line:
            return ("", False)

        try:
            argv: List[str] = shlex.split(line)
        except ValueError:
            argv = line.split()

        cmd = argv[0] if argv else ""
        if cmd == "pwd":
            out = session.cwd_path
        elif cmd == "cd":
            out = await self._handle_cd(session, argv)
        elif cmd == "ls":
            out = await self._handle_ls(session, argv)
        elif cmd == "stat":
            out = await self._handle_stat(session, argv)
        elif cmd == "help":
            out = HELP_TEXT
        else:
            logger.debug("unknown command %r", cmd)
            out = f"treeserve: {cmd}: command not found"
        truncated = len(out.encode()) > self.max_output
        return (out[: self.max_output], truncated)

    async def _run(self, session: Session, segments: Sequence[str], want_listing: bool) -> Tuple[RequestState, RouteResult]:
        state = session.new_request(tuple(segments), debug_level=self.app.debug_level)
        result = await self.handle(state, want_listing=want_listing)
        await session.log(
            "request.resolve",
            "route",
            path="/" + "/".join(state.path),
            kind=result.kind,
            status=state.status,
        )
        if state.failed:
            await session.log("request.fail", "route", status=state.status, reason=state.reason)
        state.finish()
        return state, result

    async def _handle_cd(self, session: Session, argv: List[str]) -> str:
        target = argv[1] if len(argv) > 1 else "/"
        state, result = await self._run(session, self._target_segments(session, target), False)
        if state.failed:
            return f"cd: {target}: {state.status_line()}"
        if result.kind not in (CATEGORY, FOLDER):
            return f"cd: {target}: not a folder ({result.kind})"
        session.cwd = tuple(seg for seg in result.resolved.tree_segments + result.resolved.file_segments if seg)
        return ""

    async def _handle_ls(self, session: Session, argv: List[str]) -> str:
        as_json = "-j" in argv[1:]
        args = [arg for arg in argv[1:] if arg and not arg.startswith("-")]
        target = args[0] if args else ""
        state, result = await self._run(session, self._target_segments(session, target), True)
        if state.failed:
            display = target or "."
            return f"ls: cannot access '{display}': {state.status_line()}"
        if result.directory is None:
            status = result.status
            name = os.path.basename(status.path) if status else target
            if result.kind == FILE:
                entry_type = self.app.types.for_name(name)
                size = get_human_size(status.size)
            else:
                entry_type, size = result.kind, ""
            if as_json:
                return json.dumps({"name": name, "type": entry_type, "size": size})
            return _format_entry_line(entry_type, size, name)
        if as_json:
            return json.dumps(result.directory.to_dict(), indent=2)
        return "\n".join(
            _format_entry_line(entry.type, entry.size, entry.path)
            for entry in sort_entries(result.directory.entries)
        )

    async def _handle_stat(self, session: Session, argv: List[str]) -> str:
        if len(argv) < 2:
            return "stat: missing operand"
        target = argv[1]
        state, result = await self._run(session, self._target_segments(session, target), False)
        if state.failed:
            return f"stat: cannot stat '{target}': {state.status_line()}"
        resolved = result.resolved
        lines = [
            f"path: /{resolved.label}",
            f"kind: {result.kind}",
            f"tree: /{'/'.join(resolved.tree_segments)}",
        ]
        if result.status is not None:
            lines.append(f"filesystem: {result.status.path}")
            if result.kind == FILE:
                lines.append(f"size: {get_human_size(result.status.size)}")
        if result.kind == DATAFOLDER and result.remaining:
            lines.append(f"inside: {'/'.join(result.remaining)}")
        return "\n".join(lines)

    def _target_segments(self, session: Session, target: str) -> List[str]:
        """
        Shell-side navigation: relative targets start from the session's cwd,
        and `.`/`..` are folded lexically, never above the namespace root.
        """
        target = (target or "").strip()
        parts: List[str] = [] if target.startswith("/") else list(session.cwd)
        for entry in split_request_path(target):
            if entry == ".":
                continue
            if entry == "..":
                if parts:
                    parts.pop()
                continue
            parts.append(entry)
        return parts
