# python
"""
treeserve/session.py
Connection sessions with JSONL event logging, and the per-request state the
resolver pipeline reports into.
"""
from dataclasses import dataclass, field
import asyncio
import json
import datetime
import logging
import pathlib
from http import HTTPStatus
from typing import Optional, Any, List, Tuple

_EVENT_LOCK = asyncio.Lock()

request_logger = logging.getLogger("treeserve.request")

# 4 - errors that require the process to exit for restart
# 3 - major errors that are handled and do not require a restart
# 2 - warnings or errors that do not alter the program flow (minimum for status 500)
# 1 - info, most startup messages
# 0 - normal debug messages and request-side error messages
# -1 - detailed debug messages from high level apis
# -2 - response status messages and error response data
# -3 - request and response data for all messages
# -4 - protocol details and full data dump
CRITICAL_LEVEL = 2


def python_level(level: int) -> int:
    """Map the numeric debug scale onto the logging module's levels."""
    if level >= 4:
        return logging.CRITICAL
    if level == 3:
        return logging.ERROR
    if level == 2:
        return logging.WARNING
    if level == 1:
        return logging.INFO
    return logging.DEBUG


def iso_ts():
    """
    Return a timezone-aware UTC ISO timestamp (Z suffix) for logging.
    """
    dt = datetime.datetime.now(datetime.timezone.utc).replace(microsecond=0)
    return dt.isoformat().replace("+00:00", "Z")


def ensure_dir(path: pathlib.Path):
    path.mkdir(parents=True, exist_ok=True)


@dataclass
class RequestState:
    """
    One request through the resolver pipeline. Collects leveled log lines and
    records the first fail() as the response status; nothing may act on the
    request once it has ended.
    """
    path: Tuple[str, ...]
    debug_level: int = 0
    status: int = 200
    reason: str = ""
    ended: bool = False
    has_critical_logs: bool = False
    messages: List[Tuple[int, str]] = field(default_factory=list, repr=False)

    def log(self, level: int, msg: str, *args: Any) -> "RequestState":
        if level < self.debug_level:
            return self
        if level >= CRITICAL_LEVEL:
            self.has_critical_logs = True
        self.messages.append((level, msg % args if args else msg))
        return self

    def fail(self, status: int, reason: Optional[str] = None) -> "RequestState":
        if self.ended:
            return self
        self.status = status
        if reason is None:
            try:
                reason = HTTPStatus(status).phrase
            except ValueError:
                reason = ""
        self.reason = reason
        self.ended = True
        return self

    @property
    def failed(self) -> bool:
        return self.ended and self.status >= 400

    def status_line(self) -> str:
        return f"{self.status} {self.reason}".rstrip()

    def finish(self) -> None:
        """Flush collected messages to the request logger."""
        label = "/" + "/".join(self.path)
        for level, text in self.messages:
            request_logger.log(python_level(level), "%s %s", label, text)
        if self.has_critical_logs:
            request_logger.warning("%s finished with status %s", label, self.status)
        self.messages.clear()


@dataclass
class Session:
    session_id: str
    remote_ip: str
    remote_port: int
    started_ts: str
    _events_file: str = "logs/events.jsonl"
    cwd: Tuple[str, ...] = ()
    history: List[str] = field(default_factory=list, repr=False)
    requests: int = 0

    async def log(self, event: str, phase: str, **fields: Any) -> None:
        rec = {
            "ts": iso_ts(),
            "session_id": self.session_id,
            "remote_ip": self.remote_ip,
            "remote_port": self.remote_port,
            "event": event,
            "phase": phase,
            "payload": fields or {}
        }
        async with _EVENT_LOCK:
            ensure_dir(pathlib.Path(self._events_file).parent)
            with open(self._events_file, "a", encoding="utf-8") as f:
                f.write(json.dumps(rec, ensure_ascii=False, default=str) + "\n")

    @property
    def cwd_path(self) -> str:
        return "/" + "/".join(self.cwd)

    def new_request(self, path: Tuple[str, ...], debug_level: int = 0) -> RequestState:
        self.requests += 1
        return RequestState(path=tuple(path), debug_level=debug_level)

    def record_command(self, command: str) -> None:
        if command:
            self.history.append(command)
