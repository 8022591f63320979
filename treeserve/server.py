# python
"""
treeserve/server.py
Asyncio telnet front end using telnetlib3: a shell for browsing the namespace.
"""
import argparse
import asyncio
import logging
import pathlib
import time
import uuid
from typing import Any, Dict, Optional, Tuple

import telnetlib3
from telnetlib3.telopt import ECHO, WILL

from .config import AppConfig, DEFAULT_CONFIG, build_app_config, load_config
from .router import Router
from .session import Session, iso_ts, python_level
from .tree import iter_roots

logger = logging.getLogger(__name__)

EXIT_COMMANDS = ("exit", "logout")

CONFIG: Dict[str, Any] = DEFAULT_CONFIG
APP: Optional[AppConfig] = None


def _prepare_log_paths(settings: Dict[str, Any]) -> None:
    paths = settings["paths"]
    for directory in (pathlib.Path(paths["logs_dir"]), pathlib.Path(paths["events_file"]).parent):
        directory.mkdir(parents=True, exist_ok=True)


def _to_crlf(text: str) -> str:
    """Telnet clients expect CRLF line endings."""
    if not text:
        return ""
    return "\r\n".join(text.replace("\r\n", "\n").replace("\r", "\n").split("\n"))


def _bound_address(server, host: str, port: int) -> Tuple[str, int]:
    """The address actually listened on, so port 0 can be reported."""
    sockets = getattr(server, "sockets", None) or []
    if not sockets:
        return host, port
    bound_host, bound_port = sockets[0].getsockname()[:2]
    if bound_host in ("", "0.0.0.0", "::"):
        bound_host = "127.0.0.1"
    return bound_host, bound_port


async def _send(writer, text: str) -> None:
    writer.write(text)
    await writer.drain()


def _open_session(writer) -> Session:
    remote_ip, remote_port = (writer.get_extra_info("peername") or ("0.0.0.0", 0))[:2]
    return Session(
        session_id=uuid.uuid4().hex,
        remote_ip=remote_ip,
        remote_port=remote_port,
        started_ts=iso_ts(),
        _events_file=CONFIG["paths"]["events_file"],
    )


async def shell(reader, writer) -> None:
    session = _open_session(writer)
    opened = time.monotonic()
    router = Router(APP, max_output=CONFIG["limits"]["max_output_bytes"])
    banner = CONFIG["server"]["banner"]
    try:
        writer.iac(WILL, ECHO)
    except AttributeError:  # pragma: no cover
        logger.debug("writer cannot negotiate ECHO")
    await session.log("session.connect", "connect", banner=banner)
    try:
        # option negotiation settles before the banner goes out
        await asyncio.sleep(0.2)
        await _send(writer, banner + "\r\n")
        while True:
            await _send(writer, f"{CONFIG['hostname']}:{session.cwd_path}$ ")
            raw = await reader.readline()
            if not raw:
                break
            line = raw.rstrip("\r\n")
            if not line.strip():
                continue
            session.record_command(line)
            await session.log("command.input", "shell", raw=line, argv=line.split())
            if not getattr(writer, "will_echo", False):
                writer.write(_to_crlf(line) + "\r\n")
            if line.split()[0] in EXIT_COMMANDS:
                await session.log("command.output", "shell", bytes=0, truncated=False)
                break
            out, truncated = await router.dispatch(session, line)
            await session.log(
                "command.output", "shell", bytes=len(out.encode()), truncated=truncated
            )
            if out:
                writer.write(_to_crlf(out) + "\r\n")
            await writer.drain()
    except (ConnectionError, asyncio.IncompleteReadError) as exc:
        logger.info("session %s dropped: %s", session.session_id, exc)
    except Exception:
        logger.exception("session %s failed", session.session_id)
    finally:
        await session.log(
            "session.close",
            "close",
            duration_ms=int((time.monotonic() - opened) * 1000),
            requests=session.requests,
            commands=len(session.history),
        )
        writer.close()


async def start_server(config: Optional[Dict[str, Any]] = None):
    global CONFIG, APP
    if config:
        CONFIG = config
    APP = build_app_config(CONFIG)
    _prepare_log_paths(CONFIG)
    host, port = CONFIG["server"]["host"], CONFIG["server"]["port"]
    server = await telnetlib3.create_server(shell=shell, host=host, port=port)
    bound_host, bound_port = _bound_address(server, host, port)
    # tests parse this line to find the port
    print(f"Listening on {bound_host}:{bound_port}", flush=True)
    logger.info("serving %d tree root(s) as %s", sum(1 for _ in iter_roots(APP.tree)), CONFIG["hostname"])
    try:
        await asyncio.Event().wait()
    finally:
        server.close()
        await server.wait_closed()


def main(argv=None):
    parser = argparse.ArgumentParser(prog="treeserve", description="Browse a virtual tree over telnet.")
    parser.add_argument("--settings", help="path to a settings JSON file")
    parser.add_argument("--host", help="override server.host")
    parser.add_argument("--port", type=int, help="override server.port (0 picks a free port)")
    args = parser.parse_args(argv)

    config = load_config(args.settings)
    if args.host is not None:
        config["server"]["host"] = args.host
    if args.port is not None:
        config["server"]["port"] = args.port
    logging.basicConfig(
        level=python_level(config.get("debug_level", 0)),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        asyncio.run(start_server(config))
    except KeyboardInterrupt:
        logger.info("shutting down")


if __name__ == "__main__":
    main()
