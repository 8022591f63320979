# python
"""
tests/test_server_integration.py
Launches the treeserve telnet server against a temporary tree and browses it over a real connection.
"""
import asyncio
import json
import re
import sys
import time
from pathlib import Path

import pytest
import telnetlib3

PY = sys.executable
PROMPT = "$ "


def _write_settings(tmp_path: Path, content_root: Path) -> Path:
    settings = {
        "tree": {
            "wiki": str(content_root / "wiki"),
            "shelf": {"other": str(content_root / "other")},
        },
        "paths": {
            "logs_dir": str(tmp_path / "logs"),
            "events_file": str(tmp_path / "logs" / "events.jsonl"),
        },
        "debug_level": 1,
    }
    path = tmp_path / "settings.json"
    path.write_text(json.dumps(settings), encoding="utf-8")
    return path


async def start_server_proc(settings_path: Path):
    proc = await asyncio.create_subprocess_exec(
        PY,
        "-u",
        "-m",
        "treeserve.server",
        "--settings",
        str(settings_path),
        "--host",
        "127.0.0.1",
        "--port",
        "0",
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        cwd=str(Path(__file__).resolve().parents[1]),
    )
    start = time.time()
    while time.time() - start < 5.0:
        if proc.stdout.at_eof():
            break
        line = await proc.stdout.readline()
        if not line:
            await asyncio.sleep(0.05)
            continue
        match = re.search(r"Listening on ([0-9\.]+):([0-9]+)", line.decode("utf-8", errors="replace"))
        if match:
            return proc, match.group(1), int(match.group(2))
    proc.kill()
    err = await proc.stderr.read()
    raise RuntimeError("Failed to start server; stderr=" + err.decode("utf-8", errors="replace"))


async def stop_server_proc(proc):
    proc.terminate()
    try:
        await asyncio.wait_for(proc.wait(), timeout=3.0)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()


async def _read_until(reader, delimiter, timeout=5.0):
    buffer = ""
    while not buffer.endswith(delimiter):
        chunk = await asyncio.wait_for(reader.read(1024), timeout=timeout)
        if not chunk:
            break
        buffer += chunk
    return buffer.replace("\r\n", "\n")


async def run_commands(host, port, commands):
    reader, writer = await telnetlib3.open_connection(host=host, port=port, encoding="utf-8")
    outputs = []
    try:
        banner = await _read_until(reader, PROMPT)
        outputs.append(banner)
        for command in commands:
            writer.write(f"{command}\r\n")
            await writer.drain()
            outputs.append(await _read_until(reader, PROMPT))
        writer.write("exit\r\n")
        await writer.drain()
    finally:
        writer.close()
    return outputs


@pytest.mark.asyncio
async def test_browse_tree_over_telnet(tmp_path: Path, content_root: Path):
    settings_path = _write_settings(tmp_path, content_root)
    proc, host, port = await start_server_proc(settings_path)
    try:
        banner, root_listing, cd_output, folder_listing = await run_commands(
            host, port, ["ls", "cd wiki", "ls"]
        )
    finally:
        await stop_server_proc(proc)

    assert "Welcome to treeserve" in banner
    assert banner.endswith("treeserve:/$ ")
    assert "wiki/" in root_listing
    assert "shelf/" in root_listing
    assert cd_output.endswith("treeserve:/wiki$ ")
    assert "index.html" in folder_listing
    assert "datafolder" in folder_listing

    events_file = tmp_path / "logs" / "events.jsonl"
    events = [json.loads(line)["event"] for line in events_file.read_text(encoding="utf-8").splitlines()]
    assert "session.connect" in events
    assert "request.resolve" in events
