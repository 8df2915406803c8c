#!/usr/bin/env python3
"""Drive the dapshim adapter without an IDE.

Launches the adapter in a subprocess, performs initialize → launch →
configurationDone, optionally pokes the breakpoint refresh endpoint, then
disconnects and prints the DAP transcript as a table.
"""

from __future__ import annotations

import argparse
import json
import os
import subprocess
import sys
import time
import urllib.error
import urllib.request
from pathlib import Path
from typing import Dict, List, Optional

from tabulate import tabulate

PYTHON_DIR = Path(__file__).resolve().parents[1]


def _send_message(proc: subprocess.Popen, payload: Dict) -> None:
    raw = json.dumps(payload).encode("utf-8")
    proc.stdin.write(f"Content-Length: {len(raw)}\r\n\r\n".encode("ascii"))
    proc.stdin.write(raw)
    proc.stdin.flush()


def _read_message(proc: subprocess.Popen) -> Dict:
    length = 0
    while True:
        line = proc.stdout.readline()
        if not line:
            raise RuntimeError(f"adapter closed stdout. stderr:\n{proc.stderr.read().decode('utf-8', 'replace')}")
        line = line.strip()
        if not line:
            break
        if line.lower().startswith(b"content-length:"):
            length = int(line.split(b":", 1)[1].strip())
    return json.loads(proc.stdout.read(length))


def _read_response(proc: subprocess.Popen, expected: str, transcript: List[Dict]) -> Dict:
    while True:
        message = _read_message(proc)
        transcript.append(message)
        if message.get("type") == "response" and message.get("command") == expected:
            return message


def _poke_refresh(port: int, path: str) -> int:
    url = f"http://127.0.0.1:{port}{path}"
    try:
        with urllib.request.urlopen(url, timeout=2.0) as reply:
            return reply.status
    except urllib.error.HTTPError as exc:
        return exc.code


def _summarise(message: Dict) -> List[str]:
    kind = message.get("type", "")
    if kind == "event":
        name = message.get("event", "")
        body = message.get("body") or {}
        detail = body.get("output", "").rstrip() if name == "output" else json.dumps(body, sort_keys=True)
        return [message.get("seq", ""), kind, name, detail]
    status = "ok" if message.get("success") else f"failed: {message.get('message', '')}"
    return [message.get("seq", ""), kind, message.get("command", ""), status]


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Standalone DAP driver for dapshim.")
    parser.add_argument("--program", required=True, help="Program the wrapped session launches")
    parser.add_argument("--platform", default="ios")
    parser.add_argument("--target")
    parser.add_argument("--control-port", type=int, default=9090)
    parser.add_argument("--refresh", action="store_true", help="Hit /refreshBreakpoints after launch")
    parser.add_argument("--session-factory", help="module:attr of the session type to wrap")
    parser.add_argument("--log-file", default=str(Path.cwd() / "dapshim-debug.log"))
    parser.add_argument("--python", default=sys.executable)
    args = parser.parse_args(argv)

    cmd = [
        args.python,
        str(PYTHON_DIR / "dapshim-adapter.py"),
        "--log-file",
        args.log_file,
        "--log-level",
        "DEBUG",
        "--stop-monitoring-timeout",
        "1",
    ]
    if args.session_factory:
        cmd += ["--session-factory", args.session_factory]
    env = os.environ.copy()
    env.setdefault("PYTHONUNBUFFERED", "1")
    print(f"[driver] launching: {' '.join(cmd)}")
    proc = subprocess.Popen(cmd, stdin=subprocess.PIPE, stdout=subprocess.PIPE, stderr=subprocess.PIPE, env=env)
    transcript: List[Dict] = []
    refresh_status: Optional[int] = None
    try:
        _send_message(proc, {"seq": 1, "type": "request", "command": "initialize", "arguments": {}})
        _read_response(proc, "initialize", transcript)
        launch_arguments = {
            "program": args.program,
            "platform": args.platform,
            "internalDebuggerPort": args.control_port,
        }
        if args.target:
            launch_arguments["target"] = args.target
        _send_message(proc, {"seq": 2, "type": "request", "command": "launch", "arguments": launch_arguments})
        _read_response(proc, "launch", transcript)
        _send_message(proc, {"seq": 3, "type": "request", "command": "configurationDone", "arguments": {}})
        _read_response(proc, "configurationDone", transcript)
        if args.refresh:
            time.sleep(0.1)
            refresh_status = _poke_refresh(args.control_port, "/refreshBreakpoints")
        _send_message(proc, {"seq": 4, "type": "request", "command": "disconnect", "arguments": {}})
        _read_response(proc, "disconnect", transcript)
    finally:
        if proc.stdin:
            proc.stdin.close()
        try:
            proc.wait(timeout=5)
        except subprocess.TimeoutExpired:
            proc.kill()

    print(tabulate([_summarise(message) for message in transcript], headers=["seq", "type", "name", "detail"], tablefmt="github"))
    if refresh_status is not None:
        print(f"\n[driver] /refreshBreakpoints -> {refresh_status}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
