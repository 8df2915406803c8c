"""
Client for the long-running helper that owns the packager and log monitor.

Responsibilities:
    * Locate the helper's control socket for a given project root.
    * Send JSON-lines RPC requests (one request per connection).
    * Expose the helper operations as futures so callers decide how long to wait.
"""

from __future__ import annotations

import errno
import hashlib
import json
import logging
import os
import socket
import tempfile
import threading
from concurrent.futures import Future
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Optional

REMOTE_CONTROL_DIR_ENV = "DAPSHIM_REMOTE_CONTROL_DIR"

LOGGER = logging.getLogger("dapshim.remote")


class RemoteControlError(RuntimeError):
    """Raised when the helper cannot be reached or reports a failure."""


def endpoint_for_project(project_root: str) -> Path:
    """Control socket path for ``project_root``; stable for a given root."""
    base = os.environ.get(REMOTE_CONTROL_DIR_ENV) or tempfile.gettempdir()
    canonical = os.path.normcase(os.path.normpath(os.path.abspath(project_root)))
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]
    return Path(base) / f"dapshim-{digest}.sock"


def _describe_os_error(exc: OSError) -> str:
    code = errno.errorcode.get(exc.errno or 0)
    reason = exc.strerror or str(exc)
    return f"{code}: {reason}" if code else reason


@dataclass
class RemoteControlConfig:
    path: Path
    connect_timeout: float = 2.0
    read_timeout: float = 5.0


@dataclass
class RemoteControlTransport:
    """Synchronous JSON-lines RPC over the helper's Unix socket."""

    config: RemoteControlConfig

    _lock: threading.Lock = field(init=False, default_factory=threading.Lock)
    _next_id: int = field(init=False, default=1)

    def _next_seq(self) -> int:
        with self._lock:
            seq = self._next_id
            self._next_id += 1
            return seq

    def call(self, method: str, *args: Any) -> Any:
        request_id = self._next_seq()
        payload = json.dumps({"id": request_id, "method": method, "args": list(args)}).encode("utf-8") + b"\n"
        try:
            sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        except (AttributeError, OSError) as exc:
            raise RemoteControlError(f"unix sockets unavailable: {exc}") from exc
        with sock:
            try:
                sock.settimeout(self.config.connect_timeout)
                sock.connect(str(self.config.path))
                sock.settimeout(self.config.read_timeout)
                sock.sendall(payload)
                line = self._read_line(sock)
            except socket.timeout as exc:
                raise RemoteControlError(f"{method} timed out") from exc
            except OSError as exc:
                raise RemoteControlError(_describe_os_error(exc)) from exc
        if not line:
            raise RemoteControlError(f"{method}: connection closed without reply")
        try:
            message = json.loads(line.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise RemoteControlError(f"{method}: malformed reply") from exc
        return self._unpack(method, request_id, message)

    @staticmethod
    def _read_line(sock: socket.socket) -> bytes:
        buffer = b""
        while b"\n" not in buffer:
            chunk = sock.recv(4096)
            if not chunk:
                break
            buffer += chunk
        return buffer.split(b"\n", 1)[0]

    @staticmethod
    def _unpack(method: str, request_id: int, message: Dict[str, Any]) -> Any:
        if not isinstance(message, dict):
            raise RemoteControlError(f"{method}: malformed reply")
        reply_id = message.get("id")
        if reply_id is not None and reply_id != request_id:
            raise RemoteControlError(f"{method}: reply id {reply_id} does not match request {request_id}")
        error = message.get("error")
        if error:
            if isinstance(error, dict):
                raise RemoteControlError(str(error.get("message") or error))
            raise RemoteControlError(str(error))
        return message.get("result")


class RemoteControlClient:
    """Futures-based facade over the helper RPC."""

    def __init__(self, transport: RemoteControlTransport) -> None:
        self.transport = transport

    @classmethod
    def at_project_root(cls, project_root: Optional[str]) -> "RemoteControlClient":
        if not project_root:
            raise RemoteControlError("project root is not known; was the session launched?")
        path = endpoint_for_project(project_root)
        LOGGER.debug("remote control endpoint for %s: %s", project_root, path)
        return cls(RemoteControlTransport(RemoteControlConfig(path=path)))

    def stop_monitoring_log_stream(self) -> "Future[None]":
        return self._call_async("stopMonitoringLogStream", convert=lambda _: None)

    def get_listener_port(self) -> "Future[int]":
        return self._call_async("getListenerPort", convert=self._to_port)

    @staticmethod
    def _to_port(value: Any) -> int:
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise RemoteControlError(f"invalid listener port: {value!r}") from exc

    def _call_async(self, method: str, *, convert: Callable[[Any], Any]) -> Future:
        future: Future = Future()

        def runner() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                result = convert(self.transport.call(method))
            except Exception as exc:
                LOGGER.debug("remote call %s failed: %s", method, exc)
                future.set_exception(exc)
            else:
                future.set_result(result)

        thread = threading.Thread(target=runner, name=f"dapshim-remote-{method}", daemon=True)
        thread.start()
        return future
