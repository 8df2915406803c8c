"""Local HTTP control channel used to re-send breakpoints mid-session."""

from __future__ import annotations

import logging
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable, Optional, Tuple
from urllib.parse import urlsplit

REFRESH_BREAKPOINTS_PATH = "/refreshBreakpoints"

LOGGER = logging.getLogger("dapshim.control_server")


class _ControlRequestHandler(BaseHTTPRequestHandler):
    server: "_ControlHTTPServer"

    def do_GET(self) -> None:  # noqa: N802
        self._route()

    def do_POST(self) -> None:  # noqa: N802
        self._route()

    def __getattr__(self, name: str) -> Any:
        # Any other method gets the same empty 404 as an unknown path.
        if name.startswith("do_"):
            return self._not_found
        raise AttributeError(name)

    def _route(self) -> None:
        self._drain_body()
        if urlsplit(self.path).path != REFRESH_BREAKPOINTS_PATH:
            self._not_found()
            return
        try:
            self.server.on_refresh()
        except Exception:
            LOGGER.exception("breakpoint refresh failed")
            self._reply(500)
            return
        self._reply(200)

    def _not_found(self) -> None:
        self._reply(404)

    def _reply(self, status: int) -> None:
        self.send_response(status)
        self.send_header("Content-Length", "0")
        self.end_headers()

    def _drain_body(self) -> None:
        try:
            length = int(self.headers.get("Content-Length") or 0)
        except ValueError:
            length = 0
        if length > 0:
            self.rfile.read(length)

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        LOGGER.debug("%s - %s", self.address_string(), format % args)


class _ControlHTTPServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, server_address: Tuple[str, int], on_refresh: Callable[[], None]) -> None:
        self.on_refresh = on_refresh
        super().__init__(server_address, _ControlRequestHandler)


class ReinitializationServer:
    """One control endpoint per debug session."""

    def __init__(self, port: int, on_refresh: Callable[[], None], *, host: str = "127.0.0.1") -> None:
        self.host = host
        self.port = port
        self.on_refresh = on_refresh
        self._httpd: Optional[_ControlHTTPServer] = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def listening(self) -> bool:
        return self._httpd is not None

    @property
    def bound_port(self) -> Optional[int]:
        httpd = self._httpd
        if httpd is None:
            return None
        return int(httpd.server_address[1])

    def start(self) -> None:
        """Bind and start serving; raises OSError when the port is taken."""
        with self._lock:
            if self._httpd is not None:
                return
            httpd = _ControlHTTPServer((self.host, self.port), self.on_refresh)
            thread = threading.Thread(
                target=httpd.serve_forever,
                kwargs={"poll_interval": 0.2},
                name=f"dapshim-control-{self.port}",
                daemon=True,
            )
            self._httpd = httpd
            self._thread = thread
            thread.start()
        LOGGER.info("Control server listening on %s:%s", self.host, self.bound_port)

    def close(self) -> None:
        with self._lock:
            httpd, thread = self._httpd, self._thread
            self._httpd = None
            self._thread = None
        if httpd is None:
            return
        httpd.shutdown()
        httpd.server_close()
        if thread is not None and thread.is_alive():
            thread.join(timeout=1.0)
        LOGGER.info("Control server on port %s closed", self.port)
