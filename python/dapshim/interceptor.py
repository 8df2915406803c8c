"""
Request interception for a third-party debug session type.

``SessionInterceptor`` captures the session type's ``launch_request``,
``attach_request`` and ``disconnect_request`` handlers once and exposes
``launch``/``attach``/``disconnect`` operations that wrap them.  The
``SessionDriver`` dispatches through the interceptor, so the session type
itself is never modified.  Every wrapped operation receives the live session
as its first argument and hands the same object to the original handler.
"""

from __future__ import annotations

import logging
import sys
import threading
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, Dict, Optional

from .arguments import parse_control_port, project_root_for, sanitize_launch_arguments
from .control_server import ReinitializationServer
from .protocol import OPERATION_NAMES, DebugSession, Event, InitializedEvent, JsonDict, Operation, OutputEvent
from .remote import RemoteControlClient
from .telemetry import ReassignableTelemetryReporter, SessionTelemetryReporter

LOGGER = logging.getLogger("dapshim.interceptor")

RemoteFactory = Callable[[Optional[str]], Any]

# Attribute names under which sessions keep source-map caches.
_SOURCE_MAP_ATTRS = ("source_maps", "_source_maps")
_SOURCE_MAP_TABLES = ("all_source_maps", "generated_to_source", "source_to_generated")


class InstallationError(RuntimeError):
    """Raised when the session type does not offer the operations to wrap."""


def flush_source_maps(session: Any) -> int:
    """Drop cached source maps reachable from ``session``; returns caches flushed."""
    flushed = 0
    for attr in _SOURCE_MAP_ATTRS:
        cache = getattr(session, attr, None)
        if cache is None:
            continue
        clear = getattr(cache, "clear", None)
        if callable(clear):
            clear()
        else:
            for table in _SOURCE_MAP_TABLES:
                if hasattr(cache, table):
                    setattr(cache, table, {})
        flushed += 1
    return flushed


def _describe_failure(exc: BaseException) -> str:
    text = str(exc)
    return text or type(exc).__name__


class SessionInterceptor:
    """Wraps launch/attach/disconnect of ``session_type`` with dapshim behaviour."""

    def __init__(
        self,
        app_name: str,
        version: str,
        telemetry: ReassignableTelemetryReporter,
        session_type: type,
        *,
        remote_factory: RemoteFactory = RemoteControlClient.at_project_root,
        stop_monitoring_timeout: Optional[float] = 5.0,
        control_host: str = "127.0.0.1",
    ) -> None:
        self.app_name = app_name
        self.version = version
        self.telemetry = telemetry
        self.session_type = session_type
        self.remote_factory = remote_factory
        self.stop_monitoring_timeout = stop_monitoring_timeout
        self.control_host = control_host
        self.project_root: Optional[str] = None
        self.control_server: Optional[ReinitializationServer] = None
        self._originals: Dict[str, Operation] = {}
        self._install_lock = threading.Lock()

    # Installation -----------------------------------------------------
    @property
    def installed(self) -> bool:
        return bool(self._originals)

    def install_interceptors(self) -> "SessionInterceptor":
        with self._install_lock:
            if self._originals:
                return self
            originals: Dict[str, Operation] = {}
            for operation, attr in OPERATION_NAMES.items():
                original = getattr(self.session_type, attr, None)
                if not callable(original):
                    raise InstallationError(
                        f"{self.session_type.__name__} has no callable {attr}(); cannot intercept '{operation}'"
                    )
                originals[operation] = original
            self._originals = originals
        LOGGER.info("Intercepting %s on %s", ", ".join(OPERATION_NAMES), self.session_type.__name__)
        return self

    def _original(self, operation: str) -> Operation:
        original = self._originals.get(operation)
        if original is None:
            raise InstallationError("install_interceptors() must run before the session handles requests")
        return original

    # Wrapped operations -----------------------------------------------
    def launch(self, session: DebugSession, request: JsonDict, args: JsonDict) -> Optional[JsonDict]:
        original = self._original("launch")
        self.project_root = project_root_for(args.get("program"))
        self.telemetry.rebind(
            SessionTelemetryReporter(self.app_name, self.version, self.project_root, session.send_event)
        )
        port = parse_control_port(args)
        self._start_control_server(session, port)
        # Free-form launch arguments never reach the downstream process.
        args["args"] = sanitize_launch_arguments(args, port)
        LOGGER.info("Launch for project %s with downstream args %s", self.project_root, args["args"])
        return original(session, request, args)

    def attach(self, session: DebugSession, request: JsonDict, args: JsonDict) -> Optional[JsonDict]:
        return self._original("attach")(session, request, args)

    def disconnect(self, session: DebugSession, response: JsonDict, args: JsonDict) -> Optional[JsonDict]:
        original = self._original("disconnect")
        self._stop_monitoring_log_stream(session)
        self._close_control_server()
        return original(session, response, args)

    # Helpers ----------------------------------------------------------
    def _stop_monitoring_log_stream(self, session: DebugSession) -> None:
        try:
            remote = self.remote_factory(self.project_root)
            pending = remote.stop_monitoring_log_stream()
        except Exception as exc:
            self._warn(session, f"Couldn't stop monitoring log stream. Sync exception: {_describe_failure(exc)}")
            return
        try:
            pending.result(timeout=self.stop_monitoring_timeout)
        except FutureTimeoutError:
            self._warn(
                session,
                f"Couldn't stop monitoring log stream: no reply within {self.stop_monitoring_timeout}s",
            )
        except Exception as exc:
            self._warn(session, f"Couldn't stop monitoring log stream: {_describe_failure(exc)}")
        else:
            LOGGER.info("Stopped monitoring log stream for %s", self.project_root)

    def _start_control_server(self, session: DebugSession, port: int) -> None:
        self._close_control_server()
        server = ReinitializationServer(port, lambda: self._reinitialize(session), host=self.control_host)
        try:
            server.start()
        except OSError as exc:
            LOGGER.warning("Control server could not bind %s:%s: %s", self.control_host, port, exc)
            self.telemetry.send_simple_event("reinitializeServerError")
            self._emit(session, OutputEvent(f"Error in debug adapter server: {exc}", "stderr"))
            self._emit(
                session,
                OutputEvent(
                    "Breakpoints may not update. Consider restarting and specifying a different "
                    "'internalDebuggerPort' in launch.json"
                ),
            )
            return
        self.control_server = server

    def _close_control_server(self) -> None:
        server = self.control_server
        self.control_server = None
        if server is None:
            return
        try:
            server.close()
        except Exception:
            LOGGER.debug("control server close failed", exc_info=True)

    def _reinitialize(self, session: DebugSession) -> None:
        flushed = flush_source_maps(session)
        LOGGER.info("Refreshing breakpoints (%d source map caches flushed)", flushed)
        session.send_event(InitializedEvent())

    def _warn(self, session: DebugSession, message: str) -> None:
        LOGGER.warning(message)
        print(f"WARNING: {message}", file=sys.stderr, flush=True)
        self._emit(session, OutputEvent(message, "stderr"))

    def _emit(self, session: DebugSession, event: Event) -> None:
        try:
            session.send_event(event)
        except Exception:
            LOGGER.debug("failed to emit %s event", event.event, exc_info=True)
