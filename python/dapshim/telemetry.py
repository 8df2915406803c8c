"""Telemetry reporters used by the interception layer."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Optional

from .protocol import Event, TelemetryEvent

LOGGER = logging.getLogger("dapshim.telemetry")


class TelemetryReporter:
    """Base reporter; drops everything."""

    def send_event(
        self,
        name: str,
        properties: Optional[Dict[str, Any]] = None,
        measures: Optional[Dict[str, float]] = None,
    ) -> None:
        return None

    def send_simple_event(self, name: str) -> None:
        self.send_event(name)


class NullTelemetryReporter(TelemetryReporter):
    """Placeholder used until the project root is known."""


class ReassignableTelemetryReporter(TelemetryReporter):
    """Stable handle whose target reporter can be swapped at launch time."""

    def __init__(self, reporter: Optional[TelemetryReporter] = None) -> None:
        self._reporter: TelemetryReporter = reporter or NullTelemetryReporter()
        self._lock = threading.Lock()

    @property
    def reporter(self) -> TelemetryReporter:
        with self._lock:
            return self._reporter

    def rebind(self, reporter: TelemetryReporter) -> None:
        with self._lock:
            self._reporter = reporter
        LOGGER.debug("telemetry rebound to %s", type(reporter).__name__)

    def send_event(
        self,
        name: str,
        properties: Optional[Dict[str, Any]] = None,
        measures: Optional[Dict[str, float]] = None,
    ) -> None:
        self.reporter.send_event(name, properties, measures)


class SessionTelemetryReporter(TelemetryReporter):
    """Reports as DAP ``telemetry`` events scoped to one project."""

    def __init__(self, app_name: str, version: str, project_root: str, emit: Callable[[Event], None]) -> None:
        self.app_name = app_name
        self.version = version
        self.project_root = project_root
        self._emit = emit

    def send_event(
        self,
        name: str,
        properties: Optional[Dict[str, Any]] = None,
        measures: Optional[Dict[str, float]] = None,
    ) -> None:
        body: Dict[str, Any] = {
            "subsystem": self.app_name,
            "name": name,
            "version": self.version,
            "projectRoot": self.project_root,
        }
        if properties:
            body["properties"] = dict(properties)
        if measures:
            body["measures"] = dict(measures)
        LOGGER.debug("telemetry %s: %s", name, body)
        try:
            self._emit(TelemetryEvent(body))
        except Exception:
            LOGGER.debug("failed to emit telemetry event %s", name, exc_info=True)
