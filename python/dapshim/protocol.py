"""
Debug Adapter Protocol plumbing for dapshim.

Holds the wire framing, the event types the interception layer emits, a small
base session and the request driver.  The driver routes ``launch``,
``attach`` and ``disconnect`` through an operations object so that a wrapper
(see ``dapshim.interceptor``) can sit between the protocol and a session type
it does not own.
"""

from __future__ import annotations

import json
import logging
import subprocess
import sys
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, IO, List, Optional

JsonDict = Dict[str, Any]

# Session attributes that make up the operation table wrapped by dapshim.
OPERATION_NAMES: Dict[str, str] = {
    "launch": "launch_request",
    "attach": "attach_request",
    "disconnect": "disconnect_request",
}


class AdapterCommandError(RuntimeError):
    """Raised when a DAP request fails for expected/user-level reasons."""


class DAPProtocol:
    """Basic Debug Adapter Protocol transport over stdin/stdout."""

    def __init__(self, reader, writer) -> None:
        self.reader = reader
        self.writer = writer
        self.seq = 1
        self._write_lock = threading.Lock()

    def send_event(self, event: str, body: Optional[JsonDict] = None) -> None:
        with self._write_lock:
            message = {
                "seq": self.seq,
                "type": "event",
                "event": event,
                "body": body or {},
            }
            self.seq += 1
            self._write_message(message)

    def send_response(
        self,
        request_seq: int,
        command: str,
        *,
        success: bool = True,
        body: Optional[JsonDict] = None,
        message: Optional[str] = None,
    ) -> None:
        with self._write_lock:
            payload: JsonDict = {
                "seq": self.seq,
                "type": "response",
                "request_seq": request_seq,
                "command": command,
                "success": success,
                "body": body or {},
            }
            if message:
                payload["message"] = message
            self.seq += 1
            self._write_message(payload)

    def _write_message(self, message: JsonDict) -> None:
        encoded = json.dumps(message).encode("utf-8")
        header = f"Content-Length: {len(encoded)}\r\n\r\n".encode("ascii")
        self.writer.write(header)
        self.writer.write(encoded)
        self.writer.flush()

    def read_message(self) -> Optional[JsonDict]:
        """Read a single DAP message. Returns None on EOF."""
        content_length: Optional[int] = None
        while True:
            line = self.reader.readline()
            if not line:
                return None
            if isinstance(line, bytes):
                decoded = line.decode("utf-8")
            else:
                decoded = line
            decoded = decoded.strip()
            if not decoded:
                break
            if decoded.lower().startswith("content-length:"):
                _, value = decoded.split(":", 1)
                content_length = int(value.strip())
        if content_length is None:
            return None
        body = self.reader.read(content_length)
        if not body:
            return None
        if isinstance(body, bytes):
            body = body.decode("utf-8")
        return json.loads(body)


@dataclass
class Event:
    event: str
    body: JsonDict = field(default_factory=dict)


class InitializedEvent(Event):
    def __init__(self) -> None:
        super().__init__("initialized", {})


class TerminatedEvent(Event):
    def __init__(self, restart: Optional[bool] = None) -> None:
        body: JsonDict = {}
        if restart is not None:
            body["restart"] = restart
        super().__init__("terminated", body)


class OutputEvent(Event):
    def __init__(self, output: str, category: str = "console") -> None:
        text = output if output.endswith("\n") else f"{output}\n"
        super().__init__("output", {"category": category, "output": text})


class TelemetryEvent(Event):
    def __init__(self, body: JsonDict) -> None:
        super().__init__("telemetry", dict(body))


@dataclass
class SourceMapCache:
    """Source map lookups cached by a session between breakpoint syncs."""

    all_source_maps: Dict[str, JsonDict] = field(default_factory=dict)
    generated_to_source: Dict[str, str] = field(default_factory=dict)
    source_to_generated: Dict[str, str] = field(default_factory=dict)

    def add(self, generated_path: str, source_path: str, mapping: Optional[JsonDict] = None) -> None:
        self.all_source_maps[generated_path] = dict(mapping or {})
        self.generated_to_source[generated_path] = source_path
        self.source_to_generated[source_path] = generated_path

    def clear(self) -> None:
        self.all_source_maps.clear()
        self.generated_to_source.clear()
        self.source_to_generated.clear()

    def __len__(self) -> int:
        return len(self.all_source_maps)


class DebugSession:
    """Minimal DAP session: answers the handshake and the lifecycle requests."""

    def __init__(self, protocol: DAPProtocol) -> None:
        self.protocol = protocol
        self.logger = logging.getLogger("dapshim.session")
        self.source_maps = SourceMapCache()

    def send_event(self, event: Event) -> None:
        self.protocol.send_event(event.event, event.body)

    # Request handlers -------------------------------------------------
    def initialize_request(self, request: JsonDict, args: JsonDict) -> JsonDict:
        capabilities = {
            "supportsConfigurationDoneRequest": True,
            "supportsTerminateRequest": False,
            "supportsRestartRequest": False,
        }
        self.send_event(InitializedEvent())
        return {"capabilities": capabilities}

    def configurationDone_request(self, request: JsonDict, args: JsonDict) -> JsonDict:  # noqa: N802
        return {}

    def threads_request(self, request: JsonDict, args: JsonDict) -> JsonDict:
        return {"threads": []}

    def launch_request(self, request: JsonDict, args: JsonDict) -> JsonDict:
        return {}

    def attach_request(self, request: JsonDict, args: JsonDict) -> JsonDict:
        return {}

    def disconnect_request(self, response: JsonDict, args: JsonDict) -> JsonDict:
        self.send_event(TerminatedEvent())
        return {}


class ProcessDebugSession(DebugSession):
    """Session that runs ``program`` with the launch ``args`` vector."""

    terminate_timeout = 2.0

    def __init__(self, protocol: DAPProtocol) -> None:
        super().__init__(protocol)
        self.process: Optional[subprocess.Popen] = None
        self._readers: List[threading.Thread] = []
        self._exit_watcher: Optional[threading.Thread] = None

    def launch_request(self, request: JsonDict, args: JsonDict) -> JsonDict:
        program = args.get("program")
        if not program:
            raise AdapterCommandError("launch request missing 'program'")
        argv = [str(item) for item in (args.get("args") or [])]
        cmd = [sys.executable, str(program), *argv]
        self.logger.info("Launching downstream process: %s", cmd)
        try:
            self.process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                cwd=args.get("cwd") or None,
            )
        except OSError as exc:
            raise AdapterCommandError(f"failed to start {program}: {exc}") from exc
        self._readers = [
            self._start_reader(self.process.stdout, "stdout"),
            self._start_reader(self.process.stderr, "stderr"),
        ]
        self._exit_watcher = threading.Thread(target=self._watch_exit, args=(self.process,), daemon=True)
        self._exit_watcher.start()
        return {}

    def disconnect_request(self, response: JsonDict, args: JsonDict) -> JsonDict:
        process = self.process
        self.process = None
        if process is not None and process.poll() is None:
            self.logger.info("Terminating downstream process %s", process.pid)
            process.terminate()
            try:
                process.wait(timeout=self.terminate_timeout)
            except subprocess.TimeoutExpired:
                self.logger.warning("Downstream process %s ignored terminate; killing", process.pid)
                process.kill()
                process.wait()
        return super().disconnect_request(response, args)

    def _start_reader(self, stream: Optional[IO[str]], category: str) -> threading.Thread:
        thread = threading.Thread(target=self._pump_output, args=(stream, category), daemon=True)
        thread.start()
        return thread

    def _pump_output(self, stream: Optional[IO[str]], category: str) -> None:
        if stream is None:
            return
        for line in stream:
            try:
                self.send_event(OutputEvent(line, category))
            except Exception:
                self.logger.debug("failed to forward %s output", category, exc_info=True)

    def _watch_exit(self, process: subprocess.Popen) -> None:
        code = process.wait()
        for reader in self._readers:
            reader.join(timeout=0.5)
        self.logger.info("Downstream process exited with code %s", code)
        try:
            self.send_event(Event("exited", {"exitCode": code}))
            if self.process is process:
                self.send_event(TerminatedEvent())
        except Exception:
            self.logger.debug("failed to emit exit events", exc_info=True)


Operation = Callable[[DebugSession, JsonDict, JsonDict], Optional[JsonDict]]


class DirectOperations:
    """Operations object that calls the session type's handlers unchanged."""

    def __init__(self, session_type: type) -> None:
        self._launch: Operation = getattr(session_type, OPERATION_NAMES["launch"])
        self._attach: Operation = getattr(session_type, OPERATION_NAMES["attach"])
        self._disconnect: Operation = getattr(session_type, OPERATION_NAMES["disconnect"])

    def launch(self, session: DebugSession, request: JsonDict, args: JsonDict) -> Optional[JsonDict]:
        return self._launch(session, request, args)

    def attach(self, session: DebugSession, request: JsonDict, args: JsonDict) -> Optional[JsonDict]:
        return self._attach(session, request, args)

    def disconnect(self, session: DebugSession, response: JsonDict, args: JsonDict) -> Optional[JsonDict]:
        return self._disconnect(session, response, args)


class SessionDriver:
    """Reads DAP requests and dispatches them to a session."""

    def __init__(self, session: DebugSession, operations: Optional[Any] = None) -> None:
        self.session = session
        self.operations = operations if operations is not None else DirectOperations(type(session))
        self.logger = logging.getLogger("dapshim.driver")

    def serve(self) -> None:
        protocol = self.session.protocol
        while True:
            message = protocol.read_message()
            if message is None:
                self.logger.info("EOF on protocol stream, shutting down")
                break
            if message.get("type") != "request":
                continue
            self.handle_request(message)

    def handle_request(self, request: JsonDict) -> None:
        command = request.get("command") or ""
        seq = int(request.get("seq", 0))
        arguments = request.get("arguments") or {}
        handler = self._resolve_handler(command)
        protocol = self.session.protocol
        if handler is None:
            protocol.send_response(seq, command, success=False, message=f"Unsupported command: {command}")
            return
        try:
            body = handler(request, arguments) or {}
            protocol.send_response(seq, command, body=body)
        except AdapterCommandError as exc:
            self.logger.info("DAP command failed: %s (%s)", command, exc)
            protocol.send_response(seq, command, success=False, message=str(exc))
        except Exception as exc:
            self.logger.exception("DAP command failed: %s", command)
            protocol.send_response(seq, command, success=False, message=str(exc))

    def _resolve_handler(self, command: str) -> Optional[Callable[[JsonDict, JsonDict], Optional[JsonDict]]]:
        if not command:
            return None
        if command in OPERATION_NAMES:
            operation = getattr(self.operations, command)
            session = self.session
            return lambda request, args: operation(session, request, args)
        return getattr(self.session, f"{command}_request", None)
