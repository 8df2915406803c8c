import io
import json

from dapshim.protocol import (
    AdapterCommandError,
    DAPProtocol,
    DebugSession,
    DirectOperations,
    OutputEvent,
    SessionDriver,
    TerminatedEvent,
)

from session_stubs import RecordingProtocol, RecordingSession


def _frame(payload):
    encoded = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return f"Content-Length: {len(encoded)}\r\n\r\n".encode("ascii") + encoded


def _decode_frames(raw: bytes):
    messages = []
    while raw:
        header, _, rest = raw.partition(b"\r\n\r\n")
        length = int(header.decode("ascii").split(":", 1)[1].strip())
        messages.append(json.loads(rest[:length].decode("utf-8")))
        raw = rest[length:]
    return messages


def test_dap_protocol_send_event_formats_headers():
    output = io.BytesIO()
    proto = DAPProtocol(io.BytesIO(), output)
    proto.send_event("initialized", {"foo": "bar"})
    payload = output.getvalue().decode("utf-8")
    assert payload.startswith("Content-Length:")
    (message,) = _decode_frames(output.getvalue())
    assert message["event"] == "initialized"
    assert message["body"] == {"foo": "bar"}


def test_dap_protocol_read_message_roundtrip():
    body = {"seq": 1, "type": "request", "command": "initialize", "arguments": {}}
    proto = DAPProtocol(io.BytesIO(_frame(body)), io.BytesIO())
    assert proto.read_message()["command"] == "initialize"
    assert proto.read_message() is None


def test_sequence_numbers_increase_across_events_and_responses():
    output = io.BytesIO()
    proto = DAPProtocol(io.BytesIO(), output)
    proto.send_event("output", {"output": "x"})
    proto.send_response(4, "launch", success=False, message="nope")
    event, response = _decode_frames(output.getvalue())
    assert (event["seq"], response["seq"]) == (1, 2)
    assert response["request_seq"] == 4
    assert response["success"] is False
    assert response["message"] == "nope"


def test_output_event_terminates_line_and_keeps_category():
    event = OutputEvent("hello", "stderr")
    assert event.body == {"category": "stderr", "output": "hello\n"}
    assert OutputEvent("done\n").body["output"] == "done\n"
    assert TerminatedEvent().body == {}
    assert TerminatedEvent(restart=True).body == {"restart": True}


def test_driver_serves_until_eof():
    requests = [
        {"seq": 1, "type": "request", "command": "initialize", "arguments": {}},
        {"seq": 2, "type": "event", "event": "ignored"},
        {"seq": 3, "type": "request", "command": "threads"},
    ]
    output = io.BytesIO()
    proto = DAPProtocol(io.BytesIO(b"".join(_frame(item) for item in requests)), output)
    SessionDriver(DebugSession(proto)).serve()
    messages = _decode_frames(output.getvalue())
    responses = [message for message in messages if message["type"] == "response"]
    assert [response["command"] for response in responses] == ["initialize", "threads"]
    assert responses[0]["body"]["capabilities"]["supportsConfigurationDoneRequest"] is True
    assert any(message.get("event") == "initialized" for message in messages)


def test_driver_reports_unsupported_commands():
    protocol = RecordingProtocol()
    SessionDriver(DebugSession(protocol)).handle_request({"seq": 7, "type": "request", "command": "stepBack"})
    (response,) = protocol.responses
    assert response["success"] is False
    assert response["message"] == "Unsupported command: stepBack"


def test_driver_turns_handler_errors_into_failed_responses():
    class Failing(DebugSession):
        def attach_request(self, request, args):
            raise AdapterCommandError("nothing to attach to")

        def threads_request(self, request, args):
            raise ValueError("broken")

    protocol = RecordingProtocol()
    driver = SessionDriver(Failing(protocol))
    driver.handle_request({"seq": 1, "type": "request", "command": "attach", "arguments": {}})
    driver.handle_request({"seq": 2, "type": "request", "command": "threads"})
    assert [(r["success"], r["message"]) for r in protocol.responses] == [
        (False, "nothing to attach to"),
        (False, "broken"),
    ]


def test_driver_passes_session_as_receiver_to_operations():
    seen = []

    class Operations:
        def launch(self, session, request, args):
            seen.append((session, request["seq"], args))
            return {"via": "operations"}

    protocol = RecordingProtocol()
    session = RecordingSession(protocol)
    driver = SessionDriver(session, Operations())
    driver.handle_request({"seq": 5, "type": "request", "command": "launch", "arguments": {"program": "p"}})
    assert seen == [(session, 5, {"program": "p"})]
    assert protocol.responses[0]["body"] == {"via": "operations"}
    assert session.calls == []


def test_direct_operations_call_session_handlers_unchanged():
    protocol = RecordingProtocol()
    session = RecordingSession(protocol)
    operations = DirectOperations(RecordingSession)
    assert operations.attach(session, {"seq": 1}, {"a": 1}) == {"attached": True}
    operations.disconnect(session, {}, {})
    assert [call.operation for call in session.calls] == ["attach", "disconnect"]
    assert len(protocol.named("terminated")) == 1
