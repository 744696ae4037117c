import json
from collections.abc import Iterator

import httpx
import pytest

from kyco_bridge.bridge.stream import EventStream
from kyco_bridge.bridge.types import HeartbeatEvent, TextEvent, ToolApprovalNeededEvent
from kyco_bridge.errors import BridgeConnectionError, StreamDecodeError


def _text(n: int, partial: bool = True) -> str:
    return json.dumps(
        {"type": "text", "sessionId": "s1", "timestamp": n, "content": f"chunk {n}", "partial": partial}
    )


def test_skips_large_runs_of_blank_lines() -> None:
    lines = [_text(1)] + [""] * 10_000 + ["   ", _text(2)] + [""] * 10_000 + [_text(3, partial=False)]
    events = list(EventStream(lines))
    assert [e.timestamp for e in events] == [1, 2, 3]
    assert events[-1].partial is False


def test_malformed_line_yields_prior_events_then_one_error() -> None:
    lines = [_text(1), _text(2), "{not json", _text(4), _text(5)]
    stream = EventStream(lines, operation="claude query")

    assert [next(stream).timestamp, next(stream).timestamp] == [1, 2]
    with pytest.raises(StreamDecodeError) as exc:
        next(stream)
    assert exc.value.line_number == 3
    assert exc.value.line == "{not json"
    assert exc.value.operation == "claude query"
    assert stream.finished
    assert list(stream) == []


def test_line_numbers_count_blank_lines() -> None:
    stream = EventStream([_text(1), "", "", "[1, 2]"])
    next(stream)
    with pytest.raises(StreamDecodeError) as exc:
        next(stream)
    assert exc.value.line_number == 4


def test_unknown_event_type_is_a_decode_failure() -> None:
    stream = EventStream([json.dumps({"type": "mystery", "sessionId": "s1", "timestamp": 1})])
    with pytest.raises(StreamDecodeError):
        next(stream)
    assert list(stream) == []


def test_decodes_camel_case_event_fields() -> None:
    lines = [
        json.dumps(
            {
                "type": "tool.approval_needed",
                "sessionId": "s1",
                "timestamp": 5,
                "requestId": "r1",
                "toolName": "Bash",
                "toolInput": {"command": "ls"},
            }
        ),
        json.dumps({"type": "heartbeat", "sessionId": "s1", "timestamp": 6, "pendingApprovalRequestId": "r1"}),
    ]
    approval, heartbeat = list(EventStream(lines))
    assert isinstance(approval, ToolApprovalNeededEvent)
    assert approval.tool_input == {"command": "ls"}
    assert isinstance(heartbeat, HeartbeatEvent)
    assert heartbeat.pending_approval_request_id == "r1"


def test_end_of_body_ends_cleanly_and_closes() -> None:
    closed: list[bool] = []
    stream = EventStream([_text(1)], on_close=lambda: closed.append(True))
    assert len(list(stream)) == 1
    assert stream.finished
    assert closed == [True]
    stream.close()
    assert closed == [True]


def test_transport_failure_mid_stream_is_connection_error() -> None:
    def lines() -> Iterator[str]:
        yield _text(1)
        raise httpx.ReadTimeout("read timed out")

    stream = EventStream(lines(), operation="codex query")
    assert isinstance(next(stream), TextEvent)
    with pytest.raises(BridgeConnectionError) as exc:
        next(stream)
    assert isinstance(exc.value.__cause__, httpx.ReadTimeout)
    assert "after line 1" in str(exc.value)
    assert list(stream) == []


def test_close_stops_iteration() -> None:
    stream = EventStream([_text(1), _text(2)])
    with stream:
        next(stream)
    assert list(stream) == []


def test_from_response_reads_lines_and_closes_response() -> None:
    body = f"{_text(1)}\n\n{_text(2)}\n".encode()
    response = httpx.Response(200, content=body)
    events = list(EventStream.from_response(response, operation="claude query"))
    assert [e.timestamp for e in events] == [1, 2]
    assert response.is_closed
