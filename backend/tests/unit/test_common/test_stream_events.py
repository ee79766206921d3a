"""
Responses Stream Event Parsing Unit Tests
"""

import json

import pytest

from dialect_gateway.common.errors import ConversionError
from dialect_gateway.common.protocol import StreamEventType, parse_stream_event
from dialect_gateway.common.protocol.events import classify_event_type


@pytest.mark.parametrize(
    "raw_type,expected",
    [
        ("response.created", StreamEventType.CREATED),
        ("response.in_progress", StreamEventType.IN_PROGRESS),
        ("response.output_item.added", StreamEventType.OUTPUT_ITEM_ADDED),
        ("response.output_text.delta", StreamEventType.OUTPUT_TEXT_DELTA),
        ("response.output_item.done", StreamEventType.OUTPUT_ITEM_DONE),
        ("response.done", StreamEventType.DONE),
        ("response.completed", StreamEventType.COMPLETED),
        ("response.incomplete", StreamEventType.INCOMPLETE),
        ("response.failed", StreamEventType.FAILED),
        ("error", StreamEventType.ERROR),
        ("response.content_part.added", StreamEventType.UNHANDLED),
        ("response.output_text.done", StreamEventType.UNHANDLED),
        ("response.function_call_arguments.delta", StreamEventType.UNHANDLED),
        ("response.something_new", StreamEventType.UNKNOWN),
    ],
)
def test_classify_event_type(raw_type, expected):
    assert classify_event_type(raw_type) is expected


def test_terminal_types():
    terminal = {t for t in StreamEventType if t.is_terminal}
    assert terminal == {
        StreamEventType.DONE,
        StreamEventType.COMPLETED,
        StreamEventType.INCOMPLETE,
        StreamEventType.FAILED,
        StreamEventType.ERROR,
    }


def test_parse_terminal_event_exposes_response_fields():
    payload = json.dumps(
        {
            "type": "response.completed",
            "response": {
                "id": "resp_1",
                "status": "completed",
                "usage": {"input_tokens": 5, "output_tokens": 2},
            },
        }
    )
    event = parse_stream_event(payload)

    assert event.type is StreamEventType.COMPLETED
    assert event.raw_type == "response.completed"
    assert event.response_id == "resp_1"
    assert event.status == "completed"
    assert event.usage == {"input_tokens": 5, "output_tokens": 2}


def test_parse_text_delta():
    event = parse_stream_event('{"type": "response.output_text.delta", "delta": "Hi"}')
    assert event.type is StreamEventType.OUTPUT_TEXT_DELTA
    assert event.delta == "Hi"
    assert event.response_id is None


@pytest.mark.parametrize(
    "payload,expected",
    [
        (
            {"type": "error", "code": "server_error", "message": "boom", "param": None},
            {"type": "server_error", "message": "boom", "code": "server_error"},
        ),
        (
            {"type": "error", "error": {"type": "overloaded_error", "message": "busy"}},
            {"type": "overloaded_error", "message": "busy", "code": None},
        ),
        (
            {"type": "error"},
            {"type": "api_error", "message": "Upstream stream error", "code": None},
        ),
    ],
)
def test_parse_error_event(payload, expected):
    event = parse_stream_event(json.dumps(payload))
    assert event.type is StreamEventType.ERROR
    assert event.type.is_terminal
    assert event.error == expected
    assert event.status is None


def test_non_error_events_carry_no_error():
    event = parse_stream_event('{"type": "response.failed", "response": {"status": "failed"}}')
    assert event.error is None


def test_non_text_delta_on_ignored_event_is_dropped():
    event = parse_stream_event('{"type": "response.audio.delta", "delta": {"bytes": 1}}')
    assert event.type is StreamEventType.UNKNOWN
    assert event.delta is None


@pytest.mark.parametrize(
    "payload",
    [
        "not json",
        "[1, 2]",
        '{"delta": "x"}',
        '{"type": "response.output_text.delta", "delta": 5}',
        '{"type": "response.completed", "response": "oops"}',
        '{"type": "response.output_item.done", "item": []}',
    ],
)
def test_malformed_payloads_raise(payload):
    with pytest.raises(ConversionError) as exc_info:
        parse_stream_event(payload)
    assert exc_info.value.code == "malformed_stream_event"
