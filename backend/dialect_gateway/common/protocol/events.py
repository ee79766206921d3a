"""
Responses Stream Events

Parses one SSE data payload of a Responses-style stream into a typed event.
The set of event tags is closed: recognised types get their own tag, types
known to carry nothing the mappers need map to UNHANDLED, and anything else
maps to UNKNOWN so new backend events never break a stream.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from dialect_gateway.common.errors import ConversionError


class StreamEventType(str, Enum):
    CREATED = "response.created"
    IN_PROGRESS = "response.in_progress"
    OUTPUT_ITEM_ADDED = "response.output_item.added"
    OUTPUT_TEXT_DELTA = "response.output_text.delta"
    OUTPUT_ITEM_DONE = "response.output_item.done"
    DONE = "response.done"
    COMPLETED = "response.completed"
    INCOMPLETE = "response.incomplete"
    FAILED = "response.failed"
    # Stream-level error; ends the stream like a terminal status
    ERROR = "error"
    UNHANDLED = "unhandled"
    UNKNOWN = "unknown"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_TYPES


_TERMINAL_TYPES = frozenset(
    {
        StreamEventType.DONE,
        StreamEventType.COMPLETED,
        StreamEventType.INCOMPLETE,
        StreamEventType.FAILED,
        StreamEventType.ERROR,
    }
)

_HANDLED_TYPES = {
    member.value: member
    for member in StreamEventType
    if member not in (StreamEventType.UNHANDLED, StreamEventType.UNKNOWN)
}

# Events the mappers deliberately ignore
IGNORABLE_EVENT_TYPES = frozenset(
    {
        "response.queued",
        "response.content_part.added",
        "response.content_part.done",
        "response.output_text.done",
        "response.output_text.annotation.added",
        "response.refusal.delta",
        "response.refusal.done",
        "response.function_call_arguments.delta",
        "response.function_call_arguments.done",
        "response.reasoning_summary_part.added",
        "response.reasoning_summary_part.done",
        "response.reasoning_summary_text.delta",
        "response.reasoning_summary_text.done",
        "response.web_search_call.in_progress",
        "response.web_search_call.searching",
        "response.web_search_call.completed",
        "response.file_search_call.in_progress",
        "response.file_search_call.searching",
        "response.file_search_call.completed",
    }
)


@dataclass(frozen=True)
class StreamEvent:
    type: StreamEventType
    # Event type as sent by the backend
    raw_type: str
    # Response snapshot
    response: Optional[Dict[str, Any]] = None
    # Output item snapshot
    item: Optional[Dict[str, Any]] = None
    delta: Optional[str] = None
    # Normalized {type, message, code} of an error event
    error: Optional[Dict[str, Any]] = None

    @property
    def response_id(self) -> Optional[str]:
        if self.response:
            response_id = self.response.get("id")
            if isinstance(response_id, str) and response_id:
                return response_id
        return None

    @property
    def status(self) -> Optional[str]:
        if self.response and isinstance(self.response.get("status"), str):
            return self.response["status"]
        return None

    @property
    def usage(self) -> Optional[Dict[str, Any]]:
        if self.response and isinstance(self.response.get("usage"), dict):
            return self.response["usage"]
        return None


def classify_event_type(raw_type: str) -> StreamEventType:
    if raw_type in _HANDLED_TYPES:
        return _HANDLED_TYPES[raw_type]
    if raw_type in IGNORABLE_EVENT_TYPES:
        return StreamEventType.UNHANDLED
    return StreamEventType.UNKNOWN


def _optional_object(data: Dict[str, Any], key: str) -> Optional[Dict[str, Any]]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ConversionError(
            message=f"Stream event field '{key}' must be an object",
            code="malformed_stream_event",
        )
    return value


def _stream_error(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Normalize an error event.

    Responses backends put `code` / `message` at the top level; some nest
    them under `error`.
    """
    nested = data.get("error")
    source = nested if isinstance(nested, dict) else data
    code = source.get("code")
    error_type = source.get("type") if source is nested else None
    return {
        "type": str(error_type or code or "api_error"),
        "message": str(source.get("message") or "Upstream stream error"),
        "code": code,
    }


def parse_stream_event(payload: str) -> StreamEvent:
    """
    Parse one data payload of a Responses stream.

    Raises:
        ConversionError: Payload is not JSON or does not match the event schema
    """
    try:
        data = json.loads(payload)
    except (TypeError, ValueError) as e:
        raise ConversionError(
            message=f"Invalid stream event JSON: {e}",
            code="malformed_stream_event",
        ) from e
    if not isinstance(data, dict):
        raise ConversionError(
            message="Stream event must be a JSON object",
            code="malformed_stream_event",
        )

    raw_type = data.get("type")
    if not isinstance(raw_type, str):
        raise ConversionError(
            message="Stream event type is missing",
            code="malformed_stream_event",
        )

    delta = data.get("delta")
    if delta is not None and not isinstance(delta, str):
        # Non-text deltas (e.g. audio) belong to event types the mappers ignore
        if raw_type == StreamEventType.OUTPUT_TEXT_DELTA.value:
            raise ConversionError(
                message="Text delta must be a string",
                code="malformed_stream_event",
            )
        delta = None

    event_type = classify_event_type(raw_type)
    return StreamEvent(
        type=event_type,
        raw_type=raw_type,
        response=_optional_object(data, "response"),
        item=_optional_object(data, "item"),
        delta=delta,
        error=_stream_error(data) if event_type is StreamEventType.ERROR else None,
    )
