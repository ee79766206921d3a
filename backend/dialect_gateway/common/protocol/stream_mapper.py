"""
Streaming Event Mappers

Re-stream a Responses-style SSE stream in the caller's dialect, one frame at a
time. Each mapper owns the conversion context of its request and moves through
IDLE -> STARTED -> STREAMING -> DONE. Events outside the handled set never
change state.

Only one content block is produced per stream and its index is always 0;
tool-call and multi-block streaming are not translated.
"""

from __future__ import annotations

import logging
from abc import abstractmethod
from typing import Any, AsyncGenerator, AsyncIterable, Dict, List, Optional

from dialect_gateway.common.errors import ConversionError
from dialect_gateway.common.sse import DONE_MARKER, SSEDecoder, encode_sse_data, encode_sse_json
from dialect_gateway.common.token_counter import TokenCounter
from dialect_gateway.common.utils import new_id, now_timestamp

from .base import ConversionContext, Dialect, IStreamMapper, StreamState, UsageCounter
from .builtin_tools import record_output_item
from .events import StreamEvent, StreamEventType, parse_stream_event
from .status import map_chat_finish_reason, map_messages_stop_reason
from .usage_reconciler import capture_usage, reconcile

logger = logging.getLogger(__name__)


class ResponsesStreamMapper(IStreamMapper):
    """
    Base mapper for Responses-style backend streams

    Decodes frames, parses events, keeps the context up to date and hands each
    event to the target-specific handlers.
    """

    def __init__(self, ctx: ConversionContext, token_counter: Optional[TokenCounter] = None):
        self.ctx = ctx
        self.token_counter = token_counter
        self._decoder = SSEDecoder()
        if not ctx.created:
            ctx.created = now_timestamp()

    @property
    def source_dialect(self) -> Dialect:
        return Dialect.RESPONSES

    @property
    def state(self) -> StreamState:
        return self.ctx.state

    def feed(self, chunk: bytes) -> List[bytes]:
        frames: List[bytes] = []
        for payload in self._decoder.feed(chunk):
            frames.extend(self.process_payload(payload))
        return frames

    def flush(self) -> List[bytes]:
        """Process a trailing frame left without its terminating blank line."""
        frames: List[bytes] = []
        for payload in self._decoder.flush():
            frames.extend(self.process_payload(payload))
        return frames

    def process_payload(self, payload: str) -> List[bytes]:
        if not payload.strip() or payload.strip() == DONE_MARKER:
            return []
        try:
            event = parse_stream_event(payload)
        except ConversionError as e:
            self.ctx.malformed_frames += 1
            logger.warning(
                "Skipping malformed stream frame (%d so far): %s",
                self.ctx.malformed_frames,
                e.message,
            )
            return []
        return self.map_event(event)

    def map_event(self, event: StreamEvent) -> List[bytes]:
        event_type = event.type
        if event_type in (StreamEventType.UNHANDLED, StreamEventType.UNKNOWN):
            if event_type is StreamEventType.UNKNOWN:
                logger.debug("Ignoring unknown stream event type: %s", event.raw_type)
            return []

        self._observe_response(event)

        if event_type is StreamEventType.OUTPUT_TEXT_DELTA:
            if not event.delta:
                return self.on_identified(event)
            self.ctx.append_text(event.delta)
            return self.on_text_delta(event.delta)

        if event_type is StreamEventType.OUTPUT_ITEM_ADDED:
            return self.on_item_added(event)

        if event_type is StreamEventType.OUTPUT_ITEM_DONE:
            record_output_item(self.ctx, event.item)
            return self.on_identified(event)

        if event_type.is_terminal:
            capture_usage(self.ctx, event.usage)
            if self.ctx.state is StreamState.DONE:
                return []
            # Counts emitted with the terminal frames are final
            reconcile(self.ctx, self.token_counter)
            frames = self.on_terminal(event)
            self.ctx.state = StreamState.DONE
            return frames

        # CREATED / IN_PROGRESS
        return self.on_identified(event)

    def finish(self) -> UsageCounter:
        usage = reconcile(self.ctx, self.token_counter)
        logger.info("Stream finished: %s", self.ctx.diagnostics())
        return usage

    async def stream(self, upstream: AsyncIterable[bytes]) -> AsyncGenerator[bytes, None]:
        """
        Translate an upstream byte stream frame by frame.

        Usage is not reconciled here; callers call `finish()` once the stream
        is closed, whether or not it ended normally.
        """
        async for chunk in upstream:
            for frame in self.feed(chunk):
                yield frame
        for frame in self.flush():
            yield frame

    def _observe_response(self, event: StreamEvent) -> None:
        if event.response_id and not self.ctx.response_id:
            self.ctx.response_id = event.response_id
        if event.response:
            created_at = event.response.get("created_at")
            if isinstance(created_at, (int, float)) and not isinstance(created_at, bool) and created_at:
                self.ctx.created = int(created_at)

    def on_identified(self, event: StreamEvent) -> List[bytes]:
        return []

    def on_item_added(self, event: StreamEvent) -> List[bytes]:
        return self.on_identified(event)

    @abstractmethod
    def on_text_delta(self, delta: str) -> List[bytes]:
        pass

    @abstractmethod
    def on_terminal(self, event: StreamEvent) -> List[bytes]:
        """Frames closing the stream; called once."""
        pass


class ResponsesToMessagesStreamMapper(ResponsesStreamMapper):
    """
    Responses stream -> Messages stream

    Announces the message as soon as an event carries a response id. Frames use
    `event: <type>` + `data: <json>`.
    """

    @property
    def target_dialect(self) -> Dialect:
        return Dialect.MESSAGES

    def _emit(self, payload: Dict[str, Any]) -> bytes:
        return encode_sse_json(payload, event=payload["type"])

    def _start(self) -> List[bytes]:
        ctx = self.ctx
        if ctx.message_start_sent:
            return []
        if not ctx.response_id:
            ctx.response_id = new_id("msg")
        ctx.message_start_sent = True
        ctx.state = StreamState.STARTED
        message = {
            "id": ctx.response_id,
            "type": "message",
            "role": "assistant",
            "content": [],
            "model": ctx.model,
            "stop_reason": None,
            "stop_sequence": None,
            "usage": {"input_tokens": ctx.prompt_tokens, "output_tokens": 0},
        }
        return [
            self._emit({"type": "message_start", "message": message}),
            self._emit(
                {
                    "type": "content_block_start",
                    "index": ctx.content_block_index,
                    "content_block": {"type": "text", "text": ""},
                }
            ),
        ]

    def on_identified(self, event):
        if self.ctx.response_id and not self.ctx.message_start_sent:
            return self._start()
        return []

    def on_text_delta(self, delta):
        frames = self._start()
        self.ctx.state = StreamState.STREAMING
        frames.append(
            self._emit(
                {
                    "type": "content_block_delta",
                    "index": self.ctx.content_block_index,
                    "delta": {"type": "text_delta", "text": delta},
                }
            )
        )
        return frames

    def on_terminal(self, event):
        if event.type is StreamEventType.ERROR:
            error = event.error or {}
            return [
                self._emit(
                    {
                        "type": "error",
                        "error": {"type": error.get("type"), "message": error.get("message")},
                    }
                )
            ]
        frames = self._start()
        frames.append(
            self._emit({"type": "content_block_stop", "index": self.ctx.content_block_index})
        )
        frames.append(
            self._emit(
                {
                    "type": "message_delta",
                    "delta": {
                        "stop_reason": map_messages_stop_reason(event.status),
                        "stop_sequence": None,
                    },
                    "usage": {"output_tokens": self.ctx.usage.completion_tokens},
                }
            )
        )
        frames.append(self._emit({"type": "message_stop"}))
        return frames


class ResponsesToChatStreamMapper(ResponsesStreamMapper):
    """
    Responses stream -> Chat Completions stream

    The assistant role is sent when the backend adds an assistant output item,
    or with the first text delta when no such item was announced.
    """

    @property
    def target_dialect(self) -> Dialect:
        return Dialect.CHAT

    def _chunk(
        self,
        delta: Dict[str, Any],
        finish_reason: Optional[str] = None,
        usage: Optional[Dict[str, Any]] = None,
        error: Optional[Dict[str, Any]] = None,
    ) -> bytes:
        ctx = self.ctx
        if not ctx.response_id:
            ctx.response_id = new_id("chatcmpl")
        payload: Dict[str, Any] = {
            "id": ctx.response_id,
            "object": "chat.completion.chunk",
            "created": ctx.created,
            "model": ctx.model,
            "choices": [
                {
                    "index": 0,
                    "delta": delta,
                    "finish_reason": finish_reason,
                }
            ],
        }
        if usage is not None:
            payload["usage"] = usage
        if error is not None:
            payload["error"] = error
        return encode_sse_json(payload)

    def on_item_added(self, event):
        item = event.item or {}
        if item.get("role") != "assistant" or self.ctx.state is not StreamState.IDLE:
            return []
        self.ctx.state = StreamState.STARTED
        return [self._chunk({"role": "assistant", "content": ""})]

    def on_text_delta(self, delta):
        payload: Dict[str, Any] = {"content": delta}
        if self.ctx.state is StreamState.IDLE:
            payload = {"role": "assistant", "content": delta}
        self.ctx.state = StreamState.STREAMING
        return [self._chunk(payload)]

    def on_terminal(self, event):
        if event.type is StreamEventType.ERROR:
            finish_reason = "error"
        else:
            finish_reason = map_chat_finish_reason(event.status)
        return [
            self._chunk(
                {},
                finish_reason=finish_reason,
                usage=self.ctx.usage.to_chat_usage(),
                error=event.error,
            ),
            encode_sse_data(DONE_MARKER),
        ]


class PassthroughStreamMapper(IStreamMapper):
    """
    Native stream relayed unchanged

    When the backend speaks Responses the events are still parsed so usage
    and built-in tool calls are accounted for.
    """

    def __init__(self, ctx: ConversionContext, token_counter: Optional[TokenCounter] = None):
        self.ctx = ctx
        self.token_counter = token_counter
        self._observer = (
            _ObservingMapper(ctx, token_counter)
            if ctx.target_dialect is Dialect.RESPONSES
            else None
        )

    @property
    def source_dialect(self) -> Dialect:
        return self.ctx.target_dialect

    @property
    def target_dialect(self) -> Dialect:
        return self.ctx.source_dialect

    def feed(self, chunk: bytes) -> List[bytes]:
        if self._observer is not None:
            self._observer.feed(chunk)
        return [chunk] if chunk else []

    def flush(self) -> List[bytes]:
        if self._observer is not None:
            self._observer.flush()
        return []

    def finish(self) -> UsageCounter:
        if self._observer is None:
            return self.ctx.usage.finalize()
        return self._observer.finish()

    async def stream(self, upstream: AsyncIterable[bytes]) -> AsyncGenerator[bytes, None]:
        async for chunk in upstream:
            for frame in self.feed(chunk):
                yield frame
        self.flush()


class _ObservingMapper(ResponsesStreamMapper):
    """Tracks a Responses stream without producing frames."""

    @property
    def target_dialect(self) -> Dialect:
        return Dialect.RESPONSES

    def on_text_delta(self, delta):
        self.ctx.state = StreamState.STREAMING
        return []

    def on_terminal(self, event):
        return []
