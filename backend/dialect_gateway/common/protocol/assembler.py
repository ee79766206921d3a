"""
Response Assemblers

Convert one completed (non-streaming) Responses-style backend response into
the caller's dialect. Backend error objects become error envelopes of the
caller's dialect rather than exceptions.
"""

from __future__ import annotations

import json
import logging
from abc import abstractmethod
from typing import Any, Dict, List, Optional

from dialect_gateway.common.errors import ConversionError
from dialect_gateway.common.text_normalizer import sanitize, sanitize_bytes
from dialect_gateway.common.token_counter import TokenCounter
from dialect_gateway.common.utils import new_id, now_timestamp

from .base import ConversionContext, Dialect, IResponseAssembler, StreamState, UsageCounter
from .builtin_tools import record_declared_tools
from .content import TEXT_BLOCK_TYPES
from .status import map_chat_finish_reason, map_messages_stop_reason
from .usage_reconciler import capture_usage, reconcile

logger = logging.getLogger(__name__)


def backend_error(body: Any) -> Optional[Dict[str, Any]]:
    """
    Return the normalized error object of a backend response, if any.

    Accepts `{"error": {...}}` and `{"error": "message"}`.
    """
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    if not error:
        return None
    if isinstance(error, str):
        return {"message": error, "type": "upstream_error", "code": None}
    if isinstance(error, dict):
        return {
            "message": str(error.get("message") or "Upstream error"),
            "type": str(error.get("type") or "upstream_error"),
            "code": error.get("code"),
        }
    return None


def extract_output_text(output: Any) -> str:
    """Concatenate the text blocks of assistant message items, in order."""
    if not isinstance(output, list):
        return ""
    parts: List[str] = []
    for item in output:
        if not isinstance(item, dict):
            continue
        if item.get("type") != "message" or item.get("role", "assistant") != "assistant":
            continue
        content = item.get("content")
        if isinstance(content, str):
            parts.append(content)
            continue
        if not isinstance(content, list):
            continue
        for block in content:
            if (
                isinstance(block, dict)
                and block.get("type") in TEXT_BLOCK_TYPES
                and isinstance(block.get("text"), str)
            ):
                parts.append(block["text"])
    return "".join(parts)


def serialize(result: Dict[str, Any]) -> bytes:
    """Serialize an assembled response; the bytes are passed through the normalizer."""
    text = json.dumps(result, ensure_ascii=False)
    return sanitize_bytes(text.encode("utf-8", errors="surrogatepass"))


class _ResponsesAssembler(IResponseAssembler):
    """Shared bookkeeping of the Responses-backed assemblers."""

    def __init__(self, token_counter: Optional[TokenCounter] = None):
        self.token_counter = token_counter

    @property
    def source_dialect(self) -> Dialect:
        return Dialect.RESPONSES

    def assemble(
        self,
        body: Dict[str, Any],
        ctx: ConversionContext,
        token_counter: Optional[TokenCounter] = None,
    ) -> Dict[str, Any]:
        if not isinstance(body, dict):
            raise ConversionError(
                message="Backend response must be a JSON object",
                code="bad_response_body",
                source_dialect=self.source_dialect.value,
                target_dialect=self.target_dialect.value,
            )

        response_id = body.get("id")
        if isinstance(response_id, str) and response_id:
            ctx.response_id = response_id
        created_at = body.get("created_at")
        if isinstance(created_at, (int, float)) and not isinstance(created_at, bool):
            ctx.created = int(created_at)
        ctx.state = StreamState.DONE

        error = backend_error(body)
        if error is not None:
            logger.warning("Backend returned an error object: %s", error["message"])
            return self.error_envelope(error, body, ctx)

        text = sanitize(extract_output_text(body.get("output")))
        ctx.append_text(text)
        capture_usage(ctx, body.get("usage") if isinstance(body.get("usage"), dict) else None)
        usage = reconcile(ctx, token_counter or self.token_counter)
        record_declared_tools(ctx, body.get("tools") if isinstance(body.get("tools"), list) else None)

        status = body.get("status") if isinstance(body.get("status"), str) else None
        return self.build(body, ctx, text, status, usage)

    def _model(self, body: Dict[str, Any], ctx: ConversionContext) -> str:
        model = body.get("model")
        return model if isinstance(model, str) and model else ctx.model

    @abstractmethod
    def error_envelope(
        self,
        error: Dict[str, Any],
        body: Dict[str, Any],
        ctx: ConversionContext,
    ) -> Dict[str, Any]:
        pass

    @abstractmethod
    def build(
        self,
        body: Dict[str, Any],
        ctx: ConversionContext,
        text: str,
        status: Optional[str],
        usage: UsageCounter,
    ) -> Dict[str, Any]:
        """Render a successful response in the target dialect."""
        pass


class ResponsesToChatAssembler(_ResponsesAssembler):
    """Responses response -> Chat Completions response."""

    @property
    def target_dialect(self) -> Dialect:
        return Dialect.CHAT

    def error_envelope(self, error, body, ctx):
        return {
            "id": ctx.response_id,
            "object": "chat.completion",
            "model": self._model(body, ctx),
            "error": error,
        }

    def build(self, body, ctx, text, status, usage):
        return {
            "id": ctx.response_id or new_id("chatcmpl"),
            "object": "chat.completion",
            "created": ctx.created or now_timestamp(),
            "model": self._model(body, ctx),
            "choices": [
                {
                    "index": 0,
                    "message": {"role": "assistant", "content": text},
                    "finish_reason": map_chat_finish_reason(status),
                }
            ],
            "usage": usage.to_chat_usage(),
        }


class ResponsesToMessagesAssembler(_ResponsesAssembler):
    """Responses response -> Messages response."""

    @property
    def target_dialect(self) -> Dialect:
        return Dialect.MESSAGES

    def error_envelope(self, error, body, ctx):
        return {
            "type": "error",
            "error": {"type": error["type"], "message": error["message"]},
        }

    def build(self, body, ctx, text, status, usage):
        return {
            "id": ctx.response_id or new_id("msg"),
            "type": "message",
            "role": "assistant",
            "model": self._model(body, ctx),
            "content": [{"type": "text", "text": text}],
            "stop_reason": map_messages_stop_reason(status),
            "stop_sequence": None,
            "usage": usage.to_messages_usage(),
        }


class PassthroughAssembler(IResponseAssembler):
    """Native response returned unchanged; usage is still recorded."""

    def __init__(self, dialect: Dialect, token_counter: Optional[TokenCounter] = None):
        self.dialect = dialect
        self.token_counter = token_counter

    @property
    def source_dialect(self) -> Dialect:
        return self.dialect

    @property
    def target_dialect(self) -> Dialect:
        return self.dialect

    def assemble(self, body, ctx, token_counter=None):
        if isinstance(body, dict):
            capture_usage(ctx, body.get("usage") if isinstance(body.get("usage"), dict) else None)
            if self.dialect is Dialect.RESPONSES and backend_error(body) is None:
                ctx.append_text(extract_output_text(body.get("output")))
                reconcile(ctx, token_counter or self.token_counter)
            else:
                ctx.usage.finalize()
        ctx.state = StreamState.DONE
        return body
