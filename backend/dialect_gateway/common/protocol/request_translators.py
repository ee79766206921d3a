"""
Request Translators

One translator per ordered dialect pair. Each one turns a caller request into a
backend-ready request:

- Messages -> Responses
- Chat -> Responses
- Responses -> Responses (passthrough, upstream model applied)
- Responses -> Chat and Responses -> Messages (inverse direction; round-trip
  helpers that are not registered for routing)

Fields without an analogue in the target dialect (`stop_sequences`,
`response_format`, `top_k`, `stop`) are dropped.
"""

from __future__ import annotations

import copy
import json
import logging
from abc import abstractmethod
from typing import Any, Dict, Iterable, List, Optional

from dialect_gateway.common.errors import ConversionError, EncodingError, InputError
from dialect_gateway.common.text_normalizer import encode_structured, sanitize, sanitize_structured

from .base import Dialect, IRequestTranslator
from .content import (
    FROM_RESPONSES_BLOCK_TYPES,
    TO_RESPONSES_BLOCK_TYPES,
    MessageContent,
    TextContent,
    UnifiedMessage,
    content_to_json,
    first_system_message,
    parse_content,
    parse_message,
    remap_block_types,
)

logger = logging.getLogger(__name__)

# Messages-style requests must carry max_tokens
DEFAULT_MESSAGES_MAX_TOKENS = 4096


def _require_model(request: Optional[Dict[str, Any]], dialect: Dialect) -> str:
    if request is None:
        raise InputError(message=f"{dialect.value} request is nil", code="missing_request")
    if not isinstance(request, dict):
        raise InputError(
            message=f"{dialect.value} request must be a JSON object",
            code="invalid_request",
        )
    model = request.get("model")
    if not isinstance(model, str) or not model:
        raise InputError(message="model is required", code="missing_model")
    return model


def _copy_scalars(request: Dict[str, Any], out: Dict[str, Any], keys: Iterable[str]) -> None:
    for key in keys:
        value = request.get(key)
        if value is not None:
            out[key] = value


def _first_positive_int(request: Dict[str, Any], *keys: str) -> Optional[int]:
    for key in keys:
        value = request.get(key)
        if isinstance(value, bool):
            continue
        if isinstance(value, int) and value > 0:
            return value
    return None


def _reencode(value: Any, field_name: str) -> Any:
    """Round-trip an opaque value through JSON without restructuring it."""
    try:
        return json.loads(json.dumps(value, ensure_ascii=False))
    except (TypeError, ValueError) as e:
        raise ConversionError(
            message=f"Failed to encode {field_name}",
            details={"field": field_name},
        ) from e


def _pass_through(request: Dict[str, Any], out: Dict[str, Any], keys: Iterable[str]) -> None:
    for key in keys:
        if request.get(key) is not None:
            out[key] = _reencode(request[key], key)


def _instructions_from_content(content: MessageContent) -> Optional[str]:
    """
    Build the instructions text from a system prompt.

    Plain text is sanitized directly; structured content is JSON-encoded and
    the resulting bytes sanitized.
    """
    if isinstance(content, TextContent):
        text = sanitize(content.text)
    else:
        text = sanitize_structured(content.blocks)
    return text or None


def _input_item(message: UnifiedMessage) -> Dict[str, Any]:
    content = message.content
    if isinstance(content, TextContent):
        value: Any = sanitize(content.text)
    else:
        remapped = remap_block_types(content, TO_RESPONSES_BLOCK_TYPES)
        # Strict path: structured content is validated, never repaired
        value = json.loads(encode_structured(content_to_json(remapped)))
    return {"type": "message", "role": message.role, "content": value}


def _parse_messages(raw: Any) -> List[UnifiedMessage]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConversionError(message="messages must be a list")
    return [parse_message(item) for item in raw]


class _ToResponsesTranslator(IRequestTranslator):
    """Shared steps of the translators producing Responses requests."""

    # Fallback token limit field of the source dialect
    fallback_limit_field = ""
    # Opaque fields copied as-is
    passthrough_fields: tuple = ("tools", "tool_choice", "parallel_tool_calls")

    @property
    def target_dialect(self) -> Dialect:
        return Dialect.RESPONSES

    def translate(
        self,
        request: Optional[Dict[str, Any]],
        target_model: Optional[str] = None,
    ) -> Dict[str, Any]:
        model = _require_model(request, self.source_dialect)
        try:
            out: Dict[str, Any] = {"model": target_model or model}
            _copy_scalars(request, out, ("stream", "top_p", "user", "temperature"))

            limit = _first_positive_int(request, "max_tokens", self.fallback_limit_field)
            if limit is not None:
                out["max_output_tokens"] = limit

            effort = request.get("reasoning_effort")
            if isinstance(effort, str) and effort:
                out["reasoning"] = {"effort": effort}

            messages = _parse_messages(request.get("messages"))
            instructions = self._extract_instructions(request, messages)
            if instructions:
                out["instructions"] = instructions

            inputs = [_input_item(m) for m in messages if m.role != "system"]
            if inputs:
                out["input"] = inputs

            _pass_through(request, out, self.passthrough_fields)
        except (InputError, ConversionError, EncodingError):
            raise
        except (TypeError, ValueError) as e:
            logger.error(
                "Request translation failed: %s -> %s, error: %s",
                self.source_dialect.value,
                self.target_dialect.value,
                e,
            )
            raise ConversionError(
                message=f"Failed to translate {self.source_dialect.value} request: {e}",
                source_dialect=self.source_dialect.value,
                target_dialect=self.target_dialect.value,
            ) from e
        return out

    def _extract_instructions(
        self,
        request: Dict[str, Any],
        messages: List[UnifiedMessage],
    ) -> Optional[str]:
        system = first_system_message(messages)
        if system is None:
            return None
        return _instructions_from_content(system.content)


class ChatToResponsesTranslator(_ToResponsesTranslator):
    """Chat Completions request -> Responses request."""

    fallback_limit_field = "max_completion_tokens"

    @property
    def source_dialect(self) -> Dialect:
        return Dialect.CHAT


class MessagesToResponsesTranslator(_ToResponsesTranslator):
    """
    Messages request -> Responses request

    The system prompt comes from the top-level `system` field (string or
    blocks). `metadata` is forwarded; `top_k` and `stop_sequences` are dropped.
    """

    fallback_limit_field = "max_tokens_to_sample"
    passthrough_fields = ("tools", "tool_choice", "parallel_tool_calls", "metadata")

    @property
    def source_dialect(self) -> Dialect:
        return Dialect.MESSAGES

    def _extract_instructions(self, request, messages):
        system = request.get("system")
        if system is None:
            # Some clients put the system prompt in the message list
            return super()._extract_instructions(request, messages)
        return _instructions_from_content(parse_content(system))


class ResponsesPassthroughTranslator(IRequestTranslator):
    """Responses request served by a Responses backend: only the model changes."""

    @property
    def source_dialect(self) -> Dialect:
        return Dialect.RESPONSES

    @property
    def target_dialect(self) -> Dialect:
        return Dialect.RESPONSES

    def translate(self, request, target_model=None):
        model = _require_model(request, self.source_dialect)
        out = copy.deepcopy(request)
        out["model"] = target_model or model
        return out


def _parse_input_items(raw: Any) -> List[UnifiedMessage]:
    if raw is None:
        return []
    if isinstance(raw, str):
        return [UnifiedMessage(role="user", content=TextContent(raw))]
    if not isinstance(raw, list):
        raise ConversionError(message="input must be a string or a list of items")
    messages = []
    for item in raw:
        if not isinstance(item, dict):
            raise ConversionError(message="input items must be objects")
        item_type = item.get("type", "message")
        if item_type != "message":
            logger.debug("Skipping input item of type %s", item_type)
            continue
        messages.append(parse_message(item))
    return messages


class _FromResponsesTranslator(IRequestTranslator):
    """Shared steps of the translators consuming Responses requests."""

    @property
    def source_dialect(self) -> Dialect:
        return Dialect.RESPONSES

    def translate(self, request, target_model=None):
        model = _require_model(request, self.source_dialect)
        try:
            out: Dict[str, Any] = {"model": target_model or model}
            _copy_scalars(request, out, ("stream", "top_p", "user", "temperature"))

            limit = _first_positive_int(request, "max_output_tokens")
            if limit is not None:
                out["max_tokens"] = limit

            messages = []
            for message in _parse_input_items(request.get("input")):
                content = remap_block_types(message.content, FROM_RESPONSES_BLOCK_TYPES)
                if isinstance(content, TextContent):
                    content = TextContent(sanitize(content.text))
                messages.append({"role": message.role, "content": content_to_json(content)})

            instructions = request.get("instructions")
            self._apply(request, out, messages, instructions)
            _pass_through(request, out, ("tools", "tool_choice", "parallel_tool_calls"))
        except (InputError, ConversionError, EncodingError):
            raise
        except (TypeError, ValueError) as e:
            raise ConversionError(
                message=f"Failed to translate responses request: {e}",
                source_dialect=self.source_dialect.value,
                target_dialect=self.target_dialect.value,
            ) from e
        return out

    @abstractmethod
    def _apply(self, request, out, messages, instructions) -> None:
        """Place the messages and instructions into the target request."""
        pass


class ResponsesToChatRequestTranslator(_FromResponsesTranslator):
    """Responses request -> Chat Completions request."""

    @property
    def target_dialect(self) -> Dialect:
        return Dialect.CHAT

    def _apply(self, request, out, messages, instructions):
        if isinstance(instructions, str) and instructions:
            messages.insert(0, {"role": "system", "content": sanitize(instructions)})
        out["messages"] = messages
        reasoning = request.get("reasoning")
        if isinstance(reasoning, dict) and isinstance(reasoning.get("effort"), str):
            out["reasoning_effort"] = reasoning["effort"]


class ResponsesToMessagesRequestTranslator(_FromResponsesTranslator):
    """Responses request -> Messages request."""

    @property
    def target_dialect(self) -> Dialect:
        return Dialect.MESSAGES

    def _apply(self, request, out, messages, instructions):
        system_parts = [m for m in messages if m["role"] == "system"]
        if isinstance(instructions, str) and instructions:
            out["system"] = sanitize(instructions)
        elif system_parts:
            out["system"] = system_parts[0]["content"]
        out["messages"] = [m for m in messages if m["role"] != "system"]
        out.setdefault("max_tokens", DEFAULT_MESSAGES_MAX_TOKENS)
        if request.get("metadata") is not None:
            out["metadata"] = _reencode(request["metadata"], "metadata")

