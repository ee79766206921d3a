"""
Dialect Translation Module

Provides a unified interface for translating requests, responses and
streams between the supported chat-completion wire dialects.

Supported dialects:
- Messages (messages)
- Chat Completions (chat)
- Responses (responses)

Example usage:
    from dialect_gateway.common.protocol import (
        ConversionContext,
        Dialect,
        create_stream_mapper,
        translate_request,
    )

    # Translate request
    body = translate_request(Dialect.CHAT, Dialect.RESPONSES, request_body, "gpt-4o")

    # Re-stream the backend response in the caller's dialect
    ctx = ConversionContext(source_dialect=Dialect.CHAT, target_dialect=Dialect.RESPONSES)
    mapper = create_stream_mapper(Dialect.RESPONSES, Dialect.CHAT, ctx)
    for frame in mapper.feed(chunk):
        yield frame
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from dialect_gateway.common.token_counter import TokenCounter

from .assembler import (
    PassthroughAssembler,
    ResponsesToChatAssembler,
    ResponsesToMessagesAssembler,
    backend_error,
    extract_output_text,
    serialize,
)
from .base import (
    ConversionContext,
    Dialect,
    IRequestTranslator,
    IResponseAssembler,
    IStreamMapper,
    StreamState,
    UsageCounter,
)
from .content import (
    BlocksContent,
    MessageContent,
    TextContent,
    UnifiedMessage,
    parse_content,
    parse_message,
)
from .events import StreamEvent, StreamEventType, parse_stream_event
from .registry import TranslatorRegistry
from .request_translators import (
    ChatToResponsesTranslator,
    MessagesToResponsesTranslator,
    ResponsesPassthroughTranslator,
    ResponsesToChatRequestTranslator,
    ResponsesToMessagesRequestTranslator,
)
from .status import map_chat_finish_reason, map_messages_stop_reason
from .stream_mapper import (
    PassthroughStreamMapper,
    ResponsesStreamMapper,
    ResponsesToChatStreamMapper,
    ResponsesToMessagesStreamMapper,
)
from .usage_reconciler import capture_usage, reconcile

logger = logging.getLogger(__name__)

# Global registry instance
_registry: Optional[TranslatorRegistry] = None


def _get_registry() -> TranslatorRegistry:
    """Get or create the global registry instance."""
    global _registry
    if _registry is None:
        _registry = TranslatorRegistry.get_instance()
        _register_all(_registry)
    return _registry


def _register_all(registry: TranslatorRegistry) -> None:
    """Register all supported translators."""
    # Requests towards the Responses backend
    registry.register_translator(ChatToResponsesTranslator())
    registry.register_translator(MessagesToResponsesTranslator())
    registry.register_translator(ResponsesPassthroughTranslator())

    # Non-streaming responses
    registry.register_assembler(ResponsesToChatAssembler())
    registry.register_assembler(ResponsesToMessagesAssembler())
    for dialect in Dialect:
        registry.register_assembler(PassthroughAssembler(dialect))

    # Streaming responses
    registry.register_stream_mapper(
        Dialect.RESPONSES, Dialect.MESSAGES, ResponsesToMessagesStreamMapper
    )
    registry.register_stream_mapper(
        Dialect.RESPONSES, Dialect.CHAT, ResponsesToChatStreamMapper
    )
    for dialect in Dialect:
        registry.register_stream_mapper(dialect, dialect, PassthroughStreamMapper)

    logger.debug("Registered all dialect translators")


def get_registry() -> TranslatorRegistry:
    return _get_registry()


def translate_request(
    source: Dialect,
    target: Dialect,
    request: Optional[Dict[str, Any]],
    target_model: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Translate a request from the caller's dialect into the backend's.

    Raises:
        InputError: Request or model missing
        ConversionError: Unsupported pair or content that cannot be encoded
        EncodingError: Structured content holds invalid text
    """
    return _get_registry().get_translator(source, target).translate(request, target_model)


def get_assembler(source: Dialect, target: Dialect) -> IResponseAssembler:
    """Get the assembler turning a `source` backend response into `target`."""
    return _get_registry().get_assembler(source, target)


def create_stream_mapper(
    source: Dialect,
    target: Dialect,
    ctx: ConversionContext,
    token_counter: Optional[TokenCounter] = None,
) -> IStreamMapper:
    """Create a fresh stream mapper bound to one request context."""
    return _get_registry().create_stream_mapper(source, target, ctx, token_counter)


def reset_registry() -> None:
    """Reset the global registry (useful for testing)."""
    global _registry
    _registry = None
    TranslatorRegistry.reset()


__all__ = [
    # Main functions
    "translate_request",
    "get_assembler",
    "create_stream_mapper",
    "get_registry",
    "reset_registry",
    "serialize",
    "backend_error",
    "extract_output_text",
    "capture_usage",
    "reconcile",
    "map_chat_finish_reason",
    "map_messages_stop_reason",
    "parse_stream_event",
    "parse_content",
    "parse_message",
    # Types
    "Dialect",
    "ConversionContext",
    "StreamState",
    "UsageCounter",
    "StreamEvent",
    "StreamEventType",
    "TextContent",
    "BlocksContent",
    "MessageContent",
    "UnifiedMessage",
    # Interfaces (for extension)
    "IRequestTranslator",
    "IResponseAssembler",
    "IStreamMapper",
    # Implementations
    "ChatToResponsesTranslator",
    "MessagesToResponsesTranslator",
    "ResponsesPassthroughTranslator",
    "ResponsesToChatRequestTranslator",
    "ResponsesToMessagesRequestTranslator",
    "ResponsesToChatAssembler",
    "ResponsesToMessagesAssembler",
    "PassthroughAssembler",
    "ResponsesStreamMapper",
    "ResponsesToMessagesStreamMapper",
    "ResponsesToChatStreamMapper",
    "PassthroughStreamMapper",
    # Registry (for advanced usage)
    "TranslatorRegistry",
]
