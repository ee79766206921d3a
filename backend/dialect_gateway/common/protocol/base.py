"""
Dialect Translation Base Classes

Defines the dialect enum, the per-request conversion context and the abstract
interfaces implemented by request translators, response assemblers and
stream mappers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from dialect_gateway.common.token_counter import TokenCounter


class Dialect(str, Enum):
    """Supported wire dialects."""
    MESSAGES = "messages"
    CHAT = "chat"
    RESPONSES = "responses"

    @property
    def default_path(self) -> str:
        return _DEFAULT_PATHS[self]


_DEFAULT_PATHS = {
    Dialect.MESSAGES: "/v1/messages",
    Dialect.CHAT: "/v1/chat/completions",
    Dialect.RESPONSES: "/v1/responses",
}


class StreamState(str, Enum):
    """Lifecycle of a translated stream."""
    IDLE = "idle"
    STARTED = "started"
    STREAMING = "streaming"
    DONE = "done"


@dataclass
class UsageCounter:
    """
    Token usage of one request

    `total_tokens` is recomputed by `finalize()`; a backend-reported total is
    never used as is.
    """
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    cached_tokens: int = 0

    def finalize(self) -> "UsageCounter":
        self.total_tokens = self.prompt_tokens + self.completion_tokens
        return self

    def to_chat_usage(self) -> Dict[str, Any]:
        usage: Dict[str, Any] = {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }
        if self.cached_tokens:
            usage["prompt_tokens_details"] = {"cached_tokens": self.cached_tokens}
        return usage

    def to_messages_usage(self) -> Dict[str, Any]:
        # Messages reports cache reads apart from input_tokens
        usage: Dict[str, Any] = {
            "input_tokens": max(self.prompt_tokens - self.cached_tokens, 0),
            "output_tokens": self.completion_tokens,
        }
        if self.cached_tokens:
            usage["cache_read_input_tokens"] = self.cached_tokens
        return usage


@dataclass
class ConversionContext:
    """
    State of one in-flight request

    Created when the router decides how to serve a request and discarded once
    the response has been written. Never shared between requests.
    """
    # Dialect spoken by the caller
    source_dialect: Dialect
    # Dialect spoken by the backend
    target_dialect: Dialect
    # Model name sent upstream
    model: str = ""
    is_stream: bool = False
    # Set when the request was translated; selects the reverse translator
    converted_from: Optional[Dialect] = None
    # Caller request as received, before translation
    original_request: Optional[Dict[str, Any]] = None
    # Prompt tokens estimated from the original request
    prompt_tokens: int = 0

    # Streaming state
    response_id: Optional[str] = None
    created: int = 0
    state: StreamState = StreamState.IDLE
    message_start_sent: bool = False
    # Single text block per stream
    content_block_index: int = 0
    output_parts: List[str] = field(default_factory=list)
    usage: UsageCounter = field(default_factory=UsageCounter)
    builtin_tool_calls: Dict[str, int] = field(default_factory=dict)
    malformed_frames: int = 0

    @property
    def output_text(self) -> str:
        return "".join(self.output_parts)

    @property
    def is_converted(self) -> bool:
        return self.converted_from is not None

    def append_text(self, text: str) -> None:
        self.output_parts.append(text)

    def record_builtin_tool(self, tool_type: str) -> None:
        self.builtin_tool_calls[tool_type] = self.builtin_tool_calls.get(tool_type, 0) + 1

    def diagnostics(self) -> Dict[str, Any]:
        """Request-level summary for logging."""
        return {
            "source_dialect": self.source_dialect.value,
            "target_dialect": self.target_dialect.value,
            "converted_from": self.converted_from.value if self.converted_from else None,
            "model": self.model,
            "stream": self.is_stream,
            "response_id": self.response_id,
            "state": self.state.value,
            "prompt_tokens": self.usage.prompt_tokens,
            "completion_tokens": self.usage.completion_tokens,
            "total_tokens": self.usage.total_tokens,
            "builtin_tool_calls": dict(self.builtin_tool_calls),
            "malformed_frames": self.malformed_frames,
        }


class IRequestTranslator(ABC):
    """Abstract interface for request translation."""

    @property
    @abstractmethod
    def source_dialect(self) -> Dialect:
        """The dialect of the incoming request."""
        pass

    @property
    @abstractmethod
    def target_dialect(self) -> Dialect:
        """The dialect of the produced request."""
        pass

    @abstractmethod
    def translate(
        self,
        request: Optional[Dict[str, Any]],
        target_model: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Translate a request into the target dialect.

        Args:
            request: Request body in the source dialect
            target_model: Upstream model name, defaults to the request model

        Returns:
            Request body in the target dialect

        Raises:
            InputError: Request or model missing
            ConversionError: Content cannot be encoded
            EncodingError: Structured content holds invalid text
        """
        pass


class IResponseAssembler(ABC):
    """Abstract interface for non-streaming response translation."""

    @property
    @abstractmethod
    def source_dialect(self) -> Dialect:
        """The backend dialect."""
        pass

    @property
    @abstractmethod
    def target_dialect(self) -> Dialect:
        """The dialect the caller expects."""
        pass

    @abstractmethod
    def assemble(
        self,
        body: Dict[str, Any],
        ctx: ConversionContext,
        token_counter: Optional[TokenCounter] = None,
    ) -> Dict[str, Any]:
        """
        Convert a completed backend response into the caller's dialect.

        Backend error objects become error envelopes of the caller's dialect
        instead of exceptions.
        """
        pass


class IStreamMapper(ABC):
    """Abstract interface for streaming response translation."""

    @property
    @abstractmethod
    def source_dialect(self) -> Dialect:
        pass

    @property
    @abstractmethod
    def target_dialect(self) -> Dialect:
        pass

    @abstractmethod
    def feed(self, chunk: bytes) -> List[bytes]:
        """
        Consume raw backend bytes.

        Returns:
            Caller-dialect SSE frames, in arrival order
        """
        pass

    def flush(self) -> List[bytes]:
        """Emit frames for input still buffered when the upstream closes."""
        return []

    @abstractmethod
    def finish(self) -> UsageCounter:
        """Close the stream and return reconciled usage."""
        pass
