"""
Smart Router Module

Decides, per request, whether the caller's dialect is served natively or
translated towards the Responses channel, and picks the matching response
path once the backend answers.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from dialect_gateway.common.errors import AppError, ConversionError, EncodingError, InputError
from dialect_gateway.common.protocol import (
    ConversionContext,
    Dialect,
    IResponseAssembler,
    IStreamMapper,
    create_stream_mapper,
    get_assembler,
    translate_request,
)
from dialect_gateway.common.token_counter import TokenCounter, get_token_counter
from dialect_gateway.config import Settings
from dialect_gateway.domain.channel import Channel

logger = logging.getLogger(__name__)

# Translation failures that may fall back to native handling
FALLBACK_ERRORS = (InputError, ConversionError, EncodingError)


@dataclass
class SmartRoutingConfig:
    """Smart routing switches for Messages callers"""

    enabled: bool = True
    # Messages models served through the Responses channel
    responses_models: list[str] = field(default_factory=list)
    fallback_on_error: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> "SmartRoutingConfig":
        return cls(
            enabled=settings.SMART_ROUTING_ENABLED,
            responses_models=list(settings.SMART_ROUTING_RESPONSES_MODELS),
            fallback_on_error=settings.SMART_ROUTING_FALLBACK_ON_ERROR,
        )


@dataclass
class RouteDecision:
    """Outcome of routing one request"""

    # Channel the request is sent to
    channel: Channel
    # Body in the channel's dialect
    body: Any
    ctx: ConversionContext
    # Translation error that triggered a native fallback
    fallback_error: Optional[AppError] = None

    @property
    def dialect(self) -> Dialect:
        """Effective dialect of the upstream call"""
        return self.channel.dialect

    @property
    def path(self) -> str:
        return self.channel.dialect.default_path

    @property
    def is_translated(self) -> bool:
        return self.ctx.is_converted

    @property
    def is_fallback(self) -> bool:
        return self.fallback_error is not None


class SmartRouter:
    """
    Smart Router

    - Responses requests go to the Responses channel unchanged (model set).
    - Chat requests for a model listed on the Responses channel are translated.
    - Messages requests for a model in the smart routing list are translated
      while smart routing is enabled.
    - Everything else is served natively.
    """

    def __init__(
        self,
        config: Optional[SmartRoutingConfig] = None,
        token_counter: Optional[TokenCounter] = None,
    ):
        self.config = config or SmartRoutingConfig()
        self.token_counter = token_counter

    def should_route_to_responses(
        self,
        model: Optional[str],
        dialect: Dialect,
        channels: dict[Dialect, Channel],
    ) -> bool:
        if dialect is Dialect.RESPONSES:
            return True
        if not model:
            return False
        if dialect is Dialect.CHAT:
            responses_channel = channels.get(Dialect.RESPONSES)
            return responses_channel is not None and responses_channel.serves(model)
        if dialect is Dialect.MESSAGES:
            return self.config.enabled and model in self.config.responses_models
        return False

    def route(
        self,
        request: Any,
        dialect: Dialect,
        channels: dict[Dialect, Channel],
    ) -> RouteDecision:
        """
        Route one request

        Args:
            request: Caller request body (parsed JSON)
            dialect: Dialect spoken by the caller
            channels: Configured channels keyed by backend dialect

        Returns:
            RouteDecision: Channel, upstream body and a fresh conversion context

        Raises:
            InputError / ConversionError / EncodingError: Translation failed and
            fallback is disabled
        """
        model = request.get("model") if isinstance(request, dict) else None
        if not isinstance(model, str):
            model = None

        # A missing payload takes the translation path so the failure is reported
        if request is not None and not self.should_route_to_responses(model, dialect, channels):
            return self._native(request, dialect, channels, model)

        try:
            return self._translate(request, dialect, channels, model)
        except FALLBACK_ERRORS as e:
            if not self.config.fallback_on_error:
                raise
            logger.warning(
                "Smart routing conversion failed for model %s (%s): %s, fallback to native %s",
                model,
                dialect.value,
                e.message,
                dialect.value,
            )
            decision = self._native(request, dialect, channels, model)
            decision.fallback_error = e
            return decision

    def _translate(
        self,
        request: Any,
        dialect: Dialect,
        channels: dict[Dialect, Channel],
        model: Optional[str],
    ) -> RouteDecision:
        channel = channels[Dialect.RESPONSES]
        body = translate_request(dialect, Dialect.RESPONSES, request)
        upstream_model = body["model"]
        ctx = ConversionContext(
            source_dialect=dialect,
            target_dialect=Dialect.RESPONSES,
            model=upstream_model,
            is_stream=bool(request.get("stream")),
            converted_from=dialect if dialect is not Dialect.RESPONSES else None,
            original_request=request,
            prompt_tokens=self._estimate_prompt_tokens(request, upstream_model),
        )
        logger.debug(
            "Routed %s request for model %s to channel %s",
            dialect.value,
            model,
            channel.name,
        )
        return RouteDecision(channel=channel, body=body, ctx=ctx)

    def _native(
        self,
        request: Any,
        dialect: Dialect,
        channels: dict[Dialect, Channel],
        model: Optional[str],
    ) -> RouteDecision:
        ctx = ConversionContext(
            source_dialect=dialect,
            target_dialect=dialect,
            model=model or "",
            is_stream=bool(request.get("stream")) if isinstance(request, dict) else False,
            original_request=request if isinstance(request, dict) else None,
        )
        return RouteDecision(channel=channels[dialect], body=request, ctx=ctx)

    def _estimate_prompt_tokens(self, request: dict[str, Any], model: str) -> int:
        counter = self.token_counter or get_token_counter()
        try:
            return counter.count_request(request, model)
        except (TypeError, ValueError) as e:
            logger.warning("Prompt token estimation failed for model %s: %s", model, e)
            return 0

    def response_handler(self, ctx: ConversionContext) -> IResponseAssembler:
        """Assembler for a completed (non-streaming) backend response"""
        if ctx.converted_from is not None:
            return get_assembler(ctx.target_dialect, ctx.converted_from)
        return get_assembler(ctx.target_dialect, ctx.source_dialect)

    def stream_mapper(self, ctx: ConversionContext) -> IStreamMapper:
        """Fresh stream mapper bound to the request context"""
        if ctx.converted_from is not None:
            return create_stream_mapper(
                ctx.target_dialect, ctx.converted_from, ctx, self.token_counter
            )
        return create_stream_mapper(
            ctx.target_dialect, ctx.source_dialect, ctx, self.token_counter
        )
