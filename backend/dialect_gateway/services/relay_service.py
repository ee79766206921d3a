"""
Relay Service Module

Serves one caller request end to end: route, forward to the chosen channel,
then assemble or re-stream the backend response in the caller's dialect.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncGenerator, Callable, Optional

import anyio

from dialect_gateway.common.errors import InputError, TransportError, UpstreamError
from dialect_gateway.common.protocol import (
    ConversionContext,
    Dialect,
    IStreamMapper,
    backend_error,
    serialize,
)
from dialect_gateway.domain.channel import Channel
from dialect_gateway.providers.base import ProviderClient, ProviderResponse
from dialect_gateway.providers.factory import get_provider_client
from dialect_gateway.services.smart_router import RouteDecision, SmartRouter

logger = logging.getLogger(__name__)


@dataclass
class RelayResponse:
    """Non-streaming relay result"""

    status_code: int
    # Serialized body
    content: bytes
    ctx: ConversionContext
    media_type: str = "application/json"


@dataclass
class RelayStream:
    """Streaming relay result"""

    # Upstream response of the first chunk
    initial_response: ProviderResponse
    ctx: ConversionContext
    # Caller-dialect SSE frames; None when the upstream answered with an error
    stream: Optional[AsyncGenerator[bytes, None]] = None
    # Upstream error body, returned as is to native callers
    error_body: Any = None
    headers: dict[str, str] = field(default_factory=dict)


def _decode_body(raw: bytes) -> Any:
    text = raw.decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def _upstream_error(response: ProviderResponse, body: Any) -> UpstreamError:
    error = backend_error(body)
    if error is not None:
        message = error["message"]
    elif isinstance(body, str) and body:
        message = body[:500]
    else:
        message = f"Upstream returned status {response.status_code}"
    status_code = response.status_code if response.status_code >= 400 else 502
    return UpstreamError(
        message=message,
        status_code=status_code,
        details={"upstream_status": response.status_code, "upstream_error": error},
    )


class RelayService:
    """
    Relay Service

    Owns nothing per request beyond the conversion context created by the
    router; safe to share across concurrent requests.
    """

    def __init__(
        self,
        router: SmartRouter,
        channels: dict[Dialect, Channel],
        client_factory: Callable[[Dialect], ProviderClient] = get_provider_client,
    ):
        self.router = router
        self.channels = channels
        self.client_factory = client_factory

    def _route(self, request: Any, dialect: Dialect) -> RouteDecision:
        decision = self.router.route(request, dialect, self.channels)
        if not isinstance(decision.body, dict):
            # Fallback keeps the untranslated payload; a native call needs an object too
            raise InputError(message="Request body must be a JSON object", code="invalid_body")
        return decision

    async def process_request(
        self,
        request: Any,
        dialect: Dialect,
        headers: dict[str, str],
    ) -> RelayResponse:
        """
        Process a non-streaming request

        Args:
            request: Caller request body
            dialect: Dialect spoken by the caller
            headers: Caller request headers

        Returns:
            RelayResponse: Serialized body in the caller's dialect

        Raises:
            InputError / ConversionError / EncodingError: Translation failed
            TransportError: Backend unreachable or timed out
            UpstreamError: Translated request answered with a non-success status
        """
        decision = self._route(request, dialect)
        ctx = decision.ctx
        channel = decision.channel
        client = self.client_factory(channel.dialect)

        response = await client.forward(
            base_url=channel.base_url,
            api_key=channel.api_key,
            path=decision.path,
            headers=headers,
            body=decision.body,
            extra_headers=channel.extra_headers,
        )

        if response.error:
            logger.warning(
                "Upstream transport failed: channel=%s status=%s error=%s",
                channel.name,
                response.status_code,
                response.error,
            )
            raise TransportError(message=response.error, status_code=response.status_code)

        if not ctx.is_converted:
            return self._native_response(response, ctx)

        if not response.is_success:
            raise _upstream_error(response, response.body)

        if not isinstance(response.body, dict):
            raise UpstreamError(message="Upstream returned a non-JSON body")

        assembler = self.router.response_handler(ctx)
        result = assembler.assemble(response.body, ctx, self.router.token_counter)

        status_code = response.status_code
        if backend_error(response.body) is not None:
            status_code = 502

        logger.info("Request finished: %s", ctx.diagnostics())
        return RelayResponse(status_code=status_code, content=serialize(result), ctx=ctx)

    def _native_response(self, response: ProviderResponse, ctx: ConversionContext) -> RelayResponse:
        """
        Relay a native response byte for byte

        Usage is read from the parsed body; the caller receives the upstream
        bytes, whatever their spacing or escapes.
        """
        if response.is_success and isinstance(response.body, dict):
            assembler = self.router.response_handler(ctx)
            assembler.assemble(response.body, ctx, self.router.token_counter)
            logger.info("Request finished: %s", ctx.diagnostics())
        else:
            logger.info(
                "Upstream returned status %s for native %s request",
                response.status_code,
                ctx.source_dialect.value,
            )
        return RelayResponse(
            status_code=response.status_code,
            content=self._native_content(response),
            ctx=ctx,
        )

    @staticmethod
    def _native_content(response: ProviderResponse) -> bytes:
        if response.raw_body is not None:
            return response.raw_body
        body = response.body
        if isinstance(body, (dict, list)):
            return serialize(body)
        if isinstance(body, bytes):
            return body
        return str(body or "").encode("utf-8")

    async def process_request_stream(
        self,
        request: Any,
        dialect: Dialect,
        headers: dict[str, str],
    ) -> RelayStream:
        """
        Process a streaming request

        The first upstream chunk is read before returning so an upstream error
        can be reported with its status instead of inside a stream.

        Returns:
            RelayStream: Stream of caller-dialect frames, or the upstream error
            body of a native request
        """
        decision = self._route(request, dialect)
        ctx = decision.ctx
        channel = decision.channel
        client = self.client_factory(channel.dialect)

        upstream_gen = client.forward_stream(
            base_url=channel.base_url,
            api_key=channel.api_key,
            path=decision.path,
            headers=headers,
            body=decision.body,
            extra_headers=channel.extra_headers,
        )

        try:
            first_chunk, first_resp = await upstream_gen.__anext__()
        except StopAsyncIteration:
            raise TransportError(message="Stream ended unexpectedly", code="stream_error")

        if first_resp.error:
            await upstream_gen.aclose()
            logger.warning(
                "Upstream stream transport failed: channel=%s status=%s error=%s",
                channel.name,
                first_resp.status_code,
                first_resp.error,
            )
            raise TransportError(message=first_resp.error, status_code=first_resp.status_code)

        if not first_resp.is_success:
            chunks = [first_chunk]
            async for chunk, _ in upstream_gen:
                chunks.append(chunk)
            body = _decode_body(b"".join(chunks))
            if ctx.is_converted:
                raise _upstream_error(first_resp, body)
            return RelayStream(initial_response=first_resp, ctx=ctx, error_body=body)

        mapper = self.router.stream_mapper(ctx)
        return RelayStream(
            initial_response=first_resp,
            ctx=ctx,
            stream=self._relay_stream(first_chunk, upstream_gen, mapper, channel),
        )

    async def _relay_stream(
        self,
        first_chunk: bytes,
        upstream_gen: AsyncGenerator[tuple[bytes, ProviderResponse], None],
        mapper: IStreamMapper,
        channel: Channel,
    ) -> AsyncGenerator[bytes, None]:
        stream_error: Optional[str] = None
        try:
            for frame in mapper.feed(first_chunk):
                yield frame
            async for chunk, resp in upstream_gen:
                if resp.error:
                    stream_error = resp.error
                    logger.warning(
                        "Upstream stream interrupted: channel=%s error=%s",
                        channel.name,
                        resp.error,
                    )
                    break
                for frame in mapper.feed(chunk):
                    yield frame
            for frame in mapper.flush():
                yield frame
        except asyncio.CancelledError:
            stream_error = "client_disconnected"
            raise
        finally:
            # Client disconnect triggers cancellation; shield so cleanup and logging complete
            with anyio.CancelScope(shield=True):
                await upstream_gen.aclose()
                usage = mapper.finish()
                if stream_error:
                    logger.info(
                        "Stream closed early (%s): usage=%s",
                        stream_error,
                        usage.to_chat_usage(),
                    )
