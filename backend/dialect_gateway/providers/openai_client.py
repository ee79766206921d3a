"""
OpenAI-style Client

Forwards requests to Responses and Chat Completions backends.
"""

import json
import logging
from typing import Any, AsyncGenerator, Optional

import httpx

from dialect_gateway.common.timer import Timer
from dialect_gateway.config import get_settings
from dialect_gateway.providers.base import ProviderClient, ProviderResponse

logger = logging.getLogger(__name__)


class OpenAIClient(ProviderClient):
    """
    OpenAI-style Client

    Supports:
    - /v1/responses
    - /v1/chat/completions
    """

    name = "OpenAI"

    def __init__(self, timeout: Optional[float] = None):
        settings = get_settings()
        self.timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT

    async def forward(
        self,
        base_url: str,
        api_key: Optional[str],
        path: str,
        headers: dict[str, str],
        body: dict[str, Any],
        extra_headers: Optional[dict[str, str]] = None,
        method: str = "POST",
    ) -> ProviderResponse:
        url = self._build_url(base_url, path)
        prepared_headers = self._prepare_headers(headers, api_key, extra_headers)
        prepared_headers["Content-Type"] = "application/json"

        logger.debug(
            "%s Request: method=%s url=%s body=%s",
            self.name,
            method,
            url,
            json.dumps(body, ensure_ascii=False),
        )

        timer = Timer().start()

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(
                    method=method,
                    url=url,
                    headers=prepared_headers,
                    json=body,
                )

                timer.mark_first_byte()

                response_body: Any = response.text
                try:
                    response_body = response.json()
                except json.JSONDecodeError:
                    pass

                timer.stop()

                return ProviderResponse(
                    status_code=response.status_code,
                    headers=dict(response.headers),
                    body=response_body,
                    raw_body=response.content,
                    first_byte_delay_ms=timer.first_byte_delay_ms,
                    total_time_ms=timer.total_time_ms,
                )

        except httpx.TimeoutException as e:
            timer.stop()
            return ProviderResponse(
                status_code=504,
                error=f"Request timeout: {str(e)}",
                first_byte_delay_ms=timer.first_byte_delay_ms,
                total_time_ms=timer.total_time_ms,
            )

        except httpx.RequestError as e:
            timer.stop()
            return ProviderResponse(
                status_code=502,
                error=f"Request error: {str(e)}",
                first_byte_delay_ms=timer.first_byte_delay_ms,
                total_time_ms=timer.total_time_ms,
            )

    async def forward_stream(
        self,
        base_url: str,
        api_key: Optional[str],
        path: str,
        headers: dict[str, str],
        body: dict[str, Any],
        extra_headers: Optional[dict[str, str]] = None,
        method: str = "POST",
    ) -> AsyncGenerator[tuple[bytes, ProviderResponse], None]:
        url = self._build_url(base_url, path)
        prepared_headers = self._prepare_headers(headers, api_key, extra_headers)
        prepared_headers["Content-Type"] = "application/json"

        logger.debug(
            "%s Stream Request: method=%s url=%s body=%s",
            self.name,
            method,
            url,
            json.dumps(body, ensure_ascii=False),
        )

        timer = Timer().start()
        first_chunk = True

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                async with client.stream(
                    method=method,
                    url=url,
                    headers=prepared_headers,
                    json=body,
                ) as response:
                    provider_response = ProviderResponse(
                        status_code=response.status_code,
                        headers=dict(response.headers),
                    )

                    async for chunk in response.aiter_bytes():
                        if first_chunk:
                            timer.mark_first_byte()
                            provider_response.first_byte_delay_ms = timer.first_byte_delay_ms
                            first_chunk = False

                        yield chunk, provider_response

                    timer.stop()
                    provider_response.total_time_ms = timer.total_time_ms

        except httpx.TimeoutException as e:
            timer.stop()
            yield b"", ProviderResponse(
                status_code=504,
                error=f"Request timeout: {str(e)}",
                first_byte_delay_ms=timer.first_byte_delay_ms,
                total_time_ms=timer.total_time_ms,
            )

        except httpx.RequestError as e:
            timer.stop()
            yield b"", ProviderResponse(
                status_code=502,
                error=f"Request error: {str(e)}",
                first_byte_delay_ms=timer.first_byte_delay_ms,
                total_time_ms=timer.total_time_ms,
            )
