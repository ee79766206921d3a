"""
Shared Proxy Request Handling

Parses the caller body, hands it to the relay service and renders the result
as a JSON or SSE response.
"""

import json
import logging
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse, Response, StreamingResponse

from dialect_gateway.common.errors import AppError, InputError
from dialect_gateway.common.protocol import ConversionContext, Dialect
from dialect_gateway.config import get_settings
from dialect_gateway.services import RelayService

logger = logging.getLogger(__name__)


def _route_headers(ctx: ConversionContext) -> dict[str, str]:
    return {
        "X-Upstream-Dialect": ctx.target_dialect.value,
        "X-Target-Model": ctx.model or "",
    }


def _error_response(e: AppError) -> JSONResponse:
    return JSONResponse(
        content=e.to_dict(include_details=get_settings().DEBUG),
        status_code=e.status_code,
    )


async def _read_body(request: Request) -> Any:
    raw = await request.body()
    if not raw.strip():
        return None
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InputError(message=f"Request body is not valid JSON: {str(e)}", code="invalid_json") from e


async def handle_proxy_request(
    request: Request,
    service: RelayService,
    dialect: Dialect,
) -> Response:
    """
    Handle generic proxy request logic
    """
    try:
        body = await _read_body(request)
        headers = dict(request.headers)

        is_stream = isinstance(body, dict) and bool(body.get("stream", False))

        if is_stream:
            relay = await service.process_request_stream(body, dialect, headers)

            # Native upstream error: return it as the backend sent it
            if relay.stream is None:
                content = relay.error_body
                if isinstance(content, (dict, list)):
                    return JSONResponse(
                        content=content,
                        status_code=relay.initial_response.status_code,
                        headers=_route_headers(relay.ctx),
                    )
                return Response(
                    content=content,
                    status_code=relay.initial_response.status_code,
                    headers=_route_headers(relay.ctx),
                )

            return StreamingResponse(
                relay.stream,
                status_code=relay.initial_response.status_code,
                headers=_route_headers(relay.ctx),
                media_type="text/event-stream",
            )

        result = await service.process_request(body, dialect, headers)
        return Response(
            content=result.content,
            status_code=result.status_code,
            headers=_route_headers(result.ctx),
            media_type=result.media_type,
        )

    except AppError as e:
        logger.info("Request rejected (%s): %s", e.code, e.message)
        return _error_response(e)
