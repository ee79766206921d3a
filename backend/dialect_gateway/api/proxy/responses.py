"""
Responses Proxy API

Provides the Responses-style endpoint, always served by the Responses channel.
"""

from fastapi import APIRouter, Request
from fastapi.responses import Response

from dialect_gateway.api.deps import RelayServiceDep
from dialect_gateway.api.proxy.handler import handle_proxy_request
from dialect_gateway.common.protocol import Dialect

router = APIRouter(tags=["Proxy - Responses"])


@router.post("/v1/responses")
async def responses(
    request: Request,
    service: RelayServiceDep,
) -> Response:
    return await handle_proxy_request(request, service, Dialect.RESPONSES)
