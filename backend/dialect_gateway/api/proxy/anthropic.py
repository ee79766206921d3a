"""
Messages Proxy API

Provides the Messages-style endpoint.
"""

from fastapi import APIRouter, Request
from fastapi.responses import Response

from dialect_gateway.api.deps import RelayServiceDep
from dialect_gateway.api.proxy.handler import handle_proxy_request
from dialect_gateway.common.protocol import Dialect

router = APIRouter(tags=["Proxy - Messages"])


@router.post("/v1/messages")
async def messages(
    request: Request,
    service: RelayServiceDep,
) -> Response:
    """
    Messages API Proxy

    Served by the Responses channel for smart-routed models, natively otherwise.
    """
    return await handle_proxy_request(request, service, Dialect.MESSAGES)
