"""
Chat Completions Proxy API

Provides the Chat-Completions-style endpoint.
"""

from fastapi import APIRouter, Request
from fastapi.responses import Response

from dialect_gateway.api.deps import RelayServiceDep
from dialect_gateway.api.proxy.handler import handle_proxy_request
from dialect_gateway.common.protocol import Dialect

router = APIRouter(tags=["Proxy - Chat"])


@router.post("/v1/chat/completions")
async def chat_completions(
    request: Request,
    service: RelayServiceDep,
) -> Response:
    """
    Chat Completions API Proxy
    """
    return await handle_proxy_request(request, service, Dialect.CHAT)
