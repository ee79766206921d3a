"""
Proxy API Module Initialization
"""

from dialect_gateway.api.proxy.openai import router as openai_router
from dialect_gateway.api.proxy.anthropic import router as anthropic_router
from dialect_gateway.api.proxy.responses import router as responses_router

__all__ = [
    "openai_router",
    "anthropic_router",
    "responses_router",
]
