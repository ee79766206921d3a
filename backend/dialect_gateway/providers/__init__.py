"""
Upstream Provider Client Module Initialization
"""

from dialect_gateway.providers.base import ProviderClient, ProviderResponse
from dialect_gateway.providers.openai_client import OpenAIClient
from dialect_gateway.providers.anthropic_client import AnthropicClient
from dialect_gateway.providers.factory import get_provider_client, reset_provider_clients

__all__ = [
    "ProviderClient",
    "ProviderResponse",
    "OpenAIClient",
    "AnthropicClient",
    "get_provider_client",
    "reset_provider_clients",
]
