"""
Provider Client Factory Module

Creates the provider client matching a backend dialect.
"""

from dialect_gateway.common.protocol.base import Dialect
from dialect_gateway.providers.anthropic_client import AnthropicClient
from dialect_gateway.providers.base import ProviderClient
from dialect_gateway.providers.openai_client import OpenAIClient


# Client cache
_clients: dict[Dialect, ProviderClient] = {}


def get_provider_client(dialect: Dialect) -> ProviderClient:
    """
    Get provider client for the specified backend dialect

    Uses caching to avoid repeated client instantiation.

    Args:
        dialect: Dialect spoken by the backend

    Returns:
        ProviderClient: Corresponding client instance
    """
    if dialect not in _clients:
        if dialect is Dialect.MESSAGES:
            _clients[dialect] = AnthropicClient()
        else:
            _clients[dialect] = OpenAIClient()

    return _clients[dialect]


def reset_provider_clients() -> None:
    """Drop cached clients (useful for testing)."""
    _clients.clear()
