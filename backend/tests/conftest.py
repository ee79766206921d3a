"""
Test Configuration Module
"""

import pytest

from dialect_gateway.common.protocol import reset_registry
from dialect_gateway.common.token_counter import TokenCounter
from dialect_gateway.providers import reset_provider_clients


class WordTokenCounter(TokenCounter):
    """Deterministic counter: one token per whitespace-separated word."""

    def __init__(self):
        self.calls: list[tuple[str, str]] = []

    def count_tokens(self, text: str, model: str = "") -> int:
        self.calls.append((text, model))
        return len(text.split())


@pytest.fixture
def token_counter() -> WordTokenCounter:
    return WordTokenCounter()


@pytest.fixture(autouse=True)
def _isolated_registries():
    reset_registry()
    reset_provider_clients()
    yield
    reset_registry()
    reset_provider_clients()
