"""
API Router Module Initialization
"""

from dialect_gateway.api.deps import get_relay_service

__all__ = [
    "get_relay_service",
]
