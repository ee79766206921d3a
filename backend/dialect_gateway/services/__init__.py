"""
Service Layer Module Initialization
"""

from dialect_gateway.services.smart_router import RouteDecision, SmartRouter, SmartRoutingConfig
from dialect_gateway.services.relay_service import RelayResponse, RelayService, RelayStream

__all__ = [
    "SmartRouter",
    "SmartRoutingConfig",
    "RouteDecision",
    "RelayService",
    "RelayResponse",
    "RelayStream",
]
