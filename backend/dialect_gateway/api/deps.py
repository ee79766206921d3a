"""
API Dependency Injection Module

Provides the dependencies required by FastAPI routes.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from dialect_gateway.config import get_settings
from dialect_gateway.domain.channel import build_channels
from dialect_gateway.services import RelayService, SmartRouter, SmartRoutingConfig


@lru_cache()
def get_relay_service() -> RelayService:
    """
    Get the shared relay service

    Built once from settings; holds no per-request state.
    """
    settings = get_settings()
    router = SmartRouter(SmartRoutingConfig.from_settings(settings))
    return RelayService(router=router, channels=build_channels(settings))


RelayServiceDep = Annotated[RelayService, Depends(get_relay_service)]
