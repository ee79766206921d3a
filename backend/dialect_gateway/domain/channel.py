"""
Channel Domain Model

A channel is one configured upstream backend together with the dialect it
speaks and the models it serves.
"""

from typing import Optional

from pydantic import BaseModel, Field

from dialect_gateway.common.protocol.base import Dialect
from dialect_gateway.config import Settings


class Channel(BaseModel):
    """Upstream Channel"""

    # Channel Name
    name: str = Field(..., min_length=1, description="Channel Name")
    # Dialect spoken by the backend
    dialect: Dialect = Field(..., description="Backend Dialect")
    # Base URL
    base_url: str = Field(..., description="Base URL")
    # Upstream API Key
    api_key: Optional[str] = Field(None, description="Upstream API Key")
    # Models served; empty means any model
    models: list[str] = Field(default_factory=list, description="Served Models")
    # Extra Headers
    extra_headers: Optional[dict[str, str]] = Field(None, description="Extra Headers")

    def serves(self, model: Optional[str]) -> bool:
        """Whether the channel lists the model"""
        if not model:
            return False
        return model in self.models


def build_channels(settings: Settings) -> dict[Dialect, Channel]:
    """
    Build the channel table from settings

    Returns:
        dict: One channel per dialect
    """
    return {
        Dialect.RESPONSES: Channel(
            name="responses",
            dialect=Dialect.RESPONSES,
            base_url=settings.RESPONSES_BASE_URL,
            api_key=settings.RESPONSES_API_KEY,
            models=list(settings.RESPONSES_CHANNEL_MODELS),
        ),
        Dialect.CHAT: Channel(
            name="chat",
            dialect=Dialect.CHAT,
            base_url=settings.CHAT_BASE_URL,
            api_key=settings.CHAT_API_KEY,
        ),
        Dialect.MESSAGES: Channel(
            name="messages",
            dialect=Dialect.MESSAGES,
            base_url=settings.MESSAGES_BASE_URL,
            api_key=settings.MESSAGES_API_KEY,
        ),
    }
