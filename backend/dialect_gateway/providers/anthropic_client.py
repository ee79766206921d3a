"""
Anthropic-style Client

Forwards requests to Messages backends.
"""

from typing import Optional

from dialect_gateway.config import get_settings
from dialect_gateway.providers.openai_client import OpenAIClient


class AnthropicClient(OpenAIClient):
    """
    Anthropic-style Client

    Supports:
    - /v1/messages

    Same transport as the OpenAI-style client; authenticates with `x-api-key`
    and always sends an `anthropic-version` header.
    """

    name = "Anthropic"

    def __init__(self, timeout: Optional[float] = None, api_version: Optional[str] = None):
        super().__init__(timeout=timeout)
        self.api_version = api_version or get_settings().MESSAGES_API_VERSION

    def _prepare_headers(
        self,
        headers: dict[str, str],
        api_key: Optional[str],
        extra_headers: Optional[dict[str, str]] = None,
    ) -> dict[str, str]:
        new_headers = super()._prepare_headers(headers, None, extra_headers)

        if api_key:
            new_headers["x-api-key"] = api_key

        if "anthropic-version" not in [k.lower() for k in new_headers.keys()]:
            new_headers["anthropic-version"] = self.api_version

        return new_headers
