"""
Upstream Provider Client Base Class

Defines the abstract interface for provider clients.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncGenerator, Optional


@dataclass
class ProviderResponse:
    """
    Provider Response Data Class

    Encapsulates response information from the upstream backend.
    """

    # HTTP status code
    status_code: int
    # Response headers
    headers: dict[str, str] = field(default_factory=dict)
    # Response body, parsed as JSON when possible
    body: Any = None
    # Response bytes exactly as received
    raw_body: Optional[bytes] = None
    # Time to first byte (ms)
    first_byte_delay_ms: Optional[int] = None
    # Total time (ms)
    total_time_ms: Optional[int] = None
    # Transport error message
    error: Optional[str] = None

    @property
    def is_success(self) -> bool:
        """Whether the response is successful"""
        return 200 <= self.status_code < 400


class ProviderClient(ABC):
    """
    Upstream Provider Client Abstract Base Class

    Defines the common interface for provider clients, including normal requests and streaming requests.
    """

    @abstractmethod
    async def forward(
        self,
        base_url: str,
        api_key: Optional[str],
        path: str,
        headers: dict[str, str],
        body: dict[str, Any],
        extra_headers: Optional[dict[str, str]] = None,
        method: str = "POST",
    ) -> ProviderResponse:
        """
        Forward request to upstream backend

        Args:
            base_url: Backend base URL
            api_key: Backend API Key
            path: Request path (e.g., /v1/responses)
            headers: Request headers (client credentials are removed)
            body: Request body, already in the backend's dialect
            extra_headers: Extra headers
            method: HTTP method

        Returns:
            ProviderResponse: Backend response; transport failures are reported
            through `status_code` and `error` instead of raising
        """
        pass

    @abstractmethod
    async def forward_stream(
        self,
        base_url: str,
        api_key: Optional[str],
        path: str,
        headers: dict[str, str],
        body: dict[str, Any],
        extra_headers: Optional[dict[str, str]] = None,
        method: str = "POST",
    ) -> AsyncGenerator[tuple[bytes, ProviderResponse], None]:
        """
        Forward streaming request to upstream backend

        The upstream response is closed when the generator finishes or is closed.

        Yields:
            tuple[bytes, ProviderResponse]: (Data chunk, Response info)
        """
        pass

    def _build_url(self, base_url: str, path: str) -> str:
        """
        Join base URL and path

        Base URLs carry the API version (e.g. https://api.openai.com/v1), so a
        leading /v1 is stripped from the path.
        """
        cleaned_base = base_url.rstrip("/")
        cleaned_path = path
        if cleaned_path.startswith("/v1/"):
            cleaned_path = cleaned_path[3:]
        elif cleaned_path == "/v1":
            cleaned_path = ""
        return f"{cleaned_base}{cleaned_path}"

    def _prepare_headers(
        self,
        headers: dict[str, str],
        api_key: Optional[str],
        extra_headers: Optional[dict[str, str]] = None,
    ) -> dict[str, str]:
        """
        Prepare request headers

        Adds backend API Key to Authorization header.
        """
        new_headers = dict(headers)

        # Remove original authentication headers and auto-generated headers
        keys_to_remove = ["authorization", "x-api-key", "api-key", "content-length", "host", "content-type"]
        for key in list(new_headers.keys()):
            if key.lower() in keys_to_remove:
                del new_headers[key]

        if api_key:
            new_headers["Authorization"] = f"Bearer {api_key}"

        # Merge extra headers (overwrite existing)
        if extra_headers:
            new_headers.update(extra_headers)

        return new_headers
