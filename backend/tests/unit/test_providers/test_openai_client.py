import json

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from dialect_gateway.providers.openai_client import OpenAIClient


def mock_response(status_code=200, body=None):
    body = body if body is not None else {"id": "resp_1"}
    return MagicMock(
        status_code=status_code,
        headers={"content-type": "application/json"},
        text=str(body),
        content=json.dumps(body).encode("utf-8"),
        json=lambda: body,
    )


def mock_stream_response(chunks, status_code=200):
    async def aiter_bytes():
        for chunk in chunks:
            yield chunk

    response = MagicMock(status_code=status_code, headers={"content-type": "text/event-stream"})
    response.aiter_bytes = aiter_bytes
    return response


@pytest.mark.asyncio
async def test_openai_client_forward_url_construction():
    client = OpenAIClient()

    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = AsyncMock()
        mock_client.request.return_value = mock_response()
        mock_client_cls.return_value.__aenter__.return_value = mock_client

        response = await client.forward(
            base_url="https://api.openai.com/v1/",
            api_key="sk-test",
            path="/v1/responses",
            headers={},
            body={"model": "gpt-4o", "input": "hi"},
        )

        call_args = mock_client.request.call_args
        # Base URLs carry /v1, so it is stripped from the path
        assert call_args.kwargs["url"] == "https://api.openai.com/v1/responses"
        assert call_args.kwargs["method"] == "POST"
        assert call_args.kwargs["json"] == {"model": "gpt-4o", "input": "hi"}
        assert response.status_code == 200
        assert response.body == {"id": "resp_1"}
        assert response.is_success
        assert response.total_time_ms is not None


@pytest.mark.asyncio
async def test_openai_client_keeps_raw_bytes_next_to_parsed_body():
    client = OpenAIClient()
    raw = b'{ "id":"resp_1" ,  "note": "\\u00e9"}'

    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = AsyncMock()
        mock_client.request.return_value = MagicMock(
            status_code=200,
            headers={},
            text=raw.decode("utf-8"),
            content=raw,
            json=lambda: json.loads(raw),
        )
        mock_client_cls.return_value.__aenter__.return_value = mock_client

        response = await client.forward(
            base_url="https://api.openai.com/v1",
            api_key="sk-test",
            path="/v1/responses",
            headers={},
            body={"model": "gpt-4o"},
        )

        assert response.body == {"id": "resp_1", "note": "é"}
        assert response.raw_body == raw


@pytest.mark.asyncio
async def test_openai_client_headers_replace_caller_credentials():
    client = OpenAIClient()

    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = AsyncMock()
        mock_client.request.return_value = mock_response()
        mock_client_cls.return_value.__aenter__.return_value = mock_client

        await client.forward(
            base_url="https://api.openai.com/v1",
            api_key="sk-upstream",
            path="/v1/chat/completions",
            headers={
                "Authorization": "Bearer caller-key",
                "Host": "gateway.local",
                "Content-Length": "42",
                "X-Request-Id": "abc",
            },
            body={"model": "gpt-4o"},
            extra_headers={"OpenAI-Organization": "org-1"},
        )

        kwargs = mock_client.request.call_args.kwargs
        headers = kwargs["headers"]
        assert headers["Authorization"] == "Bearer sk-upstream"
        assert headers["Content-Type"] == "application/json"
        assert headers["X-Request-Id"] == "abc"
        assert headers["OpenAI-Organization"] == "org-1"
        assert "Host" not in headers
        assert "Content-Length" not in headers
        assert kwargs["json"] == {"model": "gpt-4o"}


@pytest.mark.asyncio
async def test_openai_client_keeps_text_body_when_not_json():
    client = OpenAIClient()

    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = AsyncMock()
        response = MagicMock(status_code=502, headers={}, text="Bad Gateway", content=b"Bad Gateway")
        response.json.side_effect = json.JSONDecodeError("x", "Bad Gateway", 0)
        mock_client.request.return_value = response
        mock_client_cls.return_value.__aenter__.return_value = mock_client

        result = await client.forward(
            base_url="https://api.openai.com/v1",
            api_key=None,
            path="/v1/responses",
            headers={},
            body={"model": "gpt-4o"},
        )

        assert result.status_code == 502
        assert result.body == "Bad Gateway"
        assert result.raw_body == b"Bad Gateway"
        assert "Authorization" not in mock_client.request.call_args.kwargs["headers"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "exc,status_code",
    [
        (httpx.ReadTimeout("slow"), 504),
        (httpx.ConnectError("refused"), 502),
    ],
)
async def test_openai_client_transport_errors(exc, status_code):
    client = OpenAIClient(timeout=5)

    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = AsyncMock()
        mock_client.request.side_effect = exc
        mock_client_cls.return_value.__aenter__.return_value = mock_client

        result = await client.forward(
            base_url="https://api.openai.com/v1",
            api_key="sk-test",
            path="/v1/responses",
            headers={},
            body={"model": "gpt-4o"},
        )

        mock_client_cls.assert_called_once_with(timeout=5)
        assert result.status_code == status_code
        assert result.error
        assert not result.is_success


@pytest.mark.asyncio
async def test_openai_client_forward_stream_yields_chunks():
    client = OpenAIClient()
    chunks = [b"data: {\"type\": \"response.created\"}\n\n", b"data: [DONE]\n\n"]

    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = AsyncMock()
        mock_client.stream = MagicMock()
        mock_client.stream.return_value.__aenter__.return_value = mock_stream_response(chunks)
        mock_client_cls.return_value.__aenter__.return_value = mock_client

        received = []
        async for chunk, provider_response in client.forward_stream(
            base_url="https://api.openai.com/v1",
            api_key="sk-test",
            path="/v1/responses",
            headers={},
            body={"model": "gpt-4o", "stream": True},
        ):
            received.append(chunk)
            assert provider_response.status_code == 200

        assert received == chunks
        assert mock_client.stream.call_args.kwargs["url"] == "https://api.openai.com/v1/responses"
        assert provider_response.first_byte_delay_ms is not None
        assert provider_response.total_time_ms is not None


@pytest.mark.asyncio
async def test_openai_client_forward_stream_timeout():
    client = OpenAIClient()

    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = AsyncMock()
        mock_client.stream = MagicMock()
        mock_client.stream.return_value.__aenter__.side_effect = httpx.ReadTimeout("slow")
        mock_client_cls.return_value.__aenter__.return_value = mock_client

        results = [
            item
            async for item in client.forward_stream(
                base_url="https://api.openai.com/v1",
                api_key="sk-test",
                path="/v1/responses",
                headers={},
                body={"model": "gpt-4o", "stream": True},
            )
        ]

        assert len(results) == 1
        chunk, provider_response = results[0]
        assert chunk == b""
        assert provider_response.status_code == 504
        assert "timeout" in provider_response.error.lower()
