"""
Relay Service Unit Tests
"""

import json
from unittest.mock import AsyncMock

import pytest

from dialect_gateway.common.errors import InputError, TransportError, UpstreamError
from dialect_gateway.common.protocol import Dialect
from dialect_gateway.domain.channel import Channel
from dialect_gateway.providers.base import ProviderResponse
from dialect_gateway.services import RelayService, SmartRouter, SmartRoutingConfig


def sse(obj) -> bytes:
    return f"data: {json.dumps(obj)}\n\n".encode("utf-8")


RESPONSES_STREAM = [
    sse({"type": "response.created", "response": {"id": "resp_1", "status": "in_progress"}}),
    sse({"type": "response.output_item.added", "item": {"type": "message", "role": "assistant"}}),
    sse({"type": "response.output_text.delta", "delta": "Hi"}),
    sse({"type": "response.output_text.delta", "delta": " there"}),
    sse(
        {
            "type": "response.completed",
            "response": {"id": "resp_1", "status": "completed", "usage": {"input_tokens": 5, "output_tokens": 2}},
        }
    ),
]


class FakeClient:
    """Provider client double recording each upstream call"""

    def __init__(self, response=None, stream_items=None):
        self.forward = AsyncMock(return_value=response)
        self.stream_items = stream_items or []
        self.stream_calls = []
        self.stream_closed = False

    async def forward_stream(self, **kwargs):
        self.stream_calls.append(kwargs)
        try:
            for item in self.stream_items:
                yield item
        finally:
            self.stream_closed = True


@pytest.fixture
def channels():
    return {
        Dialect.RESPONSES: Channel(
            name="responses",
            dialect=Dialect.RESPONSES,
            base_url="https://responses.example.com/v1",
            api_key="sk-r",
            models=["gpt-4o"],
        ),
        Dialect.CHAT: Channel(
            name="chat",
            dialect=Dialect.CHAT,
            base_url="https://chat.example.com/v1",
            api_key="sk-c",
        ),
        Dialect.MESSAGES: Channel(
            name="messages",
            dialect=Dialect.MESSAGES,
            base_url="https://messages.example.com/v1",
            api_key="sk-m",
        ),
    }


def make_service(channels, client, token_counter):
    router = SmartRouter(
        SmartRoutingConfig(enabled=True, responses_models=["claude-3-opus"]),
        token_counter=token_counter,
    )
    return RelayService(router=router, channels=channels, client_factory=lambda dialect: client)


def ok():
    return ProviderResponse(status_code=200, headers={"content-type": "text/event-stream"})


async def collect(stream):
    return [frame async for frame in stream]


class TestProcessRequest:
    """Non-streaming relay"""

    @pytest.mark.asyncio
    async def test_translated_chat_request(self, channels, token_counter):
        client = FakeClient(
            ProviderResponse(
                status_code=200,
                body={
                    "id": "resp_1",
                    "created_at": 1700000000,
                    "model": "gpt-4o",
                    "status": "completed",
                    "output": [
                        {
                            "type": "message",
                            "role": "assistant",
                            "content": [{"type": "output_text", "text": "Hello!"}],
                        }
                    ],
                    "usage": {"input_tokens": 9, "output_tokens": 3},
                },
            )
        )
        service = make_service(channels, client, token_counter)

        result = await service.process_request(
            {"model": "gpt-4o", "messages": [{"role": "user", "content": "hi"}]},
            Dialect.CHAT,
            {"authorization": "Bearer caller"},
        )

        kwargs = client.forward.call_args.kwargs
        assert kwargs["base_url"] == "https://responses.example.com/v1"
        assert kwargs["api_key"] == "sk-r"
        assert kwargs["path"] == "/v1/responses"
        assert kwargs["body"]["input"] == [{"type": "message", "role": "user", "content": "hi"}]

        assert result.status_code == 200
        body = json.loads(result.content)
        assert body["object"] == "chat.completion"
        assert body["choices"][0]["message"] == {"role": "assistant", "content": "Hello!"}
        assert body["usage"] == {"prompt_tokens": 9, "completion_tokens": 3, "total_tokens": 12}
        assert result.ctx.usage.total_tokens == 12

    @pytest.mark.asyncio
    async def test_translated_upstream_error_raises_with_status(self, channels, token_counter):
        client = FakeClient(
            ProviderResponse(status_code=429, body={"error": {"message": "slow down", "type": "rate_limit"}})
        )
        service = make_service(channels, client, token_counter)

        with pytest.raises(UpstreamError) as exc_info:
            await service.process_request(
                {"model": "claude-3-opus", "messages": [{"role": "user", "content": "hi"}]},
                Dialect.MESSAGES,
                {},
            )

        assert exc_info.value.status_code == 429
        assert exc_info.value.message == "slow down"

    @pytest.mark.asyncio
    async def test_translated_error_object_on_success_status(self, channels, token_counter):
        client = FakeClient(
            ProviderResponse(status_code=200, body={"error": {"message": "model overloaded", "type": "server_error"}})
        )
        service = make_service(channels, client, token_counter)

        result = await service.process_request(
            {"model": "claude-3-opus", "messages": [{"role": "user", "content": "hi"}]},
            Dialect.MESSAGES,
            {},
        )

        assert result.status_code == 502
        assert json.loads(result.content) == {
            "type": "error",
            "error": {"type": "server_error", "message": "model overloaded"},
        }

    @pytest.mark.asyncio
    async def test_native_upstream_error_is_passed_through(self, channels, token_counter):
        error_body = {"type": "error", "error": {"type": "invalid_request_error", "message": "bad"}}
        client = FakeClient(ProviderResponse(status_code=400, body=error_body))
        service = make_service(channels, client, token_counter)

        result = await service.process_request(
            {"model": "claude-3-haiku", "messages": []},
            Dialect.MESSAGES,
            {},
        )

        assert client.forward.call_args.kwargs["path"] == "/v1/messages"
        assert result.status_code == 400
        assert json.loads(result.content) == error_body

    @pytest.mark.asyncio
    async def test_native_success_is_unchanged(self, channels, token_counter):
        body = {"id": "chatcmpl-1", "choices": [], "usage": {"prompt_tokens": 1, "completion_tokens": 2}}
        client = FakeClient(ProviderResponse(status_code=200, body=body))
        service = make_service(channels, client, token_counter)

        result = await service.process_request({"model": "gpt-3.5-turbo", "messages": []}, Dialect.CHAT, {})

        assert json.loads(result.content) == body
        assert result.ctx.usage.total_tokens == 3

    @pytest.mark.asyncio
    async def test_native_success_keeps_upstream_bytes(self, channels, token_counter):
        raw = b'{ "id" :"chatcmpl-1",\n  "text": "caf\\u00e9 \\ud800",  "usage":{"prompt_tokens":1,"completion_tokens":2} }'
        body = {"id": "chatcmpl-1", "text": "café ", "usage": {"prompt_tokens": 1, "completion_tokens": 2}}
        client = FakeClient(ProviderResponse(status_code=200, body=body, raw_body=raw))
        service = make_service(channels, client, token_counter)

        result = await service.process_request({"model": "gpt-3.5-turbo", "messages": []}, Dialect.CHAT, {})

        assert result.content == raw
        assert result.ctx.usage.prompt_tokens == 1
        assert result.ctx.usage.total_tokens == 3

    @pytest.mark.asyncio
    async def test_native_error_keeps_upstream_bytes(self, channels, token_counter):
        raw = b'{"type":"error",  "error":{"type":"invalid_request_error","message":"\\u4e0d\\u884c"}}'
        client = FakeClient(ProviderResponse(status_code=400, body=json.loads(raw), raw_body=raw))
        service = make_service(channels, client, token_counter)

        result = await service.process_request({"model": "claude-3-haiku", "messages": []}, Dialect.MESSAGES, {})

        assert result.status_code == 400
        assert result.content == raw

    @pytest.mark.asyncio
    async def test_transport_error(self, channels, token_counter):
        client = FakeClient(ProviderResponse(status_code=504, error="Request timeout: slow"))
        service = make_service(channels, client, token_counter)

        with pytest.raises(TransportError) as exc_info:
            await service.process_request({"model": "gpt-4o", "input": "hi"}, Dialect.RESPONSES, {})

        assert exc_info.value.status_code == 504

    @pytest.mark.asyncio
    async def test_non_object_body_is_rejected(self, channels, token_counter):
        client = FakeClient()
        service = make_service(channels, client, token_counter)

        with pytest.raises(InputError) as exc_info:
            await service.process_request([1, 2], Dialect.CHAT, {})

        assert exc_info.value.code == "invalid_body"
        client.forward.assert_not_called()


class TestProcessRequestStream:
    """Streaming relay"""

    @pytest.mark.asyncio
    async def test_translated_messages_stream(self, channels, token_counter):
        client = FakeClient(stream_items=[(chunk, ok()) for chunk in RESPONSES_STREAM])
        service = make_service(channels, client, token_counter)

        relay = await service.process_request_stream(
            {"model": "claude-3-opus", "stream": True, "messages": [{"role": "user", "content": "hi"}]},
            Dialect.MESSAGES,
            {},
        )
        frames = await collect(relay.stream)

        events = [frame.split(b"\n", 1)[0] for frame in frames]
        assert events == [
            b"event: message_start",
            b"event: content_block_start",
            b"event: content_block_delta",
            b"event: content_block_delta",
            b"event: content_block_stop",
            b"event: message_delta",
            b"event: message_stop",
        ]
        assert client.stream_calls[0]["path"] == "/v1/responses"
        assert client.stream_closed
        usage = relay.ctx.usage
        assert (usage.prompt_tokens, usage.completion_tokens, usage.total_tokens) == (5, 2, 7)

    @pytest.mark.asyncio
    async def test_translated_chat_stream_ends_with_done(self, channels, token_counter):
        client = FakeClient(stream_items=[(chunk, ok()) for chunk in RESPONSES_STREAM])
        service = make_service(channels, client, token_counter)

        relay = await service.process_request_stream(
            {"model": "gpt-4o", "stream": True, "messages": [{"role": "user", "content": "hi"}]},
            Dialect.CHAT,
            {},
        )
        frames = await collect(relay.stream)

        assert frames[-1] == b"data: [DONE]\n\n"
        final = json.loads(frames[-2][len(b"data: "):])
        assert final["choices"][0]["finish_reason"] == "stop"
        assert final["usage"]["total_tokens"] == 7

    @pytest.mark.asyncio
    async def test_native_stream_is_relayed(self, channels, token_counter):
        chunks = [b'data: {"choices": []}\n\n', b"data: [DONE]\n\n"]
        client = FakeClient(stream_items=[(chunk, ok()) for chunk in chunks])
        service = make_service(channels, client, token_counter)

        relay = await service.process_request_stream(
            {"model": "gpt-3.5-turbo", "stream": True, "messages": []},
            Dialect.CHAT,
            {},
        )

        assert await collect(relay.stream) == chunks
        assert relay.ctx.target_dialect is Dialect.CHAT

    @pytest.mark.asyncio
    async def test_native_stream_error_body_returned(self, channels, token_counter):
        error = ProviderResponse(status_code=401, headers={"content-type": "application/json"})
        client = FakeClient(
            stream_items=[(b'{"error": {"message": "bad ', error), (b'key"}}', error)]
        )
        service = make_service(channels, client, token_counter)

        relay = await service.process_request_stream(
            {"model": "gpt-3.5-turbo", "stream": True, "messages": []},
            Dialect.CHAT,
            {},
        )

        assert relay.stream is None
        assert relay.initial_response.status_code == 401
        assert relay.error_body == {"error": {"message": "bad key"}}

    @pytest.mark.asyncio
    async def test_translated_stream_error_raises(self, channels, token_counter):
        error = ProviderResponse(status_code=500)
        client = FakeClient(stream_items=[(b"Internal Server Error", error)])
        service = make_service(channels, client, token_counter)

        with pytest.raises(UpstreamError) as exc_info:
            await service.process_request_stream(
                {"model": "gpt-4o", "stream": True, "messages": [{"role": "user", "content": "hi"}]},
                Dialect.CHAT,
                {},
            )

        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "Internal Server Error"

    @pytest.mark.asyncio
    async def test_stream_transport_error(self, channels, token_counter):
        client = FakeClient(stream_items=[(b"", ProviderResponse(status_code=502, error="Request error: refused"))])
        service = make_service(channels, client, token_counter)

        with pytest.raises(TransportError) as exc_info:
            await service.process_request_stream({"model": "gpt-4o", "stream": True, "input": "hi"}, Dialect.RESPONSES, {})

        assert exc_info.value.status_code == 502
        assert client.stream_closed

    @pytest.mark.asyncio
    async def test_empty_stream(self, channels, token_counter):
        service = make_service(channels, FakeClient(stream_items=[]), token_counter)

        with pytest.raises(TransportError) as exc_info:
            await service.process_request_stream({"model": "gpt-4o", "stream": True, "input": "hi"}, Dialect.RESPONSES, {})

        assert exc_info.value.code == "stream_error"

    @pytest.mark.asyncio
    async def test_mid_stream_error_stops_relay_and_reconciles(self, channels, token_counter):
        items = [(chunk, ok()) for chunk in RESPONSES_STREAM[:3]]
        items.append((b"", ProviderResponse(status_code=504, error="Request timeout: slow")))
        items.append((RESPONSES_STREAM[3], ok()))
        client = FakeClient(stream_items=items)
        service = make_service(channels, client, token_counter)

        relay = await service.process_request_stream(
            {"model": "gpt-4o", "stream": True, "messages": [{"role": "user", "content": "hi"}]},
            Dialect.CHAT,
            {},
        )
        frames = await collect(relay.stream)

        assert b"[DONE]" not in b"".join(frames)
        assert relay.ctx.output_text == "Hi"
        # Counted locally from the partial output
        assert relay.ctx.usage.completion_tokens == 1
        assert client.stream_closed
