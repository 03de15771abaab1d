"""End-to-end tests for the DeepSeek variant running in-process."""

import gzip
import json
import zlib

import brotli
import httpx
import pytest

from conftest import build_settings, proxy_client
from wrapproxy.main import CORS_HEADERS
from wrapproxy.testing import UpstreamResponse

COMPRESSORS = {
    "gzip": gzip.compress,
    "br": brotli.compress,
    "deflate": zlib.compress,
}


def _sse_payloads(body: str) -> list:
    payloads = []
    for line in body.splitlines():
        if line.startswith("data: ") and line != "data: [DONE]":
            payloads.append(json.loads(line[len("data: "):]))
    return payloads


class TestChatCompletions:
    """Buffered chat completions through the DeepSeek variant."""

    @pytest.mark.asyncio
    async def test_buffered_request_is_translated_both_ways(self, upstream, deepseek_settings):
        upstream.enqueue_chat_response(
            "Hello there",
            usage={"prompt_tokens": 5, "completion_tokens": 2, "total_tokens": 7},
            model="deepseek-chat-v3-0324",
        )

        async with proxy_client(deepseek_settings, upstream) as client:
            response = await client.post(
                "/v1/chat/completions",
                json={
                    "model": "",
                    "messages": [
                        {"role": "system", "content": "Be nice"},
                        {"role": "user", "content": [{"type": "text", "text": "Hi"}]},
                        {"role": "assistant", "content": ""},
                    ],
                    "tool_choice": {"type": "function", "function": {"name": "x"}},
                },
                headers={"Authorization": "Bearer user-key", "X-Client": "cursor"},
            )

        assert response.status_code == 200
        body = response.json()
        assert body["model"] == "deepseek-chat"
        assert body["object"] == "chat.completion"
        assert body["choices"][0]["message"]["content"] == "Hello there"
        assert body["usage"]["total_tokens"] == 7

        sent = upstream.received[0]
        assert sent["path"] == "/v1/chat/completions"
        assert sent["headers"]["authorization"] == "Bearer user-key"
        assert sent["headers"]["x-client"] == "cursor"
        assert sent["json"] == {
            "model": "deepseek-chat",
            "messages": [
                {"role": "system", "content": "Be nice"},
                {"role": "user", "content": "Hi"},
            ],
            "stream": False,
        }

    @pytest.mark.asyncio
    async def test_unprefixed_path_uses_server_key_and_is_forwarded_as_is(self, upstream, deepseek_settings):
        upstream.enqueue_chat_response("ok")
        async with proxy_client(deepseek_settings, upstream) as client:
            response = await client.post(
                "/chat/completions",
                json={"messages": [{"role": "user", "content": "hi"}]},
            )
        assert response.status_code == 200
        assert upstream.received[0]["headers"]["authorization"] == "Bearer server-key"
        assert upstream.received[0]["path"] == "/chat/completions"

    @pytest.mark.asyncio
    async def test_missing_key_is_401(self, upstream):
        settings = build_settings("deepseek", api_key=None)
        async with proxy_client(settings, upstream) as client:
            response = await client.post("/v1/chat/completions", json={"messages": []})
        assert response.status_code == 401
        assert response.text.startswith("API key required")
        assert "DEEPSEEK_API_KEY" in response.text
        assert upstream.received == []

    @pytest.mark.asyncio
    async def test_invalid_json_is_400_without_upstream_call(self, upstream, deepseek_settings):
        async with proxy_client(deepseek_settings, upstream) as client:
            response = await client.post(
                "/v1/chat/completions",
                content=b"{not json",
                headers={"Content-Type": "application/json"},
            )
        assert response.status_code == 400
        assert response.text == "Invalid JSON"
        assert upstream.received == []

    @pytest.mark.asyncio
    async def test_tool_calls_without_name_are_filtered(self, upstream, deepseek_settings):
        upstream.enqueue_chat_response(
            None,
            tool_calls=[
                {"id": "a", "type": "function", "function": {"name": "", "arguments": "{}"}},
            ],
            finish_reason="tool_calls",
        )
        async with proxy_client(deepseek_settings, upstream) as client:
            response = await client.post(
                "/v1/chat/completions",
                json={"messages": [{"role": "user", "content": "call a tool"}]},
            )
        message = response.json()["choices"][0]["message"]
        assert "tool_calls" not in message
        assert response.json()["choices"][0]["finish_reason"] == "tool_calls"

    @pytest.mark.asyncio
    async def test_non_json_upstream_body_is_500(self, upstream, deepseek_settings):
        upstream.enqueue(UpstreamResponse(body="<html>oops</html>", media_type="text/html"))
        async with proxy_client(deepseek_settings, upstream) as client:
            response = await client.post(
                "/v1/chat/completions",
                json={"messages": [{"role": "user", "content": "hi"}]},
            )
        assert response.status_code == 500
        assert response.text == "Error parsing response"


class TestFallback:
    """Model fallback through the full request path."""

    @pytest.mark.asyncio
    async def test_unknown_model_falls_back_to_reasoner(self, upstream, deepseek_settings):
        upstream.enqueue_error_response(400, "Model Not Exist")
        upstream.enqueue_chat_response("answer", model="whatever")

        async with proxy_client(deepseek_settings, upstream) as client:
            response = await client.post(
                "/v1/chat/completions",
                json={"model": "deepseek-v9", "messages": [{"role": "user", "content": "hi"}]},
            )

        assert response.status_code == 200
        assert response.json()["model"] == "deepseek-reasoner"
        assert [r["json"]["model"] for r in upstream.received] == ["deepseek-v9", "deepseek-reasoner"]

    @pytest.mark.asyncio
    async def test_rate_limit_is_forwarded_without_retry(self, upstream, deepseek_settings):
        upstream.enqueue(
            UpstreamResponse(
                status_code=429,
                body="slow down",
                media_type="text/plain",
                headers={"Retry-After": "3"},
            )
        )
        async with proxy_client(deepseek_settings, upstream) as client:
            response = await client.post(
                "/v1/chat/completions",
                json={"messages": [{"role": "user", "content": "hi"}]},
            )
        assert response.status_code == 429
        assert response.text == "slow down"
        assert response.headers["content-type"] == "application/json"
        assert response.headers["retry-after"] == "3"
        assert len(upstream.received) == 1

    @pytest.mark.asyncio
    async def test_connection_failures_give_502(self, deepseek_settings):
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(json.loads(request.content)["model"])
            raise httpx.ConnectError("refused", request=request)

        async with proxy_client(deepseek_settings, transport=httpx.MockTransport(handler)) as client:
            response = await client.post(
                "/v1/chat/completions",
                json={"messages": [{"role": "user", "content": "hi"}]},
            )
        assert response.status_code == 502
        assert response.text == "Error forwarding request"
        assert attempts == ["deepseek-chat", "deepseek-reasoner"]


class TestStreaming:
    @pytest.mark.asyncio
    async def test_stream_rewrites_model_in_every_event(self, upstream, deepseek_settings):
        upstream.enqueue_chat_response("Hey", stream=True, model="upstream-echo")

        async with proxy_client(deepseek_settings, upstream) as client:
            response = await client.post(
                "/v1/chat/completions",
                json={"model": "deepseek-chat", "stream": True, "messages": [{"role": "user", "content": "hi"}]},
            )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"
        payloads = _sse_payloads(response.text)
        assert len(payloads) == 5
        assert {payload["model"] for payload in payloads} == {"deepseek-chat"}
        assert "".join(
            payload["choices"][0]["delta"].get("content", "") for payload in payloads
        ) == "Hey"
        assert response.text.rstrip().endswith("data: [DONE]")
        assert upstream.received[0]["headers"]["accept"] == "text/event-stream"

    @pytest.mark.asyncio
    async def test_stream_split_across_chunks(self, upstream, deepseek_settings):
        upstream.enqueue(
            UpstreamResponse(
                stream=True,
                stream_events=[b": keep-alive\n\n", {"model": "x", "choices": []}],
                chunk_sizes=[3, 7, 11, 5],
            )
        )
        async with proxy_client(deepseek_settings, upstream) as client:
            response = await client.post(
                "/v1/chat/completions",
                json={"stream": True, "messages": [{"role": "user", "content": "hi"}]},
            )
        assert ": keep-alive\n" in response.text
        assert _sse_payloads(response.text) == [{"model": "deepseek-chat", "choices": []}]

    @pytest.mark.asyncio
    async def test_stream_fallback_uses_fallback_model(self, upstream, deepseek_settings):
        upstream.enqueue_error_response(404, "model not found")
        upstream.enqueue_chat_response("R", stream=True)
        async with proxy_client(deepseek_settings, upstream) as client:
            response = await client.post(
                "/v1/chat/completions",
                json={"stream": True, "messages": [{"role": "user", "content": "hi"}]},
            )
        assert {p["model"] for p in _sse_payloads(response.text)} == {"deepseek-reasoner"}


class TestRouting:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["/v1/models", "/models"])
    async def test_models_listing(self, upstream, path):
        settings = build_settings("deepseek", api_key=None)
        async with proxy_client(settings, upstream) as client:
            response = await client.get(path)
        assert response.status_code == 200
        body = response.json()
        assert body["object"] == "list"
        assert [model["id"] for model in body["data"]] == [
            "deepseek-chat",
            "deepseek-reasoner",
            "deepseek-coder",
        ]
        assert all(model["owned_by"] == "deepseek" for model in body["data"])
        assert all(isinstance(model["created"], int) for model in body["data"])

    @pytest.mark.asyncio
    async def test_unknown_path_is_404(self, upstream, deepseek_settings):
        async with proxy_client(deepseek_settings, upstream) as client:
            response = await client.post("/v1/embeddings", json={})
            get_chat = await client.get("/v1/chat/completions")
        assert response.status_code == 404
        assert get_chat.status_code == 404
        assert upstream.received == []

    @pytest.mark.asyncio
    async def test_options_preflight(self, upstream, deepseek_settings):
        async with proxy_client(deepseek_settings, upstream) as client:
            response = await client.options("/v1/chat/completions")
        assert response.status_code == 200
        assert response.content == b""
        for name, value in CORS_HEADERS.items():
            assert response.headers[name] == value

    @pytest.mark.asyncio
    async def test_cors_headers_on_errors(self, upstream, deepseek_settings):
        async with proxy_client(deepseek_settings, upstream) as client:
            response = await client.post("/v1/chat/completions", content=b"[")
        assert response.status_code == 400
        assert response.headers["access-control-allow-origin"] == "*"


class TestCompressedUpstream:
    """Upstream bodies sent with a Content-Encoding are decoded before translation."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("encoding", sorted(COMPRESSORS))
    async def test_buffered_body_is_decoded(self, upstream, deepseek_settings, encoding):
        body = {
            "id": "chatcmpl-z",
            "object": "chat.completion",
            "created": 1700000000,
            "model": "upstream-model",
            "choices": [
                {"index": 0, "message": {"role": "assistant", "content": "zipped"}, "finish_reason": "stop"}
            ],
        }
        upstream.enqueue(
            UpstreamResponse(
                body=COMPRESSORS[encoding](json.dumps(body).encode("utf-8")),
                headers={"Content-Encoding": encoding},
            )
        )

        async with proxy_client(deepseek_settings, upstream) as client:
            response = await client.post(
                "/v1/chat/completions",
                json={"messages": [{"role": "user", "content": "hi"}]},
            )

        assert response.status_code == 200
        assert "content-encoding" not in response.headers
        assert response.json()["model"] == "deepseek-chat"
        assert response.json()["choices"][0]["message"]["content"] == "zipped"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("encoding", sorted(COMPRESSORS))
    async def test_stream_is_decoded(self, upstream, deepseek_settings, encoding):
        raw = (
            b'data: {"model":"upstream-model","choices":[{"index":0,"delta":{"content":"z"}}]}\n\n'
            b"data: [DONE]\n\n"
        )
        upstream.enqueue(
            UpstreamResponse(
                stream=True,
                stream_events=[COMPRESSORS[encoding](raw)],
                add_done=False,
                headers={"Content-Encoding": encoding},
                chunk_sizes=[5, 9],
            )
        )

        async with proxy_client(deepseek_settings, upstream) as client:
            response = await client.post(
                "/v1/chat/completions",
                json={"stream": True, "messages": [{"role": "user", "content": "hi"}]},
            )

        assert response.status_code == 200
        assert _sse_payloads(response.text) == [
            {"model": "deepseek-chat", "choices": [{"index": 0, "delta": {"content": "z"}}]}
        ]
        assert response.text.rstrip().endswith("data: [DONE]")


class TestBrokenUpstreamBodies:
    """Transport failures while an upstream body is being read."""

    @staticmethod
    async def _broken_body():
        yield b'{"id": "chatcmpl-'
        raise httpx.ReadError("connection reset")

    @pytest.mark.asyncio
    async def test_buffered_body_read_failure_is_500(self, deepseek_settings):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=self._broken_body())

        async with proxy_client(deepseek_settings, transport=httpx.MockTransport(handler)) as client:
            response = await client.post(
                "/v1/chat/completions",
                json={"messages": [{"role": "user", "content": "hi"}]},
            )

        assert response.status_code == 500
        assert response.text == "Error reading response from upstream"

    @pytest.mark.asyncio
    async def test_error_body_read_failure_is_502(self, deepseek_settings):
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(json.loads(request.content)["model"])
            return httpx.Response(500, content=self._broken_body())

        async with proxy_client(deepseek_settings, transport=httpx.MockTransport(handler)) as client:
            response = await client.post(
                "/v1/chat/completions",
                json={"messages": [{"role": "user", "content": "hi"}]},
            )

        assert response.status_code == 502
        assert response.text == "Error forwarding request"
        assert attempts == ["deepseek-chat", "deepseek-reasoner"]
