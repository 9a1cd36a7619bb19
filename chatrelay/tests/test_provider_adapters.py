import json

import httpx
import pytest

from chatrelay.adapters import http as provider_http
from chatrelay.adapters.anthropic import AnthropicAdapter
from chatrelay.adapters.google import GoogleAdapter
from chatrelay.adapters.openai_compat import OpenAIAdapter, XAIAdapter
from chatrelay.core.errors import (
    MalformedResponseError,
    MissingCredentialError,
    RemoteError,
    RemoteUnavailableError,
)
from chatrelay.core.models import ChatTurn, ModelOption


class FakeClient:
    def __init__(self, response: httpx.Response | None = None, exc: Exception | None = None) -> None:
        self.response = response
        self.exc = exc
        self.calls: list[dict] = []

    async def post(self, url, *, content, headers):
        self.calls.append({"method": "POST", "url": url, "body": json.loads(content), "headers": headers})
        if self.exc is not None:
            raise self.exc
        return self.response

    async def get(self, url, *, headers, params):
        self.calls.append({"method": "GET", "url": url, "headers": headers, "params": params})
        if self.exc is not None:
            raise self.exc
        return self.response


def _install(monkeypatch, client: FakeClient) -> FakeClient:
    async def fake_get_client():
        return client

    monkeypatch.setattr(provider_http, "_get_provider_async_client", fake_get_client)
    return client


HISTORY = (
    ChatTurn(role="user", content="Hello"),
    ChatTurn(role="assistant", content="Hi there"),
)


@pytest.mark.asyncio
async def test_openai_generate_reply_builds_wire_payload(monkeypatch):
    client = _install(
        monkeypatch,
        FakeClient(httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": "Sure"}}]})),
    )
    adapter = OpenAIAdapter(api_key="sk-test", base_url="https://api.openai.com/v1/")
    history = list(HISTORY)

    reply = await adapter.generate_reply("Next?", history, "gpt-4o-mini")

    assert reply == "Sure"
    assert len(history) == 2
    call = client.calls[0]
    assert call["url"] == "https://api.openai.com/v1/chat/completions"
    assert call["headers"]["Authorization"] == "Bearer sk-test"
    assert call["headers"]["Content-Type"] == "application/json"
    assert call["body"]["model"] == "gpt-4o-mini"
    assert call["body"]["max_tokens"] == 500
    assert call["body"]["messages"] == [
        {"role": "user", "content": "Hello"},
        {"role": "assistant", "content": "Hi there"},
        {"role": "user", "content": "Next?"},
    ]


@pytest.mark.asyncio
async def test_xai_uses_openai_wire_format_on_its_own_endpoint(monkeypatch):
    client = _install(monkeypatch, FakeClient(httpx.Response(200, json={"choices": [{"message": {"content": "yo"}}]})))
    adapter = XAIAdapter(api_key="xai-test")

    assert await adapter.generate_reply("hey", (), "grok-3-mini") == "yo"
    assert client.calls[0]["url"] == "https://api.x.ai/v1/chat/completions"
    assert client.calls[0]["headers"]["Authorization"] == "Bearer xai-test"


@pytest.mark.asyncio
async def test_anthropic_headers_and_reply_blocks(monkeypatch):
    client = _install(
        monkeypatch,
        FakeClient(
            httpx.Response(
                200,
                json={"content": [{"type": "text", "text": "Hello "}, {"type": "text", "text": "again"}]},
            )
        ),
    )
    adapter = AnthropicAdapter(api_key="ak-test")

    reply = await adapter.generate_reply("Hi", HISTORY, "claude-haiku-4-5-20251001")

    assert reply == "Hello again"
    call = client.calls[0]
    assert call["url"] == "https://api.anthropic.com/v1/messages"
    assert call["headers"]["x-api-key"] == "ak-test"
    assert call["headers"]["anthropic-version"] == "2023-06-01"
    assert "Authorization" not in call["headers"]
    assert call["body"]["messages"][-1] == {"role": "user", "content": "Hi"}


@pytest.mark.asyncio
async def test_google_maps_assistant_role_to_model(monkeypatch):
    client = _install(
        monkeypatch,
        FakeClient(httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": "Bonjour"}]}}]})),
    )
    adapter = GoogleAdapter(api_key="g-test")

    reply = await adapter.generate_reply("Say hi in French", HISTORY, "gemini-2.5-flash")

    assert reply == "Bonjour"
    call = client.calls[0]
    assert call["url"] == "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.5-flash:generateContent"
    assert call["headers"]["x-goog-api-key"] == "g-test"
    assert "g-test" not in call["url"]
    assert call["body"]["contents"] == [
        {"role": "user", "parts": [{"text": "Hello"}]},
        {"role": "model", "parts": [{"text": "Hi there"}]},
        {"role": "user", "parts": [{"text": "Say hi in French"}]},
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize("adapter_cls", [OpenAIAdapter, AnthropicAdapter, GoogleAdapter, XAIAdapter])
async def test_missing_credential_makes_no_call(monkeypatch, adapter_cls):
    client = _install(monkeypatch, FakeClient(httpx.Response(200, json={})))
    adapter = adapter_cls(api_key="")

    with pytest.raises(MissingCredentialError):
        await adapter.generate_reply("hello", (), adapter.allowed_models[0].value)
    with pytest.raises(MissingCredentialError):
        await adapter.list_models()
    assert client.calls == []


def test_credential_falls_back_to_settings(monkeypatch):
    from chatrelay.config.settings import settings

    monkeypatch.setattr(settings, "anthropic_api_key", "from-settings")
    assert AnthropicAdapter().credential_configured is True
    monkeypatch.setattr(settings, "anthropic_api_key", "  ")
    assert AnthropicAdapter().credential_configured is False


@pytest.mark.asyncio
async def test_non_success_status_is_remote_error(monkeypatch):
    _install(monkeypatch, FakeClient(httpx.Response(429, json={"error": {"message": "rate limited"}})))
    adapter = OpenAIAdapter(api_key="sk-test")

    with pytest.raises(RemoteError) as exc_info:
        await adapter.generate_reply("hello", (), "gpt-4o-mini")
    assert exc_info.value.status == 429
    assert "rate limited" in exc_info.value.message
    assert exc_info.value.public_message == "Sorry, I was unable to reach the AI service. Please try again."


@pytest.mark.asyncio
@pytest.mark.parametrize("exc", [httpx.ConnectError("dns lookup failed"), httpx.ReadTimeout("timed out")])
async def test_transport_failures_become_remote_error(monkeypatch, exc):
    _install(monkeypatch, FakeClient(exc=exc))
    adapter = GoogleAdapter(api_key="g-test")

    with pytest.raises(RemoteError) as exc_info:
        await adapter.generate_reply("hello", (), "gemini-2.5-flash")
    assert isinstance(exc_info.value.__cause__, httpx.HTTPError)
    assert exc_info.value.message.startswith("upstream_unreachable")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "adapter,body",
    [
        (OpenAIAdapter(api_key="k"), {"choices": []}),
        (OpenAIAdapter(api_key="k"), {"choices": [{"message": {"content": None}}]}),
        (XAIAdapter(api_key="k"), {"id": "x"}),
        (AnthropicAdapter(api_key="k"), {"content": []}),
        (AnthropicAdapter(api_key="k"), {"content": [{"type": "tool_use", "id": "t"}]}),
        (GoogleAdapter(api_key="k"), {"candidates": [{"finishReason": "SAFETY"}]}),
        (GoogleAdapter(api_key="k"), {"promptFeedback": {"blockReason": "OTHER"}}),
    ],
)
async def test_success_without_reply_is_malformed(monkeypatch, adapter, body):
    _install(monkeypatch, FakeClient(httpx.Response(200, json=body)))
    with pytest.raises(MalformedResponseError):
        await adapter.generate_reply("hello", (), adapter.allowed_models[0].value)


@pytest.mark.asyncio
async def test_non_json_success_body_is_malformed(monkeypatch):
    _install(monkeypatch, FakeClient(httpx.Response(200, content=b"<html>gateway</html>")))
    with pytest.raises(MalformedResponseError):
        await OpenAIAdapter(api_key="k").generate_reply("hello", (), "gpt-4o-mini")


@pytest.mark.asyncio
async def test_openai_list_models_intersects_live_catalog(monkeypatch):
    client = _install(
        monkeypatch,
        FakeClient(
            httpx.Response(
                200,
                json={"data": [{"id": "gpt-4o"}, {"id": "gpt-4o-mini"}, {"id": "o1"}, {"id": "gpt-3.5-turbo"}]},
            )
        ),
    )
    models = await OpenAIAdapter(api_key="sk-test").list_models()

    assert models == [
        ModelOption(value="gpt-3.5-turbo", label="gpt-3.5-turbo"),
        ModelOption(value="gpt-4o-mini", label="gpt-4o-mini"),
    ]
    assert client.calls[0]["url"] == "https://api.openai.com/v1/models"
    assert client.calls[0]["headers"]["Authorization"] == "Bearer sk-test"


@pytest.mark.asyncio
async def test_google_list_models_keeps_canonical_labels(monkeypatch):
    _install(
        monkeypatch,
        FakeClient(
            httpx.Response(
                200,
                json={
                    "models": [
                        {"name": "models/gemini-2.5-flash", "displayName": "Gemini 2.5 Flash (new!)"},
                        {"name": "models/gemini-2.5-pro", "displayName": "Gemini 2.5 Pro"},
                    ]
                },
            )
        ),
    )
    models = await GoogleAdapter(api_key="g-test").list_models()
    assert models == [ModelOption(value="gemini-2.5-flash", label="Gemini 2.5 Flash")]


@pytest.mark.asyncio
async def test_static_providers_list_without_network(monkeypatch):
    client = _install(monkeypatch, FakeClient(exc=AssertionError("no network expected")))
    models = await XAIAdapter(api_key="k").list_models()
    assert [m.value for m in models] == ["grok-3-mini", "grok-4-fast-non-reasoning", "grok-4-1-fast-non-reasoning"]
    assert [m.label for m in await AnthropicAdapter(api_key="k").list_models()] == ["Claude Haiku 4.5"]
    assert client.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "client",
    [
        FakeClient(httpx.Response(500, json={"error": "boom"})),
        FakeClient(httpx.Response(401, json={"error": {"message": "bad key"}})),
        FakeClient(exc=httpx.ConnectError("refused")),
        FakeClient(httpx.Response(200, content=b"[]")),
    ],
)
async def test_listing_failures_are_remote_unavailable(monkeypatch, client):
    _install(monkeypatch, client)
    with pytest.raises(RemoteUnavailableError):
        await OpenAIAdapter(api_key="sk-test").list_models()
