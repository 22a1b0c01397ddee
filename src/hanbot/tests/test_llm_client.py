"""Tests for the language model client."""
import json

import httpx
import pytest

from hanbot.config import LLMSettings
from hanbot.exceptions import ConfigurationError, RemoteServiceError
from hanbot.models.chat_models import ChatMessage, Role
from hanbot.services.llm_client import INVALID_KEY_MESSAGE, MISSING_KEY_MESSAGE, LLMClient

MESSAGES = [
    ChatMessage(role=Role.SYSTEM, content="Answer only yes or no."),
    ChatMessage(role=Role.USER, content="我喜欢茶"),
]


def make_client(handler, api_key: str = "test-key") -> LLMClient:
    config = LLMSettings(api_key=api_key, api_url="https://llm.test/v1/chat/completions", model="test-model")
    return LLMClient(config, http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


@pytest.mark.asyncio
async def test_chat_returns_first_choice():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"content": "yes"}}]})

    client = make_client(handler)
    assert await client.chat(MESSAGES) == "yes"
    assert seen["auth"] == "Bearer test-key"
    assert seen["body"]["model"] == "test-model"
    assert seen["body"]["messages"] == [
        {"role": "system", "content": "Answer only yes or no."},
        {"role": "user", "content": "我喜欢茶"},
    ]


@pytest.mark.asyncio
async def test_chat_with_empty_choices():
    client = make_client(lambda request: httpx.Response(200, json={"choices": []}))
    assert await client.chat(MESSAGES) == ""


@pytest.mark.asyncio
@pytest.mark.parametrize("api_key", ["", "   "])
async def test_missing_key(api_key):
    def handler(request):
        raise AssertionError("no request expected")

    client = make_client(handler, api_key=api_key)
    with pytest.raises(ConfigurationError) as exc_info:
        await client.chat(MESSAGES)
    assert exc_info.value.message == MISSING_KEY_MESSAGE


@pytest.mark.asyncio
async def test_server_error_carries_status_and_body():
    client = make_client(lambda request: httpx.Response(500, text="upstream broke"))
    with pytest.raises(RemoteServiceError) as exc_info:
        await client.chat(MESSAGES)
    assert exc_info.value.remote_status == 500
    assert exc_info.value.body == "upstream broke"
    assert exc_info.value.is_transient


@pytest.mark.asyncio
async def test_invalid_key():
    client = make_client(lambda request: httpx.Response(401, json={"error": "invalid_api_key"}))
    with pytest.raises(RemoteServiceError) as exc_info:
        await client.chat(MESSAGES)
    assert exc_info.value.message == INVALID_KEY_MESSAGE
    assert not exc_info.value.is_transient


@pytest.mark.asyncio
async def test_transport_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(handler)
    with pytest.raises(RemoteServiceError) as exc_info:
        await client.chat(MESSAGES)
    assert exc_info.value.remote_status is None


@pytest.mark.asyncio
async def test_invalid_json():
    client = make_client(lambda request: httpx.Response(200, text="not json"))
    with pytest.raises(RemoteServiceError):
        await client.chat(MESSAGES)


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [
    ["yes"],
    {"choices": ["yes"]},
    {"choices": {"message": {"content": "yes"}}},
    {"choices": [{"message": "yes"}]},
    {"choices": [{"message": {"content": ["yes"]}}]},
])
async def test_unexpected_body_shape(body):
    client = make_client(lambda request: httpx.Response(200, json=body))
    with pytest.raises(RemoteServiceError) as exc_info:
        await client.chat(MESSAGES)
    assert exc_info.value.message == "Model API returned an unexpected body"
    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
async def test_close_keeps_injected_client():
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
    client = LLMClient(LLMSettings(api_key="k"), http_client=http_client)
    await client.close()
    assert not http_client.is_closed
    await http_client.aclose()
