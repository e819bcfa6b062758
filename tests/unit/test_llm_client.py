"""Unit tests for the model gateway clients (SDKs mocked, no network)."""

import base64
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import httpx
import pytest

from screenbrain.config import ModelConfig
from screenbrain.llm_client import (
    AnthropicClient,
    LLMError,
    OpenAIClient,
    Provider,
    init_client,
)


def _anthropic_response(text="hello"):
    return SimpleNamespace(
        content=[SimpleNamespace(type="text", text=text)],
        usage=SimpleNamespace(input_tokens=10, output_tokens=5),
        stop_reason="end_turn",
    )


def _openai_response(text="hello"):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=text), finish_reason="stop")],
        usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5),
    )


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("ANTHROPIC_API_KEY", "ANTHROPIC_AUTH_TOKEN", "ANTHROPIC_BASE_URL", "OPENAI_API_KEY"):
        monkeypatch.delenv(name, raising=False)


class TestAnthropicClient:
    """Tests for AnthropicClient."""

    def test_requires_key(self):
        with pytest.raises(ValueError):
            AnthropicClient()

    def test_auth_token_accepted(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_AUTH_TOKEN", "tok")
        assert AnthropicClient().api_key == "tok"

    def test_complete(self):
        client = AnthropicClient(api_key="test-key")
        client.client = MagicMock()
        client.client.messages.create.return_value = _anthropic_response('{"a": 1}')

        response = client.complete(
            [{"role": "user", "content": "hi"}],
            system="be strict",
            model="m",
            max_tokens=900,
            temperature=0.2,
        )

        assert response.content == '{"a": 1}'
        assert response.provider == Provider.ANTHROPIC
        assert response.input_tokens == 10
        kwargs = client.client.messages.create.call_args.kwargs
        assert kwargs["system"] == "be strict"
        assert kwargs["max_tokens"] == 900
        assert kwargs["temperature"] == 0.2

    def test_describe_image_sends_base64_block(self):
        client = AnthropicClient(api_key="test-key")
        client.client = MagicMock()
        client.client.messages.create.return_value = _anthropic_response("SUMMARY: x")

        client.describe_image("Goal: open settings", b"\x89PNG", "image/png", model="m")

        content = client.client.messages.create.call_args.kwargs["messages"][0]["content"]
        image_block = next(block for block in content if block["type"] == "image")
        assert image_block["source"]["media_type"] == "image/png"
        assert base64.b64decode(image_block["source"]["data"]) == b"\x89PNG"

    def test_transport_error_wrapped(self):
        client = AnthropicClient(api_key="test-key")
        client.client = MagicMock()
        client.client.messages.create.side_effect = httpx.ConnectError("boom")

        with pytest.raises(LLMError) as exc_info:
            client.complete([{"role": "user", "content": "hi"}], model="m")
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


class TestOpenAIClient:
    """Tests for OpenAIClient."""

    def test_requires_key(self):
        with pytest.raises(ValueError):
            OpenAIClient()

    def test_complete_prepends_system(self):
        client = OpenAIClient(api_key="test-key")
        client.client = MagicMock()
        client.client.chat.completions.create.return_value = _openai_response()

        client.complete([{"role": "user", "content": "hi"}], system="sys", model="gpt-4o-mini")

        kwargs = client.client.chat.completions.create.call_args.kwargs
        assert kwargs["messages"][0] == {"role": "system", "content": "sys"}
        assert "max_tokens" in kwargs

    def test_reasoning_models_use_max_completion_tokens(self):
        client = OpenAIClient(api_key="test-key")
        client.client = MagicMock()
        client.client.chat.completions.create.return_value = _openai_response()

        client.complete([{"role": "user", "content": "hi"}], model="gpt-5-mini", max_tokens=50)

        kwargs = client.client.chat.completions.create.call_args.kwargs
        assert kwargs["max_completion_tokens"] == 50
        assert "max_tokens" not in kwargs

    def test_describe_image_uses_data_url(self):
        client = OpenAIClient(api_key="test-key")
        client.client = MagicMock()
        client.client.chat.completions.create.return_value = _openai_response()

        client.describe_image("Goal: x y", b"jpegbytes", "image/jpeg", model="gpt-4o")

        user_message = client.client.chat.completions.create.call_args.kwargs["messages"][-1]
        image_part = user_message["content"][1]
        assert image_part["image_url"]["url"].startswith("data:image/jpeg;base64,")

    def test_no_choices(self):
        client = OpenAIClient(api_key="test-key")
        client.client = MagicMock()
        client.client.chat.completions.create.return_value = SimpleNamespace(choices=[], usage=None)

        with pytest.raises(LLMError):
            client.complete([{"role": "user", "content": "hi"}], model="gpt-4o")


class TestInitClient:
    """Tests for init_client."""

    def test_unavailable_without_credentials(self):
        assert init_client(ModelConfig()) is None
        assert init_client(ModelConfig(provider="openai")) is None

    def test_anthropic(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "k")
        assert isinstance(init_client(ModelConfig()), AnthropicClient)

    def test_openai(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "k")
        assert isinstance(init_client(ModelConfig(provider="openai")), OpenAIClient)

    def test_timeout_passed_to_sdk(self):
        with patch("screenbrain.llm_client.anthropic.Anthropic") as sdk:
            AnthropicClient(api_key="k", timeout_seconds=30.0)
        timeout = sdk.call_args.kwargs["timeout"]
        assert isinstance(timeout, httpx.Timeout)
        assert timeout.read == 30.0
        assert timeout.connect == 10.0
        assert sdk.call_args.kwargs["max_retries"] == 0
