"""
Multi-provider model gateway for the capture pipeline.

Two capabilities are used:
- vision-to-text: image + goal -> free-text screen description
- text-to-text: free text + schema instructions -> candidate JSON text

Supports:
- Anthropic (Claude models, including custom Anthropic-compatible endpoints)
- OpenAI (GPT-4o family and newer)
"""

from __future__ import annotations

import base64
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

import anthropic
import httpx
import openai

if TYPE_CHECKING:
    from .config import ModelConfig

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """LLM call failed."""
    pass


class Provider(Enum):
    """LLM provider."""

    ANTHROPIC = "anthropic"
    OPENAI = "openai"


@dataclass
class APIResponse:
    """Response from LLM API."""

    content: str
    model: str
    provider: Provider
    input_tokens: int = 0
    output_tokens: int = 0
    stop_reason: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


def _make_timeout(timeout_seconds: float) -> httpx.Timeout:
    # Connecting should fail fast; reading waits for inference.
    return httpx.Timeout(timeout_seconds, connect=min(10.0, timeout_seconds))


class BaseLLMClient(ABC):
    """Abstract base class for LLM clients."""

    provider: Provider

    @abstractmethod
    def complete(
        self,
        messages: list[dict[str, Any]],
        system: str | None = None,
        model: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.0,
    ) -> APIResponse:
        """Get a text completion."""
        pass

    @abstractmethod
    def describe_image(
        self,
        prompt: str,
        image_bytes: bytes,
        mime_type: str,
        system: str | None = None,
        model: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.0,
    ) -> APIResponse:
        """Get a text completion for a prompt accompanied by one image."""
        pass


class AnthropicClient(BaseLLMClient):
    """Anthropic Claude API client."""

    provider = Provider.ANTHROPIC

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout_seconds: float = 60.0,
    ):
        # Support both ANTHROPIC_API_KEY and ANTHROPIC_AUTH_TOKEN
        self.api_key = api_key or os.environ.get("ANTHROPIC_API_KEY") or os.environ.get("ANTHROPIC_AUTH_TOKEN")
        if not self.api_key:
            raise ValueError(
                "Anthropic API key required. Set ANTHROPIC_API_KEY or ANTHROPIC_AUTH_TOKEN environment variable."
            )
        # Support custom base URL for alternative endpoints
        self.base_url = base_url or os.environ.get("ANTHROPIC_BASE_URL")
        client_kwargs: dict[str, Any] = {
            "api_key": self.api_key,
            "timeout": _make_timeout(timeout_seconds),
            # Retries are decided by the pipeline, not the SDK.
            "max_retries": 0,
        }
        if self.base_url:
            client_kwargs["base_url"] = self.base_url
        self.client = anthropic.Anthropic(**client_kwargs)

    def _create(self, request_params: dict[str, Any]) -> APIResponse:
        try:
            response = self.client.messages.create(**request_params)
        except anthropic.APIError as e:
            raise LLMError(f"Anthropic API error: {e}") from e
        except httpx.HTTPError as e:
            raise LLMError(f"Anthropic transport error: {e}") from e

        # Extract text from response blocks
        content = ""
        for block in response.content:
            if block.type == "text":
                content += block.text

        return APIResponse(
            content=content,
            model=request_params["model"],
            provider=Provider.ANTHROPIC,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            stop_reason=response.stop_reason,
        )

    def complete(
        self,
        messages: list[dict[str, Any]],
        system: str | None = None,
        model: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.0,
    ) -> APIResponse:
        model = model or os.environ.get("ANTHROPIC_DEFAULT_HAIKU_MODEL", "claude-haiku-4-5-20251001")

        request_params: dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": messages,
        }
        if system:
            request_params["system"] = system

        return self._create(request_params)

    def describe_image(
        self,
        prompt: str,
        image_bytes: bytes,
        mime_type: str,
        system: str | None = None,
        model: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.0,
    ) -> APIResponse:
        model = model or os.environ.get("ANTHROPIC_DEFAULT_SONNET_MODEL", "claude-sonnet-4-20250514")

        content = [
            {"type": "text", "text": prompt},
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": mime_type,
                    "data": base64.b64encode(image_bytes).decode("ascii"),
                },
            },
        ]
        request_params: dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": content}],
        }
        if system:
            request_params["system"] = system

        return self._create(request_params)


class OpenAIClient(BaseLLMClient):
    """OpenAI GPT API client."""

    provider = Provider.OPENAI

    def __init__(
        self,
        api_key: str | None = None,
        timeout_seconds: float = 60.0,
    ):
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")
        if not self.api_key:
            raise ValueError("OpenAI API key required. Set OPENAI_API_KEY environment variable.")
        self.client = openai.OpenAI(
            api_key=self.api_key,
            timeout=_make_timeout(timeout_seconds),
            max_retries=0,
        )

    def _create(self, model: str, messages: list[dict[str, Any]], max_tokens: int, temperature: float) -> APIResponse:
        try:
            # GPT-5+ and reasoning models use max_completion_tokens instead of max_tokens
            if model.startswith("gpt-5") or model.startswith("o1") or model.startswith("o3"):
                response = self.client.chat.completions.create(
                    model=model,
                    messages=messages,
                    max_completion_tokens=max_tokens,
                    temperature=temperature,
                )
            else:
                response = self.client.chat.completions.create(
                    model=model,
                    messages=messages,
                    max_tokens=max_tokens,
                    temperature=temperature,
                )
        except openai.OpenAIError as e:
            raise LLMError(f"OpenAI API error: {e}") from e
        except httpx.HTTPError as e:
            raise LLMError(f"OpenAI transport error: {e}") from e

        if not response.choices:
            raise LLMError("OpenAI returned no choices")

        return APIResponse(
            content=response.choices[0].message.content or "",
            model=model,
            provider=Provider.OPENAI,
            input_tokens=response.usage.prompt_tokens if response.usage else 0,
            output_tokens=response.usage.completion_tokens if response.usage else 0,
            stop_reason=response.choices[0].finish_reason,
        )

    def complete(
        self,
        messages: list[dict[str, Any]],
        system: str | None = None,
        model: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.0,
    ) -> APIResponse:
        model = model or "gpt-4o-mini"

        # OpenAI uses system message in messages array
        full_messages: list[dict[str, Any]] = []
        if system:
            full_messages.append({"role": "system", "content": system})
        full_messages.extend(messages)

        return self._create(model, full_messages, max_tokens, temperature)

    def describe_image(
        self,
        prompt: str,
        image_bytes: bytes,
        mime_type: str,
        system: str | None = None,
        model: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.0,
    ) -> APIResponse:
        model = model or "gpt-4o"

        data_url = f"data:{mime_type};base64,{base64.b64encode(image_bytes).decode('ascii')}"
        full_messages: list[dict[str, Any]] = []
        if system:
            full_messages.append({"role": "system", "content": system})
        full_messages.append(
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {"type": "image_url", "image_url": {"url": data_url}},
                ],
            }
        )

        return self._create(model, full_messages, max_tokens, temperature)


def init_client(config: "ModelConfig") -> BaseLLMClient | None:
    """
    Build the gateway client for the configured provider.

    Returns:
        A client, or None when the provider has no credentials. None means
        the gateway is unavailable and captures must be refused.
    """
    try:
        if config.provider == Provider.OPENAI.value:
            return OpenAIClient(timeout_seconds=config.timeout_seconds)
        return AnthropicClient(timeout_seconds=config.timeout_seconds)
    except ValueError as e:
        logger.warning(f"Model gateway unavailable: {e}")
        return None


__all__ = [
    "APIResponse",
    "AnthropicClient",
    "BaseLLMClient",
    "LLMError",
    "OpenAIClient",
    "Provider",
    "init_client",
]
