"""
Shared fixtures for screenbrain tests.

FakeGateway stands in for the model provider: vision and structuring
replies are scripted per test, and an Exception in the script is raised
instead of returned.
"""

import json
from pathlib import Path
from typing import Any

import pytest

from screenbrain.config import ScreenBrainConfig
from screenbrain.llm_client import APIResponse, BaseLLMClient, Provider
from screenbrain.pipeline.capture import CaptureOrchestrator, CaptureRequest, ImageUpload
from screenbrain.server import create_app
from screenbrain.session.store import SessionRegistry

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 256


def make_brain_dict(**overrides: Any) -> dict[str, Any]:
    """A model reply that already satisfies every Brain limit."""
    data = {
        "screen_summary": "Account settings page with a left sidebar",
        "ui_elements": [
            {"label": f"Item {i}", "type": "button", "hint": "sidebar"} for i in range(12)
        ],
        "steps": [f"Step {i}" for i in range(7)],
        "confidence": 0.8,
        "need_new_screenshot": False,
        "expected_next_screen": "Profile editor",
    }
    data.update(overrides)
    return data


class FakeGateway(BaseLLMClient):
    """Scripted model gateway recording every call."""

    provider = Provider.ANTHROPIC

    def __init__(self, vision: list[Any] | None = None, structure: list[Any] | None = None):
        self.vision_script = list(vision or ["SUMMARY: Settings page"])
        self.structure_script = list(structure or [json.dumps(make_brain_dict())])
        self.vision_calls: list[dict[str, Any]] = []
        self.structure_calls: list[dict[str, Any]] = []

    @staticmethod
    def _next(script: list[Any], model: str | None) -> APIResponse:
        item = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(item, Exception):
            raise item
        return APIResponse(content=item, model=model or "fake", provider=Provider.ANTHROPIC)

    def complete(self, messages, system=None, model=None, max_tokens=1024, temperature=0.0):
        self.structure_calls.append(
            {
                "messages": messages,
                "system": system,
                "model": model,
                "max_tokens": max_tokens,
                "temperature": temperature,
            }
        )
        return self._next(self.structure_script, model)

    def describe_image(
        self,
        prompt,
        image_bytes,
        mime_type,
        system=None,
        model=None,
        max_tokens=1024,
        temperature=0.0,
    ):
        self.vision_calls.append(
            {
                "prompt": prompt,
                "mime_type": mime_type,
                "size": len(image_bytes),
                "system": system,
                "model": model,
                "max_tokens": max_tokens,
                "temperature": temperature,
            }
        )
        return self._next(self.vision_script, model)


@pytest.fixture
def sessions_dir(tmp_path) -> Path:
    return tmp_path / "sessions"


@pytest.fixture
def config(sessions_dir) -> ScreenBrainConfig:
    cfg = ScreenBrainConfig()
    cfg.storage.sessions_dir = str(sessions_dir)
    return cfg


@pytest.fixture
def registry(sessions_dir) -> SessionRegistry:
    return SessionRegistry(sessions_dir)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def orchestrator(gateway, registry, config) -> CaptureOrchestrator:
    return CaptureOrchestrator(gateway, registry, config)


@pytest.fixture
def make_gateway():
    """Factory for gateways with scripted replies."""
    return FakeGateway


@pytest.fixture
def brain_dict():
    """Factory for well-formed structuring replies."""
    return make_brain_dict


@pytest.fixture
def png_upload() -> ImageUpload:
    return ImageUpload(data=PNG_BYTES, mime_type="image/png", filename="screen.png")


@pytest.fixture
def make_request(png_upload):
    """Factory for capture requests with sensible defaults."""

    def _make(**overrides: Any) -> CaptureRequest:
        fields = {"goal": "open account settings", "image": png_upload}
        fields.update(overrides)
        return CaptureRequest(**fields)

    return _make


@pytest.fixture
def app(config, gateway, registry):
    flask_app = create_app(config=config, client=gateway, registry=registry)
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()
