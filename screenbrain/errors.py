"""
Error taxonomy for screenbrain.

Every failure a caller can observe is a ScreenBrainError subclass. The
class name is the machine-checkable ``kind`` reported over HTTP.
"""

from __future__ import annotations

from typing import Any


class ScreenBrainError(Exception):
    """Base error with an HTTP status, an optional pipeline stage and debug detail."""

    status_code: int = 500
    stage: str | None = None

    def __init__(self, message: str, debug: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.debug = debug or {}

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_payload(self, include_debug: bool = False) -> dict[str, Any]:
        """Serialize for a JSON error response."""
        payload: dict[str, Any] = {"ok": False, "error": self.message, "kind": self.kind}
        if include_debug:
            if self.stage:
                payload["debug_stage"] = self.stage
            for key, value in self.debug.items():
                payload[f"debug_{key}"] = value
        return payload


# Caller errors


class InvalidGoal(ScreenBrainError):
    status_code = 400


class MissingImage(ScreenBrainError):
    status_code = 400


class UnsupportedMediaType(ScreenBrainError):
    status_code = 415


class PayloadTooLarge(ScreenBrainError):
    status_code = 413


class MissingSessionKey(ScreenBrainError):
    status_code = 400


# Upstream inference errors


class GatewayUnavailable(ScreenBrainError):
    status_code = 500


class VisionStageFailed(ScreenBrainError):
    status_code = 502
    stage = "vision"


class StructureStageFailed(ScreenBrainError):
    status_code = 502
    stage = "structure"


class InvalidModelOutput(ScreenBrainError):
    status_code = 502
    stage = "json_parse"


__all__ = [
    "ScreenBrainError",
    "InvalidGoal",
    "MissingImage",
    "UnsupportedMediaType",
    "PayloadTooLarge",
    "MissingSessionKey",
    "GatewayUnavailable",
    "VisionStageFailed",
    "StructureStageFailed",
    "InvalidModelOutput",
]
