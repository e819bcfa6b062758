"""
Capture orchestration: screenshot + goal -> stored Brain.

Pipeline: validate -> vision (image to text) -> structuring (text to JSON)
-> extraction, with one strict repair attempt -> normalization -> persist.

The run is an explicit state machine:

    AWAITING_VISION -> AWAITING_STRUCTURE -> [AWAITING_REPAIR] -> DONE
                   \\-> FAILED (from any non-terminal stage)

Vision failures are never retried. The only retry is the single strict
structuring attempt after a parse failure.
"""

from __future__ import annotations

import base64
import hashlib
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..config import ScreenBrainConfig, default_config
from ..errors import (
    GatewayUnavailable,
    InvalidGoal,
    InvalidModelOutput,
    MissingImage,
    PayloadTooLarge,
    StructureStageFailed,
    UnsupportedMediaType,
    VisionStageFailed,
)
from ..llm_client import BaseLLMClient, LLMError
from ..session.identity import SessionIdentity, resolve_capture_identity
from ..session.schema import RAW_MODEL_JSON_MAX_CHARS, VISION_TEXT_MAX_CHARS, Brain
from ..session.store import SessionRegistry
from .json_extract import extract_and_parse
from .normalizer import clean_text, normalize_brain
from .prompts import (
    VISION_SYSTEM_PROMPT,
    build_structure_prompt,
    build_structure_system_prompt,
    build_vision_prompt,
)

logger = logging.getLogger(__name__)


class PipelineStage(Enum):
    """Stage of one capture run."""

    AWAITING_VISION = "awaiting_vision"
    AWAITING_STRUCTURE = "awaiting_structure"
    AWAITING_REPAIR = "awaiting_repair"
    DONE = "done"
    FAILED = "failed"


_TRANSITIONS: dict[PipelineStage, set[PipelineStage]] = {
    PipelineStage.AWAITING_VISION: {PipelineStage.AWAITING_STRUCTURE, PipelineStage.FAILED},
    PipelineStage.AWAITING_STRUCTURE: {
        PipelineStage.AWAITING_REPAIR,
        PipelineStage.DONE,
        PipelineStage.FAILED,
    },
    PipelineStage.AWAITING_REPAIR: {PipelineStage.DONE, PipelineStage.FAILED},
    PipelineStage.DONE: set(),
    PipelineStage.FAILED: set(),
}


@dataclass
class PipelineRun:
    """State and intermediate artifacts of one capture run."""

    stage: PipelineStage = PipelineStage.AWAITING_VISION
    history: list[PipelineStage] = field(default_factory=lambda: [PipelineStage.AWAITING_VISION])
    vision_text: str = ""
    vision_text_clamped: str = ""
    raw_json_text: str = ""
    extracted_json: str = ""
    structure_attempts: int = 0

    def advance(self, stage: PipelineStage) -> None:
        """Move to the next stage; illegal transitions are programming errors."""
        if stage not in _TRANSITIONS[self.stage]:
            raise RuntimeError(f"Illegal pipeline transition {self.stage.value} -> {stage.value}")
        self.stage = stage
        self.history.append(stage)

    @property
    def repaired(self) -> bool:
        return PipelineStage.AWAITING_REPAIR in self.history


@dataclass
class ImageUpload:
    """Uploaded image bytes with the caller-declared MIME type."""

    data: bytes
    mime_type: str
    filename: str | None = None

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class CaptureRequest:
    """One capture submission."""

    goal: str | None
    image: ImageUpload | None
    session_key_hint: str | None = None
    stored_token: str | None = None


@dataclass
class CaptureResult:
    """Outcome of a successful capture."""

    identity: SessionIdentity
    goal: str
    image: ImageUpload
    image_hash: str
    brain: Brain
    run: PipelineRun
    vision_model: str
    structure_model: str
    stored: bool = False
    store_error: str | None = None

    @property
    def message(self) -> str:
        return (
            f"Screenshot received. {self.brain.screen_summary} "
            f"Confidence: {self.brain.confidence}. "
            "Use GET /session to fetch full structured data."
        )

    def to_payload(self, debug: bool = False) -> dict[str, Any]:
        """
        Response body. The default form is small and bounded; debug adds the
        full Brain and truncated intermediate artifacts.
        """
        if not debug:
            return {
                "ok": True,
                "session_key": self.identity.key,
                "stored": self.stored,
                "message": self.message,
                "brain_summary": self.brain.screen_summary,
                "confidence": self.brain.confidence,
                "need_new_screenshot": self.brain.need_new_screenshot,
                "expected_next_screen": self.brain.expected_next_screen,
            }

        def trunc(text: str, n: int) -> str:
            return text[:n] + "…" if len(text) > n else text

        return {
            "ok": True,
            "session_key": self.identity.key,
            "stored": self.stored,
            "received": {
                "filename": self.image.filename,
                "type": self.image.mime_type,
                "size": self.image.size,
                "goal": self.goal,
            },
            "brain": self.brain.model_dump(),
            "store_error": self.store_error,
            "debug": {
                "vision_model": self.vision_model,
                "structure_model": self.structure_model,
                "goal": self.goal,
                "image": {
                    "name": self.image.filename,
                    "type": self.image.mime_type,
                    "size": self.image.size,
                },
                "vision_text": trunc(self.run.vision_text, 2000),
                "raw_json_text": trunc(self.run.raw_json_text, 3000),
                "extracted_json": trunc(self.run.extracted_json, 3000),
                "stages": [stage.value for stage in self.run.history],
            },
        }


def hash_image(data: bytes) -> str:
    """Base64 SHA-256 of the image bytes (audit marker, not a dedup key)."""
    return base64.b64encode(hashlib.sha256(data).digest()).decode("ascii")


class CaptureOrchestrator:
    """
    Drives one capture from validation to persistence.

    The gateway client may be None, meaning no model provider is
    configured; every capture then fails with GatewayUnavailable.
    """

    def __init__(
        self,
        client: BaseLLMClient | None,
        registry: SessionRegistry,
        config: ScreenBrainConfig | None = None,
    ):
        self.client = client
        self.registry = registry
        self.config = config or default_config

    @property
    def gateway_available(self) -> bool:
        return self.client is not None

    def validate(self, request: CaptureRequest) -> tuple[str, ImageUpload]:
        """
        Check a request in the documented order.

        Returns:
            (trimmed goal, image)

        Raises:
            GatewayUnavailable, InvalidGoal, MissingImage,
            UnsupportedMediaType, PayloadTooLarge
        """
        limits = self.config.capture

        if not self.gateway_available:
            raise GatewayUnavailable("Missing model gateway (no provider credentials configured).")

        goal = request.goal.strip() if isinstance(request.goal, str) else ""
        if len(goal.split()) < limits.min_goal_words:
            raise InvalidGoal(f"Goal must be at least {limits.min_goal_words} words.")

        image = request.image
        if image is None:
            raise MissingImage("Missing image file.")
        if image.mime_type not in limits.allowed_mime_types:
            raise UnsupportedMediaType("Only PNG/JPG allowed.")
        if image.size > limits.max_image_bytes:
            raise PayloadTooLarge(f"File too large (max {limits.max_image_bytes // (1024 * 1024)}MB).")

        return goal, image

    def capture(self, request: CaptureRequest) -> CaptureResult:
        """
        Run the full pipeline for one request.

        Raises:
            ScreenBrainError subclasses for validation and stage failures.
            Persistence failures do not raise; they yield stored=False.
        """
        goal, image = self.validate(request)
        models = self.config.models

        image_hash = hash_image(image.data)
        identity = resolve_capture_identity(request.session_key_hint, request.stored_token)
        logger.info(
            f"Capture for session {identity.key[:12]} (new={identity.is_new}): "
            f"{image.mime_type}, {image.size} bytes"
        )

        run = PipelineRun()
        self._run_vision(run, goal, image)
        run.advance(PipelineStage.AWAITING_STRUCTURE)
        candidate = self._run_structure(run, goal)

        brain = normalize_brain(candidate).model_copy(
            update={
                "vision_text": run.vision_text[:VISION_TEXT_MAX_CHARS],
                "raw_model_json": run.raw_json_text[:RAW_MODEL_JSON_MAX_CHARS],
            }
        )
        run.advance(PipelineStage.DONE)

        result = CaptureResult(
            identity=identity,
            goal=goal,
            image=image,
            image_hash=image_hash,
            brain=brain,
            run=run,
            vision_model=models.vision_model,
            structure_model=models.structure_model,
        )
        self._persist(result)
        return result

    def _run_vision(self, run: PipelineRun, goal: str, image: ImageUpload) -> None:
        models = self.config.models
        try:
            response = self.client.describe_image(
                prompt=build_vision_prompt(goal),
                image_bytes=image.data,
                mime_type=image.mime_type,
                system=VISION_SYSTEM_PROMPT,
                model=models.vision_model,
                max_tokens=models.vision_max_tokens,
                temperature=models.vision_temperature,
            )
        except LLMError as e:
            run.advance(PipelineStage.FAILED)
            logger.error(f"Vision stage failed: {e}")
            raise VisionStageFailed(
                str(e),
                debug={
                    "vision_model": models.vision_model,
                    "goal": goal,
                    "image": {"type": image.mime_type, "size": image.size},
                },
            ) from e

        run.vision_text = clean_text(response.content.strip())
        # Keep the structuring prompt small
        run.vision_text_clamped = run.vision_text[: self.config.capture.vision_text_clamp]
        logger.info(f"Vision stage produced {len(run.vision_text)} chars")

    def _call_structure(self, run: PipelineRun, goal: str, strict: bool) -> str:
        models = self.config.models
        run.structure_attempts += 1
        try:
            response = self.client.complete(
                messages=[{"role": "user", "content": build_structure_prompt(goal, run.vision_text_clamped)}],
                system=build_structure_system_prompt(strict),
                model=models.structure_model,
                max_tokens=models.structure_max_tokens,
                temperature=models.strict_temperature if strict else models.structure_temperature,
            )
        except LLMError as e:
            run.advance(PipelineStage.FAILED)
            logger.error(f"Structuring stage failed (strict={strict}): {e}")
            raise StructureStageFailed(
                str(e),
                debug={
                    "structure_model": models.structure_model,
                    "vision_text": run.vision_text[:2000],
                },
            ) from e
        return clean_text(response.content.strip())

    def _run_structure(self, run: PipelineRun, goal: str) -> dict[str, Any]:
        """Structuring call plus the single strict retry on a parse failure."""
        run.raw_json_text = self._call_structure(run, goal, strict=False)
        run.extracted_json, candidate = extract_and_parse(run.raw_json_text)
        if candidate is not None:
            return candidate

        logger.warning("Structuring output did not parse; retrying once in strict mode")
        run.advance(PipelineStage.AWAITING_REPAIR)
        run.raw_json_text = self._call_structure(run, goal, strict=True)
        run.extracted_json, candidate = extract_and_parse(run.raw_json_text)
        if candidate is not None:
            return candidate

        run.advance(PipelineStage.FAILED)
        logger.error(f"Model JSON parse failed (truncated): {run.extracted_json[:1200]}")
        raise InvalidModelOutput(
            "Model returned invalid JSON.",
            debug={
                "structure_model": self.config.models.structure_model,
                "raw": run.raw_json_text[:3000],
                "extracted": run.extracted_json[:3000],
                "vision_text": run.vision_text[:2000],
            },
        )

    def _persist(self, result: CaptureResult) -> None:
        """Store the capture; failures are logged and reported, never raised."""
        try:
            store = self.registry.get(result.identity.key)
            store.update(goal=result.goal, image_hash=result.image_hash, brain=result.brain)
            result.stored = True
        except (OSError, ValueError) as e:
            result.store_error = str(e)
            logger.error(f"Session store write failed for {result.identity.key[:12]}: {e}")


__all__ = [
    "CaptureOrchestrator",
    "CaptureRequest",
    "CaptureResult",
    "ImageUpload",
    "PipelineRun",
    "PipelineStage",
    "hash_image",
]
