"""
Session schema models for screenbrain.

Pydantic models for the per-session state document. Field constraints
encode the Brain invariants, so any Brain instance that exists has already
been normalized.
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StringConstraints, field_validator

HISTORY_LIMIT = 10
MEMO_MAX_CHARS = 8000

SUMMARY_MAX_CHARS = 160
LABEL_MAX_CHARS = 40
STEP_MAX_CHARS = 90
UI_ELEMENTS_MIN = 10
UI_ELEMENTS_MAX = 14
STEPS_MIN = 6
STEPS_MAX = 10
VISION_TEXT_MAX_CHARS = 4000
RAW_MODEL_JSON_MAX_CHARS = 6000


class UIElement(BaseModel):
    """One interactive element described on the screen."""

    label: str = Field(max_length=LABEL_MAX_CHARS)
    type: str
    hint: str = ""


StepText = Annotated[str, StringConstraints(max_length=STEP_MAX_CHARS)]


class Brain(BaseModel):
    """
    Structured, schema-conformant analysis of one screenshot + goal.

    ``vision_text`` and ``raw_model_json`` are bounded raw artifacts kept
    for building chat context; the UI never depends on them.
    """

    screen_summary: str = Field(min_length=1, max_length=SUMMARY_MAX_CHARS)
    ui_elements: list[UIElement] = Field(min_length=UI_ELEMENTS_MIN, max_length=UI_ELEMENTS_MAX)
    steps: list[StepText] = Field(min_length=STEPS_MIN, max_length=STEPS_MAX)
    confidence: float = Field(ge=0.0, le=1.0)
    need_new_screenshot: bool = False
    expected_next_screen: str = "Unknown"

    vision_text: str | None = Field(default=None, max_length=VISION_TEXT_MAX_CHARS)
    raw_model_json: str | None = Field(default=None, max_length=RAW_MODEL_JSON_MAX_CHARS)

    @field_validator("steps")
    @classmethod
    def _no_blank_steps(cls, value: list[str]) -> list[str]:
        if any(not step.strip() for step in value):
            raise ValueError("steps must not contain blank entries")
        return value


class HistoryEntry(BaseModel):
    """One past capture, kept for conversational context."""

    # Older records stored the timestamp under "ts".
    timestamp: float = Field(validation_alias=AliasChoices("timestamp", "ts"))
    goal: str
    image_hash: str
    brain: Brain


class SessionState(BaseModel):
    """
    Durable per-session state.

    Assignments are validated so the store can overlay persisted values
    one field at a time and keep the default for any field that fails.
    """

    last_image_hash: str | None = None
    last_result_json: Brain | None = None
    expected_next_screen: str | None = None
    step_index: int = 0
    history: list[HistoryEntry] = Field(default_factory=list)
    # Agent-owned working memory, never rendered directly to the user
    active_goal: str | None = None
    agent_memo: str | None = None
    memo_ts: float | None = None

    model_config = ConfigDict(validate_assignment=True)

    @field_validator("step_index", mode="before")
    @classmethod
    def _clamp_step_index(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool) and value < 0:
            return 0
        return value

    @field_validator("history")
    @classmethod
    def _cap_history(cls, value: list[HistoryEntry]) -> list[HistoryEntry]:
        return value[-HISTORY_LIMIT:]

    @field_validator("agent_memo")
    @classmethod
    def _cap_memo(cls, value: str | None) -> str | None:
        # One extra character for the truncation marker
        if value is not None and len(value) > MEMO_MAX_CHARS + 1:
            return value[:MEMO_MAX_CHARS] + "…"
        return value


__all__ = [
    "Brain",
    "HistoryEntry",
    "SessionState",
    "UIElement",
    "HISTORY_LIMIT",
    "MEMO_MAX_CHARS",
    "SUMMARY_MAX_CHARS",
    "LABEL_MAX_CHARS",
    "STEP_MAX_CHARS",
    "UI_ELEMENTS_MIN",
    "UI_ELEMENTS_MAX",
    "STEPS_MIN",
    "STEPS_MAX",
    "VISION_TEXT_MAX_CHARS",
    "RAW_MODEL_JSON_MAX_CHARS",
]
