"""
Coerce an untrusted candidate object into a schema-conformant Brain.

Every coercer here is total: it accepts any value and returns a valid one.
Fields are coerced independently, so one malformed field never affects
another.
"""

from __future__ import annotations

import json
import math
from typing import Any

from ..session.schema import (
    LABEL_MAX_CHARS,
    STEP_MAX_CHARS,
    STEPS_MAX,
    STEPS_MIN,
    SUMMARY_MAX_CHARS,
    UI_ELEMENTS_MAX,
    UI_ELEMENTS_MIN,
    Brain,
    UIElement,
)

DEFAULT_CONFIDENCE = 0.5
SUMMARY_PLACEHOLDER = "(No summary provided)"
STEP_PLACEHOLDER = "(Step missing from model; user may need a clearer screenshot.)"
PLACEHOLDER_ELEMENT = {"label": "Unknown", "type": "unknown", "hint": ""}

_TRUE_STRINGS = {"true", "yes", "1"}


def clean_text(text: str) -> str:
    """Replace code points that cannot be encoded as UTF-8 (lone surrogates)."""
    return text.encode("utf-8", "replace").decode("utf-8")


def to_str(value: Any, fallback: str = "") -> str:
    """String as-is; None -> fallback; containers -> compact JSON; scalars -> str().

    The result is always UTF-8 encodable.
    """
    if isinstance(value, str):
        return clean_text(value)
    if value is None:
        return fallback
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        try:
            return clean_text(json.dumps(value, separators=(",", ":"), ensure_ascii=False))
        except (TypeError, ValueError, RecursionError):
            return fallback
    return clean_text(str(value))


def clamp01(value: Any) -> float:
    """Numeric coercion clamped to [0, 1]; non-numeric input becomes 0.5."""
    if isinstance(value, bool):
        return DEFAULT_CONFIDENCE
    try:
        x = float(value)
    except (TypeError, ValueError, OverflowError):
        return DEFAULT_CONFIDENCE
    if math.isnan(x):
        return DEFAULT_CONFIDENCE
    return max(0.0, min(1.0, x))


def to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def ensure_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def coerce_ui_element(value: Any) -> UIElement:
    """One element; anything that is not an object becomes a placeholder."""
    if not isinstance(value, dict):
        return UIElement(**PLACEHOLDER_ELEMENT)
    return UIElement(
        label=to_str(value.get("label"), "Unknown")[:LABEL_MAX_CHARS],
        type=to_str(value.get("type"), "unknown"),
        hint=to_str(value.get("hint"), ""),
    )


def coerce_ui_elements(value: Any) -> list[UIElement]:
    elements = [coerce_ui_element(el) for el in ensure_list(value)][:UI_ELEMENTS_MAX]
    while len(elements) < UI_ELEMENTS_MIN:
        elements.append(UIElement(**PLACEHOLDER_ELEMENT))
    return elements


def coerce_steps(value: Any) -> list[str]:
    steps = [to_str(s, "") for s in ensure_list(value)]
    steps = [s[:STEP_MAX_CHARS] for s in steps]
    steps = [s for s in steps if s.strip()][:STEPS_MAX]
    while len(steps) < STEPS_MIN:
        steps.append(STEP_PLACEHOLDER)
    return steps


def coerce_summary(value: Any) -> str:
    summary = to_str(value, "")
    if not summary.strip():
        summary = SUMMARY_PLACEHOLDER
    return summary[:SUMMARY_MAX_CHARS]


def normalize_brain(candidate: Any) -> Brain:
    """
    Build a Brain from a loosely-typed candidate.

    Args:
        candidate: Parsed model output of any shape (non-dicts are treated
            as an empty object)

    Returns:
        A Brain satisfying every schema invariant
    """
    data = candidate if isinstance(candidate, dict) else {}
    return Brain(
        screen_summary=coerce_summary(data.get("screen_summary")),
        ui_elements=coerce_ui_elements(data.get("ui_elements")),
        steps=coerce_steps(data.get("steps")),
        confidence=clamp01(data.get("confidence")),
        need_new_screenshot=to_bool(data.get("need_new_screenshot")),
        expected_next_screen=to_str(data.get("expected_next_screen"), "Unknown"),
    )


__all__ = [
    "DEFAULT_CONFIDENCE",
    "STEP_PLACEHOLDER",
    "SUMMARY_PLACEHOLDER",
    "clamp01",
    "clean_text",
    "coerce_steps",
    "coerce_summary",
    "coerce_ui_element",
    "coerce_ui_elements",
    "ensure_list",
    "normalize_brain",
    "to_bool",
    "to_str",
]
