"""
Prompt templates for the two capture stages.

The vision prompt asks for goal-prioritized plain text under fixed headings,
capped per section so the structuring prompt stays within token budget.
The structuring prompt repeats the Brain hard limits verbatim.
"""

from __future__ import annotations

VISION_SYSTEM_PROMPT = (
    "You are describing a UI screenshot for a navigation assistant. TEXT ONLY. NO JSON. NO MARKDOWN.\n"
    "Goal matters: prioritize elements that help achieve the Goal.\n"
    "Use the exact headings below. Keep each bullet short.\n\n"
    "SUMMARY: <1 sentence>\n"
    "PAGE TYPE: <profile/settings/editor/problem/etc>\n"
    "LAYOUT: <header/sidebar/main/right-rail/modals present?>\n"
    "GOAL TARGET (MOST IMPORTANT):\n"
    "- Element: <exact label text if visible>\n"
    "- Where: <left/right/top/bottom + within which panel/card>\n"
    "- Looks like: <button/link/icon, color/shape, any icon>\n"
    "- Nearby: <closest text labels around it>\n"
    "NAV/TABS:\n"
    "- <tab item> - <where>\n"
    "CLICKABLES (TOP 12):\n"
    "- <label> - <type> - <where> - <what it likely does>\n"
    "FIELDS (TOP 10):\n"
    "- <label/placeholder> - <where>\n"
    "STATUS/ERRORS:\n"
    "- <anything notable>\n"
    "TEXT SNIPPETS (TOP 20):\n"
    "- <important visible text>\n\n"
    "If the goal target is NOT visible, say: GOAL TARGET NOT VISIBLE."
)

BRAIN_SCHEMA_TEXT = (
    "Return ONLY valid JSON (no markdown, no prose) matching EXACTLY this schema:\n"
    "{\n"
    '  "screen_summary": string,\n'
    '  "ui_elements": [{"label": string, "type": string, "hint": string}],\n'
    '  "steps": [string],\n'
    '  "confidence": number,\n'
    '  "need_new_screenshot": boolean,\n'
    '  "expected_next_screen": string\n'
    "}\n"
    "Hard limits (must comply):\n"
    "- screen_summary <= 160 chars\n"
    "- ui_elements length between 10 and 14\n"
    "- each ui_elements.label <= 40 chars\n"
    "- steps length between 6 and 10\n"
    "- each step <= 90 chars\n"
    "- confidence is 0..1\n"
)

STRUCTURE_SYSTEM_PROMPT = (
    "You are a strict JSON generator. "
    "Never include <think> tags. Never include markdown. Never include any text outside JSON."
)

STRICT_SUFFIX = (
    " CRITICAL: Keep output short and COMPLETE. "
    "If you are unsure, use placeholders but still return valid JSON that meets the hard limits."
)


def build_vision_prompt(goal: str) -> str:
    """User-turn text sent alongside the image."""
    return f"Goal: {goal}"


def build_structure_system_prompt(strict: bool = False) -> str:
    """System prompt for the structuring stage; strict adds the retry instructions."""
    return STRUCTURE_SYSTEM_PROMPT + STRICT_SUFFIX if strict else STRUCTURE_SYSTEM_PROMPT


def build_structure_prompt(goal: str, vision_text: str) -> str:
    """User-turn text for the structuring stage."""
    return (
        f"{BRAIN_SCHEMA_TEXT}\n"
        f"Goal: {goal}\n\n"
        f"Screenshot description:\n{vision_text}\n"
    )


__all__ = [
    "BRAIN_SCHEMA_TEXT",
    "STRICT_SUFFIX",
    "STRUCTURE_SYSTEM_PROMPT",
    "VISION_SYSTEM_PROMPT",
    "build_structure_prompt",
    "build_structure_system_prompt",
    "build_vision_prompt",
]
