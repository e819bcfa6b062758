"""
Screenshot-analysis context for the conversational layer.

Turns the latest stored Brain into a bounded system-prompt block so chat
turns can answer about the screen without the image being re-uploaded.
"""

from __future__ import annotations

from .schema import SessionState

MAX_CONTEXT_ELEMENTS = 12
MAX_CONTEXT_STEPS = 8
MAX_CONTEXT_VISION_CHARS = 2000
MAX_CONTEXT_BRAIN_JSON_CHARS = 3500


def _truncate(text: str, limit: int) -> str:
    return text[:limit] + "…" if len(text) > limit else text


def build_screenshot_context(state: SessionState | None) -> str:
    """
    Build the SCREENSHOT_ANALYSIS prompt block.

    Args:
        state: Current session state (None is treated as empty)

    Returns:
        The prompt block, or "" when no capture has been stored
    """
    brain = state.last_result_json if state else None
    if brain is None:
        return ""

    last_goal = state.history[-1].goal if state.history else None
    active_goal = state.active_goal or last_goal
    agent_memo = state.agent_memo.strip() if state.agent_memo and state.agent_memo.strip() else None

    elements_lines = "\n".join(
        f"- {el.label} [{el.type}]" + (f": {el.hint}" if el.hint else "")
        for el in brain.ui_elements[:MAX_CONTEXT_ELEMENTS]
    )
    steps_lines = "\n".join(
        f"{i}. {step}" for i, step in enumerate(brain.steps[:MAX_CONTEXT_STEPS], start=1)
    )
    vision_text = _truncate(brain.vision_text or "", MAX_CONTEXT_VISION_CHARS)
    brain_json = _truncate(brain.model_dump_json(), MAX_CONTEXT_BRAIN_JSON_CHARS)

    return (
        "\n\n"
        "If screenshot analysis context is present, you MUST answer with:\n"
        "1) WHERE the target UI element is (left/right/top/bottom + what it looks like)\n"
        "2) Steps to complete the goal (numbered)\n"
        "Only ask for a new screenshot if the element is NOT visible or need_new_screenshot=true.\n"
        "You have structured analysis from the user's most recent uploaded screenshot. "
        "Use it together with the user's message to answer. "
        "If the user asks for something that requires seeing a *new* screen and the context is stale, "
        "ask for a new screenshot.\n"
        "--- SCREENSHOT_ANALYSIS ---\n"
        f"Goal (from upload): {last_goal or '(unknown)'}\n"
        f"Active goal: {active_goal or '(unknown)'}\n"
        f"Agent memo: {agent_memo or '(none)'}\n"
        f"Screen summary: {brain.screen_summary}\n"
        f"Confidence: {brain.confidence}\n"
        f"Need new screenshot: {'true' if brain.need_new_screenshot else 'false'}\n"
        f"Expected next screen: {brain.expected_next_screen or '(unknown)'}\n"
        "UI elements:\n"
        f"{elements_lines or '(none)'}\n\n"
        "Steps (suggested by analysis):\n"
        f"{steps_lines or '(none)'}\n\n"
        "Vision text (from screenshot):\n"
        f"{vision_text or '(unavailable)'}\n\n"
        "Full structured JSON:\n"
        f"{brain_json}\n"
        "--- END_SCREENSHOT_ANALYSIS ---\n"
    )


__all__ = ["build_screenshot_context"]
