"""Per-session durable state: schema, store, identity and chat context."""

from .context import build_screenshot_context
from .identity import SessionIdentity, resolve_capture_identity, resolve_request_key
from .schema import Brain, HistoryEntry, SessionState, UIElement
from .store import SessionRegistry, SessionStore, merge_on_read

__all__ = [
    "Brain",
    "HistoryEntry",
    "SessionIdentity",
    "SessionRegistry",
    "SessionState",
    "SessionStore",
    "UIElement",
    "build_screenshot_context",
    "merge_on_read",
    "resolve_capture_identity",
    "resolve_request_key",
]
