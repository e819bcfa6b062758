"""
Session identity resolution.

A capture ties itself to the caller's durable identity. The explicit hint
(the chat agent's instance name) wins over a previously issued cookie
token; with neither present a fresh identifier is minted.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from ..errors import MissingSessionKey


@dataclass(frozen=True)
class SessionIdentity:
    """Resolved session key for a capture."""

    key: str
    is_new: bool
    # True when an explicit hint was supplied by the caller
    from_hint: bool = False

    @property
    def should_issue_token(self) -> bool:
        """Whether the persisted token must be (re)sent to the caller."""
        return self.is_new or self.from_hint


def _clean(value: str | None) -> str:
    return value.strip() if isinstance(value, str) else ""


def mint_session_key() -> str:
    return str(uuid.uuid4())


def resolve_capture_identity(hint: str | None, stored_token: str | None) -> SessionIdentity:
    """
    Resolve the session key for a capture.

    Args:
        hint: Explicit caller-supplied identity (preferred)
        stored_token: Previously issued cookie-style token

    Returns:
        SessionIdentity. is_new is True when no token was stored, or when
        the hint differs from the stored token so the token gets refreshed
        instead of silently diverging.
    """
    hint = _clean(hint)
    token = _clean(stored_token)

    if hint:
        return SessionIdentity(key=hint, is_new=(not token or hint != token), from_hint=True)
    if token:
        return SessionIdentity(key=token, is_new=False)
    return SessionIdentity(key=mint_session_key(), is_new=True)


def resolve_request_key(
    query: str | None,
    header: str | None,
    stored_token: str | None,
) -> str:
    """
    Resolve the session key for read/reset/memo/step requests.

    Precedence: query parameter, then header, then stored token.

    Raises:
        MissingSessionKey: If all three sources are empty
    """
    for candidate in (query, header, stored_token):
        key = _clean(candidate)
        if key:
            return key
    raise MissingSessionKey("No sid provided (query/header/cookie).")


__all__ = [
    "SessionIdentity",
    "mint_session_key",
    "resolve_capture_identity",
    "resolve_request_key",
]
