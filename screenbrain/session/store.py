"""
Session Store for screenbrain.

Manages durable per-session state in <sessions_dir>/<sha256(key)>.json.

Each session key maps to exactly one SessionStore instance (handed out by
SessionRegistry). A store runs its operations one at a time under its own
lock, so update and reset are atomic to every observer of that key.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
import threading
import time
import weakref
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .schema import (
    HISTORY_LIMIT,
    MEMO_MAX_CHARS,
    Brain,
    HistoryEntry,
    SessionState,
)

logger = logging.getLogger(__name__)


def session_filename(session_key: str) -> str:
    """File name for a session key; hashing keeps arbitrary keys inside the directory."""
    return hashlib.sha256(session_key.encode("utf-8")).hexdigest() + ".json"


def merge_on_read(stored: Any) -> SessionState:
    """
    Build a SessionState from a persisted document of any vintage.

    Starts from the default state and overlays persisted fields one at a
    time. A field that is missing keeps its default; a field that no longer
    validates is dropped with a warning. History entries are checked one by
    one so a single bad entry does not cost the rest.
    """
    state = SessionState()
    if not isinstance(stored, dict):
        if stored is not None:
            logger.warning(f"Ignoring non-object session document: {type(stored).__name__}")
        return state

    for name in SessionState.model_fields:
        if name not in stored:
            continue
        value = stored[name]
        if name == "history" and isinstance(value, list):
            value = _valid_history_entries(value)
        try:
            setattr(state, name, value)
        except ValidationError as e:
            logger.warning(f"Dropping invalid session field {name!r}: {e.error_count()} error(s)")

    return state


def _valid_history_entries(entries: list[Any]) -> list[HistoryEntry]:
    valid = []
    for entry in entries:
        try:
            valid.append(HistoryEntry.model_validate(entry))
        except ValidationError:
            logger.warning("Dropping invalid history entry")
    return valid


def clamp_memo(memo: str) -> str:
    """Truncate a memo to MEMO_MAX_CHARS, marking the cut with an ellipsis."""
    if len(memo) > MEMO_MAX_CHARS:
        return memo[:MEMO_MAX_CHARS] + "…"
    return memo


def coerce_step_index(value: Any) -> int:
    """Integer step pointer; non-numeric input becomes 0, negatives clamp to 0."""
    if isinstance(value, bool):
        return 0
    try:
        step = int(value)
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(0, step)


class SessionStore:
    """
    Durable state for one session key.

    Operations: read, update, reset, write_memo, set_step. Every operation
    reads the document from disk under the store lock, so there is no cache
    to go stale and a store re-created after a restart sees the same state.
    """

    def __init__(self, session_key: str, base_dir: Path):
        """
        Initialize the store.

        Args:
            session_key: Key routing all state for one end user
            base_dir: Directory holding one JSON document per session
        """
        self.session_key = session_key
        self.base_dir = base_dir
        self.path = base_dir / session_filename(session_key)
        self._lock = threading.Lock()

    # =========================================================================
    # Operations
    # =========================================================================

    def read(self) -> SessionState:
        """Return the current state, defaulting missing or invalid fields."""
        with self._lock:
            return self._load()

    def update(self, goal: str, image_hash: str, brain: Brain) -> SessionState:
        """
        Record a new capture.

        Replaces the latest-capture fields, resets the step pointer, clears
        the agent memo (it was scoped to the previous screen) and appends a
        history entry, evicting the oldest beyond HISTORY_LIMIT.
        """
        with self._lock:
            state = self._load()
            entry = HistoryEntry(
                timestamp=time.time(),
                goal=goal,
                image_hash=image_hash,
                brain=brain,
            )
            state.last_image_hash = image_hash
            state.last_result_json = brain
            state.expected_next_screen = brain.expected_next_screen
            state.step_index = 0
            state.active_goal = goal
            state.agent_memo = None
            state.memo_ts = None
            state.history = [*state.history, entry][-HISTORY_LIMIT:]
            self._save(state)
            logger.info(
                f"Stored capture for session {self.path.stem[:12]}: history_len={len(state.history)}"
            )
            return state

    def reset(self) -> SessionState:
        """Replace the whole state with the default empty state."""
        with self._lock:
            state = SessionState()
            self._save(state)
            logger.info(f"Reset session {self.path.stem[:12]}")
            return state

    def write_memo(self, memo: Any, mode: Any = "replace") -> SessionState:
        """
        Set or append the hidden agent memo.

        Args:
            memo: Memo text; non-string input is treated as empty
            mode: "append" joins onto the existing memo with a newline,
                anything else replaces it

        Returns:
            The updated state. A memo that is blank after trimming is stored
            as None; memo_ts is updated either way.
        """
        incoming = memo if isinstance(memo, str) else ""
        with self._lock:
            state = self._load()
            if mode == "append":
                merged = f"{state.agent_memo}\n{incoming}" if state.agent_memo else incoming
            else:
                merged = incoming
            clamped = clamp_memo(merged)
            state.agent_memo = clamped if clamped.strip() else None
            state.memo_ts = time.time()
            self._save(state)
            return state

    def set_step(self, step_index: Any) -> SessionState:
        """Overwrite the step pointer; negatives clamp to 0."""
        with self._lock:
            state = self._load()
            state.step_index = coerce_step_index(step_index)
            self._save(state)
            return state

    # =========================================================================
    # Persistence
    # =========================================================================

    def _load(self) -> SessionState:
        if not self.path.exists():
            return SessionState()
        try:
            with open(self.path) as f:
                data = json.load(f)
        except json.JSONDecodeError:
            logger.warning(f"Session document {self.path.name} is corrupt; reading default state")
            return SessionState()
        return merge_on_read(data)

    def _save(self, state: SessionState) -> None:
        """
        Atomically write the session document.

        Uses write-to-temp-then-rename pattern to prevent corruption.
        """
        self.base_dir.mkdir(parents=True, exist_ok=True)

        # Write to temp file in same directory
        fd, temp_path = tempfile.mkstemp(
            suffix=".tmp",
            prefix="session_",
            dir=self.base_dir,
        )
        try:
            with os.fdopen(fd, "w") as f:
                f.write(state.model_dump_json(indent=2))
            # Atomic rename
            os.replace(temp_path, self.path)
        except Exception:
            # Clean up temp file on error
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise


class SessionRegistry:
    """
    Keyed registry of SessionStore instances.

    get() returns the same store for a key while anyone still holds it,
    which is what serializes all operations on that key. Stores are held
    weakly, so idle keys are released. The registry lock only guards the
    key -> store map.
    """

    def __init__(self, base_dir: Path | None = None):
        """
        Initialize the registry.

        Args:
            base_dir: Directory for session documents (default: ~/.screenbrain/sessions)
        """
        self.base_dir = base_dir or (Path.home() / ".screenbrain" / "sessions")
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self._stores: weakref.WeakValueDictionary[str, SessionStore] = weakref.WeakValueDictionary()
        self._lock = threading.Lock()

    def get(self, session_key: str) -> SessionStore:
        """Get the one store for a session key, creating it on first use."""
        with self._lock:
            store = self._stores.get(session_key)
            if store is None:
                store = SessionStore(session_key, self.base_dir)
                self._stores[session_key] = store
            return store

    def __len__(self) -> int:
        return len(self._stores)


__all__ = [
    "SessionRegistry",
    "SessionStore",
    "clamp_memo",
    "coerce_step_index",
    "merge_on_read",
    "session_filename",
]
