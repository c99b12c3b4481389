"""Ephemeral session storage for the chat runtime.

An in-memory dict of session_id -> Session with sliding expiry: every
write pushes the entry's deadline to `now + ttl`. Expired entries are
treated as misses on access and removed by `sweep()`, which the server
runs periodically via `run_sweeper()`.

Nothing survives a process restart. The store is safe under asyncio's
single-threaded scheduling; scaling past one process needs an external
TTL store (e.g. Redis) behind the same four operations.

Callers receive live Session objects, not copies. All mutation should go
through `add_message` and `update_context` so the expiry clock and
history cap stay correct.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional
from uuid import uuid4

from ..models.session_models import LearnerData, Session, SessionStats, Turn, utc_now_iso


logger = logging.getLogger(__name__)


DEFAULT_HISTORY_CAP = 20


@dataclass
class _Entry:
    session: Session
    expires_at: float


class SessionStore:
    """In-memory TTL session store.

    Parameters
    ----------
    ttl_seconds:
        Lifetime of a session measured from its last write.
    history_cap:
        Maximum number of turns kept per session; older turns are dropped.
    clock:
        Monotonic time source in seconds. Injectable for tests.
    """

    def __init__(
        self,
        ttl_seconds: float = 3600,
        history_cap: int = DEFAULT_HISTORY_CAP,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if history_cap <= 0:
            raise ValueError("history_cap must be positive")

        self.ttl_seconds = ttl_seconds
        self.history_cap = history_cap
        self._clock = clock
        self._entries: Dict[str, _Entry] = {}
        self._hits = 0
        self._misses = 0

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def get_or_create(
        self,
        session_id: Optional[str] = None,
        learner_patch: Optional[Mapping[str, Any]] = None,
    ) -> Session:
        """Return the live session for `session_id`, creating one on a miss.

        On a hit, `learner_patch` is shallow-merged into the stored learner
        record (later keys win). On a miss, a new session with a fresh id is
        created from the patch.
        """
        patch = dict(learner_patch or {})

        entry = self._live_entry(session_id) if session_id else None
        if entry is not None:
            if patch:
                entry.session.learner = entry.session.learner.model_copy(update=patch)
                self._touch(entry)
            return entry.session

        return self._create(patch)

    def add_message(
        self,
        session_id: str,
        role: str,
        text: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Append a turn. Returns False (no-op) if the session is unknown."""
        entry = self._live_entry(session_id)
        if entry is None:
            logger.warning("[SESSION] add_message on unknown session %s", session_id)
            return False

        session = entry.session
        session.history.append(Turn(role=role, text=text, metadata=dict(metadata or {})))
        session.message_count += 1

        overflow = len(session.history) - self.history_cap
        if overflow > 0:
            session.history = session.history[overflow:]
            logger.debug("[SESSION] Dropped %d old turn(s) from %s", overflow, session_id)

        self._touch(entry)
        logger.debug(
            "[SESSION] Added %s turn to %s (message_count=%d)",
            role,
            session_id,
            session.message_count,
        )
        return True

    def update_context(self, session_id: str, topic: Optional[str], context: Optional[str]) -> bool:
        """Overwrite the current topic/context. No-op on an unknown session."""
        entry = self._live_entry(session_id)
        if entry is None:
            return False

        entry.session.current_topic = topic
        entry.session.current_context = context
        self._touch(entry)
        logger.debug("[SESSION] Context for %s -> topic=%r context=%r", session_id, topic, context)
        return True

    def stats(self, session_id: str) -> Optional[SessionStats]:
        """Read-only counters for a session, or None when absent."""
        entry = self._live_entry(session_id)
        if entry is None:
            return None

        session = entry.session
        created = datetime.fromisoformat(session.created_at)
        duration = datetime.now(timezone.utc) - created
        return SessionStats(
            message_count=session.message_count,
            conversation_length=len(session.history),
            duration=max(0, int(duration.total_seconds() * 1000)),
            last_activity=session.last_activity,
            current_topic=session.current_topic,
            current_context=session.current_context,
        )

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def sweep(self) -> int:
        """Remove every expired entry and return how many were removed."""
        now = self._clock()
        expired = [sid for sid, entry in self._entries.items() if entry.expires_at <= now]
        for sid in expired:
            del self._entries[sid]
            logger.debug("[SESSION] Session expired %s", sid)
        return len(expired)

    def flush_all(self) -> int:
        """Drop all sessions, expired or not. Returns the number dropped."""
        count = len(self._entries)
        logger.info("[SESSION] Manual session cleanup, active_sessions=%d", count)
        self._entries.clear()
        return count

    def health_info(self) -> Dict[str, Any]:
        now = self._clock()
        active = sum(1 for entry in self._entries.values() if entry.expires_at > now)
        return {
            "active_sessions": active,
            "cache_stats": {
                "hits": self._hits,
                "misses": self._misses,
                "keys": len(self),
            },
        }

    async def run_sweeper(self, interval_seconds: float) -> None:
        """Sweep expired sessions every `interval_seconds` until cancelled."""
        while True:
            await asyncio.sleep(interval_seconds)
            removed = self.sweep()
            if removed:
                logger.info("[SESSION] Sweep removed %d expired session(s)", removed)

    def __len__(self) -> int:
        return len(self._entries)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _create(self, learner_patch: Dict[str, Any]) -> Session:
        session_id = str(uuid4())
        while session_id in self._entries:
            session_id = str(uuid4())

        learner = LearnerData(**{k: v for k, v in learner_patch.items() if v is not None})
        session = Session(id=session_id, learner=learner)

        entry = _Entry(session=session, expires_at=0.0)
        self._entries[session_id] = entry
        self._touch(entry)

        logger.info(
            "[SESSION] New session created %s learner_id=%s learner_name=%s",
            session_id,
            learner.id,
            learner.name,
        )
        return session

    def _live_entry(self, session_id: Optional[str]) -> Optional[_Entry]:
        entry = self._entries.get(session_id) if session_id else None
        if entry is not None and entry.expires_at <= self._clock():
            del self._entries[session_id]
            logger.debug("[SESSION] Session expired %s", session_id)
            entry = None

        if entry is None:
            self._misses += 1
        else:
            self._hits += 1
        return entry

    def _touch(self, entry: _Entry) -> None:
        entry.expires_at = self._clock() + self.ttl_seconds
        entry.session.last_activity = utc_now_iso()
