"""In-memory session registry with per-session serialization and TTL expiry.

Design notes:
    - An asyncio.Lock guards the session map itself.
    - Every session carries its own asyncio.Lock, so operations on one
      session run one at a time (the tracker's prior-component lookup and
      EMA order depend on it) while different sessions proceed
      concurrently.
    - Sessions idle longer than the TTL are removed by expire_stale().
    - Engines are created through an injected factory; the store never
      decides how an engine is configured.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import AsyncIterator, Callable, Iterable

from prefetch_oracle.core.engine import PrefetchEngine
from prefetch_oracle.domain.enums import StrategyName
from prefetch_oracle.domain.errors import InputValidationError
from prefetch_oracle.domain.interaction import InteractionEvent, InteractionRecord
from prefetch_oracle.domain.patterns import NavigationShapeReport, PatternSnapshot
from prefetch_oracle.domain.prediction import AccuracyReport, PredictionSet
from prefetch_oracle.foundation.clock import utc_now

logger = logging.getLogger(__name__)

EngineFactory = Callable[[], PrefetchEngine]


class SessionEntry:
    """A session's engine plus the bookkeeping the store needs."""

    __slots__ = ("session_id", "engine", "lock", "created_at", "last_active")

    def __init__(self, session_id: str, engine: PrefetchEngine) -> None:
        now = utc_now()
        self.session_id = session_id
        self.engine = engine
        self.lock = asyncio.Lock()
        self.created_at: datetime = now
        self.last_active: datetime = now

    def touch(self) -> None:
        self.last_active = utc_now()

    def is_expired(self, ttl: timedelta) -> bool:
        return (utc_now() - self.last_active) > ttl

    def summary(self) -> dict:
        metrics = self.engine.metrics()
        return {
            "session_id": self.session_id,
            "created_at": self.created_at.isoformat(),
            "last_active": self.last_active.isoformat(),
            "interaction_count": len(self.engine.tracker.history),
            "total_predictions": metrics.total_predictions,
            "accuracy": round(metrics.accuracy, 4),
            "phase": metrics.phase.value,
        }


class SessionStore:
    """Async-safe, in-memory store of per-session PrefetchEngines.

    Args:
        engine_factory: Builds a fresh engine for a new session.
        ttl: Idle time after which a session is eligible for removal.
    """

    def __init__(
        self,
        engine_factory: EngineFactory = PrefetchEngine,
        ttl: timedelta = timedelta(minutes=60),
    ) -> None:
        self._engine_factory = engine_factory
        self._ttl = ttl
        self._lock = asyncio.Lock()
        self._sessions: dict[str, SessionEntry] = {}

    # ── Session access ───────────────────────────────────────────────────

    @asynccontextmanager
    async def session(self, session_id: str) -> AsyncIterator[PrefetchEngine]:
        """Hold *session_id*'s lock and yield its engine (created on demand)."""
        entry = await self._get_or_create(session_id)
        async with entry.lock:
            entry.touch()
            yield entry.engine

    async def _get_or_create(self, session_id: str) -> SessionEntry:
        if not session_id or not session_id.strip():
            raise InputValidationError("session_id", "must be a non-empty string")
        async with self._lock:
            entry = self._sessions.get(session_id)
            if entry is not None and entry.is_expired(self._ttl):
                self._sessions.pop(session_id, None)
                logger.info("Session %s expired; starting fresh", session_id)
                entry = None
            if entry is None:
                entry = SessionEntry(session_id, self._engine_factory())
                self._sessions[session_id] = entry
                logger.info("Created session %s", session_id)
            return entry

    # ── Operations ───────────────────────────────────────────────────────

    async def record(self, session_id: str, event: InteractionEvent) -> InteractionRecord:
        async with self.session(session_id) as engine:
            return engine.record_event(event)

    async def patterns(self, session_id: str) -> PatternSnapshot:
        async with self.session(session_id) as engine:
            return engine.get_current_patterns()

    async def navigation_shape(self, session_id: str) -> NavigationShapeReport:
        async with self.session(session_id) as engine:
            return engine.detect_navigation_shape()

    async def predict(
        self,
        session_id: str,
        candidates: Iterable[str],
        strategy: StrategyName | str | None = None,
    ) -> PredictionSet:
        async with self.session(session_id) as engine:
            return engine.predict(None, candidates, strategy)

    async def report_outcome(
        self,
        session_id: str,
        component_id: str,
        was_predicted: bool | None = None,
    ) -> AccuracyReport:
        async with self.session(session_id) as engine:
            return engine.report_outcome(component_id, was_predicted)

    async def metrics(self, session_id: str) -> AccuracyReport:
        async with self.session(session_id) as engine:
            return engine.metrics()

    async def reset(self, session_id: str) -> bool:
        """Reset a session's engine in place.  Returns False if unknown or expired."""
        async with self._lock:
            entry = self._sessions.get(session_id)
            if entry is not None and entry.is_expired(self._ttl):
                self._sessions.pop(session_id, None)
                logger.info("Session %s expired; nothing to reset", session_id)
                entry = None
        if entry is None:
            return False
        async with entry.lock:
            entry.engine.reset()
            entry.touch()
        logger.info("Reset session %s", session_id)
        return True

    # ── Housekeeping ─────────────────────────────────────────────────────

    async def expire_stale(self) -> list[str]:
        """Remove sessions idle past the TTL; return their ids."""
        async with self._lock:
            expired = [
                sid for sid, entry in self._sessions.items()
                if entry.is_expired(self._ttl)
            ]
            for sid in expired:
                self._sessions.pop(sid, None)
            if expired:
                logger.info("Expired %d idle session(s)", len(expired))
            return expired

    async def active_count(self) -> int:
        async with self._lock:
            return len(self._sessions)

    async def summaries(self) -> list[dict]:
        async with self._lock:
            entries = list(self._sessions.values())
        return [entry.summary() for entry in entries]

    async def contains(self, session_id: str) -> bool:
        async with self._lock:
            return session_id in self._sessions
