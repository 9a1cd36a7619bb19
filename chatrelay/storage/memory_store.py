"""Process-local session store with LRU capacity and idle expiry."""

from __future__ import annotations

import asyncio
import threading
import time
import uuid
from collections import OrderedDict
from collections.abc import AsyncIterator, Callable, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from chatrelay.core.errors import UnknownSessionError
from chatrelay.core.models import ChatTurn
from chatrelay.observability.logging import log_event
from chatrelay.storage.session_store import SessionStore
from chatrelay.util.logger import logger


@dataclass(slots=True)
class _SessionRecord:
    created_at: float
    last_seen: float
    turns: list[ChatTurn] = field(default_factory=list)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    active: int = 0


class InMemorySessionStore(SessionStore):
    def __init__(
        self,
        max_sessions: int = 10_000,
        idle_ttl_seconds: int = 86_400,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_sessions = max(1, int(max_sessions))
        self.idle_ttl_seconds = int(idle_ttl_seconds)
        self._clock = clock
        self._sessions: OrderedDict[str, _SessionRecord] = OrderedDict()
        self._lock = threading.Lock()

    def _get(self, session_id: str) -> _SessionRecord:
        record = self._sessions.get(session_id)
        if record is None:
            raise UnknownSessionError(session_id)
        record.last_seen = self._clock()
        self._sessions.move_to_end(session_id)
        return record

    def _evict_for_capacity(self) -> None:
        while len(self._sessions) >= self.max_sessions:
            victim = next((sid for sid, rec in self._sessions.items() if rec.active == 0), None)
            if victim is None:
                logger.warning("session store full and every session is mid-exchange size=%d", len(self._sessions))
                return
            self._sessions.pop(victim)
            log_event("session_evicted", session_id=victim, reason="capacity")

    def create(self) -> str:
        with self._lock:
            session_id = str(uuid.uuid4())
            while session_id in self._sessions:
                session_id = str(uuid.uuid4())
            self._evict_for_capacity()
            now = self._clock()
            self._sessions[session_id] = _SessionRecord(created_at=now, last_seen=now)
        logger.debug("session created session_id=%s total=%d", session_id, len(self._sessions))
        return session_id

    def append(self, session_id: str, turns: Sequence[ChatTurn]) -> None:
        items = list(turns)
        with self._lock:
            record = self._get(session_id)
            record.turns.extend(items)

    def history_of(self, session_id: str) -> tuple[ChatTurn, ...]:
        with self._lock:
            return tuple(self._get(session_id).turns)

    @asynccontextmanager
    async def exclusive(self, session_id: str) -> AsyncIterator[None]:
        with self._lock:
            record = self._get(session_id)
            record.active += 1
        try:
            async with record.lock:
                yield
        finally:
            with self._lock:
                record.active -= 1
                record.last_seen = self._clock()

    def prune(self, now: float | None = None) -> int:
        if self.idle_ttl_seconds <= 0:
            return 0
        current = self._clock() if now is None else now
        cutoff = current - self.idle_ttl_seconds
        with self._lock:
            expired = [
                sid for sid, rec in self._sessions.items() if rec.last_seen < cutoff and rec.active == 0
            ]
            for sid in expired:
                self._sessions.pop(sid, None)
        for sid in expired:
            log_event("session_evicted", session_id=sid, reason="idle")
        return len(expired)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
