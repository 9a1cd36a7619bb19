"""Storage backend selection helpers."""

from __future__ import annotations

from chatrelay.config.settings import settings
from chatrelay.storage.memory_store import InMemorySessionStore
from chatrelay.storage.session_store import SessionStore


def create_session_store() -> SessionStore:
    return InMemorySessionStore(
        max_sessions=settings.max_sessions,
        idle_ttl_seconds=settings.session_idle_ttl_seconds,
    )
