"""Session store abstraction for conversation history."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Sequence
from contextlib import AbstractAsyncContextManager

from chatrelay.core.models import ChatTurn


SESSION_ID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$", re.IGNORECASE)


def is_well_formed_session_id(value: object) -> bool:
    return isinstance(value, str) and bool(SESSION_ID_RE.match(value))


class SessionStore(ABC):
    @abstractmethod
    def create(self) -> str:
        """Register an empty history under a fresh identifier and return it."""

    @abstractmethod
    def append(self, session_id: str, turns: Sequence[ChatTurn]) -> None:
        """Add ``turns`` to the end of the history as one indivisible unit."""

    @abstractmethod
    def history_of(self, session_id: str) -> tuple[ChatTurn, ...]:
        pass

    @abstractmethod
    def exclusive(self, session_id: str) -> AbstractAsyncContextManager[None]:
        """Hold the per-session lock; unrelated sessions are never blocked."""

    @abstractmethod
    def prune(self, now: float | None = None) -> int:
        """Drop idle sessions; return how many were removed."""

    @abstractmethod
    def __contains__(self, session_id: object) -> bool:
        pass

    @abstractmethod
    def __len__(self) -> int:
        pass
