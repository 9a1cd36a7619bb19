"""Structured event log for session and exchange lifecycle."""

from __future__ import annotations

from chatrelay.util.logger import logger

# 事件里只记元数据，消息正文不落日志
_CONTENT_FIELDS = frozenset({"content", "raw_text", "user_text", "reply", "history"})


def log_event(event: str, **payload: object) -> None:
    fields = " ".join(f"{key}={value}" for key, value in sorted(payload.items()) if key not in _CONTENT_FIELDS)
    logger.info("event=%s %s", event, fields)
