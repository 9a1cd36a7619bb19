"""Log-backed counters for relay outcomes (rejections, provider calls)."""

from __future__ import annotations

import threading
from collections import Counter

from chatrelay.util.logger import logger

_counters: Counter = Counter()
_counters_lock = threading.Lock()


def _counter_key(name: str, labels: dict | None) -> tuple:
    return (name, tuple(sorted((labels or {}).items())))


def emit_counter(name: str, value: int = 1, labels: dict | None = None) -> None:
    with _counters_lock:
        _counters[_counter_key(name, labels)] += value
    logger.info("metric counter name=%s value=%s labels=%s", name, value, labels or {})


def counter_value(name: str, labels: dict | None = None) -> int:
    with _counters_lock:
        return _counters[_counter_key(name, labels)]


def reset_counters() -> None:
    with _counters_lock:
        _counters.clear()
