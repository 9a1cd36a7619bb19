"""Input sanitizer rules: built-in defaults with an optional YAML override and mtime-based cache."""

from __future__ import annotations

from copy import deepcopy
from pathlib import Path
from threading import Lock
from typing import Any

import yaml

from chatrelay.config.settings import settings
from chatrelay.util.logger import logger


_DEFAULT_RULES: dict[str, Any] = {
    "input_sanitizer": {
        # 这些元素连同内部文本一起删除，其余标签只删标签本身
        "non_text_tags": ["script", "style", "textarea", "option", "noscript", "iframe"],
        "drop_patterns": [
            {"id": "comment", "regex": r"<!--.*?(?:-->|\Z)"},
            {"id": "cdata", "regex": r"<!\[CDATA\[.*?(?:\]\]>|\Z)"},
            {"id": "declaration", "regex": r"<![^>]*>"},
            {"id": "processing_instruction", "regex": r"<\?.*?(?:\?>|\Z)"},
        ],
        "tag_regex": r"</?[A-Za-z][^<>]*>",
        "control_chars_regex": r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]",
    },
}

_CACHE_LOCK = Lock()
_CACHE_PATH = ""
_CACHE_MTIME_NS = -1
_CACHE_RULES: dict[str, Any] | None = None


def _resolve_rules_file(path: str) -> Path:
    candidate = Path(path)
    if candidate.is_absolute():
        return candidate
    app_root = Path(__file__).resolve().parents[2]
    candidates = [Path.cwd() / candidate, app_root / candidate]
    for item in candidates:
        if item.exists():
            return item.resolve()
    return candidates[-1].resolve()


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            base[key] = _deep_merge(dict(base[key]), value)
        else:
            base[key] = value
    return base


def load_sanitizer_rules(path: str | None = None) -> dict[str, Any]:
    global _CACHE_PATH, _CACHE_MTIME_NS, _CACHE_RULES

    configured = (path if path is not None else settings.sanitizer_rules_path).strip()
    if not configured:
        return deepcopy(_DEFAULT_RULES)

    rules_path = _resolve_rules_file(configured)
    path_key = str(rules_path)
    mtime_ns = rules_path.stat().st_mtime_ns if rules_path.exists() else -1

    with _CACHE_LOCK:
        if _CACHE_RULES is not None and _CACHE_PATH == path_key and _CACHE_MTIME_NS == mtime_ns:
            return deepcopy(_CACHE_RULES)

        rules = deepcopy(_DEFAULT_RULES)
        if rules_path.exists():
            raw = yaml.safe_load(rules_path.read_text(encoding="utf-8")) or {}
            if not isinstance(raw, dict):
                raise ValueError(f"sanitizer rules file must be a mapping: {rules_path}")
            rules = _deep_merge(rules, raw)
            logger.info("sanitizer rules loaded path=%s", rules_path)
        else:
            logger.info("sanitizer rules file not found, using defaults path=%s", rules_path)

        _CACHE_PATH = path_key
        _CACHE_MTIME_NS = mtime_ns
        _CACHE_RULES = rules
        return deepcopy(rules)
