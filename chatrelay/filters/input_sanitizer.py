"""Cleans untrusted user text before it is stored in history or sent to a provider."""

from __future__ import annotations

import re

from chatrelay.config.sanitizer_rules import load_sanitizer_rules
from chatrelay.config.settings import settings
from chatrelay.core.errors import EmptyMessageError, InvalidMessageError, TooLongError
from chatrelay.util.logger import logger


class InputSanitizer:
    name = "input_sanitizer"

    def __init__(self, max_length: int | None = None) -> None:
        self.max_length = int(max_length if max_length is not None else settings.max_message_length)

        rules = load_sanitizer_rules().get(self.name, {})
        flags = re.IGNORECASE | re.DOTALL
        self._non_text_patterns = [
            re.compile(rf"<\s*{re.escape(str(tag))}\b[^>]*>.*?(?:<\s*/\s*{re.escape(str(tag))}\s*>|\Z)", flags)
            for tag in rules.get("non_text_tags", [])
        ]
        self._drop_patterns = self._compile_patterns(rules.get("drop_patterns", []), flags)
        self._tag_pattern = re.compile(str(rules.get("tag_regex", r"</?[A-Za-z][^<>]*>")), flags)
        self._control_pattern = re.compile(str(rules.get("control_chars_regex", r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")))

    @staticmethod
    def _compile_patterns(items: list[dict] | list[str], flags: int) -> list[re.Pattern[str]]:
        compiled: list[re.Pattern[str]] = []
        for item in items:
            if isinstance(item, dict):
                regex = item.get("regex")
            else:
                regex = item
            if not regex:
                continue
            compiled.append(re.compile(str(regex), flags))
        return compiled

    def strip_markup(self, text: str) -> str:
        # 反复处理直到稳定，防止 "<scr<b>ipt>" 或 "<\x01script>" 这类拆开的标签被拼回去
        current = text
        while True:
            updated = self._control_pattern.sub("", current)
            for pattern in self._non_text_patterns:
                updated = pattern.sub("", updated)
            for pattern in self._drop_patterns:
                updated = pattern.sub("", updated)
            updated = self._tag_pattern.sub("", updated)
            if updated == current:
                break
            current = updated
        return current

    def contains_markup(self, text: str) -> bool:
        return bool(self._tag_pattern.search(text))

    def sanitize(self, raw: object) -> str:
        if not isinstance(raw, str):
            logger.info("sanitizer reject non-text input type=%s", type(raw).__name__)
            raise InvalidMessageError()

        cleaned = self.strip_markup(raw).strip()
        if not cleaned:
            raise EmptyMessageError()
        if len(cleaned) > self.max_length:
            logger.info("sanitizer reject oversize message length=%d max=%d", len(cleaned), self.max_length)
            raise TooLongError(self.max_length)
        if cleaned != raw.strip():
            logger.debug("sanitizer stripped markup before=%d after=%d", len(raw), len(cleaned))
        return cleaned
