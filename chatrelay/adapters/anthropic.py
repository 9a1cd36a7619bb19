"""Anthropic Messages API adapter."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from chatrelay.adapters.base import ProviderAdapter
from chatrelay.config.settings import settings
from chatrelay.core.models import ChatTurn, ModelOption


ANTHROPIC_MODELS: tuple[ModelOption, ...] = (
    ModelOption(value="claude-haiku-4-5-20251001", label="Claude Haiku 4.5"),
)


class AnthropicAdapter(ProviderAdapter):
    key = "anthropic"
    credential_setting = "anthropic_api_key"
    base_url_setting = "anthropic_base_url"
    allowed_models = ANTHROPIC_MODELS

    def chat_url(self, model_id: str) -> str:
        return f"{self.base_url}/messages"

    def auth_headers(self, api_key: str) -> dict[str, str]:
        return {"x-api-key": api_key, "anthropic-version": settings.anthropic_version}

    def build_payload(self, turns: Sequence[ChatTurn], model_id: str) -> dict[str, Any]:
        return {
            "model": model_id,
            "max_tokens": int(settings.max_output_tokens),
            "messages": [{"role": turn.role, "content": turn.content} for turn in turns],
        }

    def extract_reply(self, data: dict[str, Any]) -> str | None:
        blocks = data.get("content")
        if not isinstance(blocks, list):
            return None
        texts = [
            block["text"]
            for block in blocks
            if isinstance(block, dict) and block.get("type", "text") == "text" and isinstance(block.get("text"), str)
        ]
        return "".join(texts) if texts else None
