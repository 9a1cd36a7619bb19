"""Google Gemini generateContent adapter."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any
from urllib.parse import quote

from chatrelay.adapters.base import ProviderAdapter
from chatrelay.core.models import ChatTurn, ModelOption


GOOGLE_MODELS: tuple[ModelOption, ...] = (
    ModelOption(value="gemini-2.5-flash-lite", label="Gemini 2.5 Flash-Lite"),
    ModelOption(value="gemini-2.5-flash", label="Gemini 2.5 Flash"),
    ModelOption(value="gemini-3-flash-preview", label="Gemini 3 Flash Preview"),
)

_MODEL_NAME_PREFIX = "models/"
_ROLE_MAP = {"user": "user", "assistant": "model"}


class GoogleAdapter(ProviderAdapter):
    key = "google"
    credential_setting = "google_api_key"
    base_url_setting = "google_base_url"
    allowed_models = GOOGLE_MODELS

    def chat_url(self, model_id: str) -> str:
        return f"{self.base_url}/models/{quote(model_id, safe='-._')}:generateContent"

    def auth_headers(self, api_key: str) -> dict[str, str]:
        # 用 header 传 key，避免出现在 URL 与日志里
        return {"x-goog-api-key": api_key}

    def build_payload(self, turns: Sequence[ChatTurn], model_id: str) -> dict[str, Any]:
        return {
            "contents": [
                {"role": _ROLE_MAP[turn.role], "parts": [{"text": turn.content}]}
                for turn in turns
            ]
        }

    def extract_reply(self, data: dict[str, Any]) -> str | None:
        candidates = data.get("candidates")
        if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
            return None
        content = candidates[0].get("content")
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            return None
        texts = [part["text"] for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str)]
        return "".join(texts) if texts else None

    async def list_models(self) -> list[ModelOption]:
        api_key = self._require_api_key()
        data = await self._get_json(
            f"{self.base_url}/models",
            self.auth_headers(api_key),
            params={"pageSize": "1000"},
        )
        entries = data.get("models")
        live_ids: list[str] = []
        if isinstance(entries, list):
            for item in entries:
                if not isinstance(item, dict):
                    continue
                name = str(item.get("name") or "")
                if name.startswith(_MODEL_NAME_PREFIX):
                    name = name[len(_MODEL_NAME_PREFIX):]
                live_ids.append(name)
        return self._filter_allowed(live_ids)
