"""OpenAI-compatible chat completions: OpenAI itself and xAI."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from chatrelay.adapters.base import ProviderAdapter
from chatrelay.config.settings import settings
from chatrelay.core.models import ChatTurn, ModelOption


OPENAI_MODELS: tuple[ModelOption, ...] = (
    ModelOption(value="gpt-3.5-turbo", label="gpt-3.5-turbo"),
    ModelOption(value="gpt-4o-mini", label="gpt-4o-mini"),
)

XAI_MODELS: tuple[ModelOption, ...] = (
    ModelOption(value="grok-3-mini", label="Grok 3 Mini"),
    ModelOption(value="grok-4-fast-non-reasoning", label="Grok 4 Fast Non-Reasoning"),
    ModelOption(value="grok-4-1-fast-non-reasoning", label="Grok 4.1 Fast Non-Reasoning"),
)


class OpenAICompatAdapter(ProviderAdapter):
    def chat_url(self, model_id: str) -> str:
        return f"{self.base_url}/chat/completions"

    def auth_headers(self, api_key: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {api_key}"}

    def build_payload(self, turns: Sequence[ChatTurn], model_id: str) -> dict[str, Any]:
        return {
            "model": model_id,
            "max_tokens": int(settings.max_output_tokens),
            "messages": [{"role": turn.role, "content": turn.content} for turn in turns],
        }

    def extract_reply(self, data: dict[str, Any]) -> str | None:
        choices = data.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return None
        message = choices[0].get("message")
        if not isinstance(message, dict):
            return None
        return message.get("content")


class OpenAIAdapter(OpenAICompatAdapter):
    key = "openai"
    credential_setting = "openai_api_key"
    base_url_setting = "openai_base_url"
    allowed_models = OPENAI_MODELS

    async def list_models(self) -> list[ModelOption]:
        api_key = self._require_api_key()
        data = await self._get_json(f"{self.base_url}/models", self.auth_headers(api_key))
        entries = data.get("data")
        live_ids = [str(item.get("id")) for item in entries if isinstance(item, dict)] if isinstance(entries, list) else []
        return self._filter_allowed(live_ids)


class XAIAdapter(OpenAICompatAdapter):
    # xAI 没有公开的模型列表接口，直接返回白名单
    key = "x"
    credential_setting = "xai_api_key"
    base_url_setting = "xai_base_url"
    allowed_models = XAI_MODELS
