"""Provider adapter contract shared by every upstream vendor."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from chatrelay.adapters.http import get_json, post_json
from chatrelay.config.settings import settings
from chatrelay.core.errors import (
    MalformedResponseError,
    MissingCredentialError,
    ProviderError,
    RemoteUnavailableError,
)
from chatrelay.core.models import ChatTurn, ModelOption, ProviderDescriptor
from chatrelay.observability.metrics import emit_counter
from chatrelay.util.logger import logger


class ProviderAdapter(ABC):
    """Translate the neutral chat contract to one provider's wire format and back.

    Subclasses declare the curated ``allowed_models`` and the settings fields
    holding their credential and base URL, then implement the payload/reply
    mapping. Exactly one outbound call is made per ``generate_reply``; there
    are no retries.
    """

    key = "base"
    credential_setting = ""
    base_url_setting = ""
    allowed_models: tuple[ModelOption, ...] = ()

    def __init__(self, api_key: str | None = None, base_url: str | None = None) -> None:
        self._api_key = api_key
        self._base_url = base_url

    @property
    def api_key(self) -> str:
        if self._api_key is not None:
            return self._api_key.strip()
        return str(getattr(settings, self.credential_setting, "") or "").strip()

    @property
    def base_url(self) -> str:
        raw = self._base_url if self._base_url is not None else str(getattr(settings, self.base_url_setting, ""))
        return raw.rstrip("/")

    @property
    def credential_configured(self) -> bool:
        return bool(self.api_key)

    def descriptor(self) -> ProviderDescriptor:
        return ProviderDescriptor(key=self.key, display_models=self.allowed_models)

    def _require_api_key(self) -> str:
        key = self.api_key
        if not key:
            logger.error("provider credential missing provider=%s setting=%s", self.key, self.credential_setting)
            raise MissingCredentialError(self.key, f"{self.credential_setting} is not set")
        return key

    def _filter_allowed(self, live_ids: Sequence[str]) -> list[ModelOption]:
        available = set(live_ids)
        return [option for option in self.allowed_models if option.value in available]

    async def list_models(self) -> list[ModelOption]:
        self._require_api_key()
        return list(self.allowed_models)

    async def _get_json(self, url: str, headers: dict[str, str], params: dict[str, str] | None = None) -> dict[str, Any]:
        data = await get_json(self.key, url, headers, params)
        if not isinstance(data, dict):
            raise RemoteUnavailableError(self.key, "model listing is not a JSON object")
        return data

    async def generate_reply(self, user_text: str, history: Sequence[ChatTurn], model_id: str) -> str:
        api_key = self._require_api_key()
        turns = [*history, ChatTurn(role="user", content=user_text)]
        payload = self.build_payload(turns, model_id)
        try:
            data = await post_json(self.key, self.chat_url(model_id), payload, self.auth_headers(api_key))
            reply = self.extract_reply(data) if isinstance(data, dict) else None
            if not isinstance(reply, str) or not reply.strip():
                logger.warning("provider reply field missing provider=%s model=%s", self.key, model_id)
                raise MalformedResponseError(self.key, f"no reply text in {self.key} response")
        except ProviderError as exc:
            emit_counter("provider_call", labels={"provider": self.key, "outcome": exc.code})
            raise
        emit_counter("provider_call", labels={"provider": self.key, "outcome": "ok"})
        return reply

    @abstractmethod
    def chat_url(self, model_id: str) -> str:
        pass

    @abstractmethod
    def auth_headers(self, api_key: str) -> dict[str, str]:
        pass

    @abstractmethod
    def build_payload(self, turns: Sequence[ChatTurn], model_id: str) -> dict[str, Any]:
        pass

    @abstractmethod
    def extract_reply(self, data: dict[str, Any]) -> str | None:
        """Pull the assistant text out of a success envelope; None when absent."""
