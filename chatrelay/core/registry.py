"""Provider registry: the closed set of provider keys and their allowlists."""

from __future__ import annotations

from collections.abc import Iterable

from chatrelay.adapters.anthropic import AnthropicAdapter
from chatrelay.adapters.base import ProviderAdapter
from chatrelay.adapters.google import GoogleAdapter
from chatrelay.adapters.openai_compat import OpenAIAdapter, XAIAdapter
from chatrelay.core.errors import UnknownProviderError
from chatrelay.core.models import ProviderDescriptor
from chatrelay.util.logger import logger


class ProviderRegistry:
    def __init__(self, adapters: Iterable[ProviderAdapter]) -> None:
        self._adapters: dict[str, ProviderAdapter] = {}
        # 白名单在注册时固定，与 provider 线上返回的目录无关
        self._allowed: dict[str, frozenset[str]] = {}
        for adapter in adapters:
            if adapter.key in self._adapters:
                raise ValueError(f"duplicate provider key: {adapter.key}")
            self._adapters[adapter.key] = adapter
            self._allowed[adapter.key] = frozenset(adapter.descriptor().model_ids())
        logger.info("registered %d providers: %s", len(self._adapters), ", ".join(self._adapters))

    @property
    def keys(self) -> tuple[str, ...]:
        return tuple(self._adapters)

    def __contains__(self, provider_key: object) -> bool:
        return isinstance(provider_key, str) and provider_key in self._adapters

    def resolve(self, provider_key: object) -> ProviderAdapter:
        if not isinstance(provider_key, str) or provider_key not in self._adapters:
            raise UnknownProviderError(provider_key)
        return self._adapters[provider_key]

    def is_valid_model(self, provider_key: object, model_id: object) -> bool:
        if not isinstance(provider_key, str) or not isinstance(model_id, str):
            return False
        return model_id in self._allowed.get(provider_key, frozenset())

    def descriptors(self) -> list[ProviderDescriptor]:
        return [adapter.descriptor() for adapter in self._adapters.values()]

    def credential_status(self) -> dict[str, bool]:
        return {key: adapter.credential_configured for key, adapter in self._adapters.items()}

    def missing_credentials(self) -> list[str]:
        return [adapter.credential_setting.upper() for adapter in self._adapters.values() if not adapter.credential_configured]


def build_default_registry() -> ProviderRegistry:
    return ProviderRegistry([OpenAIAdapter(), AnthropicAdapter(), GoogleAdapter(), XAIAdapter()])
