"""Neutral chat models shared by adapters, store and orchestrator."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ChatTurn(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant"]
    content: str = Field(min_length=1)


class ModelOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: str
    label: str


class ProviderDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    display_models: tuple[ModelOption, ...] = ()

    def model_ids(self) -> tuple[str, ...]:
        return tuple(option.value for option in self.display_models)


class ChatRequest(BaseModel):
    """Transient request as received from the client; fields are validated by the orchestrator."""

    provider_key: Any = None
    model_id: Any = None
    session_id: Any = None
    raw_text: Any = None

    @classmethod
    def from_payload(cls, payload: dict) -> "ChatRequest":
        return cls(
            provider_key=payload.get("provider"),
            model_id=payload.get("model"),
            session_id=payload.get("sessionId"),
            raw_text=payload.get("userMessage"),
        )
