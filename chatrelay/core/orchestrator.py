"""Chat request orchestration: validate, call the provider, commit the exchange."""

from __future__ import annotations

from contextlib import nullcontext

from chatrelay.core.errors import (
    InvalidModelError,
    InvalidProviderError,
    InvalidSessionError,
    ProviderError,
    RequestValidationError,
    UnknownProviderError,
    UnknownSessionError,
)
from chatrelay.core.models import ChatRequest, ChatTurn
from chatrelay.core.registry import ProviderRegistry
from chatrelay.filters.input_sanitizer import InputSanitizer
from chatrelay.observability.logging import log_event
from chatrelay.observability.metrics import emit_counter
from chatrelay.storage.session_store import SessionStore, is_well_formed_session_id
from chatrelay.util.logger import logger


class ChatOrchestrator:
    """Runs one chat exchange per call.

    Validation short-circuits on the first failure and nothing is written
    before the provider has replied. With ``serialize_exchanges`` the
    per-session lock is held from reading history until the append, so two
    exchanges on one session are applied in arrival order.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        store: SessionStore,
        sanitizer: InputSanitizer | None = None,
        serialize_exchanges: bool = True,
    ) -> None:
        self.registry = registry
        self.store = store
        self.sanitizer = sanitizer or InputSanitizer()
        self.serialize_exchanges = serialize_exchanges

    def create_session(self) -> str:
        session_id = self.store.create()
        log_event("session_created", session_id=session_id)
        return session_id

    def _validate(self, request: ChatRequest) -> str:
        try:
            self.registry.resolve(request.provider_key)
        except UnknownProviderError as exc:
            raise InvalidProviderError() from exc
        if not self.registry.is_valid_model(request.provider_key, request.model_id):
            raise InvalidModelError()
        if not is_well_formed_session_id(request.session_id):
            raise InvalidSessionError("Invalid session ID.")
        if request.session_id not in self.store:
            raise InvalidSessionError()
        return self.sanitizer.sanitize(request.raw_text)

    async def handle_chat(self, provider_key: object, model_id: object, session_id: object, raw_text: object) -> str:
        request = ChatRequest(provider_key=provider_key, model_id=model_id, session_id=session_id, raw_text=raw_text)
        try:
            text = self._validate(request)
        except RequestValidationError as exc:
            logger.info(
                "chat rejected provider=%r model=%r reason=%s",
                request.provider_key,
                request.model_id,
                exc.code,
            )
            emit_counter("request_rejected", labels={"reason": exc.code})
            raise

        adapter = self.registry.resolve(request.provider_key)
        lock = self.store.exclusive(request.session_id) if self.serialize_exchanges else nullcontext()
        try:
            async with lock:
                history = self.store.history_of(request.session_id)
                try:
                    reply = await adapter.generate_reply(text, history, request.model_id)
                except ProviderError as exc:
                    logger.warning(
                        "chat upstream failure provider=%s model=%s session_id=%s kind=%s detail=%s",
                        adapter.key,
                        request.model_id,
                        request.session_id,
                        exc.code,
                        exc.message,
                    )
                    log_event("chat_failed", provider=adapter.key, model=request.model_id, kind=exc.code)
                    raise
                self.store.append(
                    request.session_id,
                    [ChatTurn(role="user", content=text), ChatTurn(role="assistant", content=reply)],
                )
        except UnknownSessionError as exc:
            # 会话在本次交换期间被清理
            logger.warning("chat session vanished mid-exchange session_id=%s", request.session_id)
            raise InvalidSessionError() from exc

        log_event(
            "chat_completed",
            provider=adapter.key,
            model=request.model_id,
            session_id=request.session_id,
            history_turns=len(history) + 2,
        )
        return reply
