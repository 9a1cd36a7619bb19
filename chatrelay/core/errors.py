"""Project error hierarchy."""

from __future__ import annotations

GENERIC_UPSTREAM_MESSAGE = "Sorry, I was unable to reach the AI service. Please try again."
GENERIC_INTERNAL_MESSAGE = "Sorry, the server encountered an error. Please try again."


class ChatRelayError(Exception):
    """Base error."""

    code = "chatrelay_error"
    status_code = 500
    default_message = GENERIC_INTERNAL_MESSAGE

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class RequestValidationError(ChatRelayError):
    """Client-caused rejection; the message is safe to show to the user."""

    code = "invalid_request"
    status_code = 400
    default_message = "Invalid request."


class InvalidProviderError(RequestValidationError):
    code = "invalid_provider"
    default_message = "Invalid provider."


class InvalidModelError(RequestValidationError):
    code = "invalid_model"
    default_message = "Invalid model for selected provider."


class InvalidSessionError(RequestValidationError):
    code = "invalid_session"
    default_message = "Invalid session."


class InvalidMessageError(RequestValidationError):
    code = "invalid_message"
    default_message = "Invalid message."


class EmptyMessageError(RequestValidationError):
    code = "empty_message"
    default_message = "Message cannot be empty."


class TooLongError(RequestValidationError):
    code = "message_too_long"

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"Message exceeds {limit} characters.")


class UnknownProviderError(ChatRelayError):
    code = "unknown_provider"

    def __init__(self, provider_key: object) -> None:
        self.provider_key = provider_key
        super().__init__(f"unknown provider: {provider_key!r}")


class UnknownSessionError(ChatRelayError):
    code = "unknown_session"

    def __init__(self, session_id: object) -> None:
        self.session_id = session_id
        super().__init__(f"unknown session: {session_id!r}")


class ProviderError(ChatRelayError):
    """Upstream failure. ``message`` holds the internal detail for logs only."""

    code = "provider_error"
    status_code = 502
    public_message = GENERIC_UPSTREAM_MESSAGE

    def __init__(self, provider: str, message: str | None = None) -> None:
        self.provider = provider
        super().__init__(message)


class MissingCredentialError(ProviderError):
    code = "missing_credential"
    status_code = 503
    default_message = "API key is not configured"


class RemoteError(ProviderError):
    code = "remote_error"
    default_message = "upstream request failed"

    def __init__(self, provider: str, message: str | None = None, status: int | None = None) -> None:
        self.status = status
        super().__init__(provider, message)


class RemoteUnavailableError(RemoteError):
    code = "remote_unavailable"
    default_message = "upstream listing endpoint unavailable"


class MalformedResponseError(ProviderError):
    code = "malformed_response"
    default_message = "upstream response missing reply field"
