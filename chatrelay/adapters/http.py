"""
Shared outbound HTTP client for provider adapters.

Every transport problem is converted into the provider error taxonomy here so
adapters never leak raw httpx exceptions.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Mapping

import httpx

from chatrelay.config.settings import settings
from chatrelay.core.errors import RemoteError, RemoteUnavailableError
from chatrelay.util.logger import logger

_provider_async_client: httpx.AsyncClient | None = None
_provider_client_lock: Any = None


def _provider_http_limits() -> httpx.Limits:
    return httpx.Limits(
        max_connections=max(10, int(settings.provider_max_connections)),
        max_keepalive_connections=max(5, int(settings.provider_max_keepalive_connections)),
    )


def _provider_http_timeout() -> httpx.Timeout:
    timeout = float(settings.provider_timeout_seconds)
    return httpx.Timeout(connect=timeout, read=timeout, write=timeout, pool=timeout)


async def _get_provider_async_client() -> httpx.AsyncClient:
    global _provider_async_client, _provider_client_lock
    if _provider_async_client is not None:
        return _provider_async_client
    if _provider_client_lock is None:
        _provider_client_lock = asyncio.Lock()
    async with _provider_client_lock:
        if _provider_async_client is None:
            _provider_async_client = httpx.AsyncClient(
                timeout=_provider_http_timeout(),
                limits=_provider_http_limits(),
            )
    return _provider_async_client


async def close_provider_async_client() -> None:
    global _provider_async_client
    if _provider_async_client is not None:
        await _provider_async_client.aclose()
        _provider_async_client = None


def _decode_json_or_text(body: bytes) -> dict[str, Any] | str:
    text = body.decode("utf-8", errors="replace")
    if not text:
        return ""
    try:
        parsed = json.loads(text)
        if isinstance(parsed, dict):
            return parsed
        return text
    except json.JSONDecodeError:
        return text


def _safe_error_detail(payload: dict[str, Any] | str) -> str:
    if isinstance(payload, str):
        return payload[:600]
    error = payload.get("error")
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"][:600]
    if isinstance(error, str):
        return error[:600]
    return json.dumps(payload, ensure_ascii=False)[:600]


def _transport_detail(exc: httpx.HTTPError) -> str:
    return (str(exc) or "").strip() or type(exc).__name__


async def post_json(
    provider: str,
    url: str,
    payload: dict[str, Any],
    headers: Mapping[str, str],
) -> dict[str, Any] | str:
    """POST one JSON payload; return the decoded body of a 2xx response or raise RemoteError."""

    body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
    request_headers = {"Content-Type": "application/json", **headers}
    logger.debug("provider post start provider=%s url=%s payload_bytes=%d", provider, url, len(body))
    client = await _get_provider_async_client()
    try:
        response = await client.post(url, content=body, headers=request_headers)
    except httpx.HTTPError as exc:
        detail = _transport_detail(exc)
        logger.warning("provider post http_error provider=%s url=%s error=%s", provider, url, detail)
        raise RemoteError(provider, f"upstream_unreachable: {detail}") from exc

    decoded = _decode_json_or_text(response.content)
    logger.debug("provider post done provider=%s url=%s status=%s", provider, url, response.status_code)
    if not response.is_success:
        detail = _safe_error_detail(decoded)
        logger.warning(
            "provider post rejected provider=%s url=%s status=%s detail=%s",
            provider,
            url,
            response.status_code,
            detail,
        )
        raise RemoteError(provider, f"upstream_http_error:{response.status_code}:{detail}", status=response.status_code)
    return decoded


async def get_json(
    provider: str,
    url: str,
    headers: Mapping[str, str],
    params: Mapping[str, str] | None = None,
) -> dict[str, Any] | str:
    """GET a listing endpoint; any failure is RemoteUnavailableError."""

    logger.debug("provider get start provider=%s url=%s", provider, url)
    client = await _get_provider_async_client()
    try:
        response = await client.get(url, headers=dict(headers), params=dict(params or {}))
    except httpx.HTTPError as exc:
        detail = _transport_detail(exc)
        logger.warning("provider get http_error provider=%s url=%s error=%s", provider, url, detail)
        raise RemoteUnavailableError(provider, f"upstream_unreachable: {detail}") from exc

    decoded = _decode_json_or_text(response.content)
    if not response.is_success:
        detail = _safe_error_detail(decoded)
        logger.warning(
            "provider get rejected provider=%s url=%s status=%s detail=%s",
            provider,
            url,
            response.status_code,
            detail,
        )
        raise RemoteUnavailableError(
            provider, f"upstream_http_error:{response.status_code}:{detail}", status=response.status_code
        )
    return decoded
