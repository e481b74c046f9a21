"""
Outbound HTTP for provider calls.

One `httpx.AsyncClient` is shared by every provider, verifier and discovery
lookup. Calls carry a short timeout and are never retried: failures surface
immediately as `OAuthException` subclasses with the original error chained.
"""

from typing import Any, Dict, Optional

import httpx
from loguru import logger

from headless_oauth.common.exceptions import (
    InvalidResponseError,
    ProviderError,
    ProviderTransportError,
)
from headless_oauth.core.settings import settings

LOG_PREFIX = "[OAuthHTTP]"

DEFAULT_TIMEOUT = 10.0


def create_http_client(timeout: Optional[float] = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """Build the shared client (pass `transport` to fake the network in tests)."""
    return httpx.AsyncClient(
        timeout=timeout or settings.http_timeout_seconds or DEFAULT_TIMEOUT,
        transport=transport,
        follow_redirects=False,
    )


def _body_error(data: Any) -> Optional[str]:
    if isinstance(data, dict) and data.get("error"):
        error = data["error"]
        if isinstance(error, dict):
            # Graph-style {"error": {"message": ...}}
            return str(error.get("message") or error)
        return str(data.get("error_description") or error)
    return None


async def fetch_json(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    action: str,
    data: Optional[Dict[str, Any]] = None,
    params: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    timeout: Optional[float] = None,
    error_in_body: bool = False,
) -> Any:
    """
    Send one request and decode its JSON body.

    Args:
        action: Human-readable description used in error messages
            (e.g. "exchange Google authorization code")
        data: Form fields (application/x-www-form-urlencoded)
        error_in_body: Provider reports failures via an `error` /
            `error_description` body field, possibly with HTTP 200

    Raises:
        ProviderTransportError: network failure or error status
        ProviderError: error payload in the body (error_in_body only)
        InvalidResponseError: body is not JSON
    """
    request_kwargs: Dict[str, Any] = {"data": data, "params": params, "headers": headers}
    if timeout is not None:
        request_kwargs["timeout"] = timeout

    try:
        response = await client.request(method, url, **request_kwargs)
    except httpx.HTTPError as e:
        logger.error(f"{LOG_PREFIX} Failed to {action}: {e}")
        raise ProviderTransportError(f"Failed to {action}: {e}") from e

    payload: Any = None
    parse_error: Optional[ValueError] = None
    try:
        payload = response.json()
    except ValueError as e:  # json.JSONDecodeError / UnicodeDecodeError
        parse_error = e

    if error_in_body and parse_error is None:
        message = _body_error(payload)
        if message is not None:
            status_hint = response.status_code if response.status_code >= 400 else 400
            logger.warning(f"{LOG_PREFIX} Provider reported error while trying to {action}: {message}")
            raise ProviderError(f"Failed to {action}: {message}", status_hint)

    if response.is_error:
        logger.error(f"{LOG_PREFIX} Failed to {action}: HTTP {response.status_code} - {response.text[:500]}")
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ProviderTransportError(f"Failed to {action}: HTTP {response.status_code}", response.status_code) from e

    if parse_error is not None:
        raise InvalidResponseError(f"Failed to {action}: invalid JSON response ({parse_error})") from parse_error

    return payload


def require_object(payload: Any, action: str) -> Dict[str, Any]:
    """Ensure a decoded body is a JSON object."""
    if not isinstance(payload, dict):
        raise InvalidResponseError(f"Failed to {action}: expected a JSON object, got {type(payload).__name__}")
    return payload
