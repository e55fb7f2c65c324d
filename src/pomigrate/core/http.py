"""
HTTP helpers shared by the source and target clients.

Both clients talk JSON over httpx and report failures through the same
exception taxonomy, so response classification lives here.

Example:
    >>> import httpx
    >>> from pomigrate.core.http import raise_for_api_error
    >>>
    >>> response = httpx.Response(404, json={"message": "Not Found"})
    >>> raise_for_api_error(response, "get sheet 7")
    Traceback (most recent call last):
        ...
    pomigrate.core.exceptions.NotFoundError: get sheet 7 failed (404): Not Found
"""

import logging
from typing import Any

import httpx

from pomigrate.core.exceptions import (
    AuthError,
    NotFoundError,
    RateLimitError,
    TargetAPIError,
    TransientAPIError,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


def _error_detail(response: httpx.Response) -> str:
    """Pull the most useful message out of an error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text.strip() or response.reason_phrase

    if isinstance(body, dict):
        # OData nests the message: {"error": {"message": {"value": "..."}}}
        error = body.get("error")
        if isinstance(error, dict):
            message = error.get("message")
            if isinstance(message, dict):
                message = message.get("value")
            if message:
                return str(message)
        for key in ("message", "detail", "error"):
            if body.get(key):
                return str(body[key])
    return response.reason_phrase


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        # HTTP-date form is not worth parsing; backoff covers it
        return None


def raise_for_api_error(response: httpx.Response, action: str) -> None:
    """
    Raise the matching MigrationError for a non-2xx response.

    Mapping:
    - 401, 403: AuthError
    - 404: NotFoundError
    - 429: RateLimitError (with Retry-After when sent)
    - 5xx: TransientAPIError
    - anything else >= 400: TargetAPIError

    Args:
        response: The received response
        action: Short description of the request for the message

    Raises:
        TargetAPIError: Or one of its subclasses
    """
    status = response.status_code
    if status < 400:
        return

    message = f"{action} failed ({status}): {_error_detail(response)}"

    if status in (401, 403):
        raise AuthError(message, status_code=status)
    if status == 404:
        raise NotFoundError(message, status_code=status)
    if status == 429:
        raise RateLimitError(message, retry_after=_retry_after(response))
    if status >= 500:
        raise TransientAPIError(message, status_code=status)
    raise TargetAPIError(message, status_code=status)


def network_error_code(exc: httpx.TransportError) -> str:
    """Map an httpx transport failure to a symbolic network code."""
    if isinstance(exc, httpx.TimeoutException):
        return "ETIMEDOUT"
    if isinstance(exc, httpx.ConnectError):
        return "ECONNREFUSED"
    return "ECONNABORTED"


def transport_failure(exc: httpx.TransportError, action: str) -> TransientAPIError:
    """Wrap an httpx transport failure as a retryable API error."""
    code = network_error_code(exc)
    logger.debug(f"{action}: transport failure {type(exc).__name__}: {exc}")
    return TransientAPIError(f"{action} failed: {code} ({exc})", code=code)


def decode_json(response: httpx.Response, action: str) -> Any:
    """Parse a JSON body, raising TargetAPIError on malformed content."""
    try:
        return response.json()
    except ValueError as e:
        raise TargetAPIError(
            f"{action} returned invalid JSON: {e}", status_code=None
        ) from e


__all__ = [
    "DEFAULT_TIMEOUT",
    "raise_for_api_error",
    "network_error_code",
    "transport_failure",
    "decode_json",
]
