"""
Custom exceptions for pomigrate.

This module defines the error taxonomy used across the load pipeline,
providing structured error handling with context preservation and a
resolution hint that the CLI shows next to the original message.

Exception Hierarchy:
    MigrationError (base)
    ├── ConfigurationError (invalid/missing settings, fatal)
    ├── ValidationError (source entity missing required fields)
    └── TargetAPIError (remote API failures, carries status_code)
        ├── AuthError (401/403)
        ├── NotFoundError (404, absent container)
        ├── RateLimitError (429)
        └── TransientAPIError (5xx and network failures)

Example:
    >>> from pomigrate.core.exceptions import RateLimitError
    >>> try:
    ...     raise RateLimitError("Too many requests", retry_after=30.0)
    ... except RateLimitError as e:
    ...     print(f"{e} (retry after {e.retry_after}s)")
    ...     print(e.hint)
"""

from __future__ import annotations


class MigrationError(Exception):
    """
    Base exception for all pomigrate errors.

    Attributes:
        message: Human-readable error message
        hint: Optional resolution hint shown to the user
        context: Optional dictionary of additional context
    """

    default_hint: str | None = None

    def __init__(self, message: str, *, hint: str | None = None, **context: object) -> None:
        """
        Initialize an error with message, hint and context.

        Args:
            message: Human-readable error message
            hint: Resolution hint (defaults to the class-level hint)
            **context: Additional context as keyword arguments
        """
        super().__init__(message)
        self.message = message
        self.hint = hint if hint is not None else self.default_hint
        self.context = context

    def __str__(self) -> str:
        """Return string representation of the error."""
        return self.message


class ConfigurationError(MigrationError):
    """
    Raised for invalid or missing configuration.

    Also used for programmer errors such as an invalid retry policy.
    Never retried.
    """

    default_hint = "Check your .env file or environment variables"

    @classmethod
    def for_setting(cls, key: str, problem: str) -> ConfigurationError:
        """Build an error for a single named setting."""
        return cls(
            f"Configuration error: {key} {problem}",
            hint=f"Set {key} in .env or export it in your shell",
            setting=key,
        )


class ValidationError(MigrationError):
    """
    Raised when a source entity is missing required fields.

    Fatal for the entity. Only aborts the run when the entity is the
    top-level project.

    Attributes:
        entity: Description of the entity (e.g. "project 'Apollo'")
        errors: List of validation messages
    """

    default_hint = "Fix the source data and run the load again"

    def __init__(self, entity: str, errors: list[str], **context: object) -> None:
        super().__init__(f"Invalid {entity}: {', '.join(errors)}", entity=entity, **context)
        self.entity = entity
        self.errors = errors


class TargetAPIError(MigrationError):
    """
    Raised when the remote API rejects a request.

    Attributes:
        status_code: HTTP status returned by the API, if any
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        hint: str | None = None,
        **context: object,
    ) -> None:
        super().__init__(message, hint=hint, status_code=status_code, **context)
        self.status_code = status_code


class AuthError(TargetAPIError):
    """Credential or permission failure (401/403)."""

    default_hint = (
        "Verify SMARTSHEET_API_TOKEN is valid and has access to the workspace; "
        "generate a new token under Account > Apps & Integrations > API Access"
    )


class NotFoundError(TargetAPIError):
    """
    A workspace, sheet or column does not exist.

    Used internally to distinguish "absent, create it" from a real failure.
    """

    default_hint = "Verify the workspace or sheet ID exists and has not been deleted"


class RateLimitError(TargetAPIError):
    """
    The API rate limit was exceeded (429).

    Attributes:
        retry_after: Seconds the server asked us to wait, if provided
    """

    default_hint = "Wait a minute and run again, or lower RATE_LIMIT_PER_MINUTE"

    def __init__(
        self,
        message: str = "API rate limit exceeded",
        *,
        retry_after: float | None = None,
        **context: object,
    ) -> None:
        super().__init__(message, status_code=429, retry_after=retry_after, **context)
        self.retry_after = retry_after


class TransientAPIError(TargetAPIError):
    """
    Server-side (5xx) or network failure.

    Attributes:
        code: Network error code (e.g. "ETIMEDOUT") when not an HTTP failure
    """

    default_hint = "The service may be temporarily unavailable; check connectivity and retry"

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        code: str | None = None,
        **context: object,
    ) -> None:
        super().__init__(message, status_code=status_code, code=code, **context)
        self.code = code


# Ordered (pattern, hint) pairs for errors that carry no hint of their own
_MESSAGE_HINTS: list[tuple[tuple[str, ...], str]] = [
    (("401", "unauthorized", "token"), AuthError.default_hint),
    (("403", "forbidden", "permission"), "Check that your account has access to this resource"),
    (("404", "not found"), NotFoundError.default_hint),
    (("429", "rate limit"), RateLimitError.default_hint),
    (("timeout", "timed out", "network", "connect"), TransientAPIError.default_hint),
    (("invalid", "required", "validation"), ValidationError.default_hint),
]


def resolution_hint(error: BaseException) -> str | None:
    """
    Infer a resolution hint for an error.

    Uses the error's own hint when it is a MigrationError, otherwise
    matches well-known patterns in the message.

    Args:
        error: Any exception

    Returns:
        Hint text, or None if nothing applies
    """
    if isinstance(error, MigrationError) and error.hint:
        return error.hint

    message = str(error).lower()
    for patterns, hint in _MESSAGE_HINTS:
        if any(p in message for p in patterns):
            return hint
    return None


def describe_error(error: BaseException) -> str:
    """Format an error with its resolution hint for user-visible reports."""
    hint = resolution_hint(error)
    text = str(error) or type(error).__name__
    return f"{text} (hint: {hint})" if hint else text


__all__ = [
    "MigrationError",
    "ConfigurationError",
    "ValidationError",
    "TargetAPIError",
    "AuthError",
    "NotFoundError",
    "RateLimitError",
    "TransientAPIError",
    "resolution_hint",
    "describe_error",
]
