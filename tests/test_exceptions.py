"""Tests for the error taxonomy and resolution hints."""

from pomigrate.core.exceptions import (
    AuthError,
    ConfigurationError,
    MigrationError,
    NotFoundError,
    RateLimitError,
    TransientAPIError,
    ValidationError,
    describe_error,
    resolution_hint,
)


class TestMigrationError:
    """Test suite for the exception classes."""

    def test_context_and_default_hint(self) -> None:
        """Test context is kept and the class hint is used by default."""
        error = NotFoundError("Sheet 7 not found", status_code=404, sheet_id=7)

        assert str(error) == "Sheet 7 not found"
        assert error.context == {"status_code": 404, "sheet_id": 7}
        assert error.hint == NotFoundError.default_hint

    def test_explicit_hint_wins(self) -> None:
        """Test a hint passed in overrides the class hint."""
        error = AuthError("nope", status_code=401, hint="Rotate the token")
        assert error.hint == "Rotate the token"

    def test_for_setting(self) -> None:
        """Test single-setting configuration errors name the variable."""
        error = ConfigurationError.for_setting("BATCH_SIZE", "must be an integer")

        assert str(error) == "Configuration error: BATCH_SIZE must be an integer"
        assert "BATCH_SIZE" in error.hint
        assert error.context["setting"] == "BATCH_SIZE"

    def test_validation_error_message(self) -> None:
        """Test validation errors join every problem."""
        error = ValidationError("project 'X'", ["Project name is required", "bad date"])

        assert str(error) == "Invalid project 'X': Project name is required, bad date"
        assert error.errors == ["Project name is required", "bad date"]

    def test_rate_limit_defaults(self) -> None:
        """Test RateLimitError always carries status 429."""
        error = RateLimitError(retry_after=5.0)

        assert error.status_code == 429
        assert error.retry_after == 5.0
        assert isinstance(error, MigrationError)


class TestResolutionHints:
    """Test suite for resolution_hint and describe_error."""

    def test_hint_from_error_class(self) -> None:
        """Test MigrationErrors supply their own hint."""
        assert resolution_hint(TransientAPIError("down")) == TransientAPIError.default_hint

    def test_hint_from_message_pattern(self) -> None:
        """Test plain exceptions are matched on their message."""
        assert resolution_hint(RuntimeError("401 Unauthorized")) == AuthError.default_hint
        assert resolution_hint(RuntimeError("Resource not found")) == NotFoundError.default_hint
        assert resolution_hint(OSError("connect timed out")) == TransientAPIError.default_hint

    def test_no_hint(self) -> None:
        """Test unknown messages have no hint."""
        assert resolution_hint(RuntimeError("something odd")) is None
        assert describe_error(RuntimeError("something odd")) == "something odd"

    def test_describe_error_appends_hint(self) -> None:
        """Test the hint is appended to the message."""
        text = describe_error(RateLimitError())
        assert text == f"API rate limit exceeded (hint: {RateLimitError.default_hint})"

    def test_describe_error_empty_message(self) -> None:
        """Test errors without a message fall back to the class name."""
        assert describe_error(KeyError()) == "KeyError"
