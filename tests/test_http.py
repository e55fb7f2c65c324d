"""Tests for HTTP response classification helpers."""

import httpx
import pytest

from pomigrate.core.exceptions import (
    AuthError,
    NotFoundError,
    RateLimitError,
    TargetAPIError,
    TransientAPIError,
)
from pomigrate.core.http import (
    decode_json,
    network_error_code,
    raise_for_api_error,
    transport_failure,
)


def _response(status: int, **kwargs) -> httpx.Response:
    request = httpx.Request("GET", "https://api.example.com/2.0/sheets/1")
    return httpx.Response(status, request=request, **kwargs)


class TestRaiseForApiError:
    """Test suite for raise_for_api_error."""

    def test_success_does_nothing(self) -> None:
        """Test 2xx responses pass through."""
        raise_for_api_error(_response(200, json={}), "get sheet")
        raise_for_api_error(_response(204), "delete row")

    @pytest.mark.parametrize(
        "status,error_type",
        [
            (400, TargetAPIError),
            (401, AuthError),
            (403, AuthError),
            (404, NotFoundError),
            (409, TargetAPIError),
            (429, RateLimitError),
            (500, TransientAPIError),
            (503, TransientAPIError),
        ],
    )
    def test_status_mapping(self, status: int, error_type: type) -> None:
        """Test each status maps to its error class and keeps the status."""
        with pytest.raises(error_type) as exc_info:
            raise_for_api_error(_response(status, json={"message": "nope"}), "get sheet 1")

        assert exc_info.value.status_code == status
        assert str(exc_info.value) == f"get sheet 1 failed ({status}): nope"

    def test_retry_after_header(self) -> None:
        """Test Retry-After is carried on RateLimitError."""
        response = _response(429, json={"message": "slow down"}, headers={"Retry-After": "12"})

        with pytest.raises(RateLimitError) as exc_info:
            raise_for_api_error(response, "add rows")

        assert exc_info.value.retry_after == 12.0

    def test_odata_nested_error_message(self) -> None:
        """Test the OData error body format is unwrapped."""
        body = {"error": {"code": "-1", "message": {"lang": "en-US", "value": "No project"}}}

        with pytest.raises(NotFoundError, match="No project"):
            raise_for_api_error(_response(404, json=body), "GET /Projects")

    def test_plain_text_body(self) -> None:
        """Test non-JSON error bodies are used as-is."""
        with pytest.raises(TransientAPIError, match="upstream exploded"):
            raise_for_api_error(_response(502, text="upstream exploded"), "GET /sheets")


class TestTransportHelpers:
    """Test suite for transport failure mapping and JSON decoding."""

    def test_network_error_codes(self) -> None:
        """Test httpx transport errors map to symbolic codes."""
        assert network_error_code(httpx.ReadTimeout("slow")) == "ETIMEDOUT"
        assert network_error_code(httpx.ConnectError("refused")) == "ECONNREFUSED"
        assert network_error_code(httpx.RemoteProtocolError("reset")) == "ECONNABORTED"

    def test_transport_failure_is_transient(self) -> None:
        """Test wrapped transport errors carry their code and no status."""
        error = transport_failure(httpx.ConnectError("refused"), "GET /workspaces")

        assert isinstance(error, TransientAPIError)
        assert error.code == "ECONNREFUSED"
        assert error.status_code is None

    def test_decode_json_malformed(self) -> None:
        """Test malformed JSON raises TargetAPIError without a status."""
        with pytest.raises(TargetAPIError, match="invalid JSON") as exc_info:
            decode_json(_response(200, text="{not json"), "GET /sheets/1")

        assert exc_info.value.status_code is None
