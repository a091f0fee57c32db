"""Tests for exception to response envelope mapping."""

from teamcity_mcp.core.errors import (
    CircuitOpenError,
    ClientError,
    LocatorValidationError,
    NotFoundError,
    PageParseError,
    RateLimitedError,
    ServerError,
    StructuralError,
    error_to_response,
)


class TestErrorToResponse:
    """Tests for error_to_response."""

    def test_unknown_error_returns_none(self):
        assert error_to_response(RuntimeError("boom")) is None

    def test_not_found(self):
        response = error_to_response(NotFoundError("Project", "X"))
        assert response["success"] is False
        assert response["data"]["error_code"] == "NOT_FOUND"
        assert response["data"]["details"]["status_code"] == 404

    def test_unauthorized_and_forbidden(self):
        assert error_to_response(ClientError("x", status_code=401))["data"]["error_code"] == "UNAUTHORIZED"
        assert error_to_response(ClientError("x", status_code=403))["data"]["error_code"] == "FORBIDDEN"
        assert error_to_response(ClientError("x", status_code=400))["data"]["error_code"] == "VALIDATION_ERROR"

    def test_circuit_open(self):
        response = error_to_response(CircuitOpenError("open", breaker_name="teamcity", retry_after=4.0))
        assert response["data"]["error_code"] == "CIRCUIT_OPEN"
        assert response["data"]["details"] == {"breaker": "teamcity", "retry_after": 4.0}

    def test_structural_error(self):
        response = error_to_response(StructuralError("A", ["A", "B", "A"]))
        assert response["data"]["error_code"] == "CIRCULAR_DEPENDENCY"
        assert response["data"]["details"]["path"] == ["A", "B", "A"]

    def test_attempt_metadata_in_details(self):
        error = ServerError("down", status_code=502)
        error.attempts = 4
        error.elapsed_seconds = 1.23456
        details = error_to_response(error)["data"]["details"]
        assert details["attempts"] == 4
        assert details["elapsed_seconds"] == 1.235

    def test_rate_limited(self):
        response = error_to_response(RateLimitedError(retry_after=2))
        assert response["data"]["error_code"] == "RATE_LIMIT_EXCEEDED"
        assert "Retry after 2 seconds" in response["error"]

    def test_parse_and_locator_errors(self):
        assert (
            error_to_response(PageParseError("bad", "build", "str"))["data"]["error_code"]
            == "INVALID_RESPONSE"
        )
        assert (
            error_to_response(LocatorValidationError("bad", field="status"))["data"]["error_code"]
            == "VALIDATION_ERROR"
        )
