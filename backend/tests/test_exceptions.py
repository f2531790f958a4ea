"""
Unit tests for custom exception hierarchy.

Tests exception mapping, status codes, and error serialization including:
- Base AppError functionality (to_dict, to_response_body, context handling)
- Client errors (400-level): ValidationError
- Server errors (500-level): ConfigurationError, UpstreamError
"""

from ask_relay.core.exceptions import (
    AppError,
    ConfigurationError,
    UpstreamError,
    ValidationError,
)

# ===== Base AppError Tests =====


class TestAppError:
    """Test base AppError functionality"""

    def test_create_app_error(self):
        """Test creating basic AppError"""
        # Act
        error = AppError("Something went wrong")

        # Assert
        assert str(error) == "Something went wrong"
        assert error.message == "Something went wrong"
        assert error.status_code == 500  # Default
        assert error.error_type == "internal_error"

    def test_app_error_with_context(self):
        """Test AppError with additional context"""
        error = AppError("Relay failed", prompt_length=12, model="m")

        assert error.message == "Relay failed"
        assert error.context == {"prompt_length": 12, "model": "m"}

    def test_app_error_to_dict(self):
        """Test AppError serialization to dict for logging"""
        error = AppError("Error occurred", prompt_length=42)

        result = error.to_dict()

        assert result == {
            "error_type": "internal_error",
            "message": "Error occurred",
            "status_code": 500,
            "prompt_length": 42,
        }

    def test_response_body_excludes_context(self):
        """Context is for logs only; clients get the message and type"""
        error = AppError("Error occurred", prompt_length=42)

        assert error.to_response_body() == {
            "error": "Error occurred",
            "error_type": "internal_error",
        }

    def test_app_error_is_exception(self):
        """Test AppError can be raised and caught"""
        try:
            raise AppError("boom")
        except AppError as e:
            assert e.message == "boom"


# ===== 400-level Error Tests =====


class TestClientErrors:
    """Test client error status mapping"""

    def test_validation_error(self):
        error = ValidationError("Prompt is required", prompt_type="NoneType")

        assert error.status_code == 400
        assert error.error_type == "validation_error"
        assert error.context["prompt_type"] == "NoneType"
        assert isinstance(error, AppError)


# ===== 500-level Error Tests =====


class TestServerErrors:
    """Test server error status mapping"""

    def test_configuration_error(self):
        error = ConfigurationError(
            "THESYS_API_KEY is missing", setting="thesys_api_key"
        )

        assert error.status_code == 500
        assert error.error_type == "configuration_error"
        assert error.to_dict()["setting"] == "thesys_api_key"

    def test_upstream_error_carries_service(self):
        error = UpstreamError("Failed to start", service="thesys", model="c1")

        assert error.status_code == 500
        assert error.error_type == "upstream_error"
        assert error.context == {"service": "thesys", "model": "c1"}
        assert error.to_response_body() == {
            "error": "Failed to start",
            "error_type": "upstream_error",
        }

    def test_upstream_error_chains_cause(self):
        """Test original exception is preserved with `raise ... from`"""
        cause = ConnectionError("connection refused")
        try:
            raise UpstreamError("Failed to start", service="thesys") from cause
        except UpstreamError as e:
            assert e.__cause__ is cause
