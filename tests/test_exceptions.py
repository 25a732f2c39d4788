"""
Tests for the shipping exception hierarchy.
"""
from storefront_backend.core.exceptions import (
    InvalidInputError,
    PartnerAuthError,
    PartnerResponseError,
    PartnerTimeoutError,
    PartnerUnavailableError,
    ShippingError,
    StorefrontError,
)


class TestExceptionHierarchy:

    def test_timeout_is_unavailable(self):
        error = PartnerTimeoutError("timed out", partner="delhivery", timeout_seconds=8.0)

        assert isinstance(error, PartnerUnavailableError)
        assert isinstance(error, ShippingError)
        assert error.retryable is True
        assert error.code == "PARTNER_TIMEOUT"
        assert error.details == {"partner": "delhivery", "status_code": None, "timeout_seconds": 8.0}

    def test_auth_is_response_error(self):
        error = PartnerAuthError("rejected", status_code=401)

        assert isinstance(error, PartnerResponseError)
        assert error.retryable is False
        assert error.severity == "P1"

    def test_invalid_input_field(self):
        error = InvalidInputError("Destination pincode is required", field="destination_pincode", value="")

        assert error.field == "destination_pincode"
        assert error.severity == "P3"
        assert str(error) == "Destination pincode is required"

    def test_payload_truncated(self):
        error = PartnerResponseError("bad", payload="x" * 2000)

        assert len(error.details["payload"]) == 500

    def test_to_dict(self):
        error = PartnerUnavailableError("down", partner="delhivery", status_code=503)

        assert error.to_dict() == {
            "error_type": "PartnerUnavailableError",
            "code": "PARTNER_UNAVAILABLE",
            "message": "down",
            "severity": "P2",
            "details": {"partner": "delhivery", "status_code": 503},
        }

    def test_custom_code(self):
        error = StorefrontError("oops", code="CUSTOM")

        assert error.code == "CUSTOM"
        assert repr(error) == "StorefrontError(code='CUSTOM', message='oops')"
