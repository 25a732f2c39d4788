"""
Storefront Exception Hierarchy

Structured exception classes for the delivery subsystem.
All exceptions include code, message, and details for logging and debugging.

Exception Hierarchy:
    StorefrontError
    └── ShippingError
        ├── InvalidInputError
        ├── PartnerConfigurationError
        ├── PartnerUnavailableError
        │   └── PartnerTimeoutError
        └── PartnerResponseError
            └── PartnerAuthError
"""
import logging
from typing import Optional, Dict, Any

logger = logging.getLogger(__name__)


class StorefrontError(Exception):
    """
    Base exception for all storefront custom errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for programmatic handling
        details: Additional context for debugging
        severity: P0-P3 severity level
    """

    default_code: str = "STOREFRONT_ERROR"
    default_severity: str = "P2"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[str] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        self.severity = severity or self.default_severity
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "severity": self.severity,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


# =============================================================================
# SHIPPING ERRORS
# =============================================================================

class ShippingError(StorefrontError):
    """Base exception for shipping-related errors."""
    default_code = "SHIPPING_ERROR"
    default_severity = "P1"

    # Whether the caller may retry the same request later
    retryable: bool = False


class InvalidInputError(ShippingError):
    """Bad pincode, weight or declared value. The caller's fault (400)."""
    default_code = "SHIPPING_INVALID_INPUT"
    default_severity = "P3"

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Any = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details.update({
            "field": field,
            "value": value,
        })
        super().__init__(message, details=details, **kwargs)

    @property
    def field(self) -> Optional[str]:
        return self.details.get("field")


class PartnerConfigurationError(ShippingError):
    """Delivery partner credentials are missing or the partner choice is invalid."""
    default_code = "PARTNER_NOT_CONFIGURED"
    default_severity = "P1"


class PartnerUnavailableError(ShippingError):
    """Network failure or 5xx from the delivery partner. Transient."""
    default_code = "PARTNER_UNAVAILABLE"
    default_severity = "P2"
    retryable = True

    def __init__(
        self,
        message: str,
        partner: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details.update({
            "partner": partner,
            "status_code": status_code,
        })
        super().__init__(message, details=details, **kwargs)


class PartnerTimeoutError(PartnerUnavailableError):
    """The partner did not answer within the configured timeout."""
    default_code = "PARTNER_TIMEOUT"

    def __init__(
        self,
        message: str,
        partner: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details["timeout_seconds"] = timeout_seconds
        super().__init__(message, partner=partner, details=details, **kwargs)


class PartnerResponseError(ShippingError):
    """Malformed or unexpected payload from the partner. Treated as unavailable."""
    default_code = "PARTNER_BAD_RESPONSE"
    default_severity = "P2"

    def __init__(
        self,
        message: str,
        partner: Optional[str] = None,
        status_code: Optional[int] = None,
        payload: Any = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details.update({
            "partner": partner,
            "status_code": status_code,
            # Raw payloads can be large; keep enough to debug
            "payload": str(payload)[:500] if payload is not None else None,
        })
        super().__init__(message, details=details, **kwargs)


class PartnerAuthError(PartnerResponseError):
    """Partner rejected our credentials (401 / failed login)."""
    default_code = "PARTNER_AUTH_FAILED"
    default_severity = "P1"
