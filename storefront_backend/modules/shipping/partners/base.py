"""
Base Delivery Partner Interface

All partners implement this interface. Each partner provides its own:
- Pincode coverage lookup
- B2C charges (light parcels)
- B2B / LTL freight estimate (heavy shipments)
- Expected TAT
- Tracking and cancellation
- Status mapping

Partner methods raise the shipping exception hierarchy
(PartnerUnavailableError, PartnerTimeoutError, PartnerResponseError).
Converting those into result objects is the estimator's job, not the partner's.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from storefront_backend.core.exceptions import InvalidInputError
from storefront_backend.modules.shipping.weights import BoxDimension


# =============================================================================
# Enums
# =============================================================================

class PartnerCode(str, Enum):
    DELHIVERY = "delhivery"
    OFFLINE = "offline"


class PaymentMode(str, Enum):
    PREPAID = "Prepaid"
    COD = "COD"

    @classmethod
    def parse(cls, value: Any) -> "PaymentMode":
        """Accepts 'prepaid', 'Pre-paid', 'PREPAID', 'cod', 'COD'."""
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower().replace("-", "").replace("_", "")
        if normalized == "prepaid":
            return cls.PREPAID
        if normalized == "cod":
            return cls.COD
        raise InvalidInputError(
            f"Unsupported payment mode: {value!r}. Use Prepaid or COD.",
            field="payment_mode",
            value=value,
        )

    @property
    def partner_code(self) -> str:
        """Value of the `pt` parameter on the charges API."""
        return "Pre-paid" if self is PaymentMode.PREPAID else "COD"

    @property
    def freight_code(self) -> str:
        """Value of `payment_mode` on the freight estimate APIs."""
        return "prepaid" if self is PaymentMode.PREPAID else "cod"


class ShippingMode(str, Enum):
    SURFACE = "S"
    EXPRESS = "E"

    @classmethod
    def parse(cls, value: Any) -> "ShippingMode":
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().upper()
        if normalized in ("S", "SURFACE"):
            return cls.SURFACE
        if normalized in ("E", "EXPRESS"):
            return cls.EXPRESS
        raise InvalidInputError(
            'Invalid mode of transport. Must be "S" for Surface or "E" for Express',
            field="mode",
            value=value,
        )


class ProductType(str, Enum):
    B2C = "B2C"
    B2B = "B2B"


class ShipmentStatus(str, Enum):
    """Normalized shipment lifecycle status"""
    MANIFESTED = "manifested"  # Shipment created, awaiting pickup
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    EXCEPTION = "exception"  # Delivery issue
    RETURNED = "returned"  # RTO
    CANCELLED = "cancelled"


# =============================================================================
# Partner-Agnostic Data Classes
# =============================================================================

@dataclass
class PincodeCoverage:
    """Partner coverage for one pincode."""
    pincode: str
    serviceable: bool
    delivery_codes: List[Any] = field(default_factory=list)
    raw_response: Optional[Any] = None


@dataclass
class FreightBreakdown:
    """Charges quoted by the partner. `total` is what the customer pays."""
    total: float
    base_freight: float = 0.0
    fuel_surcharge: float = 0.0
    cod_charges: float = 0.0
    rov_charges: float = 0.0
    other_charges: float = 0.0
    gst: float = 0.0
    currency: str = "INR"
    raw_response: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "base_freight": self.base_freight,
            "fuel_surcharge": self.fuel_surcharge,
            "cod_charges": self.cod_charges,
            "rov_charges": self.rov_charges,
            "other_charges": self.other_charges,
            "gst": self.gst,
            "currency": self.currency,
        }


@dataclass
class B2BFreightRequest:
    """Payload for the LTL freight estimate API."""
    dimensions: List[BoxDimension]
    weight_g: int
    source_pin: str
    consignee_pin: str
    payment_mode: PaymentMode
    inv_amount: float
    freight_mode: str = "surface"  # surface, express, fod
    cheque_payment: bool = False
    rov_insurance: bool = False

    def to_partner_format(self) -> Dict[str, Any]:
        return {
            "dimensions": [box.to_partner_format() for box in self.dimensions],
            "weight_g": self.weight_g,
            "source_pin": self.source_pin,
            "consignee_pin": self.consignee_pin,
            "payment_mode": self.payment_mode.freight_code,
            "inv_amount": self.inv_amount,
            "freight_mode": self.freight_mode,
            "cheque_payment": self.cheque_payment,
            "rov_insurance": self.rov_insurance,
        }


@dataclass
class TatQuote:
    """Expected TAT as the partner reported it."""
    tat: Any  # "2", 2, "3-5 days" ... parsed by modules.shipping.transit
    expected_delivery_date: Optional[str] = None
    raw_response: Optional[Any] = None


@dataclass
class TrackingEvent:
    """A single scan on the shipment."""
    timestamp: Optional[datetime]
    status: str  # partner-specific status
    description: str
    location: Optional[str] = None


@dataclass
class TrackingInfo:
    """Full tracking information."""
    waybill: str
    partner_code: PartnerCode
    status: ShipmentStatus
    partner_status: str
    expected_delivery: Optional[datetime] = None
    events: List[TrackingEvent] = field(default_factory=list)
    tracking_url: Optional[str] = None
    error_message: Optional[str] = None


@dataclass
class CancelResult:
    """Result of cancelling a shipment."""
    success: bool
    waybill: str
    error_message: Optional[str] = None


# =============================================================================
# Base Partner Interface
# =============================================================================

class DeliveryPartner(ABC):
    """
    Abstract base class for all delivery partners.

    Partners are constructed once at startup (see PartnerFactory) and shared
    by all requests. An HTTP client passed in is owned by whoever built it.
    """

    @classmethod
    def from_settings(cls, settings, http_client=None) -> "DeliveryPartner":
        """Build the partner from application settings (used by PartnerFactory)."""
        raise NotImplementedError(f"{cls.__name__} cannot be built from settings")

    @property
    @abstractmethod
    def partner_code(self) -> PartnerCode:
        """Return the partner code enum value."""
        pass

    @property
    @abstractmethod
    def partner_name(self) -> str:
        """Return the human-readable partner name."""
        pass

    @abstractmethod
    async def check_pincode(self, pincode: str) -> PincodeCoverage:
        """Look up whether the partner delivers to a pincode."""
        pass

    @abstractmethod
    async def get_b2c_charges(
        self,
        origin_pincode: str,
        destination_pincode: str,
        weight_grams: int,
        payment_mode: PaymentMode,
        shipping_mode: ShippingMode = ShippingMode.SURFACE,
    ) -> FreightBreakdown:
        """Charges for a regular parcel."""
        pass

    @abstractmethod
    async def get_b2b_freight(self, request: B2BFreightRequest) -> FreightBreakdown:
        """Freight estimate for a heavy (LTL) shipment."""
        pass

    @abstractmethod
    async def get_expected_tat(
        self,
        origin_pincode: str,
        destination_pincode: str,
        shipping_mode: ShippingMode,
        product_type: ProductType,
        pickup: str,
    ) -> TatQuote:
        """
        Expected turn-around time.

        Args:
            pickup: Expected pickup in the partner format ("YYYY-MM-DD HH:MM")
        """
        pass

    @abstractmethod
    async def track(self, waybill: str) -> TrackingInfo:
        """Get tracking information for a shipment."""
        pass

    @abstractmethod
    async def cancel(self, waybill: str) -> CancelResult:
        """Cancel a shipment that has not been picked up."""
        pass

    @abstractmethod
    def get_tracking_url(self, waybill: str) -> str:
        """Public tracking page for a waybill."""
        pass

    @abstractmethod
    def map_status(self, partner_status: str) -> ShipmentStatus:
        """Map partner-specific status to normalized ShipmentStatus."""
        pass

    async def close(self) -> None:
        """Release partner resources. Partners without any hold nothing."""
        return None
