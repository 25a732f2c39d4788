"""
Offline Partner

Deterministic, no-network partner for local development and demos.
Selected by PartnerFactory when DELIVERY_PARTNER=offline, or when no
Delhivery token is configured outside production. Never used in production.
"""
import logging
import math
from typing import Optional

from storefront_backend.core.config import Settings
from storefront_backend.modules.shipping.partners import register_partner
from storefront_backend.modules.shipping.partners.base import (
    B2BFreightRequest,
    CancelResult,
    DeliveryPartner,
    FreightBreakdown,
    PartnerCode,
    PaymentMode,
    PincodeCoverage,
    ProductType,
    ShipmentStatus,
    ShippingMode,
    TatQuote,
    TrackingInfo,
)

logger = logging.getLogger(__name__)

# Metro pincodes the mock partner pretends to serve
SERVICEABLE_PINCODES = frozenset([
    "110001", "110002", "110003",  # Delhi
    "400001", "400002", "400003",  # Mumbai
    "560001", "560002", "560003",  # Bangalore
    "600001", "600002", "600003",  # Chennai
    "700001", "700002", "700003",  # Kolkata
    "194103", "741235",
])

MOCK_DELIVERY_CODES = ["D", "E"]

# Price per started 500g slab
PREPAID_SLAB_RATE = 50.0
COD_SLAB_RATE = 70.0
SLAB_GRAMS = 500

MOCK_TAT_DAYS = 3


def mock_charge(weight_grams: int, payment_mode: PaymentMode) -> float:
    rate = COD_SLAB_RATE if payment_mode is PaymentMode.COD else PREPAID_SLAB_RATE
    slabs = max(1, math.ceil(weight_grams / SLAB_GRAMS))
    return rate * slabs


@register_partner(PartnerCode.OFFLINE)
class OfflinePartner(DeliveryPartner):
    """Mock partner. Same input, same answer."""

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        http_client=None,
    ) -> "OfflinePartner":
        return cls()

    @property
    def partner_code(self) -> PartnerCode:
        return PartnerCode.OFFLINE

    @property
    def partner_name(self) -> str:
        return "Offline (mock)"

    async def check_pincode(self, pincode: str) -> PincodeCoverage:
        serviceable = pincode in SERVICEABLE_PINCODES
        return PincodeCoverage(
            pincode=pincode,
            serviceable=serviceable,
            delivery_codes=list(MOCK_DELIVERY_CODES) if serviceable else [],
        )

    async def get_b2c_charges(
        self,
        origin_pincode: str,
        destination_pincode: str,
        weight_grams: int,
        payment_mode: PaymentMode,
        shipping_mode: ShippingMode = ShippingMode.SURFACE,
    ) -> FreightBreakdown:
        total = mock_charge(weight_grams, payment_mode)
        logger.debug(f"[OFFLINE] Mock charges {origin_pincode} -> {destination_pincode}: {total}")
        return FreightBreakdown(total=total, base_freight=total)

    async def get_b2b_freight(self, request: B2BFreightRequest) -> FreightBreakdown:
        total = mock_charge(request.weight_g, request.payment_mode)
        return FreightBreakdown(total=total, base_freight=total)

    async def get_expected_tat(
        self,
        origin_pincode: str,
        destination_pincode: str,
        shipping_mode: ShippingMode,
        product_type: ProductType,
        pickup: str,
    ) -> TatQuote:
        return TatQuote(tat=MOCK_TAT_DAYS)

    async def track(self, waybill: str) -> TrackingInfo:
        return TrackingInfo(
            waybill=waybill,
            partner_code=self.partner_code,
            status=ShipmentStatus.MANIFESTED,
            partner_status="Manifested",
            tracking_url=self.get_tracking_url(waybill),
        )

    async def cancel(self, waybill: str) -> CancelResult:
        return CancelResult(success=True, waybill=waybill)

    def get_tracking_url(self, waybill: str) -> str:
        return f"/orders/track/{waybill}"

    def map_status(self, partner_status: str) -> ShipmentStatus:
        return ShipmentStatus.MANIFESTED
