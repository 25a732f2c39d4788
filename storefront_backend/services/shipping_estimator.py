"""
Shipping Estimator

Answers the storefront's delivery questions against the configured partner:
- estimate_cost: what does this parcel cost to ship
- check_serviceability: does the partner deliver to this pincode
- estimate_transit_time / estimate_delivery: how long will it take

Failure semantics:
- Bad input raises InvalidInputError before any partner call (caller's fault)
- Partner timeouts, outages and malformed payloads never escape estimate_cost,
  check_serviceability or estimate_transit_time; they come back as an
  error result instead
- A failed estimate has cost=None. It is never a zero charge.

Usage:
    estimator = ShippingEstimator(partner)
    estimate = await estimator.estimate_cost(ShipmentRequest("700001", "110001", 500))
"""
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Union

from storefront_backend.core.config import Settings, settings as default_settings
from storefront_backend.core.exceptions import InvalidInputError, ShippingError
from storefront_backend.modules.shipping.partners.base import (
    B2BFreightRequest,
    CancelResult,
    DeliveryPartner,
    FreightBreakdown,
    PaymentMode,
    ProductType,
    ShippingMode,
    TrackingInfo,
)
from storefront_backend.modules.shipping.transit import (
    add_business_days,
    default_pickup_date,
    fallback_delivery_date,
    format_pickup_for_partner,
    format_tat,
    parse_date,
    parse_tat_days,
    resolve_pickup_date,
)
from storefront_backend.modules.shipping.weights import BoxDimension, get_chargeable_grams

logger = logging.getLogger(__name__)

PINCODE_PATTERN = re.compile(r"^[0-9]{6}$")
CURRENCY_QUANTUM = Decimal("0.01")

# Order flow: estimated grams per unit of order value
ORDER_WEIGHT_PER_CURRENCY_UNIT = 0.1

MSG_INVALID_PINCODE = "Invalid pincode format. Please enter a 6-digit pincode."
MSG_SERVICEABLE = "Delivery available"
MSG_NOT_SERVICEABLE = "Delivery not available for this pincode"
MSG_PARTNER_DOWN = "Unable to check delivery availability right now. Please try again later."
MSG_UNPRICED = "Delivery available but unable to calculate charges"
MSG_SAME_DAY = "Same day delivery"


def is_valid_pincode(pincode: Any) -> bool:
    return isinstance(pincode, str) and bool(PINCODE_PATTERN.match(pincode.strip()))


def round_currency(amount: float) -> float:
    """Round to the currency minor unit, half-up (Python's round() is banker's)."""
    return float(Decimal(str(amount)).quantize(CURRENCY_QUANTUM, rounding=ROUND_HALF_UP))


# =============================================================================
# Request / Result Types
# =============================================================================

@dataclass
class ShipmentRequest:
    """A parcel to price. weight_grams None or 0 means "use the minimum billable weight"."""
    origin_pincode: str
    destination_pincode: str
    weight_grams: Optional[float] = None
    dimensions: Optional[List[BoxDimension]] = None
    declared_value: float = 0.0
    payment_mode: Union[PaymentMode, str] = PaymentMode.PREPAID
    shipping_mode: Union[ShippingMode, str] = ShippingMode.SURFACE


@dataclass
class ShipmentEstimate:
    """Outcome of a cost estimate. cost is None exactly when error is set."""
    cost: Optional[float] = None
    error: Optional[str] = None
    serviceable: bool = False
    estimated_transit_days: Optional[int] = None
    breakdown: Optional[FreightBreakdown] = None
    charged_weight_grams: Optional[int] = None

    @property
    def success(self) -> bool:
        return self.cost is not None

    @classmethod
    def failed(cls, error: str, charged_weight_grams: Optional[int] = None) -> "ShipmentEstimate":
        return cls(cost=None, error=error, serviceable=False, charged_weight_grams=charged_weight_grams)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cost": self.cost,
            "error": self.error,
            "serviceable": self.serviceable,
            "estimated_transit_days": self.estimated_transit_days,
            "breakdown": self.breakdown.to_dict() if self.breakdown else None,
            "charged_weight_grams": self.charged_weight_grams,
        }


@dataclass
class ServiceabilityResult:
    pincode: str
    serviceable: bool
    message: str
    delivery_codes: List[Any] = field(default_factory=list)


@dataclass
class DeliveryCheck:
    """Serviceability plus, when serviceable, the charges for the parcel."""
    serviceability: ServiceabilityResult
    estimate: Optional[ShipmentEstimate] = None

    @property
    def serviceable(self) -> bool:
        return self.serviceability.serviceable

    @property
    def message(self) -> str:
        if self.estimate is not None and self.estimate.error:
            return self.estimate.error
        return self.serviceability.message


@dataclass
class TransitEstimate:
    expected_tat: str
    tat_days: Optional[int]
    expected_delivery_date: Optional[date]
    pickup_date: date
    fallback: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "expected_tat": self.expected_tat,
            "tat_days": self.tat_days,
            "expected_delivery_date": (
                self.expected_delivery_date.isoformat() if self.expected_delivery_date else None
            ),
            "pickup_date": self.pickup_date.isoformat(),
            "fallback": self.fallback,
            "error": self.error,
        }


# =============================================================================
# Estimator
# =============================================================================

class ShippingEstimator:
    """
    Shipping cost, serviceability and transit time against one delivery partner.

    The partner (and its HTTP client) is injected and owned by the caller.
    The estimator itself holds no per-request state.
    """

    def __init__(self, partner: DeliveryPartner, settings: Optional[Settings] = None):
        self.partner = partner
        self.settings = settings or default_settings

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    @staticmethod
    def _require_pincode(value: Any, field_name: str, label: str) -> str:
        pincode = str(value or "").strip()
        if not pincode:
            raise InvalidInputError(f"{label} pincode is required", field=field_name, value=value)
        if not PINCODE_PATTERN.match(pincode):
            raise InvalidInputError(
                f"{label} pincode must be a 6-digit number",
                field=field_name,
                value=value,
            )
        return pincode

    @staticmethod
    def _require_non_negative(value: Any, field_name: str) -> float:
        if value is None:
            return 0.0
        try:
            number = float(value)
        except (TypeError, ValueError) as e:
            raise InvalidInputError(f"{field_name} must be a number", field=field_name, value=value) from e
        if not math.isfinite(number) or number < 0:
            # details must stay JSON-serializable
            raise InvalidInputError(
                f"{field_name} must be a finite, non-negative number",
                field=field_name,
                value=value if math.isfinite(number) else str(number),
            )
        return number

    @staticmethod
    def _validate_dimensions(dimensions: Optional[List[BoxDimension]]) -> List[BoxDimension]:
        boxes = list(dimensions or [])
        for box in boxes:
            sides = (box.length_cm, box.width_cm, box.height_cm)
            if not all(math.isfinite(side) and side > 0 for side in sides) or box.box_count < 1:
                raise InvalidInputError(
                    "Box dimensions must be positive and box_count at least 1",
                    field="dimensions",
                    value=[str(side) for side in sides],
                )
        return boxes

    def _default_box(self) -> BoxDimension:
        return BoxDimension(
            length_cm=self.settings.DEFAULT_BOX_LENGTH_CM,
            width_cm=self.settings.DEFAULT_BOX_WIDTH_CM,
            height_cm=self.settings.DEFAULT_BOX_HEIGHT_CM,
            box_count=1,
        )

    # -------------------------------------------------------------------------
    # Cost
    # -------------------------------------------------------------------------

    async def estimate_cost(
        self,
        request: ShipmentRequest,
        include_transit: bool = False,
    ) -> ShipmentEstimate:
        """
        Estimate the shipping charge for a parcel.

        Raises:
            InvalidInputError: Missing/malformed pincode, negative weight or value,
                unknown payment or shipping mode. Raised before any partner call.

        Returns:
            ShipmentEstimate. On any partner failure cost is None and error is set.
        """
        origin = self._require_pincode(request.origin_pincode, "origin_pincode", "Origin")
        destination = self._require_pincode(request.destination_pincode, "destination_pincode", "Destination")
        weight = self._require_non_negative(request.weight_grams, "weight_grams")
        declared_value = self._require_non_negative(request.declared_value, "declared_value")
        payment_mode = PaymentMode.parse(request.payment_mode)
        shipping_mode = ShippingMode.parse(request.shipping_mode)
        boxes = self._validate_dimensions(request.dimensions)

        if not weight:
            weight = self.settings.DEFAULT_WEIGHT_GRAMS

        charged_grams = get_chargeable_grams(weight, boxes, self.settings.VOLUMETRIC_DIVISOR)

        try:
            if charged_grams >= self.settings.B2B_WEIGHT_THRESHOLD_GRAMS:
                breakdown = await self.partner.get_b2b_freight(B2BFreightRequest(
                    dimensions=boxes or [self._default_box()],
                    weight_g=charged_grams,
                    source_pin=origin,
                    consignee_pin=destination,
                    payment_mode=payment_mode,
                    inv_amount=declared_value or self.settings.DEFAULT_INVOICE_AMOUNT,
                ))
            else:
                breakdown = await self.partner.get_b2c_charges(
                    origin,
                    destination,
                    charged_grams,
                    payment_mode,
                    shipping_mode,
                )
        except ShippingError as e:
            logger.warning(f"[ESTIMATOR] {origin} -> {destination} ({charged_grams}g): {e.code} {e.message}")
            return ShipmentEstimate.failed(e.message, charged_grams)
        except Exception as e:
            logger.exception(f"[ESTIMATOR] Unexpected partner failure for {origin} -> {destination}: {e}")
            return ShipmentEstimate.failed("Unable to calculate shipping charges", charged_grams)

        total = breakdown.total if breakdown is not None else None
        if total is None or total <= 0:
            logger.error(f"[ESTIMATOR] Partner quoted a non-positive charge ({total}) for {origin} -> {destination}")
            return ShipmentEstimate.failed("Delivery partner returned an invalid shipping charge", charged_grams)

        estimate = ShipmentEstimate(
            cost=round_currency(total),
            serviceable=True,
            breakdown=breakdown,
            charged_weight_grams=charged_grams,
        )

        if include_transit:
            estimate.estimated_transit_days = await self.estimate_transit_time(origin, destination, shipping_mode)

        logger.info(f"[ESTIMATOR] {origin} -> {destination}, {charged_grams}g, {payment_mode.value}: {estimate.cost}")
        return estimate

    async def estimate_for_order(
        self,
        items_price: float,
        destination_pincode: str,
        payment_mode: Union[PaymentMode, str] = PaymentMode.PREPAID,
    ) -> ShipmentEstimate:
        """
        Charges for a checkout order whose weight is not known yet.

        Weight is estimated from the order value (0.1 g per currency unit,
        never below the minimum billable weight) and shipped express from
        the warehouse.
        """
        items_price = self._require_non_negative(items_price, "items_price")
        weight = max(
            self.settings.DEFAULT_WEIGHT_GRAMS,
            math.ceil(round(items_price * ORDER_WEIGHT_PER_CURRENCY_UNIT, 3)),
        )
        return await self.estimate_cost(ShipmentRequest(
            origin_pincode=self.settings.WAREHOUSE_PINCODE,
            destination_pincode=destination_pincode,
            weight_grams=weight,
            declared_value=items_price,
            payment_mode=payment_mode,
            shipping_mode=ShippingMode.EXPRESS,
        ))

    async def estimate_freight(self, request: B2BFreightRequest) -> FreightBreakdown:
        """
        Raw LTL freight quote for the freight-estimate endpoint.

        Unlike estimate_cost, partner errors propagate so the route can
        report them as a gateway failure.
        """
        request.source_pin = self._require_pincode(request.source_pin, "source_pin", "Source")
        request.consignee_pin = self._require_pincode(request.consignee_pin, "consignee_pin", "Consignee")
        if not request.weight_g or request.weight_g <= 0:
            raise InvalidInputError("weight_g must be positive", field="weight_g", value=request.weight_g)
        self._require_non_negative(request.inv_amount, "inv_amount")
        request.dimensions = self._validate_dimensions(request.dimensions) or [self._default_box()]
        return await self.partner.get_b2b_freight(request)

    # -------------------------------------------------------------------------
    # Serviceability
    # -------------------------------------------------------------------------

    async def check_serviceability(self, pincode: str) -> ServiceabilityResult:
        """Whether the partner delivers to a pincode. Never raises."""
        pincode = str(pincode or "").strip()
        if not PINCODE_PATTERN.match(pincode):
            return ServiceabilityResult(pincode=pincode, serviceable=False, message=MSG_INVALID_PINCODE)

        try:
            coverage = await self.partner.check_pincode(pincode)
        except ShippingError as e:
            logger.warning(f"[ESTIMATOR] Pincode {pincode} lookup failed: {e.code} {e.message}")
            return ServiceabilityResult(pincode=pincode, serviceable=False, message=MSG_PARTNER_DOWN)
        except Exception as e:
            logger.exception(f"[ESTIMATOR] Unexpected failure checking pincode {pincode}: {e}")
            return ServiceabilityResult(pincode=pincode, serviceable=False, message=MSG_PARTNER_DOWN)

        return ServiceabilityResult(
            pincode=pincode,
            serviceable=coverage.serviceable,
            message=MSG_SERVICEABLE if coverage.serviceable else MSG_NOT_SERVICEABLE,
            delivery_codes=list(coverage.delivery_codes),
        )

    async def check_delivery(
        self,
        pincode: str,
        weight_grams: Optional[float] = None,
        shipping_mode: Union[ShippingMode, str] = ShippingMode.SURFACE,
        payment_mode: Union[PaymentMode, str] = PaymentMode.PREPAID,
    ) -> DeliveryCheck:
        """Serviceability first; charges from the warehouse only when serviceable."""
        serviceability = await self.check_serviceability(pincode)
        if not serviceability.serviceable:
            return DeliveryCheck(serviceability=serviceability)

        estimate = await self.estimate_cost(ShipmentRequest(
            origin_pincode=self.settings.WAREHOUSE_PINCODE,
            destination_pincode=serviceability.pincode,
            weight_grams=weight_grams,
            payment_mode=payment_mode,
            shipping_mode=shipping_mode,
        ))
        if not estimate.success:
            estimate.error = MSG_UNPRICED
        return DeliveryCheck(serviceability=serviceability, estimate=estimate)

    # -------------------------------------------------------------------------
    # Transit time
    # -------------------------------------------------------------------------

    async def estimate_transit_time(
        self,
        origin_pincode: str,
        destination_pincode: str,
        shipping_mode: Union[ShippingMode, str] = ShippingMode.SURFACE,
        product_type: Union[ProductType, str] = ProductType.B2C,
    ) -> Optional[int]:
        """Transit days, or None when it cannot be determined. Advisory only; never raises."""
        try:
            origin = self._require_pincode(origin_pincode, "origin_pincode", "Origin")
            destination = self._require_pincode(destination_pincode, "destination_pincode", "Destination")
            mode = ShippingMode.parse(shipping_mode)
            product = self._parse_product_type(product_type)
        except InvalidInputError as e:
            logger.debug(f"[ESTIMATOR] Transit time skipped: {e.message}")
            return None

        if origin == destination:
            return 0

        try:
            quote = await self.partner.get_expected_tat(
                origin,
                destination,
                mode,
                product,
                format_pickup_for_partner(default_pickup_date()),
            )
        except ShippingError as e:
            logger.info(f"[ESTIMATOR] Transit time unavailable {origin} -> {destination}: {e.message}")
            return None
        except Exception as e:
            logger.exception(f"[ESTIMATOR] Unexpected failure fetching transit time: {e}")
            return None

        return parse_tat_days(quote.tat)

    async def estimate_delivery(
        self,
        origin_pincode: str,
        destination_pincode: str,
        shipping_mode: Union[ShippingMode, str] = ShippingMode.SURFACE,
        product_type: Union[ProductType, str] = ProductType.B2C,
        pickup_date: Union[str, date, None] = None,
        today: Optional[date] = None,
    ) -> TransitEstimate:
        """
        Expected TAT and delivery date for display.

        Falls back to FALLBACK_TAT_TEXT / FALLBACK_TAT_DAYS (flagged fallback=True)
        when the partner cannot answer.

        Raises:
            InvalidInputError: Missing/malformed pincodes, mode or product type
        """
        origin = self._require_pincode(origin_pincode, "origin_pin", "Origin")
        destination = self._require_pincode(destination_pincode, "destination_pin", "Destination")
        mode = ShippingMode.parse(shipping_mode)
        product = self._parse_product_type(product_type)
        pickup = resolve_pickup_date(pickup_date, today)

        if origin == destination:
            return TransitEstimate(
                expected_tat=MSG_SAME_DAY,
                tat_days=0,
                expected_delivery_date=pickup,
                pickup_date=pickup,
            )

        try:
            quote = await self.partner.get_expected_tat(
                origin,
                destination,
                mode,
                product,
                format_pickup_for_partner(pickup),
            )
        except ShippingError as e:
            logger.warning(f"[ESTIMATOR] Expected TAT {origin} -> {destination} failed, using fallback: {e.message}")
            return self._fallback_transit(pickup, today, e.message)
        except Exception as e:
            logger.exception(f"[ESTIMATOR] Unexpected failure fetching expected TAT: {e}")
            return self._fallback_transit(pickup, today, "Unable to fetch expected TAT")

        days = parse_tat_days(quote.tat)
        delivery_date = parse_date(quote.expected_delivery_date)
        if delivery_date is None and days is not None:
            delivery_date = add_business_days(pickup, days)

        if days is None and delivery_date is None:
            return self._fallback_transit(pickup, today, f"Unrecognized TAT from partner: {quote.tat!r}")

        return TransitEstimate(
            expected_tat=format_tat(quote.tat, self.settings.FALLBACK_TAT_TEXT),
            tat_days=days,
            expected_delivery_date=delivery_date,
            pickup_date=pickup,
        )

    def _fallback_transit(self, pickup: date, today: Optional[date], error: str) -> TransitEstimate:
        return TransitEstimate(
            expected_tat=self.settings.FALLBACK_TAT_TEXT,
            tat_days=None,
            expected_delivery_date=fallback_delivery_date(self.settings.FALLBACK_TAT_DAYS, today),
            pickup_date=pickup,
            fallback=True,
            error=error,
        )

    @staticmethod
    def _parse_product_type(value: Union[ProductType, str]) -> ProductType:
        if isinstance(value, ProductType):
            return value
        try:
            return ProductType(str(value or "").strip().upper())
        except ValueError as e:
            raise InvalidInputError(
                'Invalid product type. Must be "B2C" or "B2B"',
                field="product_type",
                value=value,
            ) from e

    # -------------------------------------------------------------------------
    # Shipments
    # -------------------------------------------------------------------------

    @staticmethod
    def _require_waybill(waybill: str) -> str:
        waybill = str(waybill or "").strip()
        if not waybill:
            raise InvalidInputError("Waybill is required", field="waybill", value=waybill)
        return waybill

    async def track_shipment(self, waybill: str) -> TrackingInfo:
        """Partner errors propagate; the shipment routes map them to 502."""
        return await self.partner.track(self._require_waybill(waybill))

    async def cancel_shipment(self, waybill: str) -> CancelResult:
        waybill = self._require_waybill(waybill)
        result = await self.partner.cancel(waybill)
        if result.success:
            logger.info(f"[ESTIMATOR] Shipment {waybill} cancelled via {self.partner.partner_name}")
        return result
