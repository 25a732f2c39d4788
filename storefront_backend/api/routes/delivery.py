"""
Delivery routes

Pincode serviceability, shipping cost, LTL freight and expected TAT.
All endpoints call the delivery partner, so they draw from the shared
partner quota (RATE_LIMIT_DELIVERY per client).

ShippingError raised here is turned into JSON by shipping_error_handler
(InvalidInputError -> 400, partner failures -> 502/504).
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse

from storefront_backend.api.deps import get_estimator
from storefront_backend.core.config import settings
from storefront_backend.core.exceptions import InvalidInputError
from storefront_backend.core.rate_limit import partner_quota
from storefront_backend.modules.shipping.partners.base import (
    B2BFreightRequest,
    PaymentMode,
    ShippingMode,
)
from storefront_backend.schemas.delivery import (
    ExpectedTatResponse,
    FreightEstimateRequest,
    FreightEstimateResponse,
    PincodeCheckResponse,
    ServiceabilityCheckResponse,
    ShippingCostRequest,
    ShippingCostResponse,
)
from storefront_backend.services.shipping_estimator import (
    MSG_INVALID_PINCODE,
    MSG_PARTNER_DOWN,
    ShipmentRequest,
    ShippingEstimator,
    is_valid_pincode,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _require_pincode_param(pincode: Optional[str]) -> str:
    if not pincode:
        raise InvalidInputError("Pincode is required", field="pincode")
    if not is_valid_pincode(pincode):
        raise InvalidInputError(MSG_INVALID_PINCODE, field="pincode", value=pincode)
    return pincode.strip()


@router.get("/check-pincode", response_model=PincodeCheckResponse)
@partner_quota()
async def check_pincode(
    request: Request,
    pincode: Optional[str] = Query(None),
    estimator: ShippingEstimator = Depends(get_estimator),
):
    """Whether the delivery partner serves a pincode."""
    pincode = _require_pincode_param(pincode)
    result = await estimator.check_serviceability(pincode)

    body = PincodeCheckResponse(
        pincode=result.pincode,
        serviceability=result.serviceable,
        message=result.message,
        delivery_codes=result.delivery_codes,
    )
    if result.message == MSG_PARTNER_DOWN:
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body.model_dump())
    return body


@router.get("/check-serviceability", response_model=ServiceabilityCheckResponse)
@partner_quota()
async def check_serviceability(
    request: Request,
    pincode: Optional[str] = Query(None),
    weight: Optional[float] = Query(None, description="Parcel weight in grams"),
    express: bool = Query(False),
    cod: bool = Query(False),
    estimator: ShippingEstimator = Depends(get_estimator),
):
    """
    Serviceability plus charges from the warehouse.

    404 when the pincode is not serviceable, 503 when the partner could not be reached.
    """
    pincode = _require_pincode_param(pincode)
    if weight is None:
        raise InvalidInputError("Weight is required", field="weight")
    if not weight > 0:
        raise InvalidInputError(
            "Invalid weight value. Weight must be a positive number.",
            field="weight",
            value=str(weight),
        )

    check = await estimator.check_delivery(
        pincode,
        weight_grams=weight,
        shipping_mode=ShippingMode.EXPRESS if express else ShippingMode.SURFACE,
        payment_mode=PaymentMode.COD if cod else PaymentMode.PREPAID,
    )

    estimate = check.estimate
    body = ServiceabilityCheckResponse(
        pincode=check.serviceability.pincode,
        serviceability=check.serviceable,
        message=check.message,
        delivery_codes=check.serviceability.delivery_codes,
        charges=estimate.cost if estimate else None,
        charges_breakdown=estimate.breakdown.to_dict() if estimate and estimate.breakdown else None,
    )

    if not check.serviceable:
        status_code = (
            status.HTTP_503_SERVICE_UNAVAILABLE
            if check.serviceability.message == MSG_PARTNER_DOWN
            else status.HTTP_404_NOT_FOUND
        )
        return JSONResponse(status_code=status_code, content=body.model_dump())
    return body


@router.post("/shipping-cost", response_model=ShippingCostResponse, response_model_exclude_none=True)
@partner_quota()
async def shipping_cost(
    request: Request,
    payload: ShippingCostRequest,
    estimator: ShippingEstimator = Depends(get_estimator),
):
    """
    Shipping cost for a parcel.

    A failed estimate answers 502 with success=false. The checkout must treat
    that as "cannot ship right now", never as free shipping.
    """
    estimate = await estimator.estimate_cost(
        ShipmentRequest(
            origin_pincode=payload.origin_pincode or settings.WAREHOUSE_PINCODE,
            destination_pincode=payload.destination_pincode,
            weight_grams=payload.weight,
            dimensions=[box.to_box() for box in payload.dimensions] if payload.dimensions else None,
            declared_value=payload.declared_value,
            payment_mode=payload.payment_mode,
            shipping_mode=payload.shipping_service,
        ),
        include_transit=payload.include_transit,
    )

    body = ShippingCostResponse(
        success=estimate.success,
        cost=estimate.cost,
        error=estimate.error,
        serviceable=estimate.serviceable,
        estimated_transit_days=estimate.estimated_transit_days,
        charged_weight_grams=estimate.charged_weight_grams,
        breakdown=estimate.breakdown.to_dict() if estimate.breakdown else None,
    )
    if not estimate.success:
        return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content=body.model_dump(exclude_none=True))
    return body


@router.post("/freight-estimate", response_model=FreightEstimateResponse)
@partner_quota()
async def freight_estimate(
    request: Request,
    payload: FreightEstimateRequest,
    estimator: ShippingEstimator = Depends(get_estimator),
):
    """LTL freight estimate for heavy shipments. Partner errors answer 502."""
    breakdown = await estimator.estimate_freight(B2BFreightRequest(
        dimensions=[box.to_box() for box in payload.dimensions],
        weight_g=payload.weight_g,
        source_pin=payload.source_pin or settings.WAREHOUSE_PINCODE,
        consignee_pin=payload.consignee_pin,
        payment_mode=PaymentMode.parse(payload.payment_mode),
        inv_amount=payload.inv_amount or settings.DEFAULT_INVOICE_AMOUNT,
        freight_mode=payload.freight_mode,
        cheque_payment=payload.cheque_payment,
        rov_insurance=payload.rov_insurance,
    ))
    return FreightEstimateResponse(data=breakdown.to_dict())


@router.get("/expected-tat", response_model=ExpectedTatResponse)
@partner_quota()
async def expected_tat(
    request: Request,
    origin_pin: Optional[str] = Query(None),
    destination_pin: Optional[str] = Query(None),
    mot: str = Query("S", description="Mode of transport: S (surface) or E (express)"),
    pdt: str = Query("B2C", description="Product type: B2C or B2B"),
    expected_pickup_date: Optional[str] = Query(None, description="YYYY-MM-DD, defaults to tomorrow"),
    estimator: ShippingEstimator = Depends(get_estimator),
):
    """Expected TAT and delivery date. Falls back to a generic window when the partner cannot answer."""
    transit = await estimator.estimate_delivery(
        origin_pin,
        destination_pin,
        shipping_mode=mot,
        product_type=pdt,
        pickup_date=expected_pickup_date,
    )
    return ExpectedTatResponse(data=transit.to_dict())
