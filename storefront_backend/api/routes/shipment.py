"""
Shipment routes

Tracking and cancellation by waybill.
"""
from fastapi import APIRouter, Depends, Request

from storefront_backend.api.deps import get_estimator
from storefront_backend.core.rate_limit import partner_quota
from storefront_backend.schemas.delivery import CancelResponse, TrackingResponse
from storefront_backend.services.shipping_estimator import ShippingEstimator

router = APIRouter()


@router.get("/{waybill}/track", response_model=TrackingResponse)
@partner_quota()
async def track_shipment(
    request: Request,
    waybill: str,
    estimator: ShippingEstimator = Depends(get_estimator),
):
    info = await estimator.track_shipment(waybill)
    return TrackingResponse(
        waybill=info.waybill,
        partner=info.partner_code.value,
        status=info.status.value,
        partner_status=info.partner_status,
        expected_delivery=info.expected_delivery,
        tracking_url=info.tracking_url,
        events=[
            {
                "timestamp": event.timestamp,
                "status": event.status,
                "description": event.description,
                "location": event.location,
            }
            for event in info.events
        ],
    )


@router.post("/{waybill}/cancel", response_model=CancelResponse, response_model_exclude_none=True)
@partner_quota()
async def cancel_shipment(
    request: Request,
    waybill: str,
    estimator: ShippingEstimator = Depends(get_estimator),
):
    """Cancel a shipment. success=false when the partner refuses (e.g. already picked up)."""
    result = await estimator.cancel_shipment(waybill)
    return CancelResponse(
        success=result.success,
        waybill=result.waybill,
        error=result.error_message,
    )
