"""
Delivery schemas

The storefront checkout posts camelCase JSON (destinationPincode, paymentMode...);
snake_case field names are accepted as well.
Range checks (negative weight, malformed pincode) are left to the estimator so
every input problem comes back as the same 400 payload.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from storefront_backend.modules.shipping.weights import BoxDimension


class BoxDimensionIn(BaseModel):
    length_cm: float = Field(alias="lengthCm")
    width_cm: float = Field(alias="widthCm")
    height_cm: float = Field(alias="heightCm")
    box_count: int = Field(1, alias="boxCount")

    class Config:
        populate_by_name = True

    def to_box(self) -> BoxDimension:
        return BoxDimension(
            length_cm=self.length_cm,
            width_cm=self.width_cm,
            height_cm=self.height_cm,
            box_count=self.box_count,
        )


class ShippingCostRequest(BaseModel):
    destination_pincode: Optional[str] = Field(None, alias="destinationPincode")
    origin_pincode: Optional[str] = Field(None, alias="originPincode")  # defaults to the warehouse
    weight: Optional[float] = None  # grams
    dimensions: Optional[List[BoxDimensionIn]] = None
    declared_value: float = Field(0.0, alias="declaredValue")
    payment_mode: str = Field("Prepaid", alias="paymentMode")
    shipping_service: str = Field("E", alias="shippingService")  # E/S or express/surface
    include_transit: bool = Field(False, alias="includeTransit")

    class Config:
        populate_by_name = True


class ShippingCostResponse(BaseModel):
    success: bool
    cost: Optional[float] = None
    error: Optional[str] = None
    serviceable: Optional[bool] = None
    estimated_transit_days: Optional[int] = None
    charged_weight_grams: Optional[int] = None
    breakdown: Optional[Dict[str, Any]] = None


class PincodeCheckResponse(BaseModel):
    pincode: str
    serviceability: bool
    message: str
    delivery_codes: List[Any] = []


class ServiceabilityCheckResponse(PincodeCheckResponse):
    charges: Optional[float] = None
    charges_breakdown: Optional[Dict[str, Any]] = None


class FreightEstimateRequest(BaseModel):
    dimensions: List[BoxDimensionIn] = []
    weight_g: int
    source_pin: Optional[str] = None  # defaults to the warehouse
    consignee_pin: str
    payment_mode: str = "prepaid"
    inv_amount: float = 0.0
    freight_mode: str = "surface"
    cheque_payment: bool = False
    rov_insurance: bool = False


class FreightEstimateResponse(BaseModel):
    success: bool = True
    data: Dict[str, Any]


class TransitEstimateOut(BaseModel):
    expected_tat: str
    tat_days: Optional[int] = None
    expected_delivery_date: Optional[date] = None
    pickup_date: date
    fallback: bool = False
    error: Optional[str] = None


class ExpectedTatResponse(BaseModel):
    success: bool = True
    data: TransitEstimateOut


class TrackingEventOut(BaseModel):
    timestamp: Optional[datetime] = None
    status: str
    description: str
    location: Optional[str] = None


class TrackingResponse(BaseModel):
    waybill: str
    partner: str
    status: str
    partner_status: str
    expected_delivery: Optional[datetime] = None
    tracking_url: Optional[str] = None
    events: List[TrackingEventOut] = []


class CancelResponse(BaseModel):
    success: bool
    waybill: str
    error: Optional[str] = None
