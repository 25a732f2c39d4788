from storefront_backend.schemas.delivery import (
    BoxDimensionIn,
    ShippingCostRequest,
    ShippingCostResponse,
    PincodeCheckResponse,
    ServiceabilityCheckResponse,
    FreightEstimateRequest,
    FreightEstimateResponse,
    ExpectedTatResponse,
    TrackingResponse,
    CancelResponse,
)
