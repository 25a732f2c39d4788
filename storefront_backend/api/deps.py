"""
API dependencies
"""
from fastapi import HTTPException, Request, status

from storefront_backend.services.shipping_estimator import ShippingEstimator


async def get_estimator(request: Request) -> ShippingEstimator:
    """The process-wide estimator built in the application lifespan."""
    estimator = getattr(request.app.state, "estimator", None)
    if estimator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Delivery service is not initialized",
        )
    return estimator
