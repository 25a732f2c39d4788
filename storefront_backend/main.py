"""
Storefront Delivery Backend
FastAPI application entry point

- Delivery partner chosen once at startup (PartnerFactory)
- Partner HTTP client created in the lifespan and closed on shutdown
- Rate limiting with SlowAPI
- Error sanitization middleware + structured shipping errors
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from storefront_backend import __version__
from storefront_backend.api.routes import delivery, shipment
from storefront_backend.core.config import Settings, settings
from storefront_backend.core.error_handler import ErrorSanitizationMiddleware, shipping_error_handler
from storefront_backend.core.exceptions import ShippingError
from storefront_backend.core.http_client import get_delhivery_client
from storefront_backend.core.rate_limit import limiter, rate_limit_exceeded_handler
from storefront_backend.modules.shipping.partners import PartnerFactory
from storefront_backend.modules.shipping.partners.base import PartnerCode
from storefront_backend.services.shipping_estimator import ShippingEstimator

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    app_settings = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Build the partner and estimator on startup, release them on shutdown.

        PartnerConfigurationError here aborts startup: production must not
        come up without partner credentials.
        """
        http_client = None
        if PartnerFactory.resolve_code(app_settings) is PartnerCode.DELHIVERY:
            http_client = await get_delhivery_client(app_settings).init()

        partner = PartnerFactory.from_settings(app_settings, http_client)
        app.state.partner = partner
        app.state.estimator = ShippingEstimator(partner, app_settings)
        logger.info(f"{app_settings.APP_NAME} started ({app_settings.ENVIRONMENT}, partner: {partner.partner_name})")

        yield

        await partner.close()
        if http_client is not None:
            await http_client.close()
            logger.info("Partner HTTP client closed")

    app = FastAPI(
        lifespan=lifespan,
        title=f"{app_settings.APP_NAME} API",
        version=__version__,
        debug=app_settings.DEBUG,
    )

    # Rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    # Shipping errors -> 400 / 502 / 503 / 504 JSON
    app.add_exception_handler(ShippingError, shipping_error_handler)

    # Error sanitization (catches unhandled exceptions)
    app.add_middleware(ErrorSanitizationMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    prefix = app_settings.API_PREFIX
    app.include_router(delivery.router, prefix=f"{prefix}/delivery", tags=["Delivery"])
    app.include_router(shipment.router, prefix=f"{prefix}/shipment", tags=["Shipment"])

    @app.get("/health", tags=["Health"])
    async def health_check():
        partner = getattr(app.state, "partner", None)
        return {
            "status": "healthy" if partner is not None else "starting",
            "partner": partner.partner_code.value if partner is not None else None,
            "environment": app_settings.ENVIRONMENT,
        }

    return app


app = create_app()
