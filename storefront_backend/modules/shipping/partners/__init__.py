"""
Delivery Partner Registry and Factory

- PartnerFactory builds the partner the configuration asks for
- Partners register themselves with @register_partner
- One partner instance is shared by the whole process
"""
from typing import Dict, List, Optional, Type
import logging

from storefront_backend.core.config import Settings
from storefront_backend.core.exceptions import PartnerConfigurationError
from storefront_backend.core.http_client import PartnerHTTPClient
from storefront_backend.modules.shipping.partners.base import DeliveryPartner, PartnerCode

logger = logging.getLogger(__name__)

# Registry of partner implementations
_PARTNER_REGISTRY: Dict[PartnerCode, Type[DeliveryPartner]] = {}


def register_partner(partner_code: PartnerCode):
    """
    Decorator to register a partner implementation.

    Usage:
        @register_partner(PartnerCode.DELHIVERY)
        class DelhiveryPartner(DeliveryPartner):
            ...
    """
    def decorator(cls: Type[DeliveryPartner]):
        _PARTNER_REGISTRY[partner_code] = cls
        logger.info(f"Registered delivery partner: {partner_code.value} -> {cls.__name__}")
        return cls
    return decorator


class PartnerFactory:
    """
    Factory for creating the configured delivery partner.

    Selection (DELIVERY_PARTNER):
        delhivery - always Delhivery, token required
        offline   - mock partner, refused in production
        auto      - Delhivery when a token is set, offline partner outside production
    """

    @classmethod
    def resolve_code(cls, settings: Settings) -> PartnerCode:
        choice = settings.DELIVERY_PARTNER
        has_token = bool(settings.DELHIVERY_AUTH_TOKEN)

        if choice == "offline":
            if settings.is_production:
                raise PartnerConfigurationError(
                    "The offline delivery partner cannot be used in production"
                )
            return PartnerCode.OFFLINE

        if choice == "delhivery" or has_token:
            if not has_token:
                raise PartnerConfigurationError(
                    "DELHIVERY_AUTH_TOKEN is required when DELIVERY_PARTNER=delhivery",
                    details={"partner": "delhivery"},
                )
            return PartnerCode.DELHIVERY

        # auto without a token
        if settings.is_production:
            raise PartnerConfigurationError(
                "DELHIVERY_AUTH_TOKEN is not configured",
                details={"partner": "delhivery", "environment": settings.ENVIRONMENT},
            )
        logger.warning("[PARTNER] DELHIVERY_AUTH_TOKEN not set, using offline partner with mock data")
        return PartnerCode.OFFLINE

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        http_client: Optional[PartnerHTTPClient] = None,
    ) -> DeliveryPartner:
        """
        Build the configured partner.

        Args:
            settings: Application settings
            http_client: HTTP client for partners that call out. The caller owns it.

        Raises:
            PartnerConfigurationError: No usable partner for this configuration
        """
        code = cls.resolve_code(settings)

        partner_cls = _PARTNER_REGISTRY.get(code)
        if not partner_cls:
            raise PartnerConfigurationError(f"No implementation registered for partner: {code.value}")

        partner = partner_cls.from_settings(settings, http_client)
        logger.info(f"[PARTNER] Using delivery partner: {partner.partner_name}")
        return partner

    @classmethod
    def get_registered_partners(cls) -> List[PartnerCode]:
        """Get list of all registered partner codes."""
        return list(_PARTNER_REGISTRY.keys())


# Import partners to trigger registration
# These imports must be at the bottom to avoid circular imports
from storefront_backend.modules.shipping.partners.delhivery import DelhiveryPartner  # noqa: E402, F401
from storefront_backend.modules.shipping.partners.offline import OfflinePartner  # noqa: E402, F401
