"""
Shipping module.

- partners: delivery partner interface, implementations and factory
- weights: volumetric / chargeable weight
- transit: TAT parsing and business-day arithmetic
"""
from storefront_backend.modules.shipping.partners import (
    PartnerFactory,
    register_partner,
)
from storefront_backend.modules.shipping.partners.base import DeliveryPartner

__all__ = [
    "DeliveryPartner",
    "PartnerFactory",
    "register_partner",
]
