"""
Pytest configuration and fixtures for the delivery backend tests.
"""
import os
import pytest
from unittest.mock import MagicMock

# Set test environment before importing storefront_backend modules
os.environ["ENVIRONMENT"] = "development"
os.environ["DEBUG"] = "false"
os.environ["DELIVERY_PARTNER"] = "offline"
os.environ["DELHIVERY_AUTH_TOKEN"] = ""
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"


@pytest.fixture
def test_settings():
    """Development settings with the default shipping constants."""
    from storefront_backend.core.config import Settings

    return Settings(
        ENVIRONMENT="development",
        DELIVERY_PARTNER="auto",
        DELHIVERY_AUTH_TOKEN="",
        WAREHOUSE_PINCODE="700001",
    )


@pytest.fixture
def mock_partner() -> MagicMock:
    """Mock delivery partner quoting 120.00 for any B2C parcel."""
    from storefront_backend.modules.shipping.partners.base import (
        CancelResult,
        DeliveryPartner,
        FreightBreakdown,
        PartnerCode,
        PincodeCoverage,
        ShipmentStatus,
        TatQuote,
        TrackingInfo,
    )

    partner = MagicMock(spec=DeliveryPartner)
    partner.partner_code = PartnerCode.DELHIVERY
    partner.partner_name = "Mock Partner"

    partner.check_pincode.side_effect = lambda pincode: PincodeCoverage(
        pincode=pincode,
        serviceable=True,
        delivery_codes=[{"postal_code": {"pin": pincode}}],
    )
    partner.get_b2c_charges.return_value = FreightBreakdown(
        total=120.0,
        base_freight=95.0,
        fuel_surcharge=6.7,
        gst=18.3,
    )
    partner.get_b2b_freight.return_value = FreightBreakdown(
        total=950.0,
        base_freight=800.0,
        fuel_surcharge=50.0,
        gst=100.0,
    )
    partner.get_expected_tat.return_value = TatQuote(tat="2")
    partner.track.side_effect = lambda waybill: TrackingInfo(
        waybill=waybill,
        partner_code=PartnerCode.DELHIVERY,
        status=ShipmentStatus.IN_TRANSIT,
        partner_status="In Transit",
        tracking_url=f"https://www.delhivery.com/track/package/{waybill}",
    )
    partner.cancel.side_effect = lambda waybill: CancelResult(success=True, waybill=waybill)
    return partner


@pytest.fixture
def estimator(mock_partner, test_settings):
    from storefront_backend.services.shipping_estimator import ShippingEstimator

    return ShippingEstimator(mock_partner, test_settings)
