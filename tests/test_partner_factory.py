"""
Tests for partner selection at configuration time.
"""
import pytest

from storefront_backend.core.config import Settings
from storefront_backend.core.exceptions import PartnerConfigurationError
from storefront_backend.core.http_client import PartnerHTTPClient
from storefront_backend.modules.shipping.partners import PartnerFactory
from storefront_backend.modules.shipping.partners.base import PartnerCode
from storefront_backend.modules.shipping.partners.delhivery import DelhiveryPartner
from storefront_backend.modules.shipping.partners.offline import OfflinePartner


def make_settings(**overrides) -> Settings:
    values = {
        "ENVIRONMENT": "development",
        "DELIVERY_PARTNER": "auto",
        "DELHIVERY_AUTH_TOKEN": "",
    }
    values.update(overrides)
    return Settings(**values)


class TestPartnerFactory:

    def test_both_partners_registered(self):
        registered = PartnerFactory.get_registered_partners()

        assert PartnerCode.DELHIVERY in registered
        assert PartnerCode.OFFLINE in registered

    def test_token_selects_delhivery(self):
        client = PartnerHTTPClient("delhivery")
        partner = PartnerFactory.from_settings(make_settings(DELHIVERY_AUTH_TOKEN="abc"), client)

        assert isinstance(partner, DelhiveryPartner)
        assert partner._http is client

    def test_no_token_outside_production_is_offline(self):
        partner = PartnerFactory.from_settings(make_settings())

        assert isinstance(partner, OfflinePartner)

    def test_explicit_offline_wins_over_token(self):
        settings = make_settings(DELIVERY_PARTNER="offline", DELHIVERY_AUTH_TOKEN="abc")

        assert PartnerFactory.resolve_code(settings) is PartnerCode.OFFLINE

    def test_explicit_delhivery_requires_token(self):
        with pytest.raises(PartnerConfigurationError):
            PartnerFactory.resolve_code(make_settings(DELIVERY_PARTNER="delhivery"))

    def test_production_without_token_refuses(self):
        settings = make_settings(ENVIRONMENT="production")

        with pytest.raises(PartnerConfigurationError):
            PartnerFactory.from_settings(settings)

    def test_production_with_token(self):
        settings = make_settings(ENVIRONMENT="production", DELHIVERY_AUTH_TOKEN="abc")

        assert PartnerFactory.resolve_code(settings) is PartnerCode.DELHIVERY
