"""
Tests for Settings parsing and production validation.
"""
import pytest

from storefront_backend.core.config import DEFAULT_CORS_ORIGINS, Settings


class TestSettings:

    def test_shipping_defaults(self):
        settings = Settings(DELIVERY_PARTNER="auto")

        assert settings.WAREHOUSE_PINCODE == "700001"
        assert settings.DEFAULT_WEIGHT_GRAMS == 500
        assert settings.B2B_WEIGHT_THRESHOLD_GRAMS == 20000
        assert settings.VOLUMETRIC_DIVISOR == 5000
        assert settings.PARTNER_TIMEOUT_SECONDS == 8.0

    @pytest.mark.parametrize("value,expected", [
        ("https://a.example,https://b.example", ["https://a.example", "https://b.example"]),
        ('["https://a.example"]', ["https://a.example"]),
        ("", DEFAULT_CORS_ORIGINS),
    ])
    def test_cors_origins(self, value, expected):
        assert Settings(CORS_ORIGINS=value).CORS_ORIGINS == expected

    def test_partner_choice_normalized(self):
        assert Settings(DELIVERY_PARTNER=" Delhivery ").DELIVERY_PARTNER == "delhivery"

    def test_unknown_partner_rejected(self):
        with pytest.raises(ValueError):
            Settings(DELIVERY_PARTNER="bluedart")

    def test_warehouse_pincode_validated(self):
        with pytest.raises(ValueError):
            Settings(WAREHOUSE_PINCODE="70001")


class TestProductionValidation:

    def test_valid_production_config(self):
        settings = Settings(ENVIRONMENT="production", DELIVERY_PARTNER="delhivery")

        assert settings.is_production

    @pytest.mark.parametrize("overrides", [
        {"DEBUG": True},
        {"DELIVERY_PARTNER": "offline"},
        {"PARTNER_TIMEOUT_SECONDS": 60},
        {"CORS_ORIGINS": "*"},
    ])
    def test_insecure_production_config_rejected(self, overrides):
        values = {"ENVIRONMENT": "production", "DELIVERY_PARTNER": "delhivery"}
        values.update(overrides)

        with pytest.raises(ValueError) as exc_info:
            Settings(**values)
        assert "PRODUCTION CONFIGURATION VIOLATIONS" in str(exc_info.value)
