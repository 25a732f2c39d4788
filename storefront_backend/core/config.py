"""
Application configuration

SECURITY: Defaults are fail-safe for production.
- DEBUG defaults to False
- Partner credentials have no defaults (offline partner is refused in production)
- Runtime validation catches insecure configurations
"""
import json
import logging
import re
from typing import List, Union
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

# Default CORS origins
DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

PARTNER_CHOICES = ("auto", "delhivery", "offline")


class Settings(BaseSettings):
    # App - defaults are PRODUCTION safe
    APP_NAME: str = "Storefront Delivery"
    DEBUG: bool = False  # SECURE DEFAULT: off in production
    ENVIRONMENT: str = "production"  # Explicit env marker
    LOG_LEVEL: str = "INFO"
    API_PREFIX: str = "/api"

    # CORS - accepts JSON array or comma-separated string
    # Using str type to prevent pydantic-settings from trying to parse as JSON
    CORS_ORIGINS: Union[str, List[str]] = DEFAULT_CORS_ORIGINS

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, list):
            return v
        if isinstance(v, str):
            if not v or v.strip() == "":
                return DEFAULT_CORS_ORIGINS
            # Try JSON first
            if v.startswith("["):
                try:
                    return json.loads(v)
                except json.JSONDecodeError:
                    pass
            # Fallback to comma-separated
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    # Delivery partner selection: auto | delhivery | offline
    # auto = Delhivery when a token is configured, offline partner otherwise (non-production only)
    DELIVERY_PARTNER: str = "auto"

    @field_validator("DELIVERY_PARTNER", mode="before")
    @classmethod
    def normalize_partner(cls, v):
        value = (v or "auto").strip().lower()
        if value not in PARTNER_CHOICES:
            raise ValueError(f"DELIVERY_PARTNER must be one of {', '.join(PARTNER_CHOICES)}")
        return value

    # Delhivery B2C (kinko) - token auth
    DELHIVERY_AUTH_TOKEN: str = ""
    DELHIVERY_B2C_URL: str = "https://track.delhivery.com"

    # Delhivery B2B (LTL / heavy shipments) - username/password login
    DELHIVERY_B2B_URL: str = "https://ltl-clients-api.delhivery.com"
    DELHIVERY_B2B_USERNAME: str = ""
    DELHIVERY_B2B_PASSWORD: str = ""
    DELHIVERY_B2B_TOKEN_TTL_HOURS: int = 23

    # Shipping defaults
    WAREHOUSE_PINCODE: str = "700001"
    DEFAULT_WEIGHT_GRAMS: int = 500  # Minimum billable weight
    DEFAULT_BOX_LENGTH_CM: float = 20.0
    DEFAULT_BOX_WIDTH_CM: float = 15.0
    DEFAULT_BOX_HEIGHT_CM: float = 10.0
    DEFAULT_INVOICE_AMOUNT: float = 1000.0
    B2B_WEIGHT_THRESHOLD_GRAMS: int = 20000  # 20kg and above goes through LTL freight
    VOLUMETRIC_DIVISOR: int = 5000
    FALLBACK_TAT_DAYS: int = 5
    FALLBACK_TAT_TEXT: str = "3-7 business days"

    @field_validator("WAREHOUSE_PINCODE")
    @classmethod
    def validate_warehouse_pincode(cls, v):
        if not re.fullmatch(r"\d{6}", v or ""):
            raise ValueError("WAREHOUSE_PINCODE must be a 6-digit pincode")
        return v

    # Partner HTTP behaviour
    PARTNER_TIMEOUT_SECONDS: float = 8.0
    PARTNER_MAX_RETRIES: int = 1  # Connect errors / 502-504 only, timeouts are never retried
    PARTNER_RETRY_BASE_DELAY: float = 0.5

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_DEFAULT: str = "100/minute"
    RATE_LIMIT_DELIVERY: str = "30/minute"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @model_validator(mode="after")
    def validate_production_config(self):
        """Runtime validation to catch insecure production configurations."""
        if self.ENVIRONMENT == "production":
            errors = []

            if self.DEBUG:
                errors.append(
                    "DEBUG=True is forbidden in production. "
                    "Set DEBUG=false or ENVIRONMENT=development"
                )

            if self.DELIVERY_PARTNER == "offline":
                errors.append(
                    "DELIVERY_PARTNER=offline quotes mock prices and is forbidden in production"
                )

            if not 1.0 <= self.PARTNER_TIMEOUT_SECONDS <= 30.0:
                errors.append(
                    f"PARTNER_TIMEOUT_SECONDS={self.PARTNER_TIMEOUT_SECONDS} is outside 1-30s. "
                    "Checkout requests must not hang on the delivery partner."
                )

            for origin in self.CORS_ORIGINS:
                if origin == "*":
                    errors.append("Wildcard '*' CORS origin is forbidden in production")

            if errors:
                raise ValueError(
                    "PRODUCTION CONFIGURATION VIOLATIONS:\n" + "\n".join(f"  - {e}" for e in errors)
                )

        return self

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
