"""
Delhivery Partner Implementation

- B2C ("kinko") APIs: static token, `Authorization: Token <token>`
- B2B / LTL freight API: username/password login, bearer token cached ~23h
- On 401 from the freight API the token is dropped and login retried once
- Registered via @register_partner decorator

Wire format notes:
- Pincode lookup answers {"delivery_codes": [...]}; empty list = not serviceable
- Charges answer a list; the first element carries total_amount and the
  charge_* / tax_data breakdown
- Expected TAT answers {"success": bool, "data": {"expected_tat"|"tat", ...}}
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import httpx

from storefront_backend.core.config import Settings
from storefront_backend.core.exceptions import (
    PartnerAuthError,
    PartnerConfigurationError,
    PartnerResponseError,
)
from storefront_backend.core.http_client import PartnerHTTPClient, get_delhivery_client
from storefront_backend.modules.shipping.partners import register_partner
from storefront_backend.modules.shipping.partners.base import (
    B2BFreightRequest,
    CancelResult,
    DeliveryPartner,
    FreightBreakdown,
    PartnerCode,
    PaymentMode,
    PincodeCoverage,
    ProductType,
    ShipmentStatus,
    ShippingMode,
    TatQuote,
    TrackingEvent,
    TrackingInfo,
)

logger = logging.getLogger(__name__)

PARTNER_NAME = "Delhivery"
TRACKING_URL = "https://www.delhivery.com/track/package/{waybill}"

# Delhivery status to ShipmentStatus mapping
DELHIVERY_STATUS_MAP = {
    # Manifested
    "MANIFESTED": ShipmentStatus.MANIFESTED,
    "NOT PICKED": ShipmentStatus.MANIFESTED,
    "PICKUP SCHEDULED": ShipmentStatus.MANIFESTED,
    # Picked up
    "PICKED UP": ShipmentStatus.PICKED_UP,
    # In transit
    "IN TRANSIT": ShipmentStatus.IN_TRANSIT,
    "PENDING": ShipmentStatus.IN_TRANSIT,
    "REACHED AT DESTINATION": ShipmentStatus.IN_TRANSIT,
    # Out for delivery
    "DISPATCHED": ShipmentStatus.OUT_FOR_DELIVERY,
    "OUT FOR DELIVERY": ShipmentStatus.OUT_FOR_DELIVERY,
    # Delivered
    "DELIVERED": ShipmentStatus.DELIVERED,
    # Exception
    "UNDELIVERED": ShipmentStatus.EXCEPTION,
    "LOST": ShipmentStatus.EXCEPTION,
    "DAMAGED": ShipmentStatus.EXCEPTION,
    # Returned
    "RTO": ShipmentStatus.RETURNED,
    "RETURNED": ShipmentStatus.RETURNED,
    # Cancelled
    "CANCELLED": ShipmentStatus.CANCELLED,
    "CANCELED": ShipmentStatus.CANCELLED,
}

# Longest keys first so "UNDELIVERED ..." never partially matches "DELIVERED"
_PARTIAL_STATUS_KEYS = sorted(DELHIVERY_STATUS_MAP, key=len, reverse=True)


def _mask(token: str) -> str:
    if not token:
        return "<none>"
    return f"{token[:4]}***"


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


@register_partner(PartnerCode.DELHIVERY)
class DelhiveryPartner(DeliveryPartner):
    """
    Delhivery delivery partner.

    The HTTP client is injected. When the partner builds its own client
    (from_settings without one) it also closes it in close().
    """

    def __init__(
        self,
        http_client: PartnerHTTPClient,
        auth_token: str,
        b2c_url: str = "https://track.delhivery.com",
        b2b_url: str = "https://ltl-clients-api.delhivery.com",
        b2b_username: str = "",
        b2b_password: str = "",
        b2b_token_ttl: timedelta = timedelta(hours=23),
        owns_client: bool = False,
    ):
        if not auth_token:
            raise PartnerConfigurationError(
                "Delhivery auth token is not configured",
                details={"partner": PartnerCode.DELHIVERY.value},
            )
        self._http = http_client
        self._auth_token = auth_token
        self._b2c_url = b2c_url.rstrip("/")
        self._b2b_url = b2b_url.rstrip("/")
        self._b2b_username = b2b_username
        self._b2b_password = b2b_password
        self._b2b_token_ttl = b2b_token_ttl
        self._owns_client = owns_client

        # B2B bearer token cache
        self._b2b_token: Optional[str] = None
        self._b2b_token_expires_at: Optional[datetime] = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        http_client: Optional[PartnerHTTPClient] = None,
    ) -> "DelhiveryPartner":
        owns_client = http_client is None
        return cls(
            http_client=http_client or get_delhivery_client(settings),
            auth_token=settings.DELHIVERY_AUTH_TOKEN,
            b2c_url=settings.DELHIVERY_B2C_URL,
            b2b_url=settings.DELHIVERY_B2B_URL,
            b2b_username=settings.DELHIVERY_B2B_USERNAME,
            b2b_password=settings.DELHIVERY_B2B_PASSWORD,
            b2b_token_ttl=timedelta(hours=settings.DELHIVERY_B2B_TOKEN_TTL_HOURS),
            owns_client=owns_client,
        )

    @property
    def partner_code(self) -> PartnerCode:
        return PartnerCode.DELHIVERY

    @property
    def partner_name(self) -> str:
        return PARTNER_NAME

    async def close(self) -> None:
        if self._owns_client:
            await self._http.close()

    # =========================================================================
    # Helpers
    # =========================================================================

    def _b2c_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Token {self._auth_token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _json(self, response: httpx.Response, context: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            logger.error(f"[DELHIVERY] {context}: invalid JSON (HTTP {response.status_code})")
            raise PartnerResponseError(
                f"Invalid response from Delhivery {context} API",
                partner=PartnerCode.DELHIVERY.value,
                status_code=response.status_code,
                payload=response.text,
            ) from e

    def _raise_for_status(
        self,
        response: httpx.Response,
        context: str,
        credential: str = "B2C token",
        token: Optional[str] = None,
    ) -> None:
        """4xx handling. 5xx never reaches here (the HTTP client raises)."""
        if response.status_code in (401, 403):
            rejected = token if token is not None else self._auth_token
            logger.error(f"[DELHIVERY] {context}: rejected {credential} {_mask(rejected)}")
            raise PartnerAuthError(
                f"Delhivery rejected the credentials for {context}",
                partner=PartnerCode.DELHIVERY.value,
                status_code=response.status_code,
                payload=response.text,
            )
        if response.status_code >= 400:
            message = None
            try:
                body = response.json()
                if isinstance(body, dict):
                    message = body.get("message") or body.get("error") or body.get("msg")
            except ValueError:
                pass
            logger.warning(f"[DELHIVERY] {context}: HTTP {response.status_code} {message or ''}")
            raise PartnerResponseError(
                message or f"Delhivery {context} API returned HTTP {response.status_code}",
                partner=PartnerCode.DELHIVERY.value,
                status_code=response.status_code,
                payload=response.text,
            )

    @staticmethod
    def _amount(source: Dict[str, Any], key: str, required: bool = False) -> float:
        value = source.get(key)
        if value is None or value == "":
            if required:
                raise PartnerResponseError(
                    f"Delhivery response is missing {key}",
                    partner=PartnerCode.DELHIVERY.value,
                    payload=source,
                )
            return 0.0
        try:
            return float(value)
        except (TypeError, ValueError) as e:
            raise PartnerResponseError(
                f"Delhivery returned a non-numeric {key}: {value!r}",
                partner=PartnerCode.DELHIVERY.value,
                payload=source,
            ) from e

    # =========================================================================
    # B2C
    # =========================================================================

    async def check_pincode(self, pincode: str) -> PincodeCoverage:
        response = await self._http.get(
            f"{self._b2c_url}/c/api/pin-codes/json/",
            params={"filter_codes": pincode},
            headers=self._b2c_headers(),
        )
        self._raise_for_status(response, "pincode")
        data = self._json(response, "pincode")

        if not isinstance(data, dict):
            raise PartnerResponseError(
                "Unexpected pincode response from Delhivery",
                partner=PartnerCode.DELHIVERY.value,
                payload=data,
            )

        delivery_codes = data.get("delivery_codes") or []
        if not isinstance(delivery_codes, list):
            raise PartnerResponseError(
                "delivery_codes is not a list",
                partner=PartnerCode.DELHIVERY.value,
                payload=data,
            )

        logger.debug(f"[DELHIVERY] Pincode {pincode}: {len(delivery_codes)} delivery code(s)")
        return PincodeCoverage(
            pincode=pincode,
            serviceable=len(delivery_codes) > 0,
            delivery_codes=delivery_codes,
            raw_response=data,
        )

    async def get_b2c_charges(
        self,
        origin_pincode: str,
        destination_pincode: str,
        weight_grams: int,
        payment_mode: PaymentMode,
        shipping_mode: ShippingMode = ShippingMode.SURFACE,
    ) -> FreightBreakdown:
        params = {
            "md": shipping_mode.value,
            "ss": "Delivered",
            "d_pin": destination_pincode,
            "o_pin": origin_pincode,
            "cgm": str(weight_grams),
            "pt": payment_mode.partner_code,
        }
        logger.info(
            f"[DELHIVERY] Charges {origin_pincode} -> {destination_pincode}, "
            f"{weight_grams}g, {payment_mode.value}, mode {shipping_mode.value}"
        )

        response = await self._http.get(
            f"{self._b2c_url}/api/kinko/v1/invoice/charges/.json",
            params=params,
            headers=self._b2c_headers(),
        )
        self._raise_for_status(response, "charges")
        data = self._json(response, "charges")

        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            raise PartnerResponseError(
                "No charge data in Delhivery response",
                partner=PartnerCode.DELHIVERY.value,
                payload=data,
            )

        charge = data[0]
        total = self._amount(charge, "total_amount", required=True)

        tax_data = charge.get("tax_data")
        if isinstance(tax_data, dict):
            gst = sum(self._amount(tax_data, key) for key in ("CGST", "SGST", "IGST"))
        else:
            gross = self._amount(charge, "gross_amount")
            gst = round(total - gross, 2) if gross else 0.0

        return FreightBreakdown(
            total=total,
            base_freight=self._amount(charge, "charge_DL"),
            fuel_surcharge=self._amount(charge, "charge_FSC"),
            cod_charges=self._amount(charge, "charge_COD"),
            other_charges=self._amount(charge, "charge_DPH"),
            gst=gst,
            raw_response=charge,
        )

    async def get_expected_tat(
        self,
        origin_pincode: str,
        destination_pincode: str,
        shipping_mode: ShippingMode,
        product_type: ProductType,
        pickup: str,
    ) -> TatQuote:
        params = {
            "origin_pin": origin_pincode,
            "destination_pin": destination_pincode,
            "mot": shipping_mode.value,
            "pdt": product_type.value,
            "expected_pd": pickup,
        }
        response = await self._http.get(
            f"{self._b2c_url}/api/dc/expected_tat",
            params=params,
            headers=self._b2c_headers(),
        )
        self._raise_for_status(response, "expected TAT")
        data = self._json(response, "expected TAT")

        if not isinstance(data, dict) or data.get("success") is False or not data.get("data"):
            message = None
            if isinstance(data, dict):
                message = data.get("msg") or data.get("error")
            raise PartnerResponseError(
                message or "Delhivery did not return a TAT",
                partner=PartnerCode.DELHIVERY.value,
                payload=data,
            )

        tat_data = data["data"]
        if not isinstance(tat_data, dict):
            raise PartnerResponseError(
                "Unexpected TAT payload from Delhivery",
                partner=PartnerCode.DELHIVERY.value,
                payload=data,
            )

        tat = tat_data.get("expected_tat")
        if tat is None:
            tat = tat_data.get("tat")

        return TatQuote(
            tat=tat,
            expected_delivery_date=tat_data.get("expected_delivery_date") or tat_data.get("delivery_date"),
            raw_response=data,
        )

    async def track(self, waybill: str) -> TrackingInfo:
        response = await self._http.get(
            f"{self._b2c_url}/api/kinko/v1/packages/{waybill}/track/",
            headers=self._b2c_headers(),
        )
        self._raise_for_status(response, "tracking")
        data = self._json(response, "tracking")

        shipment_data = data.get("ShipmentData") if isinstance(data, dict) else None
        if not shipment_data or not isinstance(shipment_data, list):
            raise PartnerResponseError(
                f"No tracking data for waybill {waybill}",
                partner=PartnerCode.DELHIVERY.value,
                payload=data,
            )

        entry = shipment_data[0]
        shipment = entry.get("Shipment") if isinstance(entry, dict) else None
        status_block = (shipment.get("Status") or {}) if isinstance(shipment, dict) else None
        if not isinstance(status_block, dict):
            raise PartnerResponseError(
                f"Malformed tracking data for waybill {waybill}",
                partner=PartnerCode.DELHIVERY.value,
                payload=data,
            )
        partner_status = str(status_block.get("Status") or "Unknown")

        scans = shipment.get("Scans")
        events = []
        for scan in scans if isinstance(scans, list) else []:
            detail = scan.get("ScanDetail") if isinstance(scan, dict) else None
            if not isinstance(detail, dict):
                continue
            events.append(TrackingEvent(
                timestamp=_parse_timestamp(detail.get("ScanDateTime")),
                status=detail.get("Scan", ""),
                description=detail.get("Instructions") or detail.get("Scan", ""),
                location=detail.get("ScannedLocation"),
            ))

        return TrackingInfo(
            waybill=waybill,
            partner_code=self.partner_code,
            status=self.map_status(partner_status),
            partner_status=partner_status,
            expected_delivery=_parse_timestamp(
                shipment.get("ExpectedDeliveryDate") or shipment.get("PromisedDeliveryDate")
            ),
            events=events,
            tracking_url=self.get_tracking_url(waybill),
        )

    async def cancel(self, waybill: str) -> CancelResult:
        response = await self._http.delete(
            f"{self._b2c_url}/api/kinko/v1/packages/{waybill}/cancel/",
            headers=self._b2c_headers(),
        )
        if response.status_code in (401, 403):
            self._raise_for_status(response, "cancel")

        if response.status_code >= 400:
            # Usually "already picked up" / unknown waybill: a business answer, not an outage
            message = f"HTTP {response.status_code}"
            try:
                body = response.json()
                if isinstance(body, dict):
                    message = body.get("message") or body.get("error") or message
            except ValueError:
                pass
            logger.warning(f"[DELHIVERY] Cancel {waybill} refused: {message}")
            return CancelResult(success=False, waybill=waybill, error_message=message)

        logger.info(f"[DELHIVERY] Cancelled waybill {waybill}")
        return CancelResult(success=True, waybill=waybill)

    # =========================================================================
    # B2B (LTL freight)
    # =========================================================================

    def _token_valid(self) -> bool:
        return (
            self._b2b_token is not None
            and self._b2b_token_expires_at is not None
            and datetime.now(timezone.utc) < self._b2b_token_expires_at
        )

    def _clear_b2b_token(self) -> None:
        self._b2b_token = None
        self._b2b_token_expires_at = None

    async def _get_b2b_token(self) -> str:
        """Login to the B2B API, reusing the cached token while it is valid."""
        if self._token_valid():
            return self._b2b_token

        if not self._b2b_username or not self._b2b_password:
            raise PartnerConfigurationError(
                "Delhivery B2B credentials are not configured",
                details={"partner": PartnerCode.DELHIVERY.value},
            )

        logger.info("[DELHIVERY] Logging in to B2B API")
        response = await self._http.post(
            f"{self._b2b_url}/ums/login",
            json={"username": self._b2b_username, "password": self._b2b_password},
        )
        if response.status_code != 200:
            raise PartnerAuthError(
                f"Delhivery B2B login failed with HTTP {response.status_code}",
                partner=PartnerCode.DELHIVERY.value,
                status_code=response.status_code,
            )

        data = self._json(response, "B2B login")
        token = data.get("token") if isinstance(data, dict) else None
        if not token:
            raise PartnerAuthError(
                "Invalid response from Delhivery B2B login API",
                partner=PartnerCode.DELHIVERY.value,
                status_code=response.status_code,
            )

        self._b2b_token = token
        self._b2b_token_expires_at = datetime.now(timezone.utc) + self._b2b_token_ttl
        logger.info(f"[DELHIVERY] B2B token {_mask(token)} cached until {self._b2b_token_expires_at.isoformat()}")
        return token

    async def _post_freight(self, payload: Dict[str, Any], token: str) -> httpx.Response:
        return await self._http.post(
            f"{self._b2b_url}/freight/estimate",
            json=payload,
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            },
        )

    async def get_b2b_freight(self, request: B2BFreightRequest) -> FreightBreakdown:
        payload = request.to_partner_format()
        logger.info(
            f"[DELHIVERY] B2B freight {request.source_pin} -> {request.consignee_pin}, "
            f"{request.weight_g}g, {len(request.dimensions)} box size(s)"
        )

        token = await self._get_b2b_token()
        response = await self._post_freight(payload, token)

        if response.status_code == 401:
            logger.warning("[DELHIVERY] B2B token rejected, logging in again")
            self._clear_b2b_token()
            token = await self._get_b2b_token()
            response = await self._post_freight(payload, token)

        self._raise_for_status(response, "freight estimate", credential="B2B bearer token", token=token)
        data = self._json(response, "freight estimate")

        if not isinstance(data, dict):
            raise PartnerResponseError(
                "Unexpected freight estimate response from Delhivery",
                partner=PartnerCode.DELHIVERY.value,
                payload=data,
            )

        return FreightBreakdown(
            total=self._amount(data, "total", required=True),
            base_freight=self._amount(data, "base_freight"),
            fuel_surcharge=self._amount(data, "fuel_surcharge"),
            cod_charges=self._amount(data, "cod_charges"),
            rov_charges=self._amount(data, "rov_charges"),
            other_charges=self._amount(data, "other_charges"),
            gst=self._amount(data, "gst"),
            raw_response=data,
        )

    # =========================================================================
    # Status / URLs
    # =========================================================================

    def get_tracking_url(self, waybill: str) -> str:
        return TRACKING_URL.format(waybill=waybill)

    def map_status(self, partner_status: str) -> ShipmentStatus:
        """Map Delhivery status to normalized ShipmentStatus."""
        status_upper = (partner_status or "").upper().strip()

        # Check direct mapping
        if status_upper in DELHIVERY_STATUS_MAP:
            return DELHIVERY_STATUS_MAP[status_upper]

        # Check partial matches
        for key in _PARTIAL_STATUS_KEYS:
            if key in status_upper:
                return DELHIVERY_STATUS_MAP[key]

        # Default to in_transit for unknown statuses
        logger.warning(f"Unknown Delhivery status: {partner_status}, defaulting to IN_TRANSIT")
        return ShipmentStatus.IN_TRANSIT
