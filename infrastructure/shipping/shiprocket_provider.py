"""
Shiprocket Shipping Carrier
============================

Concrete implementation of ShippingCarrierInterface using the Shiprocket external API.

Shiprocket authenticates with a bearer token obtained from auth/login. The
token is cached per instance and renewed before TTL expiry; a 401 on any call
forces one re-login and one repeat of that call. Callers never see the token.

Reads (serviceability, tracking) are retried with backoff. Booking is not:
a repeated adhoc order would create a second shipment.
"""

import logging
import threading
import time
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import requests
from django.conf import settings
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from utils.logging_utils import sanitize_payload

from .interface import (
    CourierQuote,
    ShipmentBooking,
    ShipmentRequest,
    ShippingAuthenticationError,
    ShippingCarrierInterface,
    ShippingException,
    ShippingUnavailable,
    TrackingStatus,
)

logger = logging.getLogger(__name__)

TRACKING_URL_TEMPLATE = "https://shiprocket.co/tracking/{awb}"

BOOKING_LOG_KEYS = (
    "order_id",
    "billing_customer_name",
    "billing_email",
    "billing_phone",
    "billing_city",
    "billing_pincode",
    "sub_total",
    "weight",
)


class ShiprocketCarrier(ShippingCarrierInterface):
    """
    Shiprocket carrier implementation.

    Configuration (in settings.py):
        SHIPROCKET_EMAIL: API user email
        SHIPROCKET_PASSWORD: API user password
        SHIPROCKET_API_URL: API root (default https://apiv2.shiprocket.in/v1/external)
        SHIPROCKET_PICKUP_LOCATION: Pickup location nickname registered with Shiprocket
        SHIPROCKET_TOKEN_TTL_SECONDS: Local token lifetime before a proactive re-login
    """

    def __init__(
        self,
        email: Optional[str] = None,
        password: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: int = 15,
    ):
        """Initialize Shiprocket carrier with API credentials."""
        self.email = email or getattr(settings, "SHIPROCKET_EMAIL", "")
        self.password = password or getattr(settings, "SHIPROCKET_PASSWORD", "")
        self.api_url = (
            api_url or getattr(settings, "SHIPROCKET_API_URL", "https://apiv2.shiprocket.in/v1/external")
        ).rstrip("/")
        self.pickup_location = getattr(settings, "SHIPROCKET_PICKUP_LOCATION", "Primary")
        self.token_ttl = int(getattr(settings, "SHIPROCKET_TOKEN_TTL_SECONDS", 9 * 24 * 60 * 60))
        self.timeout = timeout
        self.session = requests.Session()

        self._token: Optional[str] = None
        self._token_expires_at = 0.0
        self._token_lock = threading.Lock()

        if not self.email or not self.password:
            logger.warning("SHIPROCKET_EMAIL / SHIPROCKET_PASSWORD not configured")

    # ------------------------------------------------------------------
    # Token plumbing
    # ------------------------------------------------------------------

    def _get_token(self, stale_token: Optional[str] = None) -> str:
        """
        Return a usable bearer token, logging in if needed.

        Passing stale_token forces a re-login unless another thread has
        already replaced that token.
        """
        with self._token_lock:
            expired = time.monotonic() >= self._token_expires_at
            if self._token and not expired and self._token != stale_token:
                return self._token

            self._token = self._login()
            self._token_expires_at = time.monotonic() + self.token_ttl
            return self._token

    def _login(self) -> str:
        try:
            response = self.session.post(
                f"{self.api_url}/auth/login",
                json={"email": self.email, "password": self.password},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"[SHIPPING] Shiprocket login failed to reach carrier: {str(e)}")
            raise ShippingUnavailable(f"Carrier unreachable: {str(e)}") from e

        if response.status_code >= 500:
            raise ShippingUnavailable(f"Carrier login error: HTTP {response.status_code}")

        token = None
        if response.status_code == 200:
            token = self._json(response, "auth/login").get("token")

        if not token:
            logger.error(f"[SHIPPING] Shiprocket login rejected ({response.status_code})")
            raise ShippingAuthenticationError("Failed to authenticate with Shiprocket")

        logger.info("[SHIPPING] Obtained new Shiprocket token")
        return token

    def _send(self, method: str, path: str, token: str, **kwargs) -> requests.Response:
        try:
            return self.session.request(
                method,
                f"{self.api_url}/{path.lstrip('/')}",
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as e:
            logger.error(f"[SHIPPING] Shiprocket {method} {path} failed: {str(e)}")
            raise ShippingUnavailable(f"Carrier unreachable: {str(e)}") from e

    def _request(self, method: str, path: str, allow_not_found: bool = False, **kwargs) -> Optional[Dict[str, Any]]:
        """Authenticated call with a single transparent re-login on 401."""
        token = self._get_token()
        response = self._send(method, path, token, **kwargs)

        if response.status_code == 401:
            logger.info(f"[SHIPPING] Shiprocket token rejected on {path}, re-authenticating")
            token = self._get_token(stale_token=token)
            response = self._send(method, path, token, **kwargs)

        if response.status_code >= 500:
            raise ShippingUnavailable(f"Carrier error on {path}: HTTP {response.status_code}")

        if response.status_code == 404 and allow_not_found:
            return None

        if response.status_code >= 400:
            logger.error(f"[SHIPPING] Shiprocket rejected {path} ({response.status_code}): {response.text[:300]}")
            raise ShippingException(f"Carrier rejected request to {path}: HTTP {response.status_code}")

        return self._json(response, path)

    @staticmethod
    def _json(response: requests.Response, path: str) -> Dict[str, Any]:
        """Decode a carrier response body; anything but a JSON object is a carrier fault."""
        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"[SHIPPING] Shiprocket returned a non-JSON body on {path}: {response.text[:200]!r}")
            raise ShippingUnavailable(f"Carrier returned an unreadable response on {path}") from e
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ShippingException(f"Carrier returned an unexpected {type(data).__name__} on {path}")
        return data

    # ------------------------------------------------------------------
    # Carrier operations
    # ------------------------------------------------------------------

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type(ShippingUnavailable),
        reraise=True,
    )
    def check_serviceability(
        self,
        pickup_postcode: str,
        delivery_postcode: str,
        weight_kg: Decimal,
        cash_on_delivery: bool = False,
    ) -> List[CourierQuote]:
        data = self._request(
            "GET",
            "courier/serviceability/",
            allow_not_found=True,
            params={
                "pickup_postcode": pickup_postcode,
                "delivery_postcode": delivery_postcode,
                "weight": str(weight_kg),
                "cod": 1 if cash_on_delivery else 0,
            },
        )
        if not data:
            return []

        companies = (data.get("data") or {}).get("available_courier_companies") or []
        quotes = [self._to_quote(company) for company in companies]
        quotes.sort(key=lambda q: q.rate)

        logger.info(
            f"[SHIPPING] Serviceability {pickup_postcode} -> {delivery_postcode}: {len(quotes)} courier(s) available"
        )
        return quotes

    def book_shipment(self, request: ShipmentRequest) -> ShipmentBooking:
        payload = self._adhoc_payload(request)
        logger.debug(
            "[SHIPPING] Creating Shiprocket order %s",
            sanitize_payload(
                payload,
                BOOKING_LOG_KEYS,
                plain_keys=("order_id", "billing_city", "billing_pincode", "sub_total", "weight"),
            ),
        )
        created = self._request("POST", "orders/create/adhoc", json=payload)

        carrier_order_id = str(created.get("order_id") or "")
        shipment_id = str(created.get("shipment_id") or "")
        if not carrier_order_id or not shipment_id:
            raise ShippingException(f"Carrier did not return an order/shipment id: {created}")

        awb_code = str(created.get("awb_code") or "")
        courier_name = str(created.get("courier_name") or "")

        if not awb_code:
            assign_body: Dict[str, Any] = {"shipment_id": shipment_id}
            if request.courier_id:
                assign_body["courier_id"] = request.courier_id
            assigned = self._request("POST", "courier/assign/awb", json=assign_body)
            response_body = assigned.get("response")
            awb_data = response_body.get("data") if isinstance(response_body, dict) else None
            if assigned.get("awb_assign_status") != 1 or not isinstance(awb_data, dict):
                message = assigned.get("message") or awb_data or response_body
                raise ShippingException(f"AWB assignment failed for shipment {shipment_id}: {message}")
            awb_code = str(awb_data.get("awb_code") or "")
            courier_name = str(awb_data.get("courier_name") or courier_name)

        logger.info(
            f"[SHIPPING] Booked Shiprocket shipment {shipment_id} for order {request.order_id}, AWB {awb_code}"
        )

        return ShipmentBooking(
            carrier_order_id=carrier_order_id,
            shipment_id=shipment_id,
            awb_code=awb_code,
            courier_name=courier_name,
            tracking_url=TRACKING_URL_TEMPLATE.format(awb=awb_code) if awb_code else "",
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type(ShippingUnavailable),
        reraise=True,
    )
    def track_shipment(self, awb_code: str) -> TrackingStatus:
        data = self._request("GET", f"courier/track/awb/{awb_code}") or {}
        tracking = data.get("tracking_data") or {}

        activities = tracking.get("shipment_track_activities") or []
        track = (tracking.get("shipment_track") or [{}])[0] or {}
        latest = activities[0] if activities else {}

        status = track.get("current_status") or latest.get("activity") or "PENDING"
        return TrackingStatus(
            awb_code=awb_code,
            status=str(status),
            last_update=str(latest.get("date") or track.get("updated_time_stamp") or ""),
            location=str(latest.get("location") or ""),
            activities=activities,
        )

    # ------------------------------------------------------------------
    # Payload helpers
    # ------------------------------------------------------------------

    def _adhoc_payload(self, request: ShipmentRequest) -> Dict[str, Any]:
        first_name, _, last_name = (request.buyer_name or "").strip().partition(" ")
        return {
            "order_id": request.order_id,
            "order_date": request.order_date.strftime("%Y-%m-%d %H:%M"),
            "pickup_location": self.pickup_location,
            "billing_customer_name": first_name,
            "billing_last_name": last_name,
            "billing_address": request.delivery_address,
            "billing_city": request.delivery_city,
            "billing_pincode": request.delivery_pincode,
            "billing_state": request.delivery_state,
            "billing_country": request.delivery_country,
            "billing_email": request.buyer_email,
            "billing_phone": request.buyer_phone,
            "shipping_is_billing": True,
            "order_items": [
                {
                    "name": request.item_name,
                    "sku": request.item_sku,
                    "units": 1,
                    "selling_price": float(request.selling_price),
                }
            ],
            "payment_method": "Prepaid",
            "sub_total": float(request.selling_price),
            "length": request.length_cm,
            "breadth": request.breadth_cm,
            "height": request.height_cm,
            "weight": float(request.weight_kg),
        }

    @staticmethod
    def _to_quote(company: Dict[str, Any]) -> CourierQuote:
        try:
            rate = Decimal(str(company.get("rate", 0)))
        except InvalidOperation:
            rate = Decimal("0")

        eta_days = company.get("estimated_delivery_days")
        try:
            eta_days = int(eta_days) if eta_days not in (None, "") else None
        except (TypeError, ValueError):
            eta_days = None

        return CourierQuote(
            courier_name=str(company.get("courier_name") or ""),
            rate=rate,
            eta=str(company.get("etd") or ""),
            eta_days=eta_days,
            courier_id=company.get("courier_company_id"),
        )
