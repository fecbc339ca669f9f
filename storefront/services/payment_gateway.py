# storefront/services/payment_gateway.py
"""
Klient REST Razorpay.

Tylko to, czego potrzebuje checkout: zdalne zamowienie, refund oplaconej
platnosci i dwa sprawdzenia HMAC. Podpis z przegladarki liczony kluczem API
(key secret), body webhooka osobnym sekretem webhooka.
"""
import hashlib
import hmac
from typing import Any, Dict

import requests
from requests import RequestException

from storefront.domain.errors import GatewayError
from storefront.utils.settings import (
    RAZORPAY_API_URL,
    RAZORPAY_KEY_ID,
    RAZORPAY_KEY_SECRET,
    RAZORPAY_WEBHOOK_SECRET,
    GATEWAY_TIMEOUT_SECONDS,
)
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def hmac_sha256_hex(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


class RazorpayClient:
    name = "RAZORPAY"

    def __init__(
        self,
        key_id: str | None = None,
        key_secret: str | None = None,
        webhook_secret: str | None = None,
        base_url: str | None = None,
        timeout: int | None = None,
        session: requests.Session | None = None,
    ):
        self.key_id = key_id if key_id is not None else RAZORPAY_KEY_ID
        self.key_secret = key_secret if key_secret is not None else RAZORPAY_KEY_SECRET
        self.webhook_secret = webhook_secret if webhook_secret is not None else RAZORPAY_WEBHOOK_SECRET
        self.base_url = (base_url or RAZORPAY_API_URL).rstrip("/")
        self.timeout = timeout or GATEWAY_TIMEOUT_SECONDS
        self.http = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.key_id and self.key_secret)

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        if not self.configured:
            raise GatewayError("Payment gateway is not configured")

        url = f"{self.base_url}{path}"
        logger.info(f"RazorpayClient POST {url}")
        try:
            resp = self.http.post(
                url,
                json=payload,
                auth=(self.key_id, self.key_secret),
                timeout=self.timeout,
            )
            resp.raise_for_status()
            return resp.json()
        except RequestException as e:
            logger.error(f"Gateway call {path} failed: {e}")
            raise GatewayError(f"Gateway call failed: {e}") from e

    def create_order(
        self,
        amount_minor: int,
        currency: str,
        receipt: str,
        notes: Dict[str, Any] | None = None,
    ) -> Dict[str, Any]:
        """Zdalne zamowienie w bramce, amount_minor w groszach (paise)."""
        return self._post(
            "/orders",
            {
                "amount": amount_minor,
                "currency": currency,
                "receipt": receipt,
                "notes": notes or {},
            },
        )

    def refund(
        self,
        gateway_payment_id: str,
        amount_minor: int,
        notes: Dict[str, Any] | None = None,
    ) -> Dict[str, Any]:
        return self._post(
            f"/payments/{gateway_payment_id}/refund",
            {"amount": amount_minor, "notes": notes or {}},
        )

    def client_signature(self, gateway_order_id: str, gateway_payment_id: str) -> str:
        if not self.key_secret:
            raise GatewayError("Payment gateway is not configured")
        payload = f"{gateway_order_id}|{gateway_payment_id}".encode("utf-8")
        return hmac_sha256_hex(self.key_secret, payload)

    def verify_client_signature(self, gateway_order_id: str, gateway_payment_id: str, signature: str) -> bool:
        expected = self.client_signature(gateway_order_id, gateway_payment_id)
        return hmac.compare_digest(expected, signature or "")

    def webhook_signature(self, raw_body: bytes) -> str:
        if not self.webhook_secret:
            raise GatewayError("Webhook secret is not configured")
        return hmac_sha256_hex(self.webhook_secret, raw_body)

    def verify_webhook_signature(self, raw_body: bytes, signature: str) -> bool:
        expected = self.webhook_signature(raw_body)
        return hmac.compare_digest(expected, signature or "")
