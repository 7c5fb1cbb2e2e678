"""Client for a Stripe-compatible payment provider REST API.

Amounts cross this boundary in integer minor units. Every network or HTTP
failure surfaces as :class:`PaymentProviderError`, which the API layer renders
as a retryable 503.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional

import httpx

from ..core.config import settings
from ..utils.errors import BadRequestError, UnavailableError

logger = logging.getLogger(__name__)

# Provider intent states that mean the customer's funds are secured
SUCCEEDED_STATUSES = frozenset({"succeeded", "requires_capture"})

SIGNATURE_HEADER = "Provider-Signature"


class PaymentProviderError(UnavailableError):
    def __init__(self, message: str = "Payment provider unavailable", status_code: Optional[int] = None):
        super().__init__(message)
        self.provider_status_code = status_code


class WebhookSignatureError(BadRequestError):
    pass


class PaymentProviderClient:
    def __init__(
        self,
        secret_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.secret_key = secret_key if secret_key is not None else settings.PAYMENT_PROVIDER_SECRET_KEY
        self.base_url = (base_url or settings.PAYMENT_PROVIDER_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.PAYMENT_PROVIDER_TIMEOUT

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.secret_key}"}

    def _request(self, method: str, path: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            with httpx.Client(timeout=self.timeout) as client:
                r = client.request(method, url, data=data, headers=self._headers())
                r.raise_for_status()
                return r.json()
        except httpx.HTTPStatusError as exc:
            code = exc.response.status_code
            logger.error("Payment provider %s %s failed with %s", method, path, code)
            raise PaymentProviderError(f"Payment provider rejected the request ({code})", code) from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Payment provider %s %s error: %s", method, path, exc)
            raise PaymentProviderError() from exc

    def create_intent(self, amount_minor: int, currency: str, metadata: Dict[str, Any]) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "amount": int(amount_minor),
            "currency": currency.lower(),
        }
        for key, value in (metadata or {}).items():
            data[f"metadata[{key}]"] = str(value)
        body = self._request("POST", "/payment_intents", data=data)
        if not body.get("id") or not body.get("client_secret"):
            raise PaymentProviderError("Invalid payment provider response")
        return {
            "id": body["id"],
            "client_secret": body["client_secret"],
            "status": str(body.get("status", "")).lower(),
        }

    def retrieve_intent(self, transaction_id: str) -> Dict[str, Any]:
        body = self._request("GET", f"/payment_intents/{transaction_id}")
        method = body.get("payment_method")
        if isinstance(method, dict):
            method = method.get("id")
        return {
            "id": body.get("id", transaction_id),
            "status": str(body.get("status", "")).lower(),
            "amount": int(body.get("amount", 0) or 0),
            "currency": str(body.get("currency", "")).upper(),
            "metadata": body.get("metadata") or {},
            "payment_method": method,
        }

    def refund(self, transaction_id: str, amount_minor: Optional[int] = None) -> Dict[str, Any]:
        data: Dict[str, Any] = {"payment_intent": transaction_id}
        if amount_minor is not None:
            data["amount"] = int(amount_minor)
        body = self._request("POST", "/refunds", data=data)
        return {
            "refund_id": body.get("id"),
            "status": str(body.get("status", "")).lower(),
        }


def sign_webhook_payload(payload: bytes, secret: str, timestamp: int) -> str:
    signed = f"{timestamp}.".encode("utf-8") + payload
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def verify_webhook(
    payload: bytes,
    signature_header: Optional[str],
    secret: Optional[str] = None,
    tolerance: Optional[int] = None,
    now: Optional[float] = None,
) -> Dict[str, Any]:
    """Check ``Provider-Signature`` and return the decoded event."""
    secret = secret if secret is not None else settings.PAYMENT_PROVIDER_WEBHOOK_SECRET
    tolerance = tolerance if tolerance is not None else settings.PAYMENT_WEBHOOK_TOLERANCE_SECONDS
    if not secret:
        raise WebhookSignatureError("Webhook secret is not configured")
    if not signature_header:
        raise WebhookSignatureError("Missing webhook signature")

    timestamp: Optional[int] = None
    signatures = []
    for part in signature_header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError:
                raise WebhookSignatureError("Malformed webhook signature")
        elif key == "v1" and value:
            signatures.append(value)
    if timestamp is None or not signatures:
        raise WebhookSignatureError("Malformed webhook signature")

    now = time.time() if now is None else now
    if tolerance and abs(now - timestamp) > tolerance:
        raise WebhookSignatureError("Webhook timestamp outside tolerance")

    expected = sign_webhook_payload(payload, secret, timestamp).split("v1=", 1)[1]
    if not any(hmac.compare_digest(expected, sig) for sig in signatures):
        raise WebhookSignatureError("Webhook signature mismatch")

    try:
        return json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise WebhookSignatureError("Webhook payload is not valid JSON")


def to_minor_units(amount) -> int:
    """Major-unit Decimal to integer minor units (cents)."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount_minor: int):
    return (Decimal(int(amount_minor)) / Decimal(100)).quantize(Decimal("0.01"))
