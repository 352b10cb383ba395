# billing/gateway.py
from __future__ import annotations

import hashlib
import hmac
import logging

import razorpay
from django.conf import settings

logger = logging.getLogger(__name__)


class GatewayNotConfigured(Exception):
    pass


def razorpay_configured() -> bool:
    return bool(settings.RAZORPAY_KEY_ID and settings.RAZORPAY_KEY_SECRET)


def _client():
    if not razorpay_configured():
        raise GatewayNotConfigured("Razorpay keys are not configured.")
    return razorpay.Client(auth=(settings.RAZORPAY_KEY_ID, settings.RAZORPAY_KEY_SECRET))


def create_order(*, amount_cents: int, currency: str, receipt: str, notes: dict | None = None) -> dict:
    order = _client().order.create({
        "amount": int(amount_cents),
        "currency": currency.upper(),
        "receipt": receipt[:40],
        "notes": {k: str(v) for k, v in (notes or {}).items()},
    })
    logger.info("Created Razorpay order %s for %s %s", order.get("id"), amount_cents, currency)
    return order


def _sign(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def verify_payment_signature(order_id: str, payment_id: str, signature: str) -> bool:
    """HMAC-SHA256 of "order_id|payment_id" with the key secret."""
    secret = settings.RAZORPAY_KEY_SECRET
    if not (secret and order_id and payment_id and signature):
        return False
    expected = _sign(secret, f"{order_id}|{payment_id}".encode())
    return hmac.compare_digest(expected, signature)


def verify_webhook_signature(body: bytes, signature: str) -> bool:
    secret = settings.RAZORPAY_WEBHOOK_SECRET
    if not secret:
        raise GatewayNotConfigured("Webhook secret not set")
    expected = _sign(secret, body)
    return hmac.compare_digest(expected, signature or "")
