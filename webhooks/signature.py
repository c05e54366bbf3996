import hashlib
import hmac
import json
from typing import Optional

from booking_schemas import WebhookEvent
from errors import InvalidSignature, MalformedPayload

SIGNATURE_HEADER = "x-paystack-signature"
CHARGE_SUCCESS = "charge.success"


def compute_signature(raw_body: bytes, shared_secret: str) -> str:
    return hmac.new(shared_secret.encode(), raw_body, hashlib.sha512).hexdigest()


def verify_signature(raw_body: bytes, signature_header: Optional[str], shared_secret: str) -> bool:
    """
    HMAC-SHA512 of the exact raw body, compared in constant time.
    An empty secret, a missing header or a non-ASCII header never verifies.
    """
    if not shared_secret or not signature_header:
        return False
    expected = compute_signature(raw_body, shared_secret).encode()
    received = signature_header.strip().lower().encode("utf-8", "replace")
    return hmac.compare_digest(expected, received)


def parse_event(raw_body: bytes) -> WebhookEvent:
    """
    Turn a provider callback into a provider-agnostic WebhookEvent.
    Only the envelope is required here; a charge event must also carry a reference.
    """
    try:
        payload = json.loads(raw_body)
    except (TypeError, ValueError) as exc:
        raise MalformedPayload("Webhook body is not valid JSON") from exc
    if not isinstance(payload, dict) or not isinstance(payload.get("event"), str):
        raise MalformedPayload("Webhook body has no event type")

    data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
    reference = data.get("reference")
    if payload["event"] == CHARGE_SUCCESS and not reference:
        raise MalformedPayload("charge.success webhook without a transaction reference")

    amount = data.get("amount")
    return WebhookEvent(
        event_type=payload["event"],
        gateway_reference=str(reference or ""),
        status=str(data.get("status") or ""),
        amount=amount if isinstance(amount, int) else None,
        raw_payload=data,
    )


def authenticate(raw_body: bytes, signature_header: Optional[str], shared_secret: str) -> WebhookEvent:
    """Signature first; the payload is not even parsed when it fails."""
    if not verify_signature(raw_body, signature_header, shared_secret):
        raise InvalidSignature("Invalid webhook signature")
    return parse_event(raw_body)
