"""Stripe webhook signature verification and checkout payload parsing."""

import hashlib
import hmac
import json
import logging
import time
from typing import Any, Optional

from license_relay.common.exceptions import BadRequest, SignatureInvalid
from license_relay.fulfillment.schemas import PurchaseContext, WebhookEvent

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 300

SETTLED_PAYMENT_STATUSES = frozenset({"paid", "no_payment_required"})


def _compute_signature(payload: bytes, secret: str, timestamp: str) -> str:
    signed_payload = f"{timestamp}.".encode() + payload
    return hmac.new(
        secret.encode(),
        signed_payload,
        hashlib.sha256,
    ).hexdigest()


def sign_stripe_payload(payload: bytes, secret: str, timestamp: Optional[int] = None) -> str:
    """Build a ``Stripe-Signature`` header value for ``payload``."""
    ts = str(int(time.time()) if timestamp is None else timestamp)
    return f"t={ts},v1={_compute_signature(payload, secret, ts)}"


def verify_stripe_signature(
    payload: bytes,
    signature_header: Optional[str],
    webhook_secret: str,
    tolerance: int = DEFAULT_TOLERANCE,
    now: Optional[float] = None,
) -> bool:
    """Verify Stripe webhook signature (v1 scheme).

    Stripe sends: t=<timestamp>,v1=<signature>[,v1=<signature>...]
    Several v1 entries appear while a signing secret is being rolled;
    any one of them matching is enough.
    """
    if not signature_header or not webhook_secret:
        return False

    timestamp = ""
    candidates = []
    for item in signature_header.split(","):
        key, _, value = item.partition("=")
        key = key.strip()
        if key == "t":
            timestamp = value.strip()
        elif key == "v1":
            candidates.append(value.strip())

    if not timestamp or not candidates:
        return False

    try:
        ts = int(timestamp)
    except ValueError:
        return False

    if tolerance > 0:
        current = time.time() if now is None else now
        if ts < current - tolerance:
            logger.warning("Stripe signature timestamp outside tolerance window")
            return False

    computed = _compute_signature(payload, webhook_secret, timestamp)
    return any(hmac.compare_digest(computed, candidate) for candidate in candidates)


def construct_event(
    payload: bytes,
    signature_header: Optional[str],
    webhook_secret: str,
    tolerance: int = DEFAULT_TOLERANCE,
    now: Optional[float] = None,
) -> WebhookEvent:
    """Verify ``payload`` and decode it into a WebhookEvent.

    ``payload`` must be the request body exactly as received; the
    signature covers those bytes and nothing else.
    """
    if not webhook_secret:
        logger.error("Stripe webhook secret is not configured; rejecting delivery")
        raise SignatureInvalid("Webhook secret not configured")
    if not signature_header:
        raise SignatureInvalid("Missing Stripe-Signature header")
    if not verify_stripe_signature(payload, signature_header, webhook_secret, tolerance, now):
        raise SignatureInvalid()

    try:
        data = json.loads(payload)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise BadRequest("Invalid JSON")

    if not isinstance(data, dict) or not _as_str(data.get("type")) or not _as_str(data.get("id")):
        raise BadRequest("Event is missing id or type")

    return WebhookEvent(
        type=data["type"],
        id=data["id"],
        payload=payload,
        signature=signature_header,
        data=data,
    )


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def _session_object(event: WebhookEvent) -> dict[str, Any]:
    session = _as_dict(event.data.get("data")).get("object")
    if not isinstance(session, dict):
        raise BadRequest("Event has no checkout session object")
    return session


def _price_from_line_items(session: dict[str, Any]) -> Optional[str]:
    items = _as_dict(session.get("line_items")).get("data")
    if not isinstance(items, list):
        return None
    for item in items:
        price_id = _as_str(_as_dict(_as_dict(item).get("price")).get("id"))
        if price_id:
            return price_id
    return None


def awaiting_payment(event: WebhookEvent) -> bool:
    """True for a completed checkout whose payment has not cleared yet.

    Delayed payment methods complete the session as ``unpaid``; Stripe
    sends ``checkout.session.async_payment_succeeded`` once the money
    arrives, and that event is the one to fulfil. A session without a
    ``payment_status`` counts as settled.
    """
    if event.type != "checkout.session.completed":
        return False
    status = _as_dict(_as_dict(event.data.get("data")).get("object")).get("payment_status")
    return status is not None and status not in SETTLED_PAYMENT_STATUSES


def parse_purchase_context(event: WebhookEvent) -> PurchaseContext:
    """Extract the purchase details from a checkout session event.

    The price id comes from expanded line items when Stripe included
    them, otherwise from session metadata. It may still be None; the
    flow then asks the line-item source. Nested fields of the wrong
    shape are treated as absent.
    """
    session = _session_object(event)
    metadata = _as_dict(session.get("metadata"))
    customer_details = _as_dict(session.get("customer_details"))

    price_id = _price_from_line_items(session) or _as_str(metadata.get("price_id"))
    email = _as_str(customer_details.get("email")) or _as_str(session.get("customer_email"))
    name = _as_str(customer_details.get("name")) or _as_str(metadata.get("customer_name"))

    return PurchaseContext(
        price_id=price_id,
        customer_email=email,
        customer_name=name,
        session_id=_as_str(session.get("id")) or "",
        event_id=event.id,
    )
