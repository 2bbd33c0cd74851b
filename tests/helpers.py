"""Fakes and payload builders shared by the test suite."""

import itertools
import json
import time

from license_relay.common.config import RelaySettings
from license_relay.common.exceptions import LicenseIssuanceFailed, NotificationFailed
from license_relay.fulfillment.schemas import IssuedLicense
from license_relay.fulfillment.stripe_webhook import sign_stripe_payload


WEBHOOK_SECRET = "whsec_test_secret"
ADMIN_SECRET = "test-admin-issue-secret"
POLICY_TABLE = {"X": "P1", "price_pro_yearly": "P2"}


class FakeIssuer:
    """Records create_license calls; every call yields a fresh key."""

    def __init__(self, fail: bool = False):
        self.calls = []
        self.fail = fail
        self._counter = itertools.count(1)

    async def create_license(self, policy_id, name, metadata=None, idempotency_key=None):
        self.calls.append({
            "policy_id": policy_id,
            "name": name,
            "metadata": metadata or {},
            "idempotency_key": idempotency_key,
        })
        if self.fail:
            raise LicenseIssuanceFailed("Policy not found (/data/relationships/policy)")
        n = next(self._counter)
        return IssuedLicense(key=f"KEY-{n:04d}-ABCDEFGHIJ", id=f"lic-{n}")


class FakeNotifier:
    def __init__(self, fail: bool = False):
        self.calls = []
        self.fail = fail

    async def send_license_key(self, to_email, license_key, customer_name=None):
        self.calls.append({"to": to_email, "key": license_key, "name": customer_name})
        if self.fail:
            raise NotificationFailed("SMTP send failed: connection refused")


class FakeLineItems:
    def __init__(self, price_id=None):
        self.price_id = price_id
        self.calls = []

    async def first_price_id(self, session_id):
        self.calls.append(session_id)
        return self.price_id


def make_settings(**overrides) -> RelaySettings:
    defaults = {
        "stripe_webhook_secret": WEBHOOK_SECRET,
        "admin_issue_secret": ADMIN_SECRET,
        "keygen_account_id": "acct-test",
        "keygen_api_token": "prod-test-token",
        "price_policy_map": json.dumps(POLICY_TABLE),
    }
    defaults.update(overrides)
    return RelaySettings(**defaults)


def checkout_event(
    event_type="checkout.session.completed",
    event_id="evt_test_1",
    price_id="X",
    email="a@b.com",
    name="Jane Buyer",
    payment_status="paid",
) -> dict:
    metadata = {"price_id": price_id} if price_id else {}
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {
            "object": {
                "id": "cs_test_123",
                "object": "checkout.session",
                "payment_status": payment_status,
                "customer_details": {"email": email, "name": name},
                "metadata": metadata,
            }
        },
    }


def signed_delivery(event: dict, secret: str = WEBHOOK_SECRET, timestamp=None):
    """Return (raw body, headers) as Stripe would deliver ``event``."""
    body = json.dumps(event, separators=(",", ":")).encode()
    ts = int(time.time()) if timestamp is None else timestamp
    return body, {
        "Stripe-Signature": sign_stripe_payload(body, secret, ts),
        "Content-Type": "application/json",
    }
