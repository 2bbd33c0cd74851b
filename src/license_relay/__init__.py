"""license-relay: turns Stripe purchases and admin requests into Keygen licenses."""

from license_relay.fulfillment.dispatch import DispatchOutcome, EventRouter
from license_relay.fulfillment.flow import FulfillmentFlow, FulfillmentResult, FulfillmentStage
from license_relay.fulfillment.policy import PolicyResolver
from license_relay.fulfillment.stripe_webhook import construct_event, verify_stripe_signature

__all__ = [
    "DispatchOutcome",
    "EventRouter",
    "FulfillmentFlow",
    "FulfillmentResult",
    "FulfillmentStage",
    "PolicyResolver",
    "construct_event",
    "verify_stripe_signature",
]
__version__ = "0.1.0"
