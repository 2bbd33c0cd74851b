"""Routes verified webhook events to the fulfillment flow."""

import enum
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Optional

from license_relay.common.config import CHECKOUT_EVENT_TYPES
from license_relay.fulfillment.flow import FulfillmentResult
from license_relay.fulfillment.schemas import WebhookEvent
from license_relay.fulfillment.stripe_webhook import awaiting_payment

logger = logging.getLogger(__name__)

DEFAULT_HANDLED_TYPES: frozenset[str] = frozenset(CHECKOUT_EVENT_TYPES)


class DispatchOutcome(str, enum.Enum):
    HANDLED = "handled"
    IGNORED = "ignored"


@dataclass
class DispatchResult:
    outcome: DispatchOutcome
    event_id: str
    event_type: str
    fulfillment: Optional[FulfillmentResult] = None


class EventRouter:
    """Sends recognized event types to ``handler``; acknowledges the rest.

    Unknown types are never an error. The provider would otherwise keep
    redelivering events this service has no use for. A completed checkout
    still awaiting a delayed payment is acknowledged the same way.
    """

    def __init__(
        self,
        handler: Callable[[WebhookEvent], Awaitable[FulfillmentResult]],
        handled_types: Iterable[str] = DEFAULT_HANDLED_TYPES,
    ):
        self.handler = handler
        self.handled_types = frozenset(handled_types)

    def handles(self, event_type: str) -> bool:
        return event_type in self.handled_types

    async def route(self, event: WebhookEvent) -> DispatchResult:
        if not self.handles(event.type):
            logger.debug("Ignoring event type: %s", event.type)
            return DispatchResult(DispatchOutcome.IGNORED, event.id, event.type)
        if awaiting_payment(event):
            logger.info("Checkout %s completed before payment cleared; waiting", event.id)
            return DispatchResult(DispatchOutcome.IGNORED, event.id, event.type)

        fulfillment = await self.handler(event)
        return DispatchResult(DispatchOutcome.HANDLED, event.id, event.type, fulfillment)
