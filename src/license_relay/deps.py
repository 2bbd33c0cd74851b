"""Process-lifetime service wiring for license-relay.

Nothing here runs at import time: ``build_services`` is called once by
the app factory and the result is kept on ``app.state``.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from license_relay.common.config import RelaySettings
from license_relay.fulfillment.dispatch import EventRouter
from license_relay.fulfillment.email_delivery import EmailSender
from license_relay.fulfillment.flow import FulfillmentFlow, LicenseIssuer, LineItemSource, Notifier
from license_relay.fulfillment.keygen_client import KeygenClient
from license_relay.fulfillment.line_items import StripeLineItemSource
from license_relay.fulfillment.policy import PolicyResolver


@dataclass
class Services:
    settings: RelaySettings
    resolver: PolicyResolver
    issuer: LicenseIssuer
    flow: FulfillmentFlow
    router: EventRouter
    notifier: Optional[Notifier] = None
    line_items: Optional[LineItemSource] = None

    async def close(self) -> None:
        close = getattr(self.issuer, "close", None)
        if close is not None:
            await close()


def assemble_services(
    settings: RelaySettings,
    resolver: PolicyResolver,
    issuer: LicenseIssuer,
    notifier: Optional[Notifier] = None,
    line_items: Optional[LineItemSource] = None,
) -> Services:
    """Wire already-built collaborators into a flow and event router."""
    flow = FulfillmentFlow(
        resolver,
        issuer,
        notifier=notifier,
        line_items=line_items,
        forward_idempotency_key=settings.forward_idempotency_key,
    )
    router = EventRouter(flow.fulfill_event, handled_types=settings.handled_event_types)
    return Services(
        settings=settings,
        resolver=resolver,
        issuer=issuer,
        flow=flow,
        router=router,
        notifier=notifier,
        line_items=line_items,
    )


def build_services(settings: RelaySettings) -> Services:
    """Construct the real clients from configuration."""
    issuer = KeygenClient(
        account_id=settings.keygen_account_id,
        api_token=settings.keygen_api_token,
        base_url=settings.keygen_base_url,
        product_id=settings.keygen_product_id,
        timeout=settings.keygen_timeout,
    )
    line_items = None
    if settings.stripe_secret_key:
        line_items = StripeLineItemSource(settings.stripe_secret_key)

    return assemble_services(
        settings,
        resolver=PolicyResolver.from_settings(settings),
        issuer=issuer,
        notifier=EmailSender.from_settings(settings),
        line_items=line_items,
    )


def get_services(request: Request) -> Services:
    """FastAPI dependency returning the services of the running app."""
    return request.app.state.services
