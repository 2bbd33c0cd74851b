"""Purchase fulfillment: price -> policy -> license -> email."""

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from license_relay.common.exceptions import MissingPriceId, RelayError
from license_relay.common.logging import mask_key
from license_relay.fulfillment.policy import PolicyResolver
from license_relay.fulfillment.schemas import IssuedLicense, PurchaseContext, WebhookEvent
from license_relay.fulfillment.stripe_webhook import parse_purchase_context

logger = logging.getLogger(__name__)


class FulfillmentStage(str, enum.Enum):
    VERIFIED = "verified"
    PRICE_RESOLVED = "price_resolved"
    POLICY_RESOLVED = "policy_resolved"
    LICENSE_ISSUED = "license_issued"
    NOTIFIED = "notified"
    COMPLETE = "complete"


class LicenseIssuer(Protocol):
    async def create_license(
        self,
        policy_id: str,
        name: str,
        metadata: Optional[dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> IssuedLicense: ...


class Notifier(Protocol):
    async def send_license_key(
        self,
        to_email: str,
        license_key: str,
        customer_name: Optional[str] = None,
    ) -> None: ...


class LineItemSource(Protocol):
    async def first_price_id(self, session_id: str) -> Optional[str]: ...


@dataclass
class FulfillmentResult:
    """Outcome of a flow that reached LICENSE_ISSUED or beyond."""

    license_key: str
    license_id: str = ""
    policy_id: str = ""
    emailed: bool = False
    notification_error: Optional[str] = None
    stages: list[FulfillmentStage] = field(default_factory=list)

    @property
    def stage(self) -> FulfillmentStage:
        return self.stages[-1]


class FulfillmentFlow:
    """Issues a license for a verified purchase and emails the key.

    Failures before the license exists propagate with ``stage`` set and
    nothing to undo. Once the license exists the flow always returns a
    result; email problems are only logged, because failing the request
    would make the provider redeliver and issue a second license.
    """

    def __init__(
        self,
        resolver: PolicyResolver,
        issuer: LicenseIssuer,
        notifier: Optional[Notifier] = None,
        line_items: Optional[LineItemSource] = None,
        forward_idempotency_key: bool = False,
    ):
        self.resolver = resolver
        self.issuer = issuer
        self.notifier = notifier
        self.line_items = line_items
        self.forward_idempotency_key = forward_idempotency_key

    async def fulfill_event(self, event: WebhookEvent) -> FulfillmentResult:
        stage = FulfillmentStage.VERIFIED
        try:
            purchase = parse_purchase_context(event)
            price_id = await self._resolve_price(purchase)
            stage = FulfillmentStage.PRICE_RESOLVED

            policy_id = self.resolver.require(price_id)
            stage = FulfillmentStage.POLICY_RESOLVED

            issued = await self.issuer.create_license(
                policy_id,
                name=purchase.customer_name or purchase.customer_email or "Customer",
                metadata={
                    "email": purchase.customer_email or "",
                    "priceId": price_id,
                    "stripeEventId": event.id,
                    "stripeSessionId": purchase.session_id,
                },
                idempotency_key=event.id if self.forward_idempotency_key else None,
            )
        except RelayError as e:
            e.stage = stage.value
            logger.warning(
                "Fulfillment failed",
                extra={"event_id": event.id, "stage": stage.value, "error_code": e.code},
            )
            raise

        logger.info(
            "License issued",
            extra={"event_id": event.id, "policy_id": policy_id, "license_id": issued.id},
        )
        return await self._notify(
            issued, policy_id, purchase.customer_email, purchase.customer_name,
        )

    async def issue_admin(
        self,
        policy_id: str,
        email: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> FulfillmentResult:
        """Issue a license directly for ``policy_id``; every call creates a new one."""
        try:
            issued = await self.issuer.create_license(
                policy_id,
                name=f"Admin Issue: {email}" if email else "Admin Issue",
                metadata={
                    "reason": reason or "admin_issue",
                    "email": email or "",
                    "issuedVia": "admin_issue",
                },
            )
        except RelayError as e:
            e.stage = FulfillmentStage.POLICY_RESOLVED.value
            raise

        logger.info("Admin license issued", extra={"policy_id": policy_id, "license_id": issued.id})
        return await self._notify(issued, policy_id, email, None)

    async def _resolve_price(self, purchase: PurchaseContext) -> str:
        if purchase.price_id:
            return purchase.price_id
        if self.line_items is not None:
            price_id = await self.line_items.first_price_id(purchase.session_id)
            if price_id:
                return price_id
        raise MissingPriceId()

    async def _notify(
        self,
        issued: IssuedLicense,
        policy_id: str,
        email: Optional[str],
        name: Optional[str],
    ) -> FulfillmentResult:
        result = FulfillmentResult(
            license_key=issued.key,
            license_id=issued.id,
            policy_id=policy_id,
            stages=[FulfillmentStage.LICENSE_ISSUED],
        )

        if email and self.notifier is not None:
            try:
                await self.notifier.send_license_key(email, issued.key, customer_name=name)
                result.emailed = True
                result.stages.append(FulfillmentStage.NOTIFIED)
            except Exception as e:
                logger.exception(
                    "Failed to send license key %s to %s", mask_key(issued.key), email,
                )
                result.notification_error = str(e)
        elif email:
            logger.info("No email transport configured; license key for %s not sent", email)

        result.stages.append(FulfillmentStage.COMPLETE)
        return result
