"""Stripe line-item lookup for checkout sessions without a price in the payload."""

import asyncio
import logging
from typing import Optional

import stripe

from license_relay.common.exceptions import PriceLookupFailed

logger = logging.getLogger(__name__)


class StripeLineItemSource:
    """Reads the first purchased price of a checkout session from Stripe."""

    def __init__(self, api_key: str):
        self.api_key = api_key

    def _first_price_blocking(self, session_id: str) -> Optional[str]:
        items = stripe.checkout.Session.list_line_items(
            session_id, limit=1, api_key=self.api_key,
        )
        for item in items.data:
            price = item.price
            if price is not None and price.id:
                return price.id
        return None

    async def first_price_id(self, session_id: str) -> Optional[str]:
        if not session_id:
            return None
        try:
            return await asyncio.to_thread(self._first_price_blocking, session_id)
        except stripe.StripeError as e:
            logger.error("Stripe line item lookup failed for %s: %s", session_id, e)
            raise PriceLookupFailed(f"Stripe line item lookup failed: {e}") from e
