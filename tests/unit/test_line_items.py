"""Tests for the Stripe line-item source."""

from unittest.mock import patch

import pytest
import stripe

from license_relay.common.exceptions import PriceLookupFailed
from license_relay.fulfillment.line_items import StripeLineItemSource

LIST_LINE_ITEMS = "stripe.checkout.Session.list_line_items"
API_KEY = "sk_test_123"


def line_item_list(*items) -> stripe.ListObject:
    """Build the response object the Stripe SDK returns for list_line_items."""
    return stripe.ListObject.construct_from(
        {"object": "list", "url": "/v1/checkout/sessions/cs_test_1/line_items", "data": list(items)},
        API_KEY,
    )


class TestStripeLineItemSource:
    async def test_first_price(self):
        source = StripeLineItemSource(API_KEY)
        response = line_item_list({"object": "item", "price": {"object": "price", "id": "price_abc"}})
        with patch(LIST_LINE_ITEMS, return_value=response) as lli:
            assert await source.first_price_id("cs_test_1") == "price_abc"
        lli.assert_called_once_with("cs_test_1", limit=1, api_key=API_KEY)

    async def test_no_items(self):
        source = StripeLineItemSource(API_KEY)
        with patch(LIST_LINE_ITEMS, return_value=line_item_list()):
            assert await source.first_price_id("cs_test_1") is None

    async def test_item_without_price(self):
        source = StripeLineItemSource(API_KEY)
        with patch(LIST_LINE_ITEMS, return_value=line_item_list({"object": "item", "price": None})):
            assert await source.first_price_id("cs_test_1") is None

    async def test_empty_session_id_skips_lookup(self):
        source = StripeLineItemSource(API_KEY)
        with patch(LIST_LINE_ITEMS) as lli:
            assert await source.first_price_id("") is None
        lli.assert_not_called()

    async def test_stripe_error(self):
        source = StripeLineItemSource(API_KEY)
        with patch(LIST_LINE_ITEMS, side_effect=stripe.StripeError("No such checkout session")):
            with pytest.raises(PriceLookupFailed):
                await source.first_price_id("cs_missing")
