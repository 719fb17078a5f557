"""
StripePaymentProvider translates seat deltas into absolute item quantities.
"""

from decimal import Decimal
from unittest.mock import patch

import pytest
import stripe

from billable.payments.stripe_provider import StripePaymentProvider
from billable.payments.types import PaymentProviderError


class StripeObj(dict):
    """dict with attribute access, close enough to stripe.StripeObject."""

    def __getattr__(self, name):
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name)


def _subscription(quantity, status="active"):
    return StripeObj(
        id="sub_1",
        status=status,
        customer="cus_1",
        current_period_end=1700000000,
        items={"data": [{"id": "si_1", "quantity": quantity, "price": {"id": "price_basic"}}]},
    )


@pytest.fixture
def provider():
    return StripePaymentProvider(api_key="sk_test_123")


@pytest.mark.unit
class TestQuantityChanges:
    def test_increment_with_behavior(self, provider):
        with patch.object(stripe.Subscription, "retrieve", return_value=_subscription(3)), \
                patch.object(stripe.Subscription, "modify", return_value=_subscription(5)) as modify:
            result = provider.increment_quantity("sub_1", 2, "create_prorations")

        modify.assert_called_once_with(
            "sub_1",
            items=[{"id": "si_1", "quantity": 5}],
            proration_behavior="create_prorations",
        )
        assert result["quantity"] == 5
        assert result["plan"] == "price_basic"

    def test_increment_and_invoice_always_invoices(self, provider):
        with patch.object(stripe.Subscription, "retrieve", return_value=_subscription(1)), \
                patch.object(stripe.Subscription, "modify", return_value=_subscription(2)) as modify:
            provider.increment_and_invoice("sub_1", 1)

        assert modify.call_args.kwargs["proration_behavior"] == "always_invoice"

    def test_plain_decrement_leaves_behavior_to_stripe(self, provider):
        with patch.object(stripe.Subscription, "retrieve", return_value=_subscription(5)), \
                patch.object(stripe.Subscription, "modify", return_value=_subscription(3)) as modify:
            provider.decrement_quantity("sub_1", 2)

        modify.assert_called_once_with("sub_1", items=[{"id": "si_1", "quantity": 3}])

    def test_stripe_errors_are_wrapped(self, provider):
        with patch.object(stripe.Subscription, "retrieve", side_effect=stripe.StripeError("no such subscription")):
            with pytest.raises(PaymentProviderError):
                provider.decrement_quantity("sub_missing", 1, "none")

    def test_retrieve_subscription_shape(self, provider):
        with patch.object(stripe.Subscription, "retrieve", return_value=_subscription(7, status="past_due")):
            shaped = provider.retrieve_subscription("sub_1")

        assert shaped["quantity"] == 7
        assert shaped["status"] == "past_due"
        assert shaped["cancel_at_period_end"] is False


@pytest.mark.unit
class TestTaxRates:
    def test_create_tax_rate(self, provider):
        with patch.object(stripe.TaxRate, "create", return_value=StripeObj(id="txr_1")) as create:
            assert provider.create_tax_rate(display_name="VAT", inclusive=False, percentage=Decimal("19.0000")) == "txr_1"

        create.assert_called_once_with(display_name="VAT", inclusive=False, percentage=19.0)
