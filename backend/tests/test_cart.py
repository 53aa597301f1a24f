# Overview: Pytest coverage for cart totals and the checkout step machine.

from decimal import Decimal

import pytest

from gemledger.services.cart import CartLine, compute_totals, discount_for, line_total
from gemledger.services.checkout_flow import CheckoutError, CheckoutFlow


def D(value: str) -> Decimal:
    return Decimal(value)


class TestDiscounts:
    """Line and sale level discounts."""

    def test_percentage(self):
        assert discount_for(D("200"), "percentage", D("10")) == D("20.0000")

    def test_percentage_capped_at_hundred(self):
        assert discount_for(D("50"), "percentage", D("150")) == D("50.0000")

    def test_fixed_capped_at_base(self):
        assert discount_for(D("30"), "fixed", D("45")) == D("30.0000")

    def test_none_or_non_positive(self):
        assert discount_for(D("30"), None, D("5")) == 0
        assert discount_for(D("30"), "fixed", D("0")) == 0

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            discount_for(D("30"), "bogus", D("5"))

    def test_line_total_never_negative(self):
        line = CartLine(item_id=1, unit_price=D("10"), quantity=2, discount_type="fixed", discount_value=D("50"))
        assert line_total(line) == D("0.0000")


class TestComputeTotals:
    """Subtotal, discount, tax and remaining."""

    def test_full_calculation(self):
        lines = [
            CartLine(item_id=1, unit_price=D("1000"), quantity=1),
            CartLine(item_id=2, unit_price=D("250.50"), quantity=2, discount_type="percentage", discount_value=D("10")),
        ]
        totals = compute_totals(lines, discount_type="fixed", discount_value=D("50.90"), tax_rate=D("5"), paid=D("500"))

        # 1000 + 501.00 - 50.10 = 1450.90
        assert totals.subtotal == D("1450.9000")
        assert totals.discount_amount == D("50.9000")
        assert totals.tax_amount == D("70.0000")
        assert totals.total == D("1470.0000")
        assert totals.paid == D("500.0000")
        assert totals.remaining == D("970.0000")

    def test_overpaid_leaves_zero_remaining(self):
        totals = compute_totals([CartLine(item_id=1, unit_price=D("10"))], paid=D("15"))
        assert totals.remaining == D("0.0000")

    def test_empty_cart(self):
        totals = compute_totals([])
        assert totals.total == D("0.0000")
        assert totals.to_dict()["total"] == "0.0000"


class TestCheckoutFlow:
    """Step transitions."""

    def test_cannot_leave_review_empty(self):
        flow = CheckoutFlow()
        assert not flow.can_proceed()
        with pytest.raises(CheckoutError):
            flow.next()

    def test_forward_path(self):
        flow = CheckoutFlow(has_items=True, remaining=D("100"))
        assert flow.next() == "customer"
        assert flow.next() == "payment"
        assert not flow.can_proceed()

        flow.remaining = D("0.005")
        assert flow.next() == "processing"
        assert not flow.can_go_back()

    def test_progress(self):
        flow = CheckoutFlow(has_items=True)
        assert flow.progress_percent == 0.0
        flow.next()
        assert flow.progress_percent == 25.0

    def test_back_and_goto(self):
        flow = CheckoutFlow(has_items=True)
        flow.next()
        flow.next()
        assert flow.back() == "customer"
        flow.next()
        assert flow.go_to("review") == "review"

    def test_goto_forward_rejected(self):
        flow = CheckoutFlow(has_items=True)
        flow.next()
        with pytest.raises(CheckoutError):
            flow.go_to("payment")
        with pytest.raises(CheckoutError, match="Unknown step"):
            flow.go_to("shipping")

    def test_back_from_review_rejected(self):
        with pytest.raises(CheckoutError):
            CheckoutFlow().back()

    def test_fail_retry_cancel(self):
        flow = CheckoutFlow(has_items=True, sale_id=7, customer_id=3)
        flow.fail("card declined")
        assert flow.step == "error"
        assert flow.step_index == -1
        assert not flow.can_go_back()

        flow.retry()
        assert flow.step == "review"
        assert flow.error_message is None
        assert flow.sale_id == 7

        flow.cancel()
        assert flow.sale_id is None
        assert flow.customer_id is None
        assert not flow.has_items
