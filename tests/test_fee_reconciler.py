from datetime import date
from decimal import Decimal

import pytest

from models.fees.fees_models import Fee, Installment
from services.fee_reconciler import reconcile, apply_totals, effective_paid


def fee(amount, discount=0):
    return Fee(fee_id="FEE-R", school_id="s", student_id="st", amount=Decimal(str(amount)),
               discount=Decimal(str(discount)), paid=Decimal("0"), balance=Decimal("0"), status="unpaid")


def inst(amount, paid_amount=0, status="unpaid"):
    amount, paid_amount = Decimal(str(amount)), Decimal(str(paid_amount))
    return Installment(installment_id="i", fee_id="FEE-R", school_id="s", student_id="st", amount=amount,
                       paid_amount=paid_amount, balance=amount - paid_amount, due_date=date(2025, 1, 1),
                       status=status)


def test_nothing_paid_is_unpaid():
    totals = reconcile(fee(600), [inst(300), inst(300, status="upcoming")])
    assert totals == (Decimal("0"), Decimal("600"), "unpaid")


def test_partial_payments_sum():
    totals = reconcile(fee(600), [inst(300, 300, "paid"), inst(300, 120, "partial")])
    assert totals.paid == Decimal("420")
    assert totals.balance == Decimal("180")
    assert totals.status == "partial"


def test_fully_paid():
    totals = reconcile(fee(600), [inst(300, 300, "paid"), inst(300, 300, "paid")])
    assert totals == (Decimal("600"), Decimal("0"), "paid")


def test_paid_installment_without_amount_counts_in_full():
    assert effective_paid(inst(250, 0, "paid")) == Decimal("250")
    totals = reconcile(fee(500), [inst(250, 0, "paid"), inst(250)])
    assert totals.paid == Decimal("250")
    assert totals.status == "partial"


@pytest.mark.parametrize("status", ["unpaid", "upcoming", "overdue"])
def test_unsettled_statuses_contribute_nothing(status):
    assert effective_paid(inst(100, 40, status)) == Decimal("0")


def test_discount_reduces_total():
    totals = reconcile(fee(600, discount=100), [inst(250, 250, "paid"), inst(250, 250, "paid")])
    assert totals.balance == Decimal("0")
    assert totals.status == "paid"


def test_overpaid_balance_never_negative():
    totals = reconcile(fee(300, discount=100), [inst(300, 300, "paid")])
    assert totals.paid == Decimal("300")
    assert totals.balance == Decimal("0")
    assert totals.status == "paid"


def test_zero_total_fee_is_paid():
    assert reconcile(fee(0), []).status == "paid"


def test_status_matches_balance_rules():
    for installments in ([], [inst(300, 100, "partial")], [inst(300, 300, "paid")]):
        totals = reconcile(fee(300), installments)
        if totals.balance == 0:
            assert totals.status == "paid"
        elif totals.paid > 0:
            assert totals.status == "partial"
        else:
            assert totals.status == "unpaid"


def test_reconcile_is_idempotent():
    f = fee(900, discount=50)
    installments = [inst(300, 300, "paid"), inst(300, 75.5, "partial"), inst(300, 0, "overdue")]

    first = reconcile(f, installments)
    assert reconcile(f, installments) == first

    apply_totals(f, first)
    assert reconcile(f, installments) == first
    assert (f.paid, f.balance, f.status) == tuple(first)


def test_reconcile_does_not_touch_inputs():
    f = fee(300)
    installments = [inst(300, 100, "partial")]
    reconcile(f, installments)
    assert f.paid == Decimal("0")
    assert installments[0].paid_amount == Decimal("100")
