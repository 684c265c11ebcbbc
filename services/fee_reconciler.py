from decimal import Decimal
from typing import Iterable, NamedTuple

from models.fees.fees_models import (
    Fee,
    Installment,
    FEE_PAID,
    FEE_PARTIAL,
    FEE_UNPAID,
    INSTALLMENT_PAID,
    INSTALLMENT_PARTIAL,
)
from services.money import to_money, ZERO


class FeeTotals(NamedTuple):
    paid: Decimal
    balance: Decimal
    status: str


def effective_paid(installment: Installment) -> Decimal:
    """Amount an installment contributes to its fee's paid total."""
    paid_amount = to_money(installment.paid_amount)
    if installment.status == INSTALLMENT_PAID:
        # paid rows with no recorded amount count in full
        return paid_amount if paid_amount > ZERO else to_money(installment.amount)
    if installment.status == INSTALLMENT_PARTIAL:
        return paid_amount
    return ZERO


def reconcile(fee: Fee, installments: Iterable[Installment]) -> FeeTotals:
    """Recompute a fee's paid/balance/status from its installments.

    Pure: neither argument is modified, so repeated calls give the same result.
    """
    paid = sum((effective_paid(inst) for inst in installments), ZERO)
    total_amount = to_money(fee.amount) - to_money(fee.discount)
    balance = max(ZERO, total_amount - min(paid, total_amount))

    if balance <= ZERO:
        status = FEE_PAID
    elif paid > ZERO:
        status = FEE_PARTIAL
    else:
        status = FEE_UNPAID
    return FeeTotals(paid=paid, balance=balance, status=status)


def apply_totals(fee: Fee, totals: FeeTotals) -> Fee:
    fee.paid = totals.paid
    fee.balance = totals.balance
    fee.status = totals.status
    return fee
