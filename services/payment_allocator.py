"""Apply a payment to an installment and cascade any overpayment.

The payment lands on the target installment first. Whatever it cannot absorb moves
on to the fee's other unpaid installments in due-date order. The fee aggregate is
then reconciled from its installments. The whole payment is one transaction: the
fee row and its installments are locked while it runs and nothing is committed
unless every write succeeded.
"""
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple
import logging

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from models.fees.fees_models import Fee, Installment, INSTALLMENT_PAID, INSTALLMENT_PARTIAL
from models.settings.settings_models import RECEIPT_TYPE_INSTALLMENT
from services.fee_reconciler import reconcile, apply_totals
from services.ledger import Ledger
from services.money import to_money, ZERO
from services.payment_errors import InvalidAmount, NotFound
from services.receipt_number_generator import ReceiptNumberAllocator

logger = logging.getLogger(__name__)


class PaymentMeta(BaseModel):
    payment_method: Optional[str] = "cash"
    payment_note: Optional[str] = None
    check_number: Optional[str] = None
    paid_date: Optional[date] = None


@dataclass
class PaymentResult:
    installments: List[Installment]
    fee: Fee
    receipt_numbers: List[str] = field(default_factory=list)
    unapplied_amount: Decimal = ZERO


class PaymentAllocator:
    def __init__(self, db: AsyncSession, numbers: ReceiptNumberAllocator = None):
        self.db = db
        self.ledger = Ledger(db)
        self.numbers = numbers or ReceiptNumberAllocator(self.ledger)

    async def apply(
        self,
        installment_id: str,
        payment_amount,
        meta: PaymentMeta = None,
        receipt_type: str = RECEIPT_TYPE_INSTALLMENT,
    ) -> PaymentResult:
        try:
            amount = to_money(payment_amount)
        except ValueError as exc:
            raise InvalidAmount(str(exc)) from exc
        if amount <= ZERO:
            raise InvalidAmount(f"Payment amount must be positive, got {payment_amount}")

        try:
            result = await self._apply(installment_id, amount, meta or PaymentMeta(), receipt_type)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return result

    async def _apply(self, installment_id: str, amount: Decimal, meta: PaymentMeta, receipt_type: str) -> PaymentResult:
        target = await self.ledger.get_installment(installment_id)
        if target is None:
            raise NotFound(f"Installment {installment_id} not found")
        fee = await self.ledger.get_fee(target.fee_id, for_update=True)
        if fee is None:
            raise NotFound(f"Fee {target.fee_id} not found")
        siblings = await self.ledger.get_installments_by_fee(fee.fee_id, for_update=True)

        touched = []
        issued = []

        applied, number = await self._settle(target, amount, meta, receipt_type)
        touched.append(target)
        if number:
            issued.append(number)

        overpayment = amount - applied
        if overpayment > ZERO:
            candidates = sorted(
                (inst for inst in siblings
                 if inst.status != INSTALLMENT_PAID and inst.installment_id != target.installment_id),
                key=lambda inst: (inst.due_date, inst.installment_id),
            )
            for inst in candidates:
                if overpayment <= ZERO:
                    break
                applied, number = await self._settle(inst, overpayment, meta, receipt_type)
                overpayment -= applied
                touched.append(inst)
                if number:
                    issued.append(number)

        if overpayment > ZERO:
            logger.warning(
                "Payment on installment %s left %s unapplied; fee %s has no unpaid installments left",
                installment_id, overpayment, fee.fee_id,
            )

        apply_totals(fee, reconcile(fee, siblings))
        await self.ledger.save_fee(fee)

        logger.info(
            "Applied %s to installment %s (fee %s): %d installment(s) updated, receipts %s",
            amount, installment_id, fee.fee_id, len(touched), issued,
        )
        return PaymentResult(
            installments=touched,
            fee=fee,
            receipt_numbers=issued,
            unapplied_amount=max(overpayment, ZERO),
        )

    async def _settle(self, inst: Installment, available: Decimal, meta: PaymentMeta, receipt_type: str) -> Tuple[Decimal, Optional[str]]:
        """Put as much of ``available`` on ``inst`` as it can take; returns (applied, new receipt number)."""
        amount = to_money(inst.amount)
        previously_paid = to_money(inst.paid_amount)
        to_apply = min(available, max(ZERO, amount - previously_paid))
        new_paid = previously_paid + to_apply

        if new_paid >= amount:
            inst.paid_amount = amount
            inst.balance = ZERO
            inst.status = INSTALLMENT_PAID
        else:
            inst.paid_amount = new_paid
            inst.balance = amount - new_paid
            inst.status = INSTALLMENT_PARTIAL

        if to_apply > ZERO:
            inst.payment_method = meta.payment_method
            inst.payment_note = meta.payment_note
            inst.check_number = meta.check_number if meta.payment_method == "check" else None
            inst.paid_date = meta.paid_date or date.today()

        # assigned once, never replaced
        number = None
        if not inst.receipt_number:
            number = await self.numbers.issue(inst.school_id, receipt_type)
            inst.receipt_number = number

        await self.ledger.save_installment(inst)
        return to_apply, number
