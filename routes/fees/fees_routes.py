from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import date, datetime
from decimal import Decimal

from db import get_db
from models.fees.fees_models import (
    Fee,
    Installment,
    INSTALLMENT_STATUSES,
    INSTALLMENT_PAID,
    INSTALLMENT_PARTIAL,
    INSTALLMENT_UNPAID,
)
from services.fee_reconciler import reconcile, apply_totals
from services.fees_id_generator import generate_fee_id, generate_installment_id
from services.ledger import Ledger
from services.money import to_money, ZERO

router = APIRouter(prefix="/api/fees", tags=["Fees"])


class InstallmentItem(BaseModel):
    amount: Decimal
    due_date: date
    status: Optional[str] = INSTALLMENT_UNPAID


class FeesCreate(BaseModel):
    school_id: str
    student_id: str
    fee_type: Optional[str] = "tuition"
    amount: Decimal
    discount: Optional[Decimal] = Decimal("0")
    installments: Optional[List[InstallmentItem]] = None


class InstallmentResponse(BaseModel):
    installment_id: str
    fee_id: str
    school_id: str
    student_id: str
    amount: float
    paid_amount: float
    balance: float
    due_date: date
    status: str
    receipt_number: Optional[str]
    payment_method: Optional[str]
    payment_note: Optional[str]
    check_number: Optional[str]
    paid_date: Optional[date]

    class Config:
        from_attributes = True


class FeesResponse(BaseModel):
    fee_id: str
    school_id: str
    student_id: str
    fee_type: str
    amount: float
    discount: float
    paid: float
    balance: float
    status: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


async def _get_fee_or_404(ledger: Ledger, fee_id: str, for_update: bool = False) -> Fee:
    fee = await ledger.get_fee(fee_id, for_update=for_update)
    if not fee:
        raise HTTPException(status_code=404, detail="Fee record not found")
    return fee


@router.post("/create", response_model=FeesResponse, status_code=status.HTTP_201_CREATED)
async def create_fees(payload: FeesCreate, db: AsyncSession = Depends(get_db)):
    amount = to_money(payload.amount)
    discount = to_money(payload.discount)
    if amount < ZERO or discount < ZERO:
        raise HTTPException(status_code=400, detail="Amount and discount must not be negative")

    ledger = Ledger(db)
    fee = Fee(
        fee_id=generate_fee_id(),
        school_id=payload.school_id,
        student_id=payload.student_id,
        fee_type=payload.fee_type or "tuition",
        amount=amount,
        discount=discount,
    )

    # scheduled installments start unpaid; payments go through the payment route
    installments = []
    for n, item in enumerate(payload.installments or [], start=1):
        if item.status not in INSTALLMENT_STATUSES or item.status in (INSTALLMENT_PAID, INSTALLMENT_PARTIAL):
            raise HTTPException(status_code=400, detail=f"Invalid initial installment status: {item.status}")
        inst_amount = to_money(item.amount)
        if inst_amount <= ZERO:
            raise HTTPException(status_code=400, detail="Installment amounts must be positive")
        installments.append(Installment(
            installment_id=generate_installment_id(fee.fee_id, n),
            fee_id=fee.fee_id,
            school_id=payload.school_id,
            student_id=payload.student_id,
            amount=inst_amount,
            paid_amount=ZERO,
            balance=inst_amount,
            due_date=item.due_date,
            status=item.status,
        ))

    apply_totals(fee, reconcile(fee, installments))
    await ledger.save_fee(fee)
    for inst in installments:
        await ledger.save_installment(inst)
    await db.commit()
    return fee


@router.get("/get-by/{fee_id}", response_model=FeesResponse)
async def get_fee_by_id(fee_id: str, db: AsyncSession = Depends(get_db)):
    return await _get_fee_or_404(Ledger(db), fee_id)


@router.get("/get-by/{fee_id}/installments", response_model=List[InstallmentResponse])
async def get_fee_installments(fee_id: str, db: AsyncSession = Depends(get_db)):
    ledger = Ledger(db)
    await _get_fee_or_404(ledger, fee_id)
    return await ledger.get_installments_by_fee(fee_id)


@router.post("/{fee_id}/reconcile", response_model=FeesResponse)
async def reconcile_fee(fee_id: str, db: AsyncSession = Depends(get_db)):
    ledger = Ledger(db)
    fee = await _get_fee_or_404(ledger, fee_id, for_update=True)
    installments = await ledger.get_installments_by_fee(fee_id, for_update=True)
    apply_totals(fee, reconcile(fee, installments))
    await ledger.save_fee(fee)
    await db.commit()
    return fee
