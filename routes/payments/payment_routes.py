from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import date
from decimal import Decimal

from db import get_db
from models.fees.fees_models import PAYMENT_METHODS
from models.settings.settings_models import RECEIPT_TYPES, RECEIPT_TYPE_INSTALLMENT
from routes.fees.fees_routes import FeesResponse, InstallmentResponse
from services.payment_allocator import PaymentAllocator, PaymentMeta
from services.payment_errors import InvalidAmount, NotFound

router = APIRouter(prefix="/api/installments", tags=["Payments"])


class PaymentCreate(BaseModel):
    amount: Decimal
    payment_method: Optional[str] = "cash"
    payment_note: Optional[str] = None
    check_number: Optional[str] = None
    paid_date: Optional[date] = None
    receipt_type: Optional[str] = RECEIPT_TYPE_INSTALLMENT


class PaymentResponse(BaseModel):
    installments: List[InstallmentResponse]
    fee: FeesResponse
    receipt_numbers: List[str]
    unapplied_amount: float


@router.post("/{installment_id}/pay", response_model=PaymentResponse)
async def pay_installment(installment_id: str, payload: PaymentCreate, db: AsyncSession = Depends(get_db)):
    receipt_type = payload.receipt_type or RECEIPT_TYPE_INSTALLMENT
    if receipt_type not in RECEIPT_TYPES:
        raise HTTPException(status_code=400, detail=f"Unknown receipt type: {receipt_type}")
    if payload.payment_method is not None and payload.payment_method not in PAYMENT_METHODS:
        raise HTTPException(status_code=400, detail=f"Unknown payment method: {payload.payment_method}")

    meta = PaymentMeta(
        payment_method=payload.payment_method,
        payment_note=payload.payment_note,
        check_number=payload.check_number,
        paid_date=payload.paid_date,
    )
    try:
        result = await PaymentAllocator(db).apply(installment_id, payload.amount, meta, receipt_type=receipt_type)
    except InvalidAmount as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except NotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))

    return PaymentResponse(
        installments=[InstallmentResponse.model_validate(inst) for inst in result.installments],
        fee=FeesResponse.model_validate(result.fee),
        receipt_numbers=result.receipt_numbers,
        unapplied_amount=result.unapplied_amount,
    )
