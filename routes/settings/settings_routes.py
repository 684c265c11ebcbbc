from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from db import get_db
from models.settings.settings_models import RECEIPT_TYPES
from services.ledger import Ledger
from services.payment_errors import ConfigMissing, ReservationFailure, SettingsError
from services.receipt_number_generator import ReceiptNumberAllocator, validate_receipt_number
from services.settings_service import get_or_create_settings, update_settings, get_counter_config

router = APIRouter(prefix="/api/settings", tags=["Settings"])


class SettingsUpdate(BaseModel):
    name: Optional[str] = None
    receipt_number_format: Optional[str] = None
    receipt_number_prefix: Optional[str] = None
    receipt_number_counter: Optional[int] = None
    receipt_number_year: Optional[int] = None
    installment_receipt_number_format: Optional[str] = None
    installment_receipt_number_prefix: Optional[str] = None
    installment_receipt_number_counter: Optional[int] = None
    installment_receipt_number_year: Optional[int] = None


class SettingsOut(SettingsUpdate):
    school_id: str

    class Config:
        from_attributes = True


class ReceiptNumbersOut(BaseModel):
    receipt_type: str
    receipt_numbers: List[str]


class ReceiptValidation(BaseModel):
    receipt_number: str


def _check_receipt_type(receipt_type: str):
    if receipt_type not in RECEIPT_TYPES:
        raise HTTPException(status_code=400, detail=f"Unknown receipt type: {receipt_type}")


@router.get("/{school_id}", response_model=SettingsOut)
async def get_settings(school_id: str, db: AsyncSession = Depends(get_db)):
    return await get_or_create_settings(db, school_id)


@router.put("/{school_id}", response_model=SettingsOut)
async def put_settings(school_id: str, payload: SettingsUpdate, db: AsyncSession = Depends(get_db)):
    try:
        return await update_settings(db, school_id, payload.model_dump(exclude_unset=True))
    except SettingsError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.get("/{school_id}/receipt-numbers/{receipt_type}/next", response_model=ReceiptNumbersOut)
async def preview_next_receipt_number(school_id: str, receipt_type: str, db: AsyncSession = Depends(get_db)):
    _check_receipt_type(receipt_type)
    number = await ReceiptNumberAllocator(Ledger(db)).preview_next(school_id, receipt_type)
    return ReceiptNumbersOut(receipt_type=receipt_type, receipt_numbers=[number])


@router.post("/{school_id}/receipt-numbers/{receipt_type}/reserve", response_model=ReceiptNumbersOut)
async def reserve_receipt_numbers(
    school_id: str,
    receipt_type: str,
    count: int = Query(1, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    _check_receipt_type(receipt_type)
    try:
        numbers = await ReceiptNumberAllocator(Ledger(db)).reserve(school_id, receipt_type, count)
        await db.commit()
    except ReservationFailure as exc:
        await db.rollback()
        raise HTTPException(status_code=503, detail=str(exc))
    return ReceiptNumbersOut(receipt_type=receipt_type, receipt_numbers=numbers)


@router.post("/{school_id}/receipt-numbers/{receipt_type}/validate")
async def check_receipt_number(
    school_id: str,
    receipt_type: str,
    payload: ReceiptValidation,
    db: AsyncSession = Depends(get_db),
):
    try:
        cfg = await get_counter_config(db, school_id, receipt_type)
    except SettingsError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except ConfigMissing as exc:
        raise HTTPException(status_code=404, detail=str(exc))

    ledger = Ledger(db)
    return {
        "receipt_number": payload.receipt_number,
        "valid": validate_receipt_number(payload.receipt_number, cfg),
        "in_use": await ledger.receipt_number_exists(school_id, payload.receipt_number),
    }
