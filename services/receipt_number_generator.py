"""Receipt numbers for fee and installment receipts.

Numbers are derived from a per-school, per-type counter and a display format.
Sequence formats (sequential, year, short-year, custom, student-sequential) render
the counter value. ``auto`` renders a prefix plus a millisecond timestamp suffix and
only the duplicate probe in ``ReceiptNumberAllocator.issue`` protects it.
"""
from datetime import datetime
from typing import List, Optional
import logging
import os
import re

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from models.settings.settings_models import (
    SchoolSettings,
    counter_columns,
    RECEIPT_TYPE_FEE,
    RECEIPT_TYPE_INSTALLMENT,
    FORMAT_AUTO,
    FORMAT_SEQUENTIAL,
    FORMAT_YEAR,
    FORMAT_SHORT_YEAR,
    FORMAT_CUSTOM,
    FORMAT_STUDENT_SEQUENTIAL,
)
from services.ledger import Ledger
from services.payment_errors import ReservationFailure

logger = logging.getLogger(__name__)

RESERVE_ATTEMPTS = int(os.getenv("RECEIPT_RESERVE_ATTEMPTS", "3"))

DEFAULT_PREFIXES = {
    RECEIPT_TYPE_FEE: "R-",
    RECEIPT_TYPE_INSTALLMENT: "INST-",
}


class ReceiptCounterConfig(BaseModel):
    receipt_type: str = RECEIPT_TYPE_FEE
    number_format: str = FORMAT_AUTO
    prefix: str = ""
    counter: int = 1
    year: Optional[int] = None

    @classmethod
    def from_settings(cls, settings: SchoolSettings, receipt_type: str) -> "ReceiptCounterConfig":
        format_attr, prefix_attr, counter_attr, year_attr = counter_columns(receipt_type)
        return cls(
            receipt_type=receipt_type,
            number_format=getattr(settings, format_attr) or FORMAT_AUTO,
            prefix=getattr(settings, prefix_attr) or "",
            counter=getattr(settings, counter_attr) or 1,
            year=getattr(settings, year_attr),
        )


def _timestamp_suffix(now: datetime, digits: int, offset_ms: int = 0) -> str:
    ms = int(now.timestamp() * 1000) + offset_ms
    return str(ms)[-digits:]


def generate_receipt_number(counter: int, cfg: ReceiptCounterConfig, now: datetime = None, offset_ms: int = 0) -> str:
    """
    Render ``counter`` in the configured format.

    sequential / student-sequential -> "5"
    year       -> "5/2025"
    short-year -> "5/25"
    custom     -> "INV-5"
    auto       -> prefix (default "R-" for fee receipts) + last 8 digits of the ms timestamp
    """
    now = now or datetime.now()
    fmt = cfg.number_format
    year = cfg.year or now.year

    if fmt in (FORMAT_SEQUENTIAL, FORMAT_STUDENT_SEQUENTIAL):
        return str(counter)
    if fmt == FORMAT_YEAR:
        return f"{counter}/{year}"
    if fmt == FORMAT_SHORT_YEAR:
        return f"{counter}/{str(year)[-2:]}"
    if fmt == FORMAT_CUSTOM:
        return f"{cfg.prefix}{counter}"

    # auto and anything unknown
    if cfg.receipt_type == RECEIPT_TYPE_INSTALLMENT:
        prefix = cfg.prefix
    else:
        prefix = cfg.prefix or DEFAULT_PREFIXES[RECEIPT_TYPE_FEE]
    return f"{prefix}{_timestamp_suffix(now, 8, offset_ms)}"


def fallback_receipt_number(receipt_type: str, prefix: str = None, now: datetime = None, offset_ms: int = 0) -> str:
    """Timestamp number used when a school has no settings row."""
    now = now or datetime.now()
    prefix = prefix or DEFAULT_PREFIXES.get(receipt_type, DEFAULT_PREFIXES[RECEIPT_TYPE_FEE])
    return f"{prefix}{_timestamp_suffix(now, 6, offset_ms)}"


def validate_receipt_number(receipt_number: str, cfg: ReceiptCounterConfig) -> bool:
    if not receipt_number:
        return False
    fmt = cfg.number_format
    if fmt in (FORMAT_SEQUENTIAL, FORMAT_STUDENT_SEQUENTIAL):
        return re.fullmatch(r"\d+", receipt_number) is not None
    if fmt == FORMAT_YEAR:
        return re.fullmatch(r"\d+/\d{4}", receipt_number) is not None
    if fmt == FORMAT_SHORT_YEAR:
        return re.fullmatch(r"\d+/\d{2}", receipt_number) is not None
    if fmt == FORMAT_CUSTOM:
        return receipt_number.startswith(cfg.prefix) if cfg.prefix else True
    return True


class ReceiptNumberAllocator:
    def __init__(self, ledger: Ledger, attempts: int = RESERVE_ATTEMPTS):
        self.ledger = ledger
        self.attempts = max(1, attempts)

    async def load_config(self, school_id: str, receipt_type: str) -> Optional[ReceiptCounterConfig]:
        settings = await self.ledger.get_settings(school_id)
        if settings is None:
            return None
        return ReceiptCounterConfig.from_settings(settings, receipt_type)

    async def reserve(self, school_id: str, receipt_type: str, count: int = 1) -> List[str]:
        """Advance the stored counter by ``count`` and return the numbers it covered.

        Raises ReservationFailure when the counter update fails. A school without
        settings gets timestamp numbers and no counter is touched.
        """
        if count < 1:
            raise ValueError("count must be at least 1")

        try:
            async with self.ledger.db.begin_nested():
                row = await self.ledger.increment_receipt_counter(school_id, receipt_type, count)
        except SQLAlchemyError as exc:
            raise ReservationFailure(f"Could not reserve {count} {receipt_type} receipt number(s) for {school_id}") from exc

        if row is None:
            logger.warning("No settings for school %s; using timestamp receipt numbers", school_id)
            now = datetime.now()
            return [fallback_receipt_number(receipt_type, now=now, offset_ms=i) for i in range(count)]

        number_format, prefix, counter_after, year = row
        cfg = ReceiptCounterConfig(
            receipt_type=receipt_type,
            number_format=number_format or FORMAT_AUTO,
            prefix=prefix or "",
            counter=counter_after,
            year=year,
        )
        start = counter_after - count
        now = datetime.now()
        numbers = [generate_receipt_number(start + i, cfg, now=now, offset_ms=i) for i in range(count)]
        logger.info("Reserved %d %s receipt number(s) for %s: %s", count, receipt_type, school_id, numbers)
        return numbers

    async def preview_next(self, school_id: str, receipt_type: str) -> str:
        """Next number for display only; the counter is not advanced."""
        cfg = await self.load_config(school_id, receipt_type)
        if cfg is None:
            return fallback_receipt_number(receipt_type)
        return generate_receipt_number(cfg.counter, cfg)

    async def issue(self, school_id: str, receipt_type: str) -> str:
        """Reserve one number for a receipt; numbering problems never block the payment."""
        number = None
        for attempt in range(self.attempts):
            try:
                number = (await self.reserve(school_id, receipt_type, 1))[0]
            except ReservationFailure as exc:
                logger.warning("%s; falling back to direct generation", exc)
                cfg = await self.load_config(school_id, receipt_type)
                if cfg is None:
                    number = fallback_receipt_number(receipt_type)
                else:
                    number = generate_receipt_number(cfg.counter, cfg)

            if not await self.ledger.receipt_number_exists(school_id, number):
                return number
            logger.warning("Receipt number %s already used in school %s (attempt %d)", number, school_id, attempt + 1)

        return number
