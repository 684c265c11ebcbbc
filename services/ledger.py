"""Data access for fees, installments and school settings.

One Ledger wraps one AsyncSession. Every read and write is a suspension point;
nothing here commits, the caller owns the transaction.
"""
import logging
from typing import List, Optional

from sqlalchemy import select, update, exists
from sqlalchemy.ext.asyncio import AsyncSession

from models.fees.fees_models import Fee, Installment
from models.settings.settings_models import SchoolSettings, counter_columns

logger = logging.getLogger(__name__)


class Ledger:
    def __init__(self, db: AsyncSession):
        self.db = db

    # --- Installments ---

    async def get_installment(self, installment_id: str, for_update: bool = False) -> Optional[Installment]:
        stmt = select(Installment).where(Installment.installment_id == installment_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_installments_by_fee(self, fee_id: str, for_update: bool = False) -> List[Installment]:
        stmt = (
            select(Installment)
            .where(Installment.fee_id == fee_id)
            .order_by(Installment.due_date, Installment.installment_id)
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def save_installment(self, installment: Installment) -> Installment:
        self.db.add(installment)
        await self.db.flush()
        return installment

    async def receipt_number_exists(self, school_id: str, receipt_number: str) -> bool:
        stmt = select(
            exists().where(
                Installment.school_id == school_id,
                Installment.receipt_number == receipt_number,
            )
        )
        result = await self.db.execute(stmt)
        return bool(result.scalar())

    # --- Fees ---

    async def get_fee(self, fee_id: str, for_update: bool = False) -> Optional[Fee]:
        stmt = select(Fee).where(Fee.fee_id == fee_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def save_fee(self, fee: Fee) -> Fee:
        self.db.add(fee)
        await self.db.flush()
        return fee

    # --- Settings ---

    async def get_settings(self, school_id: str) -> Optional[SchoolSettings]:
        result = await self.db.execute(select(SchoolSettings).where(SchoolSettings.school_id == school_id))
        return result.scalar_one_or_none()

    async def update_settings(self, school_id: str, patch: dict) -> Optional[SchoolSettings]:
        settings = await self.get_settings(school_id)
        if settings is None:
            return None
        for key, value in patch.items():
            setattr(settings, key, value)
        await self.db.flush()
        return settings

    async def increment_receipt_counter(self, school_id: str, receipt_type: str, count: int):
        """Advance a counter by ``count`` in a single UPDATE ... RETURNING.

        Returns ``(format, prefix, counter_after, year)`` or None when the school has
        no settings row.
        """
        format_col, prefix_col, counter_col, year_col = (
            getattr(SchoolSettings, name) for name in counter_columns(receipt_type)
        )
        stmt = (
            update(SchoolSettings)
            .where(SchoolSettings.school_id == school_id)
            .values({counter_col: counter_col + count})
            .returning(format_col, prefix_col, counter_col, year_col)
        )
        result = await self.db.execute(stmt)
        row = result.first()
        if row is None:
            return None
        return tuple(row)
