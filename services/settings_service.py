from datetime import datetime
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from models.settings.settings_models import (
    SchoolSettings,
    RECEIPT_FORMATS,
    RECEIPT_TYPES,
    FORMAT_AUTO,
)
from services.ledger import Ledger
from services.payment_errors import ConfigMissing, SettingsError
from services.receipt_number_generator import ReceiptCounterConfig

logger = logging.getLogger(__name__)

FORMAT_FIELDS = ("receipt_number_format", "installment_receipt_number_format")
COUNTER_FIELDS = ("receipt_number_counter", "installment_receipt_number_counter")
PREFIX_FIELDS = ("receipt_number_prefix", "installment_receipt_number_prefix")


def default_settings(school_id: str) -> SchoolSettings:
    year = datetime.now().year
    return SchoolSettings(
        school_id=school_id,
        receipt_number_format=FORMAT_AUTO,
        receipt_number_prefix="",
        receipt_number_counter=1,
        receipt_number_year=year,
        installment_receipt_number_format=FORMAT_AUTO,
        installment_receipt_number_prefix="",
        installment_receipt_number_counter=1,
        installment_receipt_number_year=year,
    )


async def get_or_create_settings(db: AsyncSession, school_id: str) -> SchoolSettings:
    ledger = Ledger(db)
    settings = await ledger.get_settings(school_id)
    if settings is None:
        settings = default_settings(school_id)
        db.add(settings)
        await db.commit()
        logger.info("Created default settings for school %s", school_id)
    return settings


async def update_settings(db: AsyncSession, school_id: str, patch: dict) -> SchoolSettings:
    """Apply a partial settings update. Counters can only move forward."""
    ledger = Ledger(db)
    settings = await ledger.get_settings(school_id)
    if settings is None:
        settings = default_settings(school_id)
        db.add(settings)

    patch = dict(patch)
    for name in PREFIX_FIELDS:
        if name in patch and patch[name] is None:
            patch[name] = ""
    for name in FORMAT_FIELDS:
        if name in patch and patch[name] not in RECEIPT_FORMATS:
            raise SettingsError(f"Unknown receipt number format: {patch[name]}")
    for name in COUNTER_FIELDS:
        if name in patch:
            value = patch[name]
            if value is None or value < 1:
                raise SettingsError(f"{name} must be a positive integer")
            current = getattr(settings, name) or 1
            if value < current:
                raise SettingsError(f"{name} cannot move backwards ({current} -> {value})")

    await db.flush()
    settings = await ledger.update_settings(school_id, patch)
    await db.commit()
    return settings


async def get_counter_config(db: AsyncSession, school_id: str, receipt_type: str) -> ReceiptCounterConfig:
    if receipt_type not in RECEIPT_TYPES:
        raise SettingsError(f"Unknown receipt type: {receipt_type}")
    settings = await Ledger(db).get_settings(school_id)
    if settings is None:
        raise ConfigMissing(f"No settings for school {school_id}")
    return ReceiptCounterConfig.from_settings(settings, receipt_type)
