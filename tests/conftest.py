import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from datetime import date
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool

from db import Base, get_db
from main import app
from models.fees.fees_models import Fee, Installment
from models.settings.settings_models import SchoolSettings, FORMAT_SEQUENTIAL

SCHOOL_ID = "school-1"


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def make_settings(db):
    async def _make(school_id=SCHOOL_ID, **fields):
        values = {
            "receipt_number_format": FORMAT_SEQUENTIAL,
            "receipt_number_prefix": "",
            "receipt_number_counter": 1,
            "receipt_number_year": 2025,
            "installment_receipt_number_format": FORMAT_SEQUENTIAL,
            "installment_receipt_number_prefix": "",
            "installment_receipt_number_counter": 1,
            "installment_receipt_number_year": 2025,
        }
        values.update(fields)
        settings = SchoolSettings(school_id=school_id, **values)
        db.add(settings)
        await db.commit()
        return settings

    return _make


@pytest.fixture
def make_fee(db):
    """Seed a fee and its installments; ``schedule`` is a list of (amount, due_date[, fields])."""
    async def _make(schedule, fee_id="FEE-1", school_id=SCHOOL_ID, amount=None, discount=Decimal("0")):
        total = amount if amount is not None else sum(Decimal(str(row[0])) for row in schedule)
        fee = Fee(
            fee_id=fee_id,
            school_id=school_id,
            student_id="student-1",
            fee_type="tuition",
            amount=Decimal(str(total)),
            discount=Decimal(str(discount)),
            paid=Decimal("0"),
            balance=Decimal(str(total)) - Decimal(str(discount)),
            status="unpaid",
        )
        db.add(fee)
        installments = []
        for n, row in enumerate(schedule, start=1):
            inst_amount, due = Decimal(str(row[0])), row[1]
            fields = row[2] if len(row) > 2 else {}
            values = {
                "installment_id": f"{fee_id}-{n:02d}",
                "fee_id": fee_id,
                "school_id": school_id,
                "student_id": "student-1",
                "amount": inst_amount,
                "paid_amount": Decimal("0"),
                "balance": inst_amount,
                "due_date": due,
                "status": "unpaid",
            }
            values.update(fields)
            inst = Installment(**values)
            db.add(inst)
            installments.append(inst)
        await db.commit()
        return fee, installments

    return _make


@pytest.fixture
def jan():
    return date(2025, 1, 15)


@pytest.fixture
def feb():
    return date(2025, 2, 15)


@pytest.fixture
def mar():
    return date(2025, 3, 15)
