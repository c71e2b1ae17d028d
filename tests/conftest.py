"""Shared fixtures: file-backed SQLite ledger database, frozen clock and seed rows.

A file database (not ``:memory:``) is used because ledger components open
their own sessions and must see each other's commits.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy import select

from condo_ledger.config import Settings
from condo_ledger.models.house import House
from condo_ledger.models.house_balance import HouseBalance
from condo_ledger.models.payment_record import PaymentRecord, ValidationStatus
from condo_ledger.models.period_config import PeriodConfig
from condo_ledger.services.db import (
    create_engine_for_url,
    create_session_factory,
    init_models,
    transactional_session,
)
from condo_ledger.services.engine import LedgerEngine

NOW = datetime(2025, 3, 20, 10, 0, 0)


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at a per-test database, ignoring any .env file."""
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}",
        log_file=str(tmp_path / "logs" / "ledger.log"),
        locale="es_MX",
        snapshot_ttl_hours=24,
        default_penalty_amount=Decimal("100"),
        default_due_day=15,
        default_maintenance_amount=Decimal("800"),
    )


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
async def db_engine(settings):
    engine = create_engine_for_url(settings.database_url)
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture
def ledger(session_factory, settings, clock):
    return LedgerEngine.build(session_factory, settings, clock)


@pytest.fixture
def add(session_factory):
    """Persist rows in one committed transaction; returns the row or list of rows."""

    async def _add(*rows):
        async with transactional_session(session_factory) as session:
            session.add_all(rows)
        return rows[0] if len(rows) == 1 else list(rows)

    return _add


@pytest.fixture
def fetch(session_factory):
    """Run a select and return its scalars as a list."""

    async def _fetch(stmt):
        async with session_factory() as session:
            return list((await session.execute(stmt)).scalars().all())

    return _fetch


@pytest.fixture
async def houses(add):
    """Houses number 1 and 2."""
    return await add(House(number_house=1), House(number_house=2))


@pytest.fixture
def make_config(add):
    async def _make(
        maintenance="800",
        water=None,
        extraordinary=None,
        due_day=10,
        penalty="100",
        effective_from=date(2024, 1, 1),
        effective_until=None,
        is_active=True,
    ):
        return await add(
            PeriodConfig(
                default_maintenance_amount=Decimal(maintenance),
                default_water_amount=Decimal(water) if water is not None else None,
                default_extraordinary_fee_amount=Decimal(extraordinary) if extraordinary is not None else None,
                payment_due_day=due_day,
                late_payment_penalty_amount=Decimal(penalty),
                effective_from=effective_from,
                effective_until=effective_until,
                is_active=is_active,
            )
        )

    return _make


@pytest.fixture
def make_payment(add):
    async def _make(
        house,
        amount,
        transaction_date=date(2025, 3, 5),
        status=ValidationStatus.CONFIRMED,
        is_deposit=True,
    ):
        return await add(
            PaymentRecord(
                house_id=house.id,
                amount=Decimal(amount),
                transaction_date=transaction_date,
                validation_status=status,
                is_deposit=is_deposit,
            )
        )

    return _make


@pytest.fixture
def balance_of(session_factory):
    """Current HouseBalance row of a house (None if never touched)."""

    async def _balance(house):
        async with session_factory() as session:
            stmt = select(HouseBalance).where(HouseBalance.house_id == house.id)
            return (await session.execute(stmt)).scalar_one_or_none()

    return _balance
