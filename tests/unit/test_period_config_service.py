"""Unit tests for period config resolution."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from condo_ledger.services.db import transactional_session
from condo_ledger.services.period_config_service import PeriodConfigRepository

pytestmark = pytest.mark.unit


async def resolve(session_factory, on_date):
    async with session_factory() as session:
        return await PeriodConfigRepository(session).find_active_for_date(on_date)


async def test_latest_effective_config_wins(session_factory, make_config):
    old = await make_config(maintenance="700", effective_from=date(2024, 1, 1))
    new = await make_config(maintenance="800", effective_from=date(2025, 1, 1))

    assert (await resolve(session_factory, date(2024, 6, 1))).id == old.id
    assert (await resolve(session_factory, date(2025, 3, 1))).id == new.id


async def test_inactive_and_expired_configs_are_ignored(session_factory, make_config):
    current = await make_config(effective_from=date(2024, 1, 1))
    await make_config(maintenance="999", effective_from=date(2025, 2, 1), is_active=False)
    await make_config(
        maintenance="500",
        effective_from=date(2024, 6, 1),
        effective_until=date(2024, 12, 31),
    )

    assert (await resolve(session_factory, date(2025, 3, 1))).id == current.id


async def test_effective_until_is_inclusive(session_factory, make_config):
    bounded = await make_config(effective_from=date(2024, 1, 1), effective_until=date(2024, 12, 31))

    assert (await resolve(session_factory, date(2024, 12, 31))).id == bounded.id
    assert await resolve(session_factory, date(2025, 1, 1)) is None


async def test_no_config_before_first_effective_date(session_factory, make_config):
    await make_config(effective_from=date(2025, 1, 1))

    assert await resolve(session_factory, date(2024, 12, 31)) is None


async def test_datetime_is_truncated_to_date(session_factory, make_config):
    config = await make_config(effective_from=date(2025, 3, 20))

    assert (await resolve(session_factory, datetime(2025, 3, 20, 23, 59))).id == config.id


async def test_create_validates_due_day_and_range(session_factory):
    async with transactional_session(session_factory) as session:
        repo = PeriodConfigRepository(session)
        with pytest.raises(ValueError):
            await repo.create(Decimal("800"), date(2025, 1, 1), payment_due_day=0)
        with pytest.raises(ValueError):
            await repo.create(
                Decimal("800"), date(2025, 1, 1), effective_until=date(2024, 12, 31)
            )
        config = await repo.create(Decimal("800"), date(2025, 1, 1), default_water_amount=Decimal("100"))

    assert config.id is not None
    assert config.payment_due_day == 10
    assert (await resolve(session_factory, date(2025, 2, 1))).default_water_amount == Decimal("100")
