"""Unit tests for the house status snapshot cache."""

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select, update

from condo_ledger.models.house import House
from condo_ledger.models.house_status_snapshot import HouseStatusSnapshot
from condo_ledger.services.balance_status_service import EnrichedHouseBalance, HouseStatus
from condo_ledger.services.db import transactional_session
from condo_ledger.services.snapshot_service import SnapshotCache

pytestmark = pytest.mark.unit


class CountingCalculator:
    """Stands in for BalanceStatusCalculator and records each computation."""

    def __init__(self):
        self.calls: list[int] = []

    async def calculate(self, house_id, house):
        self.calls.append(house_id)
        return EnrichedHouseBalance(
            house_id=house_id,
            house_number=house.number_house,
            status=HouseStatus.AL_DIA,
            total_debt=Decimal(len(self.calls)),
        )


class MovableClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def calculator():
    return CountingCalculator()


@pytest.fixture
def movable_clock(clock):
    return MovableClock(clock())


@pytest.fixture
def cache(session_factory, calculator, settings, movable_clock):
    return SnapshotCache(session_factory, calculator, settings, movable_clock)


async def snapshot_rows(fetch):
    return {s.house_id: s for s in await fetch(select(HouseStatusSnapshot))}


async def test_fresh_snapshot_is_served_from_cache(cache, calculator, houses, fetch, clock):
    house = houses[0]

    first = await cache.get_or_calculate(house.id, house)
    second = await cache.get_or_calculate(house.id, house)

    assert calculator.calls == [house.id]
    assert second.model_dump() == first.model_dump()

    row = (await snapshot_rows(fetch))[house.id]
    assert row.status == HouseStatus.AL_DIA.value
    assert row.is_stale is False
    assert row.calculated_at == clock()
    assert row.enriched_data["house_number"] == 1


async def test_invalidated_snapshot_is_recomputed(cache, calculator, houses, fetch):
    house = houses[0]
    await cache.get_or_calculate(house.id, house)

    await cache.invalidate_by_house_id(house.id)
    assert (await snapshot_rows(fetch))[house.id].is_stale is True

    balance = await cache.get_or_calculate(house.id, house)

    assert calculator.calls == [house.id, house.id]
    assert balance.total_debt == Decimal("2")
    assert (await snapshot_rows(fetch))[house.id].is_stale is False


async def test_snapshot_expires_after_ttl(cache, calculator, houses, movable_clock):
    house = houses[0]
    await cache.get_or_calculate(house.id, house)

    movable_clock.advance(hours=23)
    await cache.get_or_calculate(house.id, house)
    assert len(calculator.calls) == 1

    movable_clock.advance(hours=1)
    await cache.get_or_calculate(house.id, house)
    assert len(calculator.calls) == 2


async def test_unreadable_snapshot_is_recomputed(cache, calculator, houses, session_factory):
    house = houses[0]
    await cache.get_or_calculate(house.id, house)
    async with transactional_session(session_factory) as session:
        await session.execute(update(HouseStatusSnapshot).values(enriched_data={"unexpected": True}))

    balance = await cache.get_or_calculate(house.id, house)

    assert balance.house_id == house.id
    assert len(calculator.calls) == 2


async def test_summary_keeps_input_order_and_reuses_fresh_snapshots(cache, calculator, add, houses):
    third = await add(House(number_house=3))
    first, second = houses
    await cache.get_or_calculate(second.id, second)

    balances = await cache.get_all_for_summary([third, first, second, first])

    assert [b.house_id for b in balances] == [third.id, first.id, second.id, first.id]
    assert sorted(calculator.calls) == sorted([second.id, third.id, first.id])
    assert balances[2].total_debt == Decimal("1")


async def test_invalidate_by_house_ids(cache, houses, fetch, clock):
    for house in houses:
        await cache.get_or_calculate(house.id, house)

    await cache.invalidate_by_house_ids([])
    assert not any(row.is_stale for row in (await snapshot_rows(fetch)).values())

    await cache.invalidate_by_house_ids([houses[0].id])
    rows = await snapshot_rows(fetch)
    assert rows[houses[0].id].is_stale is True
    assert rows[houses[0].id].invalidated_at == clock()
    assert rows[houses[1].id].is_stale is False


async def test_invalidate_all(cache, houses, fetch):
    for house in houses:
        await cache.get_or_calculate(house.id, house)

    await cache.invalidate_all()

    assert all(row.is_stale for row in (await snapshot_rows(fetch)).values())
