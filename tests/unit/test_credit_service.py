"""Unit tests for the credit sweep."""

from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select

from condo_ledger.models.concepts import ConceptType, PaymentStatus
from condo_ledger.models.house_balance import HouseBalance
from condo_ledger.models.record_allocation import AllocationOrigin, RecordAllocation
from condo_ledger.services.credit_service import CreditApplicator
from condo_ledger.services.money import ZERO

pytestmark = pytest.mark.unit


@pytest.fixture
def give_credit(add):
    async def _give(house, amount):
        return await add(
            HouseBalance(
                house_id=house.id,
                accumulated_cents=ZERO,
                credit_balance=Decimal(amount),
                debit_balance=ZERO,
            )
        )

    return _give


async def test_credit_covers_pending_maintenance(ledger, houses, make_config, give_credit, fetch, balance_of):
    await make_config(maintenance="800")
    period = await ledger.period_registry.ensure_period_exists(2025, 3)
    house = houses[0]
    await give_credit(house, "5000")

    result = await ledger.credit_applicator.apply(house.id)

    assert result.credit_before == Decimal("5000.00")
    assert result.total_applied == Decimal("800.00")
    assert result.credit_after == Decimal("4200.00")
    assert result.periods_covered == 1
    assert result.periods_partially_covered == 0
    [detail] = result.allocations_created
    assert (detail.period_id, detail.amount_applied, detail.payment_status) == (
        period.id,
        Decimal("800.00"),
        PaymentStatus.COMPLETE,
    )

    [row] = await fetch(select(RecordAllocation))
    assert row.origin == AllocationOrigin.CREDIT_SWEEP.value
    assert row.record_id is None
    assert row.concept_id is None
    assert row.concept_type == ConceptType.MAINTENANCE.value
    assert (await balance_of(house)).credit_balance == Decimal("4200.00")


async def test_credit_sweeps_oldest_period_first(ledger, houses, make_config, give_credit):
    await make_config(maintenance="800")
    january = await ledger.period_registry.ensure_period_exists(2025, 1)
    february = await ledger.period_registry.ensure_period_exists(2025, 2)
    house = houses[0]
    await give_credit(house, "1000")

    result = await ledger.credit_applicator.apply(house.id)

    assert [(d.period_id, d.amount_applied, d.payment_status) for d in result.allocations_created] == [
        (january.id, Decimal("800.00"), PaymentStatus.COMPLETE),
        (february.id, Decimal("200.00"), PaymentStatus.PARTIAL),
    ]
    assert result.periods_covered == 1
    assert result.periods_partially_covered == 1
    assert result.credit_after == ZERO


async def test_periods_without_config_are_skipped(ledger, houses, make_config, give_credit):
    await ledger.period_registry.ensure_period_exists(2024, 12)
    await make_config(maintenance="800", effective_from=date(2025, 1, 1))
    january = await ledger.period_registry.ensure_period_exists(2025, 1)
    house = houses[0]
    await give_credit(house, "800")

    result = await ledger.credit_applicator.apply(house.id)

    assert [d.period_id for d in result.allocations_created] == [january.id]


async def test_no_credit_is_a_no_op(ledger, houses, make_config, fetch):
    await make_config()
    await ledger.period_registry.ensure_period_exists(2025, 3)

    result = await ledger.credit_applicator.apply(houses[0].id)

    assert result.total_applied == ZERO
    assert result.credit_before == result.credit_after == ZERO
    assert result.allocations_created == []
    assert await fetch(select(RecordAllocation)) == []


async def test_snapshot_invalidated_only_when_allocations_created(
    session_factory, houses, make_config, give_credit, ledger
):
    await make_config(maintenance="800")
    await ledger.period_registry.ensure_period_exists(2025, 3)
    invalidator = AsyncMock()
    applicator = CreditApplicator(session_factory, invalidator)
    house, other = houses
    await give_credit(house, "100")
    await give_credit(other, "0")

    await applicator.apply(other.id)
    invalidator.invalidate_by_house_id.assert_not_awaited()

    await applicator.apply(house.id)
    invalidator.invalidate_by_house_id.assert_awaited_once_with(house.id)
