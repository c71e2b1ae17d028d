"""Integration tests for batch charge updates and period concept toggles."""

from decimal import Decimal

import pytest
from sqlalchemy import select

from condo_ledger.errors import ErrorKind, LedgerError
from condo_ledger.models.concepts import ConceptType
from condo_ledger.models.house_period_charge import ChargeSource, HousePeriodCharge
from condo_ledger.models.house_status_snapshot import HouseStatusSnapshot
from condo_ledger.models.period import Period
from condo_ledger.services.payment_allocator import AllocationRequest
from condo_ledger.services.period_admin_service import BatchUpdateRequest, month_range

pytestmark = pytest.mark.integration


def first_quarter(**amounts) -> BatchUpdateRequest:
    return BatchUpdateRequest(
        start_year=2025,
        start_month=1,
        end_year=2025,
        end_month=3,
        maintenance_amount=amounts.get("maintenance", Decimal("900")),
        water_amount=amounts.get("water"),
        extraordinary_fee_amount=amounts.get("extraordinary"),
    )


async def charges_by_concept(fetch):
    rows = await fetch(select(HousePeriodCharge))
    grouped = {}
    for row in rows:
        grouped.setdefault(row.concept_type, []).append(row)
    return grouped


def test_month_range_crosses_years():
    assert month_range(2024, 11, 2025, 2) == [(2024, 11), (2024, 12), (2025, 1), (2025, 2)]
    assert month_range(2025, 3, 2025, 3) == [(2025, 3)]
    assert month_range(2025, 3, 2025, 2) == []


async def test_batch_update_creates_periods_and_sets_charges(ledger, houses, make_config, fetch):
    await make_config(maintenance="800", water="100")

    result = await ledger.batch_update_charges.execute(
        first_quarter(water=Decimal("0"), extraordinary=Decimal("250"))
    )

    assert result.periods_affected == 3
    assert result.periods_created == 3
    assert result.charges_updated == 12
    assert result.has_retroactive_changes is False

    grouped = await charges_by_concept(fetch)
    assert ConceptType.WATER.value not in grouped
    maintenance = grouped[ConceptType.MAINTENANCE.value]
    assert len(maintenance) == 6
    assert {c.expected_amount for c in maintenance} == {Decimal("900.00")}
    assert {c.source for c in maintenance} == {ChargeSource.MANUAL.value}
    assert {c.expected_amount for c in grouped[ConceptType.EXTRAORDINARY_FEE.value]} == {Decimal("250.00")}

    periods = await fetch(select(Period))
    assert all(not p.water_active and p.extraordinary_fee_active for p in periods)


async def test_omitted_amount_leaves_existing_charges(ledger, houses, make_config, fetch):
    await make_config(maintenance="800", water="100")
    await ledger.period_registry.ensure_period_exists(2025, 2)

    result = await ledger.batch_update_charges.execute(first_quarter())

    assert result.periods_created == 2
    assert result.charges_updated == 6
    water = (await charges_by_concept(fetch))[ConceptType.WATER.value]
    # Only February existed with water charges; new periods seed water too
    assert {c.expected_amount for c in water} == {Decimal("100.00")}


async def test_existing_allocations_flag_retroactive_change(ledger, houses, make_config, make_payment):
    await make_config(maintenance="800")
    await ledger.batch_update_charges.execute(first_quarter())
    february = await ledger.period_registry.ensure_period_exists(2025, 2)
    payment = await make_payment(houses[0], "900")
    await ledger.allocator.allocate(AllocationRequest(payment.id, houses[0].id, payment.amount, february.id))

    result = await ledger.batch_update_charges.execute(first_quarter(maintenance=Decimal("950")))

    assert result.periods_created == 0
    assert result.has_retroactive_changes is True


@pytest.mark.parametrize(
    "request_kwargs",
    [
        {"start_month": 13},
        {"start_month": 4},
        {"maintenance_amount": Decimal("-1")},
        {"water_amount": Decimal("-5")},
    ],
)
async def test_invalid_batch_request_is_rejected_before_io(ledger, houses, fetch, request_kwargs):
    fields = {
        "start_year": 2025,
        "start_month": 1,
        "end_year": 2025,
        "end_month": 3,
        "maintenance_amount": Decimal("900"),
    }
    fields.update(request_kwargs)

    with pytest.raises(LedgerError) as exc_info:
        await ledger.batch_update_charges.execute(BatchUpdateRequest(**fields))

    assert exc_info.value.kind == ErrorKind.VALIDATION
    assert await fetch(select(Period)) == []


async def test_batch_update_invalidates_snapshots(ledger, houses, make_config, fetch):
    await make_config()
    await ledger.snapshot_cache.get_or_calculate(houses[0].id, houses[0])

    await ledger.batch_update_charges.execute(first_quarter())

    [snapshot] = await fetch(select(HouseStatusSnapshot))
    assert snapshot.is_stale is True


async def test_update_period_concepts(ledger, houses, make_config, fetch):
    await make_config()
    period = await ledger.period_registry.ensure_period_exists(2025, 3)

    updated = await ledger.update_period_concepts.execute(period.id, extraordinary_fee_active=True)

    assert updated.extraordinary_fee_active is True
    assert updated.water_active is True
    [stored] = await fetch(select(Period))
    assert stored.extraordinary_fee_active is True


async def test_update_period_concepts_errors(ledger):
    with pytest.raises(LedgerError) as exc_info:
        await ledger.update_period_concepts.execute(1)
    assert exc_info.value.kind == ErrorKind.VALIDATION

    with pytest.raises(LedgerError) as exc_info:
        await ledger.update_period_concepts.execute(999, water_active=False)
    assert exc_info.value.kind == ErrorKind.NOT_FOUND
