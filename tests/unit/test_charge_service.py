"""Unit tests for expected-charge resolution, overrides and seeding."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from condo_ledger.models.concepts import ConceptType
from condo_ledger.models.house_period_charge import ChargeSource, HousePeriodCharge
from condo_ledger.models.house_period_override import HousePeriodOverride
from condo_ledger.models.period import Period
from condo_ledger.services.charge_service import ChargeSchedule, SeedHousePeriodCharges
from condo_ledger.services.db import transactional_session

pytestmark = pytest.mark.unit


def march_period(**flags) -> Period:
    return Period(
        year=2025,
        month=3,
        start_date=date(2025, 3, 1),
        end_date=date(2025, 3, 31),
        water_active=flags.get("water_active", True),
        extraordinary_fee_active=flags.get("extraordinary_fee_active", False),
    )


async def expected(session_factory, house, period, config, **kwargs):
    async with session_factory() as session:
        concepts = await ChargeSchedule(session).expected_concepts(house.id, period, config, **kwargs)
    return [(c.concept_type, c.expected_amount) for c in concepts]


async def test_charge_rows_are_authoritative(session_factory, add, houses, make_config):
    config = await make_config(maintenance="800", water="100")
    period = await add(march_period())
    house = houses[0]
    await add(
        HousePeriodCharge(
            house_id=house.id,
            period_id=period.id,
            concept_type=ConceptType.WATER,
            expected_amount=Decimal("60"),
            source=ChargeSource.MANUAL,
        ),
        HousePeriodCharge(
            house_id=house.id,
            period_id=period.id,
            concept_type=ConceptType.MAINTENANCE,
            expected_amount=Decimal("900"),
            source=ChargeSource.MANUAL,
        ),
    )

    assert await expected(session_factory, house, period, config) == [
        (ConceptType.MAINTENANCE, Decimal("900.00")),
        (ConceptType.WATER, Decimal("60.00")),
    ]


async def test_fallback_follows_period_flags(session_factory, add, houses, make_config):
    config = await make_config(maintenance="800", water="100", extraordinary="250")
    house = houses[0]

    only_water = await add(march_period())
    assert await expected(session_factory, house, only_water, config) == [
        (ConceptType.MAINTENANCE, Decimal("800.00")),
        (ConceptType.WATER, Decimal("100.00")),
    ]

    april = march_period(water_active=False, extraordinary_fee_active=True)
    april.month, april.start_date, april.end_date = 4, date(2025, 4, 1), date(2025, 4, 30)
    await add(april)
    assert await expected(session_factory, house, april, config) == [
        (ConceptType.MAINTENANCE, Decimal("800.00")),
        (ConceptType.EXTRAORDINARY_FEE, Decimal("250.00")),
    ]


async def test_fallback_applies_overrides(session_factory, add, houses, make_config):
    config = await make_config(maintenance="800")
    period = await add(march_period())
    house, other = houses
    await add(
        HousePeriodOverride(
            house_id=house.id,
            period_id=period.id,
            concept_type=ConceptType.MAINTENANCE,
            custom_amount=Decimal("400"),
            reason="Casa en obra",
        )
    )

    assert await expected(session_factory, house, period, config) == [(ConceptType.MAINTENANCE, Decimal("400.00"))]
    assert await expected(session_factory, other, period, config) == [(ConceptType.MAINTENANCE, Decimal("800.00"))]


async def test_missing_config_owes_nothing_unless_default_given(session_factory, add, houses):
    period = await add(march_period())
    house = houses[0]

    assert await expected(session_factory, house, period, None) == []
    assert await expected(
        session_factory, house, period, None, missing_config_maintenance=Decimal("800")
    ) == [(ConceptType.MAINTENANCE, Decimal("800.00"))]


async def test_seed_uses_overrides_and_skips_zero_amounts(session_factory, add, houses, make_config, fetch):
    config = await make_config(maintenance="800", water="100")
    period = await add(march_period())
    house, other = houses
    await add(
        HousePeriodOverride(
            house_id=house.id,
            period_id=period.id,
            concept_type=ConceptType.WATER,
            custom_amount=Decimal("0"),
        ),
        HousePeriodOverride(
            house_id=other.id,
            period_id=period.id,
            concept_type=ConceptType.MAINTENANCE,
            custom_amount=Decimal("650"),
        ),
    )

    async with transactional_session(session_factory) as session:
        seeder = SeedHousePeriodCharges(session)
        created = await seeder.seed_charges_for_period(period, config)
        assert await seeder.has_charges(period.id)

    assert created == 3
    rows = await fetch(select(HousePeriodCharge).order_by(HousePeriodCharge.id))
    by_key = {(r.house_id, r.concept_type): r for r in rows}
    assert (house.id, ConceptType.WATER.value) not in by_key
    assert by_key[(other.id, ConceptType.MAINTENANCE.value)].expected_amount == Decimal("650.00")
    assert by_key[(other.id, ConceptType.MAINTENANCE.value)].source == ChargeSource.OVERRIDE.value
    assert by_key[(house.id, ConceptType.MAINTENANCE.value)].source == ChargeSource.PERIOD_CONFIG.value
