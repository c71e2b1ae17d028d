"""Expected charges per house and period.

Resolution order for what a house owes in a period:
1. ``house_period_charges`` rows (authoritative when any exist for the period)
2. Period config defaults, per-house overrides applied, gated by the
   period's ``water_active`` / ``extraordinary_fee_active`` flags
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from condo_ledger.models.concepts import ConceptType, concept_rank
from condo_ledger.models.house import House
from condo_ledger.models.house_period_charge import ChargeSource, HousePeriodCharge
from condo_ledger.models.house_period_override import HousePeriodOverride
from condo_ledger.models.period import Period
from condo_ledger.models.period_config import PeriodConfig
from condo_ledger.services.money import ZERO, to_money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExpectedConcept:
    """One concept a house owes in a period."""

    concept_type: ConceptType
    expected_amount: Decimal
    charge_id: int | None = None


class HousePeriodChargeRepository:
    """CRUD for ``house_period_charges``."""

    def __init__(self, session: AsyncSession):
        """Initialize with async database session."""
        self.session = session

    async def find_by_id(self, charge_id: int) -> HousePeriodCharge | None:
        return await self.session.get(HousePeriodCharge, charge_id)

    async def find_by_house_and_period(self, house_id: int, period_id: int) -> list[HousePeriodCharge]:
        """Charges of one house in one period."""
        stmt = select(HousePeriodCharge).where(
            HousePeriodCharge.house_id == house_id,
            HousePeriodCharge.period_id == period_id,
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_by_period(self, period_id: int) -> list[HousePeriodCharge]:
        """All charges of a period."""
        result = await self.session.execute(
            select(HousePeriodCharge).where(HousePeriodCharge.period_id == period_id)
        )
        return list(result.scalars().all())

    async def create_batch(self, charges: Iterable[HousePeriodCharge]) -> int:
        """Insert charges; returns the number inserted."""
        charges = list(charges)
        self.session.add_all(charges)
        await self.session.flush()
        return len(charges)

    async def upsert_batch_for_periods(
        self,
        period_ids: list[int],
        concept_type: ConceptType,
        expected_amount: Decimal,
        source: ChargeSource,
    ) -> int:
        """Set one concept's expected amount for every house in every given period.

        Args:
            period_ids: Periods to update
            concept_type: Concept to set
            expected_amount: New expected amount
            source: Provenance recorded on each row

        Returns:
            Number of rows inserted or updated
        """
        if not period_ids:
            return 0

        amount = to_money(expected_amount)
        house_ids = (await self.session.execute(select(House.id))).scalars().all()

        existing_stmt = select(HousePeriodCharge).where(
            HousePeriodCharge.period_id.in_(period_ids),
            HousePeriodCharge.concept_type == concept_type,
        )
        existing = {
            (c.house_id, c.period_id): c
            for c in (await self.session.execute(existing_stmt)).scalars().all()
        }

        affected = 0
        for period_id in period_ids:
            for house_id in house_ids:
                charge = existing.get((house_id, period_id))
                if charge is None:
                    self.session.add(
                        HousePeriodCharge(
                            house_id=house_id,
                            period_id=period_id,
                            concept_type=concept_type,
                            expected_amount=amount,
                            source=source,
                        )
                    )
                else:
                    charge.expected_amount = amount
                    charge.source = source
                affected += 1

        await self.session.flush()
        return affected

    async def delete_by_periods_and_concept(self, period_ids: list[int], concept_type: ConceptType) -> int:
        """Remove one concept from the given periods; returns rows deleted."""
        if not period_ids:
            return 0
        result = await self.session.execute(
            delete(HousePeriodCharge).where(
                HousePeriodCharge.period_id.in_(period_ids),
                HousePeriodCharge.concept_type == concept_type,
            )
        )
        return result.rowcount or 0


class OverrideResolver:
    """Per-house custom amounts that replace config defaults."""

    def __init__(self, session: AsyncSession):
        """Initialize with async database session."""
        self.session = session

    async def find_by_period(self, period_id: int) -> list[HousePeriodOverride]:
        """All overrides of a period."""
        result = await self.session.execute(
            select(HousePeriodOverride).where(HousePeriodOverride.period_id == period_id)
        )
        return list(result.scalars().all())

    async def get_applicable_amount(
        self,
        house_id: int,
        period_id: int,
        concept_type: ConceptType,
        default_amount: Decimal,
    ) -> Decimal:
        """Override amount for the house/period/concept, else ``default_amount``."""
        stmt = select(HousePeriodOverride.custom_amount).where(
            HousePeriodOverride.house_id == house_id,
            HousePeriodOverride.period_id == period_id,
            HousePeriodOverride.concept_type == concept_type,
        )
        custom = (await self.session.execute(stmt)).scalar_one_or_none()
        return to_money(custom if custom is not None else default_amount)


class ChargeSchedule:
    """What a house is expected to pay, concept by concept, in a period."""

    def __init__(self, session: AsyncSession):
        """Initialize with async database session."""
        self.charges = HousePeriodChargeRepository(session)
        self.overrides = OverrideResolver(session)

    async def expected_concepts(
        self,
        house_id: int,
        period: Period,
        config: PeriodConfig | None,
        missing_config_maintenance: Decimal | None = None,
    ) -> list[ExpectedConcept]:
        """Concepts owed by a house in a period, in payment priority order.

        Args:
            house_id: House ID
            period: Period to resolve
            config: Config providing fallback defaults (None if none applies)
            missing_config_maintenance: Maintenance to assume when there are
                no charge rows and no config; None means "owe nothing"

        Returns:
            List of ExpectedConcept sorted MAINTENANCE, WATER, EXTRAORDINARY_FEE
        """
        charges = await self.charges.find_by_house_and_period(house_id, period.id)
        if charges:
            concepts = [
                ExpectedConcept(
                    concept_type=ConceptType(charge.concept_type),
                    expected_amount=to_money(charge.expected_amount),
                    charge_id=charge.id,
                )
                for charge in charges
            ]
            return sorted(concepts, key=lambda c: concept_rank(c.concept_type))

        if config is None:
            if missing_config_maintenance is None:
                return []
            return [ExpectedConcept(ConceptType.MAINTENANCE, to_money(missing_config_maintenance))]

        # Legacy periods without seeded charges
        concepts = [
            ExpectedConcept(
                ConceptType.MAINTENANCE,
                await self.overrides.get_applicable_amount(
                    house_id, period.id, ConceptType.MAINTENANCE, config.default_maintenance_amount
                ),
            )
        ]
        if period.water_active and config.default_water_amount:
            concepts.append(
                ExpectedConcept(
                    ConceptType.WATER,
                    await self.overrides.get_applicable_amount(
                        house_id, period.id, ConceptType.WATER, config.default_water_amount
                    ),
                )
            )
        if period.extraordinary_fee_active and config.default_extraordinary_fee_amount:
            concepts.append(
                ExpectedConcept(
                    ConceptType.EXTRAORDINARY_FEE,
                    await self.overrides.get_applicable_amount(
                        house_id,
                        period.id,
                        ConceptType.EXTRAORDINARY_FEE,
                        config.default_extraordinary_fee_amount,
                    ),
                )
            )
        return concepts

    async def expected_maintenance(
        self,
        house_id: int,
        period: Period,
        config: PeriodConfig,
    ) -> ExpectedConcept | None:
        """MAINTENANCE owed in a period (charge row first, then override/default)."""
        concepts = await self.expected_concepts(house_id, period, config)
        for concept in concepts:
            if concept.concept_type == ConceptType.MAINTENANCE:
                return concept
        return None


class SeedHousePeriodCharges:
    """Generate the expected charges of every house for a new period."""

    def __init__(self, session: AsyncSession):
        """Initialize with async database session."""
        self.session = session
        self.charges = HousePeriodChargeRepository(session)
        self.overrides = OverrideResolver(session)

    async def has_charges(self, period_id: int) -> bool:
        """True when the period already has seeded charges."""
        return bool(await self.charges.find_by_period(period_id))

    async def seed_charges_for_period(self, period: Period, config: PeriodConfig | None) -> int:
        """Create charge rows for every house, honoring flags and overrides.

        Concepts whose resolved amount is zero or negative are not created.

        Args:
            period: Newly created period
            config: Config the period was created with

        Returns:
            Number of charges created (0 when skipped)
        """
        if config is None:
            logger.warning("No PeriodConfig for period %d. Skipping seed.", period.id)
            return 0

        house_ids = (await self.session.execute(select(House.id).order_by(House.id))).scalars().all()
        if not house_ids:
            logger.warning("No houses found. Skipping seed for period %d.", period.id)
            return 0

        overrides = {
            (o.house_id, ConceptType(o.concept_type)): o.custom_amount
            for o in await self.overrides.find_by_period(period.id)
        }

        defaults: list[tuple[ConceptType, Decimal | None]] = [
            (ConceptType.MAINTENANCE, config.default_maintenance_amount)
        ]
        if period.water_active:
            defaults.append((ConceptType.WATER, config.default_water_amount))
        if period.extraordinary_fee_active:
            defaults.append((ConceptType.EXTRAORDINARY_FEE, config.default_extraordinary_fee_amount))

        charges = []
        for house_id in house_ids:
            for concept_type, default_amount in defaults:
                custom = overrides.get((house_id, concept_type))
                amount = to_money(custom if custom is not None else default_amount)
                if amount <= ZERO:
                    continue
                charges.append(
                    HousePeriodCharge(
                        house_id=house_id,
                        period_id=period.id,
                        concept_type=concept_type,
                        expected_amount=amount,
                        source=ChargeSource.OVERRIDE if custom is not None else ChargeSource.PERIOD_CONFIG,
                    )
                )

        created = await self.charges.create_batch(charges)
        logger.info("Seeded %d charges for period %d-%02d", created, period.year, period.month)
        return created


__all__ = [
    "ExpectedConcept",
    "HousePeriodChargeRepository",
    "OverrideResolver",
    "ChargeSchedule",
    "SeedHousePeriodCharges",
]
