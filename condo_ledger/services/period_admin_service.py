"""Administrative changes to periods and their expected charges."""

import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import exists, select, update

from condo_ledger.errors import not_found_error, validation_error
from condo_ledger.models.concepts import ConceptType
from condo_ledger.models.house_period_charge import ChargeSource
from condo_ledger.models.period import Period
from condo_ledger.models.record_allocation import RecordAllocation
from condo_ledger.services.charge_service import HousePeriodChargeRepository
from condo_ledger.services.db import SessionFactory, transactional_session
from condo_ledger.services.money import ZERO, to_money
from condo_ledger.services.period_service import PeriodRegistry, PeriodRepository
from condo_ledger.services.snapshot_service import SnapshotCache

logger = logging.getLogger(__name__)


def month_range(start_year: int, start_month: int, end_year: int, end_month: int) -> list[tuple[int, int]]:
    """Inclusive list of (year, month) from start to end; empty if end precedes start."""
    months = []
    year, month = start_year, start_month
    while year * 12 + month <= end_year * 12 + end_month:
        months.append((year, month))
        month += 1
        if month > 12:
            month = 1
            year += 1
    return months


@dataclass(frozen=True)
class BatchUpdateRequest:
    """New expected amounts for a range of months.

    ``None`` leaves WATER / EXTRAORDINARY_FEE charges untouched; zero removes
    them. Either way the period flag follows ``amount > 0``.
    """

    start_year: int
    start_month: int
    end_year: int
    end_month: int
    maintenance_amount: Decimal
    water_amount: Decimal | None = None
    extraordinary_fee_amount: Decimal | None = None


@dataclass(frozen=True)
class BatchUpdateResult:
    periods_affected: int
    periods_created: int
    charges_updated: int
    has_retroactive_changes: bool


class BatchUpdatePeriodCharges:
    """Set the charges of every house over a range of periods in one transaction."""

    def __init__(
        self,
        session_factory: SessionFactory,
        period_registry: PeriodRegistry,
        snapshot_cache: SnapshotCache | None = None,
    ):
        """Initialize batch update.

        Args:
            session_factory: Factory for the single update transaction
            period_registry: Creates missing periods inside that transaction
            snapshot_cache: Invalidated for every house afterwards
        """
        self.session_factory = session_factory
        self.period_registry = period_registry
        self.snapshot_cache = snapshot_cache

    async def execute(self, request: BatchUpdateRequest) -> BatchUpdateResult:
        """Apply the batch update.

        Args:
            request: Month range and amounts

        Returns:
            BatchUpdateResult; ``has_retroactive_changes`` is True when any
            affected period already has allocations

        Raises:
            LedgerError: VALIDATION for an invalid month, empty range or
                negative amount
        """
        for month in (request.start_month, request.end_month):
            if not 1 <= month <= 12:
                raise validation_error(f"Invalid month {month}")
        months = month_range(request.start_year, request.start_month, request.end_year, request.end_month)
        if not months:
            raise validation_error("Invalid date range: start must be before or equal to end")
        for amount in (request.maintenance_amount, request.water_amount, request.extraordinary_fee_amount):
            if amount is not None and to_money(amount) < ZERO:
                raise validation_error("Charge amounts cannot be negative")

        water_active = request.water_amount is not None and to_money(request.water_amount) > ZERO
        extraordinary_active = (
            request.extraordinary_fee_amount is not None
            and to_money(request.extraordinary_fee_amount) > ZERO
        )

        async with transactional_session(self.session_factory) as session:
            periods = PeriodRepository(session)
            charges = HousePeriodChargeRepository(session)

            period_ids = []
            periods_created = 0
            for year, month in months:
                if await periods.find_by_year_and_month(year, month) is None:
                    periods_created += 1
                period = await self.period_registry.ensure_period_exists(year, month, session=session)
                period_ids.append(period.id)

            await session.execute(
                update(Period)
                .where(Period.id.in_(period_ids))
                .values(water_active=water_active, extraordinary_fee_active=extraordinary_active)
            )

            charges_updated = await charges.upsert_batch_for_periods(
                period_ids, ConceptType.MAINTENANCE, request.maintenance_amount, ChargeSource.MANUAL
            )
            for concept_type, amount in (
                (ConceptType.WATER, request.water_amount),
                (ConceptType.EXTRAORDINARY_FEE, request.extraordinary_fee_amount),
            ):
                if amount is None:
                    continue
                if to_money(amount) > ZERO:
                    charges_updated += await charges.upsert_batch_for_periods(
                        period_ids, concept_type, amount, ChargeSource.MANUAL
                    )
                else:
                    await charges.delete_by_periods_and_concept(period_ids, concept_type)

            has_retroactive_changes = bool(
                await session.scalar(
                    select(exists().where(RecordAllocation.period_id.in_(period_ids)))
                )
            )

        logger.info(
            "Batch update: %d periods (%d created), %d charges, retroactive=%s",
            len(period_ids),
            periods_created,
            charges_updated,
            has_retroactive_changes,
        )

        await _invalidate_all_best_effort(self.snapshot_cache)

        return BatchUpdateResult(
            periods_affected=len(period_ids),
            periods_created=periods_created,
            charges_updated=charges_updated,
            has_retroactive_changes=has_retroactive_changes,
        )


class UpdatePeriodConcepts:
    """Toggle which optional concepts a period charges."""

    def __init__(self, session_factory: SessionFactory, snapshot_cache: SnapshotCache | None = None):
        """Initialize concept toggle.

        Args:
            session_factory: Factory for the update transaction
            snapshot_cache: Invalidated for every house afterwards
        """
        self.session_factory = session_factory
        self.snapshot_cache = snapshot_cache

    async def execute(
        self,
        period_id: int,
        water_active: bool | None = None,
        extraordinary_fee_active: bool | None = None,
    ) -> Period:
        """Update the period's concept flags.

        Raises:
            LedgerError: VALIDATION if no flag is given, NOT_FOUND for an
                unknown period
        """
        if water_active is None and extraordinary_fee_active is None:
            raise validation_error("At least one concept flag must be provided")

        async with transactional_session(self.session_factory) as session:
            period = await PeriodRepository(session).find_by_id(period_id)
            if period is None:
                raise not_found_error(f"Period {period_id} not found")
            if water_active is not None:
                period.water_active = water_active
            if extraordinary_fee_active is not None:
                period.extraordinary_fee_active = extraordinary_fee_active

        logger.info(
            "Period %d-%02d concepts: water=%s extraordinary_fee=%s",
            period.year,
            period.month,
            period.water_active,
            period.extraordinary_fee_active,
        )

        await _invalidate_all_best_effort(self.snapshot_cache)
        return period


async def _invalidate_all_best_effort(snapshot_cache: SnapshotCache | None) -> None:
    if snapshot_cache is None:
        return
    try:
        await snapshot_cache.invalidate_all()
    except Exception:
        logger.exception("Snapshot invalidation failed")


__all__ = [
    "BatchUpdateRequest",
    "BatchUpdateResult",
    "BatchUpdatePeriodCharges",
    "UpdatePeriodConcepts",
    "month_range",
]
