"""Credit sweep: apply a house's surplus credit to unpaid maintenance, oldest first."""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from condo_ledger.models.concepts import ConceptType, PaymentStatus
from condo_ledger.models.record_allocation import AllocationOrigin, RecordAllocation
from condo_ledger.services.allocation_ledger import AllocationRepository
from condo_ledger.services.charge_service import ChargeSchedule
from condo_ledger.services.db import SessionFactory, transactional_session
from condo_ledger.services.house_balance_service import HouseBalanceRepository
from condo_ledger.services.money import ZERO, to_money
from condo_ledger.services.period_config_service import PeriodConfigRepository
from condo_ledger.services.period_service import PeriodRepository

logger = logging.getLogger(__name__)


class SnapshotInvalidator(Protocol):
    """Anything that can mark a house status snapshot stale."""

    async def invalidate_by_house_id(self, house_id: int) -> None: ...


@dataclass(frozen=True)
class CreditAllocationDetail:
    """One credit-sweep allocation."""

    allocation_id: int
    period_id: int
    year: int
    month: int
    amount_applied: Decimal
    expected_amount: Decimal
    payment_status: PaymentStatus


@dataclass
class CreditApplicationResult:
    """Outcome of a credit sweep for one house."""

    house_id: int
    credit_before: Decimal
    credit_after: Decimal
    total_applied: Decimal = ZERO
    allocations_created: list[CreditAllocationDetail] = field(default_factory=list)
    periods_covered: int = 0
    periods_partially_covered: int = 0


class CreditApplicator:
    """Sweeps positive credit across all periods in (year, month) order.

    Only MAINTENANCE is topped up. The whole sweep is one transaction; a
    failure rolls back every allocation and the balance update and is raised
    to the caller.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        snapshot_invalidator: SnapshotInvalidator | None = None,
    ):
        """Initialize applicator.

        Args:
            session_factory: Factory for the sweep transaction
            snapshot_invalidator: Marks the house snapshot stale after a sweep
        """
        self.session_factory = session_factory
        self.snapshot_invalidator = snapshot_invalidator

    async def apply(self, house_id: int) -> CreditApplicationResult:
        """Apply the house's credit balance to unpaid maintenance.

        Args:
            house_id: House whose credit is swept

        Returns:
            CreditApplicationResult; zero-effect when there is no credit
        """
        async with self.session_factory() as session:
            balance = await HouseBalanceRepository(session).find_by_house_id(house_id)
            credit = to_money(balance.credit_balance) if balance is not None else ZERO

        if credit <= ZERO:
            return CreditApplicationResult(house_id=house_id, credit_before=credit, credit_after=credit)

        async with transactional_session(self.session_factory) as session:
            result = await self._sweep(session, house_id)

        logger.info(
            "Credit sweep for house %d: applied=%s before=%s after=%s covered=%d partial=%d",
            house_id,
            result.total_applied,
            result.credit_before,
            result.credit_after,
            result.periods_covered,
            result.periods_partially_covered,
        )

        if result.allocations_created and self.snapshot_invalidator is not None:
            try:
                await self.snapshot_invalidator.invalidate_by_house_id(house_id)
            except Exception:
                logger.exception("Snapshot invalidation failed for house %d", house_id)

        return result

    async def _sweep(self, session: AsyncSession, house_id: int) -> CreditApplicationResult:
        balances = HouseBalanceRepository(session)
        configs = PeriodConfigRepository(session)
        schedule = ChargeSchedule(session)
        ledger = AllocationRepository(session)

        balance = await balances.get_or_create(house_id)
        credit_before = to_money(balance.credit_balance)
        result = CreditApplicationResult(
            house_id=house_id, credit_before=credit_before, credit_after=credit_before
        )
        remaining = credit_before

        for period in await PeriodRepository(session).find_all():
            if remaining <= ZERO:
                break

            config = await configs.find_active_for_date(period.start_date)
            if config is None:
                logger.debug("No config for period %d-%02d, skipping", period.year, period.month)
                continue

            maintenance = await schedule.expected_maintenance(house_id, period, config)
            if maintenance is None:
                continue

            paid = (await ledger.paid_by_concept(house_id, period.id))[ConceptType.MAINTENANCE]
            pending = max(ZERO, to_money(maintenance.expected_amount - paid))
            if pending <= ZERO:
                continue

            applied = min(remaining, pending)
            status = (
                PaymentStatus.COMPLETE
                if to_money(pending - applied) <= ZERO
                else PaymentStatus.PARTIAL
            )

            row = await ledger.create(
                RecordAllocation(
                    origin=AllocationOrigin.CREDIT_SWEEP,
                    record_id=None,
                    house_id=house_id,
                    period_id=period.id,
                    concept_type=ConceptType.MAINTENANCE,
                    concept_id=None,
                    allocated_amount=applied,
                    expected_amount=maintenance.expected_amount,
                    payment_status=status,
                )
            )
            result.allocations_created.append(
                CreditAllocationDetail(
                    allocation_id=row.id,
                    period_id=period.id,
                    year=period.year,
                    month=period.month,
                    amount_applied=applied,
                    expected_amount=maintenance.expected_amount,
                    payment_status=status,
                )
            )
            if status == PaymentStatus.COMPLETE:
                result.periods_covered += 1
            else:
                result.periods_partially_covered += 1

            remaining = to_money(remaining - applied)

        await balances.update(house_id, credit_balance=remaining)

        result.credit_after = remaining
        result.total_applied = to_money(credit_before - remaining)
        return result


__all__ = [
    "SnapshotInvalidator",
    "CreditAllocationDetail",
    "CreditApplicationResult",
    "CreditApplicator",
]
