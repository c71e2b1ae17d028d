"""Payment allocation: distribute one incoming amount across owed concepts.

Distribution is greedy and priority ordered (MAINTENANCE, WATER,
EXTRAORDINARY_FEE), never proportional. Whatever the concepts do not absorb
goes to the house balance: debit first, then sub-unit cents, then credit.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from condo_ledger.errors import not_found_error, validation_error
from condo_ledger.models.concepts import ConceptType, PaymentStatus
from condo_ledger.models.payment_record import PaymentRecord
from condo_ledger.models.period import Period
from condo_ledger.models.period_config import PeriodConfig
from condo_ledger.models.record_allocation import AllocationOrigin, RecordAllocation
from condo_ledger.services.allocation_ledger import AllocationRepository
from condo_ledger.services.charge_service import ChargeSchedule
from condo_ledger.services.credit_service import (
    CreditApplicationResult,
    CreditApplicator,
    SnapshotInvalidator,
)
from condo_ledger.services.db import SessionFactory, transactional_session
from condo_ledger.services.house_balance_service import (
    BalanceSnapshot,
    HouseBalanceRepository,
    apply_remainder,
)
from condo_ledger.services.money import ZERO, to_money
from condo_ledger.services.period_config_service import PeriodConfigRepository
from condo_ledger.services.period_service import PeriodRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AllocationRequest:
    """A confirmed payment to distribute.

    ``period_id`` selects a specific period; when omitted the period of the
    current month is used.
    """

    record_id: int
    house_id: int
    amount_to_distribute: Decimal
    period_id: int | None = None


@dataclass(frozen=True)
class ConceptAllocation:
    """Portion of a payment applied to one concept."""

    allocation_id: int
    period_id: int
    concept_type: ConceptType
    concept_id: int | None
    allocated_amount: Decimal
    expected_amount: Decimal
    payment_status: PaymentStatus


@dataclass
class AllocationResult:
    """Outcome of one payment distribution.

    ``total_distributed + remaining_amount`` always equals the requested
    amount. ``balance_after`` is the balance committed with the allocations,
    before any credit sweep.
    """

    record_id: int
    house_id: int
    total_distributed: Decimal
    allocations: list[ConceptAllocation]
    remaining_amount: Decimal
    balance_after: BalanceSnapshot
    credit_application: CreditApplicationResult | None = field(default=None)


class PaymentAllocator:
    """Primary entry point for applying confirmed payments to the ledger."""

    def __init__(
        self,
        session_factory: SessionFactory,
        credit_applicator: CreditApplicator | None = None,
        snapshot_invalidator: SnapshotInvalidator | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize allocator.

        Args:
            session_factory: Factory for the allocation transaction
            credit_applicator: Sweeps surplus credit after a commit (optional)
            snapshot_invalidator: Marks the house status snapshot stale (optional)
            clock: Source of "now" for config and current-period resolution
        """
        self.session_factory = session_factory
        self.credit_applicator = credit_applicator
        self.snapshot_invalidator = snapshot_invalidator
        self.clock = clock

    async def allocate(self, request: AllocationRequest) -> AllocationResult:
        """Distribute a payment over the concepts owed in one period.

        Args:
            request: Record, house, amount and optional target period

        Returns:
            AllocationResult with created allocations and the new balance

        Raises:
            LedgerError: VALIDATION for a non-positive amount, NOT_FOUND when
                no config is active today or the period cannot be resolved
        """
        amount = to_money(request.amount_to_distribute)
        if amount <= ZERO:
            raise validation_error("Amount to distribute must be greater than 0")

        today = self.clock().date()

        async with transactional_session(self.session_factory) as session:
            config = await PeriodConfigRepository(session).find_active_for_date(today)
            if config is None:
                raise not_found_error(f"No active period config for {today.isoformat()}")

            period = await self._resolve_period(session, request.period_id, today)

            allocations, remaining = await self._distribute(session, request, period, config, amount)

            balances = HouseBalanceRepository(session)
            balance = await balances.get_or_create(request.house_id)
            new_balance = apply_remainder(BalanceSnapshot.of(balance), remaining)
            await balances.update(
                request.house_id,
                accumulated_cents=new_balance.accumulated_cents,
                credit_balance=new_balance.credit_balance,
                debit_balance=new_balance.debit_balance,
            )

            record = await session.get(PaymentRecord, request.record_id)
            if record is not None:
                record.allocated_at = self.clock()

        logger.info(
            "Allocated record %d for house %d: distributed=%s remaining=%s credit=%s",
            request.record_id,
            request.house_id,
            to_money(amount - remaining),
            remaining,
            new_balance.credit_balance,
        )

        result = AllocationResult(
            record_id=request.record_id,
            house_id=request.house_id,
            total_distributed=to_money(amount - remaining),
            allocations=allocations,
            remaining_amount=remaining,
            balance_after=new_balance,
        )

        if new_balance.credit_balance > ZERO:
            result.credit_application = await self._apply_credit_best_effort(request.house_id)

        await self._invalidate_snapshot_best_effort(request.house_id)
        return result

    async def _resolve_period(self, session: AsyncSession, period_id: int | None, today: date) -> Period:
        periods = PeriodRepository(session)
        if period_id is not None:
            period = await periods.find_by_id(period_id)
            if period is None:
                raise not_found_error(f"Period {period_id} not found")
            return period

        period = await periods.find_by_year_and_month(today.year, today.month)
        if period is None:
            raise not_found_error(f"No period for current month {today.year}-{today.month:02d}")
        return period

    async def _distribute(
        self,
        session: AsyncSession,
        request: AllocationRequest,
        period: Period,
        config: PeriodConfig,
        amount: Decimal,
    ) -> tuple[list[ConceptAllocation], Decimal]:
        ledger = AllocationRepository(session)
        concepts = await ChargeSchedule(session).expected_concepts(request.house_id, period, config)
        paid = await ledger.paid_by_concept(request.house_id, period.id)

        allocations: list[ConceptAllocation] = []
        remaining = amount

        for concept in concepts:
            if remaining <= ZERO:
                break

            already_paid = paid[concept.concept_type]
            outstanding = max(ZERO, to_money(concept.expected_amount - already_paid))
            if outstanding <= ZERO:
                continue

            allocated = min(remaining, outstanding)
            status = (
                PaymentStatus.COMPLETE
                if to_money(already_paid + allocated) >= concept.expected_amount
                else PaymentStatus.PARTIAL
            )

            row = await ledger.create(
                RecordAllocation(
                    origin=AllocationOrigin.PAYMENT,
                    record_id=request.record_id,
                    house_id=request.house_id,
                    period_id=period.id,
                    concept_type=concept.concept_type,
                    concept_id=concept.charge_id,
                    allocated_amount=allocated,
                    expected_amount=concept.expected_amount,
                    payment_status=status,
                )
            )
            allocations.append(
                ConceptAllocation(
                    allocation_id=row.id,
                    period_id=period.id,
                    concept_type=concept.concept_type,
                    concept_id=concept.charge_id,
                    allocated_amount=allocated,
                    expected_amount=concept.expected_amount,
                    payment_status=status,
                )
            )
            remaining = to_money(remaining - allocated)

        return allocations, remaining

    async def _apply_credit_best_effort(self, house_id: int) -> CreditApplicationResult | None:
        """Sweep surplus credit into unpaid periods; never fails the payment."""
        if self.credit_applicator is None:
            return None
        try:
            return await self.credit_applicator.apply(house_id)
        except Exception:
            logger.exception("Credit application failed for house %d", house_id)
            return None

    async def _invalidate_snapshot_best_effort(self, house_id: int) -> None:
        if self.snapshot_invalidator is None:
            return
        try:
            await self.snapshot_invalidator.invalidate_by_house_id(house_id)
        except Exception:
            logger.exception("Snapshot invalidation failed for house %d", house_id)


__all__ = [
    "AllocationRequest",
    "AllocationResult",
    "ConceptAllocation",
    "PaymentAllocator",
]
