"""Backfill and full reprocess of the allocation ledger.

Backfill replays confirmed deposits that the ledger has not applied yet, in
transaction date order. Reprocess wipes every allocation and balance and
replays all of them, which rebuilds the ledger after a rule change or bug.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from condo_ledger.models.house import House
from condo_ledger.models.payment_record import PaymentRecord, ValidationStatus
from condo_ledger.models.record_allocation import RecordAllocation
from condo_ledger.services.allocation_ledger import AllocationRepository
from condo_ledger.services.db import SessionFactory, transactional_session
from condo_ledger.services.house_balance_service import HouseBalanceRepository
from condo_ledger.services.payment_allocator import AllocationRequest, PaymentAllocator
from condo_ledger.services.period_service import PeriodRegistry
from condo_ledger.services.snapshot_service import SnapshotCache

logger = logging.getLogger(__name__)


@dataclass
class BackfillRecordResult:
    """Outcome for one payment record."""

    record_id: int
    house_id: int
    status: str  # "processed", "skipped" or "failed"
    total_distributed: Decimal | None = None
    remaining_amount: Decimal | None = None
    error: str | None = None


@dataclass
class BackfillResult:
    total_records_found: int = 0
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    results: list[BackfillRecordResult] = field(default_factory=list)


@dataclass
class ReprocessResult:
    allocations_deleted: int
    balances_reset: int
    backfill_result: BackfillResult


class BackfillService:
    """Derives missing allocations from historical payment records."""

    def __init__(
        self,
        session_factory: SessionFactory,
        allocator: PaymentAllocator,
        period_registry: PeriodRegistry,
        snapshot_cache: SnapshotCache | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize backfill service.

        Args:
            session_factory: Factory for queries and the reprocess wipe
            allocator: Applies each payment
            period_registry: Ensures payment periods exist before allocation
            snapshot_cache: Invalidated after a reprocess
            clock: Source of "now" for the current period
        """
        self.session_factory = session_factory
        self.allocator = allocator
        self.period_registry = period_registry
        self.snapshot_cache = snapshot_cache
        self.clock = clock

    async def find_unallocated_records(
        self, session: AsyncSession, house_number: int | None = None
    ) -> list[PaymentRecord]:
        """Confirmed deposits the ledger has not applied, oldest first.

        Args:
            session: Database session
            house_number: Restrict to one house (by house number)

        Returns:
            Payment records without allocations, by transaction date
        """
        stmt = (
            select(PaymentRecord)
            .outerjoin(RecordAllocation, RecordAllocation.record_id == PaymentRecord.id)
            .where(
                RecordAllocation.id.is_(None),
                PaymentRecord.allocated_at.is_(None),
                PaymentRecord.validation_status == ValidationStatus.CONFIRMED,
                PaymentRecord.is_deposit.is_(True),
            )
            .order_by(PaymentRecord.transaction_date.asc(), PaymentRecord.id.asc())
        )
        if house_number is not None:
            stmt = stmt.join(House, House.id == PaymentRecord.house_id).where(
                House.number_house == house_number
            )
        return list((await session.execute(stmt)).scalars().all())

    async def backfill(self, house_number: int | None = None) -> BackfillResult:
        """Allocate every unapplied confirmed deposit.

        Each record is processed on its own; a failure is recorded in the
        result and the batch continues.

        Args:
            house_number: Restrict to one house

        Returns:
            BackfillResult with counts and per-record outcomes
        """
        async with self.session_factory() as session:
            records = await self.find_unallocated_records(session, house_number)

        result = BackfillResult(total_records_found=len(records))
        if not records:
            logger.info("Backfill: no unallocated payment records")
            return result

        today = self.clock().date()
        await self.period_registry.ensure_period_exists(today.year, today.month)

        for record in records:
            outcome = await self._process_record(record)
            result.results.append(outcome)
            if outcome.status == "processed":
                result.processed += 1
            elif outcome.status == "skipped":
                result.skipped += 1
            else:
                result.failed += 1

        logger.info(
            "Backfill complete: found=%d processed=%d skipped=%d failed=%d",
            result.total_records_found,
            result.processed,
            result.skipped,
            result.failed,
        )
        return result

    async def _process_record(self, record: PaymentRecord) -> BackfillRecordResult:
        try:
            async with self.session_factory() as session:
                # The query above and this loop are not atomic
                already = await AllocationRepository(session).exists_for_record(record.id)
                current = await session.get(PaymentRecord, record.id)
            if already or (current is not None and current.allocated_at is not None):
                return BackfillRecordResult(record.id, record.house_id, "skipped")

            tx_date = record.transaction_date
            await self.period_registry.ensure_period_exists(tx_date.year, tx_date.month)

            allocation = await self.allocator.allocate(
                AllocationRequest(
                    record_id=record.id,
                    house_id=record.house_id,
                    amount_to_distribute=record.amount,
                )
            )
        except Exception as e:
            logger.error("Backfill failed for record %d: %s", record.id, e, exc_info=True)
            return BackfillRecordResult(record.id, record.house_id, "failed", error=str(e))

        return BackfillRecordResult(
            record.id,
            record.house_id,
            "processed",
            total_distributed=allocation.total_distributed,
            remaining_amount=allocation.remaining_amount,
        )

    async def reprocess(self) -> ReprocessResult:
        """Wipe all allocations and balances, then replay every payment.

        Returns:
            ReprocessResult with wipe counts and the backfill outcome
        """
        async with transactional_session(self.session_factory) as session:
            allocations_deleted = await AllocationRepository(session).delete_all()
            balances_reset = await HouseBalanceRepository(session).reset_all()
            await session.execute(update(PaymentRecord).values(allocated_at=None))

        logger.warning(
            "Reprocess: deleted %d allocations, reset %d balances",
            allocations_deleted,
            balances_reset,
        )

        backfill_result = await self.backfill()

        if self.snapshot_cache is not None:
            try:
                await self.snapshot_cache.invalidate_all()
            except Exception:
                logger.exception("Snapshot invalidation failed after reprocess")

        return ReprocessResult(
            allocations_deleted=allocations_deleted,
            balances_reset=balances_reset,
            backfill_result=backfill_result,
        )


__all__ = ["BackfillRecordResult", "BackfillResult", "ReprocessResult", "BackfillService"]
