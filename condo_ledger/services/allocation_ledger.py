"""Append-only store of payment and credit-sweep allocations."""

import logging
from collections import defaultdict
from decimal import Decimal

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from condo_ledger.models.concepts import ConceptType
from condo_ledger.models.record_allocation import RecordAllocation
from condo_ledger.services.money import ZERO, to_money

logger = logging.getLogger(__name__)


class AllocationRepository:
    """Reads and writes ``record_allocations``.

    Rows are only ever inserted; ``delete_all`` exists for the full reprocess.
    """

    def __init__(self, session: AsyncSession):
        """Initialize with async database session."""
        self.session = session

    async def create(self, allocation: RecordAllocation) -> RecordAllocation:
        """Persist one allocation and return it with its ID."""
        self.session.add(allocation)
        await self.session.flush()
        return allocation

    async def find_by_house_and_period(self, house_id: int, period_id: int) -> list[RecordAllocation]:
        """Allocations of a house in a period, oldest first."""
        stmt = (
            select(RecordAllocation)
            .where(
                RecordAllocation.house_id == house_id,
                RecordAllocation.period_id == period_id,
            )
            .order_by(RecordAllocation.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_by_record_id(self, record_id: int) -> list[RecordAllocation]:
        """Allocations produced by one payment record."""
        stmt = select(RecordAllocation).where(RecordAllocation.record_id == record_id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def exists_for_record(self, record_id: int) -> bool:
        """True when the payment record has already been allocated."""
        stmt = select(func.count(RecordAllocation.id)).where(RecordAllocation.record_id == record_id)
        return (await self.session.execute(stmt)).scalar_one() > 0

    async def paid_by_concept(self, house_id: int, period_id: int) -> dict[ConceptType, Decimal]:
        """Sum of allocated amounts per concept for a house in a period."""
        stmt = (
            select(RecordAllocation.concept_type, func.sum(RecordAllocation.allocated_amount))
            .where(
                RecordAllocation.house_id == house_id,
                RecordAllocation.period_id == period_id,
            )
            .group_by(RecordAllocation.concept_type)
        )
        paid: dict[ConceptType, Decimal] = defaultdict(lambda: ZERO)
        for concept_type, total in (await self.session.execute(stmt)).all():
            paid[ConceptType(concept_type)] = to_money(total)
        return paid

    async def delete_all(self) -> int:
        """Delete every allocation; returns the number of rows removed."""
        result = await self.session.execute(delete(RecordAllocation))
        deleted = result.rowcount or 0
        logger.info("Deleted %d allocations", deleted)
        return deleted


__all__ = ["AllocationRepository"]
