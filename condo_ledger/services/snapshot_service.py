"""House status snapshots: TTL cache in front of the balance status calculator.

Snapshots are never invalidated implicitly. Components that change the
ledger call one of the ``invalidate_*`` methods; a stale, missing or expired
snapshot is recomputed on the next read.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Iterable

from pydantic import ValidationError
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from condo_ledger.config import Settings, get_settings
from condo_ledger.models.house import House
from condo_ledger.models.house_status_snapshot import HouseStatusSnapshot
from condo_ledger.services.balance_status_service import BalanceStatusCalculator, EnrichedHouseBalance
from condo_ledger.services.db import SessionFactory, transactional_session

logger = logging.getLogger(__name__)


class SnapshotRepository:
    """Database operations for ``house_status_snapshots``."""

    def __init__(self, session: AsyncSession):
        """Initialize with async database session."""
        self.session = session

    async def find_by_house_id(self, house_id: int) -> HouseStatusSnapshot | None:
        stmt = select(HouseStatusSnapshot).where(HouseStatusSnapshot.house_id == house_id)
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def find_all(self) -> list[HouseStatusSnapshot]:
        result = await self.session.execute(select(HouseStatusSnapshot))
        return list(result.scalars().all())

    async def upsert(self, house_id: int, **fields: Any) -> HouseStatusSnapshot:
        """Insert or update the snapshot of a house with the given fields."""
        snapshot = await self.find_by_house_id(house_id)
        if snapshot is None:
            snapshot = HouseStatusSnapshot(house_id=house_id, **fields)
            self.session.add(snapshot)
        else:
            for name, value in fields.items():
                setattr(snapshot, name, value)
        await self.session.flush()
        return snapshot

    async def invalidate_by_house_id(self, house_id: int, when: datetime) -> int:
        return await self._invalidate(HouseStatusSnapshot.house_id == house_id, when=when)

    async def invalidate_by_house_ids(self, house_ids: list[int], when: datetime) -> int:
        if not house_ids:
            return 0
        return await self._invalidate(HouseStatusSnapshot.house_id.in_(house_ids), when=when)

    async def invalidate_all(self, when: datetime) -> int:
        return await self._invalidate(when=when)

    async def _invalidate(self, *criteria, when: datetime) -> int:
        stmt = update(HouseStatusSnapshot).values(is_stale=True, invalidated_at=when)
        if criteria:
            stmt = stmt.where(*criteria)
        result = await self.session.execute(stmt)
        return result.rowcount or 0


class SnapshotCache:
    """Serves house balance views from snapshots, recomputing when needed."""

    def __init__(
        self,
        session_factory: SessionFactory,
        calculator: BalanceStatusCalculator,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize cache.

        Args:
            session_factory: Factory for snapshot reads and writes
            calculator: Computes a fresh balance view
            settings: Provides the snapshot TTL
            clock: Source of "now"
        """
        self.session_factory = session_factory
        self.calculator = calculator
        self.settings = settings or get_settings()
        self.clock = clock

    @property
    def ttl(self) -> timedelta:
        return timedelta(hours=self.settings.snapshot_ttl_hours)

    async def get_or_calculate(self, house_id: int, house: House) -> EnrichedHouseBalance:
        """Cached balance view of a house, recomputed if stale, missing or expired."""
        async with self.session_factory() as session:
            snapshot = await SnapshotRepository(session).find_by_house_id(house_id)

        cached = self._cached_view(snapshot, self.clock())
        if cached is not None:
            return cached

        balance = await self.calculator.calculate(house_id, house)
        await self._store([balance])
        return balance

    async def get_all_for_summary(self, houses: Iterable[House]) -> list[EnrichedHouseBalance]:
        """Balance views for many houses, in the order the houses were given.

        All snapshots are read at once; the ones needing recomputation are
        calculated concurrently and stored together.
        """
        houses = list(houses)
        now = self.clock()

        async with self.session_factory() as session:
            snapshots = {s.house_id: s for s in await SnapshotRepository(session).find_all()}

        views: dict[int, EnrichedHouseBalance] = {}
        to_compute: dict[int, House] = {}
        for house in houses:
            cached = self._cached_view(snapshots.get(house.id), now)
            if cached is not None:
                views[house.id] = cached
            else:
                to_compute.setdefault(house.id, house)

        if to_compute:
            computed = await asyncio.gather(
                *(self.calculator.calculate(house.id, house) for house in to_compute.values())
            )
            await self._store(computed)
            views.update({balance.house_id: balance for balance in computed})

        logger.info(
            "Summary for %d houses: %d cached, %d recomputed",
            len(houses),
            len(houses) - len(to_compute),
            len(to_compute),
        )
        return [views[house.id] for house in houses]

    async def invalidate_by_house_id(self, house_id: int) -> None:
        async with transactional_session(self.session_factory) as session:
            await SnapshotRepository(session).invalidate_by_house_id(house_id, self.clock())

    async def invalidate_by_house_ids(self, house_ids: list[int]) -> None:
        if not house_ids:
            return
        async with transactional_session(self.session_factory) as session:
            count = await SnapshotRepository(session).invalidate_by_house_ids(house_ids, self.clock())
        logger.debug("Invalidated %d snapshots", count)

    async def invalidate_all(self) -> None:
        async with transactional_session(self.session_factory) as session:
            count = await SnapshotRepository(session).invalidate_all(self.clock())
        logger.info("Invalidated all %d snapshots", count)

    def _cached_view(
        self, snapshot: HouseStatusSnapshot | None, now: datetime
    ) -> EnrichedHouseBalance | None:
        if snapshot is None or snapshot.is_stale or snapshot.calculated_at is None:
            return None
        if now - self._in_clock_tz(snapshot.calculated_at, now) >= self.ttl:
            return None
        try:
            return EnrichedHouseBalance.model_validate(snapshot.enriched_data)
        except ValidationError:
            logger.warning("Unreadable snapshot for house %d, recomputing", snapshot.house_id)
            return None

    @staticmethod
    def _in_clock_tz(value: datetime, now: datetime) -> datetime:
        # SQLite returns naive datetimes holding the wall time that was written
        if value.tzinfo is None and now.tzinfo is not None:
            return value.replace(tzinfo=now.tzinfo)
        if value.tzinfo is not None and now.tzinfo is None:
            return value.astimezone().replace(tzinfo=None)
        return value

    async def _store(self, balances: list[EnrichedHouseBalance]) -> None:
        now = self.clock()
        try:
            await self._upsert_all(balances, now)
        except IntegrityError:
            # A concurrent recompute inserted the same house first; retry as update
            logger.info("Concurrent snapshot write detected, retrying")
            await self._upsert_all(balances, now)

    async def _upsert_all(self, balances: list[EnrichedHouseBalance], now: datetime) -> None:
        async with transactional_session(self.session_factory) as session:
            snapshots = SnapshotRepository(session)
            for balance in balances:
                await snapshots.upsert(
                    balance.house_id,
                    status=balance.status.value,
                    total_debt=balance.total_debt,
                    credit_balance=balance.credit_balance,
                    total_unpaid_periods=balance.total_unpaid_periods,
                    enriched_data=balance.model_dump(mode="json"),
                    is_stale=False,
                    calculated_at=now,
                    invalidated_at=None,
                )


__all__ = ["SnapshotRepository", "SnapshotCache"]
