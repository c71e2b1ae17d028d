"""Billing period registry: lazy creation of monthly periods and their charges."""

import calendar
import logging
from datetime import date

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from condo_ledger.errors import validation_error
from condo_ledger.models.period import Period
from condo_ledger.services.charge_service import SeedHousePeriodCharges
from condo_ledger.services.db import SessionFactory, transactional_session
from condo_ledger.services.period_config_service import PeriodConfigRepository

logger = logging.getLogger(__name__)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last day of a calendar month."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


class PeriodRepository:
    """Period database operations."""

    def __init__(self, session: AsyncSession):
        """Initialize with async database session."""
        self.session = session

    async def find_by_id(self, period_id: int) -> Period | None:
        """Get period by ID."""
        return await self.session.get(Period, period_id)

    async def find_by_year_and_month(self, year: int, month: int) -> Period | None:
        """Get the period of a calendar month."""
        stmt = select(Period).where(Period.year == year, Period.month == month)
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def find_all(self) -> list[Period]:
        """All periods, oldest first."""
        stmt = select(Period).order_by(Period.year.asc(), Period.month.asc())
        return list((await self.session.execute(stmt)).scalars().all())

    async def create(self, year: int, month: int, config_id: int | None = None) -> Period:
        """Create the period for a calendar month.

        Raises:
            IntegrityError: If the month already has a period
        """
        start_date, end_date = month_bounds(year, month)
        period = Period(
            year=year,
            month=month,
            start_date=start_date,
            end_date=end_date,
            period_config_id=config_id,
            water_active=True,
            extraordinary_fee_active=False,
        )
        self.session.add(period)
        await self.session.flush()
        return period


class PeriodCache:
    """In-process map of ``"year-month"`` to period, owned by one registry."""

    def __init__(self) -> None:
        self._periods: dict[str, Period] = {}

    @staticmethod
    def key(year: int, month: int) -> str:
        return f"{year}-{month}"

    def get(self, year: int, month: int) -> Period | None:
        return self._periods.get(self.key(year, month))

    def set(self, period: Period) -> None:
        self._periods[self.key(period.year, period.month)] = period

    def clear(self) -> None:
        self._periods.clear()

    def __len__(self) -> int:
        return len(self._periods)


class PeriodRegistry:
    """Ensures calendar periods exist, creating and seeding them on first use."""

    def __init__(self, session_factory: SessionFactory, cache: PeriodCache | None = None):
        """Initialize registry.

        Args:
            session_factory: Factory for transactional sessions
            cache: Period cache (a fresh one per registry by default)
        """
        self.session_factory = session_factory
        self.cache = cache if cache is not None else PeriodCache()

    async def ensure_period_exists(
        self, year: int, month: int, session: AsyncSession | None = None
    ) -> Period:
        """Return the period for (year, month), creating it if missing.

        A new period gets the config active on the 1st of the month and one
        charge row per house and active concept.

        Args:
            year: Calendar year
            month: Calendar month (1-12)
            session: Join an open unit of work instead of starting one

        Returns:
            Existing or newly created Period

        Raises:
            LedgerError: VALIDATION if month is out of range
        """
        if not 1 <= month <= 12:
            raise validation_error(f"Invalid month {month} for year {year}")

        cached = self.cache.get(year, month)
        if cached is not None:
            return cached

        if session is not None:
            period, created = await self._find_or_create(session, year, month)
            if not created:
                # Only committed rows are cached; the caller may still roll back
                self.cache.set(period)
            return period

        try:
            async with transactional_session(self.session_factory) as own_session:
                period, _ = await self._find_or_create(own_session, year, month)
        except IntegrityError:
            # Another worker created the same month first
            logger.warning("Concurrent creation of period %d-%02d detected", year, month)
            async with transactional_session(self.session_factory) as own_session:
                period = await PeriodRepository(own_session).find_by_year_and_month(year, month)
            if period is None:
                raise

        self.cache.set(period)
        return period

    async def _find_or_create(
        self, session: AsyncSession, year: int, month: int
    ) -> tuple[Period, bool]:
        periods = PeriodRepository(session)
        existing = await periods.find_by_year_and_month(year, month)
        if existing is not None:
            return existing, False

        configs = PeriodConfigRepository(session)
        config = await configs.find_active_for_date(date(year, month, 1))

        period = await periods.create(year, month, config.id if config else None)
        await SeedHousePeriodCharges(session).seed_charges_for_period(period, config)

        logger.info(
            "Created period %d-%02d (id=%d, config_id=%s)",
            year,
            month,
            period.id,
            config.id if config else None,
        )
        return period, True

    def clear_cache(self) -> None:
        """Forget cached periods (test isolation, admin reset)."""
        self.cache.clear()


__all__ = ["PeriodRepository", "PeriodCache", "PeriodRegistry", "month_bounds"]
