"""Idempotent late-payment penalty generation."""

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from condo_ledger.config import Settings, get_settings
from condo_ledger.models.cta_penalty import CtaPenalty
from condo_ledger.services.db import SessionFactory, transactional_session
from condo_ledger.services.money import to_money
from condo_ledger.services.period_config_service import PeriodConfigRepository

logger = logging.getLogger(__name__)


class PenaltyRepository:
    """Database operations for ``cta_penalties``."""

    def __init__(self, session: AsyncSession):
        """Initialize with async database session."""
        self.session = session

    async def find_by_house_and_period(self, house_id: int, period_id: int) -> CtaPenalty | None:
        stmt = select(CtaPenalty).where(
            CtaPenalty.house_id == house_id,
            CtaPenalty.period_id == period_id,
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def find_by_period(self, period_id: int) -> list[CtaPenalty]:
        """Penalties of a period, by house."""
        stmt = select(CtaPenalty).where(CtaPenalty.period_id == period_id).order_by(CtaPenalty.house_id)
        return list((await self.session.execute(stmt)).scalars().all())


class PenaltyGenerator:
    """Creates at most one penalty per house and period.

    The ``(house_id, period_id)`` unique constraint settles concurrent
    attempts: the loser's insert fails and is reported as a no-op.
    """

    def __init__(self, session_factory: SessionFactory, settings: Settings | None = None):
        """Initialize generator.

        Args:
            session_factory: Factory for the generator's own short transactions
            settings: Provides the fallback penalty amount
        """
        self.session_factory = session_factory
        self.settings = settings or get_settings()

    async def generate(
        self, house_id: int, period_id: int, period_start_date: date
    ) -> CtaPenalty | None:
        """Create the penalty for an overdue house/period.

        Args:
            house_id: House ID
            period_id: Period ID
            period_start_date: Used to resolve the config's penalty amount

        Returns:
            The new penalty, or None when one already exists
        """
        try:
            async with transactional_session(self.session_factory) as session:
                penalties = PenaltyRepository(session)
                if await penalties.find_by_house_and_period(house_id, period_id) is not None:
                    return None

                amount = await self._penalty_amount(session, period_start_date)
                penalty = CtaPenalty(
                    house_id=house_id,
                    period_id=period_id,
                    amount=amount,
                    description=f"Penalidad por pago tardio - Periodo {period_id}",
                )
                session.add(penalty)
                await session.flush()
        except IntegrityError:
            logger.info(
                "Penalty for house %d period %d created concurrently, skipping",
                house_id,
                period_id,
            )
            return None

        logger.info("Generated penalty of %s for house %d period %d", amount, house_id, period_id)
        return penalty

    async def _penalty_amount(self, session: AsyncSession, period_start_date: date) -> Decimal:
        config = await PeriodConfigRepository(session).find_active_for_date(period_start_date)
        if config is not None and config.late_payment_penalty_amount is not None:
            return to_money(config.late_payment_penalty_amount)
        return to_money(self.settings.default_penalty_amount)


__all__ = ["PenaltyRepository", "PenaltyGenerator"]
