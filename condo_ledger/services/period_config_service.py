"""Period configuration resolution: which default amounts apply on a date."""

import logging
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from condo_ledger.models.period_config import PeriodConfig

logger = logging.getLogger(__name__)


class PeriodConfigRepository:
    """Read and create time-versioned period configs.

    Also serves as the PeriodConfigResolver: ``find_active_for_date`` picks the
    config with the latest ``effective_from <= d`` among active rows whose
    ``effective_until`` is NULL or ``>= d``.
    """

    def __init__(self, session: AsyncSession):
        """Initialize with async database session."""
        self.session = session

    async def find_active_for_date(self, on_date: date) -> PeriodConfig | None:
        """Get the config governing ``on_date``.

        Args:
            on_date: Date to resolve (datetimes are truncated to their date)

        Returns:
            Active PeriodConfig or None when no config covers the date
        """
        if isinstance(on_date, datetime):
            on_date = on_date.date()

        stmt = (
            select(PeriodConfig)
            .where(
                PeriodConfig.is_active.is_(True),
                PeriodConfig.effective_from <= on_date,
                or_(
                    PeriodConfig.effective_until.is_(None),
                    PeriodConfig.effective_until >= on_date,
                ),
            )
            .order_by(PeriodConfig.effective_from.desc(), PeriodConfig.id.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_by_id(self, config_id: int) -> PeriodConfig | None:
        """Get config by ID."""
        return await self.session.get(PeriodConfig, config_id)

    async def find_all(self) -> list[PeriodConfig]:
        """All configs, newest first."""
        result = await self.session.execute(
            select(PeriodConfig).order_by(PeriodConfig.effective_from.desc())
        )
        return list(result.scalars().all())

    async def create(
        self,
        default_maintenance_amount: Decimal,
        effective_from: date,
        default_water_amount: Decimal | None = None,
        default_extraordinary_fee_amount: Decimal | None = None,
        payment_due_day: int = 10,
        late_payment_penalty_amount: Decimal = Decimal("100"),
        effective_until: date | None = None,
        is_active: bool = True,
    ) -> PeriodConfig:
        """Create a new config version.

        Raises:
            ValueError: If the due day is outside 1..31 or the range is inverted
        """
        if not 1 <= payment_due_day <= 31:
            raise ValueError(f"payment_due_day must be between 1 and 31, got {payment_due_day}")
        if effective_until is not None and effective_until < effective_from:
            raise ValueError("effective_until must not be before effective_from")

        config = PeriodConfig(
            default_maintenance_amount=default_maintenance_amount,
            default_water_amount=default_water_amount,
            default_extraordinary_fee_amount=default_extraordinary_fee_amount,
            payment_due_day=payment_due_day,
            late_payment_penalty_amount=late_payment_penalty_amount,
            effective_from=effective_from,
            effective_until=effective_until,
            is_active=is_active,
        )
        self.session.add(config)
        await self.session.flush()

        logger.info(
            "Created period config: id=%d, maintenance=%s, effective %s to %s",
            config.id,
            default_maintenance_amount,
            effective_from,
            effective_until or "open",
        )
        return config


__all__ = ["PeriodConfigRepository"]
