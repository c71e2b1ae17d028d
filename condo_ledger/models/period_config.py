"""Period configuration ORM model: time-versioned default charge amounts."""

from datetime import date
from decimal import Decimal

from sqlalchemy import Boolean, Date, Index, Integer, Numeric
from sqlalchemy.orm import Mapped, mapped_column

from condo_ledger.models import Base, BaseModel


class PeriodConfig(Base, BaseModel):
    """Default amounts, due day and penalty valid for a date range.

    At most one active config should cover any given date. Resolution picks
    the latest ``effective_from`` among active rows whose ``effective_until``
    is open or not yet reached.
    """

    __tablename__ = "period_configs"

    default_maintenance_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("800"),
        comment="Monthly maintenance charged to every house",
    )
    default_water_amount: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2),
        nullable=True,
        comment="Monthly water fee (NULL = not charged)",
    )
    default_extraordinary_fee_amount: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2),
        nullable=True,
        comment="Monthly extraordinary fee (NULL = not charged)",
    )
    payment_due_day: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=10,
        comment="Day of month after which an unpaid period is overdue",
    )
    late_payment_penalty_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("100"),
        comment="Penalty generated for an overdue period",
    )
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_until: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (Index("idx_period_config_effective", "is_active", "effective_from"),)

    def __repr__(self) -> str:
        return (
            f"<PeriodConfig(id={self.id}, maintenance={self.default_maintenance_amount}, "
            f"from={self.effective_from}, until={self.effective_until}, active={self.is_active})>"
        )


__all__ = ["PeriodConfig"]
