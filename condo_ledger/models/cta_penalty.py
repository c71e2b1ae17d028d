"""Late payment penalty ORM model."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Numeric, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from condo_ledger.models import Base, BaseModel


class CtaPenalty(Base, BaseModel):
    """Penalty fact for an overdue house/period.

    The unique constraint is the authority for idempotent generation. A
    condoned penalty keeps its row so it is never generated again.
    """

    __tablename__ = "cta_penalties"

    house_id: Mapped[int] = mapped_column(ForeignKey("houses.id"), nullable=False)
    period_id: Mapped[int] = mapped_column(ForeignKey("periods.id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    condoned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (UniqueConstraint("house_id", "period_id", name="uq_penalty_house_period"),)

    def __repr__(self) -> str:
        return f"<CtaPenalty(house_id={self.house_id}, period_id={self.period_id}, amount={self.amount})>"


__all__ = ["CtaPenalty"]
