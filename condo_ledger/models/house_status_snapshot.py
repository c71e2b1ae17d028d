"""Denormalized house status snapshot ORM model."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from condo_ledger.models import Base, BaseModel


class HouseStatusSnapshot(Base, BaseModel):
    """Cached output of the balance status calculation for one house."""

    __tablename__ = "house_status_snapshots"

    house_id: Mapped[int] = mapped_column(ForeignKey("houses.id"), nullable=False, unique=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    total_debt: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    credit_balance: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    total_unpaid_periods: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    enriched_data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    is_stale: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    calculated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    invalidated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (Index("idx_house_status_snapshots_is_stale", "is_stale"),)

    def __repr__(self) -> str:
        return (
            f"<HouseStatusSnapshot(house_id={self.house_id}, status={self.status}, "
            f"stale={self.is_stale}, calculated_at={self.calculated_at})>"
        )


__all__ = ["HouseStatusSnapshot"]
