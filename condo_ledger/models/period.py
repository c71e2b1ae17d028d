"""Billing period ORM model: one calendar month for all houses."""

from datetime import date

from sqlalchemy import Boolean, Date, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from condo_ledger.models import Base, BaseModel


class Period(Base, BaseModel):
    """Monthly billing period.

    Created lazily on first use and immutable afterwards, except for the two
    concept flags which admins may toggle.
    """

    __tablename__ = "periods"

    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    period_config_id: Mapped[int | None] = mapped_column(
        ForeignKey("period_configs.id"),
        nullable=True,
        comment="Config active on the 1st of the month when the period was created",
    )
    water_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    extraordinary_fee_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    __table_args__ = (UniqueConstraint("year", "month", name="uq_period_year_month"),)

    @property
    def sort_key(self) -> tuple[int, int]:
        return (self.year, self.month)

    def __repr__(self) -> str:
        return f"<Period(id={self.id}, {self.year}-{self.month:02d})>"


__all__ = ["Period"]
