"""Expected charge per house, period and concept."""

from decimal import Decimal
from enum import Enum

from sqlalchemy import ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from condo_ledger.models import Base, BaseModel
from condo_ledger.models.concepts import ConceptType


class ChargeSource(str, Enum):
    """Where an expected amount came from."""

    PERIOD_CONFIG = "period_config"
    OVERRIDE = "override"
    MANUAL = "manual"


class HousePeriodCharge(Base, BaseModel):
    """Authoritative expected amount for one concept of one house in one period.

    When a period has no rows, callers fall back to the period config defaults
    (periods created before charges were seeded).
    """

    __tablename__ = "house_period_charges"

    house_id: Mapped[int] = mapped_column(ForeignKey("houses.id"), nullable=False)
    period_id: Mapped[int] = mapped_column(ForeignKey("periods.id"), nullable=False)
    concept_type: Mapped[ConceptType] = mapped_column(String(32), nullable=False)
    expected_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    source: Mapped[ChargeSource] = mapped_column(
        String(32),
        nullable=False,
        default=ChargeSource.PERIOD_CONFIG,
    )

    __table_args__ = (
        UniqueConstraint("house_id", "period_id", "concept_type", name="uq_charge_house_period_concept"),
        Index("idx_charge_period", "period_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<HousePeriodCharge(house_id={self.house_id}, period_id={self.period_id}, "
            f"concept={self.concept_type}, expected={self.expected_amount}, source={self.source})>"
        )


__all__ = ["HousePeriodCharge", "ChargeSource"]
