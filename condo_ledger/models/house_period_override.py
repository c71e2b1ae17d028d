"""Per-house custom amount for a concept in a period."""

from decimal import Decimal

from sqlalchemy import ForeignKey, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from condo_ledger.models import Base, BaseModel
from condo_ledger.models.concepts import ConceptType


class HousePeriodOverride(Base, BaseModel):
    """Replaces the config default for one house/period/concept."""

    __tablename__ = "house_period_overrides"

    house_id: Mapped[int] = mapped_column(ForeignKey("houses.id"), nullable=False, index=True)
    period_id: Mapped[int] = mapped_column(ForeignKey("periods.id"), nullable=False, index=True)
    concept_type: Mapped[ConceptType] = mapped_column(String(32), nullable=False)
    custom_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("house_id", "period_id", "concept_type", name="uq_override_house_period_concept"),
    )

    def __repr__(self) -> str:
        return (
            f"<HousePeriodOverride(house_id={self.house_id}, period_id={self.period_id}, "
            f"concept={self.concept_type}, amount={self.custom_amount})>"
        )


__all__ = ["HousePeriodOverride"]
