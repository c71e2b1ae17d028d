"""Record allocation ORM model: append-only payment application facts."""

from decimal import Decimal
from enum import Enum

from sqlalchemy import CheckConstraint, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from condo_ledger.models import Base, BaseModel
from condo_ledger.models.concepts import ConceptType, PaymentStatus


class AllocationOrigin(str, Enum):
    """What produced an allocation."""

    PAYMENT = "payment"
    """A confirmed payment record (record_id is set)"""

    CREDIT_SWEEP = "credit_sweep"
    """Surplus credit applied by the system (record_id is NULL)"""


class RecordAllocation(Base, BaseModel):
    """This much of a payment (or of surplus credit) covered this concept in this period.

    Rows are never updated; only a full reprocess deletes them.
    """

    __tablename__ = "record_allocations"

    origin: Mapped[AllocationOrigin] = mapped_column(
        String(32),
        nullable=False,
        default=AllocationOrigin.PAYMENT,
    )
    record_id: Mapped[int | None] = mapped_column(
        ForeignKey("payment_records.id"),
        nullable=True,
        index=True,
    )
    house_id: Mapped[int] = mapped_column(ForeignKey("houses.id"), nullable=False)
    period_id: Mapped[int] = mapped_column(ForeignKey("periods.id"), nullable=False)
    concept_type: Mapped[ConceptType] = mapped_column(String(32), nullable=False)
    concept_id: Mapped[int | None] = mapped_column(
        ForeignKey("house_period_charges.id", ondelete="SET NULL"),
        nullable=True,
        comment="Charge row covered by this allocation (NULL on config fallback)",
    )
    allocated_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    expected_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payment_status: Mapped[PaymentStatus] = mapped_column(String(16), nullable=False)

    __table_args__ = (
        CheckConstraint("allocated_amount > 0", name="ck_allocation_amount_positive"),
        CheckConstraint(
            "(origin = 'payment' AND record_id IS NOT NULL) OR "
            "(origin = 'credit_sweep' AND record_id IS NULL)",
            name="ck_allocation_origin_record",
        ),
        Index("idx_allocation_house_period", "house_id", "period_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<RecordAllocation(id={self.id}, origin={self.origin}, record_id={self.record_id}, "
            f"house_id={self.house_id}, period_id={self.period_id}, concept={self.concept_type}, "
            f"allocated={self.allocated_amount}/{self.expected_amount}, status={self.payment_status})>"
        )


__all__ = ["RecordAllocation", "AllocationOrigin"]
