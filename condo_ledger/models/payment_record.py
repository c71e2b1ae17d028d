"""Payment record ORM model (written by reconciliation, read by backfill)."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from condo_ledger.models import Base, BaseModel


class ValidationStatus(str, Enum):
    """Reconciliation state of a payment record."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    REQUIRES_MANUAL = "requires-manual"
    CONFLICT = "conflict"
    NOT_FOUND = "not-found"


class PaymentRecord(Base, BaseModel):
    """A bank deposit that reconciliation has matched to a house."""

    __tablename__ = "payment_records"

    house_id: Mapped[int] = mapped_column(ForeignKey("houses.id"), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    validation_status: Mapped[ValidationStatus] = mapped_column(
        String(32),
        nullable=False,
        default=ValidationStatus.PENDING,
    )
    is_deposit: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    allocated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Set when the ledger has applied this payment",
    )

    __table_args__ = (Index("idx_payment_record_status_date", "validation_status", "transaction_date"),)

    def __repr__(self) -> str:
        return (
            f"<PaymentRecord(id={self.id}, house_id={self.house_id}, amount={self.amount}, "
            f"date={self.transaction_date}, status={self.validation_status})>"
        )


__all__ = ["PaymentRecord", "ValidationStatus"]
