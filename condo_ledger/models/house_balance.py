"""House balance ORM model: running credit/debit account per house."""

from decimal import Decimal

from sqlalchemy import CheckConstraint, ForeignKey, Numeric
from sqlalchemy.orm import Mapped, mapped_column

from condo_ledger.models import Base, BaseModel


class HouseBalance(Base, BaseModel):
    """One running account per house.

    ``accumulated_cents`` holds sub-unit leftovers and stays below one unit
    at rest; whole units are folded into ``credit_balance``. ``opening_debit``
    is the debt recorded before the ledger started; a reprocess restarts
    ``debit_balance`` from it.
    """

    __tablename__ = "house_balances"

    house_id: Mapped[int] = mapped_column(
        ForeignKey("houses.id"),
        nullable=False,
        unique=True,
    )
    accumulated_cents: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    credit_balance: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    debit_balance: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    opening_debit: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )

    __table_args__ = (
        CheckConstraint("accumulated_cents >= 0 AND accumulated_cents < 1", name="ck_balance_cents_range"),
        CheckConstraint("credit_balance >= 0", name="ck_balance_credit_non_negative"),
        CheckConstraint("debit_balance >= 0", name="ck_balance_debit_non_negative"),
        CheckConstraint("opening_debit >= 0", name="ck_balance_opening_debit_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"<HouseBalance(house_id={self.house_id}, cents={self.accumulated_cents}, "
            f"credit={self.credit_balance}, debit={self.debit_balance})>"
        )


__all__ = ["HouseBalance"]
