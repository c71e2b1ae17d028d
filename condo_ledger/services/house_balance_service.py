"""Running credit/debit account per house, with sub-unit accumulation."""

import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from condo_ledger.models.house_balance import HouseBalance
from condo_ledger.services.money import ZERO, split_units, to_money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BalanceSnapshot:
    """Point-in-time copy of a house balance."""

    accumulated_cents: Decimal
    credit_balance: Decimal
    debit_balance: Decimal

    @classmethod
    def of(cls, balance: HouseBalance) -> "BalanceSnapshot":
        return cls(
            accumulated_cents=to_money(balance.accumulated_cents),
            credit_balance=to_money(balance.credit_balance),
            debit_balance=to_money(balance.debit_balance),
        )


def apply_remainder(balance: BalanceSnapshot, remainder: Decimal) -> BalanceSnapshot:
    """Fold an unapplied payment remainder into a balance.

    Order of application:
    1. Reduce debit balance
    2. Fractional part accumulates into cents; whole-unit overflow moves to credit
    3. Whole part adds to credit

    Args:
        balance: Balance before the payment
        remainder: Amount the payment left after covering every concept

    Returns:
        New balance with every field rounded to 2 decimal places
    """
    remaining = to_money(remainder)
    cents = to_money(balance.accumulated_cents)
    credit = to_money(balance.credit_balance)
    debit = to_money(balance.debit_balance)

    if remaining <= ZERO:
        return BalanceSnapshot(cents, credit, debit)

    if debit > ZERO:
        applied = min(debit, remaining)
        debit -= applied
        remaining -= applied

    whole, fraction = split_units(remaining)

    cents += fraction
    if cents >= 1:
        overflow, cents = split_units(cents)
        credit += overflow

    credit += whole

    return BalanceSnapshot(
        accumulated_cents=to_money(cents),
        credit_balance=to_money(credit),
        debit_balance=to_money(debit),
    )


class HouseBalanceRepository:
    """Database operations for ``house_balances``."""

    def __init__(self, session: AsyncSession):
        """Initialize with async database session."""
        self.session = session

    async def find_by_house_id(self, house_id: int) -> HouseBalance | None:
        """Balance row of a house, if one exists."""
        stmt = select(HouseBalance).where(HouseBalance.house_id == house_id)
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def get_or_create(self, house_id: int) -> HouseBalance:
        """Balance row of a house, created at zero on first use."""
        balance = await self.find_by_house_id(house_id)
        if balance is None:
            balance = HouseBalance(
                house_id=house_id,
                accumulated_cents=ZERO,
                credit_balance=ZERO,
                debit_balance=ZERO,
                opening_debit=ZERO,
            )
            self.session.add(balance)
            await self.session.flush()
            logger.debug("Created balance for house %d", house_id)
        return balance

    async def update(
        self,
        house_id: int,
        accumulated_cents: Decimal | None = None,
        credit_balance: Decimal | None = None,
        debit_balance: Decimal | None = None,
    ) -> HouseBalance:
        """Set the given fields (rounded to cents) and leave the others untouched."""
        balance = await self.get_or_create(house_id)
        if accumulated_cents is not None:
            balance.accumulated_cents = to_money(accumulated_cents)
        if credit_balance is not None:
            balance.credit_balance = to_money(credit_balance)
        if debit_balance is not None:
            balance.debit_balance = to_money(debit_balance)
        await self.session.flush()
        return balance

    async def set_opening_debit(self, house_id: int, amount: Decimal) -> HouseBalance:
        """Record the opening debit and make it the current debit."""
        balance = await self.get_or_create(house_id)
        balance.opening_debit = to_money(amount)
        balance.debit_balance = to_money(amount)
        await self.session.flush()
        return balance

    async def reset_all(self) -> int:
        """Zero cents and credit and restart debit from the opening debit.

        Returns:
            Number of rows reset
        """
        result = await self.session.execute(
            update(HouseBalance).values(
                accumulated_cents=ZERO,
                credit_balance=ZERO,
                debit_balance=HouseBalance.opening_debit,
            )
        )
        reset = result.rowcount or 0
        logger.info("Reset %d house balances", reset)
        return reset


__all__ = ["BalanceSnapshot", "HouseBalanceRepository", "apply_remainder"]
