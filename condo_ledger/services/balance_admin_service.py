"""Administrative corrections to house balances, charges and penalties.

Every operation commits in one transaction and then marks the house's
status snapshot stale. Charge adjustments and reversals are limited to
periods that started within the last ``ADJUSTMENT_WINDOW_MONTHS`` months.
"""

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Callable

from condo_ledger.config import Settings, get_settings
from condo_ledger.errors import LedgerError, conflict_error, not_found_error, validation_error
from condo_ledger.models.concepts import ConceptType
from condo_ledger.models.house import House
from condo_ledger.models.period import Period
from condo_ledger.services.allocation_ledger import AllocationRepository
from condo_ledger.services.charge_service import HousePeriodChargeRepository
from condo_ledger.services.db import SessionFactory, transactional_session
from condo_ledger.services.house_balance_service import HouseBalanceRepository
from condo_ledger.services.locale_service import format_amount
from condo_ledger.services.money import ZERO, to_money
from condo_ledger.services.penalty_service import PenaltyRepository
from condo_ledger.services.period_service import PeriodRepository
from condo_ledger.services.snapshot_service import SnapshotCache

logger = logging.getLogger(__name__)

ADJUSTMENT_WINDOW_MONTHS = 3


def months_before(day: date, months: int) -> date:
    """Same day ``months`` months earlier, clamped to that month's length."""
    year, month_index = divmod(day.year * 12 + day.month - 1 - months, 12)
    month = month_index + 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


@dataclass(frozen=True)
class InitialDebtResult:
    house_id: int
    amount: Decimal
    previous_amount: Decimal
    action: str  # "created" or "updated"
    message: str


@dataclass(frozen=True)
class CondonationResult:
    house_id: int
    period_id: int
    condoned_amount: Decimal
    message: str


@dataclass
class CondonationDetail:
    """Outcome for one house of a bulk condonation."""

    house_id: int
    status: str  # "success" or "failed"
    condoned_amount: Decimal = ZERO
    reason: str | None = None


@dataclass
class BulkCondonationResult:
    period_id: int
    total_condoned_amount: Decimal = ZERO
    condoned: int = 0
    failed: int = 0
    details: list[CondonationDetail] = field(default_factory=list)


@dataclass(frozen=True)
class ChargeAdjustmentResult:
    charge_id: int
    house_id: int
    period_id: int
    concept_type: str
    previous_amount: Decimal
    new_amount: Decimal
    difference: Decimal
    is_paid: bool


@dataclass(frozen=True)
class ChargeReversalResult:
    charge_id: int
    house_id: int
    period_id: int
    concept_type: str
    removed_amount: Decimal
    message: str


class _HouseAdminOperation:
    def __init__(
        self,
        session_factory: SessionFactory,
        snapshot_cache: SnapshotCache | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize operation.

        Args:
            session_factory: Factory for the operation's transaction
            snapshot_cache: Invalidated for the affected houses afterwards
            clock: Source of "now" for timestamps and the adjustment window
        """
        self.session_factory = session_factory
        self.snapshot_cache = snapshot_cache
        self.clock = clock

    async def _invalidate_best_effort(self, house_ids: list[int]) -> None:
        if self.snapshot_cache is None:
            return
        try:
            await self.snapshot_cache.invalidate_by_house_ids(house_ids)
        except Exception:
            logger.exception("Snapshot invalidation failed for houses %s", house_ids)

    def _check_adjustment_window(self, period: Period) -> None:
        cutoff = months_before(self.clock().date(), ADJUSTMENT_WINDOW_MONTHS)
        if period.start_date < cutoff:
            raise validation_error(
                f"Period {period.year}-{period.month:02d} is older than "
                f"{ADJUSTMENT_WINDOW_MONTHS} months and can no longer be changed"
            )


class SetInitialDebt(_HouseAdminOperation):
    """Record the debt a house carried before the ledger started.

    The amount becomes the house's opening and current ``debit_balance``;
    later payment remainders reduce it before anything is credited, and a
    reprocess restarts from it.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        snapshot_cache: SnapshotCache | None = None,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize operation.

        Args:
            session_factory: Factory for the operation's transaction
            snapshot_cache: Invalidated for the house afterwards
            settings: Locale used in the result message
            clock: Source of "now"
        """
        super().__init__(session_factory, snapshot_cache, clock)
        self.settings = settings or get_settings()

    async def execute(self, house_id: int, amount: Decimal) -> InitialDebtResult:
        """Set the opening debit of a house.

        Args:
            house_id: House ID
            amount: Opening debt; zero clears it

        Returns:
            InitialDebtResult with the previous debit and a readable message

        Raises:
            LedgerError: VALIDATION for a negative amount, NOT_FOUND for an
                unknown house
        """
        amount = to_money(amount)
        if amount < ZERO:
            raise validation_error("Initial debt cannot be negative")

        async with transactional_session(self.session_factory) as session:
            house = await session.get(House, house_id)
            if house is None:
                raise not_found_error(f"House {house_id} not found")
            number = house.number_house

            balances = HouseBalanceRepository(session)
            existing = await balances.find_by_house_id(house_id)
            previous = to_money(existing.opening_debit) if existing else ZERO
            await balances.set_opening_debit(house_id, amount)

        locale = self.settings.locale
        if previous > ZERO:
            action = "updated"
            message = (
                f"Deuda inicial actualizada de {format_amount(previous, locale=locale)} "
                f"a {format_amount(amount, locale=locale)} para casa {number}"
            )
        else:
            action = "created"
            message = f"Deuda inicial de {format_amount(amount, locale=locale)} registrada para casa {number}"

        logger.info("House %d initial debt %s (was %s)", house_id, amount, previous)
        await self._invalidate_best_effort([house_id])

        return InitialDebtResult(
            house_id=house_id,
            amount=amount,
            previous_amount=previous,
            action=action,
            message=message,
        )


class CondonePenalty(_HouseAdminOperation):
    """Forgive late-payment penalties.

    The penalty row is kept and stamped ``condoned_at`` so the status
    calculator neither counts nor regenerates it.
    """

    async def execute(self, house_id: int, period_id: int) -> CondonationResult:
        """Condone the penalty of one house in one period.

        Raises:
            LedgerError: NOT_FOUND for an unknown period or a missing
                penalty, CONFLICT when it was already condoned
        """
        async with transactional_session(self.session_factory) as session:
            period = await PeriodRepository(session).find_by_id(period_id)
            if period is None:
                raise not_found_error(f"Period {period_id} not found")

            penalty = await PenaltyRepository(session).find_by_house_and_period(house_id, period_id)
            if penalty is None:
                raise not_found_error(f"No penalty for house {house_id} in period {period_id}")
            if penalty.condoned_at is not None:
                raise conflict_error(f"Penalty for house {house_id} in period {period_id} is already condoned")

            penalty.condoned_at = self.clock()
            amount = to_money(penalty.amount)
            label = f"{period.year}-{period.month:02d}"

        logger.info("Condoned penalty of %s for house %d period %s", amount, house_id, label)
        await self._invalidate_best_effort([house_id])

        return CondonationResult(
            house_id=house_id,
            period_id=period_id,
            condoned_amount=amount,
            message=f"Penalidad de {amount} condonada para casa {house_id} en periodo {label}",
        )

    async def execute_multiple(self, period_id: int, house_ids: list[int] | None = None) -> BulkCondonationResult:
        """Condone penalties of several houses in a period.

        Args:
            period_id: Period ID
            house_ids: Houses to condone; every house with an outstanding
                penalty in the period when empty

        Returns:
            BulkCondonationResult; per-house failures are reported, not raised

        Raises:
            LedgerError: NOT_FOUND for an unknown period
        """
        async with self.session_factory() as session:
            if await PeriodRepository(session).find_by_id(period_id) is None:
                raise not_found_error(f"Period {period_id} not found")
            if not house_ids:
                penalties = await PenaltyRepository(session).find_by_period(period_id)
                house_ids = [p.house_id for p in penalties if p.condoned_at is None]

        result = BulkCondonationResult(period_id=period_id)
        for house_id in house_ids:
            try:
                condoned = await self.execute(house_id, period_id)
            except LedgerError as e:
                result.failed += 1
                result.details.append(CondonationDetail(house_id=house_id, status="failed", reason=e.message))
                continue
            result.condoned += 1
            result.total_condoned_amount = to_money(result.total_condoned_amount + condoned.condoned_amount)
            result.details.append(
                CondonationDetail(house_id=house_id, status="success", condoned_amount=condoned.condoned_amount)
            )

        logger.info(
            "Bulk condonation for period %d: %d condoned, %d failed",
            period_id,
            result.condoned,
            result.failed,
        )
        return result


class AdjustHousePeriodCharge(_HouseAdminOperation):
    """Correct the expected amount of one house charge."""

    async def execute(self, charge_id: int, new_amount: Decimal) -> ChargeAdjustmentResult:
        """Set a charge's expected amount.

        Args:
            charge_id: HousePeriodCharge ID
            new_amount: New expected amount

        Returns:
            ChargeAdjustmentResult; ``difference`` is positive for an increase

        Raises:
            LedgerError: VALIDATION for a negative or unchanged amount or a
                period outside the adjustment window, NOT_FOUND for an
                unknown charge, CONFLICT when the new amount is below what
                was already paid
        """
        new_amount = to_money(new_amount)
        if new_amount < ZERO:
            raise validation_error("Charge amount cannot be negative")

        async with transactional_session(self.session_factory) as session:
            charge = await HousePeriodChargeRepository(session).find_by_id(charge_id)
            if charge is None:
                raise not_found_error(f"Charge {charge_id} not found")
            previous = to_money(charge.expected_amount)
            if new_amount == previous:
                raise validation_error("New amount equals the current amount")

            period = await PeriodRepository(session).find_by_id(charge.period_id)
            self._check_adjustment_window(period)

            concept_type = ConceptType(charge.concept_type)
            paid = (await AllocationRepository(session).paid_by_concept(charge.house_id, charge.period_id))[
                concept_type
            ]
            if paid > ZERO and new_amount < paid:
                raise conflict_error(f"Cannot reduce charge below the {paid} already paid")

            charge.expected_amount = new_amount
            house_id, period_id = charge.house_id, charge.period_id

        logger.info("Charge %d adjusted from %s to %s", charge_id, previous, new_amount)
        await self._invalidate_best_effort([house_id])

        return ChargeAdjustmentResult(
            charge_id=charge_id,
            house_id=house_id,
            period_id=period_id,
            concept_type=concept_type.value,
            previous_amount=previous,
            new_amount=new_amount,
            difference=to_money(new_amount - previous),
            is_paid=paid >= new_amount,
        )


class ReverseHousePeriodCharge(_HouseAdminOperation):
    """Delete a charge that was created by mistake and never paid."""

    async def execute(self, charge_id: int) -> ChargeReversalResult:
        """Remove a charge.

        Raises:
            LedgerError: NOT_FOUND for an unknown charge, VALIDATION for a
                period outside the adjustment window, CONFLICT when any
                amount was already allocated to it or it is the house's
                only charge in the period
        """
        async with transactional_session(self.session_factory) as session:
            charges = HousePeriodChargeRepository(session)
            charge = await charges.find_by_id(charge_id)
            if charge is None:
                raise not_found_error(f"Charge {charge_id} not found")

            period = await PeriodRepository(session).find_by_id(charge.period_id)
            self._check_adjustment_window(period)

            concept_type = ConceptType(charge.concept_type)
            paid = (await AllocationRepository(session).paid_by_concept(charge.house_id, charge.period_id))[
                concept_type
            ]
            if paid > ZERO:
                raise conflict_error(f"Charge {charge_id} already has {paid} allocated; adjust it instead")
            if len(await charges.find_by_house_and_period(charge.house_id, charge.period_id)) == 1:
                # Without charge rows the period falls back to config defaults
                raise conflict_error(f"Charge {charge_id} is the last charge of its period; adjust it to zero instead")

            house_id, period_id = charge.house_id, charge.period_id
            removed = to_money(charge.expected_amount)
            await session.delete(charge)
            label = f"{period.year}-{period.month:02d}"

        logger.info("Charge %d (%s) reversed for house %d", charge_id, concept_type.value, house_id)
        await self._invalidate_best_effort([house_id])

        return ChargeReversalResult(
            charge_id=charge_id,
            house_id=house_id,
            period_id=period_id,
            concept_type=concept_type.value,
            removed_amount=removed,
            message=f"Cargo de {removed} ({concept_type.value}) reversado para casa {house_id} en periodo {label}",
        )


__all__ = [
    "ADJUSTMENT_WINDOW_MONTHS",
    "months_before",
    "InitialDebtResult",
    "CondonationResult",
    "CondonationDetail",
    "BulkCondonationResult",
    "ChargeAdjustmentResult",
    "ChargeReversalResult",
    "SetInitialDebt",
    "CondonePenalty",
    "AdjustHousePeriodCharge",
    "ReverseHousePeriodCharge",
]
