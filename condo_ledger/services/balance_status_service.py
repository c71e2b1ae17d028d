"""House balance status: per-period payment detail and overall standing.

A house is classified with strict priority:
1. SALDO_A_FAVOR: positive credit, no debit and no unpaid periods
2. MOROSA: opening debit, or at least one unpaid period past its due date
3. AL_DIA: everything else
"""

import calendar
import logging
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Callable

from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from condo_ledger.config import Settings, get_settings
from condo_ledger.models.house import House
from condo_ledger.models.period import Period
from condo_ledger.models.period_config import PeriodConfig
from condo_ledger.services.allocation_ledger import AllocationRepository
from condo_ledger.services.charge_service import ChargeSchedule
from condo_ledger.services.db import SessionFactory
from condo_ledger.services.house_balance_service import HouseBalanceRepository
from condo_ledger.services.locale_service import month_display_name
from condo_ledger.services.money import ZERO, to_money
from condo_ledger.services.penalty_service import PenaltyGenerator, PenaltyRepository
from condo_ledger.services.period_config_service import PeriodConfigRepository
from condo_ledger.services.period_service import PeriodRepository

logger = logging.getLogger(__name__)

NO_PERIODS_MESSAGE = "Sin periodos registrados"


class HouseStatus(str, Enum):
    """Overall standing of a house."""

    MOROSA = "morosa"
    AL_DIA = "al_dia"
    SALDO_A_FAVOR = "saldo_a_favor"


class PeriodPaymentStatus(str, Enum):
    PAID = "paid"
    PARTIAL = "partial"
    UNPAID = "unpaid"


class ConceptBreakdown(BaseModel):
    """Expected, paid and pending amounts of one concept in a period."""

    concept_type: str
    expected_amount: Decimal
    paid_amount: Decimal
    pending_amount: Decimal


class PeriodPaymentDetail(BaseModel):
    """Payment standing of a house in one period."""

    period_id: int
    year: int
    month: int
    display_name: str
    expected_total: Decimal
    paid_total: Decimal
    pending_total: Decimal
    penalty_amount: Decimal
    status: PeriodPaymentStatus
    concepts: list[ConceptBreakdown] = Field(default_factory=list)
    is_overdue: bool = False


class BalanceSummary(BaseModel):
    total_expected: Decimal = ZERO
    total_paid: Decimal = ZERO
    total_pending: Decimal = ZERO
    total_penalties: Decimal = ZERO


class EnrichedHouseBalance(BaseModel):
    """Full balance view of a house, as cached in the status snapshot."""

    house_id: int
    house_number: int
    status: HouseStatus
    total_debt: Decimal = ZERO
    credit_balance: Decimal = ZERO
    debit_balance: Decimal = ZERO
    accumulated_cents: Decimal = ZERO
    unpaid_periods: list[PeriodPaymentDetail] = Field(default_factory=list)
    paid_periods: list[PeriodPaymentDetail] = Field(default_factory=list)
    current_period: PeriodPaymentDetail | None = None
    next_due_date: date | None = None
    deadline_message: str | None = None
    total_unpaid_periods: int = 0
    summary: BalanceSummary = Field(default_factory=BalanceSummary)


def due_date_for(year: int, month: int, due_day: int) -> date:
    """Due date of a month, with the day clamped to the month length."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(max(due_day, 1), last_day))


def is_past_due(now: datetime, due: date) -> bool:
    """True once ``now`` has passed the start of the due day."""
    return now > datetime.combine(due, time.min, tzinfo=now.tzinfo)


def next_due_date(today: date, due_day: int) -> date:
    """Upcoming due date: this month's, or next month's once today is past it."""
    year, month = today.year, today.month
    if today.day > due_day:
        month += 1
        if month > 12:
            month = 1
            year += 1
    return due_date_for(year, month, due_day)


def deadline_message(status: HouseStatus, unpaid_count: int, due: date) -> str:
    """Human-readable deadline notice for a house status."""
    due_str = due.isoformat()
    if status == HouseStatus.MOROSA:
        return f"Casa morosa con {unpaid_count} periodo(s) sin pagar. Siguiente fecha limite: {due_str}"
    if status == HouseStatus.SALDO_A_FAVOR:
        return f"Saldo a favor disponible. Siguiente fecha limite de pago: {due_str}"
    return f"Al corriente. Siguiente fecha limite de pago: {due_str}"


def classify_house(
    unpaid_periods: list[PeriodPaymentDetail],
    credit_balance: Decimal,
    debit_balance: Decimal = ZERO,
) -> HouseStatus:
    if credit_balance > ZERO and debit_balance <= ZERO and not unpaid_periods:
        return HouseStatus.SALDO_A_FAVOR
    if debit_balance > ZERO or any(p.is_overdue for p in unpaid_periods):
        return HouseStatus.MOROSA
    return HouseStatus.AL_DIA


class BalanceStatusCalculator:
    """Derives the enriched balance view of a house from the ledger.

    Overdue periods trigger idempotent penalty generation as a side effect.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        penalty_generator: PenaltyGenerator,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize calculator.

        Args:
            session_factory: Factory for the calculation's read session
            penalty_generator: Creates penalties for overdue periods
            settings: Fallback due day, maintenance and locale
            clock: Source of "now"
        """
        self.session_factory = session_factory
        self.penalty_generator = penalty_generator
        self.settings = settings or get_settings()
        self.clock = clock

    async def calculate(self, house_id: int, house: House) -> EnrichedHouseBalance:
        """Compute the full balance status of a house.

        Args:
            house_id: House ID
            house: House row (provides the house number)

        Returns:
            EnrichedHouseBalance
        """
        now = self.clock()
        today = now.date()

        async with self.session_factory() as session:
            periods = await PeriodRepository(session).find_all()
            if not periods:
                return self._empty(house_id, house)

            balance = await HouseBalanceRepository(session).find_by_house_id(house_id)
            credit = to_money(balance.credit_balance) if balance else ZERO
            cents = to_money(balance.accumulated_cents) if balance else ZERO
            debit = to_money(balance.debit_balance) if balance else ZERO

            details = []
            for period in periods:
                details.append(await self._period_detail(session, house_id, period, now))

            active_config = await PeriodConfigRepository(session).find_active_for_date(today)

        unpaid = [d for d in details if d.status != PeriodPaymentStatus.PAID]
        paid = [d for d in details if d.status == PeriodPaymentStatus.PAID]
        current = next((d for d in details if d.year == today.year and d.month == today.month), None)

        status = classify_house(unpaid, credit, debit)
        due_day = active_config.payment_due_day if active_config else self.settings.default_due_day
        due = next_due_date(today, due_day)

        total_pending = to_money(sum((d.pending_total for d in details), ZERO))
        summary = BalanceSummary(
            total_expected=to_money(sum((d.expected_total for d in details), ZERO)),
            total_paid=to_money(sum((d.paid_total for d in details), ZERO)),
            total_pending=total_pending,
            total_penalties=to_money(sum((d.penalty_amount for d in details), ZERO)),
        )

        logger.debug(
            "House %d status=%s debt=%s unpaid=%d",
            house_id,
            status.value,
            total_pending,
            len(unpaid),
        )

        return EnrichedHouseBalance(
            house_id=house_id,
            house_number=house.number_house,
            status=status,
            total_debt=to_money(total_pending + debit),
            credit_balance=credit,
            debit_balance=debit,
            accumulated_cents=cents,
            unpaid_periods=unpaid,
            paid_periods=paid,
            current_period=current,
            next_due_date=due,
            deadline_message=deadline_message(status, len(unpaid), due),
            total_unpaid_periods=len(unpaid),
            summary=summary,
        )

    async def _period_detail(
        self, session: AsyncSession, house_id: int, period: Period, now: datetime
    ) -> PeriodPaymentDetail:
        config = await PeriodConfigRepository(session).find_active_for_date(period.start_date)
        if config is None:
            logger.warning(
                "No PeriodConfig for period %d-%02d, using default maintenance",
                period.year,
                period.month,
            )

        expected = await ChargeSchedule(session).expected_concepts(
            house_id,
            period,
            config,
            missing_config_maintenance=self.settings.default_maintenance_amount,
        )
        paid_by_concept = await AllocationRepository(session).paid_by_concept(house_id, period.id)

        concepts = []
        for concept in expected:
            paid_amount = paid_by_concept[concept.concept_type]
            concepts.append(
                ConceptBreakdown(
                    concept_type=concept.concept_type.value,
                    expected_amount=concept.expected_amount,
                    paid_amount=paid_amount,
                    pending_amount=max(ZERO, to_money(concept.expected_amount - paid_amount)),
                )
            )

        expected_total = to_money(sum((c.expected_amount for c in expected), ZERO))
        paid_total = to_money(sum(paid_by_concept.values(), ZERO))
        pending_total = max(ZERO, to_money(expected_total - paid_total))

        due_day = config.payment_due_day if config else self.settings.default_due_day
        is_overdue = is_past_due(now, due_date_for(period.year, period.month, due_day)) and pending_total > ZERO

        penalty_amount = ZERO
        if is_overdue:
            penalty_amount = await self._penalty_amount(session, house_id, period, config)

        if pending_total <= ZERO:
            status = PeriodPaymentStatus.PAID
        elif paid_total > ZERO:
            status = PeriodPaymentStatus.PARTIAL
        else:
            status = PeriodPaymentStatus.UNPAID

        return PeriodPaymentDetail(
            period_id=period.id,
            year=period.year,
            month=period.month,
            display_name=f"{month_display_name(period.month, self.settings.locale)} {period.year}",
            expected_total=expected_total,
            paid_total=paid_total,
            pending_total=pending_total,
            penalty_amount=penalty_amount,
            status=status,
            concepts=concepts,
            is_overdue=is_overdue,
        )

    async def _penalty_amount(
        self,
        session: AsyncSession,
        house_id: int,
        period: Period,
        config: PeriodConfig | None,
    ) -> Decimal:
        penalty = await self.penalty_generator.generate(house_id, period.id, period.start_date)
        if penalty is not None:
            return to_money(penalty.amount)

        existing = await PenaltyRepository(session).find_by_house_and_period(house_id, period.id)
        if existing is not None and existing.condoned_at is not None:
            return ZERO
        if existing is not None:
            return to_money(existing.amount)
        if config is not None:
            return to_money(config.late_payment_penalty_amount)
        return to_money(self.settings.default_penalty_amount)

    def _empty(self, house_id: int, house: House) -> EnrichedHouseBalance:
        return EnrichedHouseBalance(
            house_id=house_id,
            house_number=house.number_house,
            status=HouseStatus.AL_DIA,
            deadline_message=NO_PERIODS_MESSAGE,
        )


__all__ = [
    "HouseStatus",
    "PeriodPaymentStatus",
    "ConceptBreakdown",
    "PeriodPaymentDetail",
    "BalanceSummary",
    "EnrichedHouseBalance",
    "BalanceStatusCalculator",
    "due_date_for",
    "is_past_due",
    "next_due_date",
    "deadline_message",
    "classify_house",
]
