"""Integration tests for initial debt, penalty condonation and charge corrections."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from condo_ledger.errors import ErrorKind, LedgerError
from condo_ledger.models.concepts import ConceptType
from condo_ledger.models.cta_penalty import CtaPenalty
from condo_ledger.models.house_period_charge import HousePeriodCharge
from condo_ledger.models.house_status_snapshot import HouseStatusSnapshot
from condo_ledger.services.balance_admin_service import months_before
from condo_ledger.services.balance_status_service import HouseStatus
from condo_ledger.services.money import ZERO
from condo_ledger.services.payment_allocator import AllocationRequest

pytestmark = pytest.mark.integration


@pytest.fixture
def pay(ledger, make_payment):
    async def _pay(house, amount, period_id=None):
        payment = await make_payment(house, amount)
        return await ledger.allocator.allocate(
            AllocationRequest(payment.id, house.id, payment.amount, period_id)
        )

    return _pay


@pytest.fixture
def charge_of(fetch):
    async def _charge(house, period, concept_type):
        [charge] = await fetch(
            select(HousePeriodCharge).where(
                HousePeriodCharge.house_id == house.id,
                HousePeriodCharge.period_id == period.id,
                HousePeriodCharge.concept_type == concept_type,
            )
        )
        return charge

    return _charge


async def assert_kind(kind, call):
    with pytest.raises(LedgerError) as exc_info:
        await call
    assert exc_info.value.kind == kind
    return exc_info.value


def test_months_before_clamps_day():
    assert months_before(date(2025, 3, 20), 3) == date(2024, 12, 20)
    assert months_before(date(2025, 5, 31), 3) == date(2025, 2, 28)
    assert months_before(date(2025, 1, 15), 0) == date(2025, 1, 15)


class TestSetInitialDebt:
    async def test_records_opening_debit(self, ledger, houses, make_config, balance_of, fetch):
        await make_config(maintenance="800", due_day=25)
        await ledger.period_registry.ensure_period_exists(2025, 3)
        house = houses[0]
        await ledger.snapshot_cache.get_or_calculate(house.id, house)

        result = await ledger.set_initial_debt.execute(house.id, Decimal("500"))

        assert result.action == "created"
        assert result.previous_amount == ZERO
        assert "500.00" in result.message
        stored = await balance_of(house)
        assert (stored.debit_balance, stored.opening_debit) == (Decimal("500.00"), Decimal("500.00"))
        [snapshot] = await fetch(select(HouseStatusSnapshot))
        assert snapshot.is_stale is True

        status = await ledger.snapshot_cache.get_or_calculate(house.id, house)
        assert status.status == HouseStatus.MOROSA
        assert status.total_debt == Decimal("1300.00")

    async def test_second_call_updates(self, ledger, houses):
        await ledger.set_initial_debt.execute(houses[0].id, Decimal("500"))

        result = await ledger.set_initial_debt.execute(houses[0].id, Decimal("300"))

        assert result.action == "updated"
        assert result.previous_amount == Decimal("500.00")
        assert "300.00" in result.message

    async def test_payment_remainder_reduces_debit_first(self, ledger, houses, make_config, pay, balance_of):
        await make_config(maintenance="800", due_day=25)
        await ledger.period_registry.ensure_period_exists(2025, 3)
        house = houses[0]
        await ledger.set_initial_debt.execute(house.id, Decimal("500"))

        result = await pay(house, "1350.50")

        assert result.remaining_amount == Decimal("550.50")
        stored = await balance_of(house)
        assert stored.debit_balance == ZERO
        assert stored.credit_balance == Decimal("50.00")
        assert stored.accumulated_cents == Decimal("0.50")

        status = await ledger.calculator.calculate(house.id, house)
        assert status.status == HouseStatus.SALDO_A_FAVOR
        assert status.total_debt == ZERO

    async def test_reprocess_restarts_from_opening_debit(self, ledger, houses, make_config, make_payment, balance_of):
        await make_config(maintenance="800", due_day=25)
        await ledger.period_registry.ensure_period_exists(2025, 3)
        house = houses[0]
        await ledger.set_initial_debt.execute(house.id, Decimal("500"))
        await make_payment(house, "1000", date(2025, 3, 5))

        await ledger.backfill_service.backfill()
        assert (await balance_of(house)).debit_balance == Decimal("300.00")

        await ledger.backfill_service.reprocess()

        stored = await balance_of(house)
        assert stored.opening_debit == Decimal("500.00")
        assert stored.debit_balance == Decimal("300.00")

    async def test_rejects_negative_amount_and_unknown_house(self, ledger, houses):
        await assert_kind(ErrorKind.VALIDATION, ledger.set_initial_debt.execute(houses[0].id, Decimal("-1")))
        await assert_kind(ErrorKind.NOT_FOUND, ledger.set_initial_debt.execute(999, Decimal("100")))


class TestCondonePenalty:
    @pytest.fixture
    async def february(self, ledger, houses, make_config):
        """An overdue February with penalties generated for both houses."""
        await make_config(maintenance="800", due_day=10, penalty="100")
        period = await ledger.period_registry.ensure_period_exists(2025, 2)
        for house in houses:
            await ledger.calculator.calculate(house.id, house)
        return period

    async def test_condoned_penalty_is_not_counted_or_regenerated(self, ledger, houses, february, fetch, clock):
        house = houses[0]

        result = await ledger.condone_penalty.execute(house.id, february.id)

        assert result.condoned_amount == Decimal("100.00")
        assert "2025-02" in result.message
        penalties = {p.house_id: p for p in await fetch(select(CtaPenalty))}
        assert penalties[house.id].condoned_at == clock()
        assert penalties[houses[1].id].condoned_at is None

        status = await ledger.calculator.calculate(house.id, house)
        assert status.summary.total_penalties == ZERO
        assert status.status == HouseStatus.MOROSA
        assert len(await fetch(select(CtaPenalty))) == 2

    async def test_condoning_twice_conflicts(self, ledger, houses, february):
        await ledger.condone_penalty.execute(houses[0].id, february.id)

        error = await assert_kind(ErrorKind.CONFLICT, ledger.condone_penalty.execute(houses[0].id, february.id))
        assert "already condoned" in error.message

    async def test_missing_penalty_or_period(self, ledger, houses, make_config):
        await make_config(due_day=25)
        march = await ledger.period_registry.ensure_period_exists(2025, 3)

        await assert_kind(ErrorKind.NOT_FOUND, ledger.condone_penalty.execute(houses[0].id, march.id))
        await assert_kind(ErrorKind.NOT_FOUND, ledger.condone_penalty.execute(houses[0].id, 999))

    async def test_bulk_condonation(self, ledger, houses, february):
        first = await ledger.condone_penalty.execute_multiple(february.id)

        assert (first.condoned, first.failed) == (2, 0)
        assert first.total_condoned_amount == Decimal("200.00")

        second = await ledger.condone_penalty.execute_multiple(february.id, [houses[0].id])

        assert (second.condoned, second.failed) == (0, 1)
        assert second.details[0].status == "failed"
        assert "already condoned" in second.details[0].reason
        assert (await ledger.condone_penalty.execute_multiple(february.id)).details == []

    async def test_bulk_condonation_unknown_period(self, ledger, houses):
        await assert_kind(ErrorKind.NOT_FOUND, ledger.condone_penalty.execute_multiple(999))


class TestChargeCorrections:
    @pytest.fixture
    async def march(self, ledger, houses, make_config):
        await make_config(maintenance="800", water="100", due_day=25)
        return await ledger.period_registry.ensure_period_exists(2025, 3)

    async def test_adjust_charge(self, ledger, houses, march, pay, charge_of):
        house = houses[0]
        charge = await charge_of(house, march, ConceptType.MAINTENANCE.value)
        await pay(house, "300")

        result = await ledger.adjust_charge.execute(charge.id, Decimal("900"))

        assert result.previous_amount == Decimal("800.00")
        assert result.new_amount == Decimal("900.00")
        assert result.difference == Decimal("100.00")
        assert result.is_paid is False
        assert (await charge_of(house, march, ConceptType.MAINTENANCE.value)).expected_amount == Decimal("900.00")

        status = await ledger.calculator.calculate(house.id, house)
        assert status.unpaid_periods[0].expected_total == Decimal("1000.00")

    async def test_adjust_charge_errors(self, ledger, houses, march, pay, charge_of):
        house = houses[0]
        charge = await charge_of(house, march, ConceptType.MAINTENANCE.value)
        await pay(house, "300")

        await assert_kind(ErrorKind.VALIDATION, ledger.adjust_charge.execute(charge.id, Decimal("-1")))
        await assert_kind(ErrorKind.VALIDATION, ledger.adjust_charge.execute(charge.id, Decimal("800")))
        await assert_kind(ErrorKind.CONFLICT, ledger.adjust_charge.execute(charge.id, Decimal("200")))
        await assert_kind(ErrorKind.NOT_FOUND, ledger.adjust_charge.execute(999, Decimal("100")))

    async def test_periods_outside_window_are_locked(self, ledger, houses, march, charge_of):
        december = await ledger.period_registry.ensure_period_exists(2024, 12)
        charge = await charge_of(houses[0], december, ConceptType.WATER.value)

        await assert_kind(ErrorKind.VALIDATION, ledger.adjust_charge.execute(charge.id, Decimal("50")))
        await assert_kind(ErrorKind.VALIDATION, ledger.reverse_charge.execute(charge.id))

    async def test_reverse_charge(self, ledger, houses, march, charge_of, fetch):
        house = houses[0]
        water = await charge_of(house, march, ConceptType.WATER.value)

        result = await ledger.reverse_charge.execute(water.id)

        assert result.removed_amount == Decimal("100.00")
        assert result.concept_type == "water"
        remaining = await fetch(
            select(HousePeriodCharge).where(HousePeriodCharge.house_id == house.id)
        )
        assert [c.concept_type for c in remaining] == [ConceptType.MAINTENANCE.value]
        status = await ledger.calculator.calculate(house.id, house)
        assert status.unpaid_periods[0].expected_total == Decimal("800.00")

        maintenance = await charge_of(house, march, ConceptType.MAINTENANCE.value)
        error = await assert_kind(ErrorKind.CONFLICT, ledger.reverse_charge.execute(maintenance.id))
        assert "last charge" in error.message

    async def test_paid_charge_cannot_be_reversed(self, ledger, houses, march, pay, charge_of):
        house = houses[1]
        await pay(house, "850")
        water = await charge_of(house, march, ConceptType.WATER.value)

        await assert_kind(ErrorKind.CONFLICT, ledger.reverse_charge.execute(water.id))
        await assert_kind(ErrorKind.NOT_FOUND, ledger.reverse_charge.execute(999))
