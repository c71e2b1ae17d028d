"""Wires every ledger component from one session factory."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncEngine

from condo_ledger.config import Settings, get_settings
from condo_ledger.services.backfill_service import BackfillService
from condo_ledger.services.balance_admin_service import (
    AdjustHousePeriodCharge,
    CondonePenalty,
    ReverseHousePeriodCharge,
    SetInitialDebt,
)
from condo_ledger.services.balance_status_service import BalanceStatusCalculator
from condo_ledger.services.credit_service import CreditApplicator
from condo_ledger.services.db import (
    SessionFactory,
    create_engine_for_url,
    create_session_factory,
)
from condo_ledger.services.payment_allocator import PaymentAllocator
from condo_ledger.services.penalty_service import PenaltyGenerator
from condo_ledger.services.period_admin_service import BatchUpdatePeriodCharges, UpdatePeriodConcepts
from condo_ledger.services.period_service import PeriodCache, PeriodRegistry
from condo_ledger.services.snapshot_service import SnapshotCache

logger = logging.getLogger(__name__)


@dataclass
class LedgerEngine:
    """All ledger components sharing one session factory, settings and clock."""

    session_factory: SessionFactory
    settings: Settings
    period_registry: PeriodRegistry
    penalty_generator: PenaltyGenerator
    calculator: BalanceStatusCalculator
    snapshot_cache: SnapshotCache
    credit_applicator: CreditApplicator
    allocator: PaymentAllocator
    backfill_service: BackfillService
    batch_update_charges: BatchUpdatePeriodCharges
    update_period_concepts: UpdatePeriodConcepts
    set_initial_debt: SetInitialDebt
    condone_penalty: CondonePenalty
    adjust_charge: AdjustHousePeriodCharge
    reverse_charge: ReverseHousePeriodCharge

    @classmethod
    def build(
        cls,
        session_factory: SessionFactory,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> "LedgerEngine":
        """Construct and connect every component.

        Args:
            session_factory: Factory all components open sessions from
            settings: Ledger settings (loaded from the environment by default)
            clock: Source of "now" shared by every component

        Returns:
            LedgerEngine
        """
        settings = settings or get_settings()

        period_registry = PeriodRegistry(session_factory, PeriodCache())
        penalty_generator = PenaltyGenerator(session_factory, settings)
        calculator = BalanceStatusCalculator(session_factory, penalty_generator, settings, clock)
        snapshot_cache = SnapshotCache(session_factory, calculator, settings, clock)
        credit_applicator = CreditApplicator(session_factory, snapshot_cache)
        allocator = PaymentAllocator(session_factory, credit_applicator, snapshot_cache, clock)
        backfill_service = BackfillService(
            session_factory, allocator, period_registry, snapshot_cache, clock
        )

        return cls(
            session_factory=session_factory,
            settings=settings,
            period_registry=period_registry,
            penalty_generator=penalty_generator,
            calculator=calculator,
            snapshot_cache=snapshot_cache,
            credit_applicator=credit_applicator,
            allocator=allocator,
            backfill_service=backfill_service,
            batch_update_charges=BatchUpdatePeriodCharges(session_factory, period_registry, snapshot_cache),
            update_period_concepts=UpdatePeriodConcepts(session_factory, snapshot_cache),
            set_initial_debt=SetInitialDebt(session_factory, snapshot_cache, settings, clock),
            condone_penalty=CondonePenalty(session_factory, snapshot_cache, clock),
            adjust_charge=AdjustHousePeriodCharge(session_factory, snapshot_cache, clock),
            reverse_charge=ReverseHousePeriodCharge(session_factory, snapshot_cache, clock),
        )

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> tuple["LedgerEngine", AsyncEngine]:
        """Build an engine on a new database connection pool.

        The caller owns the returned AsyncEngine and must dispose it.
        """
        settings = settings or get_settings()
        db_engine = create_engine_for_url(settings.database_url, echo=settings.database_echo)
        logger.debug("Ledger engine connected to %s", db_engine.url.render_as_string(hide_password=True))
        return cls.build(create_session_factory(db_engine), settings), db_engine


__all__ = ["LedgerEngine"]
