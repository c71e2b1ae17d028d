"""SQLAlchemy base model with common fields and model exports."""

from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

# Base class for all models
Base = declarative_base()


class BaseModel:
    """Base model with common timestamp fields."""

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )


# Import models to register them with Base (after Base is defined)
# This must be after Base declaration to avoid circular imports
from condo_ledger.models.concepts import ConceptType, PaymentStatus  # noqa: E402
from condo_ledger.models.house import House  # noqa: E402
from condo_ledger.models.period_config import PeriodConfig  # noqa: E402
from condo_ledger.models.period import Period  # noqa: E402
from condo_ledger.models.house_period_charge import ChargeSource, HousePeriodCharge  # noqa: E402
from condo_ledger.models.house_period_override import HousePeriodOverride  # noqa: E402
from condo_ledger.models.payment_record import PaymentRecord, ValidationStatus  # noqa: E402
from condo_ledger.models.record_allocation import AllocationOrigin, RecordAllocation  # noqa: E402
from condo_ledger.models.house_balance import HouseBalance  # noqa: E402
from condo_ledger.models.cta_penalty import CtaPenalty  # noqa: E402
from condo_ledger.models.house_status_snapshot import HouseStatusSnapshot  # noqa: E402

__all__ = [
    "Base",
    "BaseModel",
    "ConceptType",
    "PaymentStatus",
    "House",
    "PeriodConfig",
    "Period",
    "ChargeSource",
    "HousePeriodCharge",
    "HousePeriodOverride",
    "PaymentRecord",
    "ValidationStatus",
    "AllocationOrigin",
    "RecordAllocation",
    "HouseBalance",
    "CtaPenalty",
    "HouseStatusSnapshot",
]
