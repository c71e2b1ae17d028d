"""Billable concepts and allocation payment states."""

from enum import Enum


class ConceptType(str, Enum):
    """Billable categories charged to a house each period."""

    MAINTENANCE = "maintenance"
    """Monthly maintenance fee (always charged)"""

    WATER = "water"
    """Water fee (charged while the period's water flag is active)"""

    EXTRAORDINARY_FEE = "extraordinary_fee"
    """Extraordinary fee (charged while the period's extraordinary flag is active)"""


# Payments cover concepts in this order; never reordered per period.
CONCEPT_PRIORITY: tuple[ConceptType, ...] = (
    ConceptType.MAINTENANCE,
    ConceptType.WATER,
    ConceptType.EXTRAORDINARY_FEE,
)


def concept_rank(concept: ConceptType | str) -> int:
    """Position of a concept in the payment priority order (unknown concepts last)."""
    try:
        return CONCEPT_PRIORITY.index(ConceptType(concept))
    except ValueError:
        return len(CONCEPT_PRIORITY)


class PaymentStatus(str, Enum):
    """Coverage state of a concept after an allocation."""

    COMPLETE = "complete"
    PARTIAL = "partial"


__all__ = ["ConceptType", "PaymentStatus", "CONCEPT_PRIORITY", "concept_rank"]
