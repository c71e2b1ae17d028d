"""House ORM model (owned by the property registry, read by the ledger)."""

from sqlalchemy import Integer
from sqlalchemy.orm import Mapped, mapped_column

from condo_ledger.models import Base, BaseModel


class House(Base, BaseModel):
    """A condominium house that receives monthly charges."""

    __tablename__ = "houses"

    number_house: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        unique=True,
        index=True,
        comment="House number shown to residents and admins",
    )

    def __repr__(self) -> str:
        return f"<House(id={self.id}, number_house={self.number_house})>"


__all__ = ["House"]
