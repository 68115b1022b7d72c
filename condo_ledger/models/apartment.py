"""Apartment ORM model: a unit's occupancy record and its monthly fee configuration."""

from decimal import Decimal
from enum import Enum

from sqlalchemy import Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from condo_ledger.models import Base, BaseModel


class OccupancyType(str, Enum):
    """Who the apartment record represents."""

    OWNER = "owner"
    TENANT = "tenant"


class Apartment(Base, BaseModel):
    """Model representing one occupancy record of a unit.

    A unit may have an owner record and a tenant record at the same time; both
    share the unit number and carry their own fee configuration and ledger.
    The ledger never mutates an apartment: the monthly amounts are read by the
    charge generator only.
    """

    __tablename__ = "apartments"

    unit_number: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="Unit number as printed on statements (e.g., '101')",
    )
    floor: Mapped[int | None] = mapped_column(Integer, nullable=True)
    occupancy: Mapped[OccupancyType] = mapped_column(
        SQLEnum(OccupancyType),
        nullable=False,
        default=OccupancyType.OWNER,
    )

    contact_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    contact_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    contact_email: Mapped[str | None] = mapped_column(String(200), nullable=True)

    common_expense_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0"),
        comment="Monthly common-expense fee",
    )
    reserve_fund_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0"),
        comment="Monthly reserve-fund fee",
    )

    # No delete cascade: deleting an apartment nulls apartment_id on its records
    charges: Mapped[list["Charge"]] = relationship(  # noqa: F821
        "Charge",
        back_populates="apartment",
    )
    payments: Mapped[list["Payment"]] = relationship(  # noqa: F821
        "Payment",
        back_populates="apartment",
    )
    transactions: Mapped[list["Transaction"]] = relationship(  # noqa: F821
        "Transaction",
        back_populates="apartment",
    )

    __table_args__ = (
        UniqueConstraint("unit_number", "occupancy", name="uq_apartment_unit_occupancy"),
        Index("idx_apartment_unit", "unit_number"),
    )

    @property
    def label(self) -> str:
        """Human-readable label used in derived descriptions."""
        kind = "Owner" if self.occupancy == OccupancyType.OWNER else "Tenant"
        return f"Apt {self.unit_number} ({kind})"

    def __repr__(self) -> str:
        return (
            f"<Apartment(id={self.id}, unit_number={self.unit_number!r}, "
            f"occupancy={self.occupancy}, common_expense_amount={self.common_expense_amount}, "
            f"reserve_fund_amount={self.reserve_fund_amount})>"
        )


__all__ = ["Apartment", "OccupancyType"]
