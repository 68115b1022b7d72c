"""Charge ORM model: a debt entry raised against an apartment."""

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Numeric, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from condo_ledger.models import Base, BaseModel


class ChargeCategory(str, Enum):
    """Accounting category shared by charges and generic transactions."""

    COMMON_EXPENSE = "common_expense"
    RESERVE_FUND = "reserve_fund"
    MAINTENANCE = "maintenance"
    SERVICES = "services"
    ADMINISTRATION = "administration"
    REPAIRS = "repairs"
    CLEANING = "cleaning"
    SECURITY = "security"
    OTHER = "other"


class PaidState(str, Enum):
    """Settlement state of a charge, derived from amount_paid / amount."""

    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"


def paid_state_for(amount: Decimal, amount_paid: Decimal) -> PaidState:
    """Return the paid-state implied by a charge's amount and amount paid."""
    if amount_paid == 0:
        return PaidState.UNPAID
    if amount_paid == amount:
        return PaidState.PAID
    return PaidState.PARTIAL


class Charge(Base, BaseModel):
    """Model representing a debt entry against one apartment.

    amount_paid and paid_state are a cache of the allocation walk and are only
    written by the allocation service. Balances are never computed from them.
    """

    __tablename__ = "charges"

    apartment_id: Mapped[int | None] = mapped_column(
        ForeignKey("apartments.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="Apartment owing the charge (null once the apartment is deleted)",
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    charge_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    category: Mapped[ChargeCategory] = mapped_column(
        SQLEnum(ChargeCategory),
        nullable=False,
        index=True,
    )
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    amount_paid: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0"),
    )
    paid_state: Mapped[PaidState] = mapped_column(
        SQLEnum(PaidState),
        nullable=False,
        default=PaidState.UNPAID,
        index=True,
    )

    apartment: Mapped["Apartment | None"] = relationship(  # noqa: F821
        "Apartment",
        back_populates="charges",
    )
    allocations: Mapped[list["PaymentAllocation"]] = relationship(  # noqa: F821
        "PaymentAllocation",
        back_populates="charge",
    )
    linked_movement: Mapped["BankMovement | None"] = relationship(  # noqa: F821
        "BankMovement",
        back_populates="charge",
        foreign_keys="BankMovement.charge_id",
        uselist=False,
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_charge_amount_positive"),
        CheckConstraint(
            "amount_paid >= 0 AND amount_paid <= amount",
            name="ck_charge_amount_paid_range",
        ),
        Index("idx_charge_apartment_date", "apartment_id", "charge_date"),
        Index("idx_charge_apartment_state", "apartment_id", "paid_state"),
    )

    @property
    def due(self) -> Decimal:
        """Amount still owed on this charge."""
        return self.amount - self.amount_paid

    def refresh_paid_state(self) -> None:
        self.paid_state = paid_state_for(self.amount, self.amount_paid)

    def __repr__(self) -> str:
        return (
            f"<Charge(id={self.id}, apartment_id={self.apartment_id}, amount={self.amount}, "
            f"date={self.charge_date}, category={self.category}, "
            f"amount_paid={self.amount_paid}, paid_state={self.paid_state})>"
        )


__all__ = ["Charge", "ChargeCategory", "PaidState", "paid_state_for"]
