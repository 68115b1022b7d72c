"""Payment ORM models: apartment credits and the allocations they made."""

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from condo_ledger.models import Base, BaseModel


class PaymentClassification(str, Enum):
    """Fund a payment is booked against in reports."""

    COMMON_EXPENSE = "common_expense"
    RESERVE_FUND = "reserve_fund"
    MIXED = "mixed"


class PaymentMethod(str, Enum):
    """How the money was received."""

    CASH = "cash"
    TRANSFER = "transfer"
    CARD = "card"
    CHEQUE = "cheque"
    OTHER = "other"


class Payment(Base, BaseModel):
    """Model representing a credit entry reducing an apartment's debt.

    When the payment is linked to a bank movement, amount, payment_date and
    description mirror the movement and are edited through it.
    """

    __tablename__ = "payments"

    apartment_id: Mapped[int | None] = mapped_column(
        ForeignKey("apartments.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    classification: Mapped[PaymentClassification] = mapped_column(
        SQLEnum(PaymentClassification),
        nullable=False,
        default=PaymentClassification.COMMON_EXPENSE,
    )
    common_expense_portion: Mapped[Decimal | None] = mapped_column(
        Numeric(10, 2),
        nullable=True,
        comment="Explicit common-expense share of a MIXED payment",
    )
    reserve_fund_portion: Mapped[Decimal | None] = mapped_column(
        Numeric(10, 2),
        nullable=True,
        comment="Explicit reserve-fund share of a MIXED payment",
    )
    method: Mapped[PaymentMethod] = mapped_column(
        SQLEnum(PaymentMethod),
        nullable=False,
        default=PaymentMethod.TRANSFER,
    )
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    unapplied_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0"),
        comment="Part of the payment not yet allocated to any charge (apartment credit)",
    )

    apartment: Mapped["Apartment | None"] = relationship(  # noqa: F821
        "Apartment",
        back_populates="payments",
    )
    allocations: Mapped[list["PaymentAllocation"]] = relationship(
        "PaymentAllocation",
        back_populates="payment",
        cascade="all, delete-orphan",
        order_by="PaymentAllocation.sequence",
    )
    linked_movement: Mapped["BankMovement | None"] = relationship(  # noqa: F821
        "BankMovement",
        back_populates="payment",
        foreign_keys="BankMovement.payment_id",
        uselist=False,
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payment_amount_positive"),
        CheckConstraint("unapplied_amount >= 0", name="ck_payment_unapplied_non_negative"),
        Index("idx_payment_apartment_date", "apartment_id", "payment_date"),
    )

    @property
    def bank_movement_id(self) -> int | None:
        """Id of the linked bank movement, if any."""
        return self.linked_movement.id if self.linked_movement is not None else None

    def __repr__(self) -> str:
        return (
            f"<Payment(id={self.id}, apartment_id={self.apartment_id}, amount={self.amount}, "
            f"date={self.payment_date}, classification={self.classification}, "
            f"unapplied_amount={self.unapplied_amount})>"
        )


class PaymentAllocation(Base, BaseModel):
    """One contribution of a payment to a charge, in walk order."""

    __tablename__ = "payment_allocations"

    payment_id: Mapped[int] = mapped_column(
        ForeignKey("payments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    charge_id: Mapped[int] = mapped_column(
        ForeignKey("charges.id"),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    sequence: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Position in the payment's allocation walk (1-based)",
    )

    payment: Mapped["Payment"] = relationship("Payment", back_populates="allocations")
    charge: Mapped["Charge"] = relationship(  # noqa: F821
        "Charge",
        back_populates="allocations",
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_allocation_amount_positive"),
        Index("idx_allocation_payment_sequence", "payment_id", "sequence", unique=True),
    )

    def __repr__(self) -> str:
        return (
            f"<PaymentAllocation(payment_id={self.payment_id}, charge_id={self.charge_id}, "
            f"amount={self.amount}, sequence={self.sequence})>"
        )


__all__ = ["Payment", "PaymentAllocation", "PaymentClassification", "PaymentMethod"]
