"""Bank movement ORM model with its 1:1 link to an accounting record."""

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import Boolean, CheckConstraint, Date, ForeignKey, Index, Numeric, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from condo_ledger.models import Base, BaseModel


class MovementDirection(str, Enum):
    """Money into or out of the bank account."""

    IN = "in"
    OUT = "out"


class FundCategory(str, Enum):
    """Fund a bank movement is booked against."""

    COMMON_EXPENSE = "common_expense"
    RESERVE_FUND = "reserve_fund"


class LinkedRecordType(str, Enum):
    """Kind of accounting record a movement can be linked to."""

    PAYMENT = "payment"
    CHARGE = "charge"
    TRANSACTION = "transaction"


class BankMovement(Base, BaseModel):
    """Model representing one entry on a bank account statement.

    The movement owns the link: exactly one of payment_id / charge_id /
    transaction_id may be set, each is unique across movements, and the record
    side reads its partner through a back-reference on the same column. Both
    directions of the link are therefore always the same pointer.
    """

    __tablename__ = "bank_movements"

    bank_account_id: Mapped[int] = mapped_column(
        ForeignKey("bank_accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    direction: Mapped[MovementDirection] = mapped_column(
        SQLEnum(MovementDirection),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    movement_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    document_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    category: Mapped[FundCategory | None] = mapped_column(
        SQLEnum(FundCategory),
        nullable=True,
        comment="Fund classification of the movement (outflows mostly)",
    )
    reconciled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    service_provider_id: Mapped[int | None] = mapped_column(
        ForeignKey("service_providers.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Link columns (at most one set, see ck_movement_single_link)
    payment_id: Mapped[int | None] = mapped_column(
        ForeignKey("payments.id"),
        nullable=True,
        unique=True,
    )
    charge_id: Mapped[int | None] = mapped_column(
        ForeignKey("charges.id"),
        nullable=True,
        unique=True,
    )
    transaction_id: Mapped[int | None] = mapped_column(
        ForeignKey("transactions.id"),
        nullable=True,
        unique=True,
    )

    # Relationships
    bank_account: Mapped["BankAccount"] = relationship(  # noqa: F821
        "BankAccount",
        back_populates="movements",
    )
    service_provider: Mapped["ServiceProvider | None"] = relationship(  # noqa: F821
        "ServiceProvider",
    )
    payment: Mapped["Payment | None"] = relationship(  # noqa: F821
        "Payment",
        back_populates="linked_movement",
        foreign_keys=[payment_id],
    )
    charge: Mapped["Charge | None"] = relationship(  # noqa: F821
        "Charge",
        back_populates="linked_movement",
        foreign_keys=[charge_id],
    )
    transaction: Mapped["Transaction | None"] = relationship(  # noqa: F821
        "Transaction",
        back_populates="linked_movement",
        foreign_keys=[transaction_id],
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_movement_amount_positive"),
        CheckConstraint(
            "(CASE WHEN payment_id IS NULL THEN 0 ELSE 1 END"
            " + CASE WHEN charge_id IS NULL THEN 0 ELSE 1 END"
            " + CASE WHEN transaction_id IS NULL THEN 0 ELSE 1 END) <= 1",
            name="ck_movement_single_link",
        ),
        Index("idx_movement_account_date", "bank_account_id", "movement_date"),
        Index("idx_movement_direction_date", "direction", "movement_date"),
    )

    @property
    def linked_record_type(self) -> LinkedRecordType | None:
        if self.payment_id is not None:
            return LinkedRecordType.PAYMENT
        if self.charge_id is not None:
            return LinkedRecordType.CHARGE
        if self.transaction_id is not None:
            return LinkedRecordType.TRANSACTION
        return None

    @property
    def linked_record(self):
        """The linked Payment, Charge or Transaction, or None."""
        return self.payment or self.charge or self.transaction

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.direction == MovementDirection.IN else -self.amount

    def __repr__(self) -> str:
        return (
            f"<BankMovement(id={self.id}, bank_account_id={self.bank_account_id}, "
            f"direction={self.direction}, amount={self.amount}, date={self.movement_date}, "
            f"payment_id={self.payment_id}, charge_id={self.charge_id}, "
            f"transaction_id={self.transaction_id})>"
        )


__all__ = ["BankMovement", "FundCategory", "LinkedRecordType", "MovementDirection"]
