"""Transaction ORM model for generic income/expense entries."""

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Numeric, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from condo_ledger.models import Base, BaseModel
from condo_ledger.models.charge import ChargeCategory


class TransactionKind(str, Enum):
    """Direction of a generic transaction."""

    INCOME = "income"
    EXPENSE = "expense"


class Transaction(Base, BaseModel):
    """Model representing a non-apartment-scoped income or expense.

    Examples:
    - Contractor invoice paid from the building account
    - Interest credited by the bank
    - Sale of a common-area item

    Generic transactions are never allocated against charges; they only
    participate in sums (spent / collected by category).
    """

    __tablename__ = "transactions"

    kind: Mapped[TransactionKind] = mapped_column(
        SQLEnum(TransactionKind),
        nullable=False,
        comment="INCOME or EXPENSE",
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        comment="Transaction amount",
    )
    transaction_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        index=True,
        comment="Date of transaction",
    )
    category: Mapped[ChargeCategory | None] = mapped_column(
        SQLEnum(ChargeCategory),
        nullable=True,
        index=True,
    )
    description: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
        comment="Optional transaction description",
    )
    apartment_id: Mapped[int | None] = mapped_column(
        ForeignKey("apartments.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="Optional apartment the transaction concerns",
    )

    # Relationships
    apartment: Mapped["Apartment | None"] = relationship(  # noqa: F821
        "Apartment",
        back_populates="transactions",
    )
    linked_movement: Mapped["BankMovement | None"] = relationship(  # noqa: F821
        "BankMovement",
        back_populates="transaction",
        foreign_keys="BankMovement.transaction_id",
        uselist=False,
    )

    # Indexes for common queries
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transaction_amount_positive"),
        Index("idx_transaction_kind_date", "kind", "transaction_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<Transaction(id={self.id}, kind={self.kind}, amount={self.amount}, "
            f"date={self.transaction_date}, category={self.category})>"
        )


__all__ = ["Transaction", "TransactionKind"]
