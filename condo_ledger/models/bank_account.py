"""Bank account ORM model."""

from decimal import Decimal

from sqlalchemy import Boolean, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from condo_ledger.models import Base, BaseModel


class BankAccount(Base, BaseModel):
    """Model representing a building bank account.

    Only active accounts count towards the treasury balance. One account may be
    flagged as default for pre-selection when registering payments.
    """

    __tablename__ = "bank_accounts"

    bank_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Bank name (e.g., 'BROU', 'Santander')",
    )
    account_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="checking",
    )
    account_number: Mapped[str] = mapped_column(String(50), nullable=False)
    holder: Mapped[str | None] = mapped_column(String(200), nullable=True)

    opening_balance: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0"),
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    movements: Mapped[list["BankMovement"]] = relationship(  # noqa: F821
        "BankMovement",
        back_populates="bank_account",
        cascade="all, delete-orphan",
    )

    __table_args__ = (Index("idx_bank_account_active", "is_active"),)

    def __repr__(self) -> str:
        return (
            f"<BankAccount(id={self.id}, bank_name={self.bank_name!r}, "
            f"account_number={self.account_number!r}, opening_balance={self.opening_balance}, "
            f"is_active={self.is_active})>"
        )


__all__ = ["BankAccount"]
