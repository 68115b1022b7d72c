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
from condo_ledger.models.apartment import Apartment, OccupancyType  # noqa: E402
from condo_ledger.models.audit_log import AuditLog  # noqa: E402
from condo_ledger.models.bank_account import BankAccount  # noqa: E402
from condo_ledger.models.bank_movement import (  # noqa: E402
    BankMovement,
    FundCategory,
    LinkedRecordType,
    MovementDirection,
)
from condo_ledger.models.charge import Charge, ChargeCategory, PaidState  # noqa: E402
from condo_ledger.models.payment import (  # noqa: E402
    Payment,
    PaymentAllocation,
    PaymentClassification,
    PaymentMethod,
)
from condo_ledger.models.report_notice import ReportNotice, ReportSetting  # noqa: E402
from condo_ledger.models.service_provider import ServiceProvider, ServiceTrade  # noqa: E402
from condo_ledger.models.transaction import Transaction, TransactionKind  # noqa: E402

__all__ = [
    "Base",
    "BaseModel",
    "Apartment",
    "OccupancyType",
    "AuditLog",
    "BankAccount",
    "BankMovement",
    "FundCategory",
    "LinkedRecordType",
    "MovementDirection",
    "Charge",
    "ChargeCategory",
    "PaidState",
    "Payment",
    "PaymentAllocation",
    "PaymentClassification",
    "PaymentMethod",
    "ReportNotice",
    "ReportSetting",
    "ServiceProvider",
    "ServiceTrade",
    "Transaction",
    "TransactionKind",
]
