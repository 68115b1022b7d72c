"""Monthly charge generation service.

Creates each apartment's common-expense and reserve-fund charges for a
period. Generation is idempotent per apartment, category and period, so a
retried or repeated run never duplicates charges.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum

from sqlalchemy import select
from sqlalchemy.orm import Session

from condo_ledger.config import settings
from condo_ledger.models.apartment import Apartment
from condo_ledger.models.charge import Charge, ChargeCategory, PaidState
from condo_ledger.services.allocation_service import AllocationService
from condo_ledger.services.audit_service import AuditService
from condo_ledger.services.db import atomic
from condo_ledger.services.money import ZERO, month_bounds, period_label

logger = logging.getLogger(__name__)

GENERATED_DESCRIPTIONS = {
    ChargeCategory.COMMON_EXPENSE: "Common Expenses - {period}",
    ChargeCategory.RESERVE_FUND: "Reserve Fund - {period}",
}


class GenerationStatus(str, Enum):
    CREATED = "created"
    NO_APARTMENTS = "no_apartments"
    NOTHING_TO_GENERATE = "nothing_to_generate"


@dataclass
class GenerationResult:
    """Outcome of one generator run."""

    created: int
    period_label: str
    status: GenerationStatus
    charge_ids: list[int] = field(default_factory=list)


class ChargeGenerationService:
    """Service for creating the recurring monthly charges."""

    def __init__(
        self,
        db: Session,
        allocator: AllocationService | None = None,
        charge_day: int | None = None,
    ):
        """Initialize with database session.

        Args:
            db: Session for database operations
            allocator: Allocation service sharing the same session
            charge_day: Day of month charges are dated on (default from settings)
        """
        self.db = db
        self.allocator = allocator or AllocationService(db)
        self.charge_day = charge_day or settings.charge_day_of_month

    def generate_monthly_charges(
        self, month: int, year: int, actor: str | None = None
    ) -> GenerationResult:
        """
        Create the period's missing common-expense and reserve-fund charges.

        Apartments with a zero configured amount get no charge of that
        category. All new charges are committed together, then any credit the
        touched apartments hold is applied to them.

        Args:
            month: 1..12
            year: Four-digit year
            actor: Operator name for the audit trail

        Returns:
            GenerationResult with status CREATED, NO_APARTMENTS or
            NOTHING_TO_GENERATE (the last two have no effect)

        Raises:
            ValueError: If month is out of range
        """
        start, end = month_bounds(month, year)
        label = period_label(month, year)
        charge_date = date(year, month, min(self.charge_day, end.day))

        apartments = list(self.db.scalars(select(Apartment).order_by(Apartment.id)))
        if not apartments:
            logger.warning("No apartments configured; nothing generated for %s", label)
            return GenerationResult(0, label, GenerationStatus.NO_APARTMENTS)

        existing = set(
            self.db.execute(
                select(Charge.apartment_id, Charge.category).where(
                    Charge.charge_date >= start,
                    Charge.charge_date <= end,
                    Charge.category.in_(list(GENERATED_DESCRIPTIONS)),
                )
            ).all()
        )

        created: list[Charge] = []
        with atomic(self.db, "generate_monthly_charges"):
            for apartment in apartments:
                configured = {
                    ChargeCategory.COMMON_EXPENSE: apartment.common_expense_amount,
                    ChargeCategory.RESERVE_FUND: apartment.reserve_fund_amount,
                }
                for category, amount in configured.items():
                    if not amount or amount <= 0:
                        continue
                    if (apartment.id, category) in existing:
                        continue
                    charge = Charge(
                        apartment_id=apartment.id,
                        amount=amount,
                        charge_date=charge_date,
                        category=category,
                        description=GENERATED_DESCRIPTIONS[category].format(period=label),
                        amount_paid=ZERO,
                        paid_state=PaidState.UNPAID,
                    )
                    self.db.add(charge)
                    created.append(charge)

            if created:
                self.db.flush()
                AuditService.log(
                    self.db,
                    "period",
                    year * 100 + month,
                    "generate_charges",
                    actor,
                    {"period": label, "charges": [c.id for c in created]},
                )

        if not created:
            logger.warning("All apartments already have their charges for %s", label)
            return GenerationResult(0, label, GenerationStatus.NOTHING_TO_GENERATE)

        logger.info("Generated %d charge(s) for %s", len(created), label)

        for apartment_id in sorted({c.apartment_id for c in created}):
            self.allocator.apply_credit(apartment_id)

        return GenerationResult(
            len(created), label, GenerationStatus.CREATED, [c.id for c in created]
        )


__all__ = ["ChargeGenerationService", "GenerationResult", "GenerationStatus"]
