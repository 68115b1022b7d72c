"""Charge service for manual debt entries against apartments."""

import logging
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from condo_ledger.errors import ChargeInUseError, NotFoundError
from condo_ledger.models.apartment import Apartment
from condo_ledger.models.charge import Charge, ChargeCategory, PaidState
from condo_ledger.models.payment import PaymentAllocation
from condo_ledger.services.allocation_service import AllocationService
from condo_ledger.services.audit_service import AuditService
from condo_ledger.services.db import atomic
from condo_ledger.services.money import ZERO, to_money

logger = logging.getLogger(__name__)


class ChargeService:
    """Create and remove charges, keeping apartment credit applied."""

    def __init__(self, db: Session, allocator: AllocationService | None = None):
        """Initialize with database session.

        Args:
            db: Session for database operations
            allocator: Allocation service sharing the same session
        """
        self.db = db
        self.allocator = allocator or AllocationService(db)

    def get(self, charge_id: int) -> Charge:
        charge = self.db.get(Charge, charge_id)
        if charge is None:
            raise NotFoundError("Charge", charge_id)
        return charge

    def create_charge(
        self,
        apartment_id: int,
        amount,
        charge_date: date,
        category: ChargeCategory,
        description: str | None = None,
        actor: str | None = None,
    ) -> Charge:
        """
        Register a manual charge and apply any credit the apartment holds.

        Args:
            apartment_id: Apartment owing the charge
            amount: Positive amount (Decimal, int or numeric string)
            charge_date: Date the charge is booked on
            category: Charge category
            description: Optional free text
            actor: Operator name for the audit trail

        Returns:
            The created charge, with amount_paid reflecting any credit applied

        Raises:
            NotFoundError: If the apartment does not exist
            InvalidAmountError: If amount is not a positive cent amount
        """
        amount = to_money(amount)
        if self.db.get(Apartment, apartment_id) is None:
            raise NotFoundError("Apartment", apartment_id)

        with self.allocator.locks.hold(apartment_id):
            with atomic(self.db, "create_charge"):
                self.allocator.lock_apartment(apartment_id)
                charge = Charge(
                    apartment_id=apartment_id,
                    amount=amount,
                    charge_date=charge_date,
                    category=category,
                    description=description,
                    amount_paid=ZERO,
                    paid_state=PaidState.UNPAID,
                )
                self.db.add(charge)
                self.db.flush()
                AuditService.log(
                    self.db, "charge", charge.id, "create", actor, {"amount": amount}
                )
                self.allocator.apply_credit_in_session(apartment_id)

        self.db.refresh(charge)
        logger.info(
            "Created charge %d for apartment %d: %s %s (paid %s)",
            charge.id,
            apartment_id,
            category.value,
            amount,
            charge.amount_paid,
        )
        return charge

    def delete_charge(self, charge_id: int, actor: str | None = None) -> None:
        """
        Delete a charge that no payment allocation references.

        A bank movement linked to the charge is unlinked, not deleted.

        Raises:
            NotFoundError: If the charge does not exist
            ChargeInUseError: If any payment allocation references the charge
        """
        charge = self.get(charge_id)
        allocation_count = self.db.scalar(
            select(func.count(PaymentAllocation.id)).where(PaymentAllocation.charge_id == charge_id)
        )
        if allocation_count:
            raise ChargeInUseError(
                f"Charge {charge_id} is referenced by {allocation_count} payment allocation(s)",
                {"charge_id": charge_id, "allocations": allocation_count},
            )

        with atomic(self.db, "delete_charge"):
            if charge.linked_movement is not None:
                charge.linked_movement.charge = None
            AuditService.log(
                self.db,
                "charge",
                charge.id,
                "delete",
                actor,
                {"amount": charge.amount, "apartment_id": charge.apartment_id},
            )
            self.db.delete(charge)

        logger.info("Deleted charge %d", charge_id)


__all__ = ["ChargeService"]
