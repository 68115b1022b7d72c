"""Allocation service for applying payments against an apartment's charges.

Apply walks outstanding charges oldest-first (date, then creation order) and
records every contribution as a PaymentAllocation row. Reverse walks the same
rows newest-first and subtracts exactly what was recorded, so
Reverse(Apply(P)) restores every charge it touched.

Over-payment policy:
- Whatever Apply cannot place is kept on the payment as ``unapplied_amount``
- An apartment's credit balance is the sum of its payments' unapplied amounts
- Whenever a charge is created for the apartment, or a payment is deleted or
  re-allocated under a new amount, ``apply_credit`` re-runs Apply for every
  payment holding credit, oldest payment first
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from condo_ledger.errors import InconsistentStateError, NotFoundError
from condo_ledger.models.apartment import Apartment
from condo_ledger.models.charge import Charge, PaidState
from condo_ledger.models.payment import Payment, PaymentAllocation
from condo_ledger.services.audit_service import AuditService
from condo_ledger.services.db import atomic
from condo_ledger.services.locks import ApartmentLocks, apartment_locks
from condo_ledger.services.money import ZERO

logger = logging.getLogger(__name__)


@dataclass
class ChargeChange:
    """Effect of one allocation step on one charge."""

    charge_id: int
    delta: Decimal
    amount_paid: Decimal
    paid_state: PaidState


@dataclass
class AllocationResult:
    """Outcome of an Apply or Reverse walk for one payment."""

    payment_id: int
    changes: list[ChargeChange] = field(default_factory=list)
    unapplied: Decimal = ZERO

    @property
    def touched_charge_ids(self) -> list[int]:
        return [c.charge_id for c in self.changes]

    @property
    def total(self) -> Decimal:
        return sum((c.delta for c in self.changes), ZERO)


class AllocationService:
    """Apply and reverse payments against outstanding charges."""

    def __init__(self, db: Session, locks: ApartmentLocks = apartment_locks):
        """Initialize with database session.

        Args:
            db: Session for database operations
            locks: Per-apartment lock registry (process-wide by default)
        """
        self.db = db
        self.locks = locks

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def outstanding_charges(self, apartment_id: int) -> list[Charge]:
        """Charges not yet fully paid, oldest first (ties by creation order)."""
        stmt = (
            select(Charge)
            .where(Charge.apartment_id == apartment_id, Charge.paid_state != PaidState.PAID)
            .order_by(Charge.charge_date.asc(), Charge.id.asc())
        )
        return list(self.db.scalars(stmt))

    def credit_balance(self, apartment_id: int) -> Decimal:
        """Sum of unapplied payment amounts for the apartment."""
        stmt = select(func.coalesce(func.sum(Payment.unapplied_amount), 0)).where(
            Payment.apartment_id == apartment_id
        )
        return Decimal(str(self.db.scalar(stmt)))

    def outstanding_total(self) -> Decimal:
        """Total still owed across every charge that is not fully paid."""
        stmt = select(func.coalesce(func.sum(Charge.amount - Charge.amount_paid), 0)).where(
            Charge.paid_state != PaidState.PAID
        )
        return Decimal(str(self.db.scalar(stmt)))

    # ------------------------------------------------------------------
    # In-session primitives (caller owns the transaction)
    # ------------------------------------------------------------------

    def lock_apartment(self, apartment_id: int | None) -> None:
        """Take the apartment row lock for databases that support it."""
        if apartment_id is None:
            return
        self.db.execute(
            select(Apartment.id).where(Apartment.id == apartment_id).with_for_update()
        )

    def _shift_paid(self, charge: Charge, delta: Decimal, payment_id: int) -> None:
        new_paid = charge.amount_paid + delta
        if new_paid < 0 or new_paid > charge.amount:
            context = {
                "charge_id": charge.id,
                "payment_id": payment_id,
                "amount": str(charge.amount),
                "amount_paid": str(charge.amount_paid),
                "delta": str(delta),
            }
            logger.critical("Charge amount_paid would leave [0, amount]: %s", context)
            raise InconsistentStateError(
                f"Charge {charge.id} amount_paid would become {new_paid} "
                f"(amount {charge.amount})",
                context,
            )
        charge.amount_paid = new_paid
        charge.refresh_paid_state()

    def apply_in_session(self, payment: Payment) -> AllocationResult:
        """Allocate the payment's not-yet-allocated amount against outstanding charges.

        Does not commit. Sets ``payment.unapplied_amount`` to the remainder.
        """
        self.db.flush()
        result = AllocationResult(payment_id=payment.id)

        allocated = sum((a.amount for a in payment.allocations), ZERO)
        remaining = payment.amount - allocated
        if remaining < 0:
            raise InconsistentStateError(
                f"Payment {payment.id} is allocated beyond its amount",
                {"payment_id": payment.id, "amount": str(payment.amount), "allocated": str(allocated)},
            )

        sequence = max((a.sequence for a in payment.allocations), default=0)

        if payment.apartment_id is not None:
            for charge in self.outstanding_charges(payment.apartment_id):
                if remaining <= 0:
                    break
                applied = min(remaining, charge.due)
                if applied <= 0:
                    continue
                self._shift_paid(charge, applied, payment.id)
                sequence += 1
                payment.allocations.append(
                    PaymentAllocation(charge_id=charge.id, amount=applied, sequence=sequence)
                )
                result.changes.append(
                    ChargeChange(charge.id, applied, charge.amount_paid, charge.paid_state)
                )
                remaining -= applied

        payment.unapplied_amount = remaining
        result.unapplied = remaining
        self.db.flush()

        if remaining > 0:
            logger.info(
                "Payment %d left %s unapplied as credit for apartment %s",
                payment.id,
                remaining,
                payment.apartment_id,
            )
        return result

    def reverse_in_session(self, payment: Payment) -> AllocationResult:
        """Undo every allocation of the payment, most recent first.

        Does not commit. Afterwards the payment holds no allocations and no
        credit; the caller either deletes it or applies it again.
        """
        self.db.flush()
        result = AllocationResult(payment_id=payment.id)

        for allocation in sorted(payment.allocations, key=lambda a: a.sequence, reverse=True):
            charge = allocation.charge
            self._shift_paid(charge, -allocation.amount, payment.id)
            result.changes.append(
                ChargeChange(charge.id, -allocation.amount, charge.amount_paid, charge.paid_state)
            )
            payment.allocations.remove(allocation)

        payment.unapplied_amount = ZERO
        self.db.flush()
        return result

    def apply_credit_in_session(self, apartment_id: int | None) -> list[AllocationResult]:
        """Place outstanding apartment credit on charges left unpaid. Does not commit.

        Runs after a charge is created and after a payment is deleted or
        re-allocated under a new amount.
        """
        if apartment_id is None:
            return []
        stmt = (
            select(Payment)
            .where(Payment.apartment_id == apartment_id, Payment.unapplied_amount > 0)
            .order_by(Payment.payment_date.asc(), Payment.id.asc())
        )
        results = []
        for payment in self.db.scalars(stmt).all():
            result = self.apply_in_session(payment)
            if result.changes:
                results.append(result)
                AuditService.log(
                    self.db,
                    "payment",
                    payment.id,
                    "apply_credit",
                    changes={"applied": result.total, "charges": result.touched_charge_ids},
                )
        return results

    # ------------------------------------------------------------------
    # Public operations (one transaction each)
    # ------------------------------------------------------------------

    def _get_payment(self, payment_id: int) -> Payment:
        payment = self.db.get(Payment, payment_id)
        if payment is None:
            raise NotFoundError("Payment", payment_id)
        return payment

    def apply(self, payment_id: int, actor: str | None = None) -> AllocationResult:
        """Apply a stored payment against its apartment's outstanding charges."""
        payment = self._get_payment(payment_id)
        with self.locks.hold(payment.apartment_id or 0):
            with atomic(self.db, "apply"):
                self.lock_apartment(payment.apartment_id)
                result = self.apply_in_session(payment)
                AuditService.log(
                    self.db,
                    "payment",
                    payment.id,
                    "apply",
                    actor,
                    {"applied": result.total, "unapplied": result.unapplied,
                     "charges": result.touched_charge_ids},
                )
        logger.info(
            "Applied payment %d: %s over charges %s",
            payment_id,
            result.total,
            result.touched_charge_ids,
        )
        return result

    def reverse(self, payment_id: int, actor: str | None = None) -> AllocationResult:
        """Reverse a payment's allocation, leaving the payment itself in place."""
        payment = self._get_payment(payment_id)
        with self.locks.hold(payment.apartment_id or 0):
            with atomic(self.db, "reverse"):
                self.lock_apartment(payment.apartment_id)
                result = self.reverse_in_session(payment)
                AuditService.log(
                    self.db,
                    "payment",
                    payment.id,
                    "reverse",
                    actor,
                    {"reversed": -result.total, "charges": result.touched_charge_ids},
                )
        logger.info("Reversed payment %d over charges %s", payment_id, result.touched_charge_ids)
        return result

    def apply_credit(self, apartment_id: int) -> list[AllocationResult]:
        """Apply any apartment credit to its outstanding charges."""
        with self.locks.hold(apartment_id):
            with atomic(self.db, "apply_credit"):
                self.lock_apartment(apartment_id)
                return self.apply_credit_in_session(apartment_id)


__all__ = ["AllocationService", "AllocationResult", "ChargeChange"]
