"""Payment service for registering, editing and reversing apartment payments."""

import logging
from datetime import date

from sqlalchemy.orm import Session

from condo_ledger.errors import DerivedFieldEditError, InvalidAmountError, NotFoundError
from condo_ledger.models.apartment import Apartment
from condo_ledger.models.bank_movement import LinkedRecordType, MovementDirection
from condo_ledger.models.payment import Payment, PaymentClassification, PaymentMethod
from condo_ledger.services.allocation_service import AllocationService
from condo_ledger.services.audit_service import AuditService
from condo_ledger.services.db import atomic
from condo_ledger.services.linkage_service import BankLinkageService
from condo_ledger.services.money import to_money

logger = logging.getLogger(__name__)

CLASSIFICATION_LABELS = {
    PaymentClassification.COMMON_EXPENSE: "Common Expense",
    PaymentClassification.RESERVE_FUND: "Reserve Fund",
    PaymentClassification.MIXED: "Mixed",
}

# Fields mirrored from the bank movement while a payment is linked
DERIVED_FIELDS = ("amount", "payment_date", "description")


def payment_description(
    apartment: Apartment, classification: PaymentClassification, reference: str | None
) -> str:
    """Build the description shared by a payment and its bank movement."""
    text = f"Payment Receipt ({CLASSIFICATION_LABELS[classification]}) - {apartment.label}"
    if reference:
        text += f" - Ref: {reference}"
    return text


class PaymentService:
    """Service for the payment side of the apartment ledger."""

    def __init__(self, db: Session, allocator: AllocationService | None = None):
        """Initialize with database session.

        Args:
            db: Session for database operations
            allocator: Allocation service sharing the same session
        """
        self.db = db
        self.allocator = allocator or AllocationService(db)
        self.linkage = BankLinkageService(db, self.allocator)

    def get(self, payment_id: int) -> Payment:
        payment = self.db.get(Payment, payment_id)
        if payment is None:
            raise NotFoundError("Payment", payment_id)
        return payment

    def _validate_portions(self, amount, common_expense_portion, reserve_fund_portion):
        portions = [
            to_money(p, field) if p is not None else None
            for p, field in (
                (common_expense_portion, "common_expense_portion"),
                (reserve_fund_portion, "reserve_fund_portion"),
            )
        ]
        given = [p for p in portions if p is not None]
        if given and sum(given) > amount:
            raise InvalidAmountError(
                "Payment portions exceed the payment amount",
                {
                    "amount": str(amount),
                    "common_expense_portion": str(portions[0]),
                    "reserve_fund_portion": str(portions[1]),
                },
            )
        return portions

    def apply_payment(
        self,
        apartment_id: int,
        amount,
        payment_date: date,
        classification: PaymentClassification = PaymentClassification.COMMON_EXPENSE,
        bank_account_id: int | None = None,
        method: PaymentMethod = PaymentMethod.TRANSFER,
        reference: str | None = None,
        notes: str | None = None,
        common_expense_portion=None,
        reserve_fund_portion=None,
        actor: str | None = None,
    ) -> Payment:
        """
        Register a payment and allocate it oldest-charge-first.

        When bank_account_id is given an incoming bank movement carrying the
        same amount, date and description is created and linked in the same
        transaction.

        Args:
            apartment_id: Paying apartment
            amount: Positive amount (Decimal, int or numeric string)
            payment_date: Date the money was received
            classification: Fund the payment is booked against
            bank_account_id: Account the money arrived on (optional)
            method: How the money was received
            reference: Receipt or transfer reference
            notes: Free text
            common_expense_portion: Explicit common-expense share (MIXED only)
            reserve_fund_portion: Explicit reserve-fund share (MIXED only)
            actor: Operator name for the audit trail

        Returns:
            The stored payment; unapplied_amount holds any over-payment

        Raises:
            NotFoundError: If the apartment or bank account does not exist
            InvalidAmountError: If amount or portions are invalid
        """
        amount = to_money(amount)
        ce_portion, rf_portion = self._validate_portions(
            amount, common_expense_portion, reserve_fund_portion
        )
        apartment = self.db.get(Apartment, apartment_id)
        if apartment is None:
            raise NotFoundError("Apartment", apartment_id)

        description = payment_description(apartment, classification, reference)

        with self.allocator.locks.hold(apartment_id):
            with atomic(self.db, "apply_payment"):
                self.allocator.lock_apartment(apartment_id)
                payment = Payment(
                    apartment_id=apartment_id,
                    amount=amount,
                    payment_date=payment_date,
                    classification=classification,
                    common_expense_portion=ce_portion,
                    reserve_fund_portion=rf_portion,
                    method=method,
                    reference=reference,
                    notes=notes,
                    description=description,
                )
                self.db.add(payment)
                self.db.flush()

                if bank_account_id is not None:
                    movement = self.linkage.build_movement(
                        bank_account_id,
                        MovementDirection.IN,
                        amount,
                        payment_date,
                        description,
                        reference,
                    )
                    self.linkage.link_in_session(movement, LinkedRecordType.PAYMENT, payment)

                result = self.allocator.apply_in_session(payment)
                AuditService.log(
                    self.db,
                    "payment",
                    payment.id,
                    "apply",
                    actor,
                    {
                        "amount": amount,
                        "applied": result.total,
                        "unapplied": result.unapplied,
                        "charges": result.touched_charge_ids,
                        "bank_account_id": bank_account_id,
                    },
                )

        logger.info(
            "Registered payment %d for apartment %d: %s (applied %s, credit %s)",
            payment.id,
            apartment_id,
            amount,
            result.total,
            result.unapplied,
        )
        return payment

    def reverse_payment(self, payment_id: int, actor: str | None = None) -> None:
        """
        Undo a payment: reverse its allocation, delete its movement, delete it.

        Raises:
            NotFoundError: If the payment does not exist
        """
        payment = self.get(payment_id)
        apartment_id = payment.apartment_id

        with self.allocator.locks.hold(apartment_id or 0):
            with atomic(self.db, "reverse_payment"):
                self.allocator.lock_apartment(apartment_id)
                result = self.allocator.reverse_in_session(payment)

                movement = payment.linked_movement
                movement_id = movement.id if movement is not None else None
                if movement is not None:
                    movement.payment = None
                    self.db.delete(movement)
                    self.db.flush()

                AuditService.log(
                    self.db,
                    "payment",
                    payment.id,
                    "delete",
                    actor,
                    {
                        "amount": payment.amount,
                        "reversed": -result.total,
                        "charges": result.touched_charge_ids,
                        "movement_id": movement_id,
                    },
                )
                self.db.delete(payment)
                self.db.flush()
                self.allocator.apply_credit_in_session(apartment_id)

        logger.info(
            "Reversed and deleted payment %d (movement %s, charges %s)",
            payment_id,
            movement_id,
            result.touched_charge_ids,
        )

    def update_payment(
        self,
        payment_id: int,
        amount=None,
        payment_date: date | None = None,
        description: str | None = None,
        classification: PaymentClassification | None = None,
        method: PaymentMethod | None = None,
        reference: str | None = None,
        notes: str | None = None,
        common_expense_portion=None,
        reserve_fund_portion=None,
        actor: str | None = None,
    ) -> Payment:
        """
        Edit a payment.

        Amount, date and description of a payment linked to a bank movement
        are derived from the movement and must be edited through it. For an
        unlinked payment an amount change reverses and re-applies the
        allocation.

        Raises:
            NotFoundError: If the payment does not exist
            DerivedFieldEditError: If a derived field of a linked payment is edited
            InvalidAmountError: If amount or portions are invalid
        """
        payment = self.get(payment_id)
        requested = {
            "amount": amount,
            "payment_date": payment_date,
            "description": description,
        }
        derived_edits = [name for name in DERIVED_FIELDS if requested[name] is not None]
        if payment.linked_movement is not None and derived_edits:
            raise DerivedFieldEditError(
                f"Payment {payment_id} is linked to movement {payment.linked_movement.id}; "
                f"edit {', '.join(derived_edits)} through the movement",
                {
                    "payment_id": payment_id,
                    "movement_id": payment.linked_movement.id,
                    "fields": derived_edits,
                },
            )

        new_amount = to_money(amount) if amount is not None else payment.amount
        ce_portion, rf_portion = self._validate_portions(
            new_amount,
            common_expense_portion
            if common_expense_portion is not None
            else payment.common_expense_portion,
            reserve_fund_portion if reserve_fund_portion is not None else payment.reserve_fund_portion,
        )

        with self.allocator.locks.hold(payment.apartment_id or 0):
            with atomic(self.db, "update_payment"):
                old_amount = payment.amount
                if payment_date is not None:
                    payment.payment_date = payment_date
                if description is not None:
                    payment.description = description
                if classification is not None:
                    payment.classification = classification
                if method is not None:
                    payment.method = method
                if reference is not None:
                    payment.reference = reference
                if notes is not None:
                    payment.notes = notes
                payment.common_expense_portion = ce_portion
                payment.reserve_fund_portion = rf_portion

                reallocated = new_amount != old_amount
                if reallocated:
                    self.allocator.lock_apartment(payment.apartment_id)
                    self.allocator.reverse_in_session(payment)
                    payment.amount = new_amount
                    self.allocator.apply_in_session(payment)
                    self.allocator.apply_credit_in_session(payment.apartment_id)

                self.db.flush()
                AuditService.log(
                    self.db,
                    "payment",
                    payment.id,
                    "update",
                    actor,
                    {"old_amount": old_amount, "amount": payment.amount, "reallocated": reallocated},
                )

        logger.info(
            "Updated payment %d (amount %s -> %s, reallocated=%s)",
            payment_id,
            old_amount,
            payment.amount,
            reallocated,
        )
        return payment

    def list_unlinked_payments(self) -> list[Payment]:
        """Payments not yet matched to a bank movement, newest first."""
        return self.linkage.list_unlinked_payments()


__all__ = ["PaymentService", "payment_description", "CLASSIFICATION_LABELS"]
