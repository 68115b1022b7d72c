"""Bank linkage service: one-to-one links between bank movements and ledger records.

A bank movement may be linked to at most one Payment, Charge or generic
Transaction, and each record to at most one movement. The link lives on the
movement's columns; the record reads it back through ``linked_movement``.

Cascades:
- Linking a movement to a Payment gives the payment the movement's date and
  amount, re-allocating it when the amount differs
- Editing a movement linked to a Payment re-derives the payment and, when the
  amount changed, reverses and re-applies its allocation
- Deleting a movement deletes a linked Payment (after reversing it) or a
  linked Transaction; a linked Charge is only unlinked
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from condo_ledger.errors import (
    AlreadyLinkedError,
    InvalidLinkTargetError,
    NotFoundError,
)
from condo_ledger.models.bank_account import BankAccount
from condo_ledger.models.bank_movement import (
    BankMovement,
    FundCategory,
    LinkedRecordType,
    MovementDirection,
)
from condo_ledger.models.charge import Charge
from condo_ledger.models.payment import Payment
from condo_ledger.models.service_provider import ServiceProvider
from condo_ledger.models.transaction import Transaction, TransactionKind
from condo_ledger.services.allocation_service import AllocationService
from condo_ledger.services.audit_service import AuditService
from condo_ledger.services.db import atomic
from condo_ledger.services.money import to_money

logger = logging.getLogger(__name__)

RECORD_MODELS = {
    LinkedRecordType.PAYMENT: Payment,
    LinkedRecordType.CHARGE: Charge,
    LinkedRecordType.TRANSACTION: Transaction,
}


@dataclass
class DeletionImpact:
    """What deleting a bank movement does (or did) to its linked record."""

    movement_id: int
    deleted_record_type: LinkedRecordType | None
    record_id: int | None
    amount: Decimal
    apartment_id: int | None
    apartment_recalculated: bool
    record_deleted: bool


class BankLinkageService:
    """Service for creating, linking, editing and deleting bank movements."""

    def __init__(self, db: Session, allocator: AllocationService | None = None):
        """Initialize with database session.

        Args:
            db: Session for database operations
            allocator: Allocation service sharing the same session
        """
        self.db = db
        self.allocator = allocator or AllocationService(db)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_movement(self, movement_id: int) -> BankMovement:
        movement = self.db.get(BankMovement, movement_id)
        if movement is None:
            raise NotFoundError("BankMovement", movement_id)
        return movement

    def _get_account(self, bank_account_id: int) -> BankAccount:
        account = self.db.get(BankAccount, bank_account_id)
        if account is None:
            raise NotFoundError("BankAccount", bank_account_id)
        return account

    def _get_record(self, record_type, record_id: int):
        try:
            record_type = LinkedRecordType(record_type)
        except ValueError as e:
            raise InvalidLinkTargetError(
                f"Unknown record type: {record_type!r}",
                {"record_type": str(record_type), "record_id": record_id},
            ) from e
        record = self.db.get(RECORD_MODELS[record_type], record_id)
        if record is None:
            raise NotFoundError(RECORD_MODELS[record_type].__name__, record_id)
        return record_type, record

    @staticmethod
    def _apartment_of(record) -> int:
        """Apartment lock key for a record; 0 for records without an apartment."""
        return getattr(record, "apartment_id", None) or 0

    # ------------------------------------------------------------------
    # In-session primitives
    # ------------------------------------------------------------------

    def _describe(
        self,
        direction: MovementDirection,
        description: str | None,
        service_provider_id: int | None,
    ) -> str:
        if description:
            return description
        if direction == MovementDirection.IN:
            return "Bank inflow"
        if service_provider_id is not None:
            provider = self.db.get(ServiceProvider, service_provider_id)
            if provider is None:
                raise NotFoundError("ServiceProvider", service_provider_id)
            return f"Payment to {provider.name}"
        return "Bank outflow"

    def build_movement(
        self,
        bank_account_id: int,
        direction: MovementDirection,
        amount,
        movement_date: date,
        description: str | None = None,
        reference: str | None = None,
        document_number: str | None = None,
        category: FundCategory | None = None,
        service_provider_id: int | None = None,
    ) -> BankMovement:
        """Add an unlinked movement to the session without committing."""
        self._get_account(bank_account_id)
        movement = BankMovement(
            bank_account_id=bank_account_id,
            direction=direction,
            amount=to_money(amount),
            movement_date=movement_date,
            description=self._describe(direction, description, service_provider_id),
            reference=reference,
            document_number=document_number,
            category=category,
            service_provider_id=service_provider_id,
            reconciled=False,
        )
        self.db.add(movement)
        self.db.flush()
        return movement

    def _derive_payment(self, movement: BankMovement, payment: Payment) -> bool:
        """Carry the movement's date and amount onto its payment.

        A different amount reverses the allocation under the old amount and
        applies it again under the new one, then re-places apartment credit.
        Returns whether the allocation was redone.
        """
        payment.payment_date = movement.movement_date
        if payment.amount == movement.amount:
            return False
        self.allocator.lock_apartment(payment.apartment_id)
        self.allocator.reverse_in_session(payment)
        payment.amount = movement.amount
        self.allocator.apply_in_session(payment)
        self.allocator.apply_credit_in_session(payment.apartment_id)
        return True

    def link_in_session(
        self, movement: BankMovement, record_type: LinkedRecordType, record
    ) -> None:
        """Link movement and record inside the caller's transaction."""
        if movement.linked_record_type is not None:
            raise AlreadyLinkedError(
                f"Movement {movement.id} is already linked to "
                f"{movement.linked_record_type.value} {movement.linked_record.id}",
                {"movement_id": movement.id, "linked_type": movement.linked_record_type.value},
            )
        if record.linked_movement is not None:
            raise AlreadyLinkedError(
                f"{record_type.value} {record.id} is already linked to movement "
                f"{record.linked_movement.id}",
                {
                    "record_type": record_type.value,
                    "record_id": record.id,
                    "movement_id": record.linked_movement.id,
                },
            )

        if record_type == LinkedRecordType.PAYMENT and movement.direction != MovementDirection.IN:
            raise InvalidLinkTargetError(
                "Payments can only be linked to incoming movements",
                {"movement_id": movement.id, "payment_id": record.id},
            )
        if record_type == LinkedRecordType.TRANSACTION:
            expected = (
                MovementDirection.IN
                if record.kind == TransactionKind.INCOME
                else MovementDirection.OUT
            )
            if movement.direction != expected:
                raise InvalidLinkTargetError(
                    f"{record.kind.value} transactions link to {expected.value} movements",
                    {"movement_id": movement.id, "transaction_id": record.id},
                )

        if record_type == LinkedRecordType.PAYMENT:
            movement.payment = record
            old_amount = record.amount
            if self._derive_payment(movement, record):
                logger.info(
                    "Payment %d takes amount %s from movement %d (was %s)",
                    record.id,
                    movement.amount,
                    movement.id,
                    old_amount,
                )
        elif record_type == LinkedRecordType.CHARGE:
            movement.charge = record
        else:
            movement.transaction = record

        if record.amount != movement.amount:
            logger.warning(
                "Linked movement %d (%s) to %s %d with a different amount (%s)",
                movement.id,
                movement.amount,
                record_type.value,
                record.id,
                record.amount,
            )
        self.db.flush()

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def create_movement(
        self,
        bank_account_id: int,
        direction: MovementDirection,
        amount,
        movement_date: date,
        description: str | None = None,
        reference: str | None = None,
        document_number: str | None = None,
        category: FundCategory | None = None,
        service_provider_id: int | None = None,
        actor: str | None = None,
    ) -> BankMovement:
        """
        Register an unlinked bank movement.

        Outgoing movements without a description are described after their
        service provider ("Payment to {name}") or as "Bank outflow".

        Raises:
            NotFoundError: If the account or provider does not exist
            InvalidAmountError: If amount is not a positive cent amount
        """
        with atomic(self.db, "create_movement"):
            movement = self.build_movement(
                bank_account_id,
                direction,
                amount,
                movement_date,
                description,
                reference,
                document_number,
                category,
                service_provider_id,
            )
            AuditService.log(
                self.db,
                "movement",
                movement.id,
                "create",
                actor,
                {"direction": direction, "amount": movement.amount},
            )
        logger.info(
            "Created %s movement %d on account %d: %s",
            direction.value,
            movement.id,
            bank_account_id,
            movement.amount,
        )
        return movement

    def link_movement(
        self, movement_id: int, record_type, record_id: int, actor: str | None = None
    ) -> None:
        """
        Link a movement to a Payment, Charge or generic Transaction.

        Args:
            movement_id: Bank movement id
            record_type: LinkedRecordType (or its string value)
            record_id: Id of the record to link

        Raises:
            NotFoundError: If either side does not exist
            AlreadyLinkedError: If either side already has a partner
            InvalidLinkTargetError: If the type is unknown or the direction does not fit
        """
        movement = self.get_movement(movement_id)
        record_type, record = self._get_record(record_type, record_id)
        with self.allocator.locks.hold(self._apartment_of(record)):
            with atomic(self.db, "link_movement"):
                self.link_in_session(movement, record_type, record)
                AuditService.log(
                    self.db,
                    "movement",
                    movement.id,
                    "link",
                    actor,
                    {"record_type": record_type, "record_id": record.id},
                )
        logger.info("Linked movement %d to %s %d", movement_id, record_type.value, record_id)

    def unlink_movement(self, movement_id: int, actor: str | None = None) -> LinkedRecordType | None:
        """Clear a movement's link. Allocations are not touched.

        Returns:
            Type of the record that was unlinked, or None if there was none
        """
        movement = self.get_movement(movement_id)
        record_type = movement.linked_record_type
        if record_type is None:
            return None
        record_id = movement.linked_record.id

        with atomic(self.db, "unlink_movement"):
            movement.payment = None
            movement.charge = None
            movement.transaction = None
            AuditService.log(
                self.db,
                "movement",
                movement.id,
                "unlink",
                actor,
                {"record_type": record_type, "record_id": record_id},
            )
        logger.info("Unlinked movement %d from %s %d", movement_id, record_type.value, record_id)
        return record_type

    def create_linked_movement(
        self,
        record_type,
        record_id: int,
        bank_account_id: int,
        direction: MovementDirection,
        amount,
        movement_date: date,
        description: str | None = None,
        reference: str | None = None,
        category: FundCategory | None = None,
        actor: str | None = None,
    ) -> BankMovement:
        """Create a movement and link it to an existing record in one transaction."""
        record_type, record = self._get_record(record_type, record_id)
        with self.allocator.locks.hold(self._apartment_of(record)):
            with atomic(self.db, "create_linked_movement"):
                movement = self.build_movement(
                    bank_account_id,
                    direction,
                    amount,
                    movement_date,
                    description,
                    reference,
                    category=category,
                )
                self.link_in_session(movement, record_type, record)
                AuditService.log(
                    self.db,
                    "movement",
                    movement.id,
                    "create_linked",
                    actor,
                    {"record_type": record_type, "record_id": record.id, "amount": movement.amount},
                )
        logger.info(
            "Created movement %d linked to %s %d",
            movement.id,
            record_type.value,
            record_id,
        )
        return movement

    def update_linked_movement(
        self,
        movement_id: int,
        amount=None,
        movement_date: date | None = None,
        description: str | None = None,
        reference: str | None = None,
        document_number: str | None = None,
        category: FundCategory | None = None,
        actor: str | None = None,
    ) -> BankMovement:
        """
        Edit a movement and carry the change to its linked record.

        A linked Payment mirrors the movement's amount, date and description;
        when the amount changes its allocation is reversed under the old amount
        and applied again under the new one. A linked Transaction follows the
        movement's amount and date. A linked Charge is left alone.

        Raises:
            NotFoundError: If the movement does not exist
            InvalidAmountError: If the new amount is not a positive cent amount
            InconsistentStateError: If re-allocation would corrupt a charge
        """
        movement = self.get_movement(movement_id)
        new_amount = to_money(amount) if amount is not None else None
        payment = movement.payment
        apartment_id = payment.apartment_id if payment is not None else None

        with self.allocator.locks.hold(apartment_id or 0):
            with atomic(self.db, "update_linked_movement"):
                old_amount = movement.amount
                if new_amount is not None:
                    movement.amount = new_amount
                if movement_date is not None:
                    movement.movement_date = movement_date
                if description is not None:
                    movement.description = description
                if reference is not None:
                    movement.reference = reference
                if document_number is not None:
                    movement.document_number = document_number
                if category is not None:
                    movement.category = category

                reallocated = False
                if payment is not None:
                    payment.description = movement.description
                    reallocated = self._derive_payment(movement, payment)
                elif movement.transaction is not None:
                    movement.transaction.amount = movement.amount
                    movement.transaction.transaction_date = movement.movement_date

                self.db.flush()
                AuditService.log(
                    self.db,
                    "movement",
                    movement.id,
                    "update",
                    actor,
                    {
                        "old_amount": old_amount,
                        "amount": movement.amount,
                        "linked_type": movement.linked_record_type,
                        "reallocated": reallocated,
                    },
                )

        logger.info(
            "Updated movement %d (amount %s -> %s, reallocated=%s)",
            movement_id,
            old_amount,
            movement.amount,
            reallocated,
        )
        return movement

    def preview_deletion(self, movement_id: int) -> DeletionImpact:
        """Describe what delete_linked_movement would do, without writing."""
        movement = self.get_movement(movement_id)
        record_type = movement.linked_record_type
        record = movement.linked_record
        apartment_id = getattr(record, "apartment_id", None)
        return DeletionImpact(
            movement_id=movement.id,
            deleted_record_type=record_type,
            record_id=record.id if record is not None else None,
            amount=movement.amount,
            apartment_id=apartment_id,
            apartment_recalculated=record_type == LinkedRecordType.PAYMENT,
            record_deleted=record_type in (LinkedRecordType.PAYMENT, LinkedRecordType.TRANSACTION),
        )

    def delete_linked_movement(self, movement_id: int, actor: str | None = None) -> DeletionImpact:
        """
        Delete a movement together with the record it stands for.

        Payment partner: the allocation is reversed and the payment deleted.
        Transaction partner: deleted. Charge partner: unlinked only.

        Returns:
            DeletionImpact describing what was removed
        """
        impact = self.preview_deletion(movement_id)
        movement = self.get_movement(movement_id)

        with self.allocator.locks.hold(impact.apartment_id or 0):
            with atomic(self.db, "delete_linked_movement"):
                payment = movement.payment
                transaction = movement.transaction

                if payment is not None:
                    self.allocator.lock_apartment(payment.apartment_id)
                    self.allocator.reverse_in_session(payment)

                movement.payment = None
                movement.charge = None
                movement.transaction = None
                self.db.delete(movement)
                self.db.flush()

                if payment is not None:
                    self.db.delete(payment)
                    self.db.flush()
                    self.allocator.apply_credit_in_session(impact.apartment_id)
                elif transaction is not None:
                    self.db.delete(transaction)

                AuditService.log(
                    self.db,
                    "movement",
                    movement_id,
                    "delete",
                    actor,
                    {
                        "amount": impact.amount,
                        "record_type": impact.deleted_record_type,
                        "record_id": impact.record_id,
                        "record_deleted": impact.record_deleted,
                        "apartment_id": impact.apartment_id,
                    },
                )

        logger.info(
            "Deleted movement %d (%s %s, record deleted=%s)",
            movement_id,
            impact.deleted_record_type.value if impact.deleted_record_type else "unlinked",
            impact.record_id,
            impact.record_deleted,
        )
        return impact

    def match_unlinked_payment(
        self, payment_id: int, bank_account_id: int, actor: str | None = None
    ) -> BankMovement:
        """
        Create an incoming movement mirroring an unlinked payment and link it.

        Raises:
            NotFoundError: If the payment or account does not exist
            AlreadyLinkedError: If the payment already has a movement
        """
        payment = self.db.get(Payment, payment_id)
        if payment is None:
            raise NotFoundError("Payment", payment_id)
        if payment.linked_movement is not None:
            raise AlreadyLinkedError(
                f"Payment {payment_id} is already linked to movement {payment.linked_movement.id}",
                {"payment_id": payment_id, "movement_id": payment.linked_movement.id},
            )

        unit = payment.apartment.unit_number if payment.apartment is not None else "?"
        description = f"Payment Apt {unit} - {payment.description or ''}".rstrip(" -")

        with atomic(self.db, "match_unlinked_payment"):
            movement = self.build_movement(
                bank_account_id,
                MovementDirection.IN,
                payment.amount,
                payment.payment_date,
                description,
                reference=payment.reference,
            )
            self.link_in_session(movement, LinkedRecordType.PAYMENT, payment)
            AuditService.log(
                self.db,
                "movement",
                movement.id,
                "match",
                actor,
                {"payment_id": payment_id, "amount": payment.amount},
            )
        logger.info("Matched payment %d to new movement %d", payment_id, movement.id)
        return movement

    def list_unlinked_payments(self) -> list[Payment]:
        """Payments with no bank movement, newest first."""
        stmt = (
            select(Payment)
            .outerjoin(BankMovement, BankMovement.payment_id == Payment.id)
            .where(BankMovement.id.is_(None))
            .order_by(Payment.payment_date.desc(), Payment.id.desc())
        )
        return list(self.db.scalars(stmt))

    def set_reconciled(
        self, movement_id: int, reconciled: bool, actor: str | None = None
    ) -> BankMovement:
        movement = self.get_movement(movement_id)
        with atomic(self.db, "set_reconciled"):
            movement.reconciled = reconciled
            AuditService.log(
                self.db, "movement", movement.id, "reconcile", actor, {"reconciled": reconciled}
            )
        return movement

    def verify_linkage(self) -> list[str]:
        """
        Check the one-to-one link invariant across all movements.

        Returns:
            Human-readable violations; empty when every link is symmetric
        """
        violations = []

        for movement in self.db.scalars(select(BankMovement)):
            set_links = [
                name
                for name in ("payment_id", "charge_id", "transaction_id")
                if getattr(movement, name) is not None
            ]
            if len(set_links) > 1:
                violations.append(f"movement {movement.id} links several records: {set_links}")
            record = movement.linked_record
            if set_links and record is None:
                violations.append(
                    f"movement {movement.id} points to a missing {set_links[0][:-3]}"
                )
            if record is not None and record.linked_movement is not movement:
                violations.append(
                    f"movement {movement.id} and its {movement.linked_record_type.value} "
                    f"{record.id} disagree"
                )

        for column in (BankMovement.payment_id, BankMovement.charge_id, BankMovement.transaction_id):
            stmt = (
                select(column, func.count(BankMovement.id))
                .where(column.is_not(None))
                .group_by(column)
                .having(func.count(BankMovement.id) > 1)
            )
            for record_id, count in self.db.execute(stmt):
                violations.append(f"{column.key} {record_id} is linked from {count} movements")

        if violations:
            logger.error("Linkage check found %d violation(s)", len(violations))
        return violations


__all__ = ["BankLinkageService", "DeletionImpact", "RECORD_MODELS"]
