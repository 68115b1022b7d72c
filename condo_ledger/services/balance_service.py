"""Balance calculation service for apartments and bank accounts.

All balances are computed from raw amounts (charge and payment amounts, bank
movement amounts). The cached amount_paid / paid_state of charges never
enter a balance.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from condo_ledger.errors import NotFoundError
from condo_ledger.models.apartment import Apartment
from condo_ledger.models.bank_account import BankAccount
from condo_ledger.models.bank_movement import BankMovement, LinkedRecordType, MovementDirection
from condo_ledger.models.charge import Charge
from condo_ledger.models.payment import Payment
from condo_ledger.services.money import ZERO, day_before

logger = logging.getLogger(__name__)


def _dec(value) -> Decimal:
    return Decimal(str(value)) if value is not None else ZERO


@dataclass
class StatementLine:
    """One movement on an account statement with the balance after it."""

    movement_id: int
    movement_date: date
    description: str
    direction: MovementDirection
    amount: Decimal
    balance: Decimal
    reconciled: bool
    linked_record_type: LinkedRecordType | None


@dataclass
class AccountStatement:
    """Movements of one account in a date range with a running balance."""

    bank_account_id: int
    start: date | None
    end: date | None
    opening_balance: Decimal
    total_in: Decimal = ZERO
    total_out: Decimal = ZERO
    closing_balance: Decimal = ZERO
    lines: list[StatementLine] = field(default_factory=list)


class BalanceCalculationService:
    """Point-in-time balances for apartments, accounts and the treasury."""

    def __init__(self, db: Session):
        """Initialize with database session.

        Args:
            db: Session for database operations
        """
        self.db = db

    def apartment_balance(self, apartment_id: int, as_of: date | None = None) -> Decimal:
        """
        Calculate what an apartment owes as of a date.

        Args:
            apartment_id: Apartment id
            as_of: Inclusive cutoff date (None = all time)

        Returns:
            Σ charge amounts − Σ payment amounts dated on or before as_of.
            Positive means debt, negative means credit.

        Raises:
            NotFoundError: If the apartment does not exist
        """
        if self.db.get(Apartment, apartment_id) is None:
            raise NotFoundError("Apartment", apartment_id)

        charges = select(func.coalesce(func.sum(Charge.amount), 0)).where(
            Charge.apartment_id == apartment_id
        )
        payments = select(func.coalesce(func.sum(Payment.amount), 0)).where(
            Payment.apartment_id == apartment_id
        )
        if as_of is not None:
            charges = charges.where(Charge.charge_date <= as_of)
            payments = payments.where(Payment.payment_date <= as_of)

        return _dec(self.db.scalar(charges)) - _dec(self.db.scalar(payments))

    def apartment_balances(self, as_of: date | None = None) -> dict[int, Decimal]:
        """Balance of every apartment as of a date, keyed by apartment id."""
        charges = select(Charge.apartment_id, func.sum(Charge.amount)).where(
            Charge.apartment_id.is_not(None)
        )
        payments = select(Payment.apartment_id, func.sum(Payment.amount)).where(
            Payment.apartment_id.is_not(None)
        )
        if as_of is not None:
            charges = charges.where(Charge.charge_date <= as_of)
            payments = payments.where(Payment.payment_date <= as_of)

        balances = {apartment_id: ZERO for apartment_id in self.db.scalars(select(Apartment.id))}
        for apartment_id, total in self.db.execute(charges.group_by(Charge.apartment_id)):
            balances[apartment_id] = balances.get(apartment_id, ZERO) + _dec(total)
        for apartment_id, total in self.db.execute(payments.group_by(Payment.apartment_id)):
            balances[apartment_id] = balances.get(apartment_id, ZERO) - _dec(total)
        return balances

    def _net_movements(self, as_of: date | None):
        signed = case(
            (BankMovement.direction == MovementDirection.IN, BankMovement.amount),
            else_=-BankMovement.amount,
        )
        stmt = select(func.coalesce(func.sum(signed), 0))
        if as_of is not None:
            stmt = stmt.where(BankMovement.movement_date <= as_of)
        return stmt

    def bank_account_balance(self, bank_account_id: int, as_of: date | None = None) -> Decimal:
        """
        Opening balance plus incoming minus outgoing movements up to as_of.

        Raises:
            NotFoundError: If the account does not exist
        """
        account = self.db.get(BankAccount, bank_account_id)
        if account is None:
            raise NotFoundError("BankAccount", bank_account_id)
        stmt = self._net_movements(as_of).where(BankMovement.bank_account_id == bank_account_id)
        return _dec(account.opening_balance) + _dec(self.db.scalar(stmt))

    def treasury_balance(self, as_of: date | None = None) -> Decimal:
        """Sum of the balances of all active bank accounts."""
        opening = self.db.scalar(
            select(func.coalesce(func.sum(BankAccount.opening_balance), 0)).where(
                BankAccount.is_active.is_(True)
            )
        )
        stmt = (
            self._net_movements(as_of)
            .join(BankAccount, BankAccount.id == BankMovement.bank_account_id)
            .where(BankAccount.is_active.is_(True))
        )
        return _dec(opening) + _dec(self.db.scalar(stmt))

    def account_statement(
        self,
        bank_account_id: int,
        start: date | None = None,
        end: date | None = None,
    ) -> AccountStatement:
        """
        Build a running-balance statement for one account.

        The statement opens with the account balance on the day before start
        (the configured opening balance when start is None).

        Raises:
            NotFoundError: If the account does not exist
        """
        opening = (
            self.bank_account_balance(bank_account_id, day_before(start))
            if start is not None
            else self.bank_account_balance(bank_account_id, date.min)
        )

        stmt = select(BankMovement).where(BankMovement.bank_account_id == bank_account_id)
        if start is not None:
            stmt = stmt.where(BankMovement.movement_date >= start)
        if end is not None:
            stmt = stmt.where(BankMovement.movement_date <= end)
        stmt = stmt.order_by(BankMovement.movement_date.asc(), BankMovement.id.asc())

        statement = AccountStatement(
            bank_account_id=bank_account_id,
            start=start,
            end=end,
            opening_balance=opening,
        )
        balance = opening
        for movement in self.db.scalars(stmt):
            if movement.direction == MovementDirection.IN:
                statement.total_in += movement.amount
            else:
                statement.total_out += movement.amount
            balance += movement.signed_amount
            statement.lines.append(
                StatementLine(
                    movement_id=movement.id,
                    movement_date=movement.movement_date,
                    description=movement.description,
                    direction=movement.direction,
                    amount=movement.amount,
                    balance=balance,
                    reconciled=movement.reconciled,
                    linked_record_type=movement.linked_record_type,
                )
            )
        statement.closing_balance = balance
        return statement


__all__ = ["BalanceCalculationService", "AccountStatement", "StatementLine"]
