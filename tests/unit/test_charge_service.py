"""Unit tests for manual charge entry."""

from datetime import date
from decimal import Decimal

import pytest

from condo_ledger.errors import ChargeInUseError, InvalidAmountError, NotFoundError
from condo_ledger.models import BankMovement, Charge, ChargeCategory, MovementDirection, PaidState
from condo_ledger.services.allocation_service import AllocationService
from condo_ledger.services.charge_service import ChargeService
from condo_ledger.services.payment_service import PaymentService


@pytest.fixture
def allocator(db_session, locks):
    return AllocationService(db_session, locks)


@pytest.fixture
def service(db_session, allocator):
    return ChargeService(db_session, allocator)


@pytest.fixture
def apartment(make_apartment):
    return make_apartment()


class TestCreateCharge:
    def test_creates_unpaid_charge(self, service, apartment):
        charge = service.create_charge(
            apartment.id, "45.50", date(2025, 4, 2), ChargeCategory.REPAIRS, "Window"
        )

        assert charge.amount == Decimal("45.50")
        assert charge.paid_state == PaidState.UNPAID
        assert charge.description == "Window"

    def test_apartment_credit_applied(self, db_session, service, allocator, apartment):
        PaymentService(db_session, allocator).apply_payment(apartment.id, "30.00", date(2025, 4, 1))
        assert allocator.credit_balance(apartment.id) == Decimal("30.00")

        charge = service.create_charge(apartment.id, "50.00", date(2025, 4, 2), ChargeCategory.OTHER)

        assert charge.amount_paid == Decimal("30.00")
        assert charge.paid_state == PaidState.PARTIAL
        assert allocator.credit_balance(apartment.id) == Decimal("0.00")

    def test_invalid_amount(self, service, apartment):
        with pytest.raises(InvalidAmountError):
            service.create_charge(apartment.id, "0", date(2025, 4, 2), ChargeCategory.OTHER)

    def test_unknown_apartment(self, service):
        with pytest.raises(NotFoundError):
            service.create_charge(9, "10.00", date(2025, 4, 2), ChargeCategory.OTHER)


class TestDeleteCharge:
    def test_refused_while_allocated(self, db_session, service, allocator, apartment, make_charge):
        charge = make_charge(apartment, "100.00", date(2025, 1, 1))
        PaymentService(db_session, allocator).apply_payment(apartment.id, "10.00", date(2025, 1, 2))

        with pytest.raises(ChargeInUseError) as exc:
            service.delete_charge(charge.id)

        assert exc.value.context["charge_id"] == charge.id
        assert db_session.get(Charge, charge.id) is not None

    def test_delete_unlinks_movement(self, db_session, service, apartment, make_charge, make_account):
        charge = make_charge(apartment, "100.00", date(2025, 1, 1))
        account = make_account()
        movement = BankMovement(
            bank_account_id=account.id,
            direction=MovementDirection.IN,
            amount=Decimal("100.00"),
            movement_date=date(2025, 1, 3),
            description="Deposit",
            charge_id=charge.id,
        )
        db_session.add(movement)
        db_session.commit()
        charge_id = charge.id

        service.delete_charge(charge_id)

        assert db_session.get(Charge, charge_id) is None
        db_session.refresh(movement)
        assert movement.charge_id is None
