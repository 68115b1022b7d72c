"""Unit tests for the allocation service (apply / reverse / credit)."""

from datetime import date
from decimal import Decimal

import pytest

from condo_ledger.errors import InconsistentStateError, NotFoundError
from condo_ledger.models import AuditLog, PaidState, Payment, PaymentAllocation
from condo_ledger.services.allocation_service import AllocationService


@pytest.fixture
def allocator(db_session, locks):
    return AllocationService(db_session, locks)


@pytest.fixture
def apartment(make_apartment):
    return make_apartment()


@pytest.fixture
def make_payment(db_session):
    def _make(apartment, amount: str, payment_date: date) -> Payment:
        payment = Payment(
            apartment_id=apartment.id,
            amount=Decimal(amount),
            payment_date=payment_date,
            unapplied_amount=Decimal("0.00"),
        )
        db_session.add(payment)
        db_session.commit()
        return payment

    return _make


class TestApply:
    """Test the oldest-first allocation walk."""

    def test_oldest_first_partial_second(self, allocator, apartment, make_charge, make_payment):
        """Jan 100 + Feb 100, pay 150 -> Jan PAID 100, Feb PARTIAL 50."""
        feb = make_charge(apartment, "100.00", date(2024, 2, 1))
        jan = make_charge(apartment, "100.00", date(2024, 1, 1))
        payment = make_payment(apartment, "150.00", date(2024, 2, 10))

        result = allocator.apply(payment.id)

        assert jan.amount_paid == Decimal("100.00")
        assert jan.paid_state == PaidState.PAID
        assert feb.amount_paid == Decimal("50.00")
        assert feb.paid_state == PaidState.PARTIAL
        assert result.touched_charge_ids == [jan.id, feb.id]
        assert result.total == Decimal("150.00")
        assert result.unapplied == Decimal("0.00")

    def test_same_date_ties_break_by_creation_order(
        self, allocator, apartment, make_charge, make_payment
    ):
        first = make_charge(apartment, "80.00", date(2025, 1, 1))
        second = make_charge(apartment, "80.00", date(2025, 1, 1))
        payment = make_payment(apartment, "100.00", date(2025, 1, 5))

        allocator.apply(payment.id)

        assert first.paid_state == PaidState.PAID
        assert second.amount_paid == Decimal("20.00")

    def test_records_allocations_in_sequence(
        self, db_session, allocator, apartment, make_charge, make_payment
    ):
        c1 = make_charge(apartment, "30.00", date(2025, 1, 1))
        c2 = make_charge(apartment, "30.00", date(2025, 2, 1))
        payment = make_payment(apartment, "45.00", date(2025, 2, 3))

        allocator.apply(payment.id)

        rows = db_session.query(PaymentAllocation).order_by(PaymentAllocation.sequence).all()
        assert [(r.charge_id, r.amount, r.sequence) for r in rows] == [
            (c1.id, Decimal("30.00"), 1),
            (c2.id, Decimal("15.00"), 2),
        ]

    def test_skips_paid_charges(self, allocator, apartment, make_charge, make_payment):
        paid = make_charge(apartment, "50.00", date(2025, 1, 1))
        open_charge = make_charge(apartment, "50.00", date(2025, 2, 1))
        allocator.apply(make_payment(apartment, "50.00", date(2025, 1, 2)).id)

        allocator.apply(make_payment(apartment, "20.00", date(2025, 2, 2)).id)

        assert paid.amount_paid == Decimal("50.00")
        assert open_charge.amount_paid == Decimal("20.00")

    def test_overpayment_kept_as_credit(self, allocator, apartment, make_charge, make_payment):
        charge = make_charge(apartment, "100.00", date(2025, 1, 1))
        payment = make_payment(apartment, "130.00", date(2025, 1, 10))

        result = allocator.apply(payment.id)

        assert charge.paid_state == PaidState.PAID
        assert result.unapplied == Decimal("30.00")
        assert payment.unapplied_amount == Decimal("30.00")
        assert allocator.credit_balance(apartment.id) == Decimal("30.00")

    def test_apply_twice_is_idempotent(self, allocator, apartment, make_charge, make_payment):
        charge = make_charge(apartment, "100.00", date(2025, 1, 1))
        payment = make_payment(apartment, "60.00", date(2025, 1, 10))

        allocator.apply(payment.id)
        second = allocator.apply(payment.id)

        assert charge.amount_paid == Decimal("60.00")
        assert second.changes == []

    def test_apply_writes_audit_entry(self, db_session, allocator, apartment, make_charge, make_payment):
        make_charge(apartment, "100.00", date(2025, 1, 1))
        payment = make_payment(apartment, "40.00", date(2025, 1, 10))

        allocator.apply(payment.id, actor="admin")

        entry = db_session.query(AuditLog).filter_by(entity_type="payment", action="apply").one()
        assert entry.entity_id == payment.id
        assert entry.actor == "admin"
        assert entry.changes["applied"] == "40.00"

    def test_unknown_payment(self, allocator):
        with pytest.raises(NotFoundError):
            allocator.apply(999)


class TestReverse:
    """Test that reverse is the exact inverse of apply."""

    def test_round_trip_restores_charges(
        self, db_session, allocator, apartment, make_charge, make_payment
    ):
        c1 = make_charge(apartment, "33.33", date(2025, 1, 1))
        c2 = make_charge(apartment, "66.67", date(2025, 2, 1))
        c3 = make_charge(apartment, "10.01", date(2025, 3, 1))
        prior = make_payment(apartment, "20.00", date(2025, 1, 2))
        allocator.apply(prior.id)
        before = [(c.amount_paid, c.paid_state) for c in (c1, c2, c3)]

        payment = make_payment(apartment, "85.55", date(2025, 3, 2))
        allocator.apply(payment.id)
        result = allocator.reverse(payment.id)

        assert [(c.amount_paid, c.paid_state) for c in (c1, c2, c3)] == before
        assert result.touched_charge_ids == [c3.id, c2.id, c1.id]
        assert db_session.query(PaymentAllocation).filter_by(payment_id=payment.id).count() == 0
        assert payment.unapplied_amount == Decimal("0.00")

    def test_reverse_walks_most_recent_first(self, allocator, apartment, make_charge, make_payment):
        c1 = make_charge(apartment, "50.00", date(2025, 1, 1))
        c2 = make_charge(apartment, "50.00", date(2025, 2, 1))
        payment = make_payment(apartment, "70.00", date(2025, 2, 5))
        allocator.apply(payment.id)

        result = allocator.reverse(payment.id)

        assert result.touched_charge_ids == [c2.id, c1.id]
        assert [c.delta for c in result.changes] == [Decimal("-20.00"), Decimal("-50.00")]
        assert c1.paid_state == PaidState.UNPAID
        assert c2.paid_state == PaidState.UNPAID

    def test_reverse_clears_credit(self, allocator, apartment, make_charge, make_payment):
        make_charge(apartment, "10.00", date(2025, 1, 1))
        payment = make_payment(apartment, "25.00", date(2025, 1, 5))
        allocator.apply(payment.id)

        allocator.reverse(payment.id)

        assert allocator.credit_balance(apartment.id) == Decimal("0.00")

    def test_corrupted_charge_raises_and_rolls_back(
        self, db_session, allocator, apartment, make_charge, make_payment
    ):
        charge = make_charge(apartment, "100.00", date(2025, 1, 1))
        payment = make_payment(apartment, "60.00", date(2025, 1, 5))
        allocator.apply(payment.id)

        # Simulate an out-of-band write shrinking the cached amount
        charge.amount_paid = Decimal("10.00")
        charge.refresh_paid_state()
        db_session.commit()

        with pytest.raises(InconsistentStateError) as exc:
            allocator.reverse(payment.id)

        assert exc.value.context["charge_id"] == charge.id
        db_session.refresh(charge)
        assert charge.amount_paid == Decimal("10.00")
        assert db_session.query(PaymentAllocation).filter_by(payment_id=payment.id).count() == 1


class TestCredit:
    """Test over-payment credit application."""

    def test_apply_credit_covers_new_charge(
        self, db_session, allocator, apartment, make_charge, make_payment
    ):
        make_charge(apartment, "100.00", date(2025, 1, 1))
        payment = make_payment(apartment, "150.00", date(2025, 1, 10))
        allocator.apply(payment.id)

        new_charge = make_charge(apartment, "100.00", date(2025, 2, 1))
        results = allocator.apply_credit(apartment.id)

        assert len(results) == 1
        assert new_charge.amount_paid == Decimal("50.00")
        assert new_charge.paid_state == PaidState.PARTIAL
        assert payment.unapplied_amount == Decimal("0.00")
        assert allocator.credit_balance(apartment.id) == Decimal("0.00")

    def test_apply_credit_without_credit_is_noop(self, allocator, apartment, make_charge):
        charge = make_charge(apartment, "100.00", date(2025, 1, 1))

        assert allocator.apply_credit(apartment.id) == []
        assert charge.amount_paid == Decimal("0.00")


class TestQueries:
    """Test outstanding queries."""

    def test_outstanding_charges_and_total(
        self, allocator, make_apartment, make_charge, make_payment
    ):
        a = make_apartment("101")
        b = make_apartment("102")
        c1 = make_charge(a, "100.00", date(2025, 1, 1))
        c2 = make_charge(a, "40.00", date(2025, 2, 1))
        make_charge(b, "25.00", date(2025, 1, 1))
        allocator.apply(make_payment(a, "100.00", date(2025, 1, 3)).id)

        assert [c.id for c in allocator.outstanding_charges(a.id)] == [c2.id]
        assert c1.paid_state == PaidState.PAID
        assert allocator.outstanding_total() == Decimal("65.00")
