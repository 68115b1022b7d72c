"""Unit tests for period reports."""

import logging
from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from condo_ledger.errors import ReportUnavailableError
from condo_ledger.models import (
    ChargeCategory,
    FundCategory,
    MovementDirection,
    OccupancyType,
    PaymentClassification,
    Transaction,
    TransactionKind,
)
from condo_ledger.services.allocation_service import AllocationService
from condo_ledger.services.linkage_service import BankLinkageService
from condo_ledger.services.notice_service import ReportNoticeService
from condo_ledger.services.payment_service import PaymentService
from condo_ledger.services.report_service import PeriodReportService


@pytest.fixture
def allocator(db_session, locks):
    return AllocationService(db_session, locks)


@pytest.fixture
def payments(db_session, allocator):
    return PaymentService(db_session, allocator)


@pytest.fixture
def linkage(db_session, allocator):
    return BankLinkageService(db_session, allocator)


@pytest.fixture
def service(db_session):
    return PeriodReportService(db_session)


@pytest.fixture
def account(make_account):
    return make_account("1000.00")


class TestMonthlyRows:
    """Test per-apartment rows."""

    def test_row_figures(self, service, payments, make_apartment, make_charge, account):
        apartment = make_apartment("101")
        make_charge(apartment, "90.00", date(2024, 12, 1))
        make_charge(apartment, "100.00", date(2025, 1, 1))
        make_charge(apartment, "20.00", date(2025, 1, 1), ChargeCategory.RESERVE_FUND)
        make_charge(apartment, "15.00", date(2025, 1, 3), ChargeCategory.REPAIRS)
        make_charge(apartment, "100.00", date(2025, 2, 1))
        payments.apply_payment(apartment.id, "50.00", date(2024, 12, 15))
        payments.apply_payment(apartment.id, "60.00", date(2025, 1, 15), bank_account_id=account.id)

        report = service.monthly_report(1, 2025)

        row = report.rows[0]
        assert row.prior_balance == Decimal("40.00")
        assert row.payments_this_month == Decimal("60.00")
        assert row.common_expense_this_month == Decimal("100.00")
        assert row.reserve_fund_this_month == Decimal("20.00")
        assert row.current_balance == Decimal("100.00")
        assert report.period_label == "January 2025"

    def test_rows_ordered_and_totalled(self, service, make_apartment, make_charge):
        b = make_apartment("102")
        tenant = make_apartment("101", occupancy=OccupancyType.TENANT)
        owner = make_apartment("101", occupancy=OccupancyType.OWNER)
        make_charge(b, "10.00", date(2025, 1, 1))
        make_charge(owner, "5.00", date(2025, 1, 1))

        report = service.monthly_report(1, 2025)

        assert [r.apartment_id for r in report.rows] == [owner.id, tenant.id, b.id]
        assert report.totals.common_expense_this_month == Decimal("15.00")
        assert report.totals.current_balance == Decimal("15.00")

    def test_notices_and_footer(self, db_session, service, make_apartment):
        make_apartment()
        notices = ReportNoticeService(db_session)
        notices.create("Water cut on the 12th", 1, 2025)
        hidden = notices.create("Draft", 1, 2025)
        notices.update(hidden.id, is_active=False)
        notices.create("Other month", 2, 2025)

        report = service.monthly_report(1, 2025)

        assert [(n.text, n.is_active) for n in report.notices] == [
            ("Water cut on the 12th", True),
            ("Draft", False),
        ]
        assert report.notices[1].notice_id == hidden.id
        assert report.footer == "Building Administration System"


class TestBankSummary:
    """Test the collected / spent split of a month."""

    def test_collected_split_quantized_once(
        self, db_session, service, payments, make_apartment, make_charge, account
    ):
        apartment = make_apartment()
        make_charge(apartment, "200.00", date(2025, 1, 1))
        make_charge(apartment, "100.00", date(2025, 1, 1), ChargeCategory.RESERVE_FUND)
        payments.apply_payment(apartment.id, "100.00", date(2025, 1, 5), bank_account_id=account.id)
        payments.apply_payment(apartment.id, "100.00", date(2025, 1, 6), bank_account_id=account.id)
        payments.apply_payment(apartment.id, "100.00", date(2025, 1, 7))

        bank = service.monthly_report(1, 2025).bank

        # 2 x 100 x 2/3 and 2 x 100 x 1/3, rounded after summing
        assert bank.collected_common_expense == Decimal("133.33")
        assert bank.collected_reserve_fund == Decimal("66.67")
        assert bank.unsplit_payment_ids == []

    def test_zero_denominator_payment_skipped(
        self, service, payments, make_apartment, account, caplog
    ):
        apartment = make_apartment()
        payment = payments.apply_payment(
            apartment.id, "80.00", date(2025, 1, 5), bank_account_id=account.id
        )

        with caplog.at_level(logging.WARNING, logger="condo_ledger.services.report_service"):
            bank = service.monthly_report(1, 2025).bank

        assert bank.unsplit_payment_ids == [payment.id]
        assert bank.collected_common_expense == Decimal("0.00")
        assert bank.collected_reserve_fund == Decimal("0.00")
        assert any(str(payment.id) in r.getMessage() for r in caplog.records)

    def test_spent_by_resolved_category(self, db_session, service, linkage, account):
        repair = Transaction(
            kind=TransactionKind.EXPENSE,
            amount=Decimal("300.00"),
            transaction_date=date(2025, 1, 20),
            category=ChargeCategory.RESERVE_FUND,
        )
        cleaning = Transaction(
            kind=TransactionKind.EXPENSE,
            amount=Decimal("40.00"),
            transaction_date=date(2025, 1, 21),
            category=ChargeCategory.CLEANING,
        )
        db_session.add_all([repair, cleaning])
        db_session.commit()

        m1 = linkage.create_movement(
            account.id, MovementDirection.OUT, "300.00", date(2025, 1, 20),
            category=FundCategory.COMMON_EXPENSE,
        )
        linkage.link_movement(m1.id, "transaction", repair.id)
        m2 = linkage.create_movement(
            account.id, MovementDirection.OUT, "40.00", date(2025, 1, 21),
            category=FundCategory.COMMON_EXPENSE,
        )
        linkage.link_movement(m2.id, "transaction", cleaning.id)
        linkage.create_movement(account.id, MovementDirection.OUT, "7.00", date(2025, 1, 2))
        linkage.create_movement(account.id, MovementDirection.OUT, "99.00", date(2025, 2, 1))

        report = service.monthly_report(1, 2025)

        assert report.bank.spent_reserve_fund == Decimal("300.00")
        assert report.bank.spent_common_expense == Decimal("40.00")
        assert report.bank.spent_unclassified == Decimal("7.00")
        assert [o.amount for o in report.outflows] == [
            Decimal("7.00"),
            Decimal("300.00"),
            Decimal("40.00"),
        ]
        assert report.outflows[0].bank_name == "BROU"
        assert report.outflows[1].category == FundCategory.RESERVE_FUND
        assert report.bank.treasury_balance == Decimal("653.00")


class TestCombinedReport:
    def test_january_pairs_with_previous_december(self, service, make_apartment):
        make_apartment()

        combined = service.combined_report(1, 2025)

        assert (combined.current.month, combined.current.year) == (1, 2025)
        assert (combined.previous.month, combined.previous.year) == (12, 2024)


class TestAccumulatedReport:
    def test_collected_by_classification(self, service, payments, make_apartment, linkage, account):
        apartment = make_apartment()
        payments.apply_payment(apartment.id, "100.00", date(2025, 1, 5))
        payments.apply_payment(
            apartment.id, "30.00", date(2025, 2, 5), PaymentClassification.RESERVE_FUND
        )
        payments.apply_payment(
            apartment.id,
            "50.00",
            date(2025, 2, 6),
            PaymentClassification.MIXED,
            common_expense_portion="35.00",
            reserve_fund_portion="15.00",
        )
        payments.apply_payment(apartment.id, "12.00", date(2025, 3, 6), PaymentClassification.MIXED)
        payments.apply_payment(apartment.id, "999.00", date(2025, 4, 1))
        linkage.create_movement(
            account.id, MovementDirection.OUT, "60.00", date(2025, 2, 10),
            category=FundCategory.COMMON_EXPENSE,
        )
        linkage.create_movement(
            account.id, MovementDirection.OUT, "20.00", date(2025, 3, 10),
            category=FundCategory.RESERVE_FUND,
        )
        linkage.create_movement(account.id, MovementDirection.OUT, "5.00", date(2025, 3, 11))

        report = service.accumulated_report(date(2025, 1, 1), date(2025, 3, 31))

        assert report.collected.common_expense == Decimal("147.00")
        assert report.collected.reserve_fund == Decimal("45.00")
        assert report.spent.common_expense == Decimal("60.00")
        assert report.spent.reserve_fund == Decimal("20.00")
        assert report.spent_unclassified == Decimal("5.00")
        assert report.balance.common_expense == Decimal("87.00")
        assert report.balance.reserve_fund == Decimal("25.00")
        assert report.overall_balance == Decimal("112.00")

    def test_start_after_end(self, service):
        with pytest.raises(ValueError):
            service.accumulated_report(date(2025, 2, 1), date(2025, 1, 1))


class TestFailClosed:
    """A read failure fails the whole report."""

    def test_monthly_report_unavailable(self, db_session, service, make_apartment):
        make_apartment()
        error = OperationalError("SELECT", {}, Exception("database is locked"))

        with patch.object(db_session, "scalars", side_effect=error):
            with pytest.raises(ReportUnavailableError) as exc:
                service.monthly_report(1, 2025)

        assert exc.value.context == {"month": 1, "year": 2025}
        assert exc.value.http_status == 503

    def test_failure_after_partial_read(self, db_session, service, make_apartment):
        make_apartment()
        real_scalars = db_session.scalars
        calls = {"n": 0}

        def flaky(*args, **kwargs):
            calls["n"] += 1
            if calls["n"] == 3:
                raise SQLAlchemyError("connection dropped")
            return real_scalars(*args, **kwargs)

        with patch.object(db_session, "scalars", side_effect=flaky):
            with pytest.raises(ReportUnavailableError):
                service.monthly_report(1, 2025)

    def test_accumulated_report_unavailable(self, db_session, service):
        with patch.object(db_session, "scalars", side_effect=SQLAlchemyError("boom")):
            with pytest.raises(ReportUnavailableError):
                service.accumulated_report(date(2025, 1, 1), date(2025, 1, 31))
