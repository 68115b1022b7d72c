"""Period report service for monthly, combined and accumulated statements.

Every report loads its rows up front against a single cutoff date and is
computed in memory from that snapshot. A failed read fails the whole report
with ReportUnavailableError; no report is ever returned with rows missing.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from condo_ledger.errors import ReportUnavailableError
from condo_ledger.models.apartment import Apartment, OccupancyType
from condo_ledger.models.bank_movement import BankMovement, FundCategory, MovementDirection
from condo_ledger.models.charge import Charge, ChargeCategory
from condo_ledger.models.payment import Payment, PaymentClassification
from condo_ledger.services.balance_service import BalanceCalculationService
from condo_ledger.services.money import ZERO, month_bounds, period_label, previous_month, quantize
from condo_ledger.services.notice_service import ReportNoticeService

logger = logging.getLogger(__name__)

FUND_BY_CHARGE_CATEGORY = {
    ChargeCategory.COMMON_EXPENSE: FundCategory.COMMON_EXPENSE,
    ChargeCategory.RESERVE_FUND: FundCategory.RESERVE_FUND,
}


@dataclass
class ApartmentReportRow:
    apartment_id: int
    unit_number: str
    occupancy: OccupancyType
    label: str
    prior_balance: Decimal
    payments_this_month: Decimal
    common_expense_this_month: Decimal
    reserve_fund_this_month: Decimal
    current_balance: Decimal


@dataclass
class ReportTotals:
    prior_balance: Decimal = ZERO
    payments_this_month: Decimal = ZERO
    common_expense_this_month: Decimal = ZERO
    reserve_fund_this_month: Decimal = ZERO
    current_balance: Decimal = ZERO

    def add(self, row: ApartmentReportRow) -> None:
        self.prior_balance += row.prior_balance
        self.payments_this_month += row.payments_this_month
        self.common_expense_this_month += row.common_expense_this_month
        self.reserve_fund_this_month += row.reserve_fund_this_month
        self.current_balance += row.current_balance


@dataclass
class OutflowLine:
    movement_id: int
    movement_date: date
    description: str
    category: FundCategory | None
    amount: Decimal
    bank_name: str


@dataclass
class BankSummary:
    """Bank-side figures of a month, split by fund."""

    collected_common_expense: Decimal = ZERO
    collected_reserve_fund: Decimal = ZERO
    spent_common_expense: Decimal = ZERO
    spent_reserve_fund: Decimal = ZERO
    spent_unclassified: Decimal = ZERO
    treasury_balance: Decimal = ZERO
    unsplit_payment_ids: list[int] = field(default_factory=list)


@dataclass
class NoticeLine:
    """A period notice as the statement lists it; inactive ones stay flagged."""

    notice_id: int
    text: str
    order: int
    is_active: bool


@dataclass
class MonthlyReport:
    month: int
    year: int
    period_label: str
    start: date
    end: date
    rows: list[ApartmentReportRow]
    totals: ReportTotals
    bank: BankSummary
    outflows: list[OutflowLine]
    notices: list[NoticeLine]
    footer: str


@dataclass
class CombinedReport:
    """A month's report paired with the month before it."""

    current: MonthlyReport
    previous: MonthlyReport


@dataclass
class FundFigures:
    common_expense: Decimal = ZERO
    reserve_fund: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.common_expense + self.reserve_fund


@dataclass
class AccumulatedReport:
    start: date
    end: date
    collected: FundFigures
    spent: FundFigures
    balance: FundFigures
    spent_unclassified: Decimal = ZERO

    @property
    def overall_balance(self) -> Decimal:
        return self.collected.total - self.spent.total


def resolve_fund(movement: BankMovement) -> FundCategory | None:
    """Fund an outflow is booked against.

    The linked transaction's category wins when it names a fund; otherwise the
    movement's own category is used.
    """
    if movement.transaction is not None and movement.transaction.category in FUND_BY_CHARGE_CATEGORY:
        return FUND_BY_CHARGE_CATEGORY[movement.transaction.category]
    return movement.category


class PeriodReportService:
    """Builds period statements from a consistent snapshot of the ledger."""

    def __init__(self, db: Session):
        """Initialize with database session.

        Args:
            db: Session for database operations
        """
        self.db = db
        self.balances = BalanceCalculationService(db)
        self.notices = ReportNoticeService(db)

    # ------------------------------------------------------------------
    # Monthly
    # ------------------------------------------------------------------

    def monthly_report(self, month: int, year: int) -> MonthlyReport:
        """
        Build the monthly statement.

        Args:
            month: 1..12
            year: Four-digit year

        Returns:
            MonthlyReport with one row per apartment, bank summary, outflows,
            every notice of the period with its active flag, and footer

        Raises:
            ValueError: If month is out of range
            ReportUnavailableError: If any ledger row could not be read
        """
        start, end = month_bounds(month, year)
        try:
            return self._build_monthly(month, year, start, end)
        except SQLAlchemyError as e:
            logger.error("Monthly report %d-%02d failed: %s", year, month, e, exc_info=True)
            raise ReportUnavailableError(
                f"Monthly report for {period_label(month, year)} could not be produced",
                {"month": month, "year": year},
            ) from e

    def _build_monthly(self, month: int, year: int, start: date, end: date) -> MonthlyReport:
        apartments = list(
            self.db.scalars(
                select(Apartment).order_by(Apartment.unit_number.asc(), Apartment.occupancy.asc())
            )
        )
        charges = list(self.db.scalars(select(Charge).where(Charge.apartment_id.is_not(None))))
        payments = list(
            self.db.scalars(
                select(Payment)
                .options(selectinload(Payment.linked_movement))
                .where(Payment.payment_date <= end)
            )
        )
        outflow_movements = list(
            self.db.scalars(
                select(BankMovement)
                .options(
                    selectinload(BankMovement.transaction),
                    selectinload(BankMovement.bank_account),
                )
                .where(
                    BankMovement.direction == MovementDirection.OUT,
                    BankMovement.movement_date >= start,
                    BankMovement.movement_date <= end,
                )
                .order_by(BankMovement.movement_date.asc(), BankMovement.id.asc())
            )
        )
        treasury = self.balances.treasury_balance(end)
        notices = [
            NoticeLine(n.id, n.text, n.order, n.is_active)
            for n in self.notices.list_notices(month, year)
        ]
        footer = self.notices.get_footer()

        charges_by_apartment = defaultdict(list)
        for charge in charges:
            charges_by_apartment[charge.apartment_id].append(charge)
        payments_by_apartment = defaultdict(list)
        for payment in payments:
            payments_by_apartment[payment.apartment_id].append(payment)

        rows = []
        totals = ReportTotals()
        for apartment in apartments:
            row = self._apartment_row(
                apartment,
                charges_by_apartment[apartment.id],
                payments_by_apartment[apartment.id],
                start,
                end,
            )
            rows.append(row)
            totals.add(row)

        bank = self._bank_summary(payments, charges_by_apartment, outflow_movements, start)
        bank.treasury_balance = treasury

        outflows = [
            OutflowLine(
                movement_id=m.id,
                movement_date=m.movement_date,
                description=m.description,
                category=resolve_fund(m),
                amount=m.amount,
                bank_name=m.bank_account.bank_name,
            )
            for m in outflow_movements
        ]

        return MonthlyReport(
            month=month,
            year=year,
            period_label=period_label(month, year),
            start=start,
            end=end,
            rows=rows,
            totals=totals,
            bank=bank,
            outflows=outflows,
            notices=notices,
            footer=footer,
        )

    @staticmethod
    def _apartment_row(
        apartment: Apartment,
        charges: list[Charge],
        payments: list[Payment],
        start: date,
        end: date,
    ) -> ApartmentReportRow:
        prior_charges = sum((c.amount for c in charges if c.charge_date < start), ZERO)
        prior_payments = sum((p.amount for p in payments if p.payment_date < start), ZERO)
        prior_balance = prior_charges - prior_payments

        in_month = [c for c in charges if start <= c.charge_date <= end]
        common = sum((c.amount for c in in_month if c.category == ChargeCategory.COMMON_EXPENSE), ZERO)
        reserve = sum((c.amount for c in in_month if c.category == ChargeCategory.RESERVE_FUND), ZERO)
        paid = sum((p.amount for p in payments if p.payment_date >= start), ZERO)

        return ApartmentReportRow(
            apartment_id=apartment.id,
            unit_number=apartment.unit_number,
            occupancy=apartment.occupancy,
            label=apartment.label,
            prior_balance=prior_balance,
            payments_this_month=paid,
            common_expense_this_month=common,
            reserve_fund_this_month=reserve,
            current_balance=prior_balance + common + reserve - paid,
        )

    @staticmethod
    def _bank_summary(
        payments: list[Payment],
        charges_by_apartment: dict[int, list[Charge]],
        outflows: list[BankMovement],
        start: date,
    ) -> BankSummary:
        summary = BankSummary()

        collected_common = Decimal(0)
        collected_reserve = Decimal(0)
        for payment in payments:
            if payment.payment_date < start or payment.linked_movement is None:
                continue
            apartment_charges = charges_by_apartment.get(payment.apartment_id, [])
            paid_common = sum(
                (c.amount_paid for c in apartment_charges if c.category == ChargeCategory.COMMON_EXPENSE),
                ZERO,
            )
            paid_reserve = sum(
                (c.amount_paid for c in apartment_charges if c.category == ChargeCategory.RESERVE_FUND),
                ZERO,
            )
            denominator = paid_common + paid_reserve
            if denominator == 0:
                logger.warning(
                    "Payment %d (apartment %s) has no allocated common/reserve amount; "
                    "left out of the collected split",
                    payment.id,
                    payment.apartment_id,
                )
                summary.unsplit_payment_ids.append(payment.id)
                continue
            collected_common += payment.amount * paid_common / denominator
            collected_reserve += payment.amount * paid_reserve / denominator

        summary.collected_common_expense = quantize(collected_common)
        summary.collected_reserve_fund = quantize(collected_reserve)

        for movement in outflows:
            fund = resolve_fund(movement)
            if fund == FundCategory.COMMON_EXPENSE:
                summary.spent_common_expense += movement.amount
            elif fund == FundCategory.RESERVE_FUND:
                summary.spent_reserve_fund += movement.amount
            else:
                summary.spent_unclassified += movement.amount
        return summary

    # ------------------------------------------------------------------
    # Combined and accumulated
    # ------------------------------------------------------------------

    def combined_report(self, month: int, year: int) -> CombinedReport:
        """Monthly report for the month and the one before (January pairs with December)."""
        prev_month, prev_year = previous_month(month, year)
        return CombinedReport(
            current=self.monthly_report(month, year),
            previous=self.monthly_report(prev_month, prev_year),
        )

    def accumulated_report(self, start: date, end: date) -> AccumulatedReport:
        """
        Collected versus spent per fund over an arbitrary date range.

        Payments are split by classification. MIXED payments use their explicit
        portions and count entirely as common expense when they carry none.

        Raises:
            ValueError: If start is after end
            ReportUnavailableError: If any ledger row could not be read
        """
        if start > end:
            raise ValueError(f"Report start {start} is after end {end}")
        try:
            payments = list(
                self.db.scalars(
                    select(Payment).where(Payment.payment_date >= start, Payment.payment_date <= end)
                )
            )
            outflows = list(
                self.db.scalars(
                    select(BankMovement)
                    .options(selectinload(BankMovement.transaction))
                    .where(
                        BankMovement.direction == MovementDirection.OUT,
                        BankMovement.movement_date >= start,
                        BankMovement.movement_date <= end,
                    )
                )
            )
        except SQLAlchemyError as e:
            logger.error("Accumulated report %s..%s failed: %s", start, end, e, exc_info=True)
            raise ReportUnavailableError(
                f"Accumulated report {start} to {end} could not be produced",
                {"start": start.isoformat(), "end": end.isoformat()},
            ) from e

        collected = FundFigures()
        for payment in payments:
            if payment.classification == PaymentClassification.COMMON_EXPENSE:
                collected.common_expense += payment.amount
            elif payment.classification == PaymentClassification.RESERVE_FUND:
                collected.reserve_fund += payment.amount
            elif payment.common_expense_portion is None and payment.reserve_fund_portion is None:
                collected.common_expense += payment.amount
            else:
                collected.common_expense += payment.common_expense_portion or ZERO
                collected.reserve_fund += payment.reserve_fund_portion or ZERO

        spent = FundFigures()
        unclassified = ZERO
        for movement in outflows:
            fund = resolve_fund(movement)
            if fund == FundCategory.COMMON_EXPENSE:
                spent.common_expense += movement.amount
            elif fund == FundCategory.RESERVE_FUND:
                spent.reserve_fund += movement.amount
            else:
                unclassified += movement.amount

        return AccumulatedReport(
            start=start,
            end=end,
            collected=collected,
            spent=spent,
            balance=FundFigures(
                common_expense=collected.common_expense - spent.common_expense,
                reserve_fund=collected.reserve_fund - spent.reserve_fund,
            ),
            spent_unclassified=unclassified,
        )


__all__ = [
    "PeriodReportService",
    "MonthlyReport",
    "CombinedReport",
    "AccumulatedReport",
    "ApartmentReportRow",
    "ReportTotals",
    "BankSummary",
    "OutflowLine",
    "NoticeLine",
    "FundFigures",
    "resolve_fund",
]
