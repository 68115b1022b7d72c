"""Ledger API endpoints.

Exposes payment registration and reversal, bank movement linkage, apartment
balances, period reports and monthly charge generation. Ledger errors are
rendered by ``ledger_error_handler`` as {"error": {code, message, context}}.
"""

import logging
from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from condo_ledger.errors import LedgerError
from condo_ledger.models.apartment import OccupancyType
from condo_ledger.models.bank_movement import FundCategory, LinkedRecordType, MovementDirection
from condo_ledger.models.payment import PaymentClassification, PaymentMethod
from condo_ledger.services import get_db
from condo_ledger.services.balance_service import BalanceCalculationService
from condo_ledger.services.linkage_service import BankLinkageService
from condo_ledger.services.payment_service import PaymentService
from condo_ledger.services.period_service import ChargeGenerationService, GenerationStatus
from condo_ledger.services.report_service import PeriodReportService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ledger", tags=["ledger"])


# Request schemas
class PaymentCreateRequest(BaseModel):
    """Request schema for registering a payment."""

    apartment_id: int
    amount: Decimal
    payment_date: date
    classification: PaymentClassification = PaymentClassification.COMMON_EXPENSE
    bank_account_id: int | None = None
    method: PaymentMethod = PaymentMethod.TRANSFER
    reference: str | None = None
    notes: str | None = None
    common_expense_portion: Decimal | None = None
    reserve_fund_portion: Decimal | None = None


class LinkRequest(BaseModel):
    record_type: str  # payment | charge | transaction
    record_id: int


class MatchRequest(BaseModel):
    bank_account_id: int


class GenerateChargesRequest(BaseModel):
    month: int = Field(ge=1, le=12)
    year: int = Field(ge=1900, le=9999)


# Response schemas
class PaymentResponse(BaseModel):
    """Response schema for a stored payment."""

    id: int
    apartment_id: int | None
    amount: Decimal
    payment_date: date
    classification: PaymentClassification
    method: PaymentMethod
    reference: str | None
    description: str | None
    unapplied_amount: Decimal
    bank_movement_id: int | None

    model_config = ConfigDict(from_attributes=True)


class MovementResponse(BaseModel):
    id: int
    bank_account_id: int
    direction: MovementDirection
    amount: Decimal
    movement_date: date
    description: str
    category: FundCategory | None
    reconciled: bool
    linked_record_type: LinkedRecordType | None

    model_config = ConfigDict(from_attributes=True)


class DeletionImpactResponse(BaseModel):
    """What deleting a movement removes; shown to the operator before confirming."""

    movement_id: int
    deleted_record_type: LinkedRecordType | None
    record_id: int | None
    amount: Decimal
    apartment_id: int | None
    apartment_recalculated: bool
    record_deleted: bool

    model_config = ConfigDict(from_attributes=True)


class BalanceResponse(BaseModel):
    apartment_id: int
    as_of: date | None
    balance: Decimal


class ApartmentRowResponse(BaseModel):
    apartment_id: int
    unit_number: str
    occupancy: OccupancyType
    label: str
    prior_balance: Decimal
    payments_this_month: Decimal
    common_expense_this_month: Decimal
    reserve_fund_this_month: Decimal
    current_balance: Decimal

    model_config = ConfigDict(from_attributes=True)


class TotalsResponse(BaseModel):
    prior_balance: Decimal
    payments_this_month: Decimal
    common_expense_this_month: Decimal
    reserve_fund_this_month: Decimal
    current_balance: Decimal

    model_config = ConfigDict(from_attributes=True)


class BankSummaryResponse(BaseModel):
    collected_common_expense: Decimal
    collected_reserve_fund: Decimal
    spent_common_expense: Decimal
    spent_reserve_fund: Decimal
    spent_unclassified: Decimal
    treasury_balance: Decimal
    unsplit_payment_ids: list[int]

    model_config = ConfigDict(from_attributes=True)


class OutflowResponse(BaseModel):
    movement_id: int
    movement_date: date
    description: str
    category: FundCategory | None
    amount: Decimal
    bank_name: str

    model_config = ConfigDict(from_attributes=True)


class NoticeLineResponse(BaseModel):
    notice_id: int
    text: str
    order: int
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class MonthlyReportResponse(BaseModel):
    """Response schema for a monthly statement."""

    month: int
    year: int
    period_label: str
    start: date
    end: date
    rows: list[ApartmentRowResponse]
    totals: TotalsResponse
    bank: BankSummaryResponse
    outflows: list[OutflowResponse]
    notices: list[NoticeLineResponse]
    footer: str

    model_config = ConfigDict(from_attributes=True)


class CombinedReportResponse(BaseModel):
    current: MonthlyReportResponse
    previous: MonthlyReportResponse

    model_config = ConfigDict(from_attributes=True)


class FundFiguresResponse(BaseModel):
    common_expense: Decimal
    reserve_fund: Decimal
    total: Decimal

    model_config = ConfigDict(from_attributes=True)


class AccumulatedReportResponse(BaseModel):
    start: date
    end: date
    collected: FundFiguresResponse
    spent: FundFiguresResponse
    balance: FundFiguresResponse
    spent_unclassified: Decimal
    overall_balance: Decimal

    model_config = ConfigDict(from_attributes=True)


class GenerationResponse(BaseModel):
    created: int
    period_label: str
    status: GenerationStatus
    charge_ids: list[int]

    model_config = ConfigDict(from_attributes=True)


def _server_error(endpoint: str, e: Exception) -> HTTPException:
    logger.error(f"Error in /api/ledger/{endpoint}: {e}", exc_info=True)
    return HTTPException(status_code=500, detail="Server error")


# Payments
@router.post("/payments", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
def create_payment(
    request: PaymentCreateRequest,
    db: Session = Depends(get_db),  # noqa: B008
) -> PaymentResponse:
    """
    Register a payment and allocate it against the apartment's charges.

    Raises:
        404: Apartment or bank account not found
        422: Invalid amount
    """
    try:
        payment = PaymentService(db).apply_payment(**request.model_dump())
        return PaymentResponse.model_validate(payment)
    except LedgerError:
        raise
    except Exception as e:
        raise _server_error("payments", e) from e


@router.delete("/payments/{payment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_payment(payment_id: int, db: Session = Depends(get_db)) -> Response:  # noqa: B008
    """Reverse a payment's allocation and delete it with its bank movement."""
    try:
        PaymentService(db).reverse_payment(payment_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except LedgerError:
        raise
    except Exception as e:
        raise _server_error("payments/{id}", e) from e


@router.post(
    "/payments/{payment_id}/match",
    response_model=MovementResponse,
    status_code=status.HTTP_201_CREATED,
)
def match_payment(
    payment_id: int,
    request: MatchRequest,
    db: Session = Depends(get_db),  # noqa: B008
) -> MovementResponse:
    """Create an incoming bank movement mirroring an unlinked payment."""
    try:
        movement = BankLinkageService(db).match_unlinked_payment(payment_id, request.bank_account_id)
        return MovementResponse.model_validate(movement)
    except LedgerError:
        raise
    except Exception as e:
        raise _server_error("payments/{id}/match", e) from e


# Movements
@router.post("/movements/{movement_id}/link", status_code=status.HTTP_204_NO_CONTENT)
def link_movement(
    movement_id: int,
    request: LinkRequest,
    db: Session = Depends(get_db),  # noqa: B008
) -> Response:
    """
    Link a bank movement to a payment, charge or transaction.

    Raises:
        400: Unknown record type or wrong movement direction
        404: Movement or record not found
        409: Either side already linked
    """
    try:
        BankLinkageService(db).link_movement(movement_id, request.record_type, request.record_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except LedgerError:
        raise
    except Exception as e:
        raise _server_error("movements/{id}/link", e) from e


@router.get("/movements/{movement_id}/deletion-impact", response_model=DeletionImpactResponse)
def deletion_impact(movement_id: int, db: Session = Depends(get_db)) -> DeletionImpactResponse:  # noqa: B008
    """Preview what deleting the movement would remove."""
    try:
        impact = BankLinkageService(db).preview_deletion(movement_id)
        return DeletionImpactResponse.model_validate(impact)
    except LedgerError:
        raise
    except Exception as e:
        raise _server_error("movements/{id}/deletion-impact", e) from e


@router.delete("/movements/{movement_id}", response_model=DeletionImpactResponse)
def delete_movement(movement_id: int, db: Session = Depends(get_db)) -> DeletionImpactResponse:  # noqa: B008
    """Delete a movement with its linked payment or transaction."""
    try:
        impact = BankLinkageService(db).delete_linked_movement(movement_id)
        return DeletionImpactResponse.model_validate(impact)
    except LedgerError:
        raise
    except Exception as e:
        raise _server_error("movements/{id}", e) from e


# Balances
@router.get("/apartments/{apartment_id}/balance", response_model=BalanceResponse)
def apartment_balance(
    apartment_id: int,
    as_of: date | None = None,
    db: Session = Depends(get_db),  # noqa: B008
) -> BalanceResponse:
    """Apartment balance as of a date (positive = owes)."""
    try:
        balance = BalanceCalculationService(db).apartment_balance(apartment_id, as_of)
        return BalanceResponse(apartment_id=apartment_id, as_of=as_of, balance=balance)
    except LedgerError:
        raise
    except Exception as e:
        raise _server_error("apartments/{id}/balance", e) from e


# Reports
@router.get("/reports/monthly/{year}/{month}", response_model=MonthlyReportResponse)
def monthly_report(
    year: int,
    month: int = Path(ge=1, le=12),
    db: Session = Depends(get_db),  # noqa: B008
) -> MonthlyReportResponse:
    try:
        report = PeriodReportService(db).monthly_report(month, year)
        return MonthlyReportResponse.model_validate(report)
    except LedgerError:
        raise
    except Exception as e:
        raise _server_error("reports/monthly", e) from e


@router.get("/reports/combined/{year}/{month}", response_model=CombinedReportResponse)
def combined_report(
    year: int,
    month: int = Path(ge=1, le=12),
    db: Session = Depends(get_db),  # noqa: B008
) -> CombinedReportResponse:
    try:
        report = PeriodReportService(db).combined_report(month, year)
        return CombinedReportResponse.model_validate(report)
    except LedgerError:
        raise
    except Exception as e:
        raise _server_error("reports/combined", e) from e


@router.get("/reports/accumulated", response_model=AccumulatedReportResponse)
def accumulated_report(
    start: date = Query(...),
    end: date = Query(...),
    db: Session = Depends(get_db),  # noqa: B008
) -> AccumulatedReportResponse:
    """Collected versus spent per fund between two dates (inclusive)."""
    if start > end:
        raise HTTPException(status_code=422, detail="start must not be after end")
    try:
        report = PeriodReportService(db).accumulated_report(start, end)
        return AccumulatedReportResponse.model_validate(report)
    except LedgerError:
        raise
    except Exception as e:
        raise _server_error("reports/accumulated", e) from e


# Charges
@router.post("/charges/generate", response_model=GenerationResponse)
def generate_charges(
    request: GenerateChargesRequest,
    db: Session = Depends(get_db),  # noqa: B008
) -> GenerationResponse:
    """Create the period's missing monthly charges (idempotent)."""
    try:
        result = ChargeGenerationService(db).generate_monthly_charges(request.month, request.year)
        return GenerationResponse.model_validate(result)
    except LedgerError:
        raise
    except Exception as e:
        raise _server_error("charges/generate", e) from e


__all__ = ["router"]
