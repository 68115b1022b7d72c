"""Pytest configuration and shared ledger fixtures."""

import os

# Set test database URL BEFORE any imports from condo_ledger
# so the module-level engine never touches a file database
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ.setdefault("LOG_FILE", "logs/test.log")

from datetime import date  # noqa: E402
from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from condo_ledger.models import (  # noqa: E402
    Apartment,
    BankAccount,
    Base,
    Charge,
    ChargeCategory,
    OccupancyType,
    PaidState,
)
from condo_ledger.services.locks import ApartmentLocks  # noqa: E402


@pytest.fixture
def engine():
    """In-memory database shared by every connection of one test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine):
    """Create test database session."""
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def locks():
    """Fresh lock registry so tests never share apartment locks."""
    return ApartmentLocks()


@pytest.fixture
def make_apartment(db_session):
    """Factory for apartments with a monthly fee configuration."""

    def _make(
        unit_number: str = "101",
        common_expense: str = "100.00",
        reserve_fund: str = "20.00",
        occupancy: OccupancyType = OccupancyType.OWNER,
    ) -> Apartment:
        apartment = Apartment(
            unit_number=unit_number,
            occupancy=occupancy,
            common_expense_amount=Decimal(common_expense),
            reserve_fund_amount=Decimal(reserve_fund),
        )
        db_session.add(apartment)
        db_session.commit()
        return apartment

    return _make


@pytest.fixture
def make_account(db_session):
    """Factory for bank accounts."""

    def _make(
        opening_balance: str = "1000.00",
        bank_name: str = "BROU",
        is_active: bool = True,
    ) -> BankAccount:
        account = BankAccount(
            bank_name=bank_name,
            account_type="checking",
            account_number=f"{bank_name}-001",
            opening_balance=Decimal(opening_balance),
            is_active=is_active,
        )
        db_session.add(account)
        db_session.commit()
        return account

    return _make


@pytest.fixture
def make_charge(db_session):
    """Factory for unpaid charges inserted directly (no credit application)."""

    def _make(
        apartment: Apartment,
        amount: str,
        charge_date: date,
        category: ChargeCategory = ChargeCategory.COMMON_EXPENSE,
    ) -> Charge:
        charge = Charge(
            apartment_id=apartment.id,
            amount=Decimal(amount),
            charge_date=charge_date,
            category=category,
            amount_paid=Decimal("0.00"),
            paid_state=PaidState.UNPAID,
        )
        db_session.add(charge)
        db_session.commit()
        return charge

    return _make
