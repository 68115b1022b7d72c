"""Initial schema: apartments, charges, payments, bank accounts and movements.

Represents the current schema of condo_ledger/models/.

Revision ID: 001_initial_schema
Revises:
Create Date: 2025-01-06 09:00:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

CHARGE_CATEGORIES = (
    "COMMON_EXPENSE",
    "RESERVE_FUND",
    "MAINTENANCE",
    "SERVICES",
    "ADMINISTRATION",
    "REPAIRS",
    "CLEANING",
    "SECURITY",
    "OTHER",
)

SERVICE_TRADES = (
    "ELECTRICIAN",
    "PLUMBER",
    "LOCKSMITH",
    "PAINTER",
    "CARPENTER",
    "MASON",
    "GARDENER",
    "CLEANING",
    "SECURITY",
    "PEST_CONTROL",
    "ELEVATOR",
    "GLAZIER",
    "AIR_CONDITIONING",
    "GAS",
    "UTILITY",
    "OTHER",
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.current_timestamp(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.current_timestamp(),
        ),
    ]


def upgrade() -> None:
    # Create apartments table
    op.create_table(
        "apartments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("unit_number", sa.String(length=20), nullable=False),
        sa.Column("floor", sa.Integer(), nullable=True),
        sa.Column(
            "occupancy",
            sa.Enum("OWNER", "TENANT", name="occupancytype"),
            nullable=False,
        ),
        sa.Column("contact_name", sa.String(length=200), nullable=True),
        sa.Column("contact_phone", sa.String(length=50), nullable=True),
        sa.Column("contact_email", sa.String(length=200), nullable=True),
        sa.Column("common_expense_amount", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column("reserve_fund_amount", sa.Numeric(precision=10, scale=2), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("unit_number", "occupancy", name="uq_apartment_unit_occupancy"),
        sa.Index("idx_apartment_unit", "unit_number"),
    )

    # Create service_providers table
    op.create_table(
        "service_providers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("trade", sa.Enum(*SERVICE_TRADES, name="servicetrade"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    # Create bank_accounts table
    op.create_table(
        "bank_accounts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("bank_name", sa.String(length=100), nullable=False),
        sa.Column("account_type", sa.String(length=50), nullable=False),
        sa.Column("account_number", sa.String(length=50), nullable=False),
        sa.Column("holder", sa.String(length=200), nullable=True),
        sa.Column("opening_balance", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="1"),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("idx_bank_account_active", "is_active"),
    )

    # Create charges table
    op.create_table(
        "charges",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("apartment_id", sa.Integer(), nullable=True),
        sa.Column("amount", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column("charge_date", sa.Date(), nullable=False),
        sa.Column("category", sa.Enum(*CHARGE_CATEGORIES, name="chargecategory"), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("amount_paid", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column(
            "paid_state",
            sa.Enum("UNPAID", "PARTIAL", "PAID", name="paidstate"),
            nullable=False,
        ),
        *_timestamps(),
        sa.ForeignKeyConstraint(["apartment_id"], ["apartments.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("amount > 0", name="ck_charge_amount_positive"),
        sa.CheckConstraint(
            "amount_paid >= 0 AND amount_paid <= amount",
            name="ck_charge_amount_paid_range",
        ),
        sa.Index("ix_charges_apartment_id", "apartment_id"),
        sa.Index("ix_charges_charge_date", "charge_date"),
        sa.Index("ix_charges_category", "category"),
        sa.Index("ix_charges_paid_state", "paid_state"),
        sa.Index("idx_charge_apartment_date", "apartment_id", "charge_date"),
        sa.Index("idx_charge_apartment_state", "apartment_id", "paid_state"),
    )

    # Create payments table
    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("apartment_id", sa.Integer(), nullable=True),
        sa.Column("amount", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column("payment_date", sa.Date(), nullable=False),
        sa.Column(
            "classification",
            sa.Enum("COMMON_EXPENSE", "RESERVE_FUND", "MIXED", name="paymentclassification"),
            nullable=False,
        ),
        sa.Column("common_expense_portion", sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column("reserve_fund_portion", sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column(
            "method",
            sa.Enum("CASH", "TRANSFER", "CARD", "CHEQUE", "OTHER", name="paymentmethod"),
            nullable=False,
        ),
        sa.Column("reference", sa.String(length=100), nullable=True),
        sa.Column("notes", sa.String(length=500), nullable=True),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("unapplied_amount", sa.Numeric(precision=10, scale=2), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["apartment_id"], ["apartments.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("amount > 0", name="ck_payment_amount_positive"),
        sa.CheckConstraint("unapplied_amount >= 0", name="ck_payment_unapplied_non_negative"),
        sa.Index("ix_payments_apartment_id", "apartment_id"),
        sa.Index("ix_payments_payment_date", "payment_date"),
        sa.Index("idx_payment_apartment_date", "apartment_id", "payment_date"),
    )

    # Create transactions table
    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("kind", sa.Enum("INCOME", "EXPENSE", name="transactionkind"), nullable=False),
        sa.Column("amount", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("category", sa.Enum(*CHARGE_CATEGORIES, name="chargecategory"), nullable=True),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("apartment_id", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["apartment_id"], ["apartments.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("amount > 0", name="ck_transaction_amount_positive"),
        sa.Index("ix_transactions_transaction_date", "transaction_date"),
        sa.Index("ix_transactions_category", "category"),
        sa.Index("ix_transactions_apartment_id", "apartment_id"),
        sa.Index("idx_transaction_kind_date", "kind", "transaction_date"),
    )

    # Create payment_allocations table
    op.create_table(
        "payment_allocations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("payment_id", sa.Integer(), nullable=False),
        sa.Column("charge_id", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["payment_id"], ["payments.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["charge_id"], ["charges.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("amount > 0", name="ck_allocation_amount_positive"),
        sa.Index("ix_payment_allocations_payment_id", "payment_id"),
        sa.Index("ix_payment_allocations_charge_id", "charge_id"),
        sa.Index("idx_allocation_payment_sequence", "payment_id", "sequence", unique=True),
    )

    # Create bank_movements table
    op.create_table(
        "bank_movements",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("bank_account_id", sa.Integer(), nullable=False),
        sa.Column("direction", sa.Enum("IN", "OUT", name="movementdirection"), nullable=False),
        sa.Column("amount", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column("movement_date", sa.Date(), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=False),
        sa.Column("reference", sa.String(length=100), nullable=True),
        sa.Column("document_number", sa.String(length=100), nullable=True),
        sa.Column(
            "category",
            sa.Enum("COMMON_EXPENSE", "RESERVE_FUND", name="fundcategory"),
            nullable=True,
        ),
        sa.Column("reconciled", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("service_provider_id", sa.Integer(), nullable=True),
        sa.Column("payment_id", sa.Integer(), nullable=True),
        sa.Column("charge_id", sa.Integer(), nullable=True),
        sa.Column("transaction_id", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["bank_account_id"], ["bank_accounts.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["service_provider_id"], ["service_providers.id"], ondelete="SET NULL"
        ),
        sa.ForeignKeyConstraint(["payment_id"], ["payments.id"]),
        sa.ForeignKeyConstraint(["charge_id"], ["charges.id"]),
        sa.ForeignKeyConstraint(["transaction_id"], ["transactions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("payment_id"),
        sa.UniqueConstraint("charge_id"),
        sa.UniqueConstraint("transaction_id"),
        sa.CheckConstraint("amount > 0", name="ck_movement_amount_positive"),
        sa.CheckConstraint(
            "(CASE WHEN payment_id IS NULL THEN 0 ELSE 1 END"
            " + CASE WHEN charge_id IS NULL THEN 0 ELSE 1 END"
            " + CASE WHEN transaction_id IS NULL THEN 0 ELSE 1 END) <= 1",
            name="ck_movement_single_link",
        ),
        sa.Index("ix_bank_movements_bank_account_id", "bank_account_id"),
        sa.Index("ix_bank_movements_movement_date", "movement_date"),
        sa.Index("ix_bank_movements_service_provider_id", "service_provider_id"),
        sa.Index("idx_movement_account_date", "bank_account_id", "movement_date"),
        sa.Index("idx_movement_direction_date", "direction", "movement_date"),
    )

    # Create report_notices table
    op.create_table(
        "report_notices",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("idx_notice_period", "year", "month"),
    )

    # Create report_settings table
    op.create_table(
        "report_settings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("key", sa.String(length=100), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("key"),
    )

    # Create audit_logs table
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("actor", sa.String(length=100), nullable=True),
        sa.Column("changes", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("report_settings")
    op.drop_table("report_notices")
    op.drop_table("bank_movements")
    op.drop_table("payment_allocations")
    op.drop_table("transactions")
    op.drop_table("payments")
    op.drop_table("charges")
    op.drop_table("bank_accounts")
    op.drop_table("service_providers")
    op.drop_table("apartments")
