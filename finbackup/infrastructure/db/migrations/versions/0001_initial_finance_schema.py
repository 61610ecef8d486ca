"""Initial finance schema: entity tables, audit log, backup packages"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_initial_finance_schema"
down_revision = None
branch_labels = None
depends_on = None

_NOW = sa.text("(CURRENT_TIMESTAMP)")
_OWNED_TABLES = (
    "categories",
    "suppliers",
    "banks",
    "bank_accounts",
    "accounts_payable",
    "accounts_receivable",
    "transactions",
)


def upgrade() -> None:
    op.create_table(
        "profiles",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False, unique=True),
        sa.Column("full_name", sa.String(), nullable=False),
        sa.Column("email", sa.String()),
        sa.Column("phone", sa.String()),
        sa.Column("company", sa.String()),
        sa.Column("role", sa.String()),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=_NOW),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=_NOW),
    )
    op.create_table(
        "categories",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("type", sa.String(), nullable=False, server_default="expense"),
        sa.Column("color", sa.String()),
        sa.Column("parent_id", sa.String(36), sa.ForeignKey("categories.id")),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=_NOW),
        sa.CheckConstraint("type in ('income','expense')", name="ck_categories_type"),
    )
    op.create_table(
        "suppliers",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("document", sa.String()),
        sa.Column("email", sa.String()),
        sa.Column("phone", sa.String()),
        sa.Column("category_id", sa.String(36), sa.ForeignKey("categories.id")),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=_NOW),
    )
    op.create_table(
        "banks",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("code", sa.String()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=_NOW),
    )
    op.create_table(
        "bank_accounts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("bank_id", sa.String(36), sa.ForeignKey("banks.id"), nullable=False),
        sa.Column("agency", sa.String()),
        sa.Column("account_number", sa.String()),
        sa.Column("account_type", sa.String(), nullable=False, server_default="checking"),
        sa.Column("initial_balance", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=_NOW),
    )
    op.create_table(
        "accounts_payable",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("description", sa.String(), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("paid_at", sa.Date()),
        sa.Column("paid_amount", sa.Numeric(14, 2)),
        sa.Column("category_id", sa.String(36), sa.ForeignKey("categories.id")),
        sa.Column("supplier_id", sa.String(36), sa.ForeignKey("suppliers.id")),
        sa.Column("bank_account_id", sa.String(36), sa.ForeignKey("bank_accounts.id")),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=_NOW),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=_NOW),
        sa.CheckConstraint(
            "status in ('pending','paid','overdue','canceled')",
            name="ck_accounts_payable_status",
        ),
    )
    op.create_index("ix_accounts_payable_user_due", "accounts_payable", ["user_id", "due_date"])
    op.create_table(
        "accounts_receivable",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("description", sa.String(), nullable=False),
        sa.Column("customer_name", sa.String()),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("received_at", sa.Date()),
        sa.Column("received_amount", sa.Numeric(14, 2)),
        sa.Column("category_id", sa.String(36), sa.ForeignKey("categories.id")),
        sa.Column("bank_account_id", sa.String(36), sa.ForeignKey("bank_accounts.id")),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=_NOW),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=_NOW),
        sa.CheckConstraint(
            "status in ('pending','received','overdue','canceled')",
            name="ck_accounts_receivable_status",
        ),
    )
    op.create_index("ix_accounts_receivable_user_due", "accounts_receivable", ["user_id", "due_date"])
    op.create_table(
        "transactions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("description", sa.String()),
        sa.Column("from_account_id", sa.String(36), sa.ForeignKey("bank_accounts.id")),
        sa.Column("to_account_id", sa.String(36), sa.ForeignKey("bank_accounts.id")),
        sa.Column("accounts_payable_id", sa.String(36), sa.ForeignKey("accounts_payable.id")),
        sa.Column("accounts_receivable_id", sa.String(36), sa.ForeignKey("accounts_receivable.id")),
        sa.Column("category_id", sa.String(36), sa.ForeignKey("categories.id")),
        sa.Column("reference_id", sa.String()),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=_NOW),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=_NOW),
        sa.CheckConstraint("type in ('income','expense','transfer')", name="ck_transactions_type"),
    )
    op.create_index("ix_transactions_user_date", "transactions", ["user_id", "date"])
    for table_name in _OWNED_TABLES:
        op.create_index(f"ix_{table_name}_user_id", table_name, ["user_id"])
    op.create_table(
        "audit_log",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("event_ts", sa.DateTime(), nullable=False, server_default=_NOW),
        sa.Column("user_id", sa.String(36)),
        sa.Column("entity_type", sa.String(), nullable=False),
        sa.Column("entity_id", sa.String(), nullable=False),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("payload_json", sa.Text()),
    )
    op.create_table(
        "backup_package",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("direction", sa.String(), sa.CheckConstraint("direction in ('export','import')")),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=_NOW),
        sa.Column("created_by", sa.String(36)),
        sa.Column("package_format", sa.String(), nullable=False),
        sa.Column("file_path", sa.String(), nullable=False),
        sa.Column("sha256", sa.String(), nullable=False),
        sa.Column("schema_version", sa.String()),
        sa.Column("notes", sa.Text()),
    )
    op.create_index(
        "ix_backup_package_direction_created_at",
        "backup_package",
        ["direction", "created_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_backup_package_direction_created_at", table_name="backup_package")
    op.drop_table("backup_package")
    op.drop_table("audit_log")
    for table_name in reversed(_OWNED_TABLES):
        op.drop_index(f"ix_{table_name}_user_id", table_name=table_name)
    op.drop_index("ix_transactions_user_date", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("ix_accounts_receivable_user_due", table_name="accounts_receivable")
    op.drop_table("accounts_receivable")
    op.drop_index("ix_accounts_payable_user_due", table_name="accounts_payable")
    op.drop_table("accounts_payable")
    op.drop_table("bank_accounts")
    op.drop_table("banks")
    op.drop_table("suppliers")
    op.drop_table("categories")
    op.drop_table("profiles")
