from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.sql import expression

from finbackup.domain.constants import EntityKind

naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    # avoid constraint_name token to allow unnamed CheckConstraint
    "ck": "ck_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=naming_convention)


class Base(DeclarativeBase):
    metadata = metadata


def utc_now() -> datetime:
    return datetime.now(UTC)


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), nullable=False, unique=True)
    full_name = Column(String, nullable=False)
    email = Column(String)
    phone = Column(String)
    company = Column(String)
    role = Column(String)
    active = Column(Boolean, nullable=False, server_default=expression.true())
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)


class Category(Base):
    __tablename__ = "categories"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), nullable=False, index=True)
    name = Column(String, nullable=False)
    type = Column(String, nullable=False, server_default="expense")
    color = Column(String)
    parent_id = Column(String(36), ForeignKey("categories.id"))
    created_at = Column(DateTime, nullable=False, default=utc_now)

    __table_args__ = (
        CheckConstraint("type in ('income','expense')", name="ck_categories_type"),
    )


class Supplier(Base):
    __tablename__ = "suppliers"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), nullable=False, index=True)
    name = Column(String, nullable=False)
    document = Column(String)
    email = Column(String)
    phone = Column(String)
    category_id = Column(String(36), ForeignKey("categories.id"))
    active = Column(Boolean, nullable=False, server_default=expression.true())
    notes = Column(Text)
    created_at = Column(DateTime, nullable=False, default=utc_now)


class Bank(Base):
    __tablename__ = "banks"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), nullable=False, index=True)
    name = Column(String, nullable=False)
    code = Column(String)
    created_at = Column(DateTime, nullable=False, default=utc_now)


class BankAccount(Base):
    __tablename__ = "bank_accounts"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), nullable=False, index=True)
    bank_id = Column(String(36), ForeignKey("banks.id"), nullable=False)
    agency = Column(String)
    account_number = Column(String)
    account_type = Column(String, nullable=False, server_default="checking")
    initial_balance = Column(Numeric(14, 2), nullable=False, server_default="0")
    active = Column(Boolean, nullable=False, server_default=expression.true())
    created_at = Column(DateTime, nullable=False, default=utc_now)


class AccountPayable(Base):
    __tablename__ = "accounts_payable"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), nullable=False, index=True)
    description = Column(String, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    due_date = Column(Date, nullable=False)
    status = Column(String, nullable=False, server_default="pending")
    paid_at = Column(Date)
    paid_amount = Column(Numeric(14, 2))
    category_id = Column(String(36), ForeignKey("categories.id"))
    supplier_id = Column(String(36), ForeignKey("suppliers.id"))
    bank_account_id = Column(String(36), ForeignKey("bank_accounts.id"))
    notes = Column(Text)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        CheckConstraint("status in ('pending','paid','overdue','canceled')", name="ck_accounts_payable_status"),
        Index("ix_accounts_payable_user_due", "user_id", "due_date"),
    )


class AccountReceivable(Base):
    __tablename__ = "accounts_receivable"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), nullable=False, index=True)
    description = Column(String, nullable=False)
    customer_name = Column(String)
    amount = Column(Numeric(14, 2), nullable=False)
    due_date = Column(Date, nullable=False)
    status = Column(String, nullable=False, server_default="pending")
    received_at = Column(Date)
    received_amount = Column(Numeric(14, 2))
    category_id = Column(String(36), ForeignKey("categories.id"))
    bank_account_id = Column(String(36), ForeignKey("bank_accounts.id"))
    notes = Column(Text)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        CheckConstraint(
            "status in ('pending','received','overdue','canceled')",
            name="ck_accounts_receivable_status",
        ),
        Index("ix_accounts_receivable_user_due", "user_id", "due_date"),
    )


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), nullable=False, index=True)
    type = Column(String, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    date = Column(Date, nullable=False)
    description = Column(String)
    from_account_id = Column(String(36), ForeignKey("bank_accounts.id"))
    to_account_id = Column(String(36), ForeignKey("bank_accounts.id"))
    accounts_payable_id = Column(String(36), ForeignKey("accounts_payable.id"))
    accounts_receivable_id = Column(String(36), ForeignKey("accounts_receivable.id"))
    category_id = Column(String(36), ForeignKey("categories.id"))
    reference_id = Column(String)
    notes = Column(Text)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        CheckConstraint("type in ('income','expense','transfer')", name="ck_transactions_type"),
        Index("ix_transactions_user_date", "user_id", "date"),
    )


class AuditLog(Base):
    __tablename__ = "audit_log"

    id = Column(Integer, primary_key=True)
    event_ts = Column(DateTime, nullable=False, default=utc_now)
    user_id = Column(String(36), nullable=True)
    entity_type = Column(String, nullable=False)
    entity_id = Column(String, nullable=False)
    action = Column(String, nullable=False)
    payload_json = Column(Text, nullable=True)


class BackupPackage(Base):
    __tablename__ = "backup_package"

    id = Column(Integer, primary_key=True)
    direction = Column(String, CheckConstraint("direction in ('export','import')"))
    created_at = Column(DateTime, nullable=False, default=utc_now)
    created_by = Column(String(36))
    package_format = Column(String, nullable=False)
    file_path = Column(String, nullable=False)
    sha256 = Column(String, nullable=False)
    schema_version = Column(String)
    notes = Column(Text)

    __table_args__ = (
        Index("ix_backup_package_direction_created_at", "direction", "created_at"),
    )


ENTITY_MODELS: dict[EntityKind, type[Any]] = {
    EntityKind.PROFILES: Profile,
    EntityKind.CATEGORIES: Category,
    EntityKind.SUPPLIERS: Supplier,
    EntityKind.BANKS: Bank,
    EntityKind.BANK_ACCOUNTS: BankAccount,
    EntityKind.ACCOUNTS_PAYABLE: AccountPayable,
    EntityKind.ACCOUNTS_RECEIVABLE: AccountReceivable,
    EntityKind.TRANSACTIONS: Transaction,
}
