from __future__ import annotations

import os
import shutil
from collections.abc import Callable, Generator
from datetime import UTC, date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any
from uuid import uuid4

import pytest

_ARTIFACTS_DIR = Path("pytest_artifacts").resolve()
os.environ.setdefault("FINBACKUP_DATA_DIR", str(_ARTIFACTS_DIR / "data"))
os.environ.setdefault("FINBACKUP_SAFETY_SNAPSHOT", "0")

from finbackup.application.dto.auth_dto import Identity  # noqa: E402
from finbackup.domain.constants import BACKUP_SCHEMA_VERSION, EntityKind  # noqa: E402
from finbackup.infrastructure.db import models_sqlalchemy as models  # noqa: E402
from finbackup.infrastructure.db.engine import get_engine  # noqa: E402
from finbackup.infrastructure.db.models_sqlalchemy import Base  # noqa: E402
from finbackup.infrastructure.db.session import SessionFactory, make_session_scope  # noqa: E402
from finbackup.infrastructure.security.checksum import compute_checksum  # noqa: E402

USER_ID = "user-ana"
USER_PHONE = "+55 (11) 99999-0000"
OTHER_USER_ID = "user-bruno"


@pytest.fixture
def tmp_path() -> Generator[Path, None, None]:
    base = _ARTIFACTS_DIR
    base.mkdir(parents=True, exist_ok=True)
    path = base / uuid4().hex
    path.mkdir(parents=True, exist_ok=True)
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)


def make_session_factory(db_path: Path) -> SessionFactory:
    engine = get_engine(f"sqlite:///{db_path.as_posix()}", echo=False)
    Base.metadata.create_all(engine)
    return make_session_scope(engine)


@pytest.fixture
def session_factory(tmp_path: Path) -> SessionFactory:
    return make_session_factory(tmp_path / "finance.db")


@pytest.fixture
def store_factory(tmp_path: Path) -> Callable[[str], SessionFactory]:
    """Open additional empty databases inside the test directory."""

    def _make(name: str) -> SessionFactory:
        return make_session_factory(tmp_path / f"{name}.db")

    return _make


@pytest.fixture
def identity() -> Identity:
    return Identity(user_id=USER_ID, phone=USER_PHONE)


@pytest.fixture
def other_identity() -> Identity:
    return Identity(user_id=OTHER_USER_ID, phone="+55 21 98888-1111")


def seed_finance_data(session_factory: SessionFactory, user_id: str = USER_ID, *, prefix: str = "") -> int:
    """Insert a small but complete dataset for ``user_id``; returns the number of records."""
    p = prefix
    created = datetime(2026, 1, 2, 12, 0, 0)
    rows: list[list[Any]] = [
        [
            models.Profile(
                id=f"{p}profile",
                user_id=user_id,
                full_name="Ana Souza",
                email="ana@example.com",
                phone=USER_PHONE,
                company="Souza ME",
                role="owner",
                created_at=created,
                updated_at=created,
            )
        ],
        [
            models.Category(id=f"{p}cat-root", user_id=user_id, name="Despesas fixas", type="expense",
                            created_at=created),
            models.Category(id=f"{p}cat-child", user_id=user_id, name="Aluguel", type="expense",
                            parent_id=f"{p}cat-root", created_at=created),
            models.Category(id=f"{p}cat-income", user_id=user_id, name="Vendas", type="income",
                            created_at=created),
        ],
        [
            models.Supplier(id=f"{p}sup-1", user_id=user_id, name="Imobiliária Centro",
                            category_id=f"{p}cat-child", created_at=created),
        ],
        [models.Bank(id=f"{p}bank-1", user_id=user_id, name="Banco Azul", code="001", created_at=created)],
        [
            models.BankAccount(id=f"{p}acc-1", user_id=user_id, bank_id=f"{p}bank-1", agency="0001",
                               account_number="12345-6", initial_balance=Decimal("1000.00"),
                               created_at=created),
            models.BankAccount(id=f"{p}acc-2", user_id=user_id, bank_id=f"{p}bank-1", agency="0001",
                               account_number="65432-1", account_type="savings",
                               initial_balance=Decimal("0.00"), created_at=created),
        ],
        [
            models.AccountPayable(id=f"{p}ap-1", user_id=user_id, description="Aluguel janeiro",
                                  amount=Decimal("2500.00"), due_date=date(2026, 1, 10), status="paid",
                                  paid_at=date(2026, 1, 9), paid_amount=Decimal("2500.00"),
                                  category_id=f"{p}cat-child", supplier_id=f"{p}sup-1",
                                  bank_account_id=f"{p}acc-1", created_at=created, updated_at=created),
        ],
        [
            models.AccountReceivable(id=f"{p}ar-1", user_id=user_id, description="Venda 42",
                                     customer_name="Loja Sol", amount=Decimal("900.50"),
                                     due_date=date(2026, 1, 15), category_id=f"{p}cat-income",
                                     bank_account_id=f"{p}acc-2", created_at=created, updated_at=created),
        ],
        [
            models.Transaction(id=f"{p}tx-1", user_id=user_id, type="expense", amount=Decimal("2500.00"),
                               date=date(2026, 1, 9), from_account_id=f"{p}acc-1",
                               accounts_payable_id=f"{p}ap-1", category_id=f"{p}cat-child",
                               created_at=created, updated_at=created),
            models.Transaction(id=f"{p}tx-2", user_id=user_id, type="income", amount=Decimal("900.50"),
                               date=date(2026, 1, 15), to_account_id=f"{p}acc-2",
                               accounts_receivable_id=f"{p}ar-1", category_id=f"{p}cat-income",
                               created_at=created, updated_at=created),
            models.Transaction(id=f"{p}tx-3", user_id=user_id, type="transfer", amount=Decimal("100.00"),
                               date=date(2026, 1, 20), from_account_id=f"{p}acc-1",
                               to_account_id=f"{p}acc-2", created_at=created, updated_at=created),
        ],
    ]
    total = 0
    with session_factory() as session:
        for group in rows:
            for row in group:
                session.add(row)
                session.flush()
                total += 1
    return total


@pytest.fixture
def seed() -> Callable[..., int]:
    return seed_finance_data


def build_backup(
    data: dict[str, list[dict[str, Any]]] | None = None,
    *,
    user_id: str = USER_ID,
    phone: str = USER_PHONE,
    algo: str = "sha256",
) -> dict[str, Any]:
    """Assemble a well-formed backup document around ``data``."""
    payload = {kind: [] for kind in EntityKind.values()}
    payload.update(data or {})
    return {
        "app": {"name": "finbackup", "version": "1.0.0"},
        "schema_version": BACKUP_SCHEMA_VERSION,
        "exported_at": datetime(2026, 3, 1, 9, 30, tzinfo=UTC).isoformat(),
        "owner": {"user_id": user_id, "phone": phone},
        "counts": {kind: len(records) for kind, records in payload.items()},
        "checksum": {"algo": algo, "value": compute_checksum(payload, algo)},
        "meta": {"generated_by": "tests"},
        "data": payload,
    }


@pytest.fixture
def backup_factory() -> Callable[..., dict[str, Any]]:
    return build_backup
