from __future__ import annotations

from collections.abc import Callable
from datetime import date
from decimal import Decimal

import pytest

from finbackup.domain.constants import EntityKind
from finbackup.domain.errors import RecordOwnershipError
from finbackup.infrastructure.db import models_sqlalchemy as models
from finbackup.infrastructure.db.repositories.record_repo import RecordRepository
from finbackup.infrastructure.db.session import SessionFactory


def test_list_records_is_owner_scoped_and_ordered(
    session_factory: SessionFactory,
    seed: Callable[..., int],
) -> None:
    seed(session_factory, "user-a")
    seed(session_factory, "user-b", prefix="b-")
    repo = RecordRepository()

    with session_factory() as session:
        categories = repo.list_records(session, EntityKind.CATEGORIES, "user-a")
        count_b = repo.count(session, "categories", "user-b")

    assert [c["id"] for c in categories] == ["cat-child", "cat-income", "cat-root"]
    assert count_b == 3


def test_upsert_parses_serialized_values(session_factory: SessionFactory) -> None:
    repo = RecordRepository()
    with session_factory() as session:
        repo.upsert(session, "banks", "user-a", {"id": "b1", "name": "Banco Azul"})
        repo.upsert(session, "bank_accounts", "user-a", {"id": "a1", "bank_id": "b1", "initial_balance": "10.50"})
        saved = repo.upsert(
            session,
            EntityKind.ACCOUNTS_PAYABLE,
            "user-a",
            {
                "id": "ap1",
                "description": "Energia",
                "amount": "120.40",
                "due_date": "2026-02-05",
                "created_at": "2026-01-31T10:00:00+00:00",
                "bank_account_id": "a1",
            },
        )

    assert saved["amount"] == "120.40"
    assert saved["due_date"] == "2026-02-05"
    assert saved["created_at"] == "2026-01-31T10:00:00"
    with session_factory() as session:
        row = session.get(models.AccountPayable, "ap1")
        assert row.amount == Decimal("120.40")
        assert row.due_date == date(2026, 2, 5)


def test_upsert_forces_owner_and_updates_existing(session_factory: SessionFactory) -> None:
    repo = RecordRepository()
    with session_factory() as session:
        repo.upsert(session, "banks", "user-a", {"id": "b1", "name": "Banco Azul", "user_id": "intruder"})
    with session_factory() as session:
        repo.upsert(session, "banks", "user-a", {"id": "b1", "name": "Banco Azul S.A."})
        banks = repo.list_records(session, "banks", "user-a")

    assert len(banks) == 1
    assert banks[0]["user_id"] == "user-a"
    assert banks[0]["name"] == "Banco Azul S.A."


def test_upsert_refuses_ids_owned_by_another_user(session_factory: SessionFactory) -> None:
    repo = RecordRepository()
    with session_factory() as session:
        repo.upsert(session, "banks", "user-a", {"id": "b1", "name": "Banco Azul"})

    with pytest.raises(RecordOwnershipError) as exc_info:
        with session_factory() as session:
            repo.upsert(session, "banks", "user-b", {"id": "b1", "name": "Banco do Intruso"})

    assert exc_info.value.record_id == "b1"
    with session_factory() as session:
        assert session.get(models.Bank, "b1").name == "Banco Azul"


def test_delete_only_touches_owner_rows(
    session_factory: SessionFactory,
    seed: Callable[..., int],
) -> None:
    seed(session_factory, "user-a")
    seed(session_factory, "user-b", prefix="b-")
    repo = RecordRepository()

    with session_factory() as session:
        deleted = repo.delete(session, "transactions", "user-a", ["tx-1", "tx-2", "b-tx-1"])
        assert repo.delete(session, "transactions", "user-a", []) == 0

    with session_factory() as session:
        assert repo.existing_ids(session, "transactions", "user-a") == {"tx-3"}
        assert repo.count(session, "transactions", "user-b") == 3
    assert deleted == 2


def test_session_scope_rolls_back_when_the_block_fails(session_factory: SessionFactory) -> None:
    repo = RecordRepository()

    with pytest.raises(RuntimeError):
        with session_factory() as session:
            repo.upsert(session, EntityKind.BANKS, "user-a", {"id": "b1", "name": "Banco Azul"})
            raise RuntimeError("interrompido")

    with session_factory() as session:
        assert repo.count(session, EntityKind.BANKS, "user-a") == 0
