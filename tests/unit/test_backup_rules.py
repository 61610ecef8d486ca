from __future__ import annotations

import pytest

from finbackup.domain.constants import EntityKind, IssueLevel, IssueType
from finbackup.domain.rules.backup_rules import (
    check_owner,
    check_references,
    check_schema_version,
    check_structure,
    check_transaction_accounts,
    dependent_skips,
    order_parents_first,
    parse_schema_major,
)


def _empty_data() -> dict[str, list]:
    return {kind: [] for kind in EntityKind.values()}


@pytest.mark.parametrize(
    ("version", "major"),
    [("1.0.0", 1), ("1", 1), (" 2.3 ", 2), ("x.1", None), ("", None), (None, None), (1, None)],
)
def test_parse_schema_major(version, major) -> None:  # noqa: ANN001
    assert parse_schema_major(version) == major


def test_check_schema_version_accepts_same_major_only() -> None:
    assert check_schema_version("1.4.2") == []
    findings = check_schema_version("2.0.0")
    assert len(findings) == 1
    assert findings[0].level == IssueLevel.ERROR
    assert findings[0].type == IssueType.SCHEMA
    assert findings[0].details == {"expected": "1.0.0", "actual": "2.0.0"}


def test_check_structure_reports_missing_kind_and_count_mismatch() -> None:
    data = _empty_data()
    data.pop("banks")
    data["categories"] = [{"id": "c1"}, {"id": "c2"}]
    counts = {kind: 0 for kind in EntityKind.values()}
    counts["categories"] = 3

    findings = check_structure(data, counts)
    messages = [f.message for f in findings]

    assert "Coleção ausente: banks" in messages
    mismatch = next(f for f in findings if f.details.get("kind") == "categories")
    assert mismatch.message == "Contagem incorreta para categories: esperado 3, encontrado 2"
    assert mismatch.details["expected"] == 3
    assert mismatch.details["actual"] == 2
    assert all(f.level == IssueLevel.ERROR for f in findings)


def test_check_structure_flags_non_list_and_non_object_records() -> None:
    data = _empty_data()
    data["banks"] = {"id": "b1"}
    data["suppliers"] = [{"id": "s1"}, "oops", 3]
    counts = {kind: len(v) if isinstance(v, list) else 1 for kind, v in data.items()}

    findings = check_structure(data, counts)
    by_kind = {f.details["kind"]: f for f in findings}

    assert "deve ser uma lista" in by_kind["banks"].message
    assert by_kind["suppliers"].details["indexes"] == [1, 2]


def test_check_structure_warns_about_unknown_kinds() -> None:
    data = _empty_data()
    data["invoices"] = [{"id": 1}]
    counts = {kind: 0 for kind in EntityKind.values()}

    findings = check_structure(data, counts)

    assert len(findings) == 1
    assert findings[0].level == IssueLevel.WARNING
    assert findings[0].details["kind"] == "invoices"


def test_check_structure_rejects_missing_data_section() -> None:
    findings = check_structure(None, {})
    assert len(findings) == 1
    assert findings[0].type == IssueType.SCHEMA


def test_check_references_reports_dangling_ids_as_warnings() -> None:
    data = _empty_data()
    data["banks"] = [{"id": "b1"}]
    data["bank_accounts"] = [{"id": "a1", "bank_id": "b1"}, {"id": "a2", "bank_id": "b9"}]
    data["transactions"] = [{"id": "t1", "type": "income", "to_account_id": "a3"}]

    findings = check_references(data)

    assert [f.message for f in findings] == [
        "Conta bancária 2: bank_id b9 não encontrado",
        "Transação 1: to_account_id a3 não encontrado",
    ]
    assert all(f.level == IssueLevel.WARNING and f.type == IssueType.INTEGRITY for f in findings)
    assert findings[0].details["index"] == 1
    assert findings[0].details["ref_kind"] == "banks"


def test_check_references_accepts_ids_already_in_store() -> None:
    data = _empty_data()
    data["bank_accounts"] = [{"id": "a1", "bank_id": "b-existing"}]

    assert len(check_references(data)) == 1
    assert check_references(data, {EntityKind.BANKS: {"b-existing"}}) == []


def test_check_references_compares_ids_as_text() -> None:
    data = _empty_data()
    data["categories"] = [{"id": 7}, {"id": 8, "parent_id": "7"}]
    assert check_references(data) == []


@pytest.mark.parametrize(
    ("record", "fragment"),
    [
        ({"type": "income", "from_account_id": "a1"}, "entrada deve ter to_account_id"),
        ({"type": "expense", "to_account_id": "a1"}, "saída deve ter from_account_id"),
        ({"type": "transfer", "from_account_id": "a1"}, "transferência deve ter"),
        ({"type": "transfer", "from_account_id": "a1", "to_account_id": "a1"}, "mesma conta"),
    ],
)
def test_check_transaction_accounts_rules(record: dict, fragment: str) -> None:
    findings = check_transaction_accounts([{"id": "t1", **record}])
    assert len(findings) == 1
    assert fragment in findings[0].message
    assert findings[0].details["rule"] == "transaction_accounts"
    assert findings[0].details["index"] == 0


def test_check_transaction_accounts_accepts_valid_records() -> None:
    transactions = [
        {"id": "t1", "type": "income", "to_account_id": "a1"},
        {"id": "t2", "type": "expense", "from_account_id": "a1"},
        {"id": "t3", "type": "transfer", "from_account_id": "a1", "to_account_id": "a2"},
    ]
    assert check_transaction_accounts(transactions) == []


def test_check_owner_requires_matching_user() -> None:
    findings = check_owner({"user_id": "u2", "phone": ""}, "u1")
    assert len(findings) == 1
    assert findings[0].type == IssueType.PERMISSION
    assert findings[0].message == "Este backup pertence a outro usuário"


def test_check_owner_compares_phone_digits_only_when_both_known() -> None:
    owner = {"user_id": "u1", "phone": "+55 (11) 99999-0000"}
    assert check_owner(owner, "u1", "5511999990000") == []
    assert check_owner(owner, "u1", "") == []
    assert check_owner({"user_id": "u1", "phone": ""}, "u1", "5511999990000") == []

    mismatch = check_owner(owner, "u1", "+55 21 98888-1111")
    assert [f.message for f in mismatch] == ["Telefone do proprietário do backup não confere"]


def test_check_owner_rejects_missing_owner() -> None:
    findings = check_owner(None, "u1")
    assert findings[0].type == IssueType.PERMISSION


def test_order_parents_first_moves_children_after_parents() -> None:
    records = [
        {"id": "grandchild", "parent_id": "child"},
        {"id": "child", "parent_id": "root"},
        {"id": "other"},
        {"id": "root"},
        {"id": "external", "parent_id": "not-in-batch"},
    ]
    ordered = [r["id"] for r in order_parents_first(records, EntityKind.CATEGORIES)]

    assert ordered.index("root") < ordered.index("child") < ordered.index("grandchild")
    assert set(ordered) == {r["id"] for r in records}


def test_order_parents_first_keeps_cycles_and_other_kinds_untouched() -> None:
    cycle = [{"id": "a", "parent_id": "b"}, {"id": "b", "parent_id": "a"}]
    assert order_parents_first(cycle, EntityKind.CATEGORIES) == cycle

    banks = [{"id": "b2"}, {"id": "b1"}]
    assert order_parents_first(banks, EntityKind.BANKS) == banks


def test_dependent_skips_follow_references_down_the_catalog() -> None:
    data = _empty_data()
    data["categories"] = [
        {"id": "c1"},
        {"id": "c2", "parent_id": "c1"},
        {"id": "c3", "parent_id": "c2"},
        {"id": "c4"},
    ]
    data["suppliers"] = [{"id": "s1", "category_id": "c3"}, {"id": "s2", "category_id": "c4"}]
    data["transactions"] = [{"id": "t1", "category_id": "c2"}, {"id": "t2", "category_id": "c4"}]

    findings = dependent_skips(data, {"categories": {0}})

    positions = {(f.details["kind"], f.details["index"]) for f in findings}
    assert positions == {("categories", 1), ("categories", 2), ("suppliers", 0), ("transactions", 0)}
    assert {f.level for f in findings} == {IssueLevel.WARNING}


def test_dependent_skips_without_flagged_records() -> None:
    data = _empty_data()
    data["categories"] = [{"id": "c1"}, {"id": "c2", "parent_id": "c1"}]

    assert dependent_skips(data, {}) == []
