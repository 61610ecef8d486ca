from __future__ import annotations

import pytest

from finbackup.domain.constants import EntityKind
from finbackup.domain.models.entity_catalog import (
    dependency_order,
    get_descriptor,
    is_known_kind,
    iter_catalog,
    reverse_dependency_order,
)


def test_dependency_order_lists_every_kind_once() -> None:
    order = dependency_order()
    assert order[0] == EntityKind.PROFILES
    assert order[-1] == EntityKind.TRANSACTIONS
    assert sorted(order) == sorted(EntityKind)
    assert reverse_dependency_order() == list(reversed(order))


def test_foreign_keys_point_upstream_or_to_self() -> None:
    positions = {descriptor.kind: descriptor.position for descriptor in iter_catalog()}
    for descriptor in iter_catalog():
        for fk in descriptor.foreign_keys:
            assert positions[fk.target] <= descriptor.position, (descriptor.name, fk.field)


def test_categories_are_the_only_self_referencing_kind() -> None:
    self_refs = {d.kind: d.self_references for d in iter_catalog() if d.self_references}
    assert list(self_refs) == [EntityKind.CATEGORIES]
    assert self_refs[EntityKind.CATEGORIES][0].field == "parent_id"


def test_transactions_reference_accounts_and_documents() -> None:
    fields = {fk.field: fk.target for fk in get_descriptor("transactions").foreign_keys}
    assert fields["from_account_id"] == EntityKind.BANK_ACCOUNTS
    assert fields["to_account_id"] == EntityKind.BANK_ACCOUNTS
    assert fields["accounts_payable_id"] == EntityKind.ACCOUNTS_PAYABLE
    assert fields["accounts_receivable_id"] == EntityKind.ACCOUNTS_RECEIVABLE


@pytest.mark.parametrize(
    ("name", "expected"),
    [("banks", True), ("profiles", True), ("invoices", False), ("", False), (3, False)],
)
def test_is_known_kind(name: object, expected: bool) -> None:
    assert is_known_kind(name) is expected
