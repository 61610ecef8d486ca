from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from finbackup.domain.constants import EntityKind


@dataclass(frozen=True, slots=True)
class ForeignKey:
    field: str
    target: EntityKind


@dataclass(frozen=True, slots=True)
class EntityDescriptor:
    kind: EntityKind
    position: int
    foreign_keys: tuple[ForeignKey, ...] = ()

    @property
    def name(self) -> str:
        return self.kind.value

    @property
    def self_references(self) -> tuple[ForeignKey, ...]:
        return tuple(fk for fk in self.foreign_keys if fk.target == self.kind)


_K = EntityKind

# Order matters: upstream kinds come first, downstream kinds may reference them.
_CATALOG: tuple[EntityDescriptor, ...] = (
    EntityDescriptor(_K.PROFILES, 0),
    EntityDescriptor(_K.CATEGORIES, 1, (ForeignKey("parent_id", _K.CATEGORIES),)),
    EntityDescriptor(_K.SUPPLIERS, 2, (ForeignKey("category_id", _K.CATEGORIES),)),
    EntityDescriptor(_K.BANKS, 3),
    EntityDescriptor(_K.BANK_ACCOUNTS, 4, (ForeignKey("bank_id", _K.BANKS),)),
    EntityDescriptor(
        _K.ACCOUNTS_PAYABLE,
        5,
        (
            ForeignKey("category_id", _K.CATEGORIES),
            ForeignKey("supplier_id", _K.SUPPLIERS),
            ForeignKey("bank_account_id", _K.BANK_ACCOUNTS),
        ),
    ),
    EntityDescriptor(
        _K.ACCOUNTS_RECEIVABLE,
        6,
        (
            ForeignKey("category_id", _K.CATEGORIES),
            ForeignKey("bank_account_id", _K.BANK_ACCOUNTS),
        ),
    ),
    EntityDescriptor(
        _K.TRANSACTIONS,
        7,
        (
            ForeignKey("from_account_id", _K.BANK_ACCOUNTS),
            ForeignKey("to_account_id", _K.BANK_ACCOUNTS),
            ForeignKey("accounts_payable_id", _K.ACCOUNTS_PAYABLE),
            ForeignKey("accounts_receivable_id", _K.ACCOUNTS_RECEIVABLE),
            ForeignKey("category_id", _K.CATEGORIES),
        ),
    ),
)

_BY_KIND: dict[EntityKind, EntityDescriptor] = {item.kind: item for item in _CATALOG}


def iter_catalog() -> Iterator[EntityDescriptor]:
    return iter(_CATALOG)


def dependency_order() -> list[EntityKind]:
    return [item.kind for item in _CATALOG]


def reverse_dependency_order() -> list[EntityKind]:
    return [item.kind for item in reversed(_CATALOG)]


def get_descriptor(kind: EntityKind | str) -> EntityDescriptor:
    return _BY_KIND[EntityKind(kind)]


def is_known_kind(name: object) -> bool:
    return isinstance(name, str) and name in EntityKind.values()
