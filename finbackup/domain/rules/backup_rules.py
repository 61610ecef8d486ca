from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any

from finbackup.domain.constants import (
    BACKUP_SCHEMA_VERSION,
    SUPPORTED_SCHEMA_MAJORS,
    EntityKind,
    IssueType,
    TransactionType,
)
from finbackup.domain.models.entity_catalog import get_descriptor, is_known_kind, iter_catalog
from finbackup.domain.models.finding import Finding

_KIND_LABELS = {
    EntityKind.PROFILES: "Perfil",
    EntityKind.CATEGORIES: "Categoria",
    EntityKind.SUPPLIERS: "Fornecedor",
    EntityKind.BANKS: "Banco",
    EntityKind.BANK_ACCOUNTS: "Conta bancária",
    EntityKind.ACCOUNTS_PAYABLE: "Conta a pagar",
    EntityKind.ACCOUNTS_RECEIVABLE: "Conta a receber",
    EntityKind.TRANSACTIONS: "Transação",
}


def _id_key(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _digits(value: Any) -> str:
    return re.sub(r"\D", "", str(value or ""))


def collect_ids(records: Iterable[Any]) -> set[str]:
    ids: set[str] = set()
    for record in records:
        if isinstance(record, Mapping):
            key = _id_key(record.get("id"))
            if key is not None:
                ids.add(key)
    return ids


def parse_schema_major(version: Any) -> int | None:
    if not isinstance(version, str) or not version.strip():
        return None
    head = version.strip().split(".", 1)[0]
    try:
        return int(head)
    except ValueError:
        return None


def check_schema_version(version: Any) -> list[Finding]:
    major = parse_schema_major(version)
    if major is not None and major in SUPPORTED_SCHEMA_MAJORS:
        return []
    return [
        Finding.error(
            IssueType.SCHEMA,
            f"Versão do schema não suportada: {version}",
            expected=BACKUP_SCHEMA_VERSION,
            actual=version,
        )
    ]


def check_structure(data: Any, counts: Any) -> list[Finding]:
    """Check that every entity kind is a list of objects matching its declared count."""
    if not isinstance(data, Mapping):
        return [
            Finding.error(
                IssueType.SCHEMA,
                "Seção 'data' ausente ou inválida",
                actual=type(data).__name__,
            )
        ]
    counts_map = counts if isinstance(counts, Mapping) else {}
    findings: list[Finding] = []
    for descriptor in iter_catalog():
        kind = descriptor.name
        if kind not in data:
            findings.append(Finding.error(IssueType.SCHEMA, f"Coleção ausente: {kind}", kind=kind))
            continue
        records = data[kind]
        if not isinstance(records, list):
            findings.append(
                Finding.error(
                    IssueType.SCHEMA,
                    f"Coleção {kind} deve ser uma lista",
                    kind=kind,
                    actual=type(records).__name__,
                )
            )
            continue
        bad_positions = [idx for idx, record in enumerate(records) if not isinstance(record, Mapping)]
        if bad_positions:
            findings.append(
                Finding.error(
                    IssueType.SCHEMA,
                    f"Coleção {kind} contém {len(bad_positions)} registro(s) que não são objetos",
                    kind=kind,
                    indexes=bad_positions[:20],
                )
            )
        expected = counts_map.get(kind)
        if isinstance(expected, bool) or not isinstance(expected, int):
            findings.append(
                Finding.error(
                    IssueType.SCHEMA,
                    f"Contagem ausente ou inválida para {kind}",
                    kind=kind,
                    expected=expected,
                    actual=len(records),
                )
            )
        elif expected != len(records):
            findings.append(
                Finding.error(
                    IssueType.SCHEMA,
                    f"Contagem incorreta para {kind}: esperado {expected}, encontrado {len(records)}",
                    kind=kind,
                    expected=expected,
                    actual=len(records),
                )
            )
    unknown = sorted(str(name) for name in data if not is_known_kind(name))
    for name in unknown:
        findings.append(
            Finding.warning(
                IssueType.SCHEMA,
                f"Coleção desconhecida será ignorada: {name}",
                kind=name,
            )
        )
    return findings


def check_references(
    data: Mapping[str, Any],
    external_ids: Mapping[EntityKind, set[str]] | None = None,
) -> list[Finding]:
    """Report foreign keys that point to ids absent from the payload."""
    known: dict[EntityKind, set[str]] = {}
    for descriptor in iter_catalog():
        records = data.get(descriptor.name)
        ids = collect_ids(records) if isinstance(records, list) else set()
        if external_ids:
            ids = ids | external_ids.get(descriptor.kind, set())
        known[descriptor.kind] = ids

    findings: list[Finding] = []
    for descriptor in iter_catalog():
        records = data.get(descriptor.name)
        if not descriptor.foreign_keys or not isinstance(records, list):
            continue
        label = _KIND_LABELS[descriptor.kind]
        for index, record in enumerate(records):
            if not isinstance(record, Mapping):
                continue
            for fk in descriptor.foreign_keys:
                ref = _id_key(record.get(fk.field))
                if ref is None or ref in known[fk.target]:
                    continue
                findings.append(
                    Finding.warning(
                        IssueType.INTEGRITY,
                        f"{label} {index + 1}: {fk.field} {ref} não encontrado",
                        kind=descriptor.name,
                        index=index,
                        record_id=_id_key(record.get("id")),
                        field=fk.field,
                        ref_kind=fk.target.value,
                        ref_id=ref,
                    )
                )
    return findings


def dependent_skips(data: Mapping[str, Any], flagged: Mapping[str, set[int]]) -> list[Finding]:
    """
    Find records whose foreign keys point at a record that will be skipped.

    Kinds are walked in dependency order and self-referencing kinds are
    rescanned until stable, so a skip reaches every descendant.
    """
    skipped_ids: dict[EntityKind, set[str]] = {}
    findings: list[Finding] = []
    for descriptor in iter_catalog():
        ids: set[str] = set()
        skipped_ids[descriptor.kind] = ids
        records = data.get(descriptor.name)
        if not isinstance(records, list):
            continue
        positions = set(flagged.get(descriptor.name, set()))
        for index in positions:
            if 0 <= index < len(records) and isinstance(records[index], Mapping):
                key = _id_key(records[index].get("id"))
                if key is not None:
                    ids.add(key)
        if not descriptor.foreign_keys:
            continue
        label = _KIND_LABELS[descriptor.kind]
        changed = True
        while changed:
            changed = False
            for index, record in enumerate(records):
                if index in positions or not isinstance(record, Mapping):
                    continue
                for fk in descriptor.foreign_keys:
                    ref = _id_key(record.get(fk.field))
                    if ref is None or ref not in skipped_ids[fk.target]:
                        continue
                    record_id = _id_key(record.get("id"))
                    positions.add(index)
                    if record_id is not None:
                        ids.add(record_id)
                    findings.append(
                        Finding.warning(
                            IssueType.INTEGRITY,
                            f"{label} {index + 1}: ignorado porque {fk.field} {ref} foi ignorado",
                            kind=descriptor.name,
                            index=index,
                            record_id=record_id,
                            field=fk.field,
                            ref_kind=fk.target.value,
                            ref_id=ref,
                        )
                    )
                    changed = True
                    break
    return findings


def check_transaction_accounts(transactions: Any) -> list[Finding]:
    if not isinstance(transactions, list):
        return []
    findings: list[Finding] = []
    kind = EntityKind.TRANSACTIONS.value
    for index, record in enumerate(transactions):
        if not isinstance(record, Mapping):
            continue
        tx_type = record.get("type")
        source = _id_key(record.get("from_account_id"))
        target = _id_key(record.get("to_account_id"))
        message: str | None = None
        if tx_type == TransactionType.INCOME and target is None:
            message = f"Transação {index + 1}: entrada deve ter to_account_id"
        elif tx_type == TransactionType.EXPENSE and source is None:
            message = f"Transação {index + 1}: saída deve ter from_account_id"
        elif tx_type == TransactionType.TRANSFER:
            if source is None or target is None:
                message = f"Transação {index + 1}: transferência deve ter from_account_id e to_account_id"
            elif source == target:
                message = f"Transação {index + 1}: transferência não pode ter mesma conta origem/destino"
        if message:
            findings.append(
                Finding.warning(
                    IssueType.INTEGRITY,
                    message,
                    kind=kind,
                    index=index,
                    record_id=_id_key(record.get("id")),
                    rule="transaction_accounts",
                )
            )
    return findings


def check_owner(owner: Any, user_id: str, phone: str = "") -> list[Finding]:
    if not isinstance(owner, Mapping):
        return [Finding.error(IssueType.PERMISSION, "Proprietário do backup não informado")]
    backup_user = _id_key(owner.get("user_id"))
    if backup_user != user_id:
        return [
            Finding.error(
                IssueType.PERMISSION,
                "Este backup pertence a outro usuário",
                backup_user_id=backup_user,
                user_id=user_id,
            )
        ]
    backup_phone = _digits(owner.get("phone"))
    current_phone = _digits(phone)
    if backup_phone and current_phone and backup_phone != current_phone:
        return [
            Finding.error(
                IssueType.PERMISSION,
                "Telefone do proprietário do backup não confere",
                user_id=user_id,
            )
        ]
    return []


def order_parents_first(records: list[dict[str, Any]], kind: EntityKind | str) -> list[dict[str, Any]]:
    """
    Reorder records of a self-referencing kind so parents precede children.

    Records keep their relative order otherwise; cycles are appended as-is.
    """
    refs = get_descriptor(kind).self_references
    if not refs or len(records) < 2:
        return list(records)
    pending = list(records)
    batch_ids = collect_ids(pending)
    placed: set[str] = set()
    ordered: list[dict[str, Any]] = []
    while pending:
        ready: list[dict[str, Any]] = []
        waiting: list[dict[str, Any]] = []
        for record in pending:
            parents = {_id_key(record.get(fk.field)) for fk in refs} - {None, _id_key(record.get("id"))}
            if all(parent in placed or parent not in batch_ids for parent in parents):
                ready.append(record)
            else:
                waiting.append(record)
        if not ready:
            ordered.extend(waiting)
            break
        for record in ready:
            key = _id_key(record.get("id"))
            if key is not None:
                placed.add(key)
        ordered.extend(ready)
        pending = waiting
    return ordered
