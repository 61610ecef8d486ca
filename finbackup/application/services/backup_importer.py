from __future__ import annotations

import logging
import time
from collections.abc import Iterator, Mapping
from typing import Any

from finbackup.application.dto.auth_dto import Identity
from finbackup.application.dto.backup_dto import (
    BackupFile,
    ImportOptions,
    ImportResult,
    ImportSummary,
    ValidationReport,
)
from finbackup.application.services.backup_validator import BackupValidator
from finbackup.config import settings
from finbackup.domain.constants import EntityKind, ImportStrategy, IssueType
from finbackup.domain.models.entity_catalog import dependency_order, reverse_dependency_order
from finbackup.domain.rules.backup_rules import dependent_skips, order_parents_first
from finbackup.infrastructure.db.repositories.record_repo import RecordRepository
from finbackup.infrastructure.db.session import SessionFactory, session_scope


def _chunked(records: list[dict[str, Any]], size: int) -> Iterator[list[dict[str, Any]]]:
    for start in range(0, len(records), size):
        yield records[start : start + size]


def _record_key(record: Mapping[str, Any]) -> str | None:
    value = record.get("id")
    if value is None or value == "":
        return None
    return str(value)


def _format_error(exc: Exception) -> str:
    message = str(exc).strip()
    return message or exc.__class__.__name__


def _skipped_positions(report: ValidationReport) -> dict[str, set[int]]:
    """Positions of records flagged by integrity warnings, per kind."""
    skipped: dict[str, set[int]] = {}
    for issue in report.issues_of(IssueType.INTEGRITY):
        details = issue.details if isinstance(issue.details, Mapping) else {}
        kind = details.get("kind")
        index = details.get("index")
        if isinstance(kind, str) and isinstance(index, int):
            skipped.setdefault(kind, set()).add(index)
    return skipped


class _ImportRun:
    """Mutable state of a single import invocation."""

    def __init__(self, options: ImportOptions, chunk_size: int) -> None:
        self.options = options
        self.chunk_size = chunk_size
        self.summary = ImportSummary()
        self.errors: list[str] = []
        self.warnings: list[str] = []
        # ids already present in the store per kind, used to classify created/updated
        self.existing: dict[str, set[str]] = {}

    def fail(self, kind: str, count: int, message: str) -> None:
        self.summary.errors[kind] += count
        self.errors.append(message)


class BackupImporter:
    """
    Apply a backup document to the record store.

    The document is always re-validated first. Kinds are processed in
    dependency order (deletions in reverse), each chunk in its own
    transaction; a failing chunk is counted and skipped without stopping the
    rest of the import.
    """

    def __init__(
        self,
        record_repo: RecordRepository,
        validator: BackupValidator,
        session_factory: SessionFactory = session_scope,
        *,
        default_chunk_size: int | None = None,
    ) -> None:
        self.record_repo = record_repo
        self.validator = validator
        self.session_factory = session_factory
        self.default_chunk_size = default_chunk_size or settings.import_chunk_size
        self._logger = logging.getLogger(__name__)

    def import_backup(
        self,
        backup: BackupFile | Mapping[str, Any],
        options: ImportOptions,
        identity: Identity,
    ) -> ImportResult:
        started = time.perf_counter()
        candidate = backup.model_dump(mode="json") if isinstance(backup, BackupFile) else backup
        # Replace deletes the current records first, so they cannot satisfy references.
        report = self.validator.validate(
            candidate,
            identity,
            include_store_ids=options.strategy != ImportStrategy.REPLACE,
        )
        if not report.valid:
            self._logger.warning(
                "Import refused for user %s: %d validation error(s)", identity.user_id, len(report.errors)
            )
            return ImportResult(
                success=False,
                errors=[issue.message for issue in report.errors],
                duration=time.perf_counter() - started,
                dry_run=options.dry_run,
            )

        run = _ImportRun(options, options.chunk_size or self.default_chunk_size)
        data: Mapping[str, Any] = candidate["data"]
        records_by_kind = self._prepare_records(data, report, run)

        for kind in dependency_order():
            run.existing[kind.value] = self._load_existing(kind, identity, records_by_kind[kind.value], run)

        if options.strategy == ImportStrategy.REPLACE:
            for kind in reverse_dependency_order():
                self._delete_kind(kind, identity, run)

        for kind in dependency_order():
            self._write_kind(kind, identity, records_by_kind[kind.value], run)

        result = ImportResult(
            success=report.valid and not run.summary.has_errors,
            summary=run.summary,
            duration=time.perf_counter() - started,
            errors=run.errors,
            warnings=run.warnings,
            dry_run=options.dry_run,
        )
        self._logger.info(
            "Import %s for user %s (strategy=%s, dry_run=%s): %s in %.3fs",
            "succeeded" if result.success else "finished with errors",
            identity.user_id,
            options.strategy.value,
            options.dry_run,
            run.summary.totals(),
            result.duration,
        )
        return result

    def _prepare_records(
        self,
        data: Mapping[str, Any],
        report: ValidationReport,
        run: _ImportRun,
    ) -> dict[str, list[dict[str, Any]]]:
        skipped = _skipped_positions(report)
        run.warnings.extend(issue.message for issue in report.issues_of(IssueType.INTEGRITY))
        for finding in dependent_skips(data, skipped):
            skipped.setdefault(finding.details["kind"], set()).add(finding.details["index"])
            run.warnings.append(finding.message)
        prepared: dict[str, list[dict[str, Any]]] = {}
        for kind in dependency_order():
            records = data.get(kind.value) or []
            flagged = skipped.get(kind.value, set())
            kept = [dict(record) for idx, record in enumerate(records) if idx not in flagged]
            run.summary.skipped[kind.value] = len(records) - len(kept)
            prepared[kind.value] = order_parents_first(kept, kind)
        return prepared

    def _load_existing(
        self,
        kind: EntityKind,
        identity: Identity,
        records: list[dict[str, Any]],
        run: _ImportRun,
    ) -> set[str] | None:
        try:
            with self.session_factory() as session:
                return self.record_repo.existing_ids(session, kind, identity.user_id)
        except Exception as exc:  # noqa: BLE001
            self._logger.warning("Failed to read existing %s", kind.value, exc_info=True)
            run.fail(kind.value, len(records), f"Erro ao ler {kind.value} existentes: {_format_error(exc)}")
            return None

    def _delete_kind(self, kind: EntityKind, identity: Identity, run: _ImportRun) -> None:
        existing = run.existing.get(kind.value)
        if not existing:
            return
        if run.options.dry_run:
            run.summary.deleted[kind.value] = len(existing)
            run.existing[kind.value] = set()
            return
        try:
            with self.session_factory() as session:
                deleted = self.record_repo.delete(session, kind, identity.user_id, existing)
        except Exception as exc:  # noqa: BLE001
            self._logger.warning("Failed to delete %s for user %s", kind.value, identity.user_id, exc_info=True)
            run.fail(
                kind.value,
                len(existing),
                f"Erro ao excluir {kind.value} ({len(existing)} registros): {_format_error(exc)}",
            )
            return
        run.summary.deleted[kind.value] = deleted
        run.existing[kind.value] = set()

    def _write_kind(
        self,
        kind: EntityKind,
        identity: Identity,
        records: list[dict[str, Any]],
        run: _ImportRun,
    ) -> None:
        existing = run.existing.get(kind.value)
        if existing is None:
            # Reading the current state failed; the kind is already counted as errors.
            return
        for number, chunk in enumerate(_chunked(records, run.chunk_size), start=1):
            if not run.options.dry_run:
                try:
                    with self.session_factory() as session:
                        for record in chunk:
                            self.record_repo.upsert(session, kind, identity.user_id, record)
                except Exception as exc:  # noqa: BLE001
                    self._logger.warning(
                        "Chunk %d of %s failed (%d records)", number, kind.value, len(chunk), exc_info=True
                    )
                    run.fail(
                        kind.value,
                        len(chunk),
                        f"Erro ao importar {kind.value} (lote {number}, {len(chunk)} registros): "
                        f"{_format_error(exc)}",
                    )
                    continue
            self._classify(kind.value, chunk, existing, run)

    @staticmethod
    def _classify(kind: str, chunk: list[dict[str, Any]], existing: set[str], run: _ImportRun) -> None:
        for record in chunk:
            key = _record_key(record)
            if key is not None and key in existing:
                run.summary.updated[kind] += 1
            else:
                run.summary.created[kind] += 1
            if key is not None:
                existing.add(key)
