from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from finbackup.application.dto.auth_dto import Identity
from finbackup.application.dto.backup_dto import (
    BackupMetadata,
    BackupPreview,
    ValidationIssue,
    ValidationReport,
)
from finbackup.config import settings
from finbackup.domain.constants import EntityKind, IssueLevel, IssueType
from finbackup.domain.errors import UnsupportedChecksumAlgorithm
from finbackup.domain.models.entity_catalog import iter_catalog
from finbackup.domain.models.finding import Finding
from finbackup.domain.rules.backup_rules import (
    check_owner,
    check_references,
    check_schema_version,
    check_structure,
    check_transaction_accounts,
)
from finbackup.infrastructure.db.repositories.record_repo import RecordRepository
from finbackup.infrastructure.db.session import SessionFactory
from finbackup.infrastructure.security.checksum import compute_checksum


def _to_issue(finding: Finding) -> ValidationIssue:
    return ValidationIssue(
        level=finding.level,
        type=finding.type,
        message=finding.message,
        details=finding.details or None,
    )


def _schema_error_details(exc: ValidationError) -> list[dict[str, Any]]:
    return [
        {"loc": ".".join(str(part) for part in err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors(include_url=False)
    ]


def build_preview(data: Any, sample_size: int) -> BackupPreview:
    """Count and sample records straight from an untrusted ``data`` section."""
    if not isinstance(data, Mapping):
        return BackupPreview()
    record_counts: dict[str, int] = {}
    sample_data: dict[str, list[Any]] = {}
    for descriptor in iter_catalog():
        records = data.get(descriptor.name)
        if not isinstance(records, list):
            continue
        record_counts[descriptor.name] = len(records)
        sample_data[descriptor.name] = list(records[:sample_size])
    return BackupPreview(
        total_records=sum(record_counts.values()),
        record_counts=record_counts,
        sample_data=sample_data,
    )


class BackupValidator:
    """
    Inspect a candidate backup document and report every problem found.

    All checks run regardless of earlier failures so a single report shows
    everything wrong with a file. Malformed input never raises; it becomes an
    error-level issue instead.
    """

    def __init__(
        self,
        record_repo: RecordRepository | None = None,
        session_factory: SessionFactory | None = None,
        *,
        allow_external_references: bool | None = None,
        sample_size: int | None = None,
    ) -> None:
        self.record_repo = record_repo
        self.session_factory = session_factory
        self.allow_external_references = (
            settings.allow_external_references if allow_external_references is None else allow_external_references
        )
        self.sample_size = settings.preview_sample_size if sample_size is None else sample_size
        self._logger = logging.getLogger(__name__)

    def validate(self, candidate: Any, identity: Identity, *, include_store_ids: bool = True) -> ValidationReport:
        try:
            return self._validate(candidate, identity, include_store_ids)
        except Exception as exc:  # noqa: BLE001
            self._logger.exception("Unexpected failure while validating backup")
            issue = ValidationIssue(
                level=IssueLevel.ERROR,
                type=IssueType.SCHEMA,
                message=f"Erro ao ler backup: {exc}",
            )
            data = candidate.get("data") if isinstance(candidate, Mapping) else None
            return ValidationReport(valid=False, issues=[issue], preview=build_preview(data, self.sample_size))

    def _validate(self, candidate: Any, identity: Identity, include_store_ids: bool) -> ValidationReport:
        if not isinstance(candidate, Mapping):
            issue = ValidationIssue(
                level=IssueLevel.ERROR,
                type=IssueType.SCHEMA,
                message="Formato do backup inválido: documento deve ser um objeto",
                details={"actual": type(candidate).__name__},
            )
            return ValidationReport.rejected([issue])

        findings: list[Finding] = []
        metadata: BackupMetadata | None = None
        try:
            metadata = BackupMetadata.model_validate(candidate)
        except ValidationError as exc:
            findings.append(
                Finding.error(
                    IssueType.SCHEMA,
                    "Formato do backup inválido",
                    errors=_schema_error_details(exc),
                )
            )

        if "schema_version" in candidate:
            findings.extend(check_schema_version(candidate.get("schema_version")))

        data = candidate.get("data")
        findings.extend(check_structure(data, candidate.get("counts")))

        findings.extend(self._check_checksum(data, candidate.get("checksum")))

        if isinstance(data, Mapping):
            external_ids = self._external_ids(identity) if include_store_ids else None
            findings.extend(check_references(data, external_ids))
            findings.extend(check_transaction_accounts(data.get(EntityKind.TRANSACTIONS.value)))

        findings.extend(check_owner(candidate.get("owner"), identity.user_id, identity.phone))

        issues = [_to_issue(finding) for finding in findings]
        report = ValidationReport(
            valid=not any(issue.is_error for issue in issues),
            issues=issues,
            metadata=metadata,
            preview=build_preview(data, self.sample_size),
        )
        self._logger.info(
            "Backup validated for user %s: valid=%s errors=%d warnings=%d",
            identity.user_id,
            report.valid,
            len(report.errors),
            len(report.warnings),
        )
        return report

    def _check_checksum(self, data: Any, checksum: Any) -> list[Finding]:
        if not isinstance(checksum, Mapping):
            return [Finding.error(IssueType.CHECKSUM, "Checksum ausente no backup")]
        algo = checksum.get("algo")
        expected = checksum.get("value")
        if not isinstance(data, Mapping):
            return [Finding.error(IssueType.CHECKSUM, "Checksum não pode ser verificado sem a seção 'data'")]
        try:
            actual = compute_checksum(data, str(algo or ""))
        except UnsupportedChecksumAlgorithm as exc:
            return [Finding.error(IssueType.CHECKSUM, str(exc), algo=algo)]
        if not isinstance(expected, str) or actual.lower() != expected.strip().lower():
            return [
                Finding.error(
                    IssueType.CHECKSUM,
                    "Checksum inválido - dados podem estar corrompidos",
                    algo=algo,
                    expected=expected,
                    actual=actual,
                )
            ]
        return []

    def _external_ids(self, identity: Identity) -> dict[EntityKind, set[str]] | None:
        if not self.allow_external_references or self.record_repo is None or self.session_factory is None:
            return None
        external: dict[EntityKind, set[str]] = {}
        try:
            with self.session_factory() as session:
                for descriptor in iter_catalog():
                    external[descriptor.kind] = self.record_repo.existing_ids(
                        session, descriptor.kind, identity.user_id
                    )
        except Exception:  # noqa: BLE001
            self._logger.warning("Could not load existing ids for reference checks", exc_info=True)
            return None
        return external
