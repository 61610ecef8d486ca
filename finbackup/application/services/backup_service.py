from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from openpyxl import Workbook

from finbackup.application.dto.auth_dto import Identity
from finbackup.application.dto.backup_dto import (
    BackupFile,
    ImportOptions,
    ImportResult,
    ValidationIssue,
    ValidationReport,
)
from finbackup.application.services.backup_exporter import BackupExporter
from finbackup.application.services.backup_importer import BackupImporter
from finbackup.application.services.backup_validator import BackupValidator
from finbackup.config import BACKUP_DIR, settings
from finbackup.domain.constants import BACKUP_FILE_PREFIX, ImportStrategy, IssueLevel, IssueType
from finbackup.domain.models.entity_catalog import iter_catalog
from finbackup.infrastructure.db.models_sqlalchemy import BackupPackage
from finbackup.infrastructure.db.repositories.audit_repo import AuditLogRepository
from finbackup.infrastructure.db.session import SessionFactory, session_scope
from finbackup.infrastructure.security.checksum import file_digest


@dataclass(frozen=True)
class BackupInfo:
    path: Path
    created_at: datetime
    reason: str
    user_id: str | None = None


def generate_file_name(now: datetime | None = None, *, prefix: str = BACKUP_FILE_PREFIX) -> str:
    stamp = (now or datetime.now(UTC)).astimezone(UTC).strftime("%Y-%m-%dT%H-%M-%SZ")
    return f"{prefix}{stamp}.json"


def _schema_issue(message: str, **details: Any) -> ValidationIssue:
    return ValidationIssue(
        level=IssueLevel.ERROR,
        type=IssueType.SCHEMA,
        message=message,
        details=details or None,
    )


def _cell_value(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return value


class BackupService:
    """File-level backup operations on top of the exporter, validator and importer."""

    def __init__(
        self,
        exporter: BackupExporter,
        validator: BackupValidator,
        importer: BackupImporter,
        audit_repo: AuditLogRepository,
        session_factory: SessionFactory = session_scope,
        *,
        backup_dir: Path | None = None,
        max_backup_size_mb: int | None = None,
        safety_snapshot_enabled: bool | None = None,
    ) -> None:
        self.exporter = exporter
        self.validator = validator
        self.importer = importer
        self.audit_repo = audit_repo
        self.session_factory = session_factory
        self.backup_dir = backup_dir or BACKUP_DIR
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        self.max_backup_size_mb = max_backup_size_mb or settings.max_backup_size_mb
        self.safety_snapshot_enabled = (
            settings.safety_snapshot_enabled if safety_snapshot_enabled is None else safety_snapshot_enabled
        )
        self._meta_path = self.backup_dir / "last_backup.json"
        self._logger = logging.getLogger(__name__)

    def list_backups(self) -> list[Path]:
        return sorted(self.backup_dir.glob(f"{BACKUP_FILE_PREFIX}*.json"), reverse=True)

    def get_last_backup(self) -> BackupInfo | None:
        if not self._meta_path.exists():
            return None
        try:
            data = json.loads(self._meta_path.read_text(encoding="utf-8"))
            path = Path(data["path"])
            created_at = datetime.fromisoformat(data["created_at"])
            reason = data.get("reason", "unknown")
            if not path.exists():
                return None
            return BackupInfo(path=path, created_at=created_at, reason=reason, user_id=data.get("user_id"))
        except (OSError, ValueError, KeyError, TypeError):
            self._logger.warning("Unreadable backup pointer: %s", self._meta_path, exc_info=True)
            return None

    def create_backup(
        self,
        identity: Identity,
        *,
        file_path: str | Path | None = None,
        reason: str = "manual",
        notes: str | None = None,
    ) -> Path:
        backup = self.exporter.export(identity, notes=notes)
        target = Path(file_path) if file_path else self.backup_dir / generate_file_name(backup.exported_at)
        self.write_backup(backup, target)
        self._write_meta(target, reason, identity)
        package_hash = file_digest(target)
        self._log_package("export", "json", target, package_hash, identity, backup.schema_version, reason)
        self._audit_event(identity, "backup_create", target, {"reason": reason, "counts": backup.counts})
        self._logger.info("Backup written to %s (%s)", target, reason)
        return target

    def write_backup(self, backup: BackupFile, file_path: Path) -> Path:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        payload = backup.model_dump(mode="json")
        file_path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        return file_path

    def load_candidate(self, file_path: str | Path) -> tuple[Any, list[ValidationIssue]]:
        """Read a backup file, refusing oversized or unparsable input before validation."""
        file_path = Path(file_path)
        limit = self.max_backup_size_mb * 1024 * 1024
        try:
            size = file_path.stat().st_size
        except OSError as exc:
            return None, [_schema_issue(f"Arquivo de backup não encontrado: {file_path}", error=str(exc))]
        if size > limit:
            return None, [
                _schema_issue(
                    f"Arquivo muito grande (máximo {self.max_backup_size_mb}MB)",
                    size=size,
                    limit=limit,
                )
            ]
        try:
            return json.loads(file_path.read_text(encoding="utf-8")), []
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            return None, [_schema_issue(f"Erro ao ler backup: {exc}")]

    def validate_file(self, file_path: str | Path, identity: Identity) -> ValidationReport:
        candidate, issues = self.load_candidate(file_path)
        if issues:
            return ValidationReport.rejected(issues)
        report = self.validator.validate(candidate, identity)
        self._audit_event(
            identity,
            "backup_validate",
            Path(file_path),
            {"valid": report.valid, "errors": len(report.errors), "warnings": len(report.warnings)},
        )
        return report

    def import_file(self, file_path: str | Path, identity: Identity, options: ImportOptions) -> ImportResult:
        file_path = Path(file_path)
        candidate, issues = self.load_candidate(file_path)
        if issues:
            return ImportResult(success=False, errors=[issue.message for issue in issues], dry_run=options.dry_run)

        report = self.validator.validate(
            candidate,
            identity,
            include_store_ids=options.strategy != ImportStrategy.REPLACE,
        )
        if not report.valid:
            result = ImportResult(
                success=False,
                errors=[issue.message for issue in report.errors],
                dry_run=options.dry_run,
            )
            self._audit_event(
                identity,
                "backup_import_refused",
                file_path,
                {"strategy": options.strategy.value, "errors": len(result.errors)},
            )
            return result

        if not options.dry_run and self.safety_snapshot_enabled:
            self._create_safety_snapshot(identity)

        result = self.importer.import_backup(candidate, options, identity)
        if not options.dry_run:
            package_hash = file_digest(file_path)
            schema_version = candidate.get("schema_version") if isinstance(candidate, dict) else None
            self._log_package(
                "import",
                "json",
                file_path,
                package_hash,
                identity,
                schema_version if isinstance(schema_version, str) else None,
                options.strategy.value,
            )
        self._audit_event(
            identity,
            "backup_import_dry_run" if options.dry_run else "backup_import",
            file_path,
            {
                "strategy": options.strategy.value,
                "success": result.success,
                "summary": result.summary.totals(),
                "errors": len(result.errors),
            },
        )
        if result.errors and not options.dry_run:
            self._write_import_error_log(file_path, result)
        return result

    def export_spreadsheet(self, backup: BackupFile, file_path: str | Path) -> Path:
        """Render a backup as a workbook: a ``meta`` sheet plus one sheet per entity kind."""
        file_path = Path(file_path)
        wb = Workbook()
        meta = wb.active
        meta.title = "meta"
        meta.append(["schema_version", backup.schema_version])
        meta.append(["exported_at", backup.exported_at.isoformat()])
        meta.append(["owner_user_id", backup.owner.user_id])
        meta.append(["checksum_algo", backup.checksum.algo])
        meta.append(["checksum", backup.checksum.value])
        meta.append(["generated_by", backup.meta.generated_by])

        for descriptor in iter_catalog():
            ws = wb.create_sheet(title=descriptor.name)
            records = backup.data.get(descriptor.name, [])
            columns: list[str] = []
            for record in records:
                for key in record:
                    if key not in columns:
                        columns.append(key)
            ws.append(columns or ["id"])
            for record in records:
                ws.append([_cell_value(record.get(col)) for col in columns])

        file_path.parent.mkdir(parents=True, exist_ok=True)
        wb.save(file_path)
        return file_path

    def list_packages(self, limit: int = 50, direction: str | None = None) -> list[BackupPackage]:
        with self.session_factory() as session:
            return self.audit_repo.list_packages(session, limit=limit, direction=direction)

    def _create_safety_snapshot(self, identity: Identity) -> Path | None:
        timestamp = datetime.now(UTC).strftime("%Y%m%d_%H%M%S")
        safety_path = self.backup_dir / f"pre_import_{timestamp}.json"
        try:
            return self.create_backup(identity, file_path=safety_path, reason="pre_import")
        except Exception:  # noqa: BLE001
            self._logger.warning("Pre-import safety snapshot failed for user %s", identity.user_id, exc_info=True)
            return None

    def _write_meta(self, path: Path, reason: str, identity: Identity) -> None:
        payload = {
            "path": str(path),
            "created_at": datetime.now(UTC).isoformat(),
            "reason": reason,
            "user_id": identity.user_id,
        }
        self._meta_path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")

    def _log_package(
        self,
        direction: str,
        package_format: str,
        file_path: Path,
        sha256: str,
        identity: Identity,
        schema_version: str | None,
        notes: str | None,
    ) -> None:
        with self.session_factory() as session:
            self.audit_repo.add_package(
                session,
                direction=direction,
                package_format=package_format,
                file_path=str(file_path),
                sha256=sha256,
                created_by=identity.user_id,
                schema_version=schema_version,
                notes=notes,
            )

    def _audit_event(self, identity: Identity, action: str, path: Path, payload: dict[str, Any]) -> None:
        with self.session_factory() as session:
            self.audit_repo.add_event(
                session,
                user_id=identity.user_id,
                entity_type="backup",
                entity_id=path.name,
                action=action,
                payload_json=json.dumps(payload, ensure_ascii=False),
            )

    def _write_import_error_log(self, source_file: Path, result: ImportResult) -> str | None:
        timestamp = datetime.now(UTC).strftime("%Y%m%d_%H%M%S")
        log_path = source_file.with_name(f"{source_file.stem}_import_errors_{timestamp}.json")
        payload = {
            "created_at": datetime.now(UTC).isoformat(),
            "source_file": str(source_file),
            "errors_count": len(result.errors),
            "errors": result.errors,
            "summary": result.summary.model_dump(),
        }
        try:
            log_path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        except OSError:
            self._logger.warning("Could not write import error log %s", log_path, exc_info=True)
            return None
        return str(log_path)
