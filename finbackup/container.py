from __future__ import annotations

from dataclasses import dataclass

from finbackup.application.services.backup_exporter import BackupExporter
from finbackup.application.services.backup_importer import BackupImporter
from finbackup.application.services.backup_service import BackupService
from finbackup.application.services.backup_validator import BackupValidator
from finbackup.infrastructure.db.repositories.audit_repo import AuditLogRepository
from finbackup.infrastructure.db.repositories.record_repo import RecordRepository
from finbackup.infrastructure.db.session import SessionFactory, session_scope


@dataclass
class Container:
    record_repo: RecordRepository
    audit_repo: AuditLogRepository

    backup_exporter: BackupExporter
    backup_validator: BackupValidator
    backup_importer: BackupImporter
    backup_service: BackupService


def build_container(session_factory: SessionFactory = session_scope) -> Container:
    record_repo = RecordRepository()
    audit_repo = AuditLogRepository()

    backup_exporter = BackupExporter(record_repo=record_repo, session_factory=session_factory)
    backup_validator = BackupValidator(record_repo=record_repo, session_factory=session_factory)
    backup_importer = BackupImporter(
        record_repo=record_repo,
        validator=backup_validator,
        session_factory=session_factory,
    )
    backup_service = BackupService(
        exporter=backup_exporter,
        validator=backup_validator,
        importer=backup_importer,
        audit_repo=audit_repo,
        session_factory=session_factory,
    )

    return Container(
        record_repo=record_repo,
        audit_repo=audit_repo,
        backup_exporter=backup_exporter,
        backup_validator=backup_validator,
        backup_importer=backup_importer,
        backup_service=backup_service,
    )
