from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from finbackup.infrastructure.db.models_sqlalchemy import AuditLog, BackupPackage


class AuditLogRepository:
    def add_event(
        self,
        session: Session,
        *,
        user_id: str | None,
        entity_type: str,
        entity_id: str,
        action: str,
        payload_json: str | None = None,
    ) -> AuditLog:
        entry = AuditLog(
            user_id=user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            payload_json=payload_json,
        )
        session.add(entry)
        return entry

    def add_package(
        self,
        session: Session,
        *,
        direction: str,
        package_format: str,
        file_path: str,
        sha256: str,
        created_by: str | None,
        schema_version: str | None = None,
        notes: str | None = None,
    ) -> BackupPackage:
        package = BackupPackage(
            direction=direction,
            package_format=package_format,
            file_path=file_path,
            sha256=sha256,
            created_by=created_by,
            schema_version=schema_version,
            notes=notes,
        )
        session.add(package)
        return package

    def list_packages(
        self,
        session: Session,
        *,
        limit: int = 50,
        direction: str | None = None,
    ) -> list[BackupPackage]:
        stmt = select(BackupPackage)
        if direction:
            stmt = stmt.where(BackupPackage.direction == direction)
        stmt = stmt.order_by(BackupPackage.created_at.desc(), BackupPackage.id.desc()).limit(limit)
        return list(session.execute(stmt).scalars())
