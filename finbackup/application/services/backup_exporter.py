from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from finbackup.application.dto.auth_dto import Identity
from finbackup.application.dto.backup_dto import (
    AppInfo,
    BackupChecksum,
    BackupFile,
    BackupMeta,
    BackupOwner,
)
from finbackup.config import APP_NAME, APP_VERSION, settings
from finbackup.domain.constants import BACKUP_SCHEMA_VERSION, EntityKind
from finbackup.domain.errors import BackupExportError
from finbackup.domain.models.entity_catalog import iter_catalog
from finbackup.infrastructure.db.repositories.record_repo import RecordRepository
from finbackup.infrastructure.db.session import SessionFactory, session_scope
from finbackup.infrastructure.security.checksum import compute_checksum, record_sort_key


def _profile_phone(data: dict[str, list[dict[str, Any]]]) -> str:
    for profile in data.get(EntityKind.PROFILES.value, []):
        phone = profile.get("phone")
        if phone:
            return str(phone)
    return ""


class BackupExporter:
    def __init__(
        self,
        record_repo: RecordRepository,
        session_factory: SessionFactory = session_scope,
        *,
        checksum_algo: str | None = None,
        generated_by: str = f"{APP_NAME}.backup_exporter",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.record_repo = record_repo
        self.session_factory = session_factory
        self.checksum_algo = checksum_algo or settings.checksum_algo
        self.generated_by = generated_by
        self._clock = clock or (lambda: datetime.now(UTC))
        self._logger = logging.getLogger(__name__)

    def collect(self, identity: Identity) -> dict[str, list[dict[str, Any]]]:
        """Read every entity kind owned by ``identity``; any failure aborts the whole read."""
        data: dict[str, list[dict[str, Any]]] = {}
        with self.session_factory() as session:
            for descriptor in iter_catalog():
                kind = descriptor.name
                try:
                    records = self.record_repo.list_records(session, descriptor.kind, identity.user_id)
                except Exception as exc:  # noqa: BLE001
                    self._logger.exception("Failed to read %s for user %s", kind, identity.user_id)
                    raise BackupExportError(kind, f"Erro ao ler {kind}: {exc}") from exc
                data[kind] = sorted(records, key=record_sort_key)
        return data

    def export(self, identity: Identity, *, notes: str | None = None) -> BackupFile:
        data = self.collect(identity)
        counts = {kind: len(records) for kind, records in data.items()}
        checksum = compute_checksum(data, self.checksum_algo)
        backup = BackupFile(
            app=AppInfo(name=APP_NAME, version=APP_VERSION),
            schema_version=BACKUP_SCHEMA_VERSION,
            exported_at=self._clock(),
            owner=BackupOwner(user_id=identity.user_id, phone=identity.phone or _profile_phone(data)),
            counts=counts,
            checksum=BackupChecksum(algo=self.checksum_algo, value=checksum),
            meta=BackupMeta(generated_by=self.generated_by, notes=notes),
            data=data,
        )
        self._logger.info(
            "Exported %d records for user %s (%s)",
            backup.total_records,
            identity.user_id,
            ", ".join(f"{kind}={count}" for kind, count in counts.items()),
        )
        return backup
