from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from finbackup.domain.constants import (
    DEFAULT_CHECKSUM_ALGO,
    EntityKind,
    ImportStrategy,
    IssueLevel,
    IssueType,
)


def _zero_counts() -> dict[str, int]:
    return {kind: 0 for kind in EntityKind.values()}


class AppInfo(BaseModel):
    name: str
    version: str


class BackupOwner(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    user_id: str = Field(..., min_length=1)
    phone: str = ""


class BackupChecksum(BaseModel):
    algo: str = Field(default=DEFAULT_CHECKSUM_ALGO, min_length=1)
    value: str = Field(..., min_length=1)


class BackupMeta(BaseModel):
    generated_by: str
    notes: str | None = None


class BackupMetadata(BaseModel):
    app: AppInfo
    schema_version: str = Field(..., min_length=1)
    exported_at: datetime
    owner: BackupOwner
    counts: dict[str, int]
    checksum: BackupChecksum
    meta: BackupMeta

    @property
    def total_records(self) -> int:
        return sum(self.counts.values())


class BackupFile(BackupMetadata):
    data: dict[str, list[dict[str, Any]]]


class ValidationIssue(BaseModel):
    level: IssueLevel
    type: IssueType
    message: str
    details: Any = None

    @property
    def is_error(self) -> bool:
        return self.level == IssueLevel.ERROR


class BackupPreview(BaseModel):
    total_records: int = 0
    record_counts: dict[str, int] = Field(default_factory=dict)
    sample_data: dict[str, list[Any]] = Field(default_factory=dict)


class ValidationReport(BaseModel):
    valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)
    metadata: BackupMetadata | None = None
    preview: BackupPreview = Field(default_factory=BackupPreview)

    @classmethod
    def rejected(cls, issues: list[ValidationIssue]) -> ValidationReport:
        return cls(valid=False, issues=issues)

    @property
    def errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.level == IssueLevel.ERROR]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.level == IssueLevel.WARNING]

    def issues_of(self, issue_type: IssueType) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.type == issue_type]


class ImportOptions(BaseModel):
    strategy: ImportStrategy = ImportStrategy.MERGE
    dry_run: bool = False
    chunk_size: int | None = Field(default=None, ge=1)


class ImportSummary(BaseModel):
    created: dict[str, int] = Field(default_factory=_zero_counts)
    updated: dict[str, int] = Field(default_factory=_zero_counts)
    deleted: dict[str, int] = Field(default_factory=_zero_counts)
    errors: dict[str, int] = Field(default_factory=_zero_counts)
    skipped: dict[str, int] = Field(default_factory=_zero_counts)

    @property
    def has_errors(self) -> bool:
        return any(count > 0 for count in self.errors.values())

    def totals(self) -> dict[str, int]:
        return {
            "created": sum(self.created.values()),
            "updated": sum(self.updated.values()),
            "deleted": sum(self.deleted.values()),
            "errors": sum(self.errors.values()),
            "skipped": sum(self.skipped.values()),
        }


class ImportResult(BaseModel):
    success: bool = False
    summary: ImportSummary = Field(default_factory=ImportSummary)
    duration: float = 0.0
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    dry_run: bool = False
