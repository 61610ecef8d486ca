from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from finbackup.domain.constants import IssueLevel, IssueType


@dataclass(slots=True)
class Finding:
    level: IssueLevel
    type: IssueType
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def error(cls, issue_type: IssueType, message: str, **details: Any) -> Finding:
        return cls(IssueLevel.ERROR, issue_type, message, details)

    @classmethod
    def warning(cls, issue_type: IssueType, message: str, **details: Any) -> Finding:
        return cls(IssueLevel.WARNING, issue_type, message, details)
