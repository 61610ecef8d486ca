from __future__ import annotations

from enum import StrEnum
from typing import Final

BACKUP_SCHEMA_VERSION: Final = "1.0.0"
SUPPORTED_SCHEMA_MAJORS: Final = frozenset({1})
MAX_BACKUP_SIZE_MB: Final = 50
DEFAULT_CHUNK_SIZE: Final = 100
PREVIEW_SAMPLE_SIZE: Final = 3
DEFAULT_CHECKSUM_ALGO: Final = "sha256"
BACKUP_FILE_PREFIX: Final = "backup_finbackup_"


class EntityKind(StrEnum):
    PROFILES = "profiles"
    CATEGORIES = "categories"
    SUPPLIERS = "suppliers"
    BANKS = "banks"
    BANK_ACCOUNTS = "bank_accounts"
    ACCOUNTS_PAYABLE = "accounts_payable"
    ACCOUNTS_RECEIVABLE = "accounts_receivable"
    TRANSACTIONS = "transactions"

    @classmethod
    def values(cls) -> list[str]:
        return [item.value for item in cls]


class IssueLevel(StrEnum):
    ERROR = "error"
    WARNING = "warning"


class IssueType(StrEnum):
    SCHEMA = "schema"
    CHECKSUM = "checksum"
    INTEGRITY = "integrity"
    PERMISSION = "permission"


class ImportStrategy(StrEnum):
    MERGE = "merge"
    REPLACE = "replace"

    @classmethod
    def values(cls) -> list[str]:
        return [item.value for item in cls]


class TransactionType(StrEnum):
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"

    @classmethod
    def values(cls) -> list[str]:
        return [item.value for item in cls]
