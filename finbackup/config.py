import os
from dataclasses import dataclass
from pathlib import Path

from platformdirs import user_data_dir

from finbackup.domain.constants import (
    DEFAULT_CHECKSUM_ALGO,
    DEFAULT_CHUNK_SIZE,
    MAX_BACKUP_SIZE_MB,
    PREVIEW_SAMPLE_SIZE,
)

APP_NAME = "finbackup"
APP_AUTHOR = "finbackup"
APP_VERSION = "1.0.0"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int, *, minimum: int = 1) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value >= minimum else default


def _resolve_data_dir() -> Path:
    env_dir = os.getenv("FINBACKUP_DATA_DIR")
    if env_dir:
        return Path(env_dir)
    return Path(user_data_dir(APP_NAME, APP_AUTHOR))


DATA_DIR = _resolve_data_dir()
LOG_DIR = DATA_DIR / "logs"
BACKUP_DIR = DATA_DIR / "backups"
DB_FILE = Path(os.getenv("FINBACKUP_DB_FILE") or (DATA_DIR / "finance.db"))

DATA_DIR.mkdir(parents=True, exist_ok=True)
LOG_DIR.mkdir(parents=True, exist_ok=True)
DB_FILE.parent.mkdir(parents=True, exist_ok=True)


def default_database_url() -> str:
    # SQLite URL uses forward slashes; as_posix() keeps it cross-platform.
    return f"sqlite:///{DB_FILE.as_posix()}"


@dataclass(frozen=True)
class Settings:
    database_url: str = os.getenv("DATABASE_URL", default_database_url())
    echo_sql: bool = os.getenv("SQL_ECHO", "0") == "1"
    max_backup_size_mb: int = _env_int("FINBACKUP_MAX_BACKUP_SIZE_MB", MAX_BACKUP_SIZE_MB)
    import_chunk_size: int = _env_int("FINBACKUP_IMPORT_CHUNK_SIZE", DEFAULT_CHUNK_SIZE)
    checksum_algo: str = (os.getenv("FINBACKUP_CHECKSUM_ALGO") or DEFAULT_CHECKSUM_ALGO).strip().lower()
    preview_sample_size: int = _env_int("FINBACKUP_PREVIEW_SAMPLE_SIZE", PREVIEW_SAMPLE_SIZE, minimum=0)
    allow_external_references: bool = _env_bool("FINBACKUP_ALLOW_EXTERNAL_REFS", False)
    safety_snapshot_enabled: bool = _env_bool("FINBACKUP_SAFETY_SNAPSHOT", True)
    default_user_id: str = os.getenv("FINBACKUP_USER_ID", "")
    default_user_phone: str = os.getenv("FINBACKUP_USER_PHONE", "")


settings = Settings()
