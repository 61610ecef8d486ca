from __future__ import annotations

import logging
import traceback
from pathlib import Path

from alembic import command
from alembic.config import Config

PACKAGE_DIR = Path(__file__).resolve().parents[1]
MIGRATIONS_DIR = PACKAGE_DIR / "infrastructure" / "db" / "migrations"

logger = logging.getLogger(__name__)


class StartupError(RuntimeError):
    pass


def check_startup_prerequisites(db_file: Path, *, migrations_dir: Path = MIGRATIONS_DIR) -> None:
    if not migrations_dir.exists():
        raise StartupError(f"Diretório de migrações ausente: {migrations_dir}")
    try:
        test_file = db_file.parent / ".write_test"
        test_file.write_text("ok", encoding="utf-8")
        test_file.unlink(missing_ok=True)
    except OSError as exc:
        raise StartupError(f"Sem permissão de escrita no diretório do banco: {db_file.parent}") from exc


def _alembic_config(root_dir: Path | None, database_url: str) -> Config:
    ini_path = (root_dir / "alembic.ini") if root_dir else None
    cfg = Config(str(ini_path)) if ini_path and ini_path.exists() else Config()
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    cfg.set_main_option("sqlalchemy.url", database_url)
    return cfg


def _write_migration_error(log_dir: Path, db_file: Path) -> Path:
    error_path = log_dir / "migration_error.log"
    error_path.parent.mkdir(parents=True, exist_ok=True)
    with error_path.open("a", encoding="utf-8") as handle:
        handle.write("\n--- Migration error ---\n")
        handle.write(f"DB: {db_file}\n")
        handle.write(f"Migrations: {MIGRATIONS_DIR}\n")
        handle.write(traceback.format_exc())
    return error_path


def run_migrations(database_url: str, log_dir: Path, db_file: Path, *, root_dir: Path | None = None) -> bool:
    cfg = _alembic_config(root_dir, database_url)
    try:
        command.upgrade(cfg, "head")
        return True
    except Exception:  # noqa: BLE001
        logger.exception("Failed to run migrations")
        try:
            error_path = _write_migration_error(log_dir, db_file)
            logger.error("Migration details written to %s", error_path)
        except OSError:
            logger.exception("Failed to write migration error log")
        return False


def initialize_database(
    *,
    db_file: Path,
    database_url: str,
    log_dir: Path,
    root_dir: Path | None = None,
) -> None:
    check_startup_prerequisites(db_file)
    if not run_migrations(database_url, log_dir, db_file, root_dir=root_dir):
        raise StartupError(
            "Não foi possível aplicar as migrações do banco de dados.\n"
            f"Detalhes: {log_dir / 'migration_error.log'}"
        )
