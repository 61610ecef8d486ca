from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from logging.handlers import RotatingFileHandler
from pathlib import Path

from finbackup.application.dto.auth_dto import Identity
from finbackup.application.dto.backup_dto import ImportOptions
from finbackup.application.services.backup_service import generate_file_name
from finbackup.bootstrap.startup import StartupError, initialize_database
from finbackup.config import APP_NAME, APP_VERSION, DB_FILE, LOG_DIR, settings
from finbackup.container import Container, build_container
from finbackup.domain.constants import ImportStrategy
from finbackup.domain.errors import BackupExportError

ROOT_DIR = Path(__file__).resolve().parent.parent


def _setup_logging(verbose: bool = False) -> Path:
    log_path = LOG_DIR / "app.log"
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    handler = RotatingFileHandler(log_path, maxBytes=2_000_000, backupCount=3, encoding="utf-8")
    handler.setFormatter(formatter)
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    console.setLevel(logging.INFO if verbose else logging.WARNING)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)
    root_logger.addHandler(handler)
    root_logger.addHandler(console)
    return log_path


def _identity(args: argparse.Namespace) -> Identity:
    user_id = args.user_id or settings.default_user_id
    if not user_id:
        raise SystemExit("Informe --user-id ou defina FINBACKUP_USER_ID")
    return Identity(user_id=user_id, phone=args.phone or settings.default_user_phone)


def _cmd_export(container: Container, args: argparse.Namespace) -> int:
    identity = _identity(args)
    service = container.backup_service
    try:
        if args.format == "xlsx":
            backup = container.backup_exporter.export(identity, notes=args.notes)
            default_name = Path(generate_file_name(backup.exported_at)).with_suffix(".xlsx").name
            target = args.output or service.backup_dir / default_name
            path = service.export_spreadsheet(backup, target)
        else:
            path = service.create_backup(identity, file_path=args.output, notes=args.notes)
    except BackupExportError as exc:
        print(f"Falha ao exportar: {exc}", file=sys.stderr)
        return 1
    print(path)
    return 0


def _cmd_validate(container: Container, args: argparse.Namespace) -> int:
    report = container.backup_service.validate_file(args.file, _identity(args))
    print(report.model_dump_json(indent=2))
    return 0 if report.valid else 2


def _cmd_import(container: Container, args: argparse.Namespace) -> int:
    options = ImportOptions(
        strategy=ImportStrategy(args.strategy),
        dry_run=args.dry_run,
        chunk_size=args.chunk_size,
    )
    result = container.backup_service.import_file(args.file, _identity(args), options)
    print(result.model_dump_json(indent=2))
    return 0 if result.success else 2


def _cmd_history(container: Container, args: argparse.Namespace) -> int:
    for package in container.backup_service.list_packages(limit=args.limit, direction=args.direction):
        print(
            f"{package.created_at:%Y-%m-%d %H:%M:%S}  {package.direction:<6}  "
            f"{package.schema_version or '-':<8}  {package.sha256[:12]}  {package.file_path}"
        )
    last = container.backup_service.get_last_backup()
    if last is not None:
        print(f"Último backup: {last.path} ({last.reason}, {last.created_at.isoformat()})")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=APP_NAME, description="Backup e restauração de dados financeiros.")
    parser.add_argument("--version", action="version", version=f"{APP_NAME} {APP_VERSION}")
    parser.add_argument("--verbose", "-v", action="store_true", help="Mostrar logs no terminal")
    parser.add_argument("--user-id", help="Identificador do usuário (padrão: FINBACKUP_USER_ID)")
    parser.add_argument("--phone", help="Telefone do usuário (padrão: FINBACKUP_USER_PHONE)")
    sub = parser.add_subparsers(dest="command", required=True)

    export = sub.add_parser("export", help="Exportar os dados do usuário")
    export.add_argument("--output", "-o", type=Path, help="Arquivo de destino")
    export.add_argument("--notes", help="Observações gravadas no backup")
    export.add_argument("--format", choices=("json", "xlsx"), default="json")
    export.set_defaults(handler=_cmd_export)

    validate = sub.add_parser("validate", help="Validar um arquivo de backup")
    validate.add_argument("file", type=Path)
    validate.set_defaults(handler=_cmd_validate)

    imp = sub.add_parser("import", help="Importar um arquivo de backup")
    imp.add_argument("file", type=Path)
    imp.add_argument(
        "--strategy",
        choices=ImportStrategy.values(),
        default=ImportStrategy.MERGE.value,
    )
    imp.add_argument("--dry-run", action="store_true", help="Simular sem gravar")
    imp.add_argument("--chunk-size", type=int, default=None)
    imp.set_defaults(handler=_cmd_import)

    history = sub.add_parser("history", help="Listar pacotes exportados e importados")
    history.add_argument("--limit", type=int, default=20)
    history.add_argument("--direction", choices=("export", "import"))
    history.set_defaults(handler=_cmd_history)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    _setup_logging(args.verbose)
    try:
        initialize_database(
            db_file=DB_FILE,
            database_url=settings.database_url,
            log_dir=LOG_DIR,
            root_dir=ROOT_DIR,
        )
    except StartupError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    container = build_container()
    return args.handler(container, args)


if __name__ == "__main__":
    sys.exit(main())
