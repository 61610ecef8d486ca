from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine

from finbackup.config import settings


def _set_sqlite_pragmas(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA busy_timeout=5000")
    finally:
        cursor.close()


def get_engine(database_url: str | None = None, *, echo: bool | None = None) -> Engine:
    url = database_url or settings.database_url
    is_sqlite = url.startswith("sqlite")
    engine = create_engine(
        url,
        echo=settings.echo_sql if echo is None else echo,
        future=True,
        connect_args={"check_same_thread": False} if is_sqlite else {},
    )
    if is_sqlite:
        # Dependency-ordered imports rely on SQLite enforcing foreign keys.
        event.listen(engine, "connect", _set_sqlite_pragmas)
    return engine
