from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, contextmanager

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from finbackup.infrastructure.db.engine import get_engine

SessionFactory = Callable[[], AbstractContextManager[Session]]

engine = get_engine()


def make_session_scope(bind: Engine) -> SessionFactory:
    """Build a ``session_scope`` factory bound to ``bind``."""
    session_local = sessionmaker(bind=bind, autoflush=False, autocommit=False, expire_on_commit=False, future=True)

    @contextmanager
    def _session_scope() -> Iterator[Session]:
        """Provide a transactional scope around a series of operations."""
        session: Session = session_local()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return _session_scope


session_scope = make_session_scope(engine)
