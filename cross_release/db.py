"""Job history and cache index storage.

Both the run history (``JobRecord``) and the dependency cache index
(``CacheEntry``) live in one database named by ``Settings.db_url``. Worker
threads write job results and cache entries concurrently, so SQLite
connections are shared across threads and wait on a busy database instead of
failing at once.
"""

from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

SQLITE_BUSY_TIMEOUT = 30


class Base(DeclarativeBase):
    """Declarative base for the history and cache index tables."""


def get_engine(db_url: str) -> Engine:
    """Create an engine for ``db_url``, creating the SQLite file's directory."""
    connect_args: dict[str, Any] = {}
    if db_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT}
        db_path = db_url.removeprefix("sqlite:///")
        if db_path and db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(db_url, connect_args=connect_args)


def create_all_tables(engine: Engine) -> None:
    # Model modules register their tables on import
    from cross_release.builds import models as builds_models  # noqa: F401
    from cross_release.cache import models as cache_models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def open_database(db_url: str) -> sessionmaker[Session]:
    """Open the database at ``db_url`` with every table in place.

    Returns:
        A session factory bound to the database.
    """
    engine = get_engine(db_url)
    create_all_tables(engine)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@contextmanager
def get_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Yield a session that commits on success and rolls back on error."""
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


__all__ = [
    "Base",
    "create_all_tables",
    "get_engine",
    "get_session",
    "open_database",
]
