"""
SQLAlchemy engine, session and declarative base. One engine per process;
init_db() at startup, close_db() at shutdown (and between tests).
"""
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = logging.getLogger(__name__)

Base = declarative_base()

DEFAULT_DB_PATH = "~/.kent_jamaah/jamaah.db"

_engine = None
_SessionLocal = None


def sqlite_url(path: str) -> str:
    """SQLite URL for path, creating the parent directory."""
    db_path = Path(path).expanduser().resolve()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{db_path}"


def database_url(config_data: Optional[Dict[str, Any]] = None) -> str:
    path = ((config_data or {}).get("database") or {}).get("path") or DEFAULT_DB_PATH
    return sqlite_url(path)


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """One unit of work: commit on success, roll back and re-raise on error."""
    if _SessionLocal is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    session = _SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(config_data: Optional[Dict[str, Any]] = None, db_url: Optional[str] = None) -> None:
    """Create the engine and all tables. db_url overrides database.path from config."""
    global _engine, _SessionLocal

    if _engine is not None:
        logger.debug("Database already initialized")
        return

    db_url = db_url or database_url(config_data)
    # Snapshots are written from timer threads and read from API worker threads
    connect_args = {"check_same_thread": False} if db_url.startswith("sqlite") else {}
    _engine = create_engine(db_url, future=True, connect_args=connect_args)

    # Register every table on Base before create_all
    from kent_jamaah.core import models as _core_models  # noqa: F401
    from kent_jamaah.mosques import models as _mosque_models  # noqa: F401

    Base.metadata.create_all(_engine)
    _SessionLocal = sessionmaker(bind=_engine, autoflush=False, expire_on_commit=False)
    logger.info(f"Database initialized: {db_url}")


def close_db() -> None:
    """Dispose the engine so init_db() can run again."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
        logger.debug("Database engine disposed")
    _engine = None
    _SessionLocal = None
