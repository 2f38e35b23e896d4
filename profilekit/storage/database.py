"""SQLite engine and ORM sessions.

One engine is open per process. Asking for a session with a config that
names another database file reopens it there, which is how tests point
storage at a temporary directory.
"""

import logging
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from profilekit.storage.models import Base
from profilekit.config import ProfileConfig


logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None
_url: Optional[str] = None


def get_database_url(config: Optional[ProfileConfig] = None) -> str:
    """SQLite URL for ``config.db_path``; creates the parent directory."""
    db_path = (config or ProfileConfig()).db_path
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{db_path}"


def init_database(config: Optional[ProfileConfig] = None) -> None:
    """(Re)open the engine for ``config`` and create missing tables."""
    global _engine, _session_factory, _url

    close_database()
    _url = get_database_url(config)
    logger.debug(f"Opening database {_url}")

    # Sessions may be used from the parallel runner's worker threads
    _engine = create_engine(_url, connect_args={"check_same_thread": False})
    Base.metadata.create_all(_engine)
    _session_factory = sessionmaker(bind=_engine, autoflush=False)


def get_engine(config: Optional[ProfileConfig] = None) -> Engine:
    """Engine for ``config``, opening it first if needed."""
    get_db_session(config).close()
    return _engine


def get_db_session(config: Optional[ProfileConfig] = None) -> Session:
    """New ORM session on the database ``config`` names.

    Without a config, whatever database is already open is used, or the
    default one is opened.
    """
    if _session_factory is None:
        init_database(config)
    elif config is not None and get_database_url(config) != _url:
        init_database(config)
    return _session_factory()


def close_database() -> None:
    """Dispose of the engine; the next session reopens it."""
    global _engine, _session_factory, _url

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None
    _url = None
