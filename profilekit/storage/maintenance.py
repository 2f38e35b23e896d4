"""SQLite maintenance: init, health, repair, statistics, optimize and backup."""

import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import Optional

from sqlalchemy import inspect, text
from sqlalchemy.exc import DatabaseError

from profilekit.config import ProfileConfig
from profilekit.storage.database import (
    close_database,
    get_db_session,
    get_engine,
    init_database,
)
from profilekit.storage.models import Base


logger = logging.getLogger(__name__)


def initialize_database(config: Optional[ProfileConfig] = None) -> dict:
    """Create the database file and any missing tables.

    Returns:
        Dict with the database path and its table names
    """
    config = config or ProfileConfig()
    init_database(config)
    tables = sorted(inspect(get_engine(config)).get_table_names())
    logger.info(f"Initialized {config.db_path} ({len(tables)} tables)")
    return {"path": str(config.db_path), "tables": tables}


def database_health(config: Optional[ProfileConfig] = None) -> dict:
    """Run ``PRAGMA integrity_check``.

    A file SQLite cannot open at all is reported as unhealthy rather
    than raised.

    Returns:
        Dict with ``healthy`` flag and the raw messages
    """
    try:
        session = get_db_session(config)
        try:
            rows = session.execute(text("PRAGMA integrity_check")).fetchall()
        finally:
            session.close()
    except DatabaseError as e:
        logger.warning(f"Database could not be opened: {e}")
        close_database()
        return {"healthy": False, "messages": [str(e.orig or e)]}

    messages = [row[0] for row in rows]
    healthy = messages == ["ok"]
    if not healthy:
        logger.warning(f"Integrity check reported problems: {messages}")
    return {"healthy": healthy, "messages": messages}


def repair_database(config: Optional[ProfileConfig] = None) -> dict:
    """Bring a damaged database back to a usable state.

    Index damage is fixed with ``REINDEX``. When that is not enough, or the
    file is not a database at all, it is moved aside and a fresh, empty
    database is created in its place.

    Returns:
        Dict with the ``action`` taken (``none``, ``reindexed``, ``created``
        or ``recreated``) and ``moved_to`` for a file that was set aside
    """
    config = config or ProfileConfig()
    if not config.db_path.exists():
        init_database(config)
        return {"action": "created", "moved_to": None}

    if database_health(config)["healthy"]:
        return {"action": "none", "moved_to": None}

    try:
        with get_engine(config).connect().execution_options(isolation_level="AUTOCOMMIT") as conn:
            conn.execute(text("REINDEX"))
    except DatabaseError as e:
        logger.warning(f"REINDEX failed: {e}")
        close_database()
    else:
        if database_health(config)["healthy"]:
            logger.info(f"Repaired {config.db_path} with REINDEX")
            return {"action": "reindexed", "moved_to": None}

    close_database()
    stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    moved = config.db_path.with_name(f"{config.db_path.stem}.corrupt-{stamp}{config.db_path.suffix}")
    shutil.move(str(config.db_path), moved)
    logger.warning(f"Moved damaged database to {moved}")

    init_database(config)
    return {"action": "recreated", "moved_to": str(moved)}


def database_statistics(config: Optional[ProfileConfig] = None) -> dict:
    """Row counts per table and the database file size."""
    config = config or ProfileConfig()
    session = get_db_session(config)
    try:
        tables = {}
        for table in Base.metadata.sorted_tables:
            count = session.execute(text(f"SELECT COUNT(*) FROM {table.name}")).scalar()
            tables[table.name] = int(count or 0)
    finally:
        session.close()

    size = config.db_path.stat().st_size if config.db_path.exists() else 0
    return {"path": str(config.db_path), "size_bytes": size, "tables": tables}


def optimize_database(config: Optional[ProfileConfig] = None) -> dict:
    """VACUUM and ANALYZE the database.

    Returns:
        File size before and after
    """
    config = config or ProfileConfig()
    before = config.db_path.stat().st_size if config.db_path.exists() else 0

    engine = get_engine(config)
    # VACUUM cannot run inside a transaction
    with engine.connect().execution_options(isolation_level="AUTOCOMMIT") as conn:
        conn.execute(text("VACUUM"))
        conn.execute(text("ANALYZE"))

    after = config.db_path.stat().st_size if config.db_path.exists() else 0
    logger.info(f"Optimized {config.db_path}: {before} -> {after} bytes")
    return {"size_before": before, "size_after": after}


def backup_database(
    destination: Optional[Path] = None,
    config: Optional[ProfileConfig] = None
) -> Path:
    """Copy the database file to a timestamped backup.

    Args:
        destination: Backup directory (defaults to ``backups`` next to the db)
        config: Optional ProfileConfig instance

    Returns:
        Path of the backup file
    """
    config = config or ProfileConfig()
    if not config.db_path.exists():
        raise FileNotFoundError(f"Database not found: {config.db_path}")

    destination = destination or config.db_path.parent / "backups"
    destination.mkdir(parents=True, exist_ok=True)

    stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    target = destination / f"{config.db_path.stem}-{stamp}{config.db_path.suffix}"
    shutil.copy2(config.db_path, target)
    logger.info(f"Backed up database to {target}")
    return target
