"""Storage module for probe caching, metric snapshots and database upkeep."""

from .database import close_database, get_db_session, init_database
from .models import MetricSnapshot, ToolProbe
from .probes import ProbeCache

__all__ = [
    "close_database",
    "get_db_session",
    "init_database",
    "MetricSnapshot",
    "ProbeCache",
    "ToolProbe",
]
