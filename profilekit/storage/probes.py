"""CRUD operations for persisted tool probes."""

from typing import Optional, List

from sqlalchemy.orm import Session

from profilekit.config import ProfileConfig
from profilekit.storage.models import ToolProbe, utcnow
from profilekit.storage.database import get_db_session


def get_probe(
    tool: str,
    session: Optional[Session] = None
) -> Optional[ToolProbe]:
    """Get the persisted probe for a tool.

    Args:
        tool: Tool name
        session: Optional database session

    Returns:
        ToolProbe or None if never probed
    """
    if session is None:
        session = get_db_session()
        close_session = True
    else:
        close_session = False

    try:
        return session.get(ToolProbe, tool.lower())
    finally:
        if close_session:
            session.close()


def save_probe(
    tool: str,
    command: str,
    status: str,
    version: str = "",
    path: str = "",
    session: Optional[Session] = None
) -> ToolProbe:
    """Insert or replace the probe row for a tool.

    Returns:
        The stored ToolProbe
    """
    if session is None:
        session = get_db_session()
        close_session = True
    else:
        close_session = False

    try:
        probe = session.get(ToolProbe, tool.lower())
        if probe is None:
            probe = ToolProbe(tool=tool.lower())
            session.add(probe)

        probe.command = command
        probe.status = status
        probe.version = version or ""
        probe.path = path or ""
        probe.checked_at = utcnow()

        session.commit()
        session.refresh(probe)
        return probe
    finally:
        if close_session:
            session.close()


def list_probes(session: Optional[Session] = None) -> List[ToolProbe]:
    """List all persisted probes ordered by tool name."""
    if session is None:
        session = get_db_session()
        close_session = True
    else:
        close_session = False

    try:
        return session.query(ToolProbe).order_by(ToolProbe.tool).all()
    finally:
        if close_session:
            session.close()


def clear_probes(session: Optional[Session] = None) -> int:
    """Delete all persisted probes.

    Returns:
        Number of rows deleted
    """
    if session is None:
        session = get_db_session()
        close_session = True
    else:
        close_session = False

    try:
        count = session.query(ToolProbe).count()
        session.query(ToolProbe).delete()
        session.commit()
        return count
    finally:
        if close_session:
            session.close()


def is_stale(probe: ToolProbe, ttl: int) -> bool:
    """Check whether a probe is older than ``ttl`` seconds.

    A ttl of zero or less means persisted probes never expire.
    """
    if ttl <= 0:
        return False
    return probe.age_seconds() > ttl


class ProbeCache:
    """Persisted availability cache bound to one configuration.

    The detector consults it between its in-memory memo and a fresh probe.
    """

    def __init__(self, config: Optional[ProfileConfig] = None):
        self.config = config or ProfileConfig()
        self.ttl = self.config.probe_cache_ttl

    def _session(self) -> Session:
        return get_db_session(self.config)

    def get(self, tool: str) -> Optional[ToolProbe]:
        """Fresh persisted probe for ``tool`` or None."""
        session = self._session()
        try:
            probe = get_probe(tool, session=session)
            if probe is None or is_stale(probe, self.ttl):
                return None
            return probe
        finally:
            session.close()

    def put(self, tool: str, command: str, status: str, version: str = "", path: str = "") -> ToolProbe:
        """Persist a probe result."""
        session = self._session()
        try:
            return save_probe(tool, command, status, version, path, session=session)
        finally:
            session.close()

    def entries(self) -> List[ToolProbe]:
        """All persisted probes, stale ones included."""
        session = self._session()
        try:
            return list_probes(session=session)
        finally:
            session.close()

    def stale_entries(self) -> List[ToolProbe]:
        """Persisted probes older than the configured ttl."""
        return [probe for probe in self.entries() if is_stale(probe, self.ttl)]

    def clear(self) -> int:
        """Drop every persisted probe."""
        session = self._session()
        try:
            return clear_probes(session=session)
        finally:
            session.close()
