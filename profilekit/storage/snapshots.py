"""CRUD operations for metric snapshots."""

from typing import Optional, List

from sqlalchemy import desc
from sqlalchemy.orm import Session

from profilekit.storage.models import MetricSnapshot, utcnow
from profilekit.storage.database import get_db_session


def save_snapshot(
    name: str,
    metrics: dict,
    duration: float = 0.0,
    session: Optional[Session] = None
) -> MetricSnapshot:
    """Store a metric snapshot.

    Args:
        name: Snapshot series name
        metrics: Metric name to numeric value
        duration: Collection time in seconds
        session: Optional database session

    Returns:
        Created MetricSnapshot
    """
    if session is None:
        session = get_db_session()
        close_session = True
    else:
        close_session = False

    try:
        snapshot = MetricSnapshot(
            name=name,
            metrics=dict(metrics),
            duration=duration,
            created_at=utcnow()
        )

        session.add(snapshot)
        session.commit()
        session.refresh(snapshot)

        return snapshot
    finally:
        if close_session:
            session.close()


def get_snapshots(
    name: Optional[str] = None,
    limit: int = 50,
    session: Optional[Session] = None
) -> List[MetricSnapshot]:
    """Get snapshots, most recent first.

    Args:
        name: Restrict to one series
        limit: Maximum number of snapshots
        session: Optional database session
    """
    if session is None:
        session = get_db_session()
        close_session = True
    else:
        close_session = False

    try:
        query = session.query(MetricSnapshot)
        if name:
            query = query.filter(MetricSnapshot.name == name)
        return (
            query
            .order_by(desc(MetricSnapshot.created_at), desc(MetricSnapshot.id))
            .limit(limit)
            .all()
        )
    finally:
        if close_session:
            session.close()


def metric_series(
    name: str,
    key: str,
    limit: int = 50,
    session: Optional[Session] = None
) -> List[float]:
    """Values of one metric across a snapshot series, oldest first.

    Snapshots lacking the metric, or holding a non-numeric value, are skipped.
    """
    snapshots = get_snapshots(name, limit=limit, session=session)
    series = []
    for snapshot in reversed(snapshots):
        value = (snapshot.metrics or {}).get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            series.append(float(value))
    return series
