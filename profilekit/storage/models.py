"""SQLAlchemy models for the profilekit database."""

from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Float, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    """Naive UTC timestamp, the form SQLite hands back."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


class ToolProbe(Base):
    """Persisted result of a tool availability probe.

    Attributes:
        tool: Registry name of the tool (primary key)
        command: Executable that was probed
        status: ToolStatus value
        version: Parsed version string, empty if not probed
        path: Resolved executable path
        checked_at: When the probe ran
    """

    __tablename__ = "tool_probes"

    tool: Mapped[str] = mapped_column(String, primary_key=True)
    command: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False)
    version: Mapped[str] = mapped_column(String, default="", nullable=False)
    path: Mapped[str] = mapped_column(String, default="", nullable=False)
    checked_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        nullable=False
    )

    def __repr__(self) -> str:
        return f"ToolProbe(tool='{self.tool}', status='{self.status}')"

    def age_seconds(self, now: datetime = None) -> float:
        """Seconds since the probe ran."""
        now = now or utcnow()
        return (now - self.checked_at).total_seconds()

    def to_dict(self) -> dict:
        """Convert probe to dictionary."""
        return {
            "tool": self.tool,
            "command": self.command,
            "status": self.status,
            "version": self.version,
            "path": self.path,
            "checked_at": self.checked_at.isoformat() if self.checked_at else None,
        }


class MetricSnapshot(Base):
    """A named snapshot of collected metric values.

    Attributes:
        id: Primary key
        name: Snapshot series (code, startup, coverage, ...)
        metrics: Metric name to numeric value
        duration: Optional collection time in seconds
        created_at: Timestamp of the snapshot
    """

    __tablename__ = "metric_snapshots"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String, nullable=False, index=True)
    metrics: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    duration: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        nullable=False
    )

    def __repr__(self) -> str:
        return f"MetricSnapshot(id={self.id}, name='{self.name}')"

    def to_dict(self) -> dict:
        """Convert snapshot to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "metrics": dict(self.metrics or {}),
            "duration": self.duration,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
