"""Time entry model: one tracked work session on a Jira issue."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Column, String, Boolean, Text, ForeignKey, Index
from sqlalchemy.orm import relationship

from tickr.database import Base, UTCDateTime, utcnow


class TimeEntry(Base):
    """A timer session. A null ``end_time`` means the timer is still running."""

    __tablename__ = "time_entries"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    issue_key = Column(String(50), nullable=False, index=True)
    issue_summary = Column(Text, nullable=False, default="")

    # Temporal information
    start_time = Column(UTCDateTime, nullable=False)
    end_time = Column(UTCDateTime, nullable=True)
    comment = Column(Text, nullable=True)

    # Sync status
    is_synced = Column(Boolean, default=False, nullable=False)
    synced_at = Column(UTCDateTime, nullable=True)
    worklog_id = Column(String(50), nullable=True)

    account_id = Column(String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)

    # Relationships
    account = relationship("Account", back_populates="time_entries")

    __table_args__ = (
        Index('idx_time_entries_end_time', 'end_time'),
    )

    @property
    def is_running(self) -> bool:
        return self.end_time is None

    def duration(self, now: Optional[datetime] = None) -> float:
        """Seconds between start and end (or ``now`` while running), never negative."""
        end = self.end_time or now or utcnow()
        return max(0.0, (end - self.start_time).total_seconds())

    @property
    def formatted_duration(self) -> str:
        total = int(self.duration())
        hours, minutes, seconds = total // 3600, total // 60 % 60, total % 60
        if hours > 0:
            return f"{hours}h {minutes:02d}m {seconds:02d}s"
        if minutes > 0:
            return f"{minutes}m {seconds:02d}s"
        return f"{seconds}s"

    def __repr__(self):
        return f"<TimeEntry(id={self.id}, issue='{self.issue_key}', running={self.is_running}, synced={self.is_synced})>"
