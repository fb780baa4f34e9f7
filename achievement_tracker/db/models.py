"""
SQLAlchemy models for Achievement Tracker.

AchievementReferenceModel belongs to the reference authority store and
AchievementDocumentModel to the content store. They share no foreign key:
the only link is the content_id pointer kept on the reference.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Column, DateTime, Index, String, Text

from .base import Base, DocumentBase


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class AchievementReferenceModel(Base):
    """Canonical workflow record for an achievement."""

    __tablename__ = "achievement_references"

    id = Column(String(36), primary_key=True)
    student_id = Column(String(128), nullable=False, index=True)
    content_id = Column(String(128), nullable=False, unique=True)

    status = Column(String(16), nullable=False, default="draft", index=True)

    submitted_at = Column(DateTime(timezone=True), nullable=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    verified_by = Column(String(128), nullable=True)
    rejection_note = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_achievement_references_student_status", "student_id", "status"),
        Index("ix_achievement_references_created_at", "created_at"),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "student_id": self.student_id,
            "content_id": self.content_id,
            "status": self.status,
            "submitted_at": as_utc(self.submitted_at),
            "verified_at": as_utc(self.verified_at),
            "verified_by": self.verified_by,
            "rejection_note": self.rejection_note,
            "created_at": as_utc(self.created_at),
            "updated_at": as_utc(self.updated_at),
        }


class AchievementDocumentModel(DocumentBase):
    """Achievement content stored as a JSON document."""

    __tablename__ = "achievement_documents"

    id = Column(String(36), primary_key=True)
    student_id = Column(String(128), nullable=False, index=True)
    document = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
