"""WebsiteProject model for generated sites."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship
import uuid

from database import Base


GENERATION_IN_PROGRESS_STATUSES = ("pending", "enhancing", "generating")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WebsiteProject(Base):
    """A website-generation workspace owned by one user."""

    __tablename__ = "website_projects"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    initial_prompt = Column(Text, nullable=False)
    current_code = Column(Text, nullable=True)
    current_version_index = Column(String, nullable=True)
    is_published = Column(Boolean, nullable=False, default=False)
    # pending, enhancing, generating, succeeded, empty_output, failed
    generation_status = Column(String, nullable=False, default="pending", index=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, index=True)

    # Relationships
    user = relationship("User", back_populates="projects")
    conversation = relationship(
        "ConversationEntry",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="ConversationEntry.sequence",
    )
    versions = relationship(
        "Version",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="Version.timestamp",
    )
