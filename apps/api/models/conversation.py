"""ConversationEntry model: append-only project log."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
import uuid

from database import Base


class ConversationEntry(Base):
    """One user or assistant line in a project's conversation."""

    __tablename__ = "conversations"
    __table_args__ = (
        UniqueConstraint("project_id", "sequence", name="uq_conversations_project_sequence"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    project_id = Column(String, ForeignKey("website_projects.id"), nullable=False, index=True)
    role = Column(String, nullable=False)  # user, assistant
    content = Column(Text, nullable=False)
    sequence = Column(Integer, nullable=False)
    timestamp = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)

    project = relationship("WebsiteProject", back_populates="conversation")
