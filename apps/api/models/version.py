"""Version model: immutable generated code snapshot."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship
import uuid

from database import Base


class Version(Base):
    """Immutable snapshot of generated code for a project."""

    __tablename__ = "versions"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    project_id = Column(String, ForeignKey("website_projects.id"), nullable=False, index=True)
    code = Column(Text, nullable=False)
    description = Column(String, nullable=True)
    timestamp = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)

    project = relationship("WebsiteProject", back_populates="versions")
