"""Transaction model for credit purchase attempts."""

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from database import Base


class Transaction(Base):
    """Credit purchase attempt, finalized by the payment webhook."""

    __tablename__ = "transactions"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    plan_id = Column(String, nullable=False)
    amount = Column(Float, nullable=False)
    credits = Column(Integer, nullable=False)
    is_paid = Column(Boolean, nullable=False, default=False)
    checkout_session_id = Column(String, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="transactions")
