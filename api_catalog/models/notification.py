"""Notification model definitions."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from api_catalog.database import Base

NOTIFICATION_TYPES = ('info', 'success', 'warning', 'error')
MAX_NOTIFICATION_TITLE_LENGTH = 100


class Notification(Base):
    """A message addressed to one user."""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(MAX_NOTIFICATION_TITLE_LENGTH), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String, nullable=False, default='info')
    sender_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"))
    is_read = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now, index=True)

    user = relationship('User', foreign_keys=[user_id], back_populates='notifications')
    sender = relationship('User', foreign_keys=[sender_id])
