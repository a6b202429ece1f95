"""User model definitions."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from api_catalog.database import Base

ROLE_USER = 'user'
ROLE_DEVELOPER = 'developer'
ROLE_ADMIN = 'admin'
ROLES = (ROLE_USER, ROLE_DEVELOPER, ROLE_ADMIN)


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String, nullable=False, default=ROLE_USER)  # user/developer/admin
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now, index=True)

    notifications = relationship(
        'Notification',
        foreign_keys='Notification.user_id',
        back_populates='user',
        cascade='all, delete-orphan',
    )
