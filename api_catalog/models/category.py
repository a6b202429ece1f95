"""Category model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from api_catalog.database import Base

DEFAULT_CATEGORY_COLOR = '#3B82F6'


class Category(Base):
    """Groups catalogued APIs under a named, colored heading."""
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), nullable=False)
    description = Column(Text, nullable=False)
    color = Column(String(7), nullable=False, default=DEFAULT_CATEGORY_COLOR)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now, index=True)

    user = relationship('User')
    apis = relationship('Api', back_populates='category')
