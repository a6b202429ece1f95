"""Catalogued API endpoint model definitions."""

import re
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text, event
from sqlalchemy.orm import relationship

from api_catalog.database import Base

HTTP_METHODS = ('GET', 'POST', 'PUT', 'PATCH', 'DELETE')
API_TYPES = ('internal', 'external', 'partner')
AUTH_TYPES = ('none', 'bearer', 'basic', 'api-key', 'oauth')

# Columns covered by ApiSearchIndex.
SEARCH_FIELDS = ('name', 'description', 'tags')

_TOKEN_PATTERN = re.compile(r'\w+')


def tokenize(text: str) -> list[str]:
    return _TOKEN_PATTERN.findall(text.lower())


def build_search_text(api: 'Api') -> str:
    """Flatten the searchable columns into space-delimited ``field:token`` terms.

    The result is padded with spaces so a term can be matched whole with
    ``LIKE '% field:token %'``.
    """
    terms = []
    for field in SEARCH_FIELDS:
        value = getattr(api, field)
        if field == 'tags':
            value = ' '.join(value or [])
        terms.extend(f'{field}:{token}' for token in tokenize(value or ''))
    return f' {" ".join(terms)} '


class Api(Base):
    """Represents one catalogued endpoint."""
    __tablename__ = "apis"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    url = Column(String, nullable=False)
    method = Column(String(6), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="SET NULL"), index=True)
    type = Column(String, nullable=False, default='external', index=True)
    description = Column(Text, nullable=False)
    documentation = Column(Text, nullable=False, default='')
    auth_type = Column(String, nullable=False, default='none')
    auth_details = Column(JSON, nullable=False, default=dict)
    headers = Column(JSON, nullable=False, default=list)
    query_params = Column(JSON, nullable=False, default=list)
    request_body = Column(Text, nullable=False, default='')
    response_example = Column(Text, nullable=False, default='')
    tags = Column(JSON, nullable=False, default=list)
    version = Column(String, nullable=False, default='1.0')
    rate_limit = Column(String, nullable=False, default='')
    notes = Column(Text, nullable=False, default='')
    search_text = Column(Text, nullable=False, default='')
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    category = relationship('Category', back_populates='apis')
    user = relationship('User')


@event.listens_for(Api, 'before_insert')
@event.listens_for(Api, 'before_update')
def refresh_search_text(mapper, connection, target: Api) -> None:
    target.search_text = build_search_text(target)
