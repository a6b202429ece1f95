"""Response shapes shared across routers.

Fields are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CatalogModel(BaseModel):
    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True


class UserSummary(CatalogModel):
    id: int
    name: str
    email: str


class CategorySummary(CatalogModel):
    id: int
    name: str
    color: str


class UserResponse(CatalogModel):
    id: int
    name: str
    email: str
    role: str
    is_active: bool
    created_at: datetime


class MessageResponse(CatalogModel):
    message: str
