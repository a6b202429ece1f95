import logging
import re
from datetime import datetime

from fastapi import APIRouter, Depends, status
from pydantic import field_validator
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from api_catalog.auth.dependencies import get_current_user
from api_catalog.core.access_control import require
from api_catalog.core.errors import NotFound, StoreUnavailable
from api_catalog.database import get_db
from api_catalog.models.api import Api
from api_catalog.models.category import DEFAULT_CATEGORY_COLOR, Category
from api_catalog.models.user import User
from api_catalog.schemas import CatalogModel, MessageResponse, UserSummary

router = APIRouter(tags=['categories'])

logger = logging.getLogger(__name__)

HEX_COLOR_PATTERN = re.compile(r'^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$')
MAX_CATEGORY_NAME_LENGTH = 50


class CategoryRequest(CatalogModel):
    name: str
    description: str
    color: str = DEFAULT_CATEGORY_COLOR

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Category name is required.')
        if len(normalized) > MAX_CATEGORY_NAME_LENGTH:
            raise ValueError(f'Category name cannot be more than {MAX_CATEGORY_NAME_LENGTH} characters.')
        return normalized

    @field_validator('description')
    @classmethod
    def validate_description(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Description is required.')
        return normalized

    @field_validator('color')
    @classmethod
    def validate_color(cls, value: str) -> str:
        normalized = value.strip()
        if not HEX_COLOR_PATTERN.match(normalized):
            raise ValueError('Invalid color format.')
        return normalized.upper()


class CategoryResponse(CatalogModel):
    id: int
    name: str
    description: str
    color: str
    user: UserSummary | None = None
    api_count: int = 0
    created_at: datetime


class CategoryListResponse(CatalogModel):
    count: int
    categories: list[CategoryResponse]


def get_category_or_404(category_id: int, db: Session) -> Category:
    category = db.query(Category).filter(Category.id == category_id).first()
    if category is None:
        raise NotFound('Category')
    return category


def count_apis_by_category(db: Session, category_ids: list[int]) -> dict[int, int]:
    if not category_ids:
        return {}

    rows = db.query(Api.category_id, func.count(Api.id)).filter(
        Api.category_id.in_(category_ids),
    ).group_by(Api.category_id).all()
    return {category_id: count for category_id, count in rows}


def to_category_response(category: Category, api_count: int) -> CategoryResponse:
    response = CategoryResponse.model_validate(category)
    response.api_count = api_count
    return response


@router.get('', response_model=CategoryListResponse)
def list_categories(
    actor: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require(actor, 'category.read')

    try:
        categories = db.query(Category).order_by(Category.created_at.desc(), Category.id.desc()).all()
        api_counts = count_apis_by_category(db, [category.id for category in categories])
    except SQLAlchemyError as exc:
        raise StoreUnavailable() from exc

    return CategoryListResponse(
        count=len(categories),
        categories=[to_category_response(category, api_counts.get(category.id, 0)) for category in categories],
    )


@router.get('/{category_id}', response_model=CategoryResponse)
def get_category(
    category_id: int,
    actor: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        category = get_category_or_404(category_id, db)
        require(actor, 'category.read', category)
        api_counts = count_apis_by_category(db, [category.id])
    except SQLAlchemyError as exc:
        raise StoreUnavailable() from exc

    return to_category_response(category, api_counts.get(category.id, 0))


@router.post('', response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
def create_category(
    data: CategoryRequest,
    actor: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require(actor, 'category.create')

    try:
        category = Category(
            name=data.name,
            description=data.description,
            color=data.color,
            user_id=actor.id,
        )
        db.add(category)
        db.commit()
        db.refresh(category)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to create category for user %s', actor.id)
        raise StoreUnavailable() from exc

    return to_category_response(category, 0)


@router.put('/{category_id}', response_model=CategoryResponse)
def update_category(
    category_id: int,
    data: CategoryRequest,
    actor: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        category = get_category_or_404(category_id, db)
        require(actor, 'category.update', category)

        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(category, field, value)

        db.commit()
        db.refresh(category)
        api_counts = count_apis_by_category(db, [category.id])
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to update category %s', category_id)
        raise StoreUnavailable() from exc

    return to_category_response(category, api_counts.get(category.id, 0))


@router.delete('/{category_id}', response_model=MessageResponse)
def delete_category(
    category_id: int,
    actor: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        category = get_category_or_404(category_id, db)
        require(actor, 'category.delete', category)

        # APIs in this category are kept; their category reference is cleared.
        db.delete(category)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to delete category %s', category_id)
        raise StoreUnavailable() from exc

    logger.info('User %s deleted category %s', actor.id, category_id)
    return MessageResponse(message='Category deleted successfully')
