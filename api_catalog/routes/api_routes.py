import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query, status
from pydantic import field_validator
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from api_catalog.auth.dependencies import get_current_user
from api_catalog.core.access_control import require
from api_catalog.core.errors import NotFound, StoreUnavailable, ValidationFailure
from api_catalog.database import get_db
from api_catalog.models.api import API_TYPES, AUTH_TYPES, HTTP_METHODS, Api
from api_catalog.models.category import Category
from api_catalog.models.user import User
from api_catalog.schemas import CatalogModel, CategorySummary, MessageResponse, UserSummary
from api_catalog.search import default_index

router = APIRouter(tags=['apis'])

logger = logging.getLogger(__name__)

MAX_API_NAME_LENGTH = 100


def _required_text(value: str, label: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError(f'{label} is required.')
    return normalized


def _normalize_name(value: str) -> str:
    normalized = _required_text(value, 'API name')
    if len(normalized) > MAX_API_NAME_LENGTH:
        raise ValueError(f'API name cannot be more than {MAX_API_NAME_LENGTH} characters.')
    return normalized


def _normalize_method(value: str) -> str:
    normalized = value.strip().upper()
    if normalized not in HTTP_METHODS:
        raise ValueError('Invalid HTTP method.')
    return normalized


def _normalize_api_type(value: str) -> str:
    normalized = value.strip().lower()
    if normalized not in API_TYPES:
        raise ValueError('Invalid type.')
    return normalized


def _normalize_auth_type(value: str) -> str:
    normalized = value.strip().lower()
    if normalized not in AUTH_TYPES:
        raise ValueError('Invalid auth type.')
    return normalized


def _normalize_tags(value: list[str]) -> list[str]:
    return [tag.strip() for tag in value if tag.strip()]


class KeyValueEntry(CatalogModel):
    key: str
    value: str = ''
    required: bool = False


class ApiRequest(CatalogModel):
    name: str
    url: str
    method: str
    category: int
    type: str = 'external'
    description: str
    documentation: str = ''
    auth_type: str = 'none'
    auth_details: dict[str, Any] = {}
    headers: list[KeyValueEntry] = []
    query_params: list[KeyValueEntry] = []
    request_body: str = ''
    response_example: str = ''
    tags: list[str] = []
    version: str = '1.0'
    rate_limit: str = ''
    notes: str = ''

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _normalize_name(value)

    @field_validator('url')
    @classmethod
    def validate_url(cls, value: str) -> str:
        return _required_text(value, 'URL')

    @field_validator('description')
    @classmethod
    def validate_description(cls, value: str) -> str:
        return _required_text(value, 'Description')

    @field_validator('method')
    @classmethod
    def validate_method(cls, value: str) -> str:
        return _normalize_method(value)

    @field_validator('type')
    @classmethod
    def validate_type(cls, value: str) -> str:
        return _normalize_api_type(value)

    @field_validator('auth_type')
    @classmethod
    def validate_auth_type(cls, value: str) -> str:
        return _normalize_auth_type(value)

    @field_validator('tags')
    @classmethod
    def validate_tags(cls, value: list[str]) -> list[str]:
        return _normalize_tags(value)


class ApiUpdateRequest(CatalogModel):
    name: str | None = None
    url: str | None = None
    method: str | None = None
    category: int | None = None
    type: str | None = None
    description: str | None = None
    documentation: str | None = None
    auth_type: str | None = None
    auth_details: dict[str, Any] | None = None
    headers: list[KeyValueEntry] | None = None
    query_params: list[KeyValueEntry] | None = None
    request_body: str | None = None
    response_example: str | None = None
    tags: list[str] | None = None
    version: str | None = None
    rate_limit: str | None = None
    notes: str | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _normalize_name(value)

    @field_validator('url')
    @classmethod
    def validate_url(cls, value: str | None) -> str | None:
        return None if value is None else _required_text(value, 'URL')

    @field_validator('description')
    @classmethod
    def validate_description(cls, value: str | None) -> str | None:
        return None if value is None else _required_text(value, 'Description')

    @field_validator('method')
    @classmethod
    def validate_method(cls, value: str | None) -> str | None:
        return None if value is None else _normalize_method(value)

    @field_validator('type')
    @classmethod
    def validate_type(cls, value: str | None) -> str | None:
        return None if value is None else _normalize_api_type(value)

    @field_validator('auth_type')
    @classmethod
    def validate_auth_type(cls, value: str | None) -> str | None:
        return None if value is None else _normalize_auth_type(value)

    @field_validator('tags')
    @classmethod
    def validate_tags(cls, value: list[str] | None) -> list[str] | None:
        return None if value is None else _normalize_tags(value)


class ApiResponse(CatalogModel):
    id: int
    name: str
    url: str
    method: str
    category: CategorySummary | None = None
    type: str
    description: str
    documentation: str
    auth_type: str
    auth_details: dict[str, Any]
    headers: list[KeyValueEntry]
    query_params: list[KeyValueEntry]
    request_body: str
    response_example: str
    tags: list[str]
    version: str
    rate_limit: str
    notes: str
    user: UserSummary | None = None
    created_at: datetime
    updated_at: datetime


class ApiListResponse(CatalogModel):
    count: int
    apis: list[ApiResponse]


class MethodCount(CatalogModel):
    method: str
    count: int


class ApiStatsResponse(CatalogModel):
    total_apis: int
    internal_apis: int
    external_apis: int
    partner_apis: int
    total_categories: int
    method_stats: list[MethodCount]


def get_api_or_404(api_id: int, db: Session) -> Api:
    api = db.query(Api).filter(Api.id == api_id).first()
    if api is None:
        raise NotFound('API')
    return api


def ensure_category_exists(category_id: int, db: Session) -> None:
    if db.query(Category.id).filter(Category.id == category_id).first() is None:
        raise NotFound('Category')


def to_columns(changes: dict[str, Any]) -> dict[str, Any]:
    if 'category' in changes:
        changes['category_id'] = changes.pop('category')
    return changes


@router.get('', response_model=ApiListResponse)
def list_apis(
    category: int | None = Query(default=None),
    api_type: str | None = Query(default=None, alias='type'),
    method: str | None = Query(default=None),
    search: str | None = Query(default=None),
    actor: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require(actor, 'api.read')

    try:
        # Shared team catalog: every authenticated user sees every API.
        query = db.query(Api)
        if category is not None:
            query = query.filter(Api.category_id == category)
        if api_type:
            query = query.filter(Api.type == api_type.strip().lower())
        if method:
            query = query.filter(Api.method == method.strip().upper())
        if search:
            query = default_index.apply(query, search)

        apis = query.order_by(Api.created_at.desc(), Api.id.desc()).all()
    except SQLAlchemyError as exc:
        raise StoreUnavailable() from exc

    return ApiListResponse(count=len(apis), apis=[ApiResponse.model_validate(api) for api in apis])


@router.get('/search', response_model=ApiListResponse)
def search_apis(
    q: str | None = Query(default=None),
    actor: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require(actor, 'api.search')

    if not q or not q.strip():
        raise ValidationFailure('Search query is required', field='q')

    try:
        query = db.query(Api).filter(Api.user_id == actor.id)
        apis = default_index.apply(query, q).order_by(Api.created_at.desc(), Api.id.desc()).all()
    except SQLAlchemyError as exc:
        raise StoreUnavailable() from exc

    return ApiListResponse(count=len(apis), apis=[ApiResponse.model_validate(api) for api in apis])


@router.get('/stats', response_model=ApiStatsResponse)
def get_api_stats(
    actor: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require(actor, 'api.stats')

    try:
        own_apis = db.query(Api).filter(Api.user_id == actor.id)
        type_counts = dict(
            own_apis.with_entities(Api.type, func.count(Api.id)).group_by(Api.type).all()
        )
        method_rows = own_apis.with_entities(Api.method, func.count(Api.id)).group_by(Api.method).order_by(
            Api.method.asc(),
        ).all()
        total_categories = db.query(Category).filter(Category.user_id == actor.id).count()
    except SQLAlchemyError as exc:
        raise StoreUnavailable() from exc

    return ApiStatsResponse(
        total_apis=sum(type_counts.values()),
        internal_apis=type_counts.get('internal', 0),
        external_apis=type_counts.get('external', 0),
        partner_apis=type_counts.get('partner', 0),
        total_categories=total_categories,
        method_stats=[MethodCount(method=method, count=count) for method, count in method_rows],
    )


@router.get('/{api_id}', response_model=ApiResponse)
def get_api(
    api_id: int,
    actor: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        api = get_api_or_404(api_id, db)
        require(actor, 'api.read', api)
    except SQLAlchemyError as exc:
        raise StoreUnavailable() from exc

    return ApiResponse.model_validate(api)


@router.post('', response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
def create_api(
    data: ApiRequest,
    actor: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require(actor, 'api.create')

    try:
        # Not atomic with the insert below; a concurrent category delete can slip in between.
        ensure_category_exists(data.category, db)

        api = Api(**to_columns(data.model_dump()), user_id=actor.id)
        db.add(api)
        db.commit()
        db.refresh(api)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to create API for user %s', actor.id)
        raise StoreUnavailable() from exc

    logger.info('User %s created API %s', actor.id, api.id)
    return ApiResponse.model_validate(api)


@router.put('/{api_id}', response_model=ApiResponse)
def update_api(
    api_id: int,
    data: ApiUpdateRequest,
    actor: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        api = get_api_or_404(api_id, db)
        require(actor, 'api.update', api)

        changes = to_columns(data.model_dump(exclude_unset=True, exclude_none=True))
        if 'category_id' in changes and changes['category_id'] != api.category_id:
            ensure_category_exists(changes['category_id'], db)

        for field, value in changes.items():
            setattr(api, field, value)

        db.commit()
        db.refresh(api)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to update API %s', api_id)
        raise StoreUnavailable() from exc

    return ApiResponse.model_validate(api)


@router.delete('/{api_id}', response_model=MessageResponse)
def delete_api(
    api_id: int,
    actor: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        api = get_api_or_404(api_id, db)
        require(actor, 'api.delete', api)

        db.delete(api)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to delete API %s', api_id)
        raise StoreUnavailable() from exc

    logger.info('User %s deleted API %s', actor.id, api_id)
    return MessageResponse(message='API deleted successfully')
