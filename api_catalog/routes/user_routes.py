import logging

from fastapi import APIRouter, Depends
from pydantic import field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from api_catalog.auth.dependencies import get_current_user
from api_catalog.core.access_control import require
from api_catalog.core.errors import NotFound, StoreUnavailable, ValidationFailure
from api_catalog.database import get_db
from api_catalog.models.user import ROLES, User
from api_catalog.routes.auth_routes import normalize_email
from api_catalog.schemas import CatalogModel, MessageResponse, UserResponse

router = APIRouter(tags=['users'])

logger = logging.getLogger(__name__)


class UpdateUserRequest(CatalogModel):
    name: str | None = None
    email: str | None = None
    role: str | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if not normalized:
            raise ValueError('Name is required.')
        if len(normalized) > 50:
            raise ValueError('Name cannot be more than 50 characters.')
        return normalized

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str | None) -> str | None:
        return None if value is None else normalize_email(value)

    @field_validator('role')
    @classmethod
    def validate_role(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip().lower()
        if normalized not in ROLES:
            raise ValueError('Invalid role.')
        return normalized


class UserListResponse(CatalogModel):
    count: int
    users: list[UserResponse]


def get_user_or_404(user_id: int, db: Session) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise NotFound('User')
    return user


def query_users_newest_first(db: Session) -> list[User]:
    return db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()


@router.get('', response_model=UserListResponse)
def list_users(
    actor: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require(actor, 'user.list')

    try:
        users = query_users_newest_first(db)
    except SQLAlchemyError as exc:
        raise StoreUnavailable() from exc

    return UserListResponse(count=len(users), users=[UserResponse.model_validate(user) for user in users])


@router.get('/{user_id}', response_model=UserResponse)
def get_user(
    user_id: int,
    actor: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        user = get_user_or_404(user_id, db)
    except SQLAlchemyError as exc:
        raise StoreUnavailable() from exc

    require(actor, 'user.read', user)
    return user


@router.put('/{user_id}', response_model=UserResponse)
def update_user(
    user_id: int,
    data: UpdateUserRequest,
    actor: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        user = get_user_or_404(user_id, db)
        require(actor, 'user.update', user)

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if 'role' in changes and changes['role'] != user.role:
            require(actor, 'user.change_role', user)

        if 'email' in changes and changes['email'] != user.email:
            taken = db.query(User.id).filter(User.email == changes['email'], User.id != user.id).first()
            if taken:
                raise ValidationFailure('User already exists with this email.', field='email')

        for field, value in changes.items():
            setattr(user, field, value)

        db.commit()
        db.refresh(user)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to update user %s', user_id)
        raise StoreUnavailable() from exc

    return user


@router.delete('/{user_id}', response_model=MessageResponse)
def delete_user(
    user_id: int,
    actor: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        user = get_user_or_404(user_id, db)
        require(actor, 'user.delete', user)

        db.delete(user)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to delete user %s', user_id)
        raise StoreUnavailable() from exc

    logger.info('Admin %s deleted user %s', actor.id, user_id)
    return MessageResponse(message='User deleted successfully')
