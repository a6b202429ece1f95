import logging
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from api_catalog.auth.dependencies import get_current_user
from api_catalog.auth.passwords import hash_password
from api_catalog.core import config
from api_catalog.core.access_control import require
from api_catalog.core.errors import StoreUnavailable, ValidationFailure
from api_catalog.core.notifications import MutationKind, notification_for_toggle, on_mutation_succeeded
from api_catalog.database import get_db
from api_catalog.models.notification import MAX_NOTIFICATION_TITLE_LENGTH, NOTIFICATION_TYPES
from api_catalog.models.user import ROLE_ADMIN, User
from api_catalog.routes.notification_routes import NotificationResponse
from api_catalog.routes.user_routes import UserListResponse, get_user_or_404, query_users_newest_first
from api_catalog.schemas import CatalogModel, MessageResponse, UserResponse

router = APIRouter(tags=['admin'])

logger = logging.getLogger(__name__)


class AdminStats(CatalogModel):
    total_users: int
    active_users: int
    blocked_users: int
    admin_users: int
    recent_registrations: int


class UserStatus(CatalogModel):
    id: int
    name: str
    email: str
    is_active: bool


class ToggleActiveResponse(CatalogModel):
    message: str
    user: UserStatus


class ChangePasswordRequest(CatalogModel):
    new_password: str | None = None


class SendNotificationRequest(CatalogModel):
    title: str | None = None
    message: str | None = None
    type: str | None = None


class SendNotificationResponse(CatalogModel):
    message: str
    notification: NotificationResponse


@router.get('/stats', response_model=AdminStats)
def get_admin_stats(
    actor: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require(actor, 'admin.stats')

    try:
        # Window is relative to the moment of the call.
        recent_cutoff = datetime.now() - timedelta(days=config.RECENT_REGISTRATION_DAYS)
        users = db.query(User)

        return AdminStats(
            total_users=users.count(),
            active_users=users.filter(User.is_active.is_(True)).count(),
            blocked_users=users.filter(User.is_active.is_(False)).count(),
            admin_users=users.filter(User.role == ROLE_ADMIN).count(),
            recent_registrations=users.filter(User.created_at >= recent_cutoff).count(),
        )
    except SQLAlchemyError as exc:
        raise StoreUnavailable() from exc


@router.get('/users', response_model=UserListResponse)
def list_all_users(
    actor: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require(actor, 'user.list')

    try:
        users = query_users_newest_first(db)
    except SQLAlchemyError as exc:
        raise StoreUnavailable() from exc

    return UserListResponse(count=len(users), users=[UserResponse.model_validate(user) for user in users])


@router.put('/users/{user_id}/toggle-active', response_model=ToggleActiveResponse)
def toggle_user_active(
    user_id: int,
    actor: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        user = get_user_or_404(user_id, db)
        require(actor, 'user.toggle_active', user)

        user.is_active = not user.is_active
        db.commit()
        db.refresh(user)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to toggle active status for user %s', user_id)
        raise StoreUnavailable() from exc

    logger.info('Admin %s set user %s active=%s', actor.id, user.id, user.is_active)
    on_mutation_succeeded(db, notification_for_toggle(user.is_active), user, actor)

    return ToggleActiveResponse(
        message=f"User {'activated' if user.is_active else 'blocked'} successfully",
        user=UserStatus.model_validate(user),
    )


@router.put('/users/{user_id}/password', response_model=MessageResponse)
def change_user_password(
    user_id: int,
    data: ChangePasswordRequest,
    actor: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        user = get_user_or_404(user_id, db)
        require(actor, 'user.change_password', user)

        if not data.new_password or len(data.new_password) < config.MIN_PASSWORD_LENGTH:
            raise ValidationFailure(
                f'Password must be at least {config.MIN_PASSWORD_LENGTH} characters',
                field='newPassword',
            )

        user.hashed_password = hash_password(data.new_password)
        db.commit()
        db.refresh(user)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to change password for user %s', user_id)
        raise StoreUnavailable() from exc

    logger.info('Admin %s changed the password of user %s', actor.id, user.id)
    on_mutation_succeeded(db, MutationKind.PASSWORD_CHANGED_BY_ADMIN, user, actor)

    return MessageResponse(message='Password changed successfully')


@router.post(
    '/users/{user_id}/notify',
    response_model=SendNotificationResponse,
    status_code=status.HTTP_201_CREATED,
)
def send_notification(
    user_id: int,
    data: SendNotificationRequest,
    actor: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        user = get_user_or_404(user_id, db)
    except SQLAlchemyError as exc:
        raise StoreUnavailable() from exc

    require(actor, 'notification.send', user)

    title = (data.title or '').strip()
    message = (data.message or '').strip()
    if not title or not message:
        raise ValidationFailure('Title and message are required')
    if len(title) > MAX_NOTIFICATION_TITLE_LENGTH:
        raise ValidationFailure(
            f'Title cannot be more than {MAX_NOTIFICATION_TITLE_LENGTH} characters', field='title'
        )

    notification_type = (data.type or '').strip().lower() or None
    if notification_type is not None and notification_type not in NOTIFICATION_TYPES:
        raise ValidationFailure('Invalid notification type', field='type')

    notification = on_mutation_succeeded(
        db,
        MutationKind.ADMIN_MESSAGE,
        user,
        actor,
        payload={'title': title, 'message': message, 'type': notification_type},
    )

    return SendNotificationResponse(
        message='Notification sent successfully',
        notification=NotificationResponse.model_validate(notification),
    )
