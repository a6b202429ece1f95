import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from api_catalog.auth.dependencies import get_current_user
from api_catalog.core import config
from api_catalog.core.access_control import require
from api_catalog.core.errors import NotFound, StoreUnavailable
from api_catalog.database import get_db
from api_catalog.models.notification import Notification
from api_catalog.models.user import User
from api_catalog.schemas import CatalogModel, MessageResponse, UserSummary

router = APIRouter(tags=['notifications'])

logger = logging.getLogger(__name__)


class NotificationResponse(CatalogModel):
    id: int
    user_id: int
    title: str
    message: str
    type: str
    sender: UserSummary | None = None
    is_read: bool
    created_at: datetime


class NotificationListResponse(CatalogModel):
    count: int
    unread_count: int
    notifications: list[NotificationResponse]


class UnreadCountResponse(CatalogModel):
    unread_count: int


def count_unread(user_id: int, db: Session) -> int:
    return db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.is_read.is_(False),
    ).count()


def get_own_notification_or_404(notification_id: int, actor: User, db: Session) -> Notification:
    # Someone else's notification is indistinguishable from a missing one.
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.user_id == actor.id,
    ).first()
    if notification is None:
        raise NotFound('Notification')
    return notification


@router.get('', response_model=NotificationListResponse)
def get_notifications(
    actor: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require(actor, 'notification.read')

    try:
        notifications = db.query(Notification).filter(
            Notification.user_id == actor.id,
        ).order_by(
            Notification.created_at.desc(),
            Notification.id.desc(),
        ).limit(config.NOTIFICATION_LIST_LIMIT).all()
        unread_count = count_unread(actor.id, db)
    except SQLAlchemyError as exc:
        raise StoreUnavailable() from exc

    return NotificationListResponse(
        count=len(notifications),
        unread_count=unread_count,
        notifications=[NotificationResponse.model_validate(notification) for notification in notifications],
    )


@router.get('/unread-count', response_model=UnreadCountResponse)
def get_unread_count(
    actor: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require(actor, 'notification.read')

    try:
        return UnreadCountResponse(unread_count=count_unread(actor.id, db))
    except SQLAlchemyError as exc:
        raise StoreUnavailable() from exc


@router.put('/read-all', response_model=MessageResponse)
def mark_all_as_read(
    actor: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require(actor, 'notification.update')

    try:
        db.query(Notification).filter(
            Notification.user_id == actor.id,
            Notification.is_read.is_(False),
        ).update({Notification.is_read: True}, synchronize_session=False)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to mark notifications read for user %s', actor.id)
        raise StoreUnavailable() from exc

    return MessageResponse(message='All notifications marked as read')


@router.put('/{notification_id}/read', response_model=NotificationResponse)
def mark_as_read(
    notification_id: int,
    actor: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        notification = get_own_notification_or_404(notification_id, actor, db)
        require(actor, 'notification.update', notification)

        notification.is_read = True
        db.commit()
        db.refresh(notification)
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreUnavailable() from exc

    return notification


@router.delete('/{notification_id}', response_model=MessageResponse)
def delete_notification(
    notification_id: int,
    actor: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        notification = get_own_notification_or_404(notification_id, actor, db)
        require(actor, 'notification.delete', notification)

        db.delete(notification)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to delete notification %s', notification_id)
        raise StoreUnavailable() from exc

    return MessageResponse(message='Notification deleted successfully')
