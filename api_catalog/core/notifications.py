"""Notifications created as a side effect of successful mutations.

The triggering mutation is committed by the caller before
:func:`on_mutation_succeeded` runs, and the notification is committed on its
own. If the notification insert fails the mutation stays in place; the
failure is logged and surfaced to the caller as a store error.
"""

import logging
from enum import Enum
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from api_catalog.core.errors import StoreUnavailable
from api_catalog.models.notification import Notification
from api_catalog.models.user import User

logger = logging.getLogger(__name__)

ACCOUNT_STATUS_TITLE = 'Account Status'
PASSWORD_CHANGED_TITLE = 'Password Changed'
DEFAULT_NOTIFICATION_TYPE = 'info'


class MutationKind(str, Enum):
    USER_DEACTIVATED = 'user_deactivated'
    USER_REACTIVATED = 'user_reactivated'
    PASSWORD_CHANGED_BY_ADMIN = 'password_changed_by_admin'
    ADMIN_MESSAGE = 'admin_message'


# kind -> (title, type, message)
TEMPLATES = {
    MutationKind.USER_DEACTIVATED: (
        ACCOUNT_STATUS_TITLE,
        'warning',
        'Your account has been blocked by an administrator.',
    ),
    MutationKind.USER_REACTIVATED: (
        ACCOUNT_STATUS_TITLE,
        'success',
        'Your account has been unblocked. You can now login.',
    ),
    MutationKind.PASSWORD_CHANGED_BY_ADMIN: (
        PASSWORD_CHANGED_TITLE,
        'warning',
        'Your password has been changed by an administrator. Please use your new password to login.',
    ),
}


def build_notification(
    kind: MutationKind,
    subject_user: User,
    actor: Any,
    payload: dict | None = None,
) -> Notification | None:
    if kind is MutationKind.ADMIN_MESSAGE:
        payload = payload or {}
        title = payload['title']
        notification_type = payload.get('type') or DEFAULT_NOTIFICATION_TYPE
        message = payload['message']
    elif kind in TEMPLATES:
        title, notification_type, message = TEMPLATES[kind]
    else:
        return None

    return Notification(
        user_id=subject_user.id,
        title=title,
        message=message,
        type=notification_type,
        sender_id=actor.id if actor is not None else None,
    )


def on_mutation_succeeded(
    db: Session,
    kind: MutationKind,
    subject_user: User,
    actor: Any,
    payload: dict | None = None,
) -> Notification | None:
    notification = build_notification(kind, subject_user, actor, payload)
    if notification is None:
        return None

    try:
        db.add(notification)
        db.commit()
        db.refresh(notification)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception(
            'Failed to create %s notification for user %s; the triggering change was kept.',
            kind.value,
            subject_user.id,
        )
        raise StoreUnavailable() from exc

    logger.info('Sent %s notification %s to user %s', kind.value, notification.id, subject_user.id)
    return notification


def notification_for_toggle(is_active: bool) -> MutationKind:
    return MutationKind.USER_REACTIVATED if is_active else MutationKind.USER_DEACTIVATED
