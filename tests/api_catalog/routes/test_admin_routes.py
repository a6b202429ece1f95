from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from api_catalog.auth.passwords import verify_password
from api_catalog.core.errors import Forbidden, NotFound, StoreUnavailable, ValidationFailure
from api_catalog.models.notification import Notification
from api_catalog.models.user import User
from api_catalog.routes.admin_routes import (
    ChangePasswordRequest,
    SendNotificationRequest,
    change_user_password,
    get_admin_stats,
    list_all_users,
    send_notification,
    toggle_user_active,
)
from api_catalog.routes.notification_routes import get_notifications


def _notifications_for(db, user: User) -> list[Notification]:
    return db.query(Notification).filter(Notification.user_id == user.id).all()


def test_toggle_active_blocks_user_and_sends_warning(db, admin, member) -> None:
    response = toggle_user_active(user_id=member.id, actor=admin, db=db)

    assert response.message == 'User blocked successfully'
    assert response.user.is_active is False
    assert response.model_dump(by_alias=True)['user']['isActive'] is False

    notifications = _notifications_for(db, member)
    assert len(notifications) == 1
    assert notifications[0].title == 'Account Status'
    assert notifications[0].type == 'warning'
    assert notifications[0].sender_id == admin.id


def test_toggle_active_twice_unblocks_with_success_notification(db, admin, member) -> None:
    toggle_user_active(user_id=member.id, actor=admin, db=db)
    response = toggle_user_active(user_id=member.id, actor=admin, db=db)

    assert response.message == 'User activated successfully'
    assert response.user.is_active is True

    notification_types = sorted(notification.type for notification in _notifications_for(db, member))
    assert notification_types == ['success', 'warning']


def test_toggle_active_rejects_self(db, admin) -> None:
    with pytest.raises(Forbidden) as exception_info:
        toggle_user_active(user_id=admin.id, actor=admin, db=db)

    assert exception_info.value.detail == 'cannot act on self'
    db.refresh(admin)
    assert admin.is_active is True
    assert db.query(Notification).count() == 0


def test_toggle_active_requires_admin(db, developer, member) -> None:
    with pytest.raises(Forbidden) as exception_info:
        toggle_user_active(user_id=member.id, actor=developer, db=db)

    assert exception_info.value.detail == 'insufficient role'
    db.refresh(member)
    assert member.is_active is True


def test_toggle_active_missing_user_is_not_found(db, admin) -> None:
    with pytest.raises(NotFound) as exception_info:
        toggle_user_active(user_id=999, actor=admin, db=db)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'User not found'


def test_toggle_active_keeps_block_when_notification_fails(db, admin, member, monkeypatch) -> None:
    real_commit = db.commit
    commits = []

    def commit_then_fail():
        commits.append('commit')
        if len(commits) > 1:
            raise OperationalError('INSERT', {}, Exception('connection lost'))
        real_commit()

    monkeypatch.setattr(db, 'commit', commit_then_fail)

    with pytest.raises(StoreUnavailable):
        toggle_user_active(user_id=member.id, actor=admin, db=db)

    monkeypatch.undo()
    db.refresh(member)
    assert member.is_active is False
    assert db.query(Notification).count() == 0


def test_blocked_user_sees_account_status_notification(db, admin, member) -> None:
    response = toggle_user_active(user_id=member.id, actor=admin, db=db)
    assert response.model_dump(by_alias=True)['user']['isActive'] is False

    inbox = get_notifications(actor=member, db=db)
    payload = inbox.model_dump(by_alias=True)

    assert payload['count'] == 1
    assert payload['unreadCount'] == 1
    assert payload['notifications'][0]['title'] == 'Account Status'
    assert payload['notifications'][0]['type'] == 'warning'
    assert payload['notifications'][0]['sender']['email'] == 'admin@example.com'


def test_change_password_rejects_short_password(db, admin, member) -> None:
    original_hash = member.hashed_password

    with pytest.raises(ValidationFailure) as exception_info:
        change_user_password(
            user_id=member.id,
            data=ChangePasswordRequest(new_password='12345'),
            actor=admin,
            db=db,
        )

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Password must be at least 6 characters'
    db.refresh(member)
    assert member.hashed_password == original_hash
    assert db.query(Notification).count() == 0


def test_change_password_rejects_missing_password(db, admin, member) -> None:
    with pytest.raises(ValidationFailure):
        change_user_password(user_id=member.id, data=ChangePasswordRequest(), actor=admin, db=db)


def test_change_password_updates_hash_and_notifies(db, admin, member) -> None:
    response = change_user_password(
        user_id=member.id,
        data=ChangePasswordRequest(newPassword='s3cret!'),
        actor=admin,
        db=db,
    )

    assert response.message == 'Password changed successfully'
    db.refresh(member)
    assert verify_password('s3cret!', member.hashed_password)
    assert member.hashed_password != 's3cret!'

    notifications = _notifications_for(db, member)
    assert len(notifications) == 1
    assert notifications[0].title == 'Password Changed'
    assert notifications[0].type == 'warning'


def test_change_password_requires_admin(db, member, make_user) -> None:
    other = make_user()

    with pytest.raises(Forbidden):
        change_user_password(
            user_id=other.id,
            data=ChangePasswordRequest(new_password='longenough'),
            actor=member,
            db=db,
        )


def test_send_notification_defaults_type_to_info(db, admin, member) -> None:
    response = send_notification(
        user_id=member.id,
        data=SendNotificationRequest(title='Welcome', message='Glad to have you'),
        actor=admin,
        db=db,
    )

    assert response.message == 'Notification sent successfully'
    assert response.notification.type == 'info'
    assert response.notification.user_id == member.id
    assert response.notification.sender.id == admin.id


def test_send_notification_requires_title_and_message(db, admin, member) -> None:
    with pytest.raises(ValidationFailure) as exception_info:
        send_notification(
            user_id=member.id,
            data=SendNotificationRequest(title='  ', message='Body'),
            actor=admin,
            db=db,
        )

    assert exception_info.value.detail == 'Title and message are required'
    assert db.query(Notification).count() == 0


def test_send_notification_rejects_overlong_title(db, admin, member) -> None:
    with pytest.raises(ValidationFailure) as exception_info:
        send_notification(
            user_id=member.id,
            data=SendNotificationRequest(title='x' * 150, message='Body'),
            actor=admin,
            db=db,
        )

    assert exception_info.value.status_code == 400
    assert exception_info.value.field == 'title'
    assert exception_info.value.detail == 'Title cannot be more than 100 characters'
    assert db.query(Notification).count() == 0


def test_send_notification_rejects_unknown_type(db, admin, member) -> None:
    with pytest.raises(ValidationFailure) as exception_info:
        send_notification(
            user_id=member.id,
            data=SendNotificationRequest(title='Hi', message='Body', type='urgent'),
            actor=admin,
            db=db,
        )

    assert exception_info.value.field == 'type'


def test_send_notification_missing_user_is_checked_before_role(db, developer) -> None:
    with pytest.raises(NotFound):
        send_notification(
            user_id=999,
            data=SendNotificationRequest(title='Hi', message='Body'),
            actor=developer,
            db=db,
        )


def test_admin_stats_counts_users(db, admin, make_user) -> None:
    make_user(is_active=False)
    make_user(role='developer')
    make_user(created_at=datetime.now() - timedelta(days=30))

    stats = get_admin_stats(actor=admin, db=db)

    assert stats.total_users == 4
    assert stats.active_users == 3
    assert stats.blocked_users == 1
    assert stats.admin_users == 1
    assert stats.recent_registrations == 3


def test_admin_stats_requires_admin(db, developer) -> None:
    with pytest.raises(Forbidden):
        get_admin_stats(actor=developer, db=db)


def test_list_all_users_is_newest_first_without_passwords(db, admin, make_user) -> None:
    older = make_user(created_at=datetime.now() - timedelta(days=2))
    newer = make_user(created_at=datetime.now() + timedelta(minutes=1))

    response = list_all_users(actor=admin, db=db)

    assert response.count == 3
    assert [user.id for user in response.users] == [newer.id, admin.id, older.id]
    for user in response.model_dump(by_alias=True)['users']:
        assert 'hashedPassword' not in user
        assert 'password' not in user
