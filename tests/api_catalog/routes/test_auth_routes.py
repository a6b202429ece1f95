import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import ValidationError

from api_catalog.auth import jwt_handler
from api_catalog.auth.dependencies import get_current_user
from api_catalog.auth.passwords import verify_password
from api_catalog.core.errors import ValidationFailure
from api_catalog.models.user import User
from api_catalog.routes.auth_routes import LoginRequest, RegisterRequest, login, me, register


def _bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme='Bearer', credentials=token)


def test_register_request_normalizes_email() -> None:
    request = RegisterRequest(name=' Ada ', email=' ADA@Example.COM ', password='secret1')

    assert request.name == 'Ada'
    assert request.email == 'ada@example.com'


def test_register_request_enforces_min_password_length() -> None:
    with pytest.raises(ValidationError):
        RegisterRequest(name='Ada', email='ada@example.com', password='12345')


def test_register_creates_plain_user_with_hashed_password(db) -> None:
    response = register(
        data=RegisterRequest(name='Ada', email='ada@example.com', password='secret1'),
        db=db,
    )

    user = db.query(User).filter(User.email == 'ada@example.com').one()
    assert response.user.role == 'user'
    assert response.user.is_active is True
    assert verify_password('secret1', user.hashed_password)
    assert jwt_handler.decode_access_token(response.access_token)['sub'] == str(user.id)


def test_register_rejects_duplicate_email(db, member) -> None:
    with pytest.raises(ValidationFailure) as exception_info:
        register(
            data=RegisterRequest(name='Copy', email='member@example.com', password='secret1'),
            db=db,
        )

    assert exception_info.value.status_code == 400


def test_login_returns_token_for_valid_credentials(db, member) -> None:
    response = login(data=LoginRequest(email='MEMBER@example.com', password='password123'), db=db)

    assert response.token_type == 'bearer'
    assert response.user.id == member.id


def test_login_rejects_wrong_password(db, member) -> None:
    with pytest.raises(HTTPException) as exception_info:
        login(data=LoginRequest(email='member@example.com', password='wrong-password'), db=db)

    assert exception_info.value.status_code == 401


def test_login_rejects_blocked_user(db, make_user) -> None:
    make_user(email='blocked@example.com', is_active=False)

    with pytest.raises(HTTPException) as exception_info:
        login(data=LoginRequest(email='blocked@example.com', password='password123'), db=db)

    assert exception_info.value.status_code == 403
    assert exception_info.value.detail == 'Account is blocked'


def test_get_current_user_resolves_token_subject(db, developer) -> None:
    token = jwt_handler.create_access_token(developer.id)

    actor = get_current_user(credentials=_bearer(token), db=db)

    assert actor.id == developer.id
    assert me(current_user=actor).email == 'dev@example.com'


def test_get_current_user_rejects_blocked_user(db, make_user) -> None:
    blocked = make_user(is_active=False)
    token = jwt_handler.create_access_token(blocked.id)

    with pytest.raises(HTTPException) as exception_info:
        get_current_user(credentials=_bearer(token), db=db)

    assert exception_info.value.status_code == 403


def test_get_current_user_rejects_invalid_token(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_current_user(credentials=_bearer('not-a-jwt'), db=db)

    assert exception_info.value.status_code == 401
    assert exception_info.value.detail == 'Invalid token'


def test_get_current_user_rejects_unknown_user(db) -> None:
    token = jwt_handler.create_access_token(4242)

    with pytest.raises(HTTPException) as exception_info:
        get_current_user(credentials=_bearer(token), db=db)

    assert exception_info.value.detail == 'User not found'
