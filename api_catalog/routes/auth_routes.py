import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from api_catalog.auth import jwt_handler
from api_catalog.auth.dependencies import get_current_user
from api_catalog.auth.passwords import hash_password, verify_password
from api_catalog.core import config
from api_catalog.core.errors import StoreUnavailable, ValidationFailure
from api_catalog.database import get_db
from api_catalog.models.user import ROLE_USER, User
from api_catalog.schemas import CatalogModel, UserResponse

router = APIRouter(tags=['auth'])

logger = logging.getLogger(__name__)


def normalize_email(value: str) -> str:
    normalized = value.strip().lower()
    if '@' not in normalized:
        raise ValueError('Please provide a valid email.')
    return normalized


class RegisterRequest(CatalogModel):
    name: str
    email: str
    password: str

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Name is required.')
        if len(normalized) > 50:
            raise ValueError('Name cannot be more than 50 characters.')
        return normalized

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return normalize_email(value)

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str) -> str:
        if len(value) < config.MIN_PASSWORD_LENGTH:
            raise ValueError(f'Password must be at least {config.MIN_PASSWORD_LENGTH} characters.')
        return value


class LoginRequest(CatalogModel):
    email: str
    password: str

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return normalize_email(value)


class TokenResponse(CatalogModel):
    access_token: str
    token_type: str = 'bearer'
    user: UserResponse


def issue_token(user: User) -> TokenResponse:
    token = jwt_handler.create_access_token(user.id)
    return TokenResponse(access_token=token, user=UserResponse.model_validate(user))


@router.post('/register', response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def register(data: RegisterRequest, db: Session = Depends(get_db)):
    try:
        if db.query(User).filter(User.email == data.email).first():
            raise ValidationFailure('User already exists with this email.', field='email')

        user = User(
            name=data.name,
            email=data.email,
            hashed_password=hash_password(data.password),
            role=ROLE_USER,
            is_active=True,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Registration failed for %s', data.email)
        raise StoreUnavailable() from exc

    logger.info('Registered user %s', user.id)
    return issue_token(user)


@router.post('/login', response_model=TokenResponse)
def login(data: LoginRequest, db: Session = Depends(get_db)):
    try:
        user = db.query(User).filter(User.email == data.email).first()
    except SQLAlchemyError as exc:
        raise StoreUnavailable() from exc

    if user is None or not verify_password(data.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Invalid credentials')
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Account is blocked')

    return issue_token(user)


@router.get('/me', response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)):
    return current_user
