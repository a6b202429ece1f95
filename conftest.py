import os
from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')
os.environ.setdefault('JWT_SECRET_KEY', 'test-secret')

from api_catalog.auth.passwords import hash_password  # noqa: E402
from api_catalog.database import Base  # noqa: E402
from api_catalog.models.api import Api  # noqa: E402
from api_catalog.models.category import Category  # noqa: E402
from api_catalog.models.notification import Notification  # noqa: E402
from api_catalog.models.user import ROLE_ADMIN, ROLE_DEVELOPER, ROLE_USER, User  # noqa: E402

TEST_PASSWORD = 'password123'


@pytest.fixture
def db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    tables = [User.__table__, Category.__table__, Api.__table__, Notification.__table__]
    Base.metadata.create_all(bind=engine, tables=tables)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine, tables=list(reversed(tables)))


@pytest.fixture(scope='session')
def password_hash() -> str:
    return hash_password(TEST_PASSWORD)


@pytest.fixture
def make_user(db, password_hash):
    counter = {'value': 0}

    def _make_user(role: str = ROLE_USER, is_active: bool = True, created_at: datetime | None = None, **fields) -> User:
        counter['value'] += 1
        user = User(
            name=fields.pop('name', f'User {counter["value"]}'),
            email=fields.pop('email', f'user{counter["value"]}@example.com'),
            hashed_password=fields.pop('hashed_password', password_hash),
            role=role,
            is_active=is_active,
            created_at=created_at or datetime.now(),
            **fields,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def admin(make_user) -> User:
    return make_user(role=ROLE_ADMIN, name='Admin', email='admin@example.com')


@pytest.fixture
def developer(make_user) -> User:
    return make_user(role=ROLE_DEVELOPER, name='Dev', email='dev@example.com')


@pytest.fixture
def member(make_user) -> User:
    return make_user(role=ROLE_USER, name='Member', email='member@example.com')


@pytest.fixture
def make_category(db):
    def _make_category(owner: User, name: str = 'Payments', created_at: datetime | None = None, **fields) -> Category:
        category = Category(
            name=name,
            description=fields.pop('description', f'{name} APIs'),
            color=fields.pop('color', '#4ECDC4'),
            user_id=owner.id,
            created_at=created_at or datetime.now(),
            **fields,
        )
        db.add(category)
        db.commit()
        db.refresh(category)
        return category

    return _make_category


@pytest.fixture
def make_api(db):
    def _make_api(owner: User, category: Category, name: str = 'Charge Card', minutes_ago: int = 0, **fields) -> Api:
        created_at = datetime.now() - timedelta(minutes=minutes_ago)
        api = Api(
            name=name,
            url=fields.pop('url', 'https://api.example.com/charges'),
            method=fields.pop('method', 'POST'),
            category_id=category.id,
            type=fields.pop('type', 'external'),
            description=fields.pop('description', f'{name} endpoint'),
            tags=fields.pop('tags', []),
            user_id=owner.id,
            created_at=created_at,
            updated_at=created_at,
            **fields,
        )
        db.add(api)
        db.commit()
        db.refresh(api)
        return api

    return _make_api
