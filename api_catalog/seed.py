"""Reset the catalog tables and load a demo admin, categories and APIs.

Usage:
    python -m api_catalog.seed
"""
import logging
import sys

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from api_catalog.auth.passwords import hash_password
from api_catalog.core import config
from api_catalog.database import Base, create_schema, engine
from api_catalog.models.api import Api
from api_catalog.models.category import Category
from api_catalog.models.notification import Notification  # noqa: F401
from api_catalog.models.user import ROLE_ADMIN, User

logger = logging.getLogger(__name__)

CATEGORIES = [
    {'name': 'Authentication', 'description': 'User authentication and authorization APIs', 'color': '#FF6B6B'},
    {'name': 'Payment', 'description': 'Payment processing and transaction APIs', 'color': '#4ECDC4'},
    {'name': 'Social Media', 'description': 'Social media integration APIs', 'color': '#45B7D1'},
    {'name': 'Analytics', 'description': 'Data analytics and reporting APIs', 'color': '#96CEB4'},
    {'name': 'Notification', 'description': 'Push notifications and messaging APIs', 'color': '#FFEAA7'},
]

# category is an index into CATEGORIES
APIS = [
    {
        'name': 'User Login',
        'url': 'https://api.example.com/auth/login',
        'method': 'POST',
        'category': 0,
        'type': 'external',
        'description': 'Authenticate user with email and password',
        'auth_type': 'none',
        'request_body': '{\n  "email": "user@example.com",\n  "password": "password123"\n}',
        'tags': ['auth', 'login', 'jwt'],
    },
    {
        'name': 'Get User Profile',
        'url': 'https://api.example.com/users/me',
        'method': 'GET',
        'category': 0,
        'type': 'external',
        'description': 'Get current authenticated user profile',
        'auth_type': 'bearer',
        'auth_details': {'tokenType': 'Bearer'},
        'tags': ['auth', 'profile', 'user'],
    },
    {
        'name': 'Process Payment',
        'url': 'https://api.stripe.com/v1/charges',
        'method': 'POST',
        'category': 1,
        'type': 'partner',
        'description': 'Process a credit card payment',
        'auth_type': 'api-key',
        'auth_details': {'headerName': 'Authorization', 'keyPrefix': 'Bearer'},
        'tags': ['payment', 'stripe', 'charge'],
    },
    {
        'name': 'Get Facebook Posts',
        'url': 'https://graph.facebook.com/v12.0/me/posts',
        'method': 'GET',
        'category': 2,
        'type': 'external',
        'description': 'Retrieve user posts from Facebook',
        'auth_type': 'oauth',
        'auth_details': {'provider': 'Facebook', 'scope': 'user_posts'},
        'query_params': [
            {'key': 'fields', 'value': 'id,message,created_time', 'required': True},
            {'key': 'limit', 'value': '25', 'required': False},
        ],
        'tags': ['social', 'facebook', 'posts'],
    },
    {
        'name': 'Send Analytics Event',
        'url': 'https://api.example.com/analytics/events',
        'method': 'POST',
        'category': 3,
        'type': 'internal',
        'description': 'Track user events for analytics',
        'auth_type': 'api-key',
        'tags': ['analytics', 'tracking', 'events'],
    },
    {
        'name': 'Send Push Notification',
        'url': 'https://fcm.googleapis.com/fcm/send',
        'method': 'POST',
        'category': 4,
        'type': 'external',
        'description': 'Send push notification via Firebase Cloud Messaging',
        'auth_type': 'api-key',
        'auth_details': {'headerName': 'Authorization', 'keyPrefix': 'key='},
        'tags': ['notification', 'fcm', 'push'],
    },
]


def seed(session: Session) -> User:
    admin = User(
        name='Demo User',
        email=config.SEED_ADMIN_EMAIL,
        hashed_password=hash_password(config.SEED_ADMIN_PASSWORD),
        role=ROLE_ADMIN,
    )
    session.add(admin)
    session.flush()

    categories = [Category(user_id=admin.id, **category) for category in CATEGORIES]
    session.add_all(categories)
    session.flush()

    for api in APIS:
        fields = dict(api)
        category = categories[fields.pop('category')]
        session.add(Api(category_id=category.id, user_id=admin.id, **fields))

    session.commit()
    return admin


def main() -> None:
    logging.basicConfig(level=config.LOG_LEVEL.upper())
    try:
        Base.metadata.drop_all(bind=engine)
        create_schema()
        with Session(engine) as session:
            seed(session)
    except SQLAlchemyError:
        logger.exception('Seeding failed.')
        sys.exit(1)

    print(f'Seeded {len(CATEGORIES)} categories and {len(APIS)} APIs.')
    print(f'Login with {config.SEED_ADMIN_EMAIL} / {config.SEED_ADMIN_PASSWORD}')


if __name__ == "__main__":
    main()
