import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from api_catalog.core import config
from api_catalog.database import create_schema
from api_catalog.routes import (
    admin_routes,
    api_routes,
    auth_routes,
    category_routes,
    notification_routes,
    user_routes,
)

logging.basicConfig(
    level=config.LOG_LEVEL.upper(),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)

app = FastAPI(title='API Catalog')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        create_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'API Catalog Running'}


app.include_router(auth_routes.router, prefix='/auth')
app.include_router(user_routes.router, prefix='/users')
app.include_router(category_routes.router, prefix='/categories')
app.include_router(api_routes.router, prefix='/apis')
app.include_router(notification_routes.router, prefix='/notifications')
app.include_router(admin_routes.router, prefix='/admin')
