from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from api_catalog.core import config


engine = create_engine(config.DATABASE_URL, echo=config.SQL_ECHO)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_schema() -> None:
    # Every model module must be imported so its table is on Base.metadata.
    from api_catalog.models import api, category, notification, user  # noqa: F401

    Base.metadata.create_all(bind=engine)
