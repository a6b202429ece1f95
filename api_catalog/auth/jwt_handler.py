from datetime import datetime, timedelta, timezone

import jwt

from api_catalog.core import config


def create_access_token(user_id: int, expires_minutes: int | None = None) -> str:
    issued_at = datetime.now(timezone.utc)
    expires_at = issued_at + timedelta(minutes=expires_minutes or config.JWT_EXPIRES_MINUTES)
    payload = {"sub": str(user_id), "iat": issued_at, "exp": expires_at}
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])


def user_id_from_token(token: str) -> int | None:
    """Return the user id carried in ``sub``, or None when the claim is missing or malformed."""
    subject = decode_access_token(token).get("sub")
    if not subject or not str(subject).isdigit():
        return None
    return int(subject)
