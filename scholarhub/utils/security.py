from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from scholarhub.config import settings


def create_access_token(user_id: str, role: str = "student", ttl_minutes: int | None = None) -> str:
    minutes = ttl_minutes if ttl_minutes is not None else settings.access_token_ttl_minutes
    expire = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    return jwt.encode(
        {"sub": str(user_id), "role": role, "exp": expire},
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )


def decode_access_token(token: str) -> dict | None:
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    if not payload.get("sub"):
        return None
    return payload
