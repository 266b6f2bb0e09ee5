from datetime import datetime, timedelta, timezone
import jwt
import uuid
from fastapi import HTTPException, status
from agora.core.config import settings


def create_access_token(user_id: str, username: str | None = None, expires_in_min: int | None = None) -> str:
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=expires_in_min or settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    payload = {
        "sub": user_id,
        "username": username,
        "refresh": False,
        "jti": str(uuid.uuid4()),
        "iat": now,
        "exp": exp,
    }

    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def create_refresh_token(user_id: str) -> str:
    now = datetime.now(timezone.utc)
    exp = now + timedelta(days=30)

    payload = {
        "sub": user_id,
        "refresh": True,
        "jti": str(uuid.uuid4()),
        "iat": now,
        "exp": exp,
    }

    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(
            token,
            key=settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token has expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
