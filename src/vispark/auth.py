from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt
from fastapi import Depends, Header, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from vispark.config import settings
from vispark.errors import ApiError

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(message: str) -> ApiError:
    return ApiError(status.HTTP_401_UNAUTHORIZED, "Unauthorized", message)


def create_access_token(user_id: uuid.UUID, expires_minutes: int = 60) -> str:
    """Issue a Supabase-shaped access token, used by scripts and tests."""
    expires = datetime.now(UTC) + timedelta(minutes=expires_minutes)
    payload = {
        "sub": str(user_id),
        "aud": settings.jwt_audience,
        "role": "authenticated",
        "exp": expires,
    }
    return jwt.encode(payload, settings.supabase_jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> uuid.UUID:
    if not settings.supabase_jwt_secret:
        raise ApiError(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Server misconfiguration",
            "SUPABASE_JWT_SECRET is not set.",
        )
    try:
        payload = jwt.decode(
            token,
            settings.supabase_jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
        )
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token expired.")
    except jwt.InvalidTokenError:
        raise _unauthorized("Invalid token.")

    try:
        return uuid.UUID(payload["sub"])
    except (KeyError, ValueError):
        raise _unauthorized("Token has no valid subject.")


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> uuid.UUID:
    if credentials is None:
        raise _unauthorized("You must be signed in to use this endpoint.")
    return decode_token(credentials.credentials)


async def require_admin_key(x_admin_key: str = Header(...)) -> str:
    if not settings.admin_api_key or x_admin_key != settings.admin_api_key:
        raise ApiError(status.HTTP_403_FORBIDDEN, "Forbidden", "Invalid admin key.")
    return x_admin_key


async def get_optional_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> uuid.UUID | None:
    if credentials is None:
        return None
    return decode_token(credentials.credentials)
