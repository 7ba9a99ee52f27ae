from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Request, Response
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import AsyncSession

from smartdesk.config import Settings
from smartdesk.db import Role, User, get_db
from smartdesk.errors import Forbidden, Unauthorized

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return pwd_context.verify(plain, hashed)
    except ValueError:
        return False


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return pwd_context.hash("smartdesk-timing-equalizer")


def verify_against_dummy(plain: str):
    """Burn one bcrypt round so an unknown email costs the same as a wrong password."""
    verify_password(plain, _dummy_hash())


def create_access_token(user_id: int, settings: Settings) -> str:
    expire = datetime.now(timezone.utc) + timedelta(days=settings.jwt_expire_days)
    to_encode = {"sub": str(user_id), "exp": expire}
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings: Settings) -> dict:
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])


def set_session_cookie(response: Response, token: str, settings: Settings):
    response.set_cookie(
        key=settings.cookie_name,
        value=token,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
        max_age=60 * 60 * 24 * settings.jwt_expire_days,
        path="/",
    )


def clear_session_cookie(response: Response, settings: Settings):
    response.delete_cookie(
        key=settings.cookie_name,
        path="/",
        secure=settings.cookie_secure,
        httponly=True,
        samesite=settings.cookie_samesite,
    )


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _token_from_request(request: Request, settings: Settings) -> Optional[str]:
    token = request.cookies.get(settings.cookie_name)
    if token:
        return token
    # Native clients send the same token as a bearer header
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return None


async def get_current_user(
    request: Request,
    session: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    token = _token_from_request(request, settings)
    if not token:
        raise Unauthorized()
    try:
        payload = decode_access_token(token, settings)
        user_id = int(payload.get("sub"))
    except (JWTError, TypeError, ValueError):
        raise Unauthorized("Invalid token")
    user = await session.get(User, user_id)
    if not user:
        raise Unauthorized("User not found")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role is Role.ADMIN:
        return user
    if user.role is Role.MEMBER:
        raise Forbidden()
    raise Forbidden(f"Unknown role {user.role!r}")
