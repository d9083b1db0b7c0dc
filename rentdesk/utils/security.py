"""
Password hashing and staff tokens.

Access tokens carry the user id (``sub``) and role; refresh tokens carry only
the user id plus a random ``jti``. The ``type`` claim keeps one from being
used in place of the other.
"""

from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
import bcrypt
import secrets

from ..config import settings

ACCESS = "access"
REFRESH = "refresh"


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password.encode('utf-8'))
    except ValueError:
        # Not a bcrypt hash
        return False


def _encode(claims: dict, lifetime: timedelta, token_type: str) -> str:
    payload = dict(claims)
    payload["exp"] = datetime.utcnow() + lifetime
    payload["type"] = token_type
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    return _encode(data, lifetime, ACCESS)


def create_refresh_token(data: dict) -> str:
    claims = {**data, "jti": secrets.token_urlsafe(16)}
    return _encode(claims, timedelta(days=settings.refresh_token_expire_days), REFRESH)


def decode_token(token: str) -> Optional[dict]:
    """Signature- and expiry-checked payload, or None"""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None


def _verify(token: str, token_type: str) -> Optional[dict]:
    payload = decode_token(token)
    if payload and payload.get("type") == token_type:
        return payload
    return None


def verify_access_token(token: str) -> Optional[dict]:
    return _verify(token, ACCESS)


def verify_refresh_token(token: str) -> Optional[dict]:
    return _verify(token, REFRESH)
