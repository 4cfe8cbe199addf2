"""
Account credentials: argon2 password hashes and the HS256 session token
"""
from datetime import datetime, timedelta
from typing import Optional

import jwt
from passlib.context import CryptContext

from config.settings import settings

ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def _signing_key() -> str:
    if not settings.jwt_secret_key:
        raise ValueError("JWT_SECRET_KEY is not set. Cannot create JWT token.")
    return settings.jwt_secret_key


def create_jwt(user_id: str) -> str:
    """Session token for an account; lives as long as the auth cookie"""
    expires_at = datetime.utcnow() + timedelta(seconds=settings.jwt_expire_seconds)
    return jwt.encode({"sub": user_id, "exp": expires_at}, _signing_key(), algorithm=ALGORITHM)


def decode_jwt(token: str) -> Optional[dict]:
    """Claims of a valid session token, or None when it is expired, tampered or malformed"""
    key = _signing_key()
    try:
        return jwt.decode(token, key, algorithms=[ALGORITHM])
    except jwt.InvalidTokenError:
        return None
