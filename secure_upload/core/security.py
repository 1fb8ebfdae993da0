from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt

from secure_upload.config import settings

# Claim names accepted for the caller id, in order of preference
USER_ID_CLAIMS = ("id", "sub", "userId")


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed JWT.

    Tokens are issued by the identity provider in production; this is used
    by ``scripts/create_access_token.py`` and the test-suite.
    """
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Optional[dict]:
    """Decode and verify a JWT access token."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None


def user_id_from_claims(payload: dict) -> Optional[str]:
    """Return the caller id from the first present id claim."""
    for claim in USER_ID_CLAIMS:
        value = payload.get(claim)
        if value not in (None, ""):
            return str(value)
    return None
