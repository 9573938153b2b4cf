# learnhub/auth/auth_utils.py
from typing import Optional

from fastapi import Header
from jose import JWTError, jwt

from learnhub.core.config import settings
from learnhub.core.exceptions import AuthenticationException


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise AuthenticationException("Invalid or expired token")


def create_access_token(user_id: str, extra_claims: Optional[dict] = None) -> str:
    """Mint a token the way the identity service does (used by tests and local tooling)"""
    claims = {"sub": user_id, **(extra_claims or {})}
    return jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization.split(" ", 1)[1].strip()
    return token or None


def verify_token(authorization: str = Header(None)) -> dict:
    token = _bearer_token(authorization)
    if not token:
        raise AuthenticationException()
    payload = decode_token(token)
    if not payload.get("sub"):
        raise AuthenticationException("Invalid token: missing user id")
    return payload


def verify_token_optional(authorization: str = Header(None)) -> Optional[dict]:
    token = _bearer_token(authorization)
    if not token:
        return None
    payload = decode_token(token)
    return payload if payload.get("sub") else None
