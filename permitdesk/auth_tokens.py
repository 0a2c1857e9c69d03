from __future__ import annotations

import time
from typing import Dict, Optional, Tuple

import jwt

from permitdesk import settings


class TokenError(Exception):
    """Raised when a JWT token cannot be validated."""


def _now() -> int:
    return int(time.time())


def _encode(payload: Dict[str, object]) -> str:
    token = jwt.encode(payload, settings.jwt_secret(), algorithm=settings.JWT_ALGORITHM)
    if isinstance(token, bytes):
        return token.decode("utf-8")
    return token


def _decode(token: str) -> Dict[str, object]:
    try:
        return jwt.decode(token, settings.jwt_secret(), algorithms=[settings.JWT_ALGORITHM])
    except jwt.PyJWTError as exc:
        raise TokenError(str(exc)) from exc


def _issue(user_id: str, role: str, token_type: str, lifetime: int) -> Tuple[str, int]:
    issued_at = _now()
    payload: Dict[str, object] = {
        "sub": user_id,
        "role": role,
        "iat": issued_at,
        "exp": issued_at + lifetime,
        "typ": token_type,
    }
    return _encode(payload), issued_at + lifetime


def create_access_token(*, user_id: str, role: str, ttl: Optional[int] = None) -> Tuple[str, int]:
    return _issue(user_id, role, "access", ttl or settings.JWT_ACCESS_TTL)


def create_refresh_token(*, user_id: str, role: str, ttl: Optional[int] = None) -> Tuple[str, int]:
    return _issue(user_id, role, "refresh", ttl or settings.JWT_REFRESH_TTL)


def _require_subject(payload: Dict[str, object]) -> Dict[str, object]:
    if not isinstance(payload.get("sub"), str) or not payload.get("sub"):
        raise TokenError("Token is missing a subject")
    return payload


def decode_access_token(token: str) -> Dict[str, object]:
    payload = _decode(token)
    if payload.get("typ") not in (None, "access"):
        raise TokenError("Invalid token type for access token")
    return _require_subject(payload)


def decode_refresh_token(token: str) -> Dict[str, object]:
    payload = _decode(token)
    if payload.get("typ") != "refresh":
        raise TokenError("Invalid token type for refresh token")
    return _require_subject(payload)


__all__ = [
    "TokenError",
    "create_access_token",
    "create_refresh_token",
    "decode_access_token",
    "decode_refresh_token",
]
