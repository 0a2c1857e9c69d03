from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from permitdesk import user_store
from permitdesk.auth_tokens import TokenError, decode_access_token
from permitdesk.errors import Forbidden, Unauthorized
from permitdesk.user_store import Role

log = logging.getLogger("uvicorn.error")

security_optional = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Identity:
    """The authenticated caller of a request."""

    user_id: str
    role: Role
    record: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def is_admin(self) -> bool:
        match self.role:
            case Role.ADMIN:
                return True
            case Role.USER:
                return False
        raise ValueError(f"Unhandled role {self.role!r}")


def get_db(request: Request) -> Any:
    return request.app.state.db


async def authenticate(db: Any, token: Optional[str]) -> Identity:
    if not token:
        raise Unauthorized("Unauthorized")
    try:
        payload = decode_access_token(token)
    except TokenError as exc:
        raise Unauthorized("Invalid authentication token") from exc
    record = await user_store.get_user_by_id(db, str(payload["sub"]))
    if not record:
        raise Unauthorized("Authentication required")
    try:
        role = user_store.normalize_role(record.get("role"))
    except ValueError as exc:
        log.warning("User %s has unknown role %r", record.get("id"), record.get("role"))
        raise Unauthorized("Authentication required") from exc
    return Identity(user_id=record["id"], role=role, record=record)


def ensure_admin(identity: Identity) -> Identity:
    if not identity.is_admin:
        raise Forbidden("Admin access required")
    return identity


async def require_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_optional),
    db: Any = Depends(get_db),
) -> Identity:
    token = credentials.credentials if credentials else None
    identity = await authenticate(db, token)
    request.state.identity = identity
    return identity


async def require_admin(identity: Identity = Depends(require_user)) -> Identity:
    return ensure_admin(identity)


__all__ = [
    "Identity",
    "authenticate",
    "ensure_admin",
    "get_db",
    "require_admin",
    "require_user",
    "security_optional",
]
