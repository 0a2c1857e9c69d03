from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from permitdesk import user_store
from permitdesk.auth import Identity, ensure_admin
from permitdesk.db import page_window, pagination
from permitdesk.errors import ConflictError, NotFound, ValidationError
from permitdesk.user_store import MIN_PASSWORD_LENGTH, Role

log = logging.getLogger("uvicorn.error")


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def _check_password(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


async def list_admins(db: Any, identity: Identity, *, page: int = 1, limit: int = 10) -> Dict[str, Any]:
    ensure_admin(identity)
    window = page_window(page, limit)
    admins, total = await user_store.list_users_page(
        db,
        role=Role.ADMIN,
        skip=window["skip"],
        limit=window["limit"],
    )
    items = [user_store.public_user(admin) for admin in admins]
    return {
        "items": items,
        "pagination": pagination(window["page"], window["limit"], len(items), total),
    }


async def get_admin(db: Any, identity: Identity, admin_id: str) -> Dict[str, Any]:
    ensure_admin(identity)
    record = await user_store.get_user_by_id(db, admin_id)
    if not record or record.get("role") != Role.ADMIN.value:
        raise NotFound("Admin not found")
    return user_store.public_user(record)


async def create_admin(
    db: Any,
    identity: Identity,
    *,
    name: Optional[str],
    email: Optional[str],
    password: Optional[str],
) -> Dict[str, Any]:
    ensure_admin(identity)
    name, email, password = _clean(name), _clean(email), password or ""
    if not name or not email or not password:
        raise ValidationError("Name, email, and password are required")
    _check_password(password)
    if await user_store.email_in_use(db, email):
        raise ConflictError("User with this email already exists")
    record = await user_store.create_user(db, name=name, email=email, password=password, role=Role.ADMIN)
    log.info("Admin %s created by %s", record["id"], identity.user_id)
    return user_store.public_user(record)


async def update_admin(
    db: Any,
    identity: Identity,
    admin_id: str,
    *,
    name: Optional[str],
    email: Optional[str],
    password: Optional[str] = None,
) -> Dict[str, Any]:
    ensure_admin(identity)
    name, email = _clean(name), _clean(email)
    if not name or not email:
        raise ValidationError("Name and email are required")
    fields: Dict[str, Any] = {"name": name, "email": email}
    if password:
        _check_password(password)
        fields["password"] = password
    if await user_store.email_in_use(db, email, exclude_user_id=admin_id):
        raise ConflictError("Email is already taken by another user")
    record = await user_store.update_user(db, admin_id, role=Role.ADMIN, **fields)
    if not record:
        raise NotFound("Admin not found")
    log.info("Admin %s updated by %s", admin_id, identity.user_id)
    return user_store.public_user(record)


async def delete_admin(db: Any, identity: Identity, admin_id: str) -> None:
    """Delete an admin account, keeping at least one admin.

    The count check and the delete are separate operations: two concurrent
    deletions of the last two admins can both pass the check.
    """
    ensure_admin(identity)
    if admin_id == identity.user_id:
        raise ValidationError("You cannot delete your own account")
    if await user_store.count_users(db, role=Role.ADMIN) <= 1:
        log.warning("Refused to delete admin %s: last admin", admin_id)
        raise ValidationError("Cannot delete the last admin. At least one admin must exist.")
    deleted = await user_store.delete_user(db, admin_id, role=Role.ADMIN)
    if not deleted:
        raise NotFound("Admin not found")
    log.info("Admin %s (%s) deleted by %s", admin_id, deleted.get("email"), identity.user_id)


__all__ = ["create_admin", "delete_admin", "get_admin", "list_admins", "update_admin"]
