from __future__ import annotations

import logging
import uuid
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import bcrypt
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from permitdesk import settings
from permitdesk.db import USERS, strip_mongo_id, utcnow
from permitdesk.errors import ConflictError

log = logging.getLogger("uvicorn.error")

MIN_PASSWORD_LENGTH = 6

# Fields never returned to API callers.
_PRIVATE_FIELDS = ("_id", "password_hash")


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


def normalize_role(value: Any) -> Role:
    if isinstance(value, Role):
        return value
    try:
        return Role(str(value or "").strip().lower())
    except ValueError:
        raise ValueError(f"Unknown role '{value}'") from None


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


# ---------------------------------------------------------------------------
# Password helpers
# ---------------------------------------------------------------------------


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


# ---------------------------------------------------------------------------
# Row helpers
# ---------------------------------------------------------------------------


def public_user(document: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if document is None:
        return None
    data = {key: value for key, value in document.items() if key not in _PRIVATE_FIELDS}
    data.setdefault("isLocationSharingEnabled", False)
    data.setdefault("lastLocation", None)
    return data


def submitter_summary(document: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if document is None:
        return None
    return {
        "id": document.get("id"),
        "name": document.get("name"),
        "email": document.get("email"),
        "isLocationSharingEnabled": bool(document.get("isLocationSharingEnabled")),
        "lastLocation": document.get("lastLocation"),
    }


# ---------------------------------------------------------------------------
# User CRUD operations
# ---------------------------------------------------------------------------


async def get_user_by_id(db: Any, user_id: str) -> Optional[Dict[str, Any]]:
    return strip_mongo_id(await db[USERS].find_one({"id": user_id}))


async def get_user_by_email(db: Any, email: str) -> Optional[Dict[str, Any]]:
    return strip_mongo_id(await db[USERS].find_one({"email": normalize_email(email)}))


async def get_users_by_ids(db: Any, user_ids: List[str]) -> Dict[str, Dict[str, Any]]:
    unique = sorted({value for value in user_ids if value})
    if not unique:
        return {}
    rows = await db[USERS].find({"id": {"$in": unique}}).to_list(length=None)
    return {row["id"]: strip_mongo_id(row) for row in rows}


async def email_in_use(db: Any, email: str, *, exclude_user_id: Optional[str] = None) -> bool:
    query: Dict[str, Any] = {"email": normalize_email(email)}
    if exclude_user_id:
        query["id"] = {"$ne": exclude_user_id}
    return await db[USERS].find_one(query) is not None


async def create_user(
    db: Any,
    *,
    name: str,
    email: str,
    password: str,
    role: Role = Role.USER,
) -> Dict[str, Any]:
    now = utcnow()
    document = {
        "id": uuid.uuid4().hex,
        "name": name.strip(),
        "email": normalize_email(email),
        "password_hash": hash_password(password),
        "role": normalize_role(role).value,
        "isLocationSharingEnabled": False,
        "createdAt": now,
        "updatedAt": now,
    }
    try:
        await db[USERS].insert_one(document)
    except DuplicateKeyError as exc:
        raise ConflictError("User with this email already exists") from exc
    log.info("Created %s account %s (%s)", document["role"], document["email"], document["id"])
    return strip_mongo_id(document)


async def update_user(
    db: Any,
    user_id: str,
    *,
    role: Optional[Role] = None,
    **fields: Any,
) -> Optional[Dict[str, Any]]:
    allowed = {"name", "email", "isLocationSharingEnabled", "lastLocation"}
    updates = {key: value for key, value in fields.items() if key in allowed}
    if "email" in updates:
        updates["email"] = normalize_email(updates["email"])
    if "password" in fields and fields["password"]:
        updates["password_hash"] = hash_password(fields["password"])
    query: Dict[str, Any] = {"id": user_id}
    if role is not None:
        query["role"] = role.value
    if not updates:
        return strip_mongo_id(await db[USERS].find_one(query))
    updates["updatedAt"] = utcnow()
    try:
        updated = await db[USERS].find_one_and_update(
            query,
            {"$set": updates},
            return_document=ReturnDocument.AFTER,
        )
    except DuplicateKeyError as exc:
        raise ConflictError("Email is already taken by another user") from exc
    return strip_mongo_id(updated)


async def set_password(db: Any, user_id: str, password: str) -> bool:
    result = await db[USERS].update_one(
        {"id": user_id},
        {"$set": {"password_hash": hash_password(password), "updatedAt": utcnow()}},
    )
    return result.matched_count > 0


async def set_role(db: Any, user_id: str, role: Role) -> Optional[Dict[str, Any]]:
    updated = await db[USERS].find_one_and_update(
        {"id": user_id},
        {"$set": {"role": normalize_role(role).value, "updatedAt": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    return strip_mongo_id(updated)


async def set_location_sharing(db: Any, user_id: str, enabled: bool) -> Optional[Dict[str, Any]]:
    return await update_user(db, user_id, isLocationSharingEnabled=bool(enabled))


async def set_last_location(
    db: Any,
    user_id: str,
    *,
    latitude: float,
    longitude: float,
    address: str,
) -> Optional[Dict[str, Any]]:
    location = {
        "latitude": float(latitude),
        "longitude": float(longitude),
        "address": address,
        "updatedAt": utcnow(),
    }
    return await update_user(db, user_id, lastLocation=location)


async def delete_user(db: Any, user_id: str, *, role: Optional[Role] = None) -> Optional[Dict[str, Any]]:
    query: Dict[str, Any] = {"id": user_id}
    if role is not None:
        query["role"] = role.value
    return strip_mongo_id(await db[USERS].find_one_and_delete(query))


async def count_users(db: Any, *, role: Optional[Role] = None) -> int:
    query: Dict[str, Any] = {}
    if role is not None:
        query["role"] = role.value
    return await db[USERS].count_documents(query)


async def list_users(
    db: Any,
    *,
    role: Optional[Role] = None,
    with_location: bool = False,
) -> List[Dict[str, Any]]:
    query: Dict[str, Any] = {}
    if role is not None:
        query["role"] = role.value
    if with_location:
        query["lastLocation"] = {"$exists": True, "$ne": None}
    cursor = db[USERS].find(
        query,
        sort=[("lastLocation.updatedAt", DESCENDING), ("createdAt", DESCENDING)],
    )
    return [strip_mongo_id(row) for row in await cursor.to_list(length=None)]


async def list_users_page(
    db: Any,
    *,
    role: Role,
    skip: int,
    limit: int,
) -> Tuple[List[Dict[str, Any]], int]:
    query = {"role": role.value}
    cursor = db[USERS].find(query, sort=[("createdAt", DESCENDING)], skip=skip, limit=limit)
    rows = await cursor.to_list(length=None)
    total = await db[USERS].count_documents(query)
    return [strip_mongo_id(row) for row in rows], total


async def verify_credentials(db: Any, email: str, password: str) -> Optional[Dict[str, Any]]:
    user = await get_user_by_email(db, email)
    if not user:
        return None
    if not verify_password(password, user.get("password_hash")):
        return None
    return user


__all__ = [
    "MIN_PASSWORD_LENGTH",
    "Role",
    "count_users",
    "create_user",
    "delete_user",
    "email_in_use",
    "get_user_by_email",
    "get_user_by_id",
    "get_users_by_ids",
    "hash_password",
    "list_users",
    "list_users_page",
    "normalize_email",
    "normalize_role",
    "public_user",
    "set_last_location",
    "set_location_sharing",
    "set_password",
    "set_role",
    "submitter_summary",
    "update_user",
    "verify_credentials",
    "verify_password",
]
