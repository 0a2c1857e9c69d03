from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple

from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from permitdesk.db import PERMITS, strip_mongo_id, utcnow
from permitdesk.errors import ConflictError

log = logging.getLogger("uvicorn.error")

STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"
PERMIT_STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED)
TERMINAL_STATUSES = (STATUS_APPROVED, STATUS_REJECTED)


async def get_permit(db: Any, permit_id: str, *, owner_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
    query: Dict[str, Any] = {"id": permit_id}
    if owner_id is not None:
        query["userId"] = owner_id
    return strip_mongo_id(await db[PERMITS].find_one(query))


async def wp_number_exists(db: Any, wp_number: str) -> bool:
    return await db[PERMITS].find_one({"wpNumber": wp_number}) is not None


async def save_permit(
    db: Any,
    *,
    user_id: str,
    wo_number: str,
    wp_number: str,
    name: str,
    designation: str,
    plant: str,
    work_nature: str,
    estimated_days: int,
    location: Dict[str, Any],
) -> Dict[str, Any]:
    now = utcnow()
    document = {
        "id": uuid.uuid4().hex,
        "userId": user_id,
        "woNumber": wo_number,
        "wpNumber": wp_number,
        "name": name,
        "designation": designation,
        "plant": plant,
        "workNature": work_nature,
        "estimatedDays": int(estimated_days),
        "location": {
            "latitude": float(location["latitude"]),
            "longitude": float(location["longitude"]),
            "address": location["address"],
        },
        "status": STATUS_PENDING,
        "createdAt": now,
        "updatedAt": now,
    }
    try:
        await db[PERMITS].insert_one(document)
    except DuplicateKeyError as exc:
        raise ConflictError("WP Number already exists") from exc
    return strip_mongo_id(document)


async def update_permit(
    db: Any,
    permit_id: str,
    updates: Dict[str, Any],
    *,
    expected_status: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """Apply ``updates`` and return the new document.

    With ``expected_status`` the write only matches while the permit still
    holds that status, so a concurrent transition makes this return ``None``.
    """
    query: Dict[str, Any] = {"id": permit_id}
    if expected_status is not None:
        query["status"] = expected_status
    payload = dict(updates)
    payload["updatedAt"] = utcnow()
    updated = await db[PERMITS].find_one_and_update(
        query,
        {"$set": payload},
        return_document=ReturnDocument.AFTER,
    )
    return strip_mongo_id(updated)


async def delete_permit(db: Any, permit_id: str) -> Optional[Dict[str, Any]]:
    return strip_mongo_id(await db[PERMITS].find_one_and_delete({"id": permit_id}))


async def list_permits(
    db: Any,
    *,
    owner_id: Optional[str] = None,
    skip: int = 0,
    limit: int = 10,
) -> Tuple[List[Dict[str, Any]], int]:
    query: Dict[str, Any] = {}
    if owner_id is not None:
        query["userId"] = owner_id
    cursor = db[PERMITS].find(query, sort=[("createdAt", DESCENDING)], skip=skip, limit=limit)
    rows = await cursor.to_list(length=None)
    total = await db[PERMITS].count_documents(query)
    return [strip_mongo_id(row) for row in rows], total


__all__ = [
    "PERMIT_STATUSES",
    "STATUS_APPROVED",
    "STATUS_PENDING",
    "STATUS_REJECTED",
    "TERMINAL_STATUSES",
    "delete_permit",
    "get_permit",
    "list_permits",
    "save_permit",
    "update_permit",
    "wp_number_exists",
]
