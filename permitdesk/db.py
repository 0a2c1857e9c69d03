from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from permitdesk import settings

log = logging.getLogger("uvicorn.error")

USERS = "users"
PERMITS = "permits"


def create_client(url: Optional[str] = None) -> AsyncIOMotorClient:
    return AsyncIOMotorClient(
        url or settings.MONGO_URL,
        serverSelectionTimeoutMS=5000,
        tz_aware=True,
    )


def get_database(client: AsyncIOMotorClient, name: Optional[str] = None) -> AsyncIOMotorDatabase:
    return client[name or settings.DB_NAME]


async def ensure_indexes(db: Any) -> None:
    await db[USERS].create_index([("id", ASCENDING)], unique=True)
    await db[USERS].create_index([("email", ASCENDING)], unique=True)
    await db[USERS].create_index([("role", ASCENDING), ("createdAt", DESCENDING)])
    await db[PERMITS].create_index([("id", ASCENDING)], unique=True)
    await db[PERMITS].create_index([("wpNumber", ASCENDING)], unique=True)
    await db[PERMITS].create_index([("userId", ASCENDING), ("createdAt", DESCENDING)])
    log.info("Mongo indexes ensured on %s", getattr(db, "name", "database"))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def strip_mongo_id(document: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if document is None:
        return None
    data = dict(document)
    data.pop("_id", None)
    return data


def page_window(page: int, limit: int) -> Dict[str, int]:
    page = max(1, int(page or 1))
    limit = max(1, min(int(limit or settings.DEFAULT_PAGE_SIZE), settings.MAX_PAGE_SIZE))
    return {"page": page, "limit": limit, "skip": (page - 1) * limit}


def pagination(page: int, limit: int, count: int, total_items: int) -> Dict[str, int]:
    pages = (total_items + limit - 1) // limit if limit else 0
    return {"current": page, "total": pages, "count": count, "totalItems": total_items}
