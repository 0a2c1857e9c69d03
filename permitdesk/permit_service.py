"""Permit lifecycle rules.

A permit starts ``pending`` and moves once, by an admin, to ``approved``
or ``rejected``. Users only ever see the permits they submitted.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from permitdesk import permit_store, user_store
from permitdesk.auth import Identity, ensure_admin
from permitdesk.db import page_window, pagination, utcnow
from permitdesk.errors import ConflictError, NotFound, ValidationError
from permitdesk.permit_store import STATUS_APPROVED, STATUS_PENDING, TERMINAL_STATUSES
from permitdesk.user_store import Role

log = logging.getLogger("uvicorn.error")

REQUIRED_TEXT_FIELDS = ("woNumber", "wpNumber", "name", "designation", "plant", "workNature")
MAX_ESTIMATED_DAYS = 3650


def _clean_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def format_coordinates(latitude: float, longitude: float) -> str:
    return f"{latitude:.6f}, {longitude:.6f}"


def validate_coordinates(latitude: Any, longitude: Any) -> Tuple[float, float]:
    if not _is_number(latitude) or not _is_number(longitude):
        raise ValidationError("Latitude and longitude are required")
    lat, lon = float(latitude), float(longitude)
    if not -90.0 <= lat <= 90.0:
        raise ValidationError("Latitude must be between -90 and 90")
    if not -180.0 <= lon <= 180.0:
        raise ValidationError("Longitude must be between -180 and 180")
    return lat, lon


def _parse_estimated_days(value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError("Estimated days must be a whole number")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError("Estimated days must be a whole number")
        value = int(value)
    if isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError:
            raise ValidationError("Estimated days must be a whole number") from None
    if not isinstance(value, int):
        raise ValidationError("Estimated days must be a whole number")
    if value < 1:
        raise ValidationError("Estimated days must be at least 1")
    if value > MAX_ESTIMATED_DAYS:
        raise ValidationError(f"Estimated days must be at most {MAX_ESTIMATED_DAYS}")
    return value


def _owner_scope(identity: Identity) -> Optional[str]:
    match identity.role:
        case Role.ADMIN:
            return None
        case Role.USER:
            return identity.user_id
    raise ValueError(f"Unhandled role {identity.role!r}")


async def _with_submitters(db: Any, permits: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    users = await user_store.get_users_by_ids(db, [permit.get("userId") for permit in permits])
    populated = []
    for permit in permits:
        item = dict(permit)
        item["user"] = user_store.submitter_summary(users.get(permit.get("userId")))
        populated.append(item)
    return populated


async def _populate_one(db: Any, permit: Dict[str, Any]) -> Dict[str, Any]:
    return (await _with_submitters(db, [permit]))[0]


async def create_permit(db: Any, identity: Identity, data: Dict[str, Any]) -> Dict[str, Any]:
    values = {key: _clean_text(data.get(key)) for key in REQUIRED_TEXT_FIELDS}
    location = data.get("location")
    if any(not value for value in values.values()) or data.get("estimatedDays") in (None, "") or not location:
        raise ValidationError("All fields are required")
    if not isinstance(location, dict):
        raise ValidationError("Location must be an object")
    latitude, longitude = validate_coordinates(location.get("latitude"), location.get("longitude"))
    estimated_days = _parse_estimated_days(data.get("estimatedDays"))
    address = _clean_text(location.get("address")) or format_coordinates(latitude, longitude)

    if await permit_store.wp_number_exists(db, values["wpNumber"]):
        raise ConflictError("WP Number already exists")

    permit = await permit_store.save_permit(
        db,
        user_id=identity.user_id,
        wo_number=values["woNumber"],
        wp_number=values["wpNumber"],
        name=values["name"],
        designation=values["designation"],
        plant=values["plant"],
        work_nature=values["workNature"],
        estimated_days=estimated_days,
        location={"latitude": latitude, "longitude": longitude, "address": address},
    )
    # The newest submission always becomes the last known location.
    await user_store.set_last_location(
        db,
        identity.user_id,
        latitude=latitude,
        longitude=longitude,
        address=address,
    )
    log.info("Permit %s (WP %s) submitted by %s", permit["id"], permit["wpNumber"], identity.user_id)
    return await _populate_one(db, permit)


async def list_permits(db: Any, identity: Identity, *, page: int = 1, limit: int = 10) -> Dict[str, Any]:
    window = page_window(page, limit)
    permits, total = await permit_store.list_permits(
        db,
        owner_id=_owner_scope(identity),
        skip=window["skip"],
        limit=window["limit"],
    )
    items = await _with_submitters(db, permits)
    return {
        "items": items,
        "pagination": pagination(window["page"], window["limit"], len(items), total),
    }


async def get_permit(db: Any, identity: Identity, permit_id: str) -> Dict[str, Any]:
    permit = await permit_store.get_permit(db, permit_id, owner_id=_owner_scope(identity))
    if not permit:
        raise NotFound("Permit not found")
    return await _populate_one(db, permit)


async def update_permit(
    db: Any,
    identity: Identity,
    permit_id: str,
    *,
    status: Optional[str] = None,
    admin_comments: Optional[str] = None,
) -> Dict[str, Any]:
    ensure_admin(identity)
    existing = await permit_store.get_permit(db, permit_id)
    if not existing:
        raise NotFound("Permit not found")

    updates: Dict[str, Any] = {}
    if admin_comments is not None:
        updates["adminComments"] = str(admin_comments)

    target = _clean_text(status).lower() if status is not None else ""
    if status is not None and target not in TERMINAL_STATUSES:
        raise ValidationError("Status must be 'approved' or 'rejected'")
    if not target and not updates:
        raise ValidationError("Status or admin comments are required")

    current = existing.get("status", STATUS_PENDING)
    if not target or target == current:
        # Comments only, or re-applying the status already held; approval stamps stay as they are.
        updated = await permit_store.update_permit(db, permit_id, updates) if updates else existing
    elif current != STATUS_PENDING:
        raise ConflictError(f"Permit has already been {current}")
    else:
        updates["status"] = target
        if target == STATUS_APPROVED:
            updates["approvedBy"] = identity.user_id
            updates["approvedAt"] = utcnow()
        updated = await permit_store.update_permit(
            db,
            permit_id,
            updates,
            expected_status=STATUS_PENDING,
        )
        if updated is None:
            latest = await permit_store.get_permit(db, permit_id)
            if not latest:
                raise NotFound("Permit not found")
            raise ConflictError(f"Permit has already been {latest.get('status')}")
        log.info("Permit %s %s by admin %s", permit_id, target, identity.user_id)

    if updated is None:
        raise NotFound("Permit not found")
    return await _populate_one(db, updated)


async def delete_permit(db: Any, identity: Identity, permit_id: str) -> None:
    ensure_admin(identity)
    deleted = await permit_store.delete_permit(db, permit_id)
    if not deleted:
        raise NotFound("Permit not found")
    log.info("Permit %s (WP %s) deleted by admin %s", permit_id, deleted.get("wpNumber"), identity.user_id)


__all__ = [
    "create_permit",
    "delete_permit",
    "format_coordinates",
    "get_permit",
    "list_permits",
    "update_permit",
    "validate_coordinates",
]
