from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from permitdesk import settings, user_store
from permitdesk.auth import Identity, ensure_admin
from permitdesk.errors import NotFound, ValidationError
from permitdesk.permit_service import validate_coordinates
from permitdesk.user_store import Role

log = logging.getLogger("uvicorn.error")

_MISSING = object()


async def toggle_sharing(db: Any, identity: Identity, enabled: Any = _MISSING) -> bool:
    """Set the caller's sharing flag, or flip it when ``enabled`` is omitted."""
    if enabled is _MISSING or enabled is None:
        current = await user_store.get_user_by_id(db, identity.user_id)
        if not current:
            raise NotFound("User not found")
        target = not bool(current.get("isLocationSharingEnabled"))
    elif isinstance(enabled, bool):
        target = enabled
    else:
        raise ValidationError("Enabled field must be a boolean")
    record = await user_store.set_location_sharing(db, identity.user_id, target)
    if not record:
        raise NotFound("User not found")
    log.info("Location sharing %s for %s", "enabled" if target else "disabled", identity.user_id)
    return bool(record.get("isLocationSharingEnabled"))


async def update_location(
    db: Any,
    identity: Identity,
    *,
    latitude: Any,
    longitude: Any,
    address: Optional[str] = None,
) -> Dict[str, Any]:
    lat, lon = validate_coordinates(latitude, longitude)
    label = (address or "").strip() or settings.UNKNOWN_ADDRESS
    record = await user_store.set_last_location(
        db,
        identity.user_id,
        latitude=lat,
        longitude=lon,
        address=label,
    )
    if not record:
        raise NotFound("User not found")
    return record["lastLocation"]


async def list_users(db: Any, identity: Identity, *, with_location: bool = False) -> List[Dict[str, Any]]:
    ensure_admin(identity)
    users = await user_store.list_users(db, role=Role.USER, with_location=with_location)
    return [user_store.public_user(user) for user in users]


__all__ = ["list_users", "toggle_sharing", "update_location"]
