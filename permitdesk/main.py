# permitdesk/main.py
from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from permitdesk import admin_service, location_service, permit_service, settings, user_store, views
from permitdesk.api_models import (
    ActionResult,
    AdminCreate,
    AdminDetail,
    AdminPage,
    AdminResult,
    AdminUpdate,
    AuthResponse,
    LocationToggleRequest,
    LocationToggleResponse,
    LocationUpdateRequest,
    LocationUpdateResponse,
    LoginRequest,
    PermitCreate,
    PermitDetail,
    PermitPage,
    PermitResult,
    PermitUpdate,
    RefreshRequest,
    RegisterRequest,
    UserListResponse,
    UserOut,
    dump,
)
from permitdesk.auth import Identity, get_db, require_admin, require_user
from permitdesk.auth_tokens import (
    TokenError,
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
)
from permitdesk.db import create_client, ensure_indexes, get_database
from permitdesk.errors import ConflictError, PermitDeskError, Unauthorized, ValidationError
from permitdesk.user_store import MIN_PASSWORD_LENGTH, Role

log = logging.getLogger("uvicorn.error")


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _issue_tokens(user: Dict[str, Any]) -> AuthResponse:
    access_token, access_exp = create_access_token(user_id=user["id"], role=user["role"])
    refresh_token, refresh_exp = create_refresh_token(user_id=user["id"], role=user["role"])
    now = int(time.time())
    return AuthResponse(
        access_token=access_token,
        expires_in=max(int(access_exp - now), 0),
        refresh_token=refresh_token,
        refresh_expires_in=max(int(refresh_exp - now), 0),
        user=user_store.public_user(user),
    )


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    message = first.get("msg") or "Invalid value"
    return f"{location}: {message}" if location else message


async def _bootstrap_admin_from_env(db: Any) -> None:
    config = settings.bootstrap_admin()
    email, password, name = config["email"], config["password"], config["name"]
    if not email or not password:
        return
    try:
        user = await user_store.get_user_by_email(db, email)
        if user:
            await user_store.set_password(db, user["id"], password)
            if user.get("role") != Role.ADMIN.value:
                await user_store.set_role(db, user["id"], Role.ADMIN)
            log.warning("Bootstrap admin reset for '%s'. Remove BOOTSTRAP_ADMIN_* env vars after use.", email)
        else:
            await user_store.create_user(db, name=name, email=email, password=password, role=Role.ADMIN)
            log.warning("Bootstrap admin created for '%s'. Remove BOOTSTRAP_ADMIN_* env vars after use.", email)
    except Exception:
        log.exception("Bootstrap admin routine failed for '%s'.", email)


# ---------------------------------------------------------------------------
# Auth API
# ---------------------------------------------------------------------------
api_router = APIRouter(prefix="/api")


@api_router.post("/auth/register", response_model=AuthResponse, status_code=201)
async def register(payload: RegisterRequest, db: Any = Depends(get_db)) -> AuthResponse:
    name = payload.name.strip()
    email = user_store.normalize_email(payload.email)
    if not name or not email or not payload.password:
        raise ValidationError("Name, email, and password are required")
    if len(payload.password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if await user_store.email_in_use(db, email):
        raise ConflictError("User with this email already exists")
    user = await user_store.create_user(db, name=name, email=email, password=payload.password)
    log.info("Registered user %s", email)
    return _issue_tokens(user)


@api_router.post("/auth/login", response_model=AuthResponse)
async def login(request: Request, payload: LoginRequest, db: Any = Depends(get_db)) -> AuthResponse:
    email = user_store.normalize_email(payload.email)
    if not email or not payload.password:
        raise ValidationError("Email and password are required")
    user = await user_store.verify_credentials(db, email, payload.password)
    if not user:
        log.info("Login failed for %s", email)
        raise Unauthorized("Invalid email or password")
    log.info("Login success for %s via %s", email, getattr(request.client, "host", "-"))
    return _issue_tokens(user)


@api_router.post("/auth/refresh", response_model=AuthResponse)
async def refresh(payload: RefreshRequest, db: Any = Depends(get_db)) -> AuthResponse:
    token = (payload.refresh_token or "").strip()
    if not token:
        raise ValidationError("Refresh token is required")
    try:
        data = decode_refresh_token(token)
    except TokenError as exc:
        raise Unauthorized("Invalid refresh token") from exc
    user = await user_store.get_user_by_id(db, str(data["sub"]))
    if not user:
        raise Unauthorized("Authentication required")
    return _issue_tokens(user)


@api_router.get("/auth/me", response_model=UserOut)
async def me(identity: Identity = Depends(require_user)) -> Dict[str, Any]:
    return user_store.public_user(identity.record)


# ---------------------------------------------------------------------------
# Permits API
# ---------------------------------------------------------------------------
@api_router.post("/permits", response_model=PermitResult, status_code=201)
async def create_permit(
    payload: PermitCreate,
    identity: Identity = Depends(require_user),
    db: Any = Depends(get_db),
) -> Dict[str, Any]:
    permit = await permit_service.create_permit(db, identity, dump(payload))
    return {"message": "Permit submitted successfully", "permit": permit}


@api_router.get("/permits", response_model=PermitPage)
async def list_permits(
    page: int = Query(1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE),
    identity: Identity = Depends(require_user),
    db: Any = Depends(get_db),
) -> Dict[str, Any]:
    return await permit_service.list_permits(db, identity, page=page, limit=limit)


@api_router.get("/permits/{permit_id}", response_model=PermitDetail)
async def get_permit(
    permit_id: str,
    identity: Identity = Depends(require_user),
    db: Any = Depends(get_db),
) -> Dict[str, Any]:
    return {"permit": await permit_service.get_permit(db, identity, permit_id)}


@api_router.put("/permits/{permit_id}", response_model=PermitResult)
async def update_permit(
    permit_id: str,
    payload: PermitUpdate,
    identity: Identity = Depends(require_admin),
    db: Any = Depends(get_db),
) -> Dict[str, Any]:
    permit = await permit_service.update_permit(
        db,
        identity,
        permit_id,
        status=payload.status,
        admin_comments=payload.adminComments,
    )
    return {"message": "Permit updated successfully", "permit": permit}


@api_router.delete("/permits/{permit_id}", response_model=ActionResult)
async def delete_permit(
    permit_id: str,
    identity: Identity = Depends(require_admin),
    db: Any = Depends(get_db),
) -> Dict[str, Any]:
    await permit_service.delete_permit(db, identity, permit_id)
    return {"message": "Permit deleted successfully"}


# ---------------------------------------------------------------------------
# Users & location API
# ---------------------------------------------------------------------------
@api_router.get("/users", response_model=UserListResponse)
async def list_users(
    with_location: bool = Query(False, alias="withLocation"),
    identity: Identity = Depends(require_admin),
    db: Any = Depends(get_db),
) -> Dict[str, Any]:
    users = await location_service.list_users(db, identity, with_location=with_location)
    return {"users": users}


@api_router.post("/location/toggle", response_model=LocationToggleResponse)
async def toggle_location(
    payload: Optional[LocationToggleRequest] = None,
    identity: Identity = Depends(require_user),
    db: Any = Depends(get_db),
) -> Dict[str, Any]:
    enabled = payload.enabled if payload is not None else None
    state = await location_service.toggle_sharing(db, identity, enabled)
    return {
        "message": f"Location sharing {'enabled' if state else 'disabled'}",
        "isLocationSharingEnabled": state,
    }


@api_router.post("/location/update", response_model=LocationUpdateResponse)
async def update_location(
    payload: LocationUpdateRequest,
    identity: Identity = Depends(require_user),
    db: Any = Depends(get_db),
) -> Dict[str, Any]:
    location = await location_service.update_location(
        db,
        identity,
        latitude=payload.latitude,
        longitude=payload.longitude,
        address=payload.address,
    )
    return {"message": "Location updated successfully", "location": location}


# ---------------------------------------------------------------------------
# Admin management API
# ---------------------------------------------------------------------------
@api_router.get("/admin/admins", response_model=AdminPage)
async def list_admins(
    page: int = Query(1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE),
    identity: Identity = Depends(require_admin),
    db: Any = Depends(get_db),
) -> Dict[str, Any]:
    return await admin_service.list_admins(db, identity, page=page, limit=limit)


@api_router.post("/admin/admins", response_model=AdminResult, status_code=201)
async def create_admin(
    payload: AdminCreate,
    identity: Identity = Depends(require_admin),
    db: Any = Depends(get_db),
) -> Dict[str, Any]:
    admin = await admin_service.create_admin(
        db,
        identity,
        name=payload.name,
        email=payload.email,
        password=payload.password,
    )
    return {"message": "Admin created successfully", "admin": admin}


@api_router.get("/admin/admins/{admin_id}", response_model=AdminDetail)
async def get_admin(
    admin_id: str,
    identity: Identity = Depends(require_admin),
    db: Any = Depends(get_db),
) -> Dict[str, Any]:
    return {"admin": await admin_service.get_admin(db, identity, admin_id)}


@api_router.put("/admin/admins/{admin_id}", response_model=AdminResult)
async def update_admin(
    admin_id: str,
    payload: AdminUpdate,
    identity: Identity = Depends(require_admin),
    db: Any = Depends(get_db),
) -> Dict[str, Any]:
    admin = await admin_service.update_admin(
        db,
        identity,
        admin_id,
        name=payload.name,
        email=payload.email,
        password=payload.password,
    )
    return {"message": "Admin updated successfully", "admin": admin}


@api_router.delete("/admin/admins/{admin_id}", response_model=ActionResult)
async def delete_admin(
    admin_id: str,
    identity: Identity = Depends(require_admin),
    db: Any = Depends(get_db),
) -> Dict[str, Any]:
    await admin_service.delete_admin(db, identity, admin_id)
    return {"message": "Admin deleted successfully"}


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
@asynccontextmanager
async def _lifespan(app: FastAPI):
    log.info("Using database %s (env=%s)", getattr(app.state.db, "name", settings.DB_NAME), settings.APP_ENV)
    await ensure_indexes(app.state.db)
    await _bootstrap_admin_from_env(app.state.db)
    yield
    if app.state.client is not None:
        app.state.client.close()


def create_app(database: Any = None) -> FastAPI:
    """Build the application.

    ``database`` is any motor-compatible database object; when omitted a
    client is opened against ``MONGO_URL`` and closed on shutdown.
    """
    app = FastAPI(title="PermitDesk API", version="1.0.0", lifespan=_lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins(),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if database is None:
        app.state.client = create_client()
        app.state.db = get_database(app.state.client)
    else:
        app.state.client = None
        app.state.db = database

    @app.exception_handler(PermitDeskError)
    async def _domain_error(request: Request, exc: PermitDeskError) -> JSONResponse:
        if exc.status_code >= 500:
            log.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.exception_handler(RequestValidationError)
    async def _request_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": _validation_message(exc)})

    @app.exception_handler(Exception)
    async def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        log.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    @app.get("/healthz")
    def healthz() -> Dict[str, bool]:
        return {"ok": True}

    app.include_router(api_router)
    app.include_router(views.router)
    return app


configure_logging()
app = create_app()
