from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, StrictBool, StrictFloat, StrictInt

Coordinate = Optional[Union[StrictInt, StrictFloat]]


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------
class RegisterRequest(BaseModel):
    name: str = Field(..., max_length=128)
    email: str = Field(..., max_length=256)
    password: str = Field(..., max_length=128)


class LoginRequest(BaseModel):
    email: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class LastLocation(BaseModel):
    latitude: float
    longitude: float
    address: Optional[str] = None
    updatedAt: Optional[datetime] = None


class UserOut(BaseModel):
    id: str
    name: str
    email: str
    role: str
    isLocationSharingEnabled: bool = False
    lastLocation: Optional[LastLocation] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class AuthResponse(BaseModel):
    access_token: str
    expires_in: int
    refresh_token: str
    refresh_expires_in: int
    token_type: str = "bearer"
    user: UserOut


class UserListResponse(BaseModel):
    users: List[UserOut]


# ---------------------------------------------------------------------------
# Permits
# ---------------------------------------------------------------------------
class PermitLocationIn(BaseModel):
    latitude: Coordinate = None
    longitude: Coordinate = None
    address: Optional[str] = None


class PermitCreate(BaseModel):
    woNumber: Optional[str] = Field(default=None, max_length=120)
    wpNumber: Optional[str] = Field(default=None, max_length=120)
    name: Optional[str] = Field(default=None, max_length=128)
    designation: Optional[str] = Field(default=None, max_length=128)
    plant: Optional[str] = Field(default=None, max_length=256)
    workNature: Optional[str] = Field(default=None, max_length=1024)
    estimatedDays: Optional[Union[StrictInt, StrictFloat, str]] = None
    location: Optional[PermitLocationIn] = None


class PermitUpdate(BaseModel):
    status: Optional[str] = None
    adminComments: Optional[str] = Field(default=None, max_length=2000)


class PermitLocation(BaseModel):
    latitude: float
    longitude: float
    address: str


class Submitter(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    isLocationSharingEnabled: bool = False
    lastLocation: Optional[LastLocation] = None


class PermitOut(BaseModel):
    id: str
    userId: str
    woNumber: str
    wpNumber: str
    name: str
    designation: str
    plant: str
    workNature: str
    estimatedDays: int
    location: PermitLocation
    status: str
    adminComments: Optional[str] = None
    approvedBy: Optional[str] = None
    approvedAt: Optional[datetime] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None
    user: Optional[Submitter] = None


class Pagination(BaseModel):
    current: int
    total: int
    count: int
    totalItems: int


class PermitPage(BaseModel):
    items: List[PermitOut]
    pagination: Pagination


class PermitResult(BaseModel):
    message: str
    permit: PermitOut


class PermitDetail(BaseModel):
    permit: PermitOut


# ---------------------------------------------------------------------------
# Location
# ---------------------------------------------------------------------------
class LocationToggleRequest(BaseModel):
    enabled: Optional[StrictBool] = None


class LocationToggleResponse(BaseModel):
    message: str
    isLocationSharingEnabled: bool


class LocationUpdateRequest(BaseModel):
    latitude: Coordinate = None
    longitude: Coordinate = None
    address: Optional[str] = Field(default=None, max_length=512)


class LocationUpdateResponse(BaseModel):
    message: str
    location: LastLocation


# ---------------------------------------------------------------------------
# Admin management
# ---------------------------------------------------------------------------
class AdminCreate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=128)
    email: Optional[str] = Field(default=None, max_length=256)
    password: Optional[str] = Field(default=None, max_length=128)


class AdminUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=128)
    email: Optional[str] = Field(default=None, max_length=256)
    password: Optional[str] = Field(default=None, max_length=128)


class AdminPage(BaseModel):
    items: List[UserOut]
    pagination: Pagination


class AdminResult(BaseModel):
    message: str
    admin: UserOut


class AdminDetail(BaseModel):
    admin: UserOut


class ActionResult(BaseModel):
    message: str


def dump(model: BaseModel) -> Dict[str, Any]:
    return model.model_dump(exclude_unset=True)


__all__ = [
    "ActionResult",
    "AdminCreate",
    "AdminDetail",
    "AdminPage",
    "AdminResult",
    "AdminUpdate",
    "AuthResponse",
    "LocationToggleRequest",
    "LocationToggleResponse",
    "LocationUpdateRequest",
    "LocationUpdateResponse",
    "LoginRequest",
    "PermitCreate",
    "PermitDetail",
    "PermitOut",
    "PermitPage",
    "PermitResult",
    "PermitUpdate",
    "RefreshRequest",
    "RegisterRequest",
    "UserListResponse",
    "UserOut",
    "dump",
]
