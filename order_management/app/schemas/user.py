from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from ..models.user import Role
from ..services.listing import PaginationEnvelope

# --------------------------------------------------------------
# Principal
# --------------------------------------------------------------


class Principal(BaseModel):
    """Identity bound to an authenticated request (never the password hash)."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    name: str
    email: str
    phone: Optional[str] = None
    role: Role
    blocked: bool = False
    created_at: Optional[datetime] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class UserSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    role: Role


# --------------------------------------------------------------
# Authentication Schemas
# --------------------------------------------------------------


class UserRegistrationRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, examples=["Jane Doe"])
    email: EmailStr = Field(..., examples=["user@example.com"])
    password: str = Field(..., min_length=6, max_length=72, examples=["secret123"])
    phone: Optional[str] = Field(None, max_length=30)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name is required")
        return value


class UserLoginRequest(BaseModel):
    email: EmailStr = Field(..., examples=["user@example.com"])
    password: str = Field(..., examples=["secret123"])


class AuthTokenResponse(BaseModel):
    message: str
    token: str
    user: UserSummary


class SignInResponse(BaseModel):
    success: bool = True
    token: str
    user: UserSummary


class SuccessResponse(BaseModel):
    success: bool = True


class CurrentUserResponse(BaseModel):
    user: Principal
    token: Optional[str] = None


# --------------------------------------------------------------
# User Management Schemas
# --------------------------------------------------------------


class UserUpdateRequest(BaseModel):
    """Fields an admin may change on a user; other keys are ignored."""

    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=30)
    role: Optional[Role] = None
    blocked: Optional[bool] = None

    def changes(self) -> Dict[str, Any]:
        updates = self.model_dump(exclude_unset=True)
        if "role" in updates and updates["role"] is not None:
            updates["role"] = updates["role"].value
        # name, email, role and blocked are NOT NULL columns
        return {
            key: value
            for key, value in updates.items()
            if value is not None or key == "phone"
        }


class UserResponse(BaseModel):
    user: Principal


class MessageResponse(BaseModel):
    message: str


class UserListResponse(BaseModel):
    data: list[Principal]
    pagination: PaginationEnvelope
