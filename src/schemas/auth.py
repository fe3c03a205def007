"""Admin authentication schemas."""

from datetime import datetime, timezone
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from src.models.admin import AdminRole

ADMIN_ROLES = frozenset(role.value for role in AdminRole)


class AdminContext(BaseModel):
    """Authenticated operator for the current request."""

    model_config = ConfigDict(from_attributes=True)

    subject: str = Field(description="Operator identifier (from JWT sub claim)")
    email: str | None = Field(default=None, description="Operator email address if available")
    role: str = Field(description="Operator role (admin or superadmin)")


class TokenPayload(BaseModel):
    """Claims of an admin JWT."""

    model_config = ConfigDict(from_attributes=True)

    sub: str = Field(description="Subject - the operator identifier")
    email: str | None = Field(default=None, description="Operator email address")
    role: str | None = Field(default=None, description="Operator role")
    exp: int = Field(description="Expiration timestamp (Unix epoch)")
    iat: int = Field(description="Issued at timestamp (Unix epoch)")
    aud: str | None = Field(default=None, description="Audience - intended recipient")

    @property
    def expiration_datetime(self) -> datetime:
        """Get expiration as datetime object."""
        return datetime.fromtimestamp(self.exp, tz=timezone.utc)

    @property
    def is_admin(self) -> bool:
        """Check whether the token carries an operator role."""
        return self.role in ADMIN_ROLES

    def to_admin_context(self) -> AdminContext:
        """Convert token payload to AdminContext."""
        return AdminContext(subject=self.sub, email=self.email, role=self.role or "")


class LoginRequest(BaseModel):
    """Request schema for admin login."""

    email: EmailStr = Field(..., description="Admin email address")
    password: str = Field(..., min_length=1, description="Admin password")


class LoginResponse(BaseModel):
    """Token pair returned by login and refresh."""

    access_token: str = Field(description="JWT access token for the Authorization header")
    refresh_token: str = Field(description="JWT refresh token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(description="Access token lifetime in seconds")
    role: AdminRole = Field(description="Role of the signed-in admin")


class RefreshTokenRequest(BaseModel):
    """Request schema for exchanging a refresh token."""

    refresh_token: str = Field(..., min_length=1, description="Refresh token from login")


class AdminUserCreateRequest(BaseModel):
    """Request schema for creating a staff account."""

    email: EmailStr = Field(..., description="Login email of the new account")
    password: str = Field(..., min_length=8, description="Initial password (8 characters to 72 bytes)")
    role: AdminRole = Field(default=AdminRole.ADMIN, description="Account role")


class AdminUserResponse(BaseModel):
    """Staff account without its password hash."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(description="Account ID")
    email: str = Field(description="Login email")
    role: AdminRole = Field(description="Account role")
    created_at: datetime = Field(description="When the account was created")
