"""Admin user model type definitions."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from uuid import UUID, uuid4


class AdminRole(str, Enum):
    """Staff roles. Superadmins can also manage other admin accounts."""

    ADMIN = "admin"
    SUPERADMIN = "superadmin"


@dataclass
class AdminUser:
    """Staff account that signs in to the admin API.

    Emails are stored lowercased and are unique.
    """

    email: str
    password_hash: str
    role: AdminRole = AdminRole.ADMIN
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
