"""Admin accounts: password login, token refresh and account management."""

import asyncio
import logging
from dataclasses import dataclass
from uuid import UUID

import bcrypt

from src.api.middleware.auth import AuthError, decode_jwt, issue_admin_token
from src.core.config import Settings
from src.core.errors import AuthenticationError, ValidationError
from src.models.admin import AdminRole, AdminUser
from src.stores.base import OrderStore, retry_on_conflict

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
# bcrypt only reads the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72


@dataclass(frozen=True)
class TokenPair:
    """Access and refresh tokens issued on login or refresh."""

    access_token: str
    refresh_token: str
    expires_in: int
    role: AdminRole


def hash_password(password: str, rounds: int) -> str:
    """Hash a password with bcrypt at the given cost factor."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("ascii")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored bcrypt hash.

    Malformed hashes and over-long passwords never match.
    """
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("ascii"))
    except ValueError:
        return False


def check_password_strength(password: str) -> None:
    """Reject passwords bcrypt cannot store faithfully or that are too short.

    Raises:
        ValidationError: If the password is too short or too long.
    """
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")


class AdminAuthService:
    """Signs staff in and manages their accounts.

    Access tokens are short-lived and signed with ADMIN_JWT_SECRET. Refresh
    tokens live longer and are signed with ADMIN_JWT_REFRESH_SECRET, so one
    can never be presented in place of the other. bcrypt runs in a worker
    thread to keep the event loop free.
    """

    def __init__(self, store: OrderStore, settings: Settings) -> None:
        self.store = store
        self.settings = settings

    def _issue(self, admin: AdminUser) -> TokenPair:
        claims = {
            "subject": str(admin.id),
            "audience": self.settings.admin_jwt_audience,
            "role": admin.role.value,
            "email": admin.email,
        }
        return TokenPair(
            access_token=issue_admin_token(
                secret=self.settings.admin_jwt_secret,
                ttl_seconds=self.settings.admin_access_token_ttl_seconds,
                **claims,
            ),
            refresh_token=issue_admin_token(
                secret=self.settings.admin_jwt_refresh_secret,
                ttl_seconds=self.settings.admin_refresh_token_ttl_seconds,
                **claims,
            ),
            expires_in=self.settings.admin_access_token_ttl_seconds,
            role=admin.role,
        )

    async def login(self, email: str, password: str) -> TokenPair:
        """Verify an email and password and issue tokens.

        Raises:
            AuthenticationError: If the account is unknown or the password is wrong.
        """
        async with self.store.transaction() as tx:
            admin = await tx.get_admin_user_by_email(email.strip().lower())

        if admin is None or not await asyncio.to_thread(verify_password, password, admin.password_hash):
            logger.warning("Failed admin login for %s", email)
            raise AuthenticationError("Invalid credentials")

        logger.info("Admin %s signed in", admin.email)
        return self._issue(admin)

    async def refresh(self, refresh_token: str) -> TokenPair:
        """Exchange a refresh token for a new token pair.

        The role is re-read from the account, so role changes apply on refresh.

        Raises:
            AuthenticationError: If the token is invalid or the account is gone.
        """
        try:
            payload = decode_jwt(
                refresh_token,
                self.settings.admin_jwt_refresh_secret,
                self.settings.admin_jwt_audience,
            )
            admin_id = UUID(payload.sub)
        except AuthError as e:
            raise AuthenticationError(e.message) from e
        except ValueError as e:
            raise AuthenticationError("Invalid refresh token") from e

        async with self.store.transaction() as tx:
            admin = await tx.get_admin_user(admin_id)
        if admin is None:
            raise AuthenticationError("Admin account no longer exists")

        return self._issue(admin)

    async def create_admin_user(self, email: str, password: str, role: AdminRole = AdminRole.ADMIN) -> AdminUser:
        """Create a staff account.

        Raises:
            ValidationError: If the password is unacceptable.
            ConflictError: If the email is already registered.
        """
        check_password_strength(password)
        password_hash = await asyncio.to_thread(hash_password, password, self.settings.password_hash_rounds)
        admin = AdminUser(email=email.strip().lower(), password_hash=password_hash, role=role)

        async for attempt in retry_on_conflict():
            with attempt:
                async with self.store.transaction() as tx:
                    await tx.add_admin_user(admin)

        logger.info("Created %s account %s", role.value, admin.email)
        return admin

    async def ensure_superadmin(self) -> AdminUser | None:
        """Create the configured superadmin unless that email already has an account.

        Returns:
            AdminUser | None: The existing or new account, or None when no
            seed credentials are configured.
        """
        if not self.settings.superadmin_seed_configured:
            return None

        email = self.settings.superadmin_email.strip().lower()
        async with self.store.transaction() as tx:
            existing = await tx.get_admin_user_by_email(email)
        if existing is not None:
            logger.debug("Superadmin %s already exists", email)
            return existing

        return await self.create_admin_user(email, self.settings.superadmin_password, AdminRole.SUPERADMIN)
