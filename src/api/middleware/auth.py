"""Admin JWT verification and issuing."""

import time
from enum import Enum
from typing import Any

import jwt

from src.schemas.auth import TokenPayload

JWT_ALGORITHM = "HS256"
DEFAULT_TOKEN_TTL_SECONDS = 15 * 60


class AuthErrorCode(str, Enum):
    """Authentication error codes."""

    UNAUTHORIZED = "UNAUTHORIZED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    INVALID_TOKEN = "INVALID_TOKEN"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"


class AuthError(Exception):
    """Authentication error with specific error code.

    Raised when JWT validation fails for any reason.
    The error code indicates the specific failure reason.
    """

    def __init__(self, message: str, code: AuthErrorCode) -> None:
        """Initialize authentication error.

        Args:
            message: Human-readable error description.
            code: Specific error code for programmatic handling.
        """
        self.message = message
        self.code = code
        super().__init__(message)


def decode_jwt(token: str, secret: str, audience: str) -> TokenPayload:
    """Decode and validate an admin JWT.

    Validates the HS256 signature, expiration, audience and structure.

    Args:
        token: The JWT token string to decode.
        secret: Shared signing secret.
        audience: Expected audience claim.

    Returns:
        TokenPayload: Validated token payload.

    Raises:
        AuthError: If token is invalid, expired, or has wrong signature.
    """
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            secret,
            algorithms=[JWT_ALGORITHM],
            audience=audience,
            options={"require": ["exp", "iat", "sub"]},
        )
        return TokenPayload(
            sub=payload["sub"],
            email=payload.get("email"),
            role=payload.get("role"),
            exp=payload["exp"],
            iat=payload["iat"],
            aud=payload.get("aud"),
        )

    except jwt.ExpiredSignatureError as e:
        raise AuthError("Token has expired", AuthErrorCode.TOKEN_EXPIRED) from e

    except jwt.InvalidSignatureError as e:
        raise AuthError("Invalid token signature", AuthErrorCode.INVALID_SIGNATURE) from e

    except jwt.InvalidTokenError as e:
        raise AuthError(f"Invalid token: {e}", AuthErrorCode.INVALID_TOKEN) from e


def issue_admin_token(
    subject: str,
    secret: str,
    audience: str,
    role: str = "admin",
    email: str | None = None,
    ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS,
) -> str:
    """Sign an admin JWT.

    Args:
        subject: Operator identifier.
        secret: Shared signing secret.
        audience: Audience claim.
        role: Operator role.
        email: Optional operator email.
        ttl_seconds: Token lifetime.

    Returns:
        str: Encoded token.
    """
    now = int(time.time())
    claims: dict[str, Any] = {
        "sub": subject,
        "role": role,
        "aud": audience,
        "iat": now,
        "exp": now + ttl_seconds,
    }
    if email:
        claims["email"] = email
    return jwt.encode(claims, secret, algorithm=JWT_ALGORITHM)
