"""
Authentication Module

JWT-style bearer tokens with role-based access control.

Roles:
- manager: Society manager, can manage member roles
- user: Resident member

The role claim in the token is informational only; every request reads
the current role from the user_roles table so that promotions and
demotions apply immediately.

Usage:
    from api.auth import require_auth, require_manager

    @router.get("/me")
    async def me(user: AuthUser = Depends(require_auth)):
        ...
"""

import base64
import hashlib
import hmac
import json
import logging
import os
import secrets
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from api.database import ProfileRecord, ProfileStore
from core.config import get_config
from core.logging_config import set_user_context
from models.society import UserRole

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
DEV_SECRET_FILE = Path("config/.jwt_secret")

_jwt_secret: str = ""


def get_jwt_secret() -> str:
    """Get JWT secret key, generating one if needed for development."""
    global _jwt_secret

    if _jwt_secret:
        return _jwt_secret

    auth_config = get_config().auth
    if auth_config.jwt_secret:
        _jwt_secret = auth_config.jwt_secret
        return _jwt_secret

    # Check for secret in config file (development only)
    if DEV_SECRET_FILE.exists():
        _jwt_secret = DEV_SECRET_FILE.read_text().strip()
        return _jwt_secret

    if auth_config.environment == "development":
        _jwt_secret = secrets.token_hex(32)
        DEV_SECRET_FILE.parent.mkdir(parents=True, exist_ok=True)
        DEV_SECRET_FILE.write_text(_jwt_secret)
        os.chmod(DEV_SECRET_FILE, 0o600)
        logger.warning("Generated new JWT secret for development. Set JWT_SECRET_KEY in production!")
        return _jwt_secret

    raise ValueError("JWT_SECRET_KEY must be set in production environment")


def reset_jwt_secret() -> None:
    """Forget the resolved secret (for testing)."""
    global _jwt_secret
    _jwt_secret = ""


# =============================================================================
# MODELS
# =============================================================================


class AuthUser(BaseModel):
    """Authenticated caller."""

    user_id: str
    email: str
    role: UserRole
    name: str = ""


class TokenPayload(BaseModel):
    """JWT token payload."""

    sub: str  # user id
    role: str
    exp: int  # expiration timestamp
    iat: int  # issued at timestamp


class ProfileResponse(BaseModel):
    """Public profile view, serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    user_id: str
    member_id: Optional[str] = None
    name: str = ""
    email: str
    phone: str = ""
    flat_no: str = ""
    wing: str = ""
    maintenance_status: str = "pending"
    role: str = "user"
    created_at: Optional[str] = None


class TokenResponse(BaseModel):
    """Login response with token."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: ProfileResponse


class SignupRequest(BaseModel):
    """Signup request. The email must belong to a registered member."""

    email: str
    password: str = Field(min_length=6, max_length=72)
    name: Optional[str] = Field(default=None, max_length=100)


class LoginRequest(BaseModel):
    """Login request."""

    email: str
    password: str


# =============================================================================
# TOKEN UTILITIES
# =============================================================================


def _base64url_encode(data: bytes) -> str:
    """Base64url encode without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _base64url_decode(data: str) -> bytes:
    """Base64url decode with padding restoration."""
    padding = 4 - len(data) % 4
    if padding != 4:
        data += "=" * padding
    return base64.urlsafe_b64decode(data)


def _sign(message: str) -> bytes:
    return hmac.new(get_jwt_secret().encode(), message.encode(), hashlib.sha256).digest()


def token_lifetime_seconds() -> int:
    return get_config().auth.expiration_hours * 3600


def create_token(user_id: str, role: str) -> str:
    """Create a signed token for a user."""
    now = datetime.utcnow()
    exp = now + timedelta(seconds=token_lifetime_seconds())

    header = {"alg": JWT_ALGORITHM, "typ": "JWT"}
    payload = {
        "sub": user_id,
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }

    header_b64 = _base64url_encode(json.dumps(header, separators=(",", ":")).encode())
    payload_b64 = _base64url_encode(json.dumps(payload, separators=(",", ":")).encode())
    signature_b64 = _base64url_encode(_sign(f"{header_b64}.{payload_b64}"))

    return f"{header_b64}.{payload_b64}.{signature_b64}"


def verify_token(token: str) -> Optional[TokenPayload]:
    """Verify and decode a token. Returns None for any invalid or expired token."""
    parts = token.split(".")
    if len(parts) != 3:
        return None

    header_b64, payload_b64, signature_b64 = parts

    try:
        actual_signature = _base64url_decode(signature_b64)
    except ValueError:
        return None

    if not hmac.compare_digest(_sign(f"{header_b64}.{payload_b64}"), actual_signature):
        logger.warning("Invalid token signature")
        return None

    try:
        payload_data = json.loads(_base64url_decode(payload_b64).decode())
        payload = TokenPayload(**payload_data)
    except (ValueError, TypeError) as e:
        logger.warning(f"Token payload rejected: {type(e).__name__}")
        return None

    if payload.exp < datetime.utcnow().timestamp():
        logger.info("Token expired")
        return None

    return payload


# =============================================================================
# PASSWORDS
# =============================================================================


def hash_password(password: str, salt: Optional[str] = None) -> tuple[str, str]:
    """Hash password with salt."""
    if salt is None:
        salt = secrets.token_hex(16)
    hashed = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), 100000)
    return hashed.hex(), salt


def register_profile(
    email: str,
    password: str,
    role: UserRole = UserRole.USER,
    **profile_fields,
) -> ProfileRecord:
    """Create a profile with hashed credentials. Raises ValueError on duplicate email."""
    password_hash, salt = hash_password(password)
    return ProfileStore.create_profile(
        email=email,
        password_hash=password_hash,
        password_salt=salt,
        role=role.value,
        **profile_fields,
    )


def authenticate(email: str, password: str) -> Optional[ProfileRecord]:
    """Return the profile when the credentials match."""
    credentials = ProfileStore.get_credentials(email)
    if not credentials:
        return None

    user_id, stored_hash, salt = credentials
    password_hash, _ = hash_password(password, salt)
    if not hmac.compare_digest(password_hash, stored_hash):
        return None

    return ProfileStore.get_profile(user_id)


# =============================================================================
# FASTAPI DEPENDENCIES
# =============================================================================

security = HTTPBearer(auto_error=False)


def _user_from_credentials(credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[AuthUser]:
    if not credentials:
        return None

    payload = verify_token(credentials.credentials)
    if not payload:
        return None

    profile = ProfileStore.get_profile(payload.sub)
    if not profile:
        return None

    set_user_context(profile.user_id)
    return AuthUser(
        user_id=profile.user_id,
        email=profile.email,
        role=UserRole(profile.role),
        name=profile.name,
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[AuthUser]:
    """Get current user from token (returns None if not authenticated)."""
    return _user_from_credentials(credentials)


async def require_auth(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> AuthUser:
    """Require authentication (any role)."""
    user = _user_from_credentials(credentials)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def require_manager(user: AuthUser = Depends(require_auth)) -> AuthUser:
    """Require manager role."""
    if user.role != UserRole.MANAGER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only managers can manage user roles",
        )
    return user
