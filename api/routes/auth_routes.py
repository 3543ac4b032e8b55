"""
Authentication API Routes

Endpoints:
- POST /api/auth/signup - Create an account for a registered member email
- POST /api/auth/login - Login and get a bearer token
- GET /api/auth/me - Get current profile
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from starlette.concurrency import run_in_threadpool

from api.auth import (
    AuthUser,
    LoginRequest,
    ProfileResponse,
    SignupRequest,
    TokenResponse,
    authenticate,
    create_token,
    register_profile,
    require_auth,
    token_lifetime_seconds,
)
from api.database import ProfileStore
from api.dependencies import get_validator
from core.logging_config import mask_email
from services.membership import MembershipValidator, client_ip_from_headers

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


@router.post("/signup", response_model=ProfileResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    payload: SignupRequest,
    request: Request,
    validator: MembershipValidator = Depends(get_validator),
):
    """
    Register a resident account.

    The email must appear in the society member sheet; the new profile is
    seeded from the sheet row and gets the 'user' role.
    """
    client_id = client_ip_from_headers(request.headers)
    outcome = await run_in_threadpool(validator.validate, payload.email, client_id)

    if not outcome.valid:
        # A well-formed email that is not on the sheet is forbidden, not malformed
        status_code = outcome.status_code if outcome.status_code != 200 else status.HTTP_403_FORBIDDEN
        raise HTTPException(status_code=status_code, detail=outcome.error)

    member = outcome.member
    try:
        profile = register_profile(
            email=member.email,
            password=payload.password,
            name=(payload.name or "").strip() or member.name,
            member_id=member.member_id,
            phone=member.phone,
            flat_no=member.flat_no,
            wing=member.wing,
            maintenance_status=member.maintenance_status.value,
        )
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An account already exists for this email",
        )

    logger.info(f"Member signed up: {mask_email(profile.email)} ({profile.member_id})")
    return ProfileResponse.model_validate(profile)


@router.post("/login", response_model=TokenResponse)
async def login(payload: LoginRequest):
    """Authenticate and return a bearer token valid for JWT_EXPIRATION_HOURS (default 24)."""
    profile = authenticate(payload.email, payload.password)

    if not profile:
        logger.warning(f"Failed login attempt for {mask_email(payload.email)}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = create_token(profile.user_id, profile.role)
    logger.info(f"User logged in: {mask_email(profile.email)} (role: {profile.role})")

    return TokenResponse(
        access_token=token,
        expires_in=token_lifetime_seconds(),
        user=ProfileResponse.model_validate(profile),
    )


@router.get("/me", response_model=ProfileResponse)
async def get_current_profile(user: AuthUser = Depends(require_auth)):
    """Get the authenticated user's profile."""
    profile = ProfileStore.get_profile(user.user_id)
    return ProfileResponse.model_validate(profile)
