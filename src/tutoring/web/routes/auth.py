"""Auth endpoints: signup, login, logout, profile."""

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from tutoring.backend import AuthUser, Backend, BackendError
from tutoring.web.deps import get_access_token, get_backend_dep, get_current_user
from tutoring.web.schemas import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ProfileResponse,
    ProfileUpdateRequest,
    SignupRequest,
    SignupResponse,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["auth"])

MIN_PASSWORD_LENGTH = 6


@router.post("/signup", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
def signup(
    request: SignupRequest,
    backend: Backend = Depends(get_backend_dep),
) -> SignupResponse:
    """Create an account."""
    if not request.email or not request.password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email and password are required",
        )
    if len(request.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
        )

    try:
        user = backend.auth.sign_up(request.email, request.password, request.user_metadata)
    except BackendError as e:
        logger.info("auth.signup_failed", error=str(e))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    logger.info("auth.signup", user_id=user.id)
    return SignupResponse(message="User created successfully", user=user.to_public_dict())


@router.post("/login", response_model=LoginResponse)
def login(
    request: LoginRequest,
    backend: Backend = Depends(get_backend_dep),
) -> LoginResponse:
    """Exchange email and password for session tokens."""
    if not request.email or not request.password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email and password are required",
        )

    try:
        user, session = backend.auth.sign_in(request.email, request.password)
    except BackendError as e:
        logger.info("auth.login_failed", error=str(e))
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e)) from e

    logger.info("auth.login", user_id=user.id)
    return LoginResponse(
        message="Login successful",
        user=user.to_public_dict(),
        session=session.to_dict(),
    )


@router.post("/logout", response_model=MessageResponse)
def logout(
    token: str = Depends(get_access_token),
    user: AuthUser = Depends(get_current_user),
    backend: Backend = Depends(get_backend_dep),
) -> MessageResponse:
    """Revoke the current session."""
    try:
        backend.auth.sign_out(token)
    except BackendError as e:
        logger.error("auth.logout_failed", user_id=user.id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Logout failed: {e}",
        ) from e

    logger.info("auth.logout", user_id=user.id)
    return MessageResponse(message="Logout successful")


@router.get("/profile", response_model=ProfileResponse)
def get_profile(user: AuthUser = Depends(get_current_user)) -> ProfileResponse:
    """Current user's profile."""
    return ProfileResponse(
        message="Profile retrieved successfully",
        user=user.to_public_dict(include_metadata=True),
    )


@router.put("/profile", response_model=ProfileResponse)
def update_profile(
    request: ProfileUpdateRequest,
    user: AuthUser = Depends(get_current_user),
    backend: Backend = Depends(get_backend_dep),
) -> ProfileResponse:
    """Merge new values into the current user's metadata."""
    try:
        updated = backend.auth.update_user_metadata(user.id, request.user_metadata)
    except BackendError as e:
        logger.info("auth.profile_update_failed", user_id=user.id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Profile update failed: {e}",
        ) from e

    return ProfileResponse(
        message="Profile updated successfully",
        user=updated.to_public_dict(include_metadata=True),
    )
