"""FastAPI dependencies shared by the route modules.

- get_backend_dep: the configured backend (auth, tables, storage)
- get_llm_client: process-wide LLM client, None when no provider key is set
- get_access_token / get_current_user: bearer-token authentication
"""

from __future__ import annotations

import structlog
from fastapi import Depends, Header, HTTPException, status

from tutoring.backend import AuthError, AuthUser, Backend, BackendError, get_backend
from tutoring.config import load_app_config
from tutoring.llm.client import LLMClient, build_default_client

logger = structlog.get_logger(__name__)

_llm_client: LLMClient | None = None
_llm_client_checked = False


def get_backend_dep() -> Backend:
    """Backend for the current request.

    Raises:
        HTTPException: 500 if the backend is not configured
    """
    try:
        return get_backend()
    except BackendError as e:
        logger.error("backend.unavailable", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Backend is not configured",
        ) from e


def get_llm_client() -> LLMClient | None:
    """LLM client built once from app config.

    Returns None for the hosted provider when its API key is missing, so
    analysis falls back without attempting a call.
    """
    global _llm_client, _llm_client_checked
    if _llm_client_checked:
        return _llm_client

    _llm_client = build_default_client(load_app_config().llm)
    _llm_client_checked = True
    return _llm_client


def reset_llm_client() -> None:
    """Forget the cached client (config reloads and tests)."""
    global _llm_client, _llm_client_checked
    _llm_client = None
    _llm_client_checked = False


def get_access_token(authorization: str | None = Header(default=None)) -> str:
    """Bearer token from the Authorization header.

    Raises:
        HTTPException: 401 if the header is missing or not a bearer token
    """
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token required",
        )
    return token.strip()


def get_current_user(
    token: str = Depends(get_access_token),
    backend: Backend = Depends(get_backend_dep),
) -> AuthUser:
    """User the bearer token belongs to.

    Raises:
        HTTPException: 401 for a rejected token, 500 for provider failures
    """
    try:
        return backend.auth.get_user(token)
    except AuthError as e:
        logger.info("auth.token_rejected", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        ) from e
    except BackendError as e:
        logger.error("auth.failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Authentication failed",
        ) from e
