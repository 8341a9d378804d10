"""Backend selection and caching.

The configured backend is built once per process and shared by all
requests. Tests swap it with set_backend() or FastAPI dependency overrides.
"""

from __future__ import annotations

import structlog

from tutoring.backend.base import Backend, BackendConfigError
from tutoring.backend.memory import InMemoryBackend
from tutoring.backend.supabase_backend import SupabaseBackend
from tutoring.config.app_config import load_app_config

logger = structlog.get_logger(__name__)

_backend: Backend | None = None


def get_backend() -> Backend:
    """Return the process-wide backend, building it on first use.

    Raises:
        BackendConfigError: If the configured kind is unknown or the
            hosted backend is missing credentials
    """
    global _backend
    if _backend is not None:
        return _backend

    settings = load_app_config().backend
    if settings.kind == "memory":
        logger.warning("backend.in_memory", reason="configured kind is 'memory'")
        _backend = InMemoryBackend()
    elif settings.kind == "supabase":
        _backend = SupabaseBackend.from_settings(settings)
    else:
        raise BackendConfigError(f"Unknown backend kind: {settings.kind}")

    return _backend


def set_backend(backend: Backend | None) -> None:
    """Replace (or clear, with None) the process-wide backend."""
    global _backend
    _backend = backend
