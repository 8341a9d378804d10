"""Hosted backend access (auth, tables, object storage).

Provides:
- Gateway contracts and error types (base)
- Supabase implementation (supabase_backend)
- In-memory test double (memory)
- Process-wide backend selection (factory)
"""

from tutoring.backend.base import (
    AuthError,
    AuthSession,
    AuthUser,
    Backend,
    BackendConfigError,
    BackendError,
    RecordNotFoundError,
    StorageError,
)
from tutoring.backend.factory import get_backend, set_backend
from tutoring.backend.memory import InMemoryBackend

__all__ = [
    "AuthError",
    "AuthSession",
    "AuthUser",
    "Backend",
    "BackendConfigError",
    "BackendError",
    "InMemoryBackend",
    "RecordNotFoundError",
    "StorageError",
    "get_backend",
    "set_backend",
]
