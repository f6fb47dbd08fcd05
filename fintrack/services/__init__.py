"""Services package."""

from fintrack.services.backend import (
    AuthenticationError,
    Backend,
    BackendError,
    ConnectionError,
    NotFoundError,
    create_memory_backend,
    create_supabase_backend,
)

__all__ = [
    "AuthenticationError",
    "Backend",
    "BackendError",
    "ConnectionError",
    "NotFoundError",
    "create_memory_backend",
    "create_supabase_backend",
]
