"""
Backend Services Package

Provides abstract interfaces and concrete implementations for the hosted backend.
Supabase is the production backend; the in-memory one backs tests and the demo.
"""

from fintrack.services.backend.interface import (
    ACCOUNTS_TABLE,
    CATEGORIES_TABLE,
    PROFILES_TABLE,
    TRANSACTIONS_TABLE,
    AccountStorageInterface,
    AuthInterface,
    AuthenticationError,
    Backend,
    BackendError,
    CategoryStorageInterface,
    ChangeFeedInterface,
    ConnectionError,
    NotFoundError,
    ProfileStorageInterface,
    Subscription,
    TransactionStorageInterface,
    channel_name_for,
)
from fintrack.services.backend.memory import (
    MemoryStore,
    create_memory_backend,
    seed_demo_data,
)
from fintrack.services.backend.supabase_backend import (
    SupabaseClient,
    create_supabase_backend,
)

__all__ = [
    # Tables
    "ACCOUNTS_TABLE",
    "CATEGORIES_TABLE",
    "PROFILES_TABLE",
    "TRANSACTIONS_TABLE",
    # Interfaces
    "AccountStorageInterface",
    "AuthInterface",
    "Backend",
    "CategoryStorageInterface",
    "ChangeFeedInterface",
    "ProfileStorageInterface",
    "Subscription",
    "TransactionStorageInterface",
    "channel_name_for",
    # Exceptions
    "AuthenticationError",
    "BackendError",
    "ConnectionError",
    "NotFoundError",
    # Implementations
    "MemoryStore",
    "SupabaseClient",
    "create_memory_backend",
    "create_supabase_backend",
    "seed_demo_data",
]
