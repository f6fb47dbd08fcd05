"""
Abstract Backend Interface

DESIGN DECISION: We define abstract interfaces for every backend operation.
This allows us to:
1. Use the hosted Supabase project in production
2. Use in-memory storage for tests and the offline demo
3. Keep dialogs and views decoupled from the client library

The interface mirrors what the backend offers and nothing more:
select with equality/ordering filters, insert, update-by-id,
delete-by-id, password auth and change subscriptions.
There is no retry, batching or transaction support on purpose;
every call is a single request and a failure is final.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Union
from uuid import UUID

from fintrack.models.entities import (
    Account,
    AccountDraft,
    AuthUser,
    Category,
    ChangeEvent,
    Profile,
    ProfileUpdate,
    Transaction,
    TransactionDraft,
    TransactionType,
)


# Table names in the backend schema
ACCOUNTS_TABLE = "accounts"
CATEGORIES_TABLE = "categories"
TRANSACTIONS_TABLE = "transactions"
PROFILES_TABLE = "profiles"


ChangeCallback = Callable[[ChangeEvent], Union[None, Awaitable[None]]]


@dataclass
class Subscription:
    """
    Handle for one open change-subscription channel.

    The channel name is derived from table and filter only, so the same
    view always asks for the same channel.
    """
    channel_name: str
    table: str
    filter: Optional[str] = None
    handle: Any = field(default=None, repr=False)


def channel_name_for(table: str, filter: Optional[str] = None) -> str:
    """Stable channel name for a table/filter pair."""
    return f"{table}_changes:{filter}" if filter else f"{table}_changes"


class AccountStorageInterface(ABC):
    """
    Abstract interface for the accounts table.

    Any backend implementation must implement these methods.
    """

    @abstractmethod
    async def list_accounts(
        self,
        user_id: UUID,
        active_only: bool = True,
    ) -> list[Account]:
        """
        List the user's accounts, newest first.

        Args:
            user_id: Owner of the accounts
            active_only: Skip accounts with is_active = false

        Raises:
            BackendError: If the select fails
        """
        pass

    @abstractmethod
    async def create_account(self, draft: AccountDraft) -> Account:
        """
        Insert a new account.

        Returns:
            The row as stored by the backend

        Raises:
            BackendError: If the insert fails
        """
        pass

    @abstractmethod
    async def update_account(self, account_id: UUID, draft: AccountDraft) -> Account:
        """
        Update an account by id.

        Raises:
            NotFoundError: If no row was updated
            BackendError: If the update fails
        """
        pass

    @abstractmethod
    async def delete_account(self, account_id: UUID) -> bool:
        """Delete an account by id. Returns False if nothing was deleted."""
        pass


class CategoryStorageInterface(ABC):
    """Abstract interface for the categories table (read-only for the app)."""

    @abstractmethod
    async def list_categories(
        self,
        user_id: Optional[UUID] = None,
        category_type: Optional[TransactionType] = None,
    ) -> list[Category]:
        """
        List system categories plus the user's own, ordered by name.

        Args:
            user_id: Include this user's categories (system ones only if None)
            category_type: Restrict to income or expense categories
        """
        pass


class TransactionStorageInterface(ABC):
    """Abstract interface for the transactions table."""

    @abstractmethod
    async def list_transactions(self, user_id: UUID) -> list[Transaction]:
        """
        List the user's transactions.

        Ordered by date (newest first), then by created_at (newest first).
        """
        pass

    @abstractmethod
    async def create_transaction(self, draft: TransactionDraft) -> Transaction:
        pass

    @abstractmethod
    async def update_transaction(
        self,
        transaction_id: UUID,
        draft: TransactionDraft,
    ) -> Transaction:
        """
        Update a transaction by id.

        Raises:
            NotFoundError: If no row was updated
        """
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: UUID) -> bool:
        pass


class ProfileStorageInterface(ABC):
    """Abstract interface for the profiles table."""

    @abstractmethod
    async def get_profile(self, user_id: UUID) -> Optional[Profile]:
        pass

    @abstractmethod
    async def update_profile(self, user_id: UUID, updates: ProfileUpdate) -> Profile:
        """
        Update the user's profile.

        Raises:
            NotFoundError: If the profile row does not exist
        """
        pass


class AuthInterface(ABC):
    """
    Abstract interface for the hosted auth service.

    Sessions, tokens and password rules are owned by the service.
    """

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> AuthUser:
        """
        Sign in with email and password.

        Raises:
            AuthenticationError: If the credentials are rejected
        """
        pass

    @abstractmethod
    async def sign_out(self) -> None:
        pass

    @abstractmethod
    async def update_password(self, new_password: str) -> None:
        """
        Change the signed-in user's password.

        Raises:
            AuthenticationError: If nobody is signed in or the service refuses
        """
        pass

    @abstractmethod
    async def current_user(self) -> Optional[AuthUser]:
        pass


class ChangeFeedInterface(ABC):
    """
    Abstract interface for change-subscription channels.

    One channel per (table, filter). The callback receives every
    INSERT/UPDATE/DELETE on matching rows.
    """

    @abstractmethod
    async def subscribe(
        self,
        table: str,
        callback: ChangeCallback,
        filter: Optional[str] = None,
    ) -> Subscription:
        """
        Open a channel.

        Args:
            table: Table to watch
            callback: Called with a ChangeEvent for every row change
            filter: Row filter in backend syntax, e.g. "user_id=eq.<uuid>"

        Raises:
            ConnectionError: If the channel cannot be opened
        """
        pass

    @abstractmethod
    async def unsubscribe(self, subscription: Subscription) -> None:
        """Close a channel. Closing an already-closed channel is a no-op."""
        pass


@dataclass
class Backend:
    """The set of backend services one session talks to."""
    accounts: AccountStorageInterface
    categories: CategoryStorageInterface
    transactions: TransactionStorageInterface
    profiles: ProfileStorageInterface
    auth: AuthInterface
    changes: ChangeFeedInterface
    name: str = "backend"


class BackendError(Exception):
    """Base exception for backend operations."""
    pass


class NotFoundError(BackendError):
    """Row not found (or hidden by row-level security)."""
    pass


class AuthenticationError(BackendError):
    """Auth service rejected the request."""
    pass


class ConnectionError(BackendError):
    """Could not connect to the backend."""
    pass
