"""
Live Collections

DESIGN DECISION: A collection is a read-through cache of one backend
query, tied to one change channel. The cache is never patched: any
change notification triggers a full refetch.

Lifecycle:
1. mount()   - fetch once, then open the channel (no-op if mounted)
2. change    - refetch the whole collection
3. unmount() - close the channel (always, even if the fetch failed)

Channel names depend on table and filter only, so remounting a view
asks for the same channel instead of leaking a new one.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Generic, Optional, TypeVar
from uuid import UUID

import structlog
from pydantic import ValidationError

from fintrack.models.entities import (
    Account,
    Category,
    ChangeEvent,
    Profile,
    ProfileUpdate,
    Transaction,
    TransactionType,
)
from fintrack.services.backend.interface import (
    ACCOUNTS_TABLE,
    CATEGORIES_TABLE,
    PROFILES_TABLE,
    TRANSACTIONS_TABLE,
    AuthenticationError,
    Backend,
    BackendError,
    Subscription,
)


logger = structlog.get_logger(__name__)

T = TypeVar("T")


class LiveCollection(ABC, Generic[T]):
    """
    Base class for the per-entity collections.

    Subclasses define the table, the query and the channel filter.
    """

    table: str = ""

    def __init__(self, backend: Backend, user_id: Optional[UUID] = None):
        self._backend = backend
        self.user_id = user_id
        self.items: list[T] = []
        self.loading = True
        self.error: Optional[str] = None
        self._subscription: Optional[Subscription] = None
        self._mounted = False

    @abstractmethod
    async def fetch(self) -> list[T]:
        """Run the collection's query."""
        pass

    @property
    def requires_user(self) -> bool:
        return True

    def channel_filter(self) -> Optional[str]:
        return f"user_id=eq.{self.user_id}"

    @property
    def mounted(self) -> bool:
        return self._mounted

    @property
    def channel_name(self) -> Optional[str]:
        return self._subscription.channel_name if self._subscription else None

    async def refetch(self) -> list[T]:
        """
        Reload the whole collection.

        On failure the error is recorded and the previous items stay.
        A row that does not parse counts as a failure of the whole fetch.
        """
        if self.requires_user and self.user_id is None:
            self.items = []
            self.loading = False
            return self.items

        try:
            self.items = await self.fetch()
            self.error = None
            logger.debug(
                "collection_refetched",
                table=self.table,
                count=len(self.items),
            )
        except (BackendError, ValidationError) as e:
            self.error = str(e)
            logger.error(
                "collection_fetch_failed",
                table=self.table,
                error=str(e),
            )
        finally:
            self.loading = False
        return self.items

    def _on_change(self, event: ChangeEvent):
        logger.info(
            "collection_change_received",
            table=self.table,
            event_type=event.event_type.value,
        )
        return asyncio.ensure_future(self.refetch())

    async def mount(self) -> None:
        """Fetch and open the change channel. Mounting twice does nothing."""
        if self._mounted:
            return
        self._mounted = True

        await self.refetch()

        if self.requires_user and self.user_id is None:
            return

        try:
            self._subscription = await self._backend.changes.subscribe(
                self.table,
                self._on_change,
                filter=self.channel_filter(),
            )
        except BackendError:
            self._mounted = False
            raise
        logger.info("channel_opened", channel=self._subscription.channel_name)

    async def unmount(self) -> None:
        """Close the change channel. Safe to call when not mounted."""
        self._mounted = False
        if self._subscription is None:
            return
        subscription, self._subscription = self._subscription, None
        await self._backend.changes.unsubscribe(subscription)
        logger.info("channel_closed", channel=subscription.channel_name)


class AccountsCollection(LiveCollection[Account]):
    """The user's active accounts, newest first."""

    table = ACCOUNTS_TABLE

    async def fetch(self) -> list[Account]:
        return await self._backend.accounts.list_accounts(self.user_id)

    @property
    def credit_cards(self) -> list[Account]:
        return [account for account in self.items if account.is_credit]

    def get(self, account_id: UUID) -> Optional[Account]:
        for account in self.items:
            if account.id == account_id:
                return account
        return None


class TransactionsCollection(LiveCollection[Transaction]):
    """The user's transactions, by date then creation time, newest first."""

    table = TRANSACTIONS_TABLE

    async def fetch(self) -> list[Transaction]:
        return await self._backend.transactions.list_transactions(self.user_id)


class CategoriesCollection(LiveCollection[Category]):
    """
    System categories plus the user's own, ordered by name.

    Listens to the whole table: system categories have no owner to filter on.
    """

    table = CATEGORIES_TABLE

    def __init__(
        self,
        backend: Backend,
        user_id: Optional[UUID] = None,
        category_type: Optional[TransactionType] = None,
    ):
        super().__init__(backend, user_id)
        self.category_type = category_type

    @property
    def requires_user(self) -> bool:
        return False

    def channel_filter(self) -> Optional[str]:
        return None

    async def fetch(self) -> list[Category]:
        return await self._backend.categories.list_categories(
            user_id=self.user_id,
            category_type=self.category_type,
        )

    def names(self) -> dict[UUID, str]:
        return {category.id: category.name for category in self.items}


class ProfileCollection(LiveCollection[Profile]):
    """The signed-in user's profile row."""

    table = PROFILES_TABLE

    def channel_filter(self) -> Optional[str]:
        return f"id=eq.{self.user_id}"

    async def fetch(self) -> list[Profile]:
        profile = await self._backend.profiles.get_profile(self.user_id)
        return [profile] if profile else []

    @property
    def profile(self) -> Optional[Profile]:
        return self.items[0] if self.items else None

    async def update_profile(self, updates: ProfileUpdate) -> Profile:
        """
        Write the profile, then read it back.

        Raises:
            AuthenticationError: If nobody is signed in
            BackendError: If the update fails
        """
        if self.user_id is None:
            raise AuthenticationError("No user logged in")

        await self._backend.profiles.update_profile(self.user_id, updates)
        await self.refetch()
        if self.error:
            raise BackendError(self.error)
        return self.profile
