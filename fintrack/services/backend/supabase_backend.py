"""
Supabase Backend Implementation

DESIGN DECISION: Supabase is the system of record because it gives us,
in one hosted service:
1. Postgres tables with row-level security (users only see their rows)
2. Password auth
3. Realtime change feeds per table and row filter

TRADEOFFS:
- Every screen re-reads whole collections (fine for personal data volumes)
- No client-side transactions; each write is one request
- A write is never retried here; the user retries from the dialog

The implementation follows the abstract interfaces, so tests and the
offline demo run against the in-memory backend instead.
"""

from typing import Any, Optional
from uuid import UUID

import structlog
from supabase import AsyncClient, AsyncClientOptions, acreate_client
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from fintrack.config import SupabaseSettings, get_settings
from fintrack.models.entities import (
    Account,
    AccountDraft,
    AuthUser,
    Category,
    ChangeEvent,
    ChangeEventType,
    Profile,
    ProfileUpdate,
    Transaction,
    TransactionDraft,
    TransactionType,
)
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
    ChangeCallback,
    ChangeFeedInterface,
    ConnectionError,
    NotFoundError,
    ProfileStorageInterface,
    Subscription,
    TransactionStorageInterface,
    channel_name_for,
)


logger = structlog.get_logger("fintrack.backend.supabase")


def _error_message(error: Exception) -> str:
    """Raw message of a client library error (postgrest errors carry .message)."""
    message = getattr(error, "message", None)
    return message or str(error)


def parse_change_payload(table: str, payload: dict[str, Any]) -> ChangeEvent:
    """
    Convert a realtime postgres_changes payload into a ChangeEvent.

    The client library nests the change under "data"; older versions
    deliver it flat with eventType/new/old keys.
    """
    data = payload.get("data", payload) or {}
    event_type = data.get("type") or data.get("eventType") or "UPDATE"
    return ChangeEvent(
        table=data.get("table", table),
        event_type=ChangeEventType(str(event_type).upper()),
        record=data.get("record") or data.get("new") or {},
        old_record=data.get("old_record") or data.get("old") or {},
    )


class SupabaseClient:
    """
    Low-level Supabase client wrapper.

    Holds one async client for the session. Data calls, auth and realtime
    all go through it, so the signed-in user's token reaches every request.
    """

    def __init__(self, settings: Optional[SupabaseSettings] = None):
        self._client: Optional[AsyncClient] = None
        self._settings = settings or get_settings().supabase

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(ConnectionError),
        reraise=True,
    )
    async def connect(self) -> AsyncClient:
        """
        Create the client on first use.

        Only establishing the client is retried; data calls never are.
        """
        if self._client is None:
            try:
                self._client = await acreate_client(
                    self._settings.url,
                    self._settings.anon_key,
                    options=AsyncClientOptions(schema=self._settings.schema_name),
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Supabase: {e}")
        return self._client

    async def execute(self, table: str, operation: str, build) -> list[dict[str, Any]]:
        """
        Run one query and return its rows.

        Args:
            table: Table name
            operation: Short label for logs ("select", "insert", ...)
            build: Callable taking the table query builder and returning
                   the finished query

        Raises:
            BackendError: Wrapping any client library error
        """
        client = await self.connect()
        try:
            response = await build(client.table(table)).execute()
        except Exception as e:
            message = _error_message(e)
            logger.error(
                "backend_call_failed",
                table=table,
                operation=operation,
                error=message,
            )
            raise BackendError(message)
        return list(response.data or [])


class SupabaseAccountStorage(AccountStorageInterface):
    """Supabase implementation of the accounts table."""

    def __init__(self, client: SupabaseClient):
        self._client = client

    async def list_accounts(
        self,
        user_id: UUID,
        active_only: bool = True,
    ) -> list[Account]:
        def build(query):
            query = query.select("*").eq("user_id", str(user_id))
            if active_only:
                query = query.eq("is_active", True)
            return query.order("created_at", desc=True)

        rows = await self._client.execute(ACCOUNTS_TABLE, "select", build)
        return [Account(**row) for row in rows]

    async def create_account(self, draft: AccountDraft) -> Account:
        rows = await self._client.execute(
            ACCOUNTS_TABLE,
            "insert",
            lambda q: q.insert(draft.to_row()),
        )
        if not rows:
            raise BackendError("Insert returned no account row")
        return Account(**rows[0])

    async def update_account(self, account_id: UUID, draft: AccountDraft) -> Account:
        rows = await self._client.execute(
            ACCOUNTS_TABLE,
            "update",
            lambda q: q.update(draft.to_row()).eq("id", str(account_id)),
        )
        if not rows:
            raise NotFoundError(f"Account not found: {account_id}")
        return Account(**rows[0])

    async def delete_account(self, account_id: UUID) -> bool:
        rows = await self._client.execute(
            ACCOUNTS_TABLE,
            "delete",
            lambda q: q.delete().eq("id", str(account_id)),
        )
        return len(rows) > 0


class SupabaseCategoryStorage(CategoryStorageInterface):
    """Supabase implementation of the categories table."""

    def __init__(self, client: SupabaseClient):
        self._client = client

    async def list_categories(
        self,
        user_id: Optional[UUID] = None,
        category_type: Optional[TransactionType] = None,
    ) -> list[Category]:
        visibility = "is_system.eq.true"
        if user_id:
            visibility += f",user_id.eq.{user_id}"

        def build(query):
            query = query.select("*").or_(visibility)
            if category_type:
                query = query.eq("type", category_type.value)
            return query.order("name")

        rows = await self._client.execute(CATEGORIES_TABLE, "select", build)
        return [Category(**row) for row in rows]


class SupabaseTransactionStorage(TransactionStorageInterface):
    """Supabase implementation of the transactions table."""

    def __init__(self, client: SupabaseClient):
        self._client = client

    async def list_transactions(self, user_id: UUID) -> list[Transaction]:
        rows = await self._client.execute(
            TRANSACTIONS_TABLE,
            "select",
            lambda q: (
                q.select("*")
                .eq("user_id", str(user_id))
                .order("date", desc=True)
                .order("created_at", desc=True)
            ),
        )
        return [Transaction(**row) for row in rows]

    async def create_transaction(self, draft: TransactionDraft) -> Transaction:
        rows = await self._client.execute(
            TRANSACTIONS_TABLE,
            "insert",
            lambda q: q.insert(draft.to_row()),
        )
        if not rows:
            raise BackendError("Insert returned no transaction row")
        return Transaction(**rows[0])

    async def update_transaction(
        self,
        transaction_id: UUID,
        draft: TransactionDraft,
    ) -> Transaction:
        rows = await self._client.execute(
            TRANSACTIONS_TABLE,
            "update",
            lambda q: q.update(draft.to_row()).eq("id", str(transaction_id)),
        )
        if not rows:
            raise NotFoundError(f"Transaction not found: {transaction_id}")
        return Transaction(**rows[0])

    async def delete_transaction(self, transaction_id: UUID) -> bool:
        rows = await self._client.execute(
            TRANSACTIONS_TABLE,
            "delete",
            lambda q: q.delete().eq("id", str(transaction_id)),
        )
        return len(rows) > 0


class SupabaseProfileStorage(ProfileStorageInterface):
    """Supabase implementation of the profiles table."""

    def __init__(self, client: SupabaseClient):
        self._client = client

    async def get_profile(self, user_id: UUID) -> Optional[Profile]:
        rows = await self._client.execute(
            PROFILES_TABLE,
            "select",
            lambda q: q.select("*").eq("id", str(user_id)).limit(1),
        )
        return Profile(**rows[0]) if rows else None

    async def update_profile(self, user_id: UUID, updates: ProfileUpdate) -> Profile:
        rows = await self._client.execute(
            PROFILES_TABLE,
            "update",
            lambda q: q.update(updates.to_row()).eq("id", str(user_id)),
        )
        if not rows:
            raise NotFoundError(f"Profile not found: {user_id}")
        return Profile(**rows[0])


class SupabaseAuth(AuthInterface):
    """Supabase auth (GoTrue) wrapper."""

    def __init__(self, client: SupabaseClient):
        self._client = client

    async def sign_in(self, email: str, password: str) -> AuthUser:
        client = await self._client.connect()
        try:
            response = await client.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        except Exception as e:
            raise AuthenticationError(_error_message(e))

        if response.user is None:
            raise AuthenticationError("Sign in returned no user")

        session = response.session
        return AuthUser(
            id=response.user.id,
            email=response.user.email,
            access_token=session.access_token if session else None,
            refresh_token=session.refresh_token if session else None,
        )

    async def sign_out(self) -> None:
        client = await self._client.connect()
        try:
            await client.auth.sign_out()
        except Exception as e:
            raise AuthenticationError(_error_message(e))

    async def update_password(self, new_password: str) -> None:
        client = await self._client.connect()
        try:
            await client.auth.update_user({"password": new_password})
        except Exception as e:
            raise AuthenticationError(_error_message(e))

    async def current_user(self) -> Optional[AuthUser]:
        client = await self._client.connect()
        try:
            response = await client.auth.get_user()
        except Exception:
            # No session or an expired one both mean "signed out"
            return None
        if response is None or response.user is None:
            return None
        return AuthUser(id=response.user.id, email=response.user.email)


class SupabaseChangeFeed(ChangeFeedInterface):
    """
    Realtime postgres_changes channels.

    Channel names are stable per table/filter, so re-subscribing a view
    reuses its name instead of piling up uniquely-named channels.
    """

    def __init__(self, client: SupabaseClient, schema: str = "public"):
        self._client = client
        self._schema = schema

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(ConnectionError),
        reraise=True,
    )
    async def subscribe(
        self,
        table: str,
        callback: ChangeCallback,
        filter: Optional[str] = None,
    ) -> Subscription:
        client = await self._client.connect()
        name = channel_name_for(table, filter)

        def on_change(payload: dict[str, Any]) -> None:
            callback(parse_change_payload(table, payload))

        try:
            channel = client.channel(name)
            channel.on_postgres_changes(
                "*",
                callback=on_change,
                table=table,
                schema=self._schema,
                filter=filter,
            )
            await channel.subscribe()
        except Exception as e:
            raise ConnectionError(f"Failed to subscribe to {name}: {e}")

        logger.info("channel_subscribed", channel=name, table=table)
        return Subscription(channel_name=name, table=table, filter=filter, handle=channel)

    async def unsubscribe(self, subscription: Subscription) -> None:
        if subscription.handle is None:
            return
        client = await self._client.connect()
        try:
            await client.remove_channel(subscription.handle)
        finally:
            subscription.handle = None
            logger.info("channel_removed", channel=subscription.channel_name)


def create_supabase_backend(settings: Optional[SupabaseSettings] = None) -> Backend:
    """Wire every Supabase service around one shared client."""
    settings = settings or get_settings().supabase
    client = SupabaseClient(settings)
    return Backend(
        accounts=SupabaseAccountStorage(client),
        categories=SupabaseCategoryStorage(client),
        transactions=SupabaseTransactionStorage(client),
        profiles=SupabaseProfileStorage(client),
        auth=SupabaseAuth(client),
        changes=SupabaseChangeFeed(client, schema=settings.schema_name),
        name="supabase",
    )
