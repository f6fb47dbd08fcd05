"""
In-Memory Backend

Implements every backend interface with plain dicts. Used by the tests
and by the offline demo mode when no Supabase project is configured.

It behaves like the hosted backend where the app can observe it:
rows get ids and timestamps on insert, a change event is published for
every write, and users only see their own rows (plus system categories).
"""

import inspect
from collections import defaultdict
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID, uuid4

from fintrack.models.entities import (
    Account,
    AccountDraft,
    AccountType,
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
    NotFoundError,
    ProfileStorageInterface,
    Subscription,
    TransactionStorageInterface,
    channel_name_for,
)


def _matches(filter: Optional[str], row: dict[str, Any]) -> bool:
    """Evaluate a "<column>=eq.<value>" filter against a row."""
    if not filter:
        return True
    column, _, condition = filter.partition("=")
    operator, _, value = condition.partition(".")
    if operator != "eq":
        raise BackendError(f"Unsupported filter operator: {operator}")
    return str(row.get(column)) == value


class MemoryStore:
    """
    Shared state of the in-memory backend.

    Tables hold rows as dicts, exactly as the REST API would return them.
    `calls` records every (table, operation) so tests can assert that no
    backend call was made.
    """

    def __init__(self):
        self.tables: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        self.calls: list[tuple[str, str]] = []
        self.subscriptions: dict[str, tuple[Subscription, ChangeCallback]] = {}
        self._failures: dict[tuple[str, str], str] = {}

    def fail_next(self, table: str, operation: str, message: str) -> None:
        """Make the next (table, operation) call raise BackendError(message)."""
        self._failures[(table, operation)] = message

    def record(self, table: str, operation: str) -> None:
        self.calls.append((table, operation))
        message = self._failures.pop((table, operation), None)
        if message is not None:
            raise BackendError(message)

    def calls_for(self, table: str, operation: Optional[str] = None) -> list[tuple[str, str]]:
        return [
            call for call in self.calls
            if call[0] == table and (operation is None or call[1] == operation)
        ]

    async def publish(
        self,
        table: str,
        event_type: ChangeEventType,
        record: dict[str, Any],
        old_record: Optional[dict[str, Any]] = None,
    ) -> None:
        """Deliver a change event to every matching channel."""
        event = ChangeEvent(
            table=table,
            event_type=event_type,
            record=record,
            old_record=old_record or {},
        )
        row = record or old_record or {}
        for subscription, callback in list(self.subscriptions.values()):
            if subscription.table != table or not _matches(subscription.filter, row):
                continue
            result = callback(event)
            if inspect.isawaitable(result):
                await result

    async def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        self.record(table, "insert")
        now = datetime.utcnow().isoformat()
        stored = {"id": str(uuid4()), "created_at": now, "updated_at": now, **row}
        self.tables[table][stored["id"]] = stored
        await self.publish(table, ChangeEventType.INSERT, dict(stored))
        return dict(stored)

    async def update(self, table: str, row_id: UUID, changes: dict[str, Any]) -> Optional[dict[str, Any]]:
        self.record(table, "update")
        existing = self.tables[table].get(str(row_id))
        if existing is None:
            return None
        old = dict(existing)
        existing.update(changes)
        existing["updated_at"] = datetime.utcnow().isoformat()
        await self.publish(table, ChangeEventType.UPDATE, dict(existing), old)
        return dict(existing)

    async def delete(self, table: str, row_id: UUID) -> bool:
        self.record(table, "delete")
        removed = self.tables[table].pop(str(row_id), None)
        if removed is None:
            return False
        await self.publish(table, ChangeEventType.DELETE, {}, dict(removed))
        return True

    def select(self, table: str) -> list[dict[str, Any]]:
        self.record(table, "select")
        return [dict(row) for row in self.tables[table].values()]


class MemoryAccountStorage(AccountStorageInterface):

    def __init__(self, store: MemoryStore):
        self._store = store

    async def list_accounts(self, user_id: UUID, active_only: bool = True) -> list[Account]:
        rows = [
            row for row in self._store.select(ACCOUNTS_TABLE)
            if row["user_id"] == str(user_id) and (row.get("is_active", True) or not active_only)
        ]
        rows.sort(key=lambda r: r["created_at"], reverse=True)
        return [Account(**row) for row in rows]

    async def create_account(self, draft: AccountDraft) -> Account:
        return Account(**await self._store.insert(ACCOUNTS_TABLE, draft.to_row()))

    async def update_account(self, account_id: UUID, draft: AccountDraft) -> Account:
        row = await self._store.update(ACCOUNTS_TABLE, account_id, draft.to_row())
        if row is None:
            raise NotFoundError(f"Account not found: {account_id}")
        return Account(**row)

    async def delete_account(self, account_id: UUID) -> bool:
        return await self._store.delete(ACCOUNTS_TABLE, account_id)


class MemoryCategoryStorage(CategoryStorageInterface):

    def __init__(self, store: MemoryStore):
        self._store = store

    async def list_categories(
        self,
        user_id: Optional[UUID] = None,
        category_type: Optional[TransactionType] = None,
    ) -> list[Category]:
        rows = [
            row for row in self._store.select(CATEGORIES_TABLE)
            if row.get("is_system") or (user_id and row.get("user_id") == str(user_id))
        ]
        if category_type:
            rows = [row for row in rows if row["type"] == category_type.value]
        rows.sort(key=lambda r: r["name"])
        return [Category(**row) for row in rows]

    async def add_category(
        self,
        name: str,
        category_type: TransactionType,
        user_id: Optional[UUID] = None,
        icon: str = "DollarSign",
        color: str = "#6b7280",
    ) -> Category:
        """Seed helper; the app itself never writes categories."""
        row = await self._store.insert(CATEGORIES_TABLE, {
            "user_id": str(user_id) if user_id else None,
            "name": name,
            "type": category_type.value,
            "icon": icon,
            "color": color,
            "is_system": user_id is None,
        })
        return Category(**row)


class MemoryTransactionStorage(TransactionStorageInterface):

    def __init__(self, store: MemoryStore):
        self._store = store

    async def list_transactions(self, user_id: UUID) -> list[Transaction]:
        rows = [r for r in self._store.select(TRANSACTIONS_TABLE) if r["user_id"] == str(user_id)]
        rows.sort(key=lambda r: (r["date"], r["created_at"]), reverse=True)
        return [Transaction(**row) for row in rows]

    async def create_transaction(self, draft: TransactionDraft) -> Transaction:
        return Transaction(**await self._store.insert(TRANSACTIONS_TABLE, draft.to_row()))

    async def update_transaction(self, transaction_id: UUID, draft: TransactionDraft) -> Transaction:
        row = await self._store.update(TRANSACTIONS_TABLE, transaction_id, draft.to_row())
        if row is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}")
        return Transaction(**row)

    async def delete_transaction(self, transaction_id: UUID) -> bool:
        return await self._store.delete(TRANSACTIONS_TABLE, transaction_id)


class MemoryProfileStorage(ProfileStorageInterface):

    def __init__(self, store: MemoryStore):
        self._store = store

    async def get_profile(self, user_id: UUID) -> Optional[Profile]:
        rows = [r for r in self._store.select(PROFILES_TABLE) if r["id"] == str(user_id)]
        return Profile(**rows[0]) if rows else None

    async def update_profile(self, user_id: UUID, updates: ProfileUpdate) -> Profile:
        row = await self._store.update(PROFILES_TABLE, user_id, updates.to_row())
        if row is None:
            raise NotFoundError(f"Profile not found: {user_id}")
        return Profile(**row)


class MemoryAuth(AuthInterface):
    """Password auth over a dict of users. Registering also creates the profile row."""

    def __init__(self, store: MemoryStore):
        self._store = store
        self._passwords: dict[str, tuple[UUID, str]] = {}
        self._current: Optional[AuthUser] = None

    def register(self, email: str, password: str, user_id: Optional[UUID] = None) -> AuthUser:
        user_id = user_id or uuid4()
        self._passwords[email.lower()] = (user_id, password)
        now = datetime.utcnow().isoformat()
        self._store.tables[PROFILES_TABLE][str(user_id)] = {
            "id": str(user_id),
            "email": email,
            "created_at": now,
            "updated_at": now,
        }
        return AuthUser(id=user_id, email=email)

    async def sign_in(self, email: str, password: str) -> AuthUser:
        self._store.record("auth", "sign_in")
        entry = self._passwords.get(email.lower())
        if entry is None or entry[1] != password:
            raise AuthenticationError("Invalid login credentials")
        self._current = AuthUser(id=entry[0], email=email, access_token=str(uuid4()))
        return self._current

    async def sign_out(self) -> None:
        self._store.record("auth", "sign_out")
        self._current = None

    async def update_password(self, new_password: str) -> None:
        self._store.record("auth", "update_password")
        if self._current is None:
            raise AuthenticationError("No user logged in")
        self._passwords[self._current.email.lower()] = (self._current.id, new_password)

    async def current_user(self) -> Optional[AuthUser]:
        return self._current


class MemoryChangeFeed(ChangeFeedInterface):

    def __init__(self, store: MemoryStore):
        self._store = store

    async def subscribe(
        self,
        table: str,
        callback: ChangeCallback,
        filter: Optional[str] = None,
    ) -> Subscription:
        self._store.record(table, "subscribe")
        name = channel_name_for(table, filter)
        subscription = Subscription(channel_name=name, table=table, filter=filter, handle=name)
        self._store.subscriptions[name] = (subscription, callback)
        return subscription

    async def unsubscribe(self, subscription: Subscription) -> None:
        if subscription.handle is None:
            return
        self._store.subscriptions.pop(subscription.channel_name, None)
        subscription.handle = None

    @property
    def open_channels(self) -> list[str]:
        return sorted(self._store.subscriptions)


def create_memory_backend(store: Optional[MemoryStore] = None) -> Backend:
    store = store or MemoryStore()
    backend = Backend(
        accounts=MemoryAccountStorage(store),
        categories=MemoryCategoryStorage(store),
        transactions=MemoryTransactionStorage(store),
        profiles=MemoryProfileStorage(store),
        auth=MemoryAuth(store),
        changes=MemoryChangeFeed(store),
        name="memory",
    )
    backend.store = store
    return backend


DEMO_EMAIL = "demo@fintrack.local"
DEMO_PASSWORD = "demo-password"

DEMO_CATEGORIES = [
    ("Salary", TransactionType.INCOME, "Briefcase", "#16a34a"),
    ("Freelance", TransactionType.INCOME, "Laptop", "#22c55e"),
    ("Food & Dining", TransactionType.EXPENSE, "Utensils", "#ef4444"),
    ("Transportation", TransactionType.EXPENSE, "Car", "#f97316"),
    ("Shopping", TransactionType.EXPENSE, "ShoppingBag", "#a855f7"),
    ("Bills & Utilities", TransactionType.EXPENSE, "Receipt", "#3b82f6"),
    ("Entertainment", TransactionType.EXPENSE, "Film", "#eab308"),
]


async def seed_demo_data(backend: Backend) -> AuthUser:
    """
    Fill a memory backend with a demo user, accounts and a few months of
    transactions. Returns the demo user (registered, not signed in).
    """
    user = backend.auth.register(DEMO_EMAIL, DEMO_PASSWORD)

    categories = {}
    for name, category_type, icon, color in DEMO_CATEGORIES:
        categories[name] = await backend.categories.add_category(
            name, category_type, icon=icon, color=color,
        )

    today = datetime.utcnow().date()
    bank = await backend.accounts.create_account(AccountDraft(
        user_id=user.id, name="Payroll Bank", type=AccountType.BANK,
        balance=Decimal("48250.00"), icon=AccountType.BANK.icon,
    ))
    await backend.accounts.create_account(AccountDraft(
        user_id=user.id, name="Cash", type=AccountType.CASH,
        balance=Decimal("3500.00"), icon=AccountType.CASH.icon,
    ))
    wallet = await backend.accounts.create_account(AccountDraft(
        user_id=user.id, name="GCash", type=AccountType.WALLET,
        balance=Decimal("7200.00"), icon=AccountType.WALLET.icon,
    ))
    card = await backend.accounts.create_account(AccountDraft(
        user_id=user.id, name="Rewards Visa", type=AccountType.CREDIT,
        balance=Decimal("41800.00"), credit_limit=Decimal("50000.00"),
        icon=AccountType.CREDIT.icon,
        statement_date=today.replace(day=1),
        payment_due_date=today.replace(day=1) + timedelta(days=21),
    ))

    entries = [
        (0, bank, "Salary", TransactionType.INCOME, "35000", "Monthly salary"),
        (2, card, "Food & Dining", TransactionType.EXPENSE, "1850", "Dinner out"),
        (5, wallet, "Transportation", TransactionType.EXPENSE, "420", "Ride home"),
        (9, card, "Shopping", TransactionType.EXPENSE, "5600", "New shoes"),
        (31, bank, "Salary", TransactionType.INCOME, "35000", "Monthly salary"),
        (33, bank, "Bills & Utilities", TransactionType.EXPENSE, "3200", "Electricity"),
        (40, wallet, "Freelance", TransactionType.INCOME, "8000", "Logo project"),
        (45, card, "Entertainment", TransactionType.EXPENSE, "999", "Concert"),
        (62, bank, "Salary", TransactionType.INCOME, "35000", "Monthly salary"),
        (66, card, "Food & Dining", TransactionType.EXPENSE, "2400", "Groceries"),
    ]
    for days_ago, account, category, kind, amount, description in entries:
        await backend.transactions.create_transaction(TransactionDraft(
            user_id=user.id,
            account_id=account.id,
            category_id=categories[category].id,
            type=kind,
            amount=Decimal(amount),
            description=description,
            date=datetime.utcnow() - timedelta(days=days_ago),
        ))

    return user
