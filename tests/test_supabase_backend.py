"""
Tests for the Supabase backend wrappers.

The client library is replaced by a recording fake so no network is used.
"""

from types import SimpleNamespace
from uuid import uuid4

import pytest

from fintrack.config import SupabaseSettings
from fintrack.models import ChangeEventType, TransactionType
from fintrack.services.backend import BackendError, SupabaseClient
from fintrack.services.backend.supabase_backend import (
    SupabaseAccountStorage,
    SupabaseCategoryStorage,
    SupabaseChangeFeed,
    parse_change_payload,
)


class FakeQuery:
    """Records the builder calls and returns canned rows (or raises)."""

    def __init__(self, table, rows=None, error=None):
        self.table = table
        self.calls = []
        self._rows = rows or []
        self._error = error

    def __getattr__(self, name):
        def method(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self
        return method

    async def execute(self):
        if self._error:
            raise self._error
        return SimpleNamespace(data=self._rows)


class FakeClient:
    def __init__(self, rows=None, error=None):
        self.queries = []
        self._rows = rows
        self._error = error

    def table(self, name):
        query = FakeQuery(name, self._rows, self._error)
        self.queries.append(query)
        return query


@pytest.fixture
def supabase_settings():
    return SupabaseSettings(url="https://demo.supabase.co/", anon_key="anon")


def client_with(settings, fake):
    client = SupabaseClient(settings)
    client._client = fake
    return client


class TestSettings:

    def test_url_is_normalized(self, supabase_settings):
        assert supabase_settings.url == "https://demo.supabase.co"

    def test_url_requires_scheme(self):
        with pytest.raises(ValueError):
            SupabaseSettings(url="demo.supabase.co", anon_key="anon")


class TestQueries:

    async def test_list_accounts_filters_and_orders(self, supabase_settings):
        user_id = uuid4()
        fake = FakeClient(rows=[{
            "id": str(uuid4()),
            "user_id": str(user_id),
            "name": "Payroll",
            "type": "bank",
            "balance": 1200.5,
        }])
        storage = SupabaseAccountStorage(client_with(supabase_settings, fake))

        accounts = await storage.list_accounts(user_id)

        assert accounts[0].name == "Payroll"
        query = fake.queries[0]
        assert query.table == "accounts"
        assert ("eq", ("user_id", str(user_id)), {}) in query.calls
        assert ("eq", ("is_active", True), {}) in query.calls
        assert ("order", ("created_at",), {"desc": True}) in query.calls

    async def test_categories_visibility_filter(self, supabase_settings):
        user_id = uuid4()
        fake = FakeClient(rows=[])
        storage = SupabaseCategoryStorage(client_with(supabase_settings, fake))

        await storage.list_categories(user_id, TransactionType.EXPENSE)

        calls = fake.queries[0].calls
        assert ("or_", (f"is_system.eq.true,user_id.eq.{user_id}",), {}) in calls
        assert ("eq", ("type", "expense"), {}) in calls

    async def test_errors_carry_raw_message(self, supabase_settings):
        error = Exception("boom")
        error.message = 'permission denied for table "accounts"'
        storage = SupabaseAccountStorage(client_with(supabase_settings, FakeClient(error=error)))

        with pytest.raises(BackendError) as excinfo:
            await storage.delete_account(uuid4())
        assert str(excinfo.value) == 'permission denied for table "accounts"'

    async def test_delete_of_missing_row(self, supabase_settings):
        storage = SupabaseAccountStorage(client_with(supabase_settings, FakeClient(rows=[])))
        assert await storage.delete_account(uuid4()) is False


class TestChangePayloads:

    def test_nested_payload(self):
        event = parse_change_payload("accounts", {
            "data": {
                "type": "INSERT",
                "table": "accounts",
                "record": {"id": "1"},
                "old_record": None,
            },
            "ids": [1],
        })
        assert event.event_type == ChangeEventType.INSERT
        assert event.record == {"id": "1"}
        assert event.old_record == {}

    def test_flat_payload(self):
        event = parse_change_payload("transactions", {
            "eventType": "delete",
            "new": {},
            "old": {"id": "2"},
        })
        assert event.table == "transactions"
        assert event.event_type == ChangeEventType.DELETE
        assert event.old_record == {"id": "2"}


class FakeChannel:
    def __init__(self, name):
        self.name = name
        self.handlers = []
        self.subscribed = False

    def on_postgres_changes(self, event, callback, table="*", schema="public", filter=None):
        self.handlers.append((event, table, schema, filter, callback))
        return self

    async def subscribe(self, *args, **kwargs):
        self.subscribed = True
        return self


class FakeRealtimeClient:
    def __init__(self):
        self.channels = {}
        self.removed = []

    def channel(self, name):
        self.channels[name] = FakeChannel(name)
        return self.channels[name]

    async def remove_channel(self, channel):
        self.removed.append(channel.name)


class TestChangeFeed:

    async def test_subscribe_and_unsubscribe(self, supabase_settings):
        fake = FakeRealtimeClient()
        feed = SupabaseChangeFeed(client_with(supabase_settings, fake))
        received = []
        user_id = uuid4()

        subscription = await feed.subscribe("accounts", received.append, filter=f"user_id=eq.{user_id}")

        channel = fake.channels[f"accounts_changes:user_id=eq.{user_id}"]
        assert channel.subscribed
        event, table, schema, filter, callback = channel.handlers[0]
        assert (event, table, schema) == ("*", "accounts", "public")

        callback({"data": {"type": "UPDATE", "record": {"id": "1"}}})
        assert received[0].event_type == ChangeEventType.UPDATE

        await feed.unsubscribe(subscription)
        await feed.unsubscribe(subscription)
        assert fake.removed == [channel.name]
