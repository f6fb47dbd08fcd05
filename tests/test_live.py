"""Tests for the live collections and the in-memory backend's change feed."""

from datetime import datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from fintrack.models import (
    AccountDraft,
    AccountType,
    ChangeEventType,
    ProfileUpdate,
    TransactionDraft,
    TransactionType,
)
from fintrack.queries import (
    AccountsCollection,
    CategoriesCollection,
    ProfileCollection,
    TransactionsCollection,
)
from fintrack.services.backend import (
    ACCOUNTS_TABLE,
    AuthenticationError,
    BackendError,
    channel_name_for,
    create_memory_backend,
    seed_demo_data,
)


def bank_draft(user_id, name="Bank", balance="100"):
    return AccountDraft(user_id=user_id, name=name, type=AccountType.BANK, balance=Decimal(balance))


class TestLifecycle:
    """Mount, unmount and channel naming."""

    async def test_mount_fetches_and_opens_one_channel(self, backend, user):
        collection = AccountsCollection(backend, user.id)
        await collection.mount()

        assert collection.mounted
        assert not collection.loading
        assert collection.channel_name == f"accounts_changes:user_id=eq.{user.id}"
        assert backend.changes.open_channels == [collection.channel_name]

    async def test_mount_twice_is_noop(self, backend, store, user):
        collection = AccountsCollection(backend, user.id)
        await collection.mount()
        await collection.mount()

        assert len(store.calls_for(ACCOUNTS_TABLE, "select")) == 1
        assert len(backend.changes.open_channels) == 1

    async def test_unmount_removes_channel(self, backend, user):
        collection = AccountsCollection(backend, user.id)
        await collection.mount()
        await collection.unmount()

        assert not collection.mounted
        assert backend.changes.open_channels == []
        # Unmounting again is harmless
        await collection.unmount()

    async def test_remount_reuses_channel_name(self, backend, user):
        first = AccountsCollection(backend, user.id)
        await first.mount()
        name = first.channel_name
        await first.unmount()

        second = AccountsCollection(backend, user.id)
        await second.mount()
        assert second.channel_name == name

    def test_channel_names_are_stable(self):
        assert channel_name_for("categories") == "categories_changes"
        assert channel_name_for("profiles", "id=eq.1") == "profiles_changes:id=eq.1"

    async def test_no_user_no_channel(self, backend):
        collection = TransactionsCollection(backend, None)
        await collection.mount()

        assert collection.items == []
        assert not collection.loading
        assert collection.channel_name is None
        assert backend.changes.open_channels == []


class TestRefetchOnChange:
    """Every change notification reloads the whole collection."""

    async def test_insert_update_delete(self, backend, user):
        collection = AccountsCollection(backend, user.id)
        await collection.mount()
        assert collection.items == []

        created = await backend.accounts.create_account(bank_draft(user.id))
        assert [a.name for a in collection.items] == ["Bank"]

        await backend.accounts.update_account(created.id, bank_draft(user.id, name="Payroll"))
        assert [a.name for a in collection.items] == ["Payroll"]

        await backend.accounts.delete_account(created.id)
        assert collection.items == []

    async def test_other_users_changes_are_filtered(self, backend, user):
        collection = AccountsCollection(backend, user.id)
        await collection.mount()

        await backend.accounts.create_account(bank_draft(uuid4()))
        assert collection.items == []

    async def test_unmounted_collection_stops_listening(self, backend, user):
        collection = AccountsCollection(backend, user.id)
        await collection.mount()
        await collection.unmount()

        await backend.accounts.create_account(bank_draft(user.id))
        assert collection.items == []

    async def test_fetch_failure_keeps_items(self, backend, store, user):
        collection = AccountsCollection(backend, user.id)
        await backend.accounts.create_account(bank_draft(user.id))
        await collection.mount()
        assert len(collection.items) == 1

        store.fail_next(ACCOUNTS_TABLE, "select", "connection reset")
        await collection.refetch()

        assert collection.error == "connection reset"
        assert len(collection.items) == 1

        await collection.refetch()
        assert collection.error is None

    async def test_malformed_row_is_recorded_as_error(self, backend, store, user):
        collection = AccountsCollection(backend, user.id)
        await backend.accounts.create_account(bank_draft(user.id))
        await collection.mount()

        row = {
            "id": str(uuid4()),
            "user_id": str(user.id),
            "name": "Broken",
            "type": "savings",
            "balance": "10",
            "created_at": datetime(2030, 1, 1).isoformat(),
        }
        store.tables[ACCOUNTS_TABLE][row["id"]] = row
        await store.publish(ACCOUNTS_TABLE, ChangeEventType.INSERT, row)

        assert collection.error is not None
        assert [a.name for a in collection.items] == ["Bank"]

    async def test_transactions_order(self, backend, user, categories):
        collection = TransactionsCollection(backend, user.id)
        await collection.mount()
        account = await backend.accounts.create_account(bank_draft(user.id))

        for day in (3, 1, 2):
            await backend.transactions.create_transaction(TransactionDraft(
                user_id=user.id,
                account_id=account.id,
                category_id=categories["food"].id,
                type=TransactionType.EXPENSE,
                amount=Decimal(day),
                date=datetime(2025, 3, day),
            ))

        assert [t.date.day for t in collection.items] == [3, 2, 1]


class TestCategoriesAndProfile:

    async def test_categories_include_system_and_own(self, backend, user, categories):
        await backend.categories.add_category("Side hustle", TransactionType.INCOME, user_id=user.id)
        await backend.categories.add_category("Secret", TransactionType.INCOME, user_id=uuid4())

        collection = CategoriesCollection(backend, user.id, TransactionType.INCOME)
        await collection.mount()

        assert [c.name for c in collection.items] == ["Salary", "Side hustle"]
        assert collection.channel_name == "categories_changes"

    async def test_categories_without_user_lists_system(self, backend, categories):
        collection = CategoriesCollection(backend)
        await collection.mount()
        assert [c.name for c in collection.items] == ["Food", "Salary", "Transport"]

    async def test_profile_update_rereads(self, backend, user):
        collection = ProfileCollection(backend, user.id)
        await collection.mount()
        assert collection.channel_name == f"profiles_changes:id=eq.{user.id}"
        assert collection.profile.email == "maria@example.com"

        profile = await collection.update_profile(ProfileUpdate(first_name="Maria", last_name="Santos"))
        assert profile.first_name == "Maria"
        assert collection.profile.last_name == "Santos"

    async def test_profile_update_without_user(self, backend):
        collection = ProfileCollection(backend, None)
        with pytest.raises(AuthenticationError):
            await collection.update_profile(ProfileUpdate(first_name="X"))

    async def test_profile_update_failure(self, backend, store, user):
        collection = ProfileCollection(backend, user.id)
        await collection.mount()
        store.fail_next("profiles", "update", "violates check constraint")
        with pytest.raises(BackendError, match="violates check constraint"):
            await collection.update_profile(ProfileUpdate(first_name="X"))


class TestDemoData:

    async def test_seed_demo_data(self):
        backend = create_memory_backend()
        demo = await seed_demo_data(backend)
        user = await backend.auth.sign_in(demo.email, "demo-password")

        accounts = AccountsCollection(backend, user.id)
        await accounts.mount()
        assert {a.type for a in accounts.items} == set(AccountType)
        assert len(accounts.credit_cards) == 1
