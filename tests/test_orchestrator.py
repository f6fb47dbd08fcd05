"""
Tests for the dialog flows.

These run against the in-memory backend; `store.calls` records every
backend call so tests can assert that nothing was sent.
"""

from datetime import date
from decimal import Decimal

import pytest

from fintrack.models import (
    AccountForm,
    AccountType,
    NotificationEvent,
    PasswordChangeForm,
    PaymentForm,
    PendingWrite,
    ProfileForm,
    SignInForm,
    SubmitStatus,
    TransactionForm,
    TransactionType,
    WriteKind,
)
from fintrack.orchestrator import AppComponents, create_app_components
from fintrack.services.backend import ACCOUNTS_TABLE, TRANSACTIONS_TABLE


def writes(store):
    """Writes issued by the app (category seeding excluded)."""
    return [
        call for call in store.calls
        if call[1] in ("insert", "update", "delete") and call[0] != "categories"
    ]


async def add_bank(components, name="Payroll", balance="5000"):
    outcome = await components.accounts.submit(AccountForm(name=name, type="bank", balance=balance))
    assert outcome.succeeded
    return components.session.accounts.items[0]


class TestAccountDialog:

    async def test_missing_fields_never_call_backend(self, components, store):
        outcome = await components.accounts.submit(AccountForm(name="Wallet", type="", balance=""))

        assert outcome.status == SubmitStatus.INVALID
        assert outcome.keep_open
        assert outcome.notification.event == NotificationEvent.MISSING_INFORMATION
        assert writes(store) == []

    async def test_invalid_number_never_calls_backend(self, components, store):
        outcome = await components.accounts.submit(AccountForm(name="Cash", type="cash", balance="12abc"))

        assert outcome.notification.title == "Invalid Amount"
        assert writes(store) == []

    async def test_add_account(self, components, store, notifier):
        outcome = await components.accounts.submit(AccountForm(name="GCash", type="wallet", balance="1,500"))

        assert outcome.status == SubmitStatus.SAVED
        assert not outcome.keep_open
        assert outcome.notification.description == "GCash added successfully"
        assert store.calls_for(ACCOUNTS_TABLE, "insert") == [(ACCOUNTS_TABLE, "insert")]

        account = components.session.accounts.items[0]
        assert account.icon == "Smartphone"
        assert account.currency == "PHP"
        assert account.balance == Decimal("1500")
        assert notifier.pending[-1].event == NotificationEvent.ACCOUNT_ADDED

    async def test_add_credit_card(self, components):
        outcome = await components.accounts.submit(AccountForm(
            name="Visa",
            type="credit",
            balance="2000",
            credit_limit="20000",
            statement_date=date(2025, 3, 1),
            payment_due_date=date(2025, 3, 21),
        ))
        assert outcome.succeeded
        card = components.session.accounts.credit_cards[0]
        assert card.credit_limit == Decimal("20000")
        assert card.payment_due_date == date(2025, 3, 21)

    async def test_edit_requires_confirmation(self, components, store):
        account = await add_bank(components)
        before = len(writes(store))

        outcome = await components.accounts.submit(
            AccountForm(name="Savings", type="bank", balance="7000"),
            editing=account,
        )
        assert outcome.status == SubmitStatus.CONFIRMATION_REQUIRED
        assert outcome.pending.kind == WriteKind.UPDATE
        assert outcome.pending.record_id == account.id
        assert len(writes(store)) == before

        confirmed = await components.accounts.confirm(outcome.pending)
        assert confirmed.succeeded
        assert confirmed.notification.title == "Account Updated"
        assert components.session.accounts.items[0].name == "Savings"

    async def test_delete_requires_confirmation(self, components, store):
        account = await add_bank(components)

        outcome = components.accounts.delete(account)
        assert outcome.status == SubmitStatus.CONFIRMATION_REQUIRED
        assert store.calls_for(ACCOUNTS_TABLE, "delete") == []

        confirmed = await components.accounts.confirm(outcome.pending)
        assert confirmed.notification.event == NotificationEvent.ACCOUNT_DELETED
        assert components.session.accounts.items == []

    async def test_backend_error_keeps_dialog_open(self, components, store):
        store.fail_next(ACCOUNTS_TABLE, "insert", 'new row violates row-level security policy for table "accounts"')

        outcome = await components.accounts.submit(AccountForm(name="Cash", type="cash", balance="10"))

        assert outcome.status == SubmitStatus.FAILED
        assert outcome.keep_open
        assert outcome.notification.is_error
        assert outcome.notification.description == (
            'new row violates row-level security policy for table "accounts"'
        )

    async def test_failed_update_is_not_retried(self, components, store):
        account = await add_bank(components)
        outcome = await components.accounts.submit(
            AccountForm(name="Other", type="bank", balance="1"), editing=account,
        )
        store.fail_next(ACCOUNTS_TABLE, "update", "timeout")

        failed = await components.accounts.confirm(outcome.pending)
        assert failed.status == SubmitStatus.FAILED
        assert len(store.calls_for(ACCOUNTS_TABLE, "update")) == 1

    async def test_not_signed_in(self, backend, settings, store):
        app = AppComponents(backend, settings=settings)
        outcome = await app.accounts.submit(AccountForm(name="Cash", type="cash", balance="1"))
        assert outcome.status == SubmitStatus.INVALID
        assert writes(store) == []

    async def test_long_backend_error_is_reported(self, components, store):
        message = "value too long for type character varying(100) " * 30
        store.fail_next(ACCOUNTS_TABLE, "insert", message)

        outcome = await components.accounts.submit(AccountForm(name="Cash", type="cash", balance="10"))

        assert outcome.status == SubmitStatus.FAILED
        assert outcome.notification.description == message

    async def test_long_name_is_invalid(self, components, store):
        outcome = await components.accounts.submit(AccountForm(name="x" * 101, type="cash", balance="10"))

        assert outcome.status == SubmitStatus.INVALID
        assert outcome.notification.description == "Account name must be at most 100 characters."
        assert writes(store) == []

    async def test_confirm_rejects_foreign_write(self, components):
        account = await add_bank(components)
        pending = PendingWrite(
            kind=WriteKind.DELETE,
            table=TRANSACTIONS_TABLE,
            record_id=account.id,
            title="Delete transaction?",
            prompt="Gone for good.",
        )
        with pytest.raises(ValueError):
            await components.accounts.confirm(pending)


class TestTransactionDialog:

    def form(self, account, category, amount="250", kind=TransactionType.EXPENSE):
        return TransactionForm(
            type=kind,
            amount=amount,
            category_id=str(category.id),
            account_id=str(account.id),
            description="Groceries",
        )

    async def test_missing_fields_never_call_backend(self, components, store):
        outcome = await components.transactions.submit(TransactionForm(amount="", category_id="", account_id=""))
        assert outcome.status == SubmitStatus.INVALID
        assert store.calls_for(TRANSACTIONS_TABLE, "insert") == []

    async def test_add_expense(self, components, categories):
        account = await add_bank(components)
        outcome = await components.transactions.submit(self.form(account, categories["food"]))

        assert outcome.succeeded
        assert outcome.notification.description == "Expense added successfully"
        transaction = components.session.transactions.items[0]
        assert transaction.amount == Decimal("250")
        assert transaction.description == "Groceries"

    async def test_edit_keeps_original_date(self, components, categories, store):
        account = await add_bank(components)
        await components.transactions.submit(self.form(account, categories["food"]))
        original = components.session.transactions.items[0]

        outcome = await components.transactions.submit(
            self.form(account, categories["transport"], amount="300"),
            editing=original,
        )
        assert outcome.status == SubmitStatus.CONFIRMATION_REQUIRED
        assert store.calls_for(TRANSACTIONS_TABLE, "update") == []

        confirmed = await components.transactions.confirm(outcome.pending)
        assert confirmed.notification.title == "Transaction Updated"
        updated = components.session.transactions.items[0]
        assert updated.amount == Decimal("300")
        assert updated.category_id == categories["transport"].id
        assert updated.date == original.date

    async def test_long_description_is_invalid(self, components, categories, store):
        account = await add_bank(components)
        form = self.form(account, categories["food"])
        form.description = "x" * 501

        outcome = await components.transactions.submit(form)

        assert outcome.status == SubmitStatus.INVALID
        assert outcome.keep_open
        assert outcome.notification.title == "Invalid Input"
        assert outcome.notification.description == "Description must be at most 500 characters."
        assert store.calls_for(TRANSACTIONS_TABLE, "insert") == []

    async def test_delete(self, components, categories):
        account = await add_bank(components)
        await components.transactions.submit(self.form(account, categories["salary"], kind=TransactionType.INCOME))
        transaction = components.session.transactions.items[0]

        pending = components.transactions.delete(transaction).pending
        outcome = await components.transactions.confirm(pending)
        assert outcome.notification.event == NotificationEvent.TRANSACTION_DELETED
        assert components.session.transactions.items == []


class TestPayNow:

    async def test_prepare_defaults_to_full_balance(self, components, make_account):
        card = make_account(AccountType.CREDIT, balance="1234.5", credit_limit="5000")
        form = components.payments.prepare(card)
        assert form.amount == "1234.50"
        assert form.from_account_id == ""
        assert components.payments.half_balance(card) == "617.25"

    async def test_payment_is_acknowledged_without_writes(self, components, store, make_account):
        bank = await add_bank(components, balance="5000")
        card = make_account(AccountType.CREDIT, balance="3000", credit_limit="5000", name="Visa")
        before = len(writes(store))

        outcome = components.payments.submit(
            card,
            PaymentForm(from_account_id=str(bank.id), amount="3000"),
            components.session.accounts.items,
        )
        assert outcome.succeeded
        assert outcome.notification.event == NotificationEvent.PAYMENT_SUBMITTED
        assert outcome.notification.description == "Paying ₱3,000.00 to Visa from Payroll"
        assert len(writes(store)) == before

    async def test_insufficient_funds(self, components, make_account):
        bank = await add_bank(components, balance="100")
        card = make_account(AccountType.CREDIT, balance="3000", credit_limit="5000")

        outcome = components.payments.submit(
            card, PaymentForm(from_account_id=str(bank.id), amount="3000"), [bank],
        )
        assert outcome.status == SubmitStatus.INVALID
        assert outcome.notification.event == NotificationEvent.INSUFFICIENT_FUNDS

    async def test_credit_cards_cannot_pay(self, components, make_account):
        card = make_account(AccountType.CREDIT, balance="10", credit_limit="5000")
        other = make_account(AccountType.CREDIT, balance="0", credit_limit="5000")
        outcome = components.payments.submit(
            card, PaymentForm(from_account_id=str(other.id), amount="10"), [other],
        )
        assert outcome.status == SubmitStatus.INVALID


class TestProfileAndSecurity:

    async def test_save_profile(self, components):
        outcome = await components.profile.save(ProfileForm(first_name="Maria", phone="0917"))
        assert outcome.succeeded
        assert outcome.notification.title == "Profile Updated"
        assert components.session.profile.profile.first_name == "Maria"
        assert components.profile.prefill().phone == "0917"

    async def test_save_profile_failure(self, components, store):
        store.fail_next("profiles", "update", "")
        outcome = await components.profile.save(ProfileForm(first_name="Maria"))
        assert outcome.status == SubmitStatus.FAILED
        assert outcome.notification.title == "Update Failed"
        assert outcome.notification.description == "Could not update profile"

    async def test_long_profile_fields_are_invalid(self, components, store):
        outcome = await components.profile.save(ProfileForm(first_name="Maria", phone="1" * 31))

        assert outcome.status == SubmitStatus.INVALID
        assert outcome.notification.description == "Phone number must be at most 30 characters."
        assert store.calls_for("profiles", "update") == []
        assert components.session.profile.profile.first_name is None

    async def test_change_password(self, components, backend, store):
        outcome = await components.security.change_password(
            PasswordChangeForm(new_password="new-secret", confirm_password="new-secret")
        )
        assert outcome.notification.title == "Password Changed"

        await backend.auth.sign_out()
        user = await backend.auth.sign_in("maria@example.com", "new-secret")
        assert user.email == "maria@example.com"

    async def test_mismatched_password_never_calls_backend(self, components, store):
        outcome = await components.security.change_password(
            PasswordChangeForm(new_password="new-secret", confirm_password="other-secret")
        )
        assert outcome.notification.event == NotificationEvent.PASSWORD_MISMATCH
        assert store.calls_for("auth", "update_password") == []


class TestSession:

    async def test_sign_in_mounts_collections(self, backend, settings, categories):
        backend.auth.register("ana@example.com", "password1")
        app = AppComponents(backend, settings=settings)

        outcome = await app.auth.sign_in(SignInForm(email="ana@example.com", password="password1"))

        assert outcome.succeeded
        assert app.session.user.email == "ana@example.com"
        assert all(c.mounted for c in app.session.collections)
        assert len(backend.changes.open_channels) == 4

    async def test_wrong_password(self, backend, settings):
        backend.auth.register("ana@example.com", "password1")
        app = AppComponents(backend, settings=settings)

        outcome = await app.auth.sign_in(SignInForm(email="ana@example.com", password="nope"))
        assert outcome.status == SubmitStatus.FAILED
        assert outcome.notification.description == "Invalid login credentials"
        assert app.session.user is None

    async def test_channel_failure_on_sign_in(self, backend, settings, store, categories):
        backend.auth.register("ana@example.com", "password1")
        app = AppComponents(backend, settings=settings)
        store.fail_next("profiles", "subscribe", "realtime unavailable")

        outcome = await app.auth.sign_in(SignInForm(email="ana@example.com", password="password1"))

        assert outcome.status == SubmitStatus.FAILED
        assert outcome.notification.is_error
        assert outcome.notification.description == "realtime unavailable"
        assert app.session.user is None
        assert backend.changes.open_channels == []

    async def test_channel_failure_on_restore(self, backend, settings, store, notifier, categories):
        backend.auth.register("ana@example.com", "password1")
        await backend.auth.sign_in("ana@example.com", "password1")
        app = AppComponents(backend, notifier=notifier, settings=settings)
        store.fail_next("accounts", "subscribe", "realtime unavailable")

        assert await app.auth.restore() is None
        assert app.session.user is None
        assert backend.changes.open_channels == []
        assert notifier.pending[-1].description == "realtime unavailable"

    async def test_sign_out_unmounts_everything(self, components, backend):
        assert backend.changes.open_channels

        outcome = await components.auth.sign_out()

        assert outcome.notification.title == "Logged Out"
        assert backend.changes.open_channels == []
        assert components.session.user is None
        assert await backend.auth.current_user() is None

    async def test_demo_components(self):
        app = await create_app_components(use_backend=False)
        assert app.is_demo

        outcome = await app.auth.sign_in(SignInForm(email="demo@fintrack.local", password="demo-password"))
        assert outcome.succeeded
        assert app.session.accounts.items
        assert app.session.transactions.items
        await app.auth.sign_out()
