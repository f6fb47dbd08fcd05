"""
Main Orchestrator for Fintrack

This module ties together all the components and defines the
dialog flows:
1. Account dialog (validate → insert, or validate → confirm → update)
2. Transaction dialog (same shape)
3. Pay Now dialog (validate → acknowledge)
4. Profile and security pages
5. Sign in / sign out (owns the live collections)

DESIGN DECISION: The orchestrator enforces the boundaries:
- No backend call happens before the form validates
- No update or delete happens without the user's confirmation
- Every outcome becomes a notification, and failures keep the form open

The flows never retry. A failed call is reported with the backend's raw
message and the user decides what to do next.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Awaitable, Callable, Iterable, Optional

import structlog
from pydantic import ValidationError

from fintrack.config import AppSettings, get_settings
from fintrack.formatting import format_currency, sanitize_number_input
from fintrack.models.entities import (
    Account,
    AccountDraft,
    AuthUser,
    ProfileUpdate,
    Transaction,
    TransactionDraft,
    TransactionType,
)
from fintrack.models.forms import (
    AccountForm,
    PasswordChangeForm,
    PaymentForm,
    PendingWrite,
    ProfileForm,
    SignInForm,
    SubmitOutcome,
    SubmitStatus,
    TransactionForm,
    ValidationResult,
    WriteKind,
)
from fintrack.models.notifications import Notification, NotificationBuilder
from fintrack.notifications import Notifier
from fintrack.queries import (
    AccountsCollection,
    CategoriesCollection,
    LiveCollection,
    ProfileCollection,
    TransactionsCollection,
)
from fintrack.services.backend import (
    ACCOUNTS_TABLE,
    TRANSACTIONS_TABLE,
    Backend,
    BackendError,
    create_memory_backend,
    create_supabase_backend,
    seed_demo_data,
)
from fintrack.validation import FormValidator


logger = structlog.get_logger(__name__)


class UserSession:
    """
    The signed-in user and the collections the pages read from.

    Collections are created on sign-in and unmounted on sign-out,
    so no channel outlives the session that opened it.
    """

    def __init__(self, backend: Backend):
        self.backend = backend
        self.user: Optional[AuthUser] = None
        self.accounts = AccountsCollection(backend)
        self.transactions = TransactionsCollection(backend)
        self.categories = CategoriesCollection(backend)
        self.profile = ProfileCollection(backend)

    @property
    def user_id(self):
        return self.user.id if self.user else None

    @property
    def collections(self) -> list[LiveCollection]:
        return [self.accounts, self.transactions, self.categories, self.profile]

    def bind(self, user: Optional[AuthUser]) -> None:
        """Point fresh (unmounted) collections at a user."""
        self.user = user
        user_id = user.id if user else None
        self.accounts = AccountsCollection(self.backend, user_id)
        self.transactions = TransactionsCollection(self.backend, user_id)
        self.categories = CategoriesCollection(self.backend, user_id)
        self.profile = ProfileCollection(self.backend, user_id)

    async def mount_all(self) -> None:
        for collection in self.collections:
            await collection.mount()

    async def unmount_all(self) -> None:
        for collection in self.collections:
            await collection.unmount()

    def categories_of(self, category_type: TransactionType) -> CategoriesCollection:
        """A type-filtered view for the transaction dialog (not mounted)."""
        return CategoriesCollection(self.backend, self.user_id, category_type)


class _DialogFlow:
    """Shared plumbing: notify, report invalid forms, run a backend write."""

    def __init__(
        self,
        session: UserSession,
        notifier: Notifier,
        validator: Optional[FormValidator] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._session = session
        self._notifier = notifier
        self._settings = settings or get_settings().app
        self._validator = validator or FormValidator(self._settings)

    def _invalid(self, result: ValidationResult) -> SubmitOutcome:
        notification = self._validator.to_notification(result)
        if notification:
            self._notifier.notify(notification)
        return SubmitOutcome(
            status=SubmitStatus.INVALID,
            notification=notification,
            validation=result,
        )

    def _rejected(self, error: ValidationError, field: str) -> SubmitOutcome:
        """A write model refused the parsed form; report it like a form issue."""
        return self._invalid(ValidationResult(issues=[
            {"field": field, "issue_type": "invalid_value", "message": err["msg"]}
            for err in error.errors()
        ]))

    def _not_signed_in(self) -> SubmitOutcome:
        notification = self._notifier.notify(NotificationBuilder.missing_information())
        return SubmitOutcome(status=SubmitStatus.INVALID, notification=notification)

    async def _write(
        self,
        action: str,
        call: Callable[[], Awaitable[Any]],
        success: Callable[[Any], Notification],
        collection: Optional[LiveCollection] = None,
    ) -> SubmitOutcome:
        """
        Run one backend write, then refresh the cache.

        BackendError becomes a destructive notification with the raw message.
        """
        try:
            result = await call()
        except BackendError as e:
            logger.error("dialog_write_failed", action=action, error=str(e))
            notification = self._notifier.notify(
                NotificationBuilder.operation_failed(action, str(e))
            )
            return SubmitOutcome(status=SubmitStatus.FAILED, notification=notification)

        if collection is not None:
            await collection.refetch()

        notification = self._notifier.notify(success(result))
        record = result.model_dump(mode="json") if hasattr(result, "model_dump") else None
        return SubmitOutcome(
            status=SubmitStatus.SAVED,
            notification=notification,
            record=record,
        )


class AccountDialogFlow(_DialogFlow):
    """
    Add / edit / delete account.

    Flow:
    1. Validate → on failure notify and stay open (no backend call)
    2. New account → insert
    3. Existing account → return a PendingWrite; confirm() performs the update
    4. Delete → return a PendingWrite; confirm() performs the delete
    """

    def _draft(self, result: ValidationResult, editing: Optional[Account]) -> AccountDraft:
        parsed = result.parsed
        return AccountDraft(
            user_id=self._session.user_id,
            name=parsed["name"],
            type=parsed["type"],
            balance=parsed["balance"],
            credit_limit=parsed["credit_limit"],
            currency=self._settings.currency,
            icon=parsed["type"].icon,
            is_active=editing.is_active if editing else True,
            statement_date=parsed["statement_date"],
            payment_due_date=parsed["payment_due_date"],
        )

    async def submit(self, form: AccountForm, editing: Optional[Account] = None) -> SubmitOutcome:
        if self._session.user is None:
            return self._not_signed_in()

        result = self._validator.validate_account(form)
        if not result.is_valid:
            return self._invalid(result)

        try:
            draft = self._draft(result, editing)
        except ValidationError as e:
            return self._rejected(e, "account")

        if editing is not None:
            pending = PendingWrite(
                kind=WriteKind.UPDATE,
                table=ACCOUNTS_TABLE,
                record_id=editing.id,
                payload=draft.to_row(),
                title="Save changes?",
                prompt=f"Update {editing.name} with the new details?",
            )
            return SubmitOutcome(status=SubmitStatus.CONFIRMATION_REQUIRED, pending=pending)

        return await self._write(
            "add account",
            lambda: self._session.backend.accounts.create_account(draft),
            lambda account: NotificationBuilder.account_saved(account.name, False, account.id),
            self._session.accounts,
        )

    def delete(self, account: Account) -> SubmitOutcome:
        """Ask for confirmation before deleting."""
        pending = PendingWrite(
            kind=WriteKind.DELETE,
            table=ACCOUNTS_TABLE,
            record_id=account.id,
            title="Delete account?",
            prompt=f"This will permanently remove {account.name}.",
        )
        return SubmitOutcome(status=SubmitStatus.CONFIRMATION_REQUIRED, pending=pending)

    async def confirm(self, pending: PendingWrite) -> SubmitOutcome:
        """Carry out a write the user has confirmed."""
        backend = self._session.backend
        if pending.table != ACCOUNTS_TABLE or pending.record_id is None:
            raise ValueError(f"Not an account write: {pending.table}")

        if pending.kind == WriteKind.UPDATE:
            draft = AccountDraft(**pending.payload)
            return await self._write(
                "update account",
                lambda: backend.accounts.update_account(pending.record_id, draft),
                lambda account: NotificationBuilder.account_saved(account.name, True, account.id),
                self._session.accounts,
            )

        if pending.kind == WriteKind.DELETE:
            return await self._write(
                "delete account",
                lambda: backend.accounts.delete_account(pending.record_id),
                lambda _: NotificationBuilder.account_deleted(pending.record_id),
                self._session.accounts,
            )

        raise ValueError(f"Nothing to confirm for {pending.kind.value}")


class TransactionDialogFlow(_DialogFlow):
    """
    Add / edit / delete income or expense.

    New transactions are dated now; edits keep the original date.
    """

    def _draft(self, result: ValidationResult, editing: Optional[Transaction]) -> TransactionDraft:
        parsed = result.parsed
        return TransactionDraft(
            user_id=self._session.user_id,
            account_id=parsed["account_id"],
            category_id=parsed["category_id"],
            type=parsed["type"],
            amount=parsed["amount"],
            description=parsed["description"],
            date=editing.date if editing else datetime.utcnow(),
        )

    async def submit(
        self,
        form: TransactionForm,
        editing: Optional[Transaction] = None,
    ) -> SubmitOutcome:
        if self._session.user is None:
            return self._not_signed_in()

        result = self._validator.validate_transaction(form)
        if not result.is_valid:
            return self._invalid(result)

        try:
            draft = self._draft(result, editing)
        except ValidationError as e:
            return self._rejected(e, "transaction")
        is_income = draft.type == TransactionType.INCOME

        if editing is not None:
            pending = PendingWrite(
                kind=WriteKind.UPDATE,
                table=TRANSACTIONS_TABLE,
                record_id=editing.id,
                payload=draft.to_row(),
                title="Save changes?",
                prompt=f"Update this {'income' if is_income else 'expense'}?",
            )
            return SubmitOutcome(status=SubmitStatus.CONFIRMATION_REQUIRED, pending=pending)

        return await self._write(
            "add transaction",
            lambda: self._session.backend.transactions.create_transaction(draft),
            lambda t: NotificationBuilder.transaction_saved(t.is_income, False, t.id),
            self._session.transactions,
        )

    def delete(self, transaction: Transaction) -> SubmitOutcome:
        pending = PendingWrite(
            kind=WriteKind.DELETE,
            table=TRANSACTIONS_TABLE,
            record_id=transaction.id,
            title="Delete transaction?",
            prompt="This transaction will be permanently removed.",
        )
        return SubmitOutcome(status=SubmitStatus.CONFIRMATION_REQUIRED, pending=pending)

    async def confirm(self, pending: PendingWrite) -> SubmitOutcome:
        backend = self._session.backend
        if pending.table != TRANSACTIONS_TABLE or pending.record_id is None:
            raise ValueError(f"Not a transaction write: {pending.table}")

        if pending.kind == WriteKind.UPDATE:
            draft = TransactionDraft(**pending.payload)
            return await self._write(
                "update transaction",
                lambda: backend.transactions.update_transaction(pending.record_id, draft),
                lambda t: NotificationBuilder.transaction_saved(t.is_income, True, t.id),
                self._session.transactions,
            )

        if pending.kind == WriteKind.DELETE:
            return await self._write(
                "delete transaction",
                lambda: backend.transactions.delete_transaction(pending.record_id),
                lambda _: NotificationBuilder.transaction_deleted(pending.record_id),
                self._session.transactions,
            )

        raise ValueError(f"Nothing to confirm for {pending.kind.value}")


class PayNowFlow(_DialogFlow):
    """
    Credit card payment dialog.

    Settling a card (moving money between accounts) is out of scope:
    a valid payment is logged and acknowledged, and no balance is written.
    """

    def prepare(self, card: Account) -> PaymentForm:
        """Default form: no source selected, the full card balance as amount."""
        return PaymentForm(
            from_account_id="",
            amount=sanitize_number_input(f"{card.balance:.2f}"),
        )

    @staticmethod
    def half_balance(card: Account) -> str:
        return sanitize_number_input(f"{(card.balance / 2):.2f}")

    @staticmethod
    def source_accounts(accounts: Iterable[Account]) -> list[Account]:
        """Any non-credit account can pay a card."""
        return [account for account in accounts if not account.is_credit]

    def submit(
        self,
        card: Account,
        form: PaymentForm,
        available_accounts: Iterable[Account],
    ) -> SubmitOutcome:
        result = self._validator.validate_payment(form, self.source_accounts(available_accounts))
        if not result.is_valid:
            return self._invalid(result)

        source: Account = result.parsed["source"]
        amount: Decimal = result.parsed["amount"]
        logger.info(
            "payment_requested",
            card_id=str(card.id),
            from_account_id=str(source.id),
            amount=str(amount),
        )
        notification = self._notifier.notify(NotificationBuilder.payment_submitted(
            card.name,
            source.name,
            format_currency(amount, self._settings.currency_symbol),
        ))
        return SubmitOutcome(status=SubmitStatus.SAVED, notification=notification)


class ProfileFlow(_DialogFlow):
    """Edit profile page."""

    def prefill(self) -> ProfileForm:
        profile = self._session.profile.profile
        if profile is None:
            return ProfileForm()
        return ProfileForm(
            first_name=profile.first_name or "",
            last_name=profile.last_name or "",
            phone=profile.phone or "",
            address=profile.address or "",
        )

    async def save(self, form: ProfileForm) -> SubmitOutcome:
        if self._session.user is None:
            return self._not_signed_in()

        result = self._validator.validate_profile(form)
        if not result.is_valid:
            return self._invalid(result)

        try:
            updates = ProfileUpdate(**result.parsed)
        except ValidationError as e:
            return self._rejected(e, "profile")

        try:
            profile = await self._session.profile.update_profile(updates)
        except BackendError as e:
            notification = self._notifier.notify(NotificationBuilder.operation_failed(
                "update profile",
                str(e) or "Could not update profile",
                title="Update Failed",
            ))
            return SubmitOutcome(status=SubmitStatus.FAILED, notification=notification)

        notification = self._notifier.notify(NotificationBuilder.profile_updated())
        return SubmitOutcome(
            status=SubmitStatus.SAVED,
            notification=notification,
            record=profile.model_dump(mode="json") if profile else None,
        )


class SecurityFlow(_DialogFlow):
    """Change password page."""

    async def change_password(self, form: PasswordChangeForm) -> SubmitOutcome:
        result = self._validator.validate_password_change(form)
        if not result.is_valid:
            return self._invalid(result)

        return await self._write(
            "update password",
            lambda: self._session.backend.auth.update_password(result.parsed["password"]),
            lambda _: NotificationBuilder.password_changed(),
        )


class SessionFlow(_DialogFlow):
    """Sign in and sign out. Signing in mounts the collections; signing out unmounts them."""

    async def _open(self, user: Optional[AuthUser]) -> Optional[str]:
        """
        Bind the session to a user and mount its collections.

        Returns the backend error message if a channel could not be opened;
        the channels already opened are closed again and the session is unbound.
        """
        self._session.bind(user)
        try:
            await self._session.mount_all()
        except BackendError as e:
            logger.error("session_mount_failed", error=str(e))
            await self._session.unmount_all()
            self._session.bind(None)
            return str(e) or "Could not connect to live updates"
        return None

    async def restore(self) -> Optional[AuthUser]:
        """Pick up a session the auth service still holds."""
        user = await self._session.backend.auth.current_user()
        if user is not None and self._session.user is None:
            error = await self._open(user)
            if error is not None:
                self._notifier.notify(NotificationBuilder.operation_failed("restore session", error))
                return None
        return user

    async def sign_in(self, form: SignInForm) -> SubmitOutcome:
        result = self._validator.validate_sign_in(form)
        if not result.is_valid:
            return self._invalid(result)

        try:
            user = await self._session.backend.auth.sign_in(
                result.parsed["email"],
                result.parsed["password"],
            )
        except BackendError as e:
            notification = self._notifier.notify(
                NotificationBuilder.operation_failed("sign in", str(e))
            )
            return SubmitOutcome(status=SubmitStatus.FAILED, notification=notification)

        await self._session.unmount_all()
        error = await self._open(user)
        if error is not None:
            notification = self._notifier.notify(
                NotificationBuilder.operation_failed("sign in", error)
            )
            return SubmitOutcome(status=SubmitStatus.FAILED, notification=notification)

        notification = self._notifier.notify(NotificationBuilder.signed_in(user.email or ""))
        return SubmitOutcome(status=SubmitStatus.SAVED, notification=notification)

    async def sign_out(self) -> SubmitOutcome:
        await self._session.unmount_all()
        try:
            await self._session.backend.auth.sign_out()
        except BackendError as e:
            notification = self._notifier.notify(
                NotificationBuilder.operation_failed("sign out", str(e))
            )
            return SubmitOutcome(status=SubmitStatus.FAILED, notification=notification)
        finally:
            self._session.bind(None)

        notification = self._notifier.notify(NotificationBuilder.signed_out())
        return SubmitOutcome(status=SubmitStatus.SAVED, notification=notification)


class AppComponents:
    """Everything a page needs, created once per browser session."""

    def __init__(
        self,
        backend: Backend,
        notifier: Optional[Notifier] = None,
        settings: Optional[AppSettings] = None,
    ):
        self.backend = backend
        self.settings = settings or get_settings().app
        self.notifier = notifier or Notifier()
        self.session = UserSession(backend)
        validator = FormValidator(self.settings)

        args = (self.session, self.notifier, validator, self.settings)
        self.accounts = AccountDialogFlow(*args)
        self.transactions = TransactionDialogFlow(*args)
        self.payments = PayNowFlow(*args)
        self.profile = ProfileFlow(*args)
        self.security = SecurityFlow(*args)
        self.auth = SessionFlow(*args)

    @property
    def is_demo(self) -> bool:
        return self.backend.name == "memory"


async def create_app_components(
    use_backend: bool = True,
    notifier: Optional[Notifier] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        use_backend: Whether to connect to Supabase.
                     Set to False (or leave Supabase unconfigured) to run
                     against the in-memory demo backend.
    """
    backend = None

    if use_backend:
        try:
            backend = create_supabase_backend()
        except ValidationError as e:
            # Backend not configured - continue with the demo backend
            logger.warning("backend_not_configured", error=str(e))

    if backend is None:
        backend = create_memory_backend()
        await seed_demo_data(backend)
        logger.info("demo_backend_ready")

    return AppComponents(backend, notifier=notifier)
