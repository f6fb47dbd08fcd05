"""
Notification Models for Fintrack

Every dialog outcome the user should hear about becomes a Notification:
a short transient message ("toast") with a title, a description and a
variant. Destructive notifications report failures.

DESIGN DECISION: Notifications are plain data. Showing them is the
view's job; logging them is the Notifier's job. Flows only build them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class NotificationVariant(str, Enum):
    """How a notification is presented."""
    DEFAULT = "default"
    DESTRUCTIVE = "destructive"


class NotificationEvent(str, Enum):
    """
    What a notification is about.

    Used as the structured log event name.
    """
    # Validation
    MISSING_INFORMATION = "missing_information"
    INVALID_AMOUNT = "invalid_amount"
    PASSWORD_MISMATCH = "password_mismatch"
    WEAK_PASSWORD = "weak_password"
    INSUFFICIENT_FUNDS = "insufficient_funds"

    # Accounts
    ACCOUNT_ADDED = "account_added"
    ACCOUNT_UPDATED = "account_updated"
    ACCOUNT_DELETED = "account_deleted"

    # Transactions
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"

    # Cards
    PAYMENT_SUBMITTED = "payment_submitted"

    # Profile and session
    PROFILE_UPDATED = "profile_updated"
    PASSWORD_CHANGED = "password_changed"
    SIGNED_IN = "signed_in"
    SIGNED_OUT = "signed_out"
    COMING_SOON = "coming_soon"

    # Failures
    OPERATION_FAILED = "operation_failed"


class Notification(BaseModel):
    """A single user-facing message."""

    notification_id: UUID = Field(
        default_factory=uuid4,
        description="Unique notification identifier"
    )
    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the notification was raised (UTC)"
    )
    event: NotificationEvent
    title: str = Field(..., max_length=100)
    description: Optional[str] = Field(
        default=None,
        description="Shown in full; backend errors arrive here verbatim"
    )
    variant: NotificationVariant = NotificationVariant.DEFAULT
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Extra context for the log only, never shown"
    )

    @property
    def is_error(self) -> bool:
        return self.variant == NotificationVariant.DESTRUCTIVE

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "notification_id": str(self.notification_id),
            "created_at": self.created_at.isoformat(),
            "notification_event": self.event.value,
            "title": self.title,
            "description": self.description,
            "variant": self.variant.value,
            "details": self.details,
        }


class NotificationBuilder:
    """
    Helper class to build the notifications the dialogs raise.

    Usage:
        note = NotificationBuilder.account_saved("Wallet", updated=False)
        note = NotificationBuilder.operation_failed("add account", "permission denied")
    """

    @staticmethod
    def missing_information(
        description: str = "Please fill in all required fields",
        fields: Optional[list[str]] = None,
    ) -> Notification:
        return Notification(
            event=NotificationEvent.MISSING_INFORMATION,
            title="Missing Information",
            description=description,
            variant=NotificationVariant.DESTRUCTIVE,
            details={"fields": fields or []},
        )

    @staticmethod
    def invalid_amount(description: str) -> Notification:
        return Notification(
            event=NotificationEvent.INVALID_AMOUNT,
            title="Invalid Amount",
            description=description,
            variant=NotificationVariant.DESTRUCTIVE,
        )

    @staticmethod
    def password_mismatch() -> Notification:
        return Notification(
            event=NotificationEvent.PASSWORD_MISMATCH,
            title="Password Mismatch",
            description="New passwords do not match",
            variant=NotificationVariant.DESTRUCTIVE,
        )

    @staticmethod
    def weak_password(min_length: int) -> Notification:
        return Notification(
            event=NotificationEvent.WEAK_PASSWORD,
            title="Weak Password",
            description=f"Password must be at least {min_length} characters",
            variant=NotificationVariant.DESTRUCTIVE,
        )

    @staticmethod
    def insufficient_funds(account_name: str) -> Notification:
        return Notification(
            event=NotificationEvent.INSUFFICIENT_FUNDS,
            title="Insufficient Funds",
            description=f"{account_name} does not have enough balance for this payment",
            variant=NotificationVariant.DESTRUCTIVE,
        )

    @staticmethod
    def account_saved(name: str, updated: bool, account_id: Optional[UUID] = None) -> Notification:
        return Notification(
            event=NotificationEvent.ACCOUNT_UPDATED if updated else NotificationEvent.ACCOUNT_ADDED,
            title="Account Updated" if updated else "Account Added",
            description=f"{name} {'updated' if updated else 'added'} successfully",
            details={"account_id": str(account_id) if account_id else None},
        )

    @staticmethod
    def account_deleted(account_id: UUID) -> Notification:
        return Notification(
            event=NotificationEvent.ACCOUNT_DELETED,
            title="Account Deleted",
            description="Account has been removed successfully",
            details={"account_id": str(account_id)},
        )

    @staticmethod
    def transaction_saved(
        is_income: bool,
        updated: bool,
        transaction_id: Optional[UUID] = None,
    ) -> Notification:
        kind = "Income" if is_income else "Expense"
        return Notification(
            event=(
                NotificationEvent.TRANSACTION_UPDATED
                if updated
                else NotificationEvent.TRANSACTION_ADDED
            ),
            title="Transaction Updated" if updated else "Transaction Added",
            description=f"{kind} {'updated' if updated else 'added'} successfully",
            details={"transaction_id": str(transaction_id) if transaction_id else None},
        )

    @staticmethod
    def transaction_deleted(transaction_id: UUID) -> Notification:
        return Notification(
            event=NotificationEvent.TRANSACTION_DELETED,
            title="Transaction Deleted",
            description="Transaction has been removed successfully",
            details={"transaction_id": str(transaction_id)},
        )

    @staticmethod
    def payment_submitted(
        card_name: str,
        from_account_name: str,
        amount: str,
    ) -> Notification:
        return Notification(
            event=NotificationEvent.PAYMENT_SUBMITTED,
            title="Payment Submitted",
            description=f"Paying {amount} to {card_name} from {from_account_name}",
            details={"card": card_name, "from_account": from_account_name, "amount": amount},
        )

    @staticmethod
    def profile_updated() -> Notification:
        return Notification(
            event=NotificationEvent.PROFILE_UPDATED,
            title="Profile Updated",
            description="Your profile has been updated successfully",
        )

    @staticmethod
    def password_changed() -> Notification:
        return Notification(
            event=NotificationEvent.PASSWORD_CHANGED,
            title="Password Changed",
            description="Your password has been updated successfully",
        )

    @staticmethod
    def signed_in(email: str) -> Notification:
        return Notification(
            event=NotificationEvent.SIGNED_IN,
            title="Welcome back",
            description=f"Signed in as {email}",
        )

    @staticmethod
    def signed_out() -> Notification:
        return Notification(
            event=NotificationEvent.SIGNED_OUT,
            title="Logged Out",
            description="You have been logged out successfully",
        )

    @staticmethod
    def coming_soon(feature: str) -> Notification:
        return Notification(
            event=NotificationEvent.COMING_SOON,
            title="Feature coming soon!",
            details={"feature": feature},
        )

    @staticmethod
    def operation_failed(
        action: str,
        error_message: Optional[str] = None,
        title: str = "Error",
    ) -> Notification:
        """The raw backend message is shown as-is; a generic one if it is empty."""
        return Notification(
            event=NotificationEvent.OPERATION_FAILED,
            title=title,
            description=error_message or f"Failed to {action}",
            variant=NotificationVariant.DESTRUCTIVE,
            details={"action": action},
        )
