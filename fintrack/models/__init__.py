"""
Data Models Package

This package contains all Pydantic models used in Fintrack.
Rows coming from the backend and payloads going to it must conform to these schemas.
"""

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
    ValidationIssue,
    ValidationResult,
    WriteKind,
)
from fintrack.models.notifications import (
    Notification,
    NotificationBuilder,
    NotificationEvent,
    NotificationVariant,
)

__all__ = [
    # Entity models
    "Account",
    "AccountDraft",
    "AccountType",
    "AuthUser",
    "Category",
    "ChangeEvent",
    "ChangeEventType",
    "Profile",
    "ProfileUpdate",
    "Transaction",
    "TransactionDraft",
    "TransactionType",
    # Form models
    "AccountForm",
    "PasswordChangeForm",
    "PaymentForm",
    "PendingWrite",
    "ProfileForm",
    "SignInForm",
    "SubmitOutcome",
    "SubmitStatus",
    "TransactionForm",
    "ValidationIssue",
    "ValidationResult",
    "WriteKind",
    # Notification models
    "Notification",
    "NotificationBuilder",
    "NotificationEvent",
    "NotificationVariant",
]
