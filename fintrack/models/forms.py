"""
Form Models for Fintrack

Raw dialog input, validation results and the outcome of a dialog submit.

Form fields are kept as the user typed them (strings) so the validator
can tell "missing" apart from "not a number". Parsing into the typed
write models only happens after validation passes.
"""

from datetime import date
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from fintrack.models.entities import TransactionType
from fintrack.models.notifications import Notification


class AccountForm(BaseModel):
    """Fields of the add/edit account dialog."""

    name: str = ""
    type: str = ""
    balance: str = ""
    credit_limit: str = ""
    statement_date: Optional[date] = None
    payment_due_date: Optional[date] = None


class TransactionForm(BaseModel):
    """Fields of the add/edit income or expense dialog."""

    type: TransactionType = TransactionType.EXPENSE
    amount: str = ""
    category_id: str = ""
    account_id: str = ""
    description: str = ""


class PaymentForm(BaseModel):
    """Fields of the credit card "Pay Now" dialog."""

    from_account_id: str = ""
    amount: str = ""


class ProfileForm(BaseModel):
    """Fields of the edit profile page."""

    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    address: str = ""


class PasswordChangeForm(BaseModel):
    """Fields of the security page."""

    new_password: str = ""
    confirm_password: str = ""


class SignInForm(BaseModel):
    email: str = ""
    password: str = ""


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single problem found in a form."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_amount', 'mismatch')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """
    Result of validating one form.

    Only error-level issues block the submit.
    """

    issues: list[ValidationIssue] = Field(default_factory=list)
    parsed: dict[str, Any] = Field(
        default_factory=dict,
        description="Parsed values (numbers, ids) for the fields that passed"
    )

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def has_errors(self) -> bool:
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def first_error(self) -> Optional[ValidationIssue]:
        for issue in self.issues:
            if issue.severity == "error":
                return issue
        return None


# =============================================================================
# SUBMIT OUTCOMES
# =============================================================================

class WriteKind(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class PendingWrite(BaseModel):
    """
    A validated write waiting for the user's confirmation.

    CRITICAL: updates and deletes are never sent to the backend
    until the user confirms the matching PendingWrite.
    """

    kind: WriteKind
    table: str
    record_id: Optional[UUID] = None
    payload: dict[str, Any] = Field(default_factory=dict)
    title: str
    prompt: str


class SubmitStatus(str, Enum):
    SAVED = "saved"
    CONFIRMATION_REQUIRED = "confirmation_required"
    INVALID = "invalid"
    FAILED = "failed"


class SubmitOutcome(BaseModel):
    """
    What happened when a dialog was submitted.

    keep_open tells the view whether the dialog should stay on screen
    (validation failures and backend errors keep it open for a retry).
    """

    status: SubmitStatus
    notification: Optional[Notification] = None
    pending: Optional[PendingWrite] = None
    validation: Optional[ValidationResult] = None
    record: Optional[dict[str, Any]] = None

    @property
    def succeeded(self) -> bool:
        return self.status == SubmitStatus.SAVED

    @property
    def keep_open(self) -> bool:
        return self.status != SubmitStatus.SAVED
