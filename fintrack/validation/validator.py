"""
Form Validation

DESIGN DECISION: Dialogs validate in two stages before anything is sent
to the backend:

STAGE 1 - PRESENCE:
- Required fields are non-empty
- Type-dependent fields (credit card limit and dates) are present

STAGE 2 - PARSING:
- Amounts parse as finite numbers
- Amounts are within range
- Text fits the length the write models allow
- Cross-field rules (passwords match, payment covered by the source)

Stage 2 only runs when stage 1 passes, so the user gets one clear
message at a time. Everything else (constraints, ownership, uniqueness)
is the backend's job.

IMPORTANT: Validation NEVER silently fixes input. It reports issues,
and the dialog stays open.
"""

from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

from fintrack.config import AppSettings, get_settings
from fintrack.formatting import parse_amount
from fintrack.models.entities import (
    Account,
    AccountDraft,
    AccountType,
    ProfileUpdate,
    TransactionDraft,
)
from fintrack.models.forms import (
    AccountForm,
    PasswordChangeForm,
    PaymentForm,
    ProfileForm,
    SignInForm,
    TransactionForm,
    ValidationIssue,
    ValidationResult,
)
from fintrack.models.notifications import Notification, NotificationBuilder


def _missing(field: str, message: str = "This field is required") -> ValidationIssue:
    return ValidationIssue(field=field, issue_type="missing", message=message)


def _max_length(model, field: str) -> Optional[int]:
    """The max_length a write model declares for one of its fields."""
    for constraint in model.model_fields[field].metadata:
        limit = getattr(constraint, "max_length", None)
        if limit is not None:
            return limit
    return None


def _check_length(model, field: str, value: str, label: str) -> list[ValidationIssue]:
    limit = _max_length(model, field)
    if limit is None or len(value.strip()) <= limit:
        return []
    return [ValidationIssue(
        field=field,
        issue_type="invalid_value",
        message=f"{label} must be at most {limit} characters.",
    )]


def _parse_uuid(value: str) -> Optional[UUID]:
    try:
        return UUID(value)
    except (TypeError, ValueError):
        return None


class FormValidator:
    """
    Validates dialog forms.

    Every validate_* method returns a ValidationResult whose `parsed`
    dict holds typed values ready for the write models.
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def _check_amount(
        self,
        field: str,
        text: str,
        message: str,
        positive: bool = False,
    ) -> tuple[Optional[Decimal], list[ValidationIssue]]:
        """Parse one amount field and range-check it."""
        value = parse_amount(text)
        if value is None:
            return None, [ValidationIssue(field=field, issue_type="invalid_amount", message=message)]

        issues = []
        if positive and value <= 0:
            issues.append(ValidationIssue(
                field=field,
                issue_type="invalid_amount",
                message="Amount must be greater than zero.",
            ))
        elif abs(value) > Decimal(str(self._settings.max_amount)):
            issues.append(ValidationIssue(
                field=field,
                issue_type="invalid_amount",
                message="Amount is too large.",
            ))
        return value, issues

    def validate_account(self, form: AccountForm) -> ValidationResult:
        """
        Account dialog.

        Required: name, type, balance. Credit cards also need a limit,
        a statement date and a payment due date.
        """
        issues = []

        # Stage 1: presence
        if not form.name.strip():
            issues.append(_missing("name"))
        if not form.type:
            issues.append(_missing("type"))
        if not form.balance.strip():
            issues.append(_missing("balance"))
        if issues:
            return ValidationResult(issues=issues)

        try:
            account_type = AccountType(form.type)
        except ValueError:
            return ValidationResult(issues=[ValidationIssue(
                field="type",
                issue_type="invalid_value",
                message=f"Unknown account type: {form.type}",
            )])

        is_credit = account_type == AccountType.CREDIT
        if is_credit:
            for field in ("credit_limit", "statement_date", "payment_due_date"):
                value = getattr(form, field)
                if value is None or (isinstance(value, str) and not value.strip()):
                    issues.append(_missing(
                        field,
                        "Credit cards require limit, statement date, and payment due date.",
                    ))
            if issues:
                return ValidationResult(issues=issues)

        # Stage 2: parsing
        issues.extend(_check_length(AccountDraft, "name", form.name, "Account name"))
        number_message = "Please enter valid numbers for balance and limit."
        balance, balance_issues = self._check_amount("balance", form.balance, number_message)
        issues.extend(balance_issues)

        credit_limit = None
        if is_credit:
            credit_limit, limit_issues = self._check_amount("credit_limit", form.credit_limit, number_message)
            issues.extend(limit_issues)
            if credit_limit is not None and credit_limit < 0:
                issues.append(ValidationIssue(
                    field="credit_limit",
                    issue_type="invalid_amount",
                    message="Credit limit cannot be negative.",
                ))

        return ValidationResult(
            issues=issues,
            parsed={
                "name": form.name.strip(),
                "type": account_type,
                "balance": balance,
                "credit_limit": credit_limit,
                "statement_date": form.statement_date if is_credit else None,
                "payment_due_date": form.payment_due_date if is_credit else None,
            },
        )

    def validate_transaction(self, form: TransactionForm) -> ValidationResult:
        """Transaction dialog. Required: amount, category, account."""
        issues = []

        if not form.amount.strip():
            issues.append(_missing("amount"))
        if not form.category_id:
            issues.append(_missing("category_id"))
        if not form.account_id:
            issues.append(_missing("account_id"))
        if issues:
            return ValidationResult(issues=issues)

        amount, issues = self._check_amount(
            "amount",
            form.amount,
            "Please enter a valid number for the amount.",
            positive=True,
        )
        issues.extend(_check_length(TransactionDraft, "description", form.description, "Description"))

        category_id = _parse_uuid(form.category_id)
        account_id = _parse_uuid(form.account_id)
        if category_id is None:
            issues.append(ValidationIssue(
                field="category_id", issue_type="invalid_value", message="Unknown category",
            ))
        if account_id is None:
            issues.append(ValidationIssue(
                field="account_id", issue_type="invalid_value", message="Unknown account",
            ))

        return ValidationResult(
            issues=issues,
            parsed={
                "type": form.type,
                "amount": amount,
                "category_id": category_id,
                "account_id": account_id,
                "description": form.description.strip() or None,
            },
        )

    def validate_payment(
        self,
        form: PaymentForm,
        available_accounts: Iterable[Account],
    ) -> ValidationResult:
        """
        Pay Now dialog.

        A source account must be selected, and the amount must be positive
        and covered by the source account's balance.
        """
        issues = []
        if not form.from_account_id:
            issues.append(_missing("from_account_id", "Select an account to pay from"))
        if not form.amount.strip():
            issues.append(_missing("amount"))
        if issues:
            return ValidationResult(issues=issues)

        amount, issues = self._check_amount(
            "amount",
            form.amount,
            "Please enter a valid number for the amount.",
            positive=True,
        )

        source_id = _parse_uuid(form.from_account_id)
        source = next((a for a in available_accounts if a.id == source_id), None)
        if source is None:
            issues.append(ValidationIssue(
                field="from_account_id",
                issue_type="invalid_value",
                message="Select an account to pay from",
            ))
        elif amount is not None and amount > source.balance:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="insufficient_funds",
                message=f"{source.name} does not have enough balance for this payment",
            ))

        return ValidationResult(
            issues=issues,
            parsed={"amount": amount, "source": source},
        )

    def validate_password_change(self, form: PasswordChangeForm) -> ValidationResult:
        """Security page: both fields filled, equal, and long enough."""
        if not form.new_password or not form.confirm_password:
            missing = [
                _missing(field, "Please fill in all fields")
                for field in ("new_password", "confirm_password")
                if not getattr(form, field)
            ]
            return ValidationResult(issues=missing)

        if form.new_password != form.confirm_password:
            return ValidationResult(issues=[ValidationIssue(
                field="confirm_password",
                issue_type="mismatch",
                message="New passwords do not match",
            )])

        min_length = self._settings.min_password_length
        if len(form.new_password) < min_length:
            return ValidationResult(issues=[ValidationIssue(
                field="new_password",
                issue_type="too_short",
                message=f"Password must be at least {min_length} characters",
            )])

        return ValidationResult(parsed={"password": form.new_password})

    def validate_profile(self, form: ProfileForm) -> ValidationResult:
        """Edit profile page. Every field is optional but must fit its column."""
        labels = {
            "first_name": "First name",
            "last_name": "Last name",
            "phone": "Phone number",
            "address": "Address",
        }
        issues = []
        for field, label in labels.items():
            issues.extend(_check_length(ProfileUpdate, field, getattr(form, field), label))
        return ValidationResult(issues=issues, parsed=form.model_dump())

    def validate_sign_in(self, form: SignInForm) -> ValidationResult:
        issues = []
        if not form.email.strip():
            issues.append(_missing("email"))
        elif "@" not in form.email:
            issues.append(ValidationIssue(
                field="email", issue_type="invalid_value", message="Enter a valid email address",
            ))
        if not form.password:
            issues.append(_missing("password"))
        return ValidationResult(
            issues=issues,
            parsed={"email": form.email.strip(), "password": form.password},
        )

    def to_notification(self, result: ValidationResult) -> Optional[Notification]:
        """
        The notification for the first blocking issue, or None if valid.

        Missing fields are reported together; everything else one at a time.
        """
        issue = result.first_error
        if issue is None:
            return None

        if issue.issue_type == "missing":
            fields = [i.field for i in result.issues if i.issue_type == "missing"]
            if issue.message == "This field is required":
                return NotificationBuilder.missing_information(fields=fields)
            return NotificationBuilder.missing_information(issue.message, fields=fields)
        if issue.issue_type == "invalid_amount":
            return NotificationBuilder.invalid_amount(issue.message)
        if issue.issue_type == "insufficient_funds":
            source = result.parsed.get("source")
            return NotificationBuilder.insufficient_funds(source.name if source else "The account")
        if issue.issue_type == "mismatch":
            return NotificationBuilder.password_mismatch()
        if issue.issue_type == "too_short":
            return NotificationBuilder.weak_password(self._settings.min_password_length)
        return NotificationBuilder.operation_failed("validate form", issue.message, title="Invalid Input")
