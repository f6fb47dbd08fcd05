"""
Core Data Models for Fintrack

These models mirror the four backend tables the app reads and writes:
accounts, categories, transactions and profiles.

DESIGN DECISION: The backend owns these rows. The models here only parse
what the backend returns (read models) and shape what we send back
(write models). Row-level security, defaults and constraints live in the
database, not in this code.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class AccountType(str, Enum):
    """
    Kinds of balance-holding accounts.

    For CREDIT accounts the balance is the outstanding debt,
    not the available credit.
    """
    CASH = "cash"
    BANK = "bank"
    WALLET = "wallet"
    CREDIT = "credit"

    @property
    def icon(self) -> str:
        """Icon tag stored on the account row."""
        return ACCOUNT_TYPE_ICONS[self]

    @property
    def label(self) -> str:
        return ACCOUNT_TYPE_LABELS[self]


ACCOUNT_TYPE_ICONS = {
    AccountType.BANK: "Building2",
    AccountType.CASH: "Wallet",
    AccountType.WALLET: "Smartphone",
    AccountType.CREDIT: "CreditCard",
}

ACCOUNT_TYPE_LABELS = {
    AccountType.CASH: "Cash",
    AccountType.BANK: "Bank Account",
    AccountType.WALLET: "Digital Wallet",
    AccountType.CREDIT: "Credit Card",
}

DEFAULT_ACCOUNT_ICON = "Wallet"


class TransactionType(str, Enum):
    """Direction of a transaction. Categories carry the same type."""
    INCOME = "income"
    EXPENSE = "expense"


class ChangeEventType(str, Enum):
    """Row change kinds pushed by the backend change feed."""
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


def _date_part(value: Any) -> Any:
    """Accept full ISO timestamps for date-only columns."""
    if isinstance(value, str) and "T" in value:
        return value.split("T")[0]
    if isinstance(value, datetime):
        return value.date()
    return value


def _to_wire(value: Any) -> Any:
    """Convert a python value into something the backend REST API accepts."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


# =============================================================================
# READ MODELS - rows as returned by the backend
# =============================================================================

class Account(BaseModel):
    """A named balance-holding entity (cash, bank, wallet or credit card)."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID
    user_id: UUID
    name: str = Field(..., min_length=1)
    type: AccountType
    balance: Decimal = Field(
        default=Decimal("0"),
        description="Balance; for credit cards this is the debt"
    )
    credit_limit: Optional[Decimal] = None
    currency: str = "PHP"
    icon: str = DEFAULT_ACCOUNT_ICON
    is_active: bool = True
    statement_date: Optional[date] = None
    payment_due_date: Optional[date] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator('statement_date', 'payment_due_date', mode='before')
    @classmethod
    def normalize_dates(cls, v: Any) -> Any:
        return _date_part(v)

    @property
    def is_credit(self) -> bool:
        return self.type == AccountType.CREDIT

    @property
    def utilization_percent(self) -> float:
        """Share of the credit limit in use (0 for non-credit accounts)."""
        if not self.is_credit or not self.credit_limit:
            return 0.0
        return float(self.balance / self.credit_limit * 100)

    @property
    def available_credit(self) -> Optional[Decimal]:
        """Limit minus debt, or None when no limit is known."""
        if not self.is_credit or self.credit_limit is None:
            return None
        return self.credit_limit - self.balance


class Category(BaseModel):
    """
    A label for transactions.

    Categories with no user_id are system-provided and shared by everyone.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID
    user_id: Optional[UUID] = None
    name: str = Field(..., min_length=1)
    type: TransactionType
    icon: str = "DollarSign"
    color: str = "#6b7280"
    is_system: bool = False
    created_at: Optional[datetime] = None


class Transaction(BaseModel):
    """
    A single dated income or expense record.

    The amount is always a positive magnitude; the type gives the sign.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID
    user_id: UUID
    account_id: UUID
    category_id: UUID
    type: TransactionType
    amount: Decimal = Field(..., ge=0)
    description: Optional[str] = None
    date: datetime
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_income(self) -> bool:
        return self.type == TransactionType.INCOME

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.is_income else -self.amount


class Profile(BaseModel):
    """User profile; the id is the auth user id."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AuthUser(BaseModel):
    """The signed-in user as reported by the auth service."""

    id: UUID
    email: Optional[str] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None


class ChangeEvent(BaseModel):
    """A row change notification from the change feed."""

    table: str
    event_type: ChangeEventType
    record: dict[str, Any] = Field(default_factory=dict)
    old_record: dict[str, Any] = Field(default_factory=dict)
    received_at: datetime = Field(default_factory=datetime.utcnow)


# =============================================================================
# WRITE MODELS - payloads sent to insert/update calls
# =============================================================================

class WriteModel(BaseModel):
    """Base for payloads; to_row() produces the JSON body for the backend."""

    def to_row(self) -> dict[str, Any]:
        return {key: _to_wire(value) for key, value in self.model_dump().items()}


class AccountDraft(WriteModel):
    """
    Account fields as submitted by the account dialog.

    CRITICAL: credit cards must carry a limit and both statement dates.
    Non-credit accounts never carry them.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    user_id: UUID
    name: str = Field(..., min_length=1, max_length=100)
    type: AccountType
    balance: Decimal
    credit_limit: Optional[Decimal] = Field(default=None, ge=0)
    currency: str = "PHP"
    icon: str = DEFAULT_ACCOUNT_ICON
    is_active: bool = True
    statement_date: Optional[date] = None
    payment_due_date: Optional[date] = None

    @model_validator(mode='after')
    def validate_credit_fields(self) -> 'AccountDraft':
        """Enforce the credit-card field rules."""
        if self.type == AccountType.CREDIT:
            if self.credit_limit is None:
                raise ValueError("Credit cards require a credit limit")
            if self.statement_date is None or self.payment_due_date is None:
                raise ValueError(
                    "Credit cards require a statement date and a payment due date"
                )
        else:
            self.credit_limit = None
            self.statement_date = None
            self.payment_due_date = None
        return self


class TransactionDraft(WriteModel):
    """Transaction fields as submitted by the transaction dialog."""
    model_config = ConfigDict(str_strip_whitespace=True)

    user_id: UUID
    account_id: UUID
    category_id: UUID
    type: TransactionType
    amount: Decimal = Field(..., gt=0)
    description: Optional[str] = Field(default=None, max_length=500)
    date: datetime

    @field_validator('description')
    @classmethod
    def empty_description_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class ProfileUpdate(WriteModel):
    """Editable profile fields. Empty strings are stored as-is."""
    model_config = ConfigDict(str_strip_whitespace=True)

    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=30)
    address: Optional[str] = Field(default=None, max_length=300)
