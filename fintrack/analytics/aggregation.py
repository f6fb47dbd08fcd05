"""
Aggregations over the cached collections

DESIGN DECISION: Every number on the dashboard, cards and transactions
pages is computed here from the rows the live collections hold.
Nothing is estimated and nothing is stored; all functions are pure.

Money is summed as Decimal. Rounding only happens for display
(percentages are rounded to one decimal).
"""

from collections import OrderedDict
from decimal import Decimal
from typing import Iterable, Optional, Sequence
from uuid import UUID

from pydantic import BaseModel, Field

from fintrack.models.entities import (
    Account,
    AccountType,
    Category,
    Transaction,
    TransactionType,
)


UNKNOWN_CATEGORY = "Unknown"

MONTH_LABELS = [
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]


# =============================================================================
# RESULT MODELS
# =============================================================================

class CategorySlice(BaseModel):
    """Total expense for one category name."""
    name: str
    value: Decimal = Decimal("0")
    percent: float = 0.0


class MonthBucket(BaseModel):
    """Income and expense totals for one calendar month."""
    year: int
    month: int = Field(..., ge=1, le=12)
    label: str
    income: Decimal = Decimal("0")
    expenses: Decimal = Decimal("0")

    @property
    def net(self) -> Decimal:
        return self.income - self.expenses


class CardSummary(BaseModel):
    """Everything the cards page shows for one credit card."""
    card: Account
    utilization_percent: float
    remaining_credit: Decimal
    near_limit: bool
    spend: Decimal = Field(
        default=Decimal("0"),
        description="Sum of all expense transactions charged to the card"
    )
    recent_transactions: list[Transaction] = Field(default_factory=list)


class CardPortfolio(BaseModel):
    """Totals across all credit cards."""
    cards: list[CardSummary] = Field(default_factory=list)
    total_debt: Decimal = Decimal("0")
    total_limit: Decimal = Decimal("0")
    total_available: Decimal = Decimal("0")
    near_limit_count: int = 0


class AccountGroup(BaseModel):
    title: str
    types: list[AccountType]
    accounts: list[Account] = Field(default_factory=list)


# =============================================================================
# TOTALS
# =============================================================================

def total_balance(accounts: Iterable[Account]) -> Decimal:
    """Sum of balances of all non-credit accounts (card debt is not money held)."""
    return sum(
        (account.balance for account in accounts if not account.is_credit),
        Decimal("0"),
    )


def _sum_by_type(transactions: Iterable[Transaction], kind: TransactionType) -> Decimal:
    return sum(
        (t.amount for t in transactions if t.type == kind),
        Decimal("0"),
    )


def total_income(transactions: Iterable[Transaction]) -> Decimal:
    return _sum_by_type(transactions, TransactionType.INCOME)


def total_expenses(transactions: Iterable[Transaction]) -> Decimal:
    return _sum_by_type(transactions, TransactionType.EXPENSE)


def recent_transactions(transactions: Sequence[Transaction], limit: int = 5) -> list[Transaction]:
    """The first `limit` transactions, in the order the collection holds them."""
    return list(transactions[:limit])


# =============================================================================
# CATEGORY BREAKDOWN
# =============================================================================

def spending_by_category(
    transactions: Iterable[Transaction],
    categories: Iterable[Category],
) -> list[CategorySlice]:
    """
    Group expense amounts by category name.

    Transactions whose category is not in `categories` go to "Unknown".
    Two categories with the same name share one slice. Slices keep the
    order in which their name first appears. The values always add up
    to total_expenses(transactions).
    """
    names: dict[UUID, str] = {category.id: category.name for category in categories}
    totals: "OrderedDict[str, Decimal]" = OrderedDict()

    for transaction in transactions:
        if transaction.type != TransactionType.EXPENSE:
            continue
        name = names.get(transaction.category_id, UNKNOWN_CATEGORY)
        totals[name] = totals.get(name, Decimal("0")) + transaction.amount

    return category_percentages(
        [CategorySlice(name=name, value=value) for name, value in totals.items()]
    )


def category_percentages(slices: list[CategorySlice]) -> list[CategorySlice]:
    """Fill in each slice's share of the total, rounded to one decimal."""
    total = sum((s.value for s in slices), Decimal("0"))
    result = []
    for s in slices:
        percent = float(s.value / total * 100) if total else 0.0
        result.append(s.model_copy(update={"percent": round(percent, 1)}))
    return result


# =============================================================================
# MONTHLY GROUPING
# =============================================================================

def monthly_income_expense(transactions: Iterable[Transaction]) -> list[MonthBucket]:
    """
    Income and expense totals per calendar month, oldest month first.

    Every transaction lands in exactly one bucket, keyed by (year, month)
    so that the same month of different years is never merged. Labels are
    short month names; the year is added when the data spans several years.
    """
    buckets: dict[tuple[int, int], dict[str, Decimal]] = {}

    for transaction in transactions:
        key = (transaction.date.year, transaction.date.month)
        bucket = buckets.setdefault(key, {"income": Decimal("0"), "expenses": Decimal("0")})
        if transaction.is_income:
            bucket["income"] += transaction.amount
        else:
            bucket["expenses"] += transaction.amount

    multi_year = len({year for year, _ in buckets}) > 1

    result = []
    for (year, month) in sorted(buckets):
        label = MONTH_LABELS[month - 1]
        if multi_year:
            label = f"{label} {year}"
        result.append(MonthBucket(
            year=year,
            month=month,
            label=label,
            income=buckets[(year, month)]["income"],
            expenses=buckets[(year, month)]["expenses"],
        ))
    return result


def has_activity(buckets: Iterable[MonthBucket]) -> bool:
    return any(b.income > 0 or b.expenses > 0 for b in buckets)


# =============================================================================
# CREDIT CARDS
# =============================================================================

def _newest_first(transactions: Iterable[Transaction]) -> list[Transaction]:
    return sorted(transactions, key=lambda t: t.date, reverse=True)


def summarize_card(
    card: Account,
    transactions: Iterable[Transaction],
    recent_limit: int = 3,
    near_limit_threshold: float = 80.0,
) -> CardSummary:
    card_transactions = [t for t in transactions if t.account_id == card.id]
    utilization = card.utilization_percent
    return CardSummary(
        card=card,
        utilization_percent=utilization,
        remaining_credit=(card.credit_limit or Decimal("0")) - card.balance,
        near_limit=utilization > near_limit_threshold,
        spend=total_expenses(card_transactions),
        recent_transactions=_newest_first(card_transactions)[:recent_limit],
    )


def credit_card_summaries(
    accounts: Iterable[Account],
    transactions: Sequence[Transaction],
    recent_limit: int = 3,
    near_limit_threshold: float = 80.0,
) -> CardPortfolio:
    """
    Per-card summaries plus portfolio totals.

    A card is near its limit when utilization is strictly above the threshold.
    Cards without a limit count as 0% utilized.
    """
    cards = [account for account in accounts if account.is_credit]
    summaries = [
        summarize_card(card, transactions, recent_limit, near_limit_threshold)
        for card in cards
    ]
    total_debt = sum((card.balance for card in cards), Decimal("0"))
    total_limit = sum((card.credit_limit or Decimal("0") for card in cards), Decimal("0"))
    return CardPortfolio(
        cards=summaries,
        total_debt=total_debt,
        total_limit=total_limit,
        total_available=total_limit - total_debt,
        near_limit_count=sum(1 for s in summaries if s.near_limit),
    )


# =============================================================================
# LISTS
# =============================================================================

def filter_transactions(
    transactions: Iterable[Transaction],
    kind: str = "all",
    search: Optional[str] = None,
) -> list[Transaction]:
    """
    Filter by type ("all", "income" or "expense") and by a case-insensitive
    substring of the description, newest date first.
    """
    if kind not in ("all", TransactionType.INCOME.value, TransactionType.EXPENSE.value):
        raise ValueError(f"Unknown transaction filter: {kind}")

    needle = (search or "").lower()
    selected = [
        t for t in transactions
        if (kind == "all" or t.type.value == kind)
        and needle in (t.description or "").lower()
    ]
    return _newest_first(selected)


ACCOUNT_GROUPS = [
    ("Cash & Bank", [AccountType.CASH, AccountType.BANK]),
    ("Digital Wallets", [AccountType.WALLET]),
    ("Credit Cards", [AccountType.CREDIT]),
]


def group_accounts(accounts: Iterable[Account]) -> list[AccountGroup]:
    """Split accounts into the three sections of the accounts page."""
    accounts = list(accounts)
    return [
        AccountGroup(
            title=title,
            types=types,
            accounts=[a for a in accounts if a.type in types],
        )
        for title, types in ACCOUNT_GROUPS
    ]
