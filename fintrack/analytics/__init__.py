"""Aggregations and charts computed from the cached collections."""

from fintrack.analytics.aggregation import (
    AccountGroup,
    CardPortfolio,
    CardSummary,
    CategorySlice,
    MonthBucket,
    category_percentages,
    credit_card_summaries,
    filter_transactions,
    group_accounts,
    has_activity,
    monthly_income_expense,
    recent_transactions,
    spending_by_category,
    summarize_card,
    total_balance,
    total_expenses,
    total_income,
)
from fintrack.analytics.charts import income_expense_bars, spending_pie

__all__ = [
    "AccountGroup",
    "CardPortfolio",
    "CardSummary",
    "CategorySlice",
    "MonthBucket",
    "category_percentages",
    "credit_card_summaries",
    "filter_transactions",
    "group_accounts",
    "has_activity",
    "income_expense_bars",
    "monthly_income_expense",
    "recent_transactions",
    "spending_by_category",
    "spending_pie",
    "summarize_card",
    "total_balance",
    "total_expenses",
    "total_income",
]
