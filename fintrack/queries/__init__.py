"""Live read-through collections over the backend tables."""

from fintrack.queries.live import (
    AccountsCollection,
    CategoriesCollection,
    LiveCollection,
    ProfileCollection,
    TransactionsCollection,
)

__all__ = [
    "AccountsCollection",
    "CategoriesCollection",
    "LiveCollection",
    "ProfileCollection",
    "TransactionsCollection",
]
