"""Shared fixtures: an in-memory backend with one signed-in user."""

from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from fintrack.config import AppSettings
from fintrack.models import (
    Account,
    AccountType,
    Category,
    Transaction,
    TransactionType,
)
from fintrack.notifications import Notifier
from fintrack.orchestrator import AppComponents
from fintrack.services.backend import create_memory_backend


EMAIL = "maria@example.com"
PASSWORD = "secret-password"


@pytest.fixture
def settings():
    return AppSettings()


@pytest.fixture
def backend():
    return create_memory_backend()


@pytest.fixture
def store(backend):
    return backend.store


@pytest.fixture
async def user(backend):
    """A registered and signed-in user."""
    backend.auth.register(EMAIL, PASSWORD)
    return await backend.auth.sign_in(EMAIL, PASSWORD)


@pytest.fixture
async def categories(backend):
    food = await backend.categories.add_category("Food", TransactionType.EXPENSE)
    transport = await backend.categories.add_category("Transport", TransactionType.EXPENSE)
    salary = await backend.categories.add_category("Salary", TransactionType.INCOME)
    return {"food": food, "transport": transport, "salary": salary}


@pytest.fixture
def notifier():
    return Notifier()


@pytest.fixture
async def components(backend, user, categories, notifier, settings):
    """App components with the user signed in and collections mounted."""
    app = AppComponents(backend, notifier=notifier, settings=settings)
    app.session.bind(user)
    await app.session.mount_all()
    yield app
    await app.session.unmount_all()


@pytest.fixture
def make_account():
    def factory(account_type=AccountType.BANK, balance="1000", credit_limit=None, **kwargs):
        return Account(
            id=kwargs.pop("id", uuid4()),
            user_id=kwargs.pop("user_id", uuid4()),
            name=kwargs.pop("name", f"{account_type.value} account"),
            type=account_type,
            balance=Decimal(balance),
            credit_limit=Decimal(credit_limit) if credit_limit is not None else None,
            statement_date=kwargs.pop("statement_date", date(2025, 3, 1) if credit_limit else None),
            payment_due_date=kwargs.pop("payment_due_date", date(2025, 3, 21) if credit_limit else None),
            **kwargs,
        )
    return factory


@pytest.fixture
def make_transaction():
    def factory(amount, kind=TransactionType.EXPENSE, when=None, category_id=None, account_id=None, description=None):
        return Transaction(
            id=uuid4(),
            user_id=uuid4(),
            account_id=account_id or uuid4(),
            category_id=category_id or uuid4(),
            type=kind,
            amount=Decimal(str(amount)),
            description=description,
            date=when or datetime(2025, 3, 15, 10, 0),
        )
    return factory


@pytest.fixture
def make_category():
    def factory(name, kind=TransactionType.EXPENSE):
        return Category(id=uuid4(), name=name, type=kind, is_system=True)
    return factory
