"""Pytest configuration and fixtures."""

from datetime import datetime, timezone

import pytest

from fintrack.config import RepositorySettings
from fintrack.models import Transaction, TransactionType
from fintrack.repository import PRIMARY_KEY, SECONDARY_INDEXES, LedgerRepository
from fintrack.services.storage import InMemoryStore


def utc(year: int, month: int, day: int, hour: int = 0) -> datetime:
    return datetime(year, month, day, hour, tzinfo=timezone.utc)


@pytest.fixture
def store():
    """Empty in-memory store with the ledger table layout."""
    return InMemoryStore(PRIMARY_KEY, SECONDARY_INDEXES)


@pytest.fixture
def repo_settings():
    """Repository settings without retry sleeps."""
    return RepositorySettings(batch_backoff_seconds=0.0)


@pytest.fixture
def repository(store, repo_settings):
    return LedgerRepository(store, repo_settings)


@pytest.fixture
def make_transaction():
    """Factory for valid transactions; keyword arguments override fields."""
    def _make(**overrides) -> Transaction:
        fields = {
            "user_id": "u1",
            "date": utc(2024, 1, 15),
            "amount": -50.0,
            "category": "food",
            "type": TransactionType.EXPENSE,
            "description": "Groceries",
        }
        fields.update(overrides)
        return Transaction(**fields)
    return _make


@pytest.fixture
def sample_ledger(make_transaction):
    """Two January transactions and one February expense for user u1."""
    return [
        make_transaction(id="t-food-jan", date=utc(2024, 1, 15), amount=-50.0),
        make_transaction(
            id="t-salary-jan",
            date=utc(2024, 1, 20),
            amount=2000.0,
            category="salary",
            type=TransactionType.INCOME,
            description="January salary",
        ),
        make_transaction(id="t-food-feb", date=utc(2024, 2, 1), amount=-30.0),
    ]


@pytest.fixture
async def seeded_repository(repository, sample_ledger):
    """Repository holding the sample ledger."""
    for tx in sample_ledger:
        await repository.create_transaction(tx)
    return repository
