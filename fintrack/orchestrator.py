"""
Application Wiring

Builds the store, repository and services from settings. This is the
"glue": callers (HTTP handlers, scripts, tests) ask for an AppComponents
bundle and never construct storage clients themselves.

DESIGN DECISION: The storage backend is chosen by configuration.
- dynamodb: boto3-backed store, optionally creating the table on startup
- memory: in-process store for local runs and tests
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from fintrack.analytics.service import AnalyticsService
from fintrack.config import Settings, get_settings
from fintrack.log import configure_logging
from fintrack.repository.keys import PRIMARY_KEY, SECONDARY_INDEXES
from fintrack.repository.ledger import LedgerRepository
from fintrack.services.budgets import BudgetService
from fintrack.services.storage import (
    DynamoDBClient,
    DynamoDBStore,
    InMemoryStore,
    KeyValueStore,
)
from fintrack.services.transactions import TransactionService


@dataclass
class AppComponents:
    """Everything a caller needs, sharing one store and one repository."""

    store: KeyValueStore
    repository: LedgerRepository
    transactions: TransactionService
    budgets: BudgetService
    analytics: AnalyticsService
    dynamodb_client: Optional[DynamoDBClient] = None


def create_store(settings: Settings) -> tuple[KeyValueStore, Optional[DynamoDBClient]]:
    """Instantiate the configured storage backend."""
    if settings.app.storage_backend == "memory":
        return InMemoryStore(PRIMARY_KEY, SECONDARY_INDEXES), None

    dynamodb_settings = settings.dynamodb
    client = DynamoDBClient(dynamodb_settings)
    if dynamodb_settings.create_table_if_missing:
        client.ensure_table(PRIMARY_KEY, SECONDARY_INDEXES)
    return DynamoDBStore(PRIMARY_KEY, SECONDARY_INDEXES, client), client


def create_app_components(
    settings: Optional[Settings] = None,
    store: Optional[KeyValueStore] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to use; the cached global settings by default
        store: Pre-built store (tests); overrides the configured backend

    Returns:
        AppComponents sharing a single repository
    """
    settings = settings or get_settings()
    app_settings = settings.app
    configure_logging(app_settings.log_level, json=app_settings.log_json)

    dynamodb_client = None
    if store is None:
        store, dynamodb_client = create_store(settings)

    repository = LedgerRepository(store, settings.repository)

    structlog.get_logger(__name__).info(
        "app_components_created",
        environment=app_settings.app_environment,
        storage_backend=type(store).__name__,
    )

    return AppComponents(
        store=store,
        repository=repository,
        transactions=TransactionService(repository),
        budgets=BudgetService(repository),
        analytics=AnalyticsService(repository),
        dynamodb_client=dynamodb_client,
    )
