"""
Services package.

Storage backends live in fintrack.services.storage; the transaction and
budget services are imported from their own modules.
"""

from fintrack.services.storage import (
    Condition,
    ConditionFailedError,
    ConnectionError,
    DynamoDBClient,
    DynamoDBStore,
    InMemoryStore,
    KeyValueStore,
    StorageError,
    TransientStorageError,
)

__all__ = [
    "Condition",
    "ConditionFailedError",
    "ConnectionError",
    "DynamoDBClient",
    "DynamoDBStore",
    "InMemoryStore",
    "KeyValueStore",
    "StorageError",
    "TransientStorageError",
]
