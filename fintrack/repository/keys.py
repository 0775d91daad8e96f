"""
Key Builder

All partition/sort key strings of the single table are derived here and
nowhere else. Functions are pure: same fields in, same keys out.

Layout:

    Entity       PK                 SK
    Transaction  USER#{user}        TX#{unix10}#{id}
    Budget       USER#{user}        BUDGET#{month}#{CATEGORY}
    User         USER#{id}          PROFILE

    Index  Partition                       Sort
    GSI1   MONTH#{YYYY-MM}#{user}          TX#{unix10}
    GSI2   CATEGORY#{CATEGORY}#{user}      TX#{unix10}
    GSI3   ID#{id}                         USER#{user}

`unix10` is the transaction date as epoch seconds, zero-padded to ten
digits, so lexicographic order on the sort key is chronological order.
Categories are upper-cased in keys, which makes category lookups
case-insensitive.
"""

from datetime import datetime
from typing import Any

from fintrack.models.ledger import Transaction, as_utc
from fintrack.services.storage.interface import IndexDefinition


# =============================================================================
# TABLE LAYOUT
# =============================================================================

PRIMARY_KEY = IndexDefinition(partition_key="PK", sort_key="SK")

BY_MONTH_INDEX = "GSI1"
BY_CATEGORY_INDEX = "GSI2"
BY_ID_INDEX = "GSI3"

SECONDARY_INDEXES = (
    IndexDefinition(name=BY_MONTH_INDEX, partition_key="GSI1PK", sort_key="GSI1SK"),
    IndexDefinition(name=BY_CATEGORY_INDEX, partition_key="GSI2PK", sort_key="GSI2SK"),
    IndexDefinition(name=BY_ID_INDEX, partition_key="GSI3PK", sort_key="GSI3SK"),
)

TABLE_INDEXES = (PRIMARY_KEY, *SECONDARY_INDEXES)

KEY_ATTRIBUTES = frozenset(
    name
    for index in TABLE_INDEXES
    for name in (index.partition_key, index.sort_key)
)

TRANSACTION_PREFIX = "TX#"
BUDGET_PREFIX = "BUDGET#"
PROFILE_SORT_KEY = "PROFILE"


# =============================================================================
# PARTITIONS
# =============================================================================

def user_partition(user_id: str) -> str:
    return f"USER#{user_id}"


def month_partition(user_id: str, month: str) -> str:
    return f"MONTH#{month}#{user_id}"


def category_partition(user_id: str, category: str) -> str:
    return f"CATEGORY#{category.strip().upper()}#{user_id}"


def id_partition(transaction_id: str) -> str:
    return f"ID#{transaction_id}"


# =============================================================================
# SORT KEYS
# =============================================================================

def sort_timestamp(moment: datetime) -> str:
    """Epoch seconds of a UTC moment, zero-padded to ten digits."""
    return f"{int(as_utc(moment).timestamp()):010d}"


def transaction_sort_key(transaction: Transaction) -> str:
    return f"{TRANSACTION_PREFIX}{sort_timestamp(transaction.date)}#{transaction.id}"


def budget_month_prefix(month: str) -> str:
    return f"{BUDGET_PREFIX}{month}#"


def budget_sort_key(month: str, category: str) -> str:
    return f"{budget_month_prefix(month)}{category.strip().upper()}"


# =============================================================================
# FULL KEY SETS
# =============================================================================

def transaction_keys(transaction: Transaction) -> dict[str, str]:
    """Primary and index keys of a transaction."""
    timestamp_key = f"{TRANSACTION_PREFIX}{sort_timestamp(transaction.date)}"
    return {
        "PK": user_partition(transaction.user_id),
        "SK": transaction_sort_key(transaction),
        "GSI1PK": month_partition(transaction.user_id, transaction.month),
        "GSI1SK": timestamp_key,
        "GSI2PK": category_partition(transaction.user_id, transaction.category),
        "GSI2SK": timestamp_key,
        "GSI3PK": id_partition(transaction.id),
        "GSI3SK": user_partition(transaction.user_id),
    }


def budget_keys(user_id: str, month: str, category: str) -> dict[str, str]:
    return {
        "PK": user_partition(user_id),
        "SK": budget_sort_key(month, category),
    }


def user_keys(user_id: str) -> dict[str, str]:
    return {
        "PK": user_partition(user_id),
        "SK": PROFILE_SORT_KEY,
    }


def primary_key_of(item: dict[str, Any]) -> dict[str, Any]:
    """Extract the primary key from a stored item."""
    return {
        PRIMARY_KEY.partition_key: item[PRIMARY_KEY.partition_key],
        PRIMARY_KEY.sort_key: item[PRIMARY_KEY.sort_key],
    }
