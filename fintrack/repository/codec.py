"""
Entity Codec

Maps entities to flat attribute dicts for the store and back.

Wire format:
- amounts are numbers, enums are their string values
- timestamps are RFC3339 in UTC ("2024-01-15T00:00:00Z")

Reads are tolerant: RFC3339 with "Z" or an offset, or a bare date
("2024-01-15"). A missing timestamp decodes as "now". Anything else that
cannot be mapped back raises DecodeError naming the offending field.
Key attributes (PK, SK, GSI*) are written alongside the entity fields
and ignored on decode.
"""

import re
from datetime import date, datetime
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from fintrack.errors import DecodeError
from fintrack.models.ledger import Budget, Transaction, User, as_utc, utcnow
from fintrack.repository.keys import budget_keys, transaction_keys, user_keys


ENTITY_TRANSACTION = "TRANSACTION"
ENTITY_BUDGET = "BUDGET"
ENTITY_USER = "USER"

# Seconds fraction of any length (RFC3339Nano writes up to nine digits)
FRACTION_PATTERN = re.compile(r"(\d{2}:\d{2}:\d{2})\.(\d+)")


# =============================================================================
# TIMESTAMPS
# =============================================================================

def format_timestamp(value: datetime) -> str:
    return as_utc(value).isoformat().replace("+00:00", "Z")


def parse_timestamp(raw: Any, field: str) -> datetime:
    """
    Decode a stored timestamp.

    Fractions of a second are cut or padded to microseconds first;
    datetime.fromisoformat only takes three or six digits before 3.11.
    """
    if raw is None or raw == "":
        return utcnow()
    if not isinstance(raw, str):
        raise DecodeError(field, f"expected a timestamp string, got {type(raw).__name__}")

    text = raw.strip()
    try:
        if len(text) == 10:
            return as_utc(date.fromisoformat(text))
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        text = FRACTION_PATTERN.sub(_microseconds, text, count=1)
        return as_utc(datetime.fromisoformat(text))
    except ValueError as e:
        raise DecodeError(field, f"invalid timestamp '{raw}'") from e


def _microseconds(match: re.Match) -> str:
    return f"{match.group(1)}.{match.group(2)[:6].ljust(6, '0')}"


# =============================================================================
# FIELD HELPERS
# =============================================================================

def _require(item: dict[str, Any], field: str) -> Any:
    value = item.get(field)
    if value is None:
        raise DecodeError(field, "missing")
    return value


def _number(item: dict[str, Any], field: str) -> float:
    value = _require(item, field)
    if isinstance(value, bool):
        raise DecodeError(field, "expected a number")
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise DecodeError(field, f"expected a number, got '{value}'") from e


def _build(model: type, field_values: dict[str, Any]) -> Any:
    """Construct the entity, reporting the first invalid field."""
    try:
        return model(**field_values)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or model.__name__
        raise DecodeError(field, first.get("msg", "invalid value")) from e


# =============================================================================
# TRANSACTION
# =============================================================================

def transaction_to_item(transaction: Transaction) -> dict[str, Any]:
    item: dict[str, Any] = transaction_keys(transaction)
    item.update({
        "entity_type": ENTITY_TRANSACTION,
        "id": transaction.id,
        "user_id": transaction.user_id,
        "date": format_timestamp(transaction.date),
        "amount": float(transaction.amount),
        "category": transaction.category,
        "type": transaction.type.value,
        "description": transaction.description,
        "created_at": format_timestamp(transaction.created_at),
        "updated_at": format_timestamp(transaction.updated_at),
        "version": transaction.version,
    })
    return item


def transaction_from_item(item: dict[str, Any]) -> Transaction:
    version = item.get("version", 1)
    try:
        version = int(version)
    except (TypeError, ValueError) as e:
        raise DecodeError("version", f"expected an integer, got '{version}'") from e

    return _build(Transaction, {
        "id": _require(item, "id"),
        "user_id": _require(item, "user_id"),
        "date": parse_timestamp(item.get("date"), "date"),
        "amount": _number(item, "amount"),
        "category": _require(item, "category"),
        "type": _require(item, "type"),
        "description": item.get("description", ""),
        "created_at": parse_timestamp(item.get("created_at"), "created_at"),
        "updated_at": parse_timestamp(item.get("updated_at"), "updated_at"),
        "version": version,
    })


# =============================================================================
# BUDGET
# =============================================================================

def budget_to_item(budget: Budget) -> dict[str, Any]:
    item: dict[str, Any] = budget_keys(budget.user_id, budget.month, budget.category)
    item.update({
        "entity_type": ENTITY_BUDGET,
        "id": budget.id,
        "user_id": budget.user_id,
        "month": budget.month,
        "category": budget.category,
        "amount": float(budget.amount),
        "created_at": format_timestamp(budget.created_at),
        "updated_at": format_timestamp(budget.updated_at),
    })
    return item


def budget_from_item(item: dict[str, Any]) -> Budget:
    return _build(Budget, {
        "id": _require(item, "id"),
        "user_id": _require(item, "user_id"),
        "month": _require(item, "month"),
        "category": _require(item, "category"),
        "amount": _number(item, "amount"),
        "created_at": parse_timestamp(item.get("created_at"), "created_at"),
        "updated_at": parse_timestamp(item.get("updated_at"), "updated_at"),
    })


# =============================================================================
# USER
# =============================================================================

def user_to_item(user: User) -> dict[str, Any]:
    item: dict[str, Any] = user_keys(user.id)
    item.update({
        "entity_type": ENTITY_USER,
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "created_at": format_timestamp(user.created_at),
        "updated_at": format_timestamp(user.updated_at),
    })
    return item


def user_from_item(item: dict[str, Any]) -> User:
    return _build(User, {
        "id": _require(item, "id"),
        "email": _require(item, "email"),
        "name": _require(item, "name"),
        "created_at": parse_timestamp(item.get("created_at"), "created_at"),
        "updated_at": parse_timestamp(item.get("updated_at"), "updated_at"),
    })
