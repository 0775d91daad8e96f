"""
Core Ledger Models for Fintrack

These models define the strict schemas for the three stored entities:
Transaction, Budget and User. They are designed to:
1. Enforce invariants at construction time
2. Provide clear validation error messages
3. Stay free of storage concerns (no key fields)

DESIGN DECISION: Entities never carry their partition/sort keys.
Keys are derived by the repository from the current field values on
every write, so a stale key can never be written back.
"""

import math
import re
from datetime import date as date_type
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
# First moment whose epoch seconds no longer fit in ten digits
SORT_KEY_LIMIT = datetime.fromtimestamp(10**10, tz=timezone.utc)
MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


def utcnow() -> datetime:
    """Current time, timezone-aware UTC."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


def as_utc(value: Any) -> Any:
    """
    Coerce date-like input to an aware UTC datetime.

    Plain dates become midnight UTC, naive datetimes are assumed to be UTC.
    Anything else is handed to pydantic untouched.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, date_type):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    return value


# =============================================================================
# ENUMS
# =============================================================================

class TransactionType(str, Enum):
    """Direction of money flow."""
    INCOME = "income"
    EXPENSE = "expense"


# =============================================================================
# TRANSACTION
# =============================================================================

class Transaction(BaseModel):
    """
    A single financial transaction.

    Amount is stored signed: income positive, expenses conventionally
    negative. Aggregation always counts expenses by absolute value.

    Constructing a Transaction generates an id if none is given, stamps
    created_at/updated_at and starts at version 1.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
    )

    # Identity
    id: str = Field(
        default_factory=new_id,
        min_length=1,
        max_length=128,
        description="Logical transaction ID"
    )
    user_id: str = Field(
        ...,
        min_length=1,
        max_length=128,
        description="Owner of the transaction"
    )

    # Temporal
    date: datetime = Field(
        ...,
        description="When the transaction happened (UTC)"
    )

    # Monetary / classification
    amount: float = Field(
        ...,
        description="Signed amount, never zero"
    )
    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Free-form category, matched case-insensitively"
    )
    type: TransactionType = Field(
        ...,
        description="income or expense"
    )
    description: str = Field(
        ...,
        min_length=1,
        max_length=500,
        description="What the transaction was for"
    )

    # Bookkeeping
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    version: int = Field(
        default=1,
        ge=1,
        description="Optimistic concurrency stamp"
    )

    @field_validator('date', 'created_at', 'updated_at', mode='before')
    @classmethod
    def coerce_utc(cls, v: Any) -> Any:
        return as_utc(v)

    @field_validator('date', 'created_at', 'updated_at')
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return as_utc(v)

    @field_validator('date')
    @classmethod
    def validate_date(cls, v: datetime) -> datetime:
        """Sort keys encode epoch seconds as exactly ten digits."""
        if v < EPOCH:
            raise ValueError("Date cannot be before 1970-01-01")
        if v >= SORT_KEY_LIMIT:
            raise ValueError("Date must be before 2286-11-20T17:46:40Z")
        return v

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v: float) -> float:
        if v == 0:
            raise ValueError("Amount must be non-zero")
        if not math.isfinite(v):
            raise ValueError("Amount must be a finite number")
        return v

    @property
    def month(self) -> str:
        """Calendar month of the transaction date, YYYY-MM (UTC)."""
        return self.date.strftime("%Y-%m")

    @property
    def is_expense(self) -> bool:
        return self.type == TransactionType.EXPENSE


class TransactionPage(BaseModel):
    """One page of a transaction query, newest first."""

    items: list[Transaction] = Field(default_factory=list)
    cursor: Optional[str] = Field(
        default=None,
        description="Opaque continuation token; None when there are no more pages"
    )

    @property
    def has_more(self) -> bool:
        return self.cursor is not None


# =============================================================================
# BUDGET
# =============================================================================

class Budget(BaseModel):
    """
    Spending budget for one category in one month.

    One budget per (user, month, category). Writes are blind upserts,
    the last write wins.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id, min_length=1)
    user_id: str = Field(..., min_length=1, max_length=128)
    month: str = Field(
        ...,
        pattern=MONTH_PATTERN,
        description="Budget month, YYYY-MM"
    )
    category: str = Field(..., min_length=1, max_length=100)
    amount: float = Field(
        ...,
        ge=0,
        description="Budgeted amount for the month"
    )
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator('created_at', 'updated_at', mode='before')
    @classmethod
    def coerce_utc(cls, v: Any) -> Any:
        return as_utc(v)

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("Amount must be a finite number")
        return v


# =============================================================================
# USER
# =============================================================================

class User(BaseModel):
    """User profile. Created once, rarely mutated."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id, min_length=1, max_length=128)
    email: str = Field(..., min_length=3, max_length=254)
    name: str = Field(..., min_length=1, max_length=200)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator('created_at', 'updated_at', mode='before')
    @classmethod
    def coerce_utc(cls, v: Any) -> Any:
        return as_utc(v)

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: str) -> str:
        if not re.fullmatch(r"[^@\s]+@[^@\s]+\.[^@\s]+", v):
            raise ValueError(f"Invalid email address: {v}")
        return v.lower()


def is_valid_month(value: str) -> bool:
    """Check a YYYY-MM month string."""
    return bool(re.fullmatch(MONTH_PATTERN, value or ""))
