"""Tests for the entity codec."""

import pytest
from datetime import datetime, timedelta, timezone

from fintrack.errors import DecodeError
from fintrack.models import Budget, Transaction, User
from fintrack.repository.codec import (
    budget_from_item,
    budget_to_item,
    format_timestamp,
    parse_timestamp,
    transaction_from_item,
    transaction_to_item,
    user_from_item,
    user_to_item,
)


@pytest.fixture
def tx():
    return Transaction(
        id="t1",
        user_id="u1",
        date=datetime(2024, 1, 15, tzinfo=timezone.utc),
        amount=-50.5,
        category="Food",
        type="expense",
        description="Groceries",
    )


class TestTransactionCodec:
    """Tests for transaction marshalling."""

    def test_item_fields(self, tx):
        """Test the stored shape of a transaction."""
        item = transaction_to_item(tx)
        assert item["PK"] == "USER#u1"
        assert item["date"] == "2024-01-15T00:00:00Z"
        assert item["amount"] == -50.5
        assert item["type"] == "expense"
        assert item["category"] == "Food"
        assert item["version"] == 1
        assert item["entity_type"] == "TRANSACTION"

    def test_decode_restores_entity(self, tx):
        """Test that decoding a stored item gives back the same transaction."""
        assert transaction_from_item(transaction_to_item(tx)) == tx

    def test_key_attributes_ignored(self, tx):
        """Test that stale key attributes do not affect decoding."""
        item = transaction_to_item(tx)
        item["PK"] = "USER#someone-else"
        item["GSI1PK"] = "MONTH#1999-01#x"
        decoded = transaction_from_item(item)
        assert decoded.user_id == "u1"
        assert decoded.month == "2024-01"

    def test_integer_amount_accepted(self, tx):
        """Test that integral numbers from the store decode as floats."""
        item = transaction_to_item(tx)
        item["amount"] = -50
        assert transaction_from_item(item).amount == -50.0

    def test_missing_amount_names_field(self, tx):
        """Test that a missing required field raises DecodeError."""
        item = transaction_to_item(tx)
        del item["amount"]
        with pytest.raises(DecodeError) as exc_info:
            transaction_from_item(item)
        assert exc_info.value.field == "amount"

    def test_non_numeric_amount(self, tx):
        """Test that a garbage amount raises DecodeError."""
        item = transaction_to_item(tx)
        item["amount"] = "lots"
        with pytest.raises(DecodeError) as exc_info:
            transaction_from_item(item)
        assert exc_info.value.field == "amount"

    def test_invalid_type_names_field(self, tx):
        """Test that model validation failures are reported per field."""
        item = transaction_to_item(tx)
        item["type"] = "transfer"
        with pytest.raises(DecodeError) as exc_info:
            transaction_from_item(item)
        assert exc_info.value.field == "type"

    def test_nanosecond_timestamps_decode(self, tx):
        """Test that records with nine-digit fractions are not rejected."""
        item = transaction_to_item(tx)
        item["created_at"] = "2024-01-15T10:30:45.123456789Z"
        assert transaction_from_item(item).created_at.microsecond == 123456

    def test_missing_date_defaults_to_now(self, tx):
        """Test that an absent date decodes as the current time."""
        item = transaction_to_item(tx)
        del item["date"]
        before = datetime.now(timezone.utc)
        decoded = transaction_from_item(item)
        assert before - timedelta(seconds=1) <= decoded.date <= datetime.now(timezone.utc)


class TestTimestamps:
    """Tests for tolerant timestamp parsing."""

    def test_format_uses_z_suffix(self):
        """Test RFC3339 output in UTC."""
        assert format_timestamp(datetime(2024, 1, 15, tzinfo=timezone.utc)) == "2024-01-15T00:00:00Z"

    def test_parse_z(self):
        """Test parsing a Z-suffixed timestamp."""
        assert parse_timestamp("2024-01-15T10:00:00Z", "date") == datetime(
            2024, 1, 15, 10, tzinfo=timezone.utc
        )

    def test_parse_offset(self):
        """Test parsing a timestamp with an offset."""
        assert parse_timestamp("2024-01-15T05:00:00+05:00", "date") == datetime(
            2024, 1, 15, tzinfo=timezone.utc
        )

    @pytest.mark.parametrize("raw,microsecond", [
        ("2024-01-15T10:30:45.123456789Z", 123456),
        ("2024-01-15T10:30:45.1234Z", 123400),
        ("2024-01-15T10:30:45.5+00:00", 500000),
    ])
    def test_parse_any_fraction_length(self, raw, microsecond):
        """Test nanosecond and odd-length fractions, as written by RFC3339Nano encoders."""
        assert parse_timestamp(raw, "date") == datetime(
            2024, 1, 15, 10, 30, 45, microsecond, tzinfo=timezone.utc
        )

    def test_parse_date_only(self):
        """Test that a bare date is midnight UTC."""
        assert parse_timestamp("2024-01-15", "date") == datetime(2024, 1, 15, tzinfo=timezone.utc)

    def test_parse_malformed(self):
        """Test that malformed input raises DecodeError naming the field."""
        with pytest.raises(DecodeError) as exc_info:
            parse_timestamp("15/01/2024 noon", "created_at")
        assert exc_info.value.field == "created_at"
        assert "created_at" in str(exc_info.value)

    def test_parse_wrong_type(self):
        """Test that non-string timestamps are rejected."""
        with pytest.raises(DecodeError):
            parse_timestamp(1705276800, "date")


class TestBudgetAndUserCodec:
    """Tests for budget and user marshalling."""

    def test_budget_item(self):
        """Test budget keys and decode."""
        budget = Budget(user_id="u1", month="2024-01", category="food", amount=300)
        item = budget_to_item(budget)
        assert item["SK"] == "BUDGET#2024-01#FOOD"
        assert budget_from_item(item) == budget

    def test_user_item(self):
        """Test user keys and decode."""
        user = User(id="u1", email="ann@example.com", name="Ann")
        item = user_to_item(user)
        assert item["SK"] == "PROFILE"
        assert user_from_item(item) == user
