"""
Tests for Fintrack models

Test strategy:
1. Unit tests for individual components (models, keys, codec, aggregation)
2. Repository and service tests against the in-memory store
3. No real AWS calls in tests (boto3 is mocked)
"""

import pytest
from datetime import date, datetime, timedelta, timezone

from fintrack.models import (
    Budget,
    BudgetUtilization,
    CategoryBreakdown,
    CategoryBudgetBreakdown,
    Transaction,
    TransactionPage,
    TransactionType,
    User,
    is_valid_month,
)


def valid_fields(**overrides):
    fields = {
        "user_id": "u1",
        "date": datetime(2024, 1, 15, tzinfo=timezone.utc),
        "amount": -50.0,
        "category": "food",
        "type": "expense",
        "description": "Groceries",
    }
    fields.update(overrides)
    return fields


class TestTransactionModel:
    """Tests for the Transaction model."""

    def test_transaction_creation_defaults(self):
        """Test a new transaction gets an id, timestamps and version 1."""
        tx = Transaction(**valid_fields())
        assert tx.id
        assert tx.version == 1
        assert tx.type == TransactionType.EXPENSE
        assert tx.created_at.tzinfo is not None
        assert tx.updated_at.tzinfo is not None

    def test_generated_ids_are_unique(self):
        """Test that two transactions never share a generated id."""
        assert Transaction(**valid_fields()).id != Transaction(**valid_fields()).id

    def test_zero_amount_rejected(self):
        """Test that a zero amount fails validation."""
        with pytest.raises(ValueError):
            Transaction(**valid_fields(amount=0))

    def test_non_finite_amount_rejected(self):
        """Test that infinity and NaN fail validation."""
        with pytest.raises(ValueError):
            Transaction(**valid_fields(amount=float("inf")))
        with pytest.raises(ValueError):
            Transaction(**valid_fields(amount=float("nan")))

    def test_unknown_type_rejected(self):
        """Test that only income and expense are accepted."""
        with pytest.raises(ValueError):
            Transaction(**valid_fields(type="transfer"))

    def test_blank_category_rejected(self):
        """Test that a whitespace-only category fails after stripping."""
        with pytest.raises(ValueError):
            Transaction(**valid_fields(category="   "))

    def test_blank_description_rejected(self):
        """Test that an empty description fails validation."""
        with pytest.raises(ValueError):
            Transaction(**valid_fields(description=""))

    def test_strings_are_stripped(self):
        """Test that whitespace is stripped from string fields."""
        tx = Transaction(**valid_fields(category="  food  ", description=" Lunch "))
        assert tx.category == "food"
        assert tx.description == "Lunch"

    def test_date_before_epoch_rejected(self):
        """Test that dates before 1970 cannot be stored."""
        with pytest.raises(ValueError):
            Transaction(**valid_fields(date=datetime(1969, 12, 31, tzinfo=timezone.utc)))

    def test_naive_datetime_treated_as_utc(self):
        """Test that a naive datetime is interpreted as UTC."""
        tx = Transaction(**valid_fields(date=datetime(2024, 1, 15, 10, 30)))
        assert tx.date == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)

    def test_plain_date_becomes_midnight_utc(self):
        """Test that a date without time becomes midnight UTC."""
        tx = Transaction(**valid_fields(date=date(2024, 1, 15)))
        assert tx.date == datetime(2024, 1, 15, tzinfo=timezone.utc)

    def test_offset_datetime_converted_to_utc(self):
        """Test that an offset-aware datetime is normalized to UTC."""
        plus_five = timezone(timedelta(hours=5))
        tx = Transaction(**valid_fields(date=datetime(2024, 2, 1, 2, 0, tzinfo=plus_five)))
        assert tx.date == datetime(2024, 1, 31, 21, 0, tzinfo=timezone.utc)
        assert tx.month == "2024-01"

    def test_month_and_is_expense(self):
        """Test derived properties."""
        tx = Transaction(**valid_fields())
        assert tx.month == "2024-01"
        assert tx.is_expense is True

    def test_version_must_be_positive(self):
        """Test that version starts at 1."""
        with pytest.raises(ValueError):
            Transaction(**valid_fields(version=0))


class TestBudgetAndUserModels:
    """Tests for Budget and User models."""

    def test_budget_creation(self):
        """Test Budget model creation."""
        budget = Budget(user_id="u1", month="2024-01", category="food", amount=300)
        assert budget.amount == 300
        assert budget.id

    def test_budget_negative_amount_rejected(self):
        """Test that budgets cannot be negative."""
        with pytest.raises(ValueError):
            Budget(user_id="u1", month="2024-01", category="food", amount=-1)

    def test_budget_zero_amount_allowed(self):
        """Test that a zero budget is valid."""
        assert Budget(user_id="u1", month="2024-01", category="food", amount=0).amount == 0

    def test_budget_month_format(self):
        """Test that the month must be YYYY-MM."""
        with pytest.raises(ValueError):
            Budget(user_id="u1", month="2024-13", category="food", amount=10)
        with pytest.raises(ValueError):
            Budget(user_id="u1", month="January", category="food", amount=10)

    def test_user_email_lowercased(self):
        """Test that emails are normalized."""
        user = User(email="Ann@Example.COM", name="Ann")
        assert user.email == "ann@example.com"

    def test_user_invalid_email(self):
        """Test that malformed emails are rejected."""
        with pytest.raises(ValueError):
            User(email="not-an-email", name="Ann")


class TestHelpers:
    """Tests for small model helpers and result shapes."""

    @pytest.mark.parametrize("value,expected", [
        ("2024-01", True),
        ("2024-12", True),
        ("2024-00", False),
        ("2024-1", False),
        ("", False),
    ])
    def test_is_valid_month(self, value, expected):
        """Test month string validation."""
        assert is_valid_month(value) is expected

    def test_page_has_more(self):
        """Test that a page with a cursor has more results."""
        assert TransactionPage(items=[], cursor="abc").has_more is True
        assert TransactionPage(items=[]).has_more is False

    def test_category_breakdown_average(self):
        """Test average amount per transaction, 0 without transactions."""
        assert CategoryBreakdown(category="food", amount=80, percentage=100, count=2).average_amount == 40
        assert CategoryBreakdown(category="food", amount=0, percentage=0, count=0).average_amount == 0

    def test_over_budget_flag(self):
        """Test that a negative remainder means the budget is overrun."""
        over = CategoryBudgetBreakdown(category="food", spent=120, budget=100, remaining=-20)
        under = CategoryBudgetBreakdown(category="food", spent=50, budget=100, remaining=50)
        assert over.is_over_budget is True
        assert under.is_over_budget is False

    def test_budget_utilization_shape(self):
        """Test BudgetUtilization model creation."""
        util = BudgetUtilization(
            category="food",
            budget_amount=100,
            spent_amount=50,
            remaining=50,
            percentage=50,
        )
        assert util.percentage == 50
