"""
Call Argument Validation

Services check their plain-string arguments here before touching the
repository. Entity fields are validated by the pydantic models; this
module covers what the models never see (path-style identifiers,
month filters, category filters).

IMPORTANT: Validation never silently fixes issues beyond trimming
whitespace. Bad input raises ValidationError.
"""

from typing import Optional

from fintrack.errors import ValidationError
from fintrack.models.ledger import is_valid_month


def require_value(value: Optional[str], name: str) -> str:
    """Non-blank string argument, stripped."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required")
    return value.strip()


def require_user(user_id: Optional[str]) -> str:
    return require_value(user_id, "user_id")


def require_category(category: Optional[str]) -> str:
    return require_value(category, "category")


def require_month(month: Optional[str]) -> str:
    if not isinstance(month, str) or not is_valid_month(month.strip()):
        raise ValidationError(f"Invalid month '{month}', expected YYYY-MM")
    return month.strip()
