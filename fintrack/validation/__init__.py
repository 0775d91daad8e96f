"""Argument validation helpers shared by the services."""

from fintrack.validation.validator import (
    require_category,
    require_month,
    require_user,
    require_value,
)

__all__ = [
    "require_category",
    "require_month",
    "require_user",
    "require_value",
]
