"""
Fintrack - Source Package

Storage core for a personal-finance transaction tracker: transactions,
budgets and users kept in a single key/value table that answers three
query shapes (by user, by month, by category).

DESIGN PRINCIPLES:
1. Keys are derived from entity fields on every write, never trusted from storage
2. Lost updates are rejected, not merged (optimistic concurrency)
3. Bulk loads are at-least-once and resumable
4. Analytics are pure folds over already-fetched data
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Fintrack Team"
