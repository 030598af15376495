"""Shared SQLAlchemy models registry for the workspace database.

Currently includes finance domain models used by ``card_reconciliation``.
"""

from .finance import Base, FaCategory, FaTransaction

__all__ = [
    "Base",
    "FaCategory",
    "FaTransaction",
]
