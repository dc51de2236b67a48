"""Persistence: SQLAlchemy tables and transactional sessions."""

from .models import ABResultRow, ABTestRow, Base, PromptVersionRow
from .session import Database

__all__ = [
    "Database",
    "Base",
    "PromptVersionRow",
    "ABTestRow",
    "ABResultRow",
]
