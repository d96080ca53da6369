"""
Data Access Layer - SQLite persistence.

Repositories wrap a shared Database and accept an optional open
connection so several of them can write in one transaction.
"""

from .database import Database, create_database

__all__ = ["Database", "create_database"]
