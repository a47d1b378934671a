"""Database module for SQLite persistence.

Provides:
- Database connection management
- Schema initialization
- Repository functions for quiz_results and offline_questions
"""

from certano.db.database import StorageUnavailableError, get_db, init_db

__all__ = ["StorageUnavailableError", "get_db", "init_db"]
