"""Database module for SQLite persistence.

Provides:
- Database connection management
- Schema initialization
- Repository functions for period_records (period record store)
- Repository functions for level_attempts and level_transitions (level ledger)
"""

from progression.db.database import get_db, init_db

__all__ = ["get_db", "init_db"]
