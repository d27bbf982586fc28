"""SQLite database connection and schema management.

Provides connection management and schema initialization for the
period record store and the level ledger.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator

import structlog

logger = structlog.get_logger(__name__)

# Default database location
DEFAULT_DB_PATH = Path("db/progression.db")

# Seconds a connection waits on a locked database file
BUSY_TIMEOUT = 10.0

# Current database file (module-level, set by init_db)
_db_path: Path | None = None


def init_db(db_path: Path | None = None) -> None:
    """Initialize database with schema.

    Creates the database file and all required tables if they don't exist.

    Args:
        db_path: Path to database file. Defaults to db/progression.db
    """
    global _db_path
    _db_path = db_path or DEFAULT_DB_PATH

    # Ensure directory exists
    _db_path.parent.mkdir(parents=True, exist_ok=True)

    with get_db() as conn:
        _create_schema(conn)

    logger.info("database.initialized", path=str(_db_path))


def get_db_file() -> Path:
    """Database file used by get_db()."""
    return _db_path or DEFAULT_DB_PATH


@contextmanager
def get_db(
    conn: sqlite3.Connection | None = None,
) -> Generator[sqlite3.Connection, None, None]:
    """Get database connection as context manager.

    One connection is one unit of work: committed when the block exits
    normally, rolled back when it raises.

    Args:
        conn: Connection of an enclosing unit of work. When given it is
            yielded as is and the caller keeps ownership of the transaction.

    Yields:
        SQLite connection with row factory set to sqlite3.Row

    Example:
        with get_db() as conn:
            rows = conn.execute("SELECT * FROM level_attempts").fetchall()
    """
    if conn is not None:
        yield conn
        return

    db_path = get_db_file()

    # Ensure directory exists
    db_path.parent.mkdir(parents=True, exist_ok=True)

    own = sqlite3.connect(db_path, timeout=BUSY_TIMEOUT)
    own.row_factory = sqlite3.Row
    own.execute("PRAGMA foreign_keys = ON")

    try:
        yield own
        own.commit()
    except Exception:
        own.rollback()
        raise
    finally:
        own.close()


def utc_now() -> str:
    """Current UTC time as ISO 8601 text, the storage format for dates."""
    return datetime.now(timezone.utc).isoformat()


def _create_schema(conn: sqlite3.Connection) -> None:
    """Create database schema.

    Uses IF NOT EXISTS for idempotency.
    """
    conn.executescript(
        """
        -- Tabela: period_records (notas por turma, aluno e bimestre)
        -- final_score é sempre derivado das quatro componentes
        CREATE TABLE IF NOT EXISTS period_records (
            record_id INTEGER PRIMARY KEY AUTOINCREMENT,
            class_id INTEGER NOT NULL,
            student_id INTEGER NOT NULL,
            period_number INTEGER NOT NULL CHECK(period_number >= 1),
            test1 REAL NOT NULL CHECK(test1 BETWEEN 0 AND 20),
            test2 REAL NOT NULL CHECK(test2 BETWEEN 0 AND 20),
            practical_exam REAL NOT NULL CHECK(practical_exam BETWEEN 0 AND 20),
            theory_exam REAL NOT NULL CHECK(theory_exam BETWEEN 0 AND 20),
            final_score INTEGER NOT NULL CHECK(final_score BETWEEN 0 AND 20),
            strengths TEXT,
            improvements TEXT,
            notes TEXT,
            recommendations TEXT,
            attendance REAL CHECK(attendance IS NULL OR attendance BETWEEN 0 AND 100),
            submitted_by INTEGER,
            revision INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            UNIQUE(class_id, student_id, period_number)
        );

        -- Tabela: level_attempts (uma linha por tentativa de nível)
        -- awaiting_renewal = status 'passed' + renewal_pending = 1
        CREATE TABLE IF NOT EXISTS level_attempts (
            attempt_id INTEGER PRIMARY KEY AUTOINCREMENT,
            student_id INTEGER NOT NULL,
            level_id INTEGER NOT NULL,
            attempt_number INTEGER NOT NULL CHECK(attempt_number >= 1),
            status TEXT NOT NULL CHECK(status IN ('in_progress', 'recovery', 'passed', 'failed', 'withdrawn')),
            renewal_pending INTEGER NOT NULL DEFAULT 0,
            recovery_used INTEGER NOT NULL DEFAULT 0,
            start_date TEXT NOT NULL,
            end_date TEXT,
            final_grade INTEGER,
            evaluated_score INTEGER,
            evaluated_revision INTEGER,
            class_id INTEGER,
            class_name TEXT,
            course_id INTEGER NOT NULL,
            level_number INTEGER NOT NULL,
            level_name TEXT NOT NULL,
            next_level_id INTEGER,
            version INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            UNIQUE(student_id, level_id, attempt_number)
        );

        -- Tabela: level_transitions (histórico append-only)
        CREATE TABLE IF NOT EXISTS level_transitions (
            transition_id INTEGER PRIMARY KEY AUTOINCREMENT,
            attempt_id INTEGER NOT NULL REFERENCES level_attempts(attempt_id),
            student_id INTEGER NOT NULL,
            level_id INTEGER NOT NULL,
            from_status TEXT,
            to_status TEXT NOT NULL,
            event TEXT NOT NULL,
            final_grade INTEGER,
            created_at TEXT NOT NULL
        );

        -- Índices
        -- No máximo uma tentativa aberta por (aluno, nível)
        CREATE UNIQUE INDEX IF NOT EXISTS idx_level_attempts_open
            ON level_attempts(student_id, level_id)
            WHERE status IN ('in_progress', 'recovery');
        CREATE INDEX IF NOT EXISTS idx_level_attempts_student ON level_attempts(student_id);
        CREATE INDEX IF NOT EXISTS idx_level_attempts_level ON level_attempts(level_id, status);
        CREATE INDEX IF NOT EXISTS idx_period_records_student ON period_records(student_id);
        CREATE INDEX IF NOT EXISTS idx_level_transitions_attempt ON level_transitions(attempt_id);
        """
    )
