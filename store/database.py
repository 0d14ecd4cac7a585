"""
SQLite database utilities for the store module.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path


SCHEMA_SQL = """
CREATE TABLE doc_test_runs (
  id TEXT PRIMARY KEY,
  repository_id TEXT NOT NULL,
  document_id TEXT,
  total_examples INTEGER NOT NULL,
  passed INTEGER NOT NULL,
  failed INTEGER NOT NULL,
  errors INTEGER NOT NULL,
  skipped INTEGER NOT NULL,
  duration REAL NOT NULL,
  executed_at TEXT NOT NULL,
  results_json TEXT NOT NULL,
  metadata_json TEXT,
  created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX idx_runs_repository ON doc_test_runs(repository_id, executed_at);
"""

_IDEMPOTENT_SCHEMA_SQL = (
    SCHEMA_SQL.replace("CREATE TABLE", "CREATE TABLE IF NOT EXISTS")
    .replace("CREATE INDEX", "CREATE INDEX IF NOT EXISTS")
)


def initialize_database(db_path: str) -> None:
    """Create the SQLite database and schema if needed."""
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    connection = sqlite3.connect(str(path))
    try:
        _ = connection.executescript(_IDEMPOTENT_SCHEMA_SQL)
        connection.commit()
    finally:
        connection.close()


def connect(db_path: str) -> sqlite3.Connection:
    """Open a SQLite connection with sane defaults."""
    connection = sqlite3.connect(db_path)
    connection.row_factory = sqlite3.Row
    return connection
