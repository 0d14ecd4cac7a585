"""
SQLite-backed run history for documentation test suites.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from collections.abc import Mapping
from pathlib import Path
from typing import cast

from pydantic import TypeAdapter

from docverify_core.schemas import DocTestHistory, DocTestSuite, ExecutionResult

from .database import connect, initialize_database

_RESULTS_ADAPTER = TypeAdapter(list[ExecutionResult])

_SECRET_TOKENS = ("api_key", "apikey", "token", "secret", "password")


def _looks_like_secret(key: str) -> bool:
    lowered = key.lower()
    return any(token in lowered for token in _SECRET_TOKENS)


def _sanitize_metadata(metadata: Mapping[str, object] | None) -> dict[str, object] | None:
    if metadata is None:
        return None
    return {
        key: value
        for key, value in metadata.items()
        if isinstance(key, str) and not _looks_like_secret(key)
    }


def _decode_mapping(raw: object) -> dict[str, object] | None:
    if raw is None:
        return None
    loaded = cast(object, json.loads(str(raw)))
    if not isinstance(loaded, dict):
        raise ValueError("metadata_json must decode to an object")
    return cast(dict[str, object], loaded)


def _history_from_row(row: sqlite3.Row) -> DocTestHistory:
    row_dict = cast(dict[str, object], dict(row))
    return DocTestHistory.from_dict(
        {
            "id": row_dict["id"],
            "repository_id": row_dict["repository_id"],
            "document_id": row_dict.get("document_id"),
            "total_examples": row_dict["total_examples"],
            "passed": row_dict["passed"],
            "failed": row_dict["failed"],
            "errors": row_dict["errors"],
            "skipped": row_dict["skipped"],
            "duration": row_dict["duration"],
            "executed_at": row_dict["executed_at"],
            "metadata": _decode_mapping(row_dict.get("metadata_json")),
        }
    )


class HistoryStore:
    """Append-only store of suite runs keyed by repository and document."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path: str = str(db_path)
        initialize_database(self.db_path)

    def record_suite(
        self,
        suite: DocTestSuite,
        metadata: Mapping[str, object] | None = None,
    ) -> str:
        """Persist one suite run and return its history id."""
        history_id = uuid.uuid4().hex
        results_json = _RESULTS_ADAPTER.dump_json(suite.results).decode("utf-8")
        sanitized = _sanitize_metadata(metadata)
        metadata_json = json.dumps(sanitized, sort_keys=True, default=str) if sanitized else None
        with connect(self.db_path) as connection:
            _ = connection.execute(
                """
                INSERT INTO doc_test_runs (
                    id, repository_id, document_id, total_examples, passed, failed,
                    errors, skipped, duration, executed_at, results_json, metadata_json
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    history_id,
                    suite.repository_id,
                    suite.document_id,
                    suite.total_examples,
                    suite.passed,
                    suite.failed,
                    suite.errors,
                    suite.skipped,
                    suite.duration,
                    suite.executed_at.isoformat(),
                    results_json,
                    metadata_json,
                ),
            )
            connection.commit()
        return history_id

    def get_history(self, repository_id: str, limit: int = 50) -> list[DocTestHistory]:
        """Return the most recent runs for a repository, newest first."""
        with connect(self.db_path) as connection:
            rows = connection.execute(
                """
                SELECT id, repository_id, document_id, total_examples, passed, failed,
                       errors, skipped, duration, executed_at, metadata_json
                FROM doc_test_runs
                WHERE repository_id = ?
                ORDER BY executed_at DESC, created_at DESC
                LIMIT ?
                """,
                (repository_id, limit),
            ).fetchall()
        return [_history_from_row(cast(sqlite3.Row, row)) for row in rows]

    def get_results(self, history_id: str) -> list[ExecutionResult] | None:
        """Return the stored per-example results of one run, or None if unknown."""
        with connect(self.db_path) as connection:
            row = cast(
                sqlite3.Row | None,
                connection.execute(
                    "SELECT results_json FROM doc_test_runs WHERE id = ?",
                    (history_id,),
                ).fetchone(),
            )
        if row is None:
            return None
        return _RESULTS_ADAPTER.validate_json(cast(str, row["results_json"]))

    def count_runs(self, repository_id: str) -> int:
        with connect(self.db_path) as connection:
            row = cast(
                sqlite3.Row,
                connection.execute(
                    "SELECT COUNT(*) FROM doc_test_runs WHERE repository_id = ?",
                    (repository_id,),
                ).fetchone(),
            )
        return int(row[0])
