from datetime import datetime, timedelta, timezone
from pathlib import Path

from docverify_core.schemas import DocTestSuite, ExecutionResult
from store.repository import HistoryStore


def _suite(repository_id: str, executed_at: datetime, document_id: str | None = None) -> DocTestSuite:
    results = [
        ExecutionResult(example_id="a-3", language="python", status="passed", output="hi\n"),
        ExecutionResult(
            example_id="a-9",
            language="javascript",
            status="failed",
            output="3\n",
            error_message='Expected: "2", Got: "3"',
            exit_code=0,
        ),
        ExecutionResult(example_id="a-15", language="go", status="skipped"),
    ]
    return DocTestSuite.from_results(
        repository_id,
        results,
        document_id=document_id,
        executed_at=executed_at,
        duration=1234.5,
    )


def test_history_is_newest_first_and_limited(tmp_path: Path) -> None:
    store = HistoryStore(tmp_path / "history.db")
    base = datetime(2024, 5, 1, tzinfo=timezone.utc)
    for offset in range(3):
        store.record_suite(_suite("repo-1", base + timedelta(hours=offset)))
    store.record_suite(_suite("repo-2", base))

    history = store.get_history("repo-1", limit=2)

    assert [entry.executed_at for entry in history] == [
        base + timedelta(hours=2),
        base + timedelta(hours=1),
    ]
    assert store.count_runs("repo-1") == 3
    assert store.count_runs("repo-2") == 1


def test_history_entry_carries_counts(tmp_path: Path) -> None:
    store = HistoryStore(tmp_path / "history.db")
    history_id = store.record_suite(
        _suite("repo-1", datetime(2024, 5, 1, tzinfo=timezone.utc), document_id="docs/a.md")
    )

    [entry] = store.get_history("repo-1")

    assert entry.id == history_id
    assert entry.document_id == "docs/a.md"
    assert (entry.total_examples, entry.passed, entry.failed, entry.errors, entry.skipped) == (
        3,
        1,
        1,
        0,
        1,
    )
    assert entry.duration == 1234.5
    assert entry.executed_at.tzinfo is not None


def test_results_round_trip(tmp_path: Path) -> None:
    store = HistoryStore(tmp_path / "history.db")
    suite = _suite("repo-1", datetime(2024, 5, 1, tzinfo=timezone.utc))
    history_id = store.record_suite(suite)

    assert store.get_results(history_id) == suite.results
    assert store.get_results("missing") is None


def test_secret_metadata_is_not_stored(tmp_path: Path) -> None:
    store = HistoryStore(tmp_path / "history.db")
    store.record_suite(
        _suite("repo-1", datetime(2024, 5, 1, tzinfo=timezone.utc)),
        metadata={"document_count": 2, "github_token": "ghp_x", "API_KEY": "k"},
    )

    [entry] = store.get_history("repo-1")

    assert entry.metadata == {"document_count": 2}


def test_reopening_store_keeps_history(tmp_path: Path) -> None:
    db_path = tmp_path / "nested" / "history.db"
    HistoryStore(db_path).record_suite(_suite("repo-1", datetime(2024, 5, 1, tzinfo=timezone.utc)))

    assert HistoryStore(db_path).count_runs("repo-1") == 1


def test_unknown_repository_has_no_history(tmp_path: Path) -> None:
    assert HistoryStore(tmp_path / "history.db").get_history("nope") == []
