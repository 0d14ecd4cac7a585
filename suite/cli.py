"""CLI interface for running documentation example suites."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer

from docverify_core.errors import DocTestConfigError
from docverify_core.extractor import extract_code_examples
from store.repository import HistoryStore

from suite.config import EngineSettings, YamlConfigStore, load_settings
from suite.documents import FilesystemDocumentSource
from suite.report import build_check_run
from suite.runner import DocTestRunner

app = typer.Typer(help="Documentation code example verifier")


def _load_engine_settings(settings_path: Optional[str]) -> EngineSettings:
    if settings_path is None:
        return EngineSettings()
    try:
        return load_settings(settings_path)
    except (FileNotFoundError, ValueError) as e:
        typer.secho(f"❌ {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def run(
    root: str = typer.Argument(..., help="Directory holding one folder per repository"),
    repository: str = typer.Argument(..., help="Repository id (folder name under ROOT)"),
    document: Optional[str] = typer.Option(None, "--document", help="Only test this document"),
    config_path: str = typer.Option("docverify.yaml", "--config", help="Per-repository config YAML"),
    settings_path: Optional[str] = typer.Option(None, "--settings", help="Engine settings YAML"),
    summary_out: Optional[str] = typer.Option(None, "--summary-out", help="Write markdown summary here"),
    as_json: bool = typer.Option(False, "--json", help="Print the suite as JSON"),
) -> None:
    """Run every documentation example in a repository (or one document)."""
    settings = _load_engine_settings(settings_path)
    runner = DocTestRunner(
        config_store=YamlConfigStore(config_path),
        documents=FilesystemDocumentSource(root),
        history=HistoryStore(settings.history_db_path),
        settings=settings,
    )

    try:
        suite = runner.run_suite(repository, document_id=document)
    except DocTestConfigError as e:
        typer.secho(f"❌ {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    check_run = build_check_run(suite)
    if summary_out:
        Path(summary_out).parent.mkdir(parents=True, exist_ok=True)
        Path(summary_out).write_text(check_run.summary, encoding="utf-8")

    if as_json:
        typer.echo(suite.to_json())
    else:
        typer.echo(check_run.summary)

    if not suite.succeeded:
        typer.secho(f"\n{check_run.title}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    typer.secho(f"\n{check_run.title}", fg=typer.colors.GREEN)


@app.command()
def coverage(
    root: str = typer.Argument(..., help="Directory holding one folder per repository"),
    repository: str = typer.Argument(..., help="Repository id (folder name under ROOT)"),
    config_path: str = typer.Option("docverify.yaml", "--config", help="Per-repository config YAML"),
) -> None:
    """Show how many documents carry runnable examples. Executes nothing."""
    runner = DocTestRunner(
        config_store=YamlConfigStore(config_path),
        documents=FilesystemDocumentSource(root),
    )
    try:
        stats = runner.get_test_coverage_stats(repository)
    except DocTestConfigError as e:
        typer.secho(f"❌ {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    typer.echo(f"Repository:              {stats.repository_id}")
    typer.echo(f"Documents:               {stats.total_documents}")
    typer.echo(f"Documents with examples: {stats.documents_with_examples}")
    typer.echo(f"Documents tested:        {stats.documents_with_tested_examples}")
    typer.echo(f"Examples (tested/total): {stats.tested_examples}/{stats.total_examples}")
    typer.echo(f"Coverage:                {stats.coverage_percentage:.1f}%")


@app.command()
def history(
    repository: str = typer.Argument(..., help="Repository id"),
    limit: int = typer.Option(10, "--limit", min=1, help="Number of runs to show"),
    settings_path: Optional[str] = typer.Option(None, "--settings", help="Engine settings YAML"),
) -> None:
    """List the most recent suite runs for a repository."""
    settings = _load_engine_settings(settings_path)
    runs = HistoryStore(settings.history_db_path).get_history(repository, limit)
    if not runs:
        typer.echo(f"No runs recorded for {repository}")
        return

    typer.echo("| Executed At | Document | Total | Passed | Failed | Errors | Skipped | Duration |")
    typer.echo("|-------------|----------|-------|--------|--------|--------|---------|----------|")
    for entry in runs:
        typer.echo(
            f"| {entry.executed_at:%Y-%m-%d %H:%M:%S} | {entry.document_id or '(all)'} "
            f"| {entry.total_examples} | {entry.passed} | {entry.failed} | {entry.errors} "
            f"| {entry.skipped} | {entry.duration / 1000:.2f}s |"
        )


@app.command()
def extract(
    path: str = typer.Argument(..., help="Markdown file to scan"),
) -> None:
    """Print the runnable examples found in one markdown file as JSON."""
    file_path = Path(path)
    if not file_path.is_file():
        typer.secho(f"❌ File not found: {path}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    examples = extract_code_examples(
        file_path.read_text(encoding="utf-8"), file_path.name, file_path.as_posix()
    )
    typer.echo(json.dumps([example.to_dict() for example in examples], indent=2))


if __name__ == "__main__":
    app()
