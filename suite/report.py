"""Markdown check-run summaries for doc test suites."""

from __future__ import annotations

from docverify_core.schemas import CheckRunOutput, DocTestSuite, ExecutionResult

CHECK_RUN_NAME = "Documentation Code Examples"
MAX_LISTED_FAILURES = 10
MAX_OUTPUT_CHARS = 500


def _pass_rate(suite: DocTestSuite) -> str:
    if suite.total_examples == 0:
        return "0.0"
    return f"{suite.passed / suite.total_examples * 100:.1f}"


def _failure_section(result: ExecutionResult) -> str:
    lines = [
        f"### {result.example_id}",
        "",
        f"- **Status:** {result.status}",
        f"- **Language:** {result.language}",
        f"- **Error:** {result.error_message or 'Unknown error'}",
    ]
    if result.output:
        output = result.output[:MAX_OUTPUT_CHARS]
        if len(result.output) > MAX_OUTPUT_CHARS:
            output += "\n..."
        lines.append("- **Output:**")
        lines.append(f"```\n{output}\n```")
    return "\n".join(lines) + "\n"


def generate_check_run_summary(suite: DocTestSuite) -> str:
    """Render the suite as a markdown summary: badge, counts table, failed tests."""
    badge = "✅" if suite.succeeded else "❌"
    md_content = f"""{badge} **{CHECK_RUN_NAME} Test Results**

## Summary

| Metric | Count |
|--------|-------|
| Total Examples | {suite.total_examples} |
| Passed | {suite.passed} ({_pass_rate(suite)}%) |
| Failed | {suite.failed} |
| Errors | {suite.errors} |
| Skipped | {suite.skipped} |
| Duration | {suite.duration / 1000:.2f}s |
"""

    failures = [r for r in suite.results if r.status in ("failed", "error")]
    if failures:
        sections = [_failure_section(r) for r in failures[:MAX_LISTED_FAILURES]]
        md_content += "\n## Failed Tests\n\n" + "\n".join(sections)
        if len(failures) > MAX_LISTED_FAILURES:
            md_content += f"\n... and {len(failures) - MAX_LISTED_FAILURES} more failures\n"
    return md_content


def build_check_run(suite: DocTestSuite) -> CheckRunOutput:
    if suite.total_examples == suite.skipped:
        conclusion = "neutral"
        title = f"No documentation examples were run ({suite.skipped} skipped)"
    elif suite.succeeded:
        conclusion = "success"
        title = f"✅ All {suite.total_examples - suite.skipped} documentation examples passed"
    else:
        conclusion = "failure"
        title = (
            f"❌ {suite.failed + suite.errors} of {suite.total_examples} "
            "documentation examples failed"
        )
    return CheckRunOutput(title=title, summary=generate_check_run_summary(suite), conclusion=conclusion)
