"""
Fenced code example extraction from markdown documents.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Protocol

from .languages import SupportedLanguage, expected_output_pattern, normalize_language
from .schemas import DEFAULT_HEADING, CodeExample

# Only LF and CRLF end a line; str.splitlines also breaks on form feeds and U+2028.
LINE_BREAK_PATTERN = re.compile(r"\r?\n")
HEADING_PATTERN = re.compile(r"^(#{1,6})\s+(.+)$")
FENCE_OPEN_PATTERN = re.compile(r"^```(\w+)$")
FENCE_CLOSE_PATTERN = re.compile(r"^```$")
# Any other backtick fence (untagged or with an info string) still opens a block.
FENCE_OTHER_PATTERN = re.compile(r"^```")


class ExampleExtractor(Protocol):
    def extract(self, content: str, document_id: str, document_path: str) -> list[CodeExample]: ...


@dataclass
class _OpenFence:
    tag: str | None
    first_line: int
    lines: list[str] = field(default_factory=list)


def example_id(document_id: str, line_start: int) -> str:
    return f"{document_id}-{line_start}"


def find_expected_output(code_lines: list[str], language: SupportedLanguage) -> str | None:
    """Return the text of the first ``expected: <text>`` comment, if any."""
    pattern = expected_output_pattern(language)
    for line in code_lines:
        match = pattern.match(line)
        if match and match.group(1).strip():
            return match.group(1).strip()
    return None


class FenceScanner:
    """Single forward scan over lines, tracking headings and fence state.

    Headings only count outside fences. A fence left open at end of input is
    discarded. Blocks with an unsupported tag or an empty body produce nothing.
    """

    def extract(self, content: str, document_id: str, document_path: str) -> list[CodeExample]:
        examples: list[CodeExample] = []
        heading = DEFAULT_HEADING
        fence: _OpenFence | None = None

        for index, line in enumerate(LINE_BREAK_PATTERN.split(content), start=1):
            if fence is None:
                heading_match = HEADING_PATTERN.match(line)
                if heading_match:
                    heading = heading_match.group(2).strip() or DEFAULT_HEADING
                    continue
                open_match = FENCE_OPEN_PATTERN.match(line)
                if open_match:
                    fence = _OpenFence(tag=open_match.group(1), first_line=index + 1)
                elif FENCE_OTHER_PATTERN.match(line):
                    fence = _OpenFence(tag=None, first_line=index + 1)
                continue

            if FENCE_CLOSE_PATTERN.match(line):
                example = self._build_example(fence, index - 1, heading, document_id, document_path)
                if example is not None:
                    examples.append(example)
                fence = None
                continue

            fence.lines.append(line)

        return examples

    def _build_example(
        self,
        fence: _OpenFence,
        last_line: int,
        heading: str,
        document_id: str,
        document_path: str,
    ) -> CodeExample | None:
        language = normalize_language(fence.tag)
        if language is None or not "\n".join(fence.lines).strip():
            return None
        return CodeExample(
            id=example_id(document_id, fence.first_line),
            document_id=document_id,
            document_path=document_path,
            language=language,
            code="\n".join(fence.lines),
            line_start=fence.first_line,
            line_end=last_line,
            heading=heading,
            expected_output=find_expected_output(fence.lines, language),
        )


_default_extractor = FenceScanner()


def extract_code_examples(
    content: str,
    document_id: str,
    document_path: str,
) -> list[CodeExample]:
    """Extract runnable examples from markdown, in source order."""
    return _default_extractor.extract(content, document_id, document_path)
