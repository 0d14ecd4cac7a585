"""
Language tag normalization and execution recipes.

Fence tags in hand-written markdown are free-form (``js``, ``Py``, ``golang``,
``shell``...). Everything downstream of the extractor works with the closed
set of seven supported targets below.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Literal

SupportedLanguage = Literal[
    "javascript",
    "typescript",
    "python",
    "go",
    "java",
    "rust",
    "bash",
]

SUPPORTED_LANGUAGES: tuple[SupportedLanguage, ...] = (
    "javascript",
    "typescript",
    "python",
    "go",
    "java",
    "rust",
    "bash",
)

_ALIASES: dict[str, SupportedLanguage] = {
    "js": "javascript",
    "javascript": "javascript",
    "node": "javascript",
    "ts": "typescript",
    "typescript": "typescript",
    "py": "python",
    "python": "python",
    "python3": "python",
    "go": "go",
    "golang": "go",
    "java": "java",
    "rs": "rust",
    "rust": "rust",
    "sh": "bash",
    "bash": "bash",
    "shell": "bash",
}

_SLASH_COMMENT = re.compile(r"^\s*//\s*expected:\s*(.+)$", re.IGNORECASE)
_HASH_COMMENT = re.compile(r"^\s*#\s*expected:\s*(.+)$", re.IGNORECASE)

EXPECTED_OUTPUT_PATTERNS: dict[SupportedLanguage, re.Pattern[str]] = {
    "javascript": _SLASH_COMMENT,
    "typescript": _SLASH_COMMENT,
    "python": _HASH_COMMENT,
    "go": _SLASH_COMMENT,
    "java": _SLASH_COMMENT,
    "rust": _SLASH_COMMENT,
    "bash": _HASH_COMMENT,
}

_TSCONFIG = """{
  "compilerOptions": {
    "target": "ES2022",
    "module": "commonjs",
    "strict": false,
    "esModuleInterop": true
  }
}
"""


def normalize_language(tag: str | None) -> SupportedLanguage | None:
    """Map a fence tag onto a supported language, or None when unsupported."""
    if not tag:
        return None
    return _ALIASES.get(tag.strip().lower())


def is_supported(tag: str | None) -> bool:
    return normalize_language(tag) is not None


@dataclass(frozen=True)
class ExecutionRecipe:
    """How to materialize and run one language inside a sandbox directory.

    Commands are relative to the sandbox directory, which becomes the child's
    working directory. ``build_steps`` run in order before ``command`` and
    share its wall-clock budget.
    """

    language: SupportedLanguage
    file_name: str
    command: tuple[str, ...]
    build_steps: tuple[tuple[str, ...], ...] = ()
    support_files: Mapping[str, str] = field(default_factory=dict)
    wraps_source: bool = False
    # Runtimes that reserve large virtual address ranges up front break under RLIMIT_AS.
    limit_address_space: bool = True
    env: Mapping[str, str] = field(default_factory=dict)


_RECIPES: dict[SupportedLanguage, ExecutionRecipe] = {
    "javascript": ExecutionRecipe(
        language="javascript",
        file_name="script.js",
        command=("node", "script.js"),
        limit_address_space=False,
        env={"NODE_ENV": "production"},
    ),
    "typescript": ExecutionRecipe(
        language="typescript",
        file_name="script.ts",
        command=("npx", "--no-install", "ts-node", "script.ts"),
        support_files={"tsconfig.json": _TSCONFIG},
        limit_address_space=False,
        env={"NODE_ENV": "production"},
    ),
    "python": ExecutionRecipe(
        language="python",
        file_name="script.py",
        command=("python3", "script.py"),
        env={"PYTHONDONTWRITEBYTECODE": "1", "PYTHONUNBUFFERED": "1"},
    ),
    "go": ExecutionRecipe(
        language="go",
        file_name="main.go",
        command=("go", "run", "main.go"),
        wraps_source=True,
        limit_address_space=False,
    ),
    "java": ExecutionRecipe(
        language="java",
        file_name="Main.java",
        command=("java", "Main.java"),
        limit_address_space=False,
    ),
    "rust": ExecutionRecipe(
        language="rust",
        file_name="main.rs",
        command=("./main",),
        build_steps=(("rustc", "main.rs", "-o", "main"),),
        limit_address_space=False,
    ),
    "bash": ExecutionRecipe(
        language="bash",
        file_name="script.sh",
        command=("bash", "script.sh"),
    ),
}


def get_recipe(language: str) -> ExecutionRecipe:
    """Return the execution recipe for a language tag or alias.

    Raises:
        ValueError: If the tag does not resolve to a supported language
    """
    normalized = normalize_language(language)
    if normalized is None:
        raise ValueError(f"Unsupported language: {language}")
    return _RECIPES[normalized]


def expected_output_pattern(language: SupportedLanguage) -> re.Pattern[str]:
    return EXPECTED_OUTPUT_PATTERNS[language]
