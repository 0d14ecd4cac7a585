"""
Per-example sandbox directories and source materialization.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import uuid
from pathlib import Path
from types import TracebackType

from docverify_core.errors import SandboxSetupError
from docverify_core.languages import ExecutionRecipe
from docverify_core.schemas import CodeExample

logger = logging.getLogger(__name__)

DEFAULT_SANDBOX_ROOT = Path(tempfile.gettempdir()) / "docverify-sandbox"


def wrap_go_source(code: str) -> str:
    """Turn a Go snippet into a runnable ``package main`` program.

    Full programs pass through untouched. A snippet defining ``func main()``
    only gets the package clause. Anything else is treated as a statement
    list and placed inside a synthesized ``main``; declaration-only snippets
    will not compile this way.
    """
    if "package main" in code:
        return code
    if "func main()" in code:
        return f"package main\n\n{code}\n"

    body = "\n".join(f"\t{line}" if line.strip() else "" for line in code.splitlines())
    imports = 'import "fmt"\n\n' if "fmt." in code else ""
    return f"package main\n\n{imports}func main() {{\n{body}\n}}\n"


def _make_removable(path: Path) -> None:
    """Give the owner full access to every directory under ``path``.

    Symlinks are skipped so nothing outside the sandbox is touched.
    """
    os.chmod(path, 0o700)
    for dirpath, dirnames, _ in os.walk(path):
        for name in dirnames:
            child = os.path.join(dirpath, name)
            if os.path.islink(child):
                continue
            try:
                os.chmod(child, 0o700)
            except OSError as exc:
                logger.debug(f"Could not chmod {child}: {exc}")


class SandboxWorkspace:
    """
    A uniquely named directory under the sandbox root, removed on exit.

    Use as a context manager; the directory and everything in it is deleted
    when the block exits, whether it returns normally or raises.
    """

    def __init__(self, root: str | Path | None = None) -> None:
        self.root: Path = Path(root) if root is not None else DEFAULT_SANDBOX_ROOT
        self.sandbox_id: str = uuid.uuid4().hex
        self.path: Path = self.root / self.sandbox_id

    def __enter__(self) -> "SandboxWorkspace":
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            self.path.mkdir(mode=0o700)
        except OSError as exc:
            raise SandboxSetupError(f"Failed to create sandbox directory: {exc}") from exc
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.cleanup()

    def cleanup(self) -> None:
        if not self.path.exists():
            return
        try:
            shutil.rmtree(self.path)
        except OSError:
            # Snippets may leave read-only or unlistable directories behind.
            try:
                _make_removable(self.path)
                shutil.rmtree(self.path)
            except OSError as exc:
                logger.warning(f"Failed to remove sandbox directory {self.path}: {exc}")

    def materialize(self, example: CodeExample, recipe: ExecutionRecipe) -> Path:
        """Write the example source and any recipe support files."""
        source = wrap_go_source(example.code) if recipe.wraps_source else example.code
        if not source.endswith("\n"):
            source += "\n"
        source_path = self.path / recipe.file_name
        try:
            source_path.write_text(source, encoding="utf-8")
            if recipe.language == "bash":
                source_path.chmod(0o755)
            for name, content in recipe.support_files.items():
                (self.path / name).write_text(content, encoding="utf-8")
        except OSError as exc:
            raise SandboxSetupError(f"Failed to write sandbox source: {exc}") from exc
        return source_path
