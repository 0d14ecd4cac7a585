"""Document sources the suite runner reads markdown from."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from docverify_core.schemas import Document

logger = logging.getLogger(__name__)

MARKDOWN_SUFFIXES = (".md", ".mdx", ".markdown")


class DocumentSource(Protocol):
    def get_document(self, repository_id: str, document_id: str) -> Document | None: ...

    def list_documents(self, repository_id: str) -> list[Document]: ...


class FilesystemDocumentSource:
    """
    Read documents from ``<root>/<repository_id>/**/*.md``.

    Document ids are POSIX paths relative to the repository directory, and
    listings come back sorted by id so runs are reproducible.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def _repository_dir(self, repository_id: str) -> Path:
        repo_dir = (self.root / repository_id).resolve()
        if self.root.resolve() not in repo_dir.parents:
            raise ValueError(f"Repository id escapes document root: {repository_id}")
        return repo_dir

    def _read(self, repo_dir: Path, path: Path) -> Document:
        relative = path.relative_to(repo_dir).as_posix()
        return Document(id=relative, path=relative, content=path.read_text(encoding="utf-8"))

    def get_document(self, repository_id: str, document_id: str) -> Document | None:
        repo_dir = self._repository_dir(repository_id)
        path = (repo_dir / document_id).resolve()
        if repo_dir not in path.parents or not path.is_file():
            return None
        return self._read(repo_dir, path)

    def list_documents(self, repository_id: str) -> list[Document]:
        repo_dir = self._repository_dir(repository_id)
        if not repo_dir.is_dir():
            logger.warning(f"Repository directory not found: {repo_dir}")
            return []
        paths = sorted(
            p for p in repo_dir.rglob("*") if p.is_file() and p.suffix.lower() in MARKDOWN_SUFFIXES
        )
        return [self._read(repo_dir, p) for p in paths]
