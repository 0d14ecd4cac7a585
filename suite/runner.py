"""Suite runner orchestrating extraction, sandboxed execution and persistence."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Any

from tqdm import tqdm

from docverify_core.errors import DocTestConfigError
from docverify_core.extractor import ExampleExtractor, FenceScanner
from docverify_core.schemas import (
    CodeExample,
    CoverageStats,
    DocTestConfig,
    DocTestHistory,
    DocTestSuite,
    Document,
    ExecutionResult,
)
from sandbox.executor import SandboxExecutor
from store.repository import HistoryStore

from suite.config import ConfigStore, EngineSettings
from suite.documents import DocumentSource

logger = logging.getLogger(__name__)

# (document position in the run, first line of the example body)
OrderKey = tuple[int, int]


def is_excluded(path: str, exclude_paths: list[str]) -> bool:
    return any(pattern and pattern in path for pattern in exclude_paths)


def skipped_result(example: CodeExample, reason: str) -> ExecutionResult:
    return ExecutionResult(
        example_id=example.id,
        language=example.language,
        status="skipped",
        error_message=reason,
    )


class DocTestRunner:
    """
    Runs documentation code examples for a repository or a single document.

    Collaborators are injected: where config comes from, where documents come
    from, where history goes, and what executes each example.
    """

    def __init__(
        self,
        config_store: ConfigStore,
        documents: DocumentSource,
        history: HistoryStore | None = None,
        executor: SandboxExecutor | None = None,
        extractor: ExampleExtractor | None = None,
        settings: EngineSettings | None = None,
    ) -> None:
        self.settings = settings or EngineSettings()
        self.config_store = config_store
        self.documents = documents
        self.history = history
        self.executor = executor or SandboxExecutor(
            sandbox_root=self.settings.sandbox_root,
            max_output_bytes=self.settings.max_output_bytes,
            safe_path=self.settings.safe_path,
            memory_limit_mb=self.settings.memory_limit_mb,
        )
        self.extractor = extractor or FenceScanner()

    def run_suite(
        self,
        repository_id: str,
        document_id: str | None = None,
        cancel_event: threading.Event | None = None,
    ) -> DocTestSuite:
        """Extract and run every example, returning results in document-then-line order.

        Raises:
            DocTestConfigError: If doc testing is disabled or misconfigured
        """
        start = time.perf_counter()
        config = self.config_store.get(repository_id)
        if not config.enabled:
            raise DocTestConfigError(
                f"Doc testing is not enabled for repository {repository_id}"
            )

        logger.info(f"Starting doc test suite for {repository_id} (document={document_id})")
        documents = self._documents_to_test(repository_id, document_id, config)
        logger.info(f"Found {len(documents)} document(s) to test")

        results: dict[OrderKey, ExecutionResult] = {}
        runnable: list[tuple[OrderKey, CodeExample]] = []
        for doc_index, document in enumerate(documents):
            examples = self.extractor.extract(document.content, document.id, document.path)
            for example in examples:
                key = (doc_index, example.line_start)
                if example.language in config.languages:
                    runnable.append((key, example))
                else:
                    results[key] = skipped_result(
                        example,
                        f"Language '{example.language}' is not enabled for this repository",
                    )

        results.update(self._execute_all(runnable, config.timeout, cancel_event))

        ordered = [results[key] for key in sorted(results)]
        suite = DocTestSuite.from_results(
            repository_id,
            ordered,
            document_id=document_id,
            duration=(time.perf_counter() - start) * 1000,
        )
        self._persist(suite, len(documents), config)

        logger.info(
            f"Doc test suite for {repository_id} completed: total={suite.total_examples} "
            f"passed={suite.passed} failed={suite.failed} errors={suite.errors} "
            f"skipped={suite.skipped} duration={suite.duration:.0f}ms"
        )
        return suite

    def _documents_to_test(
        self,
        repository_id: str,
        document_id: str | None,
        config: DocTestConfig,
    ) -> list[Document]:
        if document_id is not None:
            document = self.documents.get_document(repository_id, document_id)
            if document is None:
                logger.warning(f"Document not found: {document_id}")
                return []
            return [document]

        documents = [
            document
            for document in self.documents.list_documents(repository_id)
            if not is_excluded(document.path, config.exclude_paths)
        ]
        if len(documents) > self.settings.max_documents:
            logger.warning(
                f"Repository {repository_id} has {len(documents)} documents; "
                f"testing the first {self.settings.max_documents}"
            )
        return documents[: self.settings.max_documents]

    def _execute_all(
        self,
        runnable: list[tuple[OrderKey, CodeExample]],
        timeout: int,
        cancel_event: threading.Event | None,
    ) -> dict[OrderKey, ExecutionResult]:
        if not runnable:
            return {}

        cancel_event = cancel_event or threading.Event()
        results: dict[OrderKey, ExecutionResult] = {}
        with ThreadPoolExecutor(
            max_workers=self.settings.max_workers, thread_name_prefix="docverify"
        ) as pool:
            futures: dict[Future[ExecutionResult], tuple[OrderKey, CodeExample]] = {
                pool.submit(self._run_example, example, timeout, cancel_event): (key, example)
                for key, example in runnable
            }
            pbar = tqdm(
                as_completed(futures),
                total=len(futures),
                desc="Doc examples",
                unit="example",
                disable=not self.settings.show_progress,
            )
            try:
                for future in pbar:
                    key, _ = futures[future]
                    results[key] = future.result()
            except BaseException:
                # Caller abort: kill in-flight subprocesses, let workers clean up, re-raise.
                cancel_event.set()
                raise
            finally:
                pbar.close()
        return results

    def _run_example(
        self,
        example: CodeExample,
        timeout: int,
        cancel_event: threading.Event,
    ) -> ExecutionResult:
        logger.debug(f"Running example {example.id} ({example.language})")
        try:
            return self.executor.run(example, timeout_seconds=timeout, cancel_event=cancel_event)
        except Exception as exc:  # noqa: BLE001 - one bad example must not abort the suite
            logger.exception(f"Executor raised for {example.id}")
            return ExecutionResult(
                example_id=example.id,
                language=example.language,
                status="error",
                error_message=f"{exc.__class__.__name__}: {exc}",
            )

    def _persist(self, suite: DocTestSuite, document_count: int, config: DocTestConfig) -> None:
        if self.history is None:
            return
        try:
            self.history.record_suite(
                suite,
                metadata={"document_count": document_count, "languages": config.languages},
            )
        except Exception as exc:  # noqa: BLE001 - the in-memory suite is still returned
            logger.warning(f"Failed to store doc test run for {suite.repository_id}: {exc}")

    def get_test_history(self, repository_id: str, limit: int = 50) -> list[DocTestHistory]:
        if self.history is None:
            return []
        return self.history.get_history(repository_id, limit)

    def get_test_coverage_stats(self, repository_id: str) -> CoverageStats:
        """Count documents that carry runnable examples. Extracts only; runs nothing."""
        config = self.config_store.get(repository_id)
        documents = self.documents.list_documents(repository_id)

        documents_with_examples = 0
        documents_with_tested = 0
        total_examples = 0
        tested_examples = 0
        for document in documents:
            examples = self.extractor.extract(document.content, document.id, document.path)
            if not examples:
                continue
            documents_with_examples += 1
            total_examples += len(examples)
            if is_excluded(document.path, config.exclude_paths):
                continue
            tested = [ex for ex in examples if ex.language in config.languages]
            tested_examples += len(tested)
            if tested:
                documents_with_tested += 1

        total_documents = len(documents)
        coverage = documents_with_examples / total_documents * 100 if total_documents else 0.0
        return CoverageStats(
            repository_id=repository_id,
            total_documents=total_documents,
            documents_with_examples=documents_with_examples,
            documents_with_tested_examples=documents_with_tested,
            total_examples=total_examples,
            tested_examples=tested_examples,
            coverage_percentage=coverage,
        )

    def update_doc_test_config(self, repository_id: str, **changes: Any) -> DocTestConfig:
        return self.config_store.update(repository_id, **changes)
