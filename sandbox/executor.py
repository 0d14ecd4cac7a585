"""
Subprocess-based sandbox executor for documentation code examples.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import threading
import time
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import IO

from docverify_core.errors import SandboxSetupError
from docverify_core.languages import ExecutionRecipe, get_recipe
from docverify_core.schemas import CodeExample, ExecutionResult

from sandbox import policy
from sandbox.workspace import SandboxWorkspace

logger = logging.getLogger(__name__)

_POLL_INTERVAL_S = 0.05
_READ_CHUNK = 4096
_READER_JOIN_TIMEOUT_S = 2.0


@dataclass
class ProcessOutcome:
    stdout: str
    stderr: str
    exit_code: int | None
    timed_out: bool = False
    cancelled: bool = False
    truncated: bool = False
    stdout_truncated: bool = False

    @property
    def ok(self) -> bool:
        return not (self.timed_out or self.cancelled or self.truncated) and self.exit_code == 0


class _CappedReader:
    """Drain a pipe on a thread, buffering at most ``limit`` bytes."""

    def __init__(self, stream: IO[bytes], limit: int, on_overflow) -> None:
        self._stream = stream
        self._limit = limit
        self._on_overflow = on_overflow
        self._buffer = bytearray()
        self.truncated = False
        self._thread = threading.Thread(target=self._drain, daemon=True)

    def start(self) -> None:
        self._thread.start()

    def finish(self, timeout: float) -> None:
        self._thread.join(timeout)
        if not self._thread.is_alive():
            self._stream.close()

    def _drain(self) -> None:
        try:
            while True:
                chunk = self._stream.read1(_READ_CHUNK)
                if not chunk:
                    break
                if self.truncated:
                    continue
                room = self._limit - len(self._buffer)
                if len(chunk) > room:
                    self._buffer.extend(chunk[:room])
                    self.truncated = True
                    self._on_overflow()
                else:
                    self._buffer.extend(chunk)
        except (OSError, ValueError):
            # Pipe closed underneath us after a kill.
            pass

    def text(self) -> str:
        return self._buffer.decode("utf-8", errors="replace")


class SandboxExecutor:
    """
    Run one code example in a throwaway directory with a restricted child process.

    ``run`` never raises: timeouts, spawn failures, oversized output and setup
    problems all come back as an ``ExecutionResult`` with status ``error``.
    The sandbox directory is removed before ``run`` returns on every path.
    """

    def __init__(
        self,
        sandbox_root: str | Path | None = None,
        max_output_bytes: int = policy.MAX_OUTPUT_BYTES,
        safe_path: str = policy.SAFE_PATH,
        memory_limit_mb: int | None = policy.DEFAULT_MEMORY_LIMIT_MB,
    ) -> None:
        self.sandbox_root = Path(sandbox_root) if sandbox_root is not None else None
        self.max_output_bytes = max_output_bytes
        self.safe_path = safe_path
        self.memory_limit_mb = memory_limit_mb

    def run(
        self,
        example: CodeExample,
        recipe: ExecutionRecipe | None = None,
        timeout_seconds: float = 30,
        cancel_event: threading.Event | None = None,
    ) -> ExecutionResult:
        start = time.perf_counter()
        if cancel_event is not None and cancel_event.is_set():
            return self._error(example, "Execution cancelled", start, policy.CANCELLED_EXIT_CODE)

        try:
            recipe = recipe or get_recipe(example.language)
            with SandboxWorkspace(self.sandbox_root) as workspace:
                workspace.materialize(example, recipe)
                logger.debug(f"Running {example.id} ({example.language}) in {workspace.path}")
                outcome = self._execute_recipe(recipe, workspace.path, timeout_seconds, cancel_event)
        except SandboxSetupError as exc:
            logger.error(f"Sandbox setup failed for {example.id}: {exc}")
            return self._error(example, str(exc), start)
        except OSError as exc:
            # Missing interpreter, permission denied, etc.
            return self._error(example, str(exc), start)
        except Exception as exc:  # noqa: BLE001 - run() resolves every fault into a result
            logger.exception(f"Unexpected sandbox failure for {example.id}")
            return self._error(example, f"{exc.__class__.__name__}: {exc}", start)

        return self._classify(example, outcome, (time.perf_counter() - start) * 1000)

    def _execute_recipe(
        self,
        recipe: ExecutionRecipe,
        workdir: Path,
        timeout_seconds: float,
        cancel_event: threading.Event | None,
    ) -> ProcessOutcome:
        deadline = time.monotonic() + timeout_seconds
        env = policy.build_environment(workdir, recipe.env, safe_path=self.safe_path)
        for step in recipe.build_steps:
            outcome = self._run_process(step, workdir, env, deadline, recipe, cancel_event)
            if not outcome.ok:
                return outcome
        return self._run_process(recipe.command, workdir, env, deadline, recipe, cancel_event)

    def _run_process(
        self,
        argv: Sequence[str],
        workdir: Path,
        env: dict[str, str],
        deadline: float,
        recipe: ExecutionRecipe,
        cancel_event: threading.Event | None,
    ) -> ProcessOutcome:
        use_group = policy.supports_process_groups()
        remaining = max(0.0, deadline - time.monotonic())
        limits = policy.resource_limits(remaining, self.memory_limit_mb, recipe.limit_address_space)
        limit_after_spawn = policy.can_limit_after_spawn()
        process = subprocess.Popen(
            list(argv),
            cwd=str(workdir),
            env=env,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            start_new_session=use_group,
            preexec_fn=None if limit_after_spawn else policy.preexec_limits(limits),
        )

        def kill() -> None:
            _kill_process(process, use_group)

        stdout = _CappedReader(process.stdout, self.max_output_bytes, kill)
        stderr = _CappedReader(process.stderr, self.max_output_bytes, kill)
        stdout.start()
        stderr.start()

        timed_out = False
        cancelled = False
        try:
            if limit_after_spawn:
                policy.apply_limits(process.pid, limits)
            while True:
                if cancel_event is not None and cancel_event.is_set():
                    cancelled = True
                    kill()
                    break
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    timed_out = True
                    kill()
                    break
                try:
                    process.wait(timeout=min(remaining, _POLL_INTERVAL_S))
                    break
                except subprocess.TimeoutExpired:
                    continue
        finally:
            if process.poll() is None:
                kill()
            exit_code = process.wait()
            # Reap anything the snippet left running in its process group.
            kill()
            stdout.finish(_READER_JOIN_TIMEOUT_S)
            stderr.finish(_READER_JOIN_TIMEOUT_S)

        return ProcessOutcome(
            stdout=stdout.text(),
            stderr=stderr.text(),
            exit_code=exit_code,
            timed_out=timed_out,
            cancelled=cancelled,
            truncated=stdout.truncated or stderr.truncated,
            stdout_truncated=stdout.truncated,
        )

    def _classify(
        self,
        example: CodeExample,
        outcome: ProcessOutcome,
        elapsed_ms: float,
    ) -> ExecutionResult:
        output = outcome.stdout + (policy.TRUNCATION_MARKER if outcome.stdout_truncated else "")

        def result(status, error_message=None, exit_code=outcome.exit_code) -> ExecutionResult:
            return ExecutionResult(
                example_id=example.id,
                language=example.language,
                status=status,
                output=output,
                error_message=error_message,
                execution_time_ms=elapsed_ms,
                exit_code=exit_code,
                truncated=outcome.truncated,
            )

        if outcome.timed_out:
            return result("error", "Execution timed out", policy.TIMEOUT_EXIT_CODE)
        if outcome.cancelled:
            return result("error", "Execution cancelled", policy.CANCELLED_EXIT_CODE)

        if example.expected_output is not None:
            actual = outcome.stdout.strip()
            expected = example.expected_output.strip()
            if actual == expected:
                return result("passed")
            return result("failed", f'Expected: "{expected}", Got: "{actual}"')

        if outcome.truncated:
            return result(
                "error",
                f"Output exceeded {self.max_output_bytes} bytes; process terminated",
            )
        if outcome.exit_code == 0:
            return result("passed")
        return result("error", outcome.stderr.strip() or f"Non-zero exit code ({outcome.exit_code})")

    def _error(
        self,
        example: CodeExample,
        message: str,
        start: float,
        exit_code: int | None = None,
    ) -> ExecutionResult:
        return ExecutionResult(
            example_id=example.id,
            language=example.language,
            status="error",
            error_message=message,
            execution_time_ms=(time.perf_counter() - start) * 1000,
            exit_code=exit_code,
        )


def _kill_process(process: subprocess.Popen, use_group: bool) -> None:
    """SIGKILL the child, and its whole process group where supported."""
    try:
        if use_group:
            os.killpg(process.pid, signal.SIGKILL)
        elif process.poll() is None:
            process.kill()
    except (ProcessLookupError, PermissionError):
        pass
