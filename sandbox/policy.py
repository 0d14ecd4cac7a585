"""
Sandbox policy: child environment, output ceilings, exit codes and rlimits.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Mapping
from pathlib import Path

try:
    import resource
except ImportError:  # Windows
    resource = None

MAX_OUTPUT_BYTES = 50_000
TRUNCATION_MARKER = "\n... (output truncated)"

TIMEOUT_EXIT_CODE = 124
CANCELLED_EXIT_CODE = 130

SAFE_PATH = "/usr/local/bin:/usr/bin:/bin"
DEFAULT_LANG = "en_US.UTF-8"
DEFAULT_MEMORY_LIMIT_MB = 512


def build_environment(
    workdir: Path,
    extra: Mapping[str, str] | None = None,
    safe_path: str = SAFE_PATH,
) -> dict[str, str]:
    """
    Build the complete child environment from scratch.

    Nothing is inherited from the parent process. HOME and TMPDIR point into
    the sandbox directory so tools that write caches or dotfiles stay inside it.
    """
    env = {
        "PATH": safe_path,
        "LANG": DEFAULT_LANG,
        "HOME": str(workdir),
        "TMPDIR": str(workdir),
        "PYTHONDONTWRITEBYTECODE": "1",
    }
    if extra:
        env.update(extra)
    # PATH, HOME and TMPDIR are not overridable by recipes.
    env["PATH"] = safe_path
    env["HOME"] = str(workdir)
    env["TMPDIR"] = str(workdir)
    return env


def supports_process_groups() -> bool:
    return os.name == "posix"


ResourceLimit = tuple[int, tuple[int, int]]


def resource_limits(
    timeout_seconds: float,
    memory_limit_mb: int | None,
    limit_address_space: bool = True,
) -> list[ResourceLimit]:
    """CPU and memory rlimits for one child process; empty where unsupported."""
    if resource is None or os.name == "nt":
        return []

    cpu_seconds = max(1, int(timeout_seconds) + 1)
    limits: list[ResourceLimit] = [(resource.RLIMIT_CPU, (cpu_seconds, cpu_seconds + 1))]
    if not memory_limit_mb or not limit_address_space:
        return limits

    memory_bytes = int(memory_limit_mb * 1024 * 1024)
    if hasattr(resource, "RLIMIT_AS"):
        limits.append((resource.RLIMIT_AS, (memory_bytes, memory_bytes)))
    elif hasattr(resource, "RLIMIT_DATA"):
        limits.append((resource.RLIMIT_DATA, (memory_bytes, memory_bytes)))
    return limits


def can_limit_after_spawn() -> bool:
    """True where rlimits can be set on a running child (Linux ``prlimit``)."""
    return resource is not None and hasattr(resource, "prlimit")


def apply_limits(pid: int, limits: list[ResourceLimit]) -> None:
    """Set rlimits on an already running child. A child that has exited is ignored."""
    try:
        for which, value in limits:
            resource.prlimit(pid, which, value)
    except ProcessLookupError:
        pass


def preexec_limits(limits: list[ResourceLimit]) -> Callable[[], None] | None:
    """Return a preexec_fn setting ``limits`` in the child before exec.

    Only used where ``prlimit`` is missing (macOS). preexec_fn is not safe
    when the parent has other threads running, so worker pools on those
    platforms rely on the wall-clock timeout as the hard bound.
    """
    if not limits:
        return None

    def _apply_limits() -> None:
        for which, value in limits:
            resource.setrlimit(which, value)

    return _apply_limits
