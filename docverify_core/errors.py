"""Exception types raised across the verification engine."""

from __future__ import annotations


class DocVerifyError(Exception):
    """Base class for engine errors."""


class DocTestConfigError(DocVerifyError, ValueError):
    """Doc testing is disabled or its configuration is invalid."""


class SandboxSetupError(DocVerifyError):
    """The sandbox directory or source files could not be prepared."""
