"""
Sandbox Module

Isolated execution of documentation code examples.

This module provides:
- A unique, self-removing working directory per example
- Subprocess execution with a minimal, explicit environment
- Wall-clock timeout enforcement with process-group kill
- Per-stream output ceilings with early termination
- CPU and memory limits (platform-dependent, best effort)

WARNING: This sandbox is NOT a security boundary on the level of a container
or VM. It keeps well-behaved documentation snippets contained and bounded; it
does not defend against deliberately hostile code.
"""

__version__ = "0.1.0"
