"""
Suite Module

Orchestration of documentation example suites.

This module provides:
- YAML-based engine settings and per-repository doc testing config
- Document sources backed by the filesystem
- Bounded concurrent execution with deterministic result ordering
- Markdown check-run summaries
- CLI for running suites, coverage and history
"""

__version__ = "0.1.0"
