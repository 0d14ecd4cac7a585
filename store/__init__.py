"""
Store Module

Run history persistence for documentation test suites.

This module provides:
- SQLite-backed, append-only storage of suite runs
- Serialized per-example results for each run
- "Most recent N runs" queries per repository
"""

__version__ = "0.1.0"
