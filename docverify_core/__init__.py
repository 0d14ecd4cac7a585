"""
DocVerify Core Module

Data model and parsing front-end for documentation example verification.

This module provides:
- Typed records for examples, execution results, suites and run history
- Language tag normalization and per-language execution recipes
- Fenced code block extraction from markdown documents
"""

__version__ = "0.1.0"

from .errors import DocTestConfigError, DocVerifyError, SandboxSetupError
from .extractor import extract_code_examples
from .languages import SupportedLanguage, normalize_language

__all__ = [
    "DocTestConfigError",
    "DocVerifyError",
    "SandboxSetupError",
    "SupportedLanguage",
    "extract_code_examples",
    "normalize_language",
]
