"""Utilities module."""
from .formatting import fence, indent_lines, truncate_text
from .locks import AsyncRWLock
from .markers import (
    FILE_REFERENCE_PATTERN,
    SHELL_SNIPPET_PATTERN,
    extract_file_references,
    extract_shell_snippets,
    is_unsafe_reference,
)

__all__ = [
    # Formatting
    "fence",
    "indent_lines",
    "truncate_text",
    # Locks
    "AsyncRWLock",
    # Template markers
    "FILE_REFERENCE_PATTERN",
    "SHELL_SNIPPET_PATTERN",
    "extract_file_references",
    "extract_shell_snippets",
    "is_unsafe_reference",
]
