"""Template marker extraction.

Command bodies may contain two kinds of inline markers:

- ``!`command``` runs ``command`` through the shell and inlines its output
- ``@path/to/file`` inlines the content of a file relative to the working dir

File references only count when the ``@`` sits at the start of a line, after
whitespace, or after opening punctuation, so e-mail addresses such as
``user@example.com`` are left alone.
"""
import re

SHELL_SNIPPET_PATTERN = re.compile(r"!`([^`]+)`")

FILE_REFERENCE_PATTERN = re.compile(
    r"(?:^|(?<=[\s>(\[]))@([A-Za-z0-9._/-]*[A-Za-z0-9_/-])",
    re.MULTILINE,
)


def extract_shell_snippets(text: str) -> list[str]:
    """Return the commands of every ``!`...``` marker in document order."""
    return [match.group(1) for match in SHELL_SNIPPET_PATTERN.finditer(text)]


def extract_file_references(text: str) -> list[str]:
    """Return every ``@path`` reference in document order."""
    return [match.group(1) for match in FILE_REFERENCE_PATTERN.finditer(text)]


def is_unsafe_reference(reference: str) -> bool:
    """Absolute paths and parent-directory segments escape the working dir."""
    if reference.startswith("/"):
        return True
    return ".." in reference.split("/")
