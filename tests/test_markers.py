"""Test template marker extraction and formatting helpers."""
from slashcmd.utils.formatting import fence, indent_lines, truncate_text
from slashcmd.utils.markers import (
    extract_file_references,
    extract_shell_snippets,
    is_unsafe_reference,
)


def test_extract_shell_snippets():
    """Shell snippets are found in order."""
    text = "Branch: !`git branch --show-current`\nLog: !`git log -1`\nPlain `code`"

    assert extract_shell_snippets(text) == ["git branch --show-current", "git log -1"]


def test_extract_file_references_positions():
    """References count after line start, whitespace or opening punctuation."""
    text = "@README.md\nsee @docs/a.md, (@b.txt) [@c/d.py] >@e.md"

    assert extract_file_references(text) == ["README.md", "docs/a.md", "b.txt", "c/d.py", "e.md"]


def test_extract_file_references_skips_emails():
    """E-mail addresses are not references."""
    assert extract_file_references("mail dev@example.com now") == []


def test_extract_file_references_trailing_period():
    """Sentence punctuation is not part of the path."""
    assert extract_file_references("Read @notes.md.") == ["notes.md"]


def test_is_unsafe_reference():
    """Absolute paths and parent segments are unsafe."""
    assert is_unsafe_reference("/etc/passwd") is True
    assert is_unsafe_reference("../x") is True
    assert is_unsafe_reference("a/../../x") is True
    assert is_unsafe_reference("a..b/file") is False
    assert is_unsafe_reference("docs/a.md") is False


def test_truncate_text():
    """Long text is cut with a suffix."""
    assert truncate_text("short", 10) == "short"
    assert truncate_text("a" * 20, 10) == "a" * 7 + "..."


def test_fence_and_indent():
    """Fence wraps text; indent_lines bullets items."""
    assert fence("x") == "```\nx\n```"
    assert fence("x", "bash") == "```bash\nx\n```"
    assert indent_lines(["a", "b"]) == ["  - a", "  - b"]
