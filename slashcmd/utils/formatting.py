"""Plain-text formatting utilities."""


def truncate_text(text: str, max_len: int = 4096, suffix: str = "...") -> str:
    """Truncate text with suffix if too long."""
    if len(text) <= max_len:
        return text
    return text[: max_len - len(suffix)] + suffix


def fence(text: str, info: str = "") -> str:
    """Wrap text in a markdown code fence."""
    return f"```{info}\n{text}\n```"


def indent_lines(items: list[str], prefix: str = "  - ") -> list[str]:
    """Render items as an indented bullet list."""
    return [f"{prefix}{item}" for item in items]
