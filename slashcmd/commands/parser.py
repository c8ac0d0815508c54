"""Parse command documents into metadata and body."""
import asyncio
import logging
import re
from dataclasses import dataclass
from pathlib import Path

import yaml

from slashcmd.exceptions import FileReadError, MetadataParseError

from .models import CommandMetadata

logger = logging.getLogger(__name__)

MARKDOWN_EXTENSIONS = (".md", ".markdown")

# Block must open the trimmed document; the body may itself contain "---"
FRONTMATTER_PATTERN = re.compile(r"\A---[ \t]*\n(.*?)\n?^---[ \t]*(?:\n(.*))?\Z", re.DOTALL | re.MULTILINE)


@dataclass(frozen=True)
class ParsedTemplate:
    """Result of parsing one command document."""

    body: str
    metadata: CommandMetadata | None = None


def is_markdown_file(path: Path) -> bool:
    """Check for a markdown extension, case-insensitively."""
    return path.suffix.lower() in MARKDOWN_EXTENSIONS


def parse(raw: str, source_path: Path | str = "<string>") -> ParsedTemplate:
    """Split a document into optional metadata and a trimmed body.

    CRLF line endings are normalized to LF first.

    Args:
        raw: Full document text.
        source_path: Used only to name the file in errors.

    Returns:
        ParsedTemplate; metadata is None when there is no block or it is empty.

    Raises:
        MetadataParseError: If the block is not a YAML mapping.
    """
    text = raw.replace("\r\n", "\n").strip()
    match = FRONTMATTER_PATTERN.match(text)
    if not match:
        return ParsedTemplate(body=text)

    block = match.group(1)
    body = (match.group(2) or "").strip()

    if not block.strip():
        return ParsedTemplate(body=body)

    try:
        data = yaml.safe_load(block)
    except yaml.YAMLError as e:
        raise MetadataParseError(source_path, str(e)) from e

    if data is None:
        return ParsedTemplate(body=body)
    if not isinstance(data, dict):
        raise MetadataParseError(source_path, "metadata block must be a mapping")

    try:
        metadata = CommandMetadata.from_dict(data)
    except ValueError as e:
        raise MetadataParseError(source_path, str(e)) from e

    return ParsedTemplate(body=body, metadata=metadata)


async def parse_file(path: Path) -> ParsedTemplate:
    """Read and parse a command file.

    Raises:
        FileReadError: If the file cannot be read as UTF-8 text.
        MetadataParseError: If the metadata block is invalid.
    """
    try:
        raw = await asyncio.to_thread(path.read_text, encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise FileReadError(path, str(e)) from e

    logger.debug(f"Parsing command file {path}")
    return parse(raw, path)
