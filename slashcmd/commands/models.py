"""Data models for custom commands."""
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from slashcmd.utils.formatting import fence, indent_lines

# Metadata keys and the attribute each one fills
KNOWN_METADATA_KEYS = {
    "allowed-tools": "allowed_tools",
    "allowed_tools": "allowed_tools",
    "allowed_invocations": "allowed_tools",
    "argument-hint": "argument_hint",
    "argument_hint": "argument_hint",
    "description": "description",
    "model": "model",
    "phase": "phase",
    "dependencies": "dependencies",
    "output-format": "output_format",
    "output_format": "output_format",
}


class CommandScope(Enum):
    """Where a command was discovered."""

    PROJECT = "project"
    GLOBAL = "global"

    @property
    def indicator(self) -> str:
        """Short label used in command listings."""
        return "(project)" if self is CommandScope.PROJECT else "(user)"

    @property
    def priority(self) -> int:
        """Lower wins when two scopes define the same name."""
        return 0 if self is CommandScope.PROJECT else 1


def _string_list(value: Any, key: str) -> tuple[str, ...]:
    """Accept a YAML list or a comma-separated string."""
    if isinstance(value, str):
        return tuple(part.strip() for part in _split_commas(value) if part.strip())
    if isinstance(value, list):
        return tuple(str(item).strip() for item in value if str(item).strip())
    raise ValueError(f"'{key}' must be a list or a comma-separated string")


def _split_commas(value: str) -> list[str]:
    """Split on commas that are not inside parentheses."""
    parts, depth, current = [], 0, []
    for char in value:
        if char == "(":
            depth += 1
        elif char == ")":
            depth = max(depth - 1, 0)
        if char == "," and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    parts.append("".join(current))
    return parts


@dataclass(frozen=True)
class CommandMetadata:
    """Structured fields from a command's leading metadata block."""

    allowed_tools: tuple[str, ...] | None = None
    argument_hint: str | None = None
    description: str | None = None
    model: str | None = None
    phase: str | None = None
    dependencies: tuple[str, ...] | None = None
    output_format: str | None = None
    extra: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CommandMetadata":
        """Build metadata from a parsed YAML mapping.

        Unrecognized keys land in ``extra`` with their values stringified.

        Raises:
            ValueError: If a list-valued field has the wrong type.
        """
        fields: dict[str, Any] = {}
        extra: dict[str, str] = {}

        for key, value in data.items():
            key = str(key)
            attr = KNOWN_METADATA_KEYS.get(key)
            if attr is None:
                extra[key] = "" if value is None else str(value)
                continue
            if value is None:
                continue
            if attr in ("allowed_tools", "dependencies"):
                fields[attr] = _string_list(value, key)
            else:
                fields[attr] = str(value)

        return cls(extra=extra, **fields)


def infer_namespace(name: str) -> str | None:
    """Namespace tag from the name prefix before the first hyphen."""
    prefix, sep, _ = name.partition("-")
    if not sep or not prefix:
        return None
    return prefix


@dataclass(frozen=True)
class CommandDefinition:
    """A discovered command template."""

    name: str
    body: str
    scope: CommandScope
    source_path: Path
    metadata: CommandMetadata | None = None
    namespace: str | None = None

    @property
    def description(self) -> str | None:
        return self.metadata.description if self.metadata else None

    @property
    def argument_hint(self) -> str | None:
        return self.metadata.argument_hint if self.metadata else None

    @property
    def allowed_tools(self) -> tuple[str, ...]:
        if self.metadata and self.metadata.allowed_tools:
            return self.metadata.allowed_tools
        return ()

    @property
    def display_namespace(self) -> str | None:
        """Directory namespace, or the name prefix for flat files."""
        return self.namespace or infer_namespace(self.name)


@dataclass(frozen=True)
class CommandSummary:
    """Display-oriented view of a command."""

    name: str
    scope: CommandScope
    description: str | None = None
    argument_hint: str | None = None
    namespace: str | None = None

    @classmethod
    def from_definition(cls, definition: CommandDefinition) -> "CommandSummary":
        return cls(
            name=definition.name,
            scope=definition.scope,
            description=definition.description,
            argument_hint=definition.argument_hint,
            namespace=definition.display_namespace,
        )

    def usage_line(self) -> str:
        """One listing line: ``/name hint (scope) - description``."""
        hint = f" {self.argument_hint}" if self.argument_hint else ""
        description = f" - {self.description}" if self.description else ""
        return f"  /{self.name}{hint} {self.scope.indicator}{description}"


@dataclass
class PreviewReport:
    """What an expansion would do, computed without side effects."""

    command_name: str
    args: list[str]
    processed_content: str
    shell_snippets: list[str] = field(default_factory=list)
    file_references: list[str] = field(default_factory=list)
    security_findings: list[str] = field(default_factory=list)
    denied_snippets: list[str] = field(default_factory=list)
    estimated_seconds: float = 0.0
    description: str | None = None
    argument_hint: str | None = None

    def to_display_string(self) -> str:
        lines = [f"🔍 Preview of /{self.command_name} {' '.join(self.args)}".rstrip()]
        if self.description:
            lines.append(f"📝 Description: {self.description}")
        if self.argument_hint:
            lines.append(f"💡 Usage: /{self.command_name} {self.argument_hint}")
        lines.append(f"⏱️  Estimated time: {self.estimated_seconds * 1000:.0f}ms")

        if self.shell_snippets:
            lines.append("🔧 Shell commands to execute:")
            lines.extend(indent_lines(self.shell_snippets))
        if self.denied_snippets:
            lines.append("🚫 Shell commands not permitted by allowed-tools:")
            lines.extend(indent_lines(self.denied_snippets))
        if self.file_references:
            lines.append("📁 Files to reference:")
            lines.extend(indent_lines(self.file_references))
        if self.security_findings:
            lines.append("⚠️  Security warnings:")
            lines.extend(indent_lines(self.security_findings))

        lines.append("")
        lines.append("📄 Processed content:")
        lines.append(fence(self.processed_content))
        return "\n".join(lines)
