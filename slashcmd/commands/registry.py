"""Command registry exposed to the host chat CLI."""
import asyncio
import logging
import shlex
from pathlib import Path

from slashcmd.config.settings import Config
from slashcmd.exceptions import (
    ArgumentError,
    CommandNotFoundError,
    DirectoryError,
    FeatureDisabledError,
)
from slashcmd.security.policy import PolicyStore, SecurityLevel, SecurityPolicy
from slashcmd.utils.formatting import truncate_text
from slashcmd.utils.locks import AsyncRWLock

from .cache import CommandCache
from .discovery import CommandRepository
from .expansion import ExpansionEngine
from .models import CommandDefinition, CommandSummary, PreviewReport

logger = logging.getLogger(__name__)

SAMPLE_COMMAND_FILE = "sample-command.md"

SAMPLE_COMMAND = """---
description: "Sample custom command"
argument-hint: "[your-message]"
---

# Sample Command

This is a sample custom command. You can edit this file or create new .md files in the .slashcmd/commands/ directory.

## Your input
$ARGUMENTS

## Example usage
/sample-command "Hello, World!"
"""

HELP_PREVIEW_CHARS = 200


def parse_invocation(line: str) -> tuple[str, list[str]]:
    """Split ``/name arg 'two words'`` into a name and shell-style arguments.

    Raises:
        ArgumentError: If the line has no command name or unbalanced quotes.
    """
    line = line.strip()
    name, _, rest = line.lstrip("/").partition(" ")
    name = name.strip()
    if not name:
        raise ArgumentError(line or "/", "missing command name")
    try:
        args = shlex.split(rest)
    except ValueError as e:
        raise ArgumentError(name, str(e)) from e
    return name, args


class CommandRegistry:
    """Resolves, expands and describes custom commands for the host."""

    # Host commands that custom commands cannot replace
    BUILTIN_COMMANDS = [
        ("clear", "Clear the conversation"),
        ("compact", "Summarize the conversation"),
        ("context", "Manage context files"),
        ("commands", "Manage custom commands"),
        ("editor", "Compose a prompt in $EDITOR"),
        ("help", "Show help"),
        ("issue", "Report an issue"),
        ("model", "Select a model"),
        ("prompts", "Manage saved prompts"),
        ("quit", "Exit the session"),
        ("tools", "Manage tool permissions"),
        ("usage", "Show context usage"),
    ]

    def __init__(
        self,
        config: Config | None = None,
        cwd: Path | None = None,
        home: Path | None = None,
        repository: CommandRepository | None = None,
        policy_store: PolicyStore | None = None,
        engine: ExpansionEngine | None = None,
    ):
        self.config = config or Config()
        self.cwd = Path(cwd) if cwd else None
        self.home = Path(home) if home else None
        self.repository = repository or CommandRepository.from_config(
            self.config, self.cwd, self.home
        )
        self.cache = CommandCache(self.repository, ttl=self.config.commands.cache_ttl)
        self.policy_store = policy_store or PolicyStore(self.config.policy_file(self.home))
        self.engine = engine or ExpansionEngine(self.config.commands, self.cwd)
        self._policy_lock = AsyncRWLock()

    @property
    def enabled(self) -> bool:
        return self.config.commands.enabled

    @property
    def builtin_names(self) -> set[str]:
        """Get set of built-in command names."""
        return {name for name, _ in self.BUILTIN_COMMANDS}

    def _require_enabled(self) -> None:
        if not self.enabled:
            raise FeatureDisabledError()

    async def is_known(self, name: str) -> bool:
        """Whether ``name`` resolves to a custom command."""
        if not self.enabled:
            return False
        try:
            return await self.cache.get(name) is not None
        except DirectoryError as e:
            logger.warning(f"Could not check custom command '{name}': {e}")
            return False

    async def get(self, name: str) -> CommandDefinition:
        """Resolve a command, rereading its file if the cache misses.

        Raises:
            CommandNotFoundError: If no root has a file for ``name``.
            ParseError: If the file exists but cannot be loaded.
        """
        self._require_enabled()
        definition = await self.cache.get(name)
        if definition is None:
            definition = await self.repository.reload_one(name)
            if definition is None:
                raise CommandNotFoundError(name)
            await self.cache.add(definition)
        return definition

    async def expand(self, name: str, args: list[str]) -> str:
        """Expand a command under the stored security policy."""
        definition = await self.get(name)
        policy = await self.get_policy()
        logger.info(f"Executing custom command '{name}'")
        return await self.engine.expand(definition, args, policy)

    async def expand_invocation(self, line: str) -> str:
        """Expand a raw ``/name args...`` line."""
        name, args = parse_invocation(line)
        return await self.expand(name, args)

    async def list_commands(self) -> list[CommandSummary]:
        """Summaries of every discovered command, sorted by name."""
        self._require_enabled()
        definitions = await self.cache.all()
        return [
            CommandSummary.from_definition(definitions[name]) for name in sorted(definitions)
        ]

    async def preview(self, name: str, args: list[str]) -> PreviewReport:
        """Report what expand() would do without side effects."""
        definition = await self.get(name)
        policy = await self.get_policy()
        return self.engine.preview(definition, args, policy)

    async def help_text(self, name: str | None = None) -> str:
        """Detailed help for one command, or the grouped command list."""
        if name is None:
            return self._format_list(await self.list_commands())

        definition = await self.get(name)
        known = await self.cache.names()
        return self._format_help(definition, set(known))

    def _format_help(self, definition: CommandDefinition, known: set[str]) -> str:
        lines = [f"📝 Custom Command: {definition.name}"]
        metadata = definition.metadata

        if metadata:
            if metadata.description:
                lines.append(f"📋 Description: {metadata.description}")
            if metadata.argument_hint:
                lines.append(f"💡 Usage: /{definition.name} {metadata.argument_hint}")
            if metadata.phase:
                lines.append(f"🔄 Phase: {metadata.phase}")
            if metadata.dependencies:
                rendered = [
                    dep if dep in known else f"{dep} (missing)" for dep in metadata.dependencies
                ]
                lines.append(f"🔗 Dependencies: {', '.join(rendered)}")

        lines.append(f"📁 Source: {definition.source_path}")
        lines.append(f"🌐 Scope: {definition.scope.value}")
        if definition.namespace:
            lines.append(f"🏷️  Namespace: {definition.namespace}")

        lines.append("")
        lines.append("📄 Content preview:")
        lines.append(truncate_text(definition.body, HELP_PREVIEW_CHARS + 3))
        return "\n".join(lines)

    def _format_list(self, summaries: list[CommandSummary]) -> str:
        if not summaries:
            return (
                "No custom commands available. Create .md files in "
                f"{self.config.commands.project_dir}/ to add custom commands."
            )

        grouped: dict[str, list[CommandSummary]] = {}
        for summary in summaries:
            grouped.setdefault(summary.namespace or "General", []).append(summary)

        lines = ["🎯 Available Custom Commands:", ""]
        for namespace in sorted(grouped):
            lines.append(f"## {namespace} Commands")
            lines.append("")
            lines.extend(summary.usage_line() for summary in grouped[namespace])
            lines.append("")

        lines.append("💡 Use '/help <command>' for detailed help on a specific command.")
        return "\n".join(lines)

    async def check_conflicts(self, summaries: list[CommandSummary] | None = None) -> list[str]:
        """Names of custom commands that collide with host built-ins."""
        if summaries is None:
            summaries = await self.list_commands()
        return [s.name for s in summaries if s.name in self.builtin_names]

    async def refresh(self) -> int:
        """Rescan command directories.

        Returns:
            Number of custom commands loaded.
        """
        self._require_enabled()
        definitions = await self.cache.refresh()
        for name in sorted(definitions):
            if name in self.builtin_names:
                logger.warning(f"Custom command '{name}' conflicts with built-in, host will ignore it")
        logger.info(f"Loaded {len(definitions)} custom command(s)")
        return len(definitions)

    async def get_policy(self) -> SecurityPolicy:
        self._require_enabled()
        async with self._policy_lock.read():
            return await self.policy_store.load()

    async def set_security_level(self, level: SecurityLevel) -> SecurityPolicy:
        self._require_enabled()
        async with self._policy_lock.write():
            return await self.policy_store.set_level(level)

    async def enable_security(self) -> SecurityPolicy:
        return await self.set_security_level(SecurityLevel.ENFORCE)

    async def disable_security(self) -> SecurityPolicy:
        return await self.set_security_level(SecurityLevel.OFF)

    async def warn_security(self) -> SecurityPolicy:
        return await self.set_security_level(SecurityLevel.WARN)

    async def add_exemption(self, pattern: str) -> SecurityPolicy:
        self._require_enabled()
        async with self._policy_lock.write():
            return await self.policy_store.add_exemption(pattern)

    async def remove_exemption(self, pattern: str) -> SecurityPolicy:
        self._require_enabled()
        async with self._policy_lock.write():
            return await self.policy_store.remove_exemption(pattern)

    async def security_status(self) -> str:
        await self.get_policy()
        return self.policy_store.status_text()

    async def init_project(self) -> str:
        """Create the project command directory with one sample command."""
        self._require_enabled()
        commands_dir = self.config.project_commands_dir(self.cwd)

        if commands_dir.exists():
            return f"📁 Custom commands directory already exists: {commands_dir}"

        sample = commands_dir / SAMPLE_COMMAND_FILE
        try:
            await asyncio.to_thread(commands_dir.mkdir, parents=True, exist_ok=True)
            await asyncio.to_thread(sample.write_text, SAMPLE_COMMAND, encoding="utf-8")
        except OSError as e:
            raise DirectoryError(commands_dir, str(e)) from e

        self.cache.invalidate()
        logger.info(f"Initialized custom commands directory {commands_dir}")
        return (
            f"✅ Custom commands directory initialized: {commands_dir}\n\n"
            f"📝 Sample command created: {SAMPLE_COMMAND_FILE}\n\n"
            "💡 Create more .md files in this directory to add custom commands."
        )
