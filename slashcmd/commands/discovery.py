"""Discover and load custom command files."""
import asyncio
import logging
import os
from pathlib import Path

from slashcmd.config.settings import Config
from slashcmd.exceptions import DirectoryError, InvalidCommandError, SlashCmdError
from slashcmd.security.validator import grants_shell, validate_content

from .models import CommandDefinition, CommandScope
from .parser import is_markdown_file, parse_file

logger = logging.getLogger(__name__)

CommandRoot = tuple[Path, CommandScope]


def default_roots(
    config: Config, cwd: Path | None = None, home: Path | None = None
) -> list[CommandRoot]:
    """Project directory first, then the user-global one."""
    return [
        (config.project_commands_dir(cwd), CommandScope.PROJECT),
        (config.global_commands_dir(home), CommandScope.GLOBAL),
    ]


def extract_command_name(path: Path) -> str:
    """Command name is the file stem."""
    return path.stem


def extract_namespace(path: Path, root: Path) -> str | None:
    """Subdirectories between root and file, joined with underscores.

    ``root/frontend/react/component.md`` has namespace ``frontend_react``;
    files directly under root have none.
    """
    try:
        parts = path.parent.relative_to(root).parts
    except ValueError:
        return None
    return "_".join(parts) if parts else None


def validate_definition(definition: CommandDefinition) -> None:
    """Structural checks applied to every loaded command.

    Commands that grant shell access are also screened with the enforcing
    security policy, whatever the configured level.

    Raises:
        InvalidCommandError: If the name or body is unusable.
        SecurityError: If a shell-granting body contains flagged constructs.
    """
    name = definition.name
    if not name:
        raise InvalidCommandError(definition.source_path, "command name cannot be empty")
    if any(c.isspace() for c in name) or "/" in name:
        raise InvalidCommandError(
            definition.source_path, f"invalid command name '{name}'"
        )
    if not definition.body.strip():
        raise InvalidCommandError(definition.source_path, "command body cannot be empty")

    if grants_shell(definition.allowed_tools):
        validate_content(definition.body, name)


async def load_command_file(path: Path, root: Path, scope: CommandScope) -> CommandDefinition:
    """Parse, build and validate one command file."""
    template = await parse_file(path)
    definition = CommandDefinition(
        name=extract_command_name(path),
        body=template.body,
        scope=scope,
        source_path=path,
        metadata=template.metadata,
        namespace=extract_namespace(path, root),
    )
    validate_definition(definition)
    return definition


def _collect_files(root: Path) -> list[Path]:
    """Walk root without following symlinks and return markdown files."""
    if not root.exists():
        return []
    if not root.is_dir():
        raise DirectoryError(root, "not a directory")

    def on_error(error: OSError) -> None:
        if error.filename is not None and Path(error.filename) == root:
            raise DirectoryError(root, error.strerror or str(error))
        logger.warning(f"Skipping unreadable directory {error.filename}: {error}")

    files = []
    for dirpath, dirnames, filenames in os.walk(root, onerror=on_error, followlinks=False):
        dirnames.sort()
        for filename in sorted(filenames):
            path = Path(dirpath) / filename
            if path.is_symlink() or not path.is_file():
                continue
            if is_markdown_file(path):
                files.append(path)
    return files


async def load_directory(root: Path, scope: CommandScope) -> dict[str, CommandDefinition]:
    """Load every command under one root.

    Files that fail to parse or validate are logged and skipped. When two
    files share a name, the later one in walk order wins.

    Raises:
        DirectoryError: If the root itself cannot be read.
    """
    files = await asyncio.to_thread(_collect_files, root)
    commands: dict[str, CommandDefinition] = {}

    for path in files:
        try:
            definition = await load_command_file(path, root, scope)
        except SlashCmdError as e:
            logger.error(f"Failed to load command {path}: {e}")
            continue

        if definition.name in commands:
            logger.warning(
                f"Duplicate command '{definition.name}' in {root}: "
                f"{path} replaces {commands[definition.name].source_path}"
            )
        commands[definition.name] = definition

    logger.debug(f"Loaded {len(commands)} {scope.value} command(s) from {root}")
    return commands


def merge_definitions(
    loaded: list[dict[str, CommandDefinition]],
) -> dict[str, CommandDefinition]:
    """Merge per-root maps; project scope beats global scope."""
    merged: dict[str, CommandDefinition] = {}
    for commands in loaded:
        for name, definition in commands.items():
            current = merged.get(name)
            if current is None or definition.scope.priority < current.scope.priority:
                merged[name] = definition
    return merged


class CommandRepository:
    """Stateless discovery over a fixed list of command roots."""

    def __init__(self, roots: list[CommandRoot]):
        self.roots = [(Path(root), scope) for root, scope in roots]

    @classmethod
    def from_config(
        cls, config: Config, cwd: Path | None = None, home: Path | None = None
    ) -> "CommandRepository":
        return cls(default_roots(config, cwd, home))

    async def discover(self) -> dict[str, CommandDefinition]:
        """Walk all roots concurrently and merge the results.

        Raises:
            DirectoryError: If any root cannot be read; nothing is returned.
        """
        loaded = await asyncio.gather(
            *(load_directory(root, scope) for root, scope in self.roots)
        )
        merged = merge_definitions(list(loaded))
        logger.info(f"Discovered {len(merged)} custom command(s)")
        return merged

    async def get(self, name: str) -> CommandDefinition | None:
        return (await self.discover()).get(name)

    async def list_names(self) -> list[str]:
        return sorted(await self.discover())

    async def reload_one(self, name: str) -> CommandDefinition | None:
        """Re-resolve a single command by scope priority.

        Unlike discover(), errors loading the matching file propagate.
        """
        for root, scope in sorted(self.roots, key=lambda item: item[1].priority):
            files = await asyncio.to_thread(_collect_files, root)
            matches = [path for path in files if extract_command_name(path) == name]
            if matches:
                return await load_command_file(matches[-1], root, scope)
        return None
