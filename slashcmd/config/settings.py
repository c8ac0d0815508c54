"""Configuration settings."""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from slashcmd.exceptions import ConfigError

logger = logging.getLogger(__name__)


@dataclass
class CommandsConfig:
    """Custom command discovery and expansion settings."""

    enabled: bool = False  # host feature flag
    project_dir: str = ".slashcmd/commands"  # relative to cwd
    global_dir: str = "~/.slashcmd/commands"
    shell_timeout: float = 30.0
    max_file_size: int = 1024 * 1024
    cache_ttl: float = 30.0


@dataclass
class SecurityConfig:
    """Security policy storage settings."""

    policy_path: str = "~/.slashcmd/security.yaml"


@dataclass
class Config:
    """Main configuration."""

    commands: CommandsConfig = field(default_factory=CommandsConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    log_level: str = "INFO"

    def project_commands_dir(self, cwd: Path | None = None) -> Path:
        """Project-scoped command directory under the working directory."""
        return (cwd or Path.cwd()) / self.commands.project_dir

    def global_commands_dir(self, home: Path | None = None) -> Path:
        """User-global command directory."""
        return _under_home(self.commands.global_dir, home)

    def policy_file(self, home: Path | None = None) -> Path:
        """Location of the persisted security policy."""
        return _under_home(self.security.policy_path, home)


def _under_home(raw: str, home: Path | None) -> Path:
    if raw.startswith("~"):
        base = home or Path.home()
        return base / raw.lstrip("~").lstrip("/\\")
    return Path(raw)


def load_config(path: Path | str | None = None) -> Config:
    """Load configuration from YAML file."""
    if path is None:
        path = Path.home() / ".slashcmd" / "config.yaml"
    else:
        path = Path(path)

    if not path.exists():
        logger.debug(f"No config file at {path}, using defaults")
        return Config()

    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level")

    return _parse_config(data)


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' section must be a mapping")
    return section


def _parse_config(data: dict[str, Any]) -> Config:
    """Parse config dictionary into Config object."""
    config = Config(log_level=str(data.get("log_level", "INFO")).upper())

    if "commands" in data:
        commands = _section(data, "commands")
        try:
            config.commands = CommandsConfig(
                enabled=bool(commands.get("enabled", False)),
                project_dir=str(commands.get("project_dir", ".slashcmd/commands")),
                global_dir=str(commands.get("global_dir", "~/.slashcmd/commands")),
                shell_timeout=float(commands.get("shell_timeout", 30.0)),
                max_file_size=int(commands.get("max_file_size", 1024 * 1024)),
                cache_ttl=float(commands.get("cache_ttl", 30.0)),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid 'commands' settings: {e}") from e

    if "security" in data:
        security = _section(data, "security")
        config.security = SecurityConfig(
            policy_path=str(security.get("policy_path", "~/.slashcmd/security.yaml")),
        )

    return config
