"""Security policy and its on-disk store."""
import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from slashcmd.exceptions import ConfigError

logger = logging.getLogger(__name__)


class SecurityLevel(Enum):
    """How security findings affect expansion."""

    OFF = "off"  # findings computed but ignored
    WARN = "warn"  # findings logged, never block
    ENFORCE = "enforce"  # findings block expansion


@dataclass
class SecurityPolicy:
    """Active severity level plus user-approved pattern exemptions."""

    level: SecurityLevel = SecurityLevel.ENFORCE
    exempted_patterns: set[str] = field(default_factory=set)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the policy file."""
        return {
            "level": self.level.value,
            "exempted_patterns": sorted(self.exempted_patterns),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SecurityPolicy":
        """Build a policy from parsed file content.

        Raises:
            ValueError: If the level is unknown or patterns are not strings.
        """
        raw_level = data.get("level", SecurityLevel.ENFORCE.value)
        # Unquoted on/off load as booleans
        if isinstance(raw_level, bool):
            raw_level = SecurityLevel.ENFORCE.value if raw_level else SecurityLevel.OFF.value
        level = SecurityLevel(str(raw_level).lower())
        patterns = data.get("exempted_patterns") or []
        if not isinstance(patterns, list) or not all(isinstance(p, str) for p in patterns):
            raise ValueError("exempted_patterns must be a list of strings")
        return cls(level=level, exempted_patterns=set(patterns))


class PolicyStore:
    """Persists the security policy as YAML under the user's config root.

    Every mutation loads the file, applies the change and saves it again.
    Only a missing file falls back to defaults; a present but unreadable
    file is a ConfigError so user intent is never silently dropped.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._policy = SecurityPolicy()

    @property
    def policy(self) -> SecurityPolicy:
        """Policy as of the last load or save."""
        return self._policy

    async def load(self) -> SecurityPolicy:
        """Load the stored policy, creating the file with defaults if absent."""
        if not self.path.exists():
            logger.info(f"No security policy at {self.path}, writing defaults")
            policy = SecurityPolicy()
            await self.save(policy)
            return policy

        try:
            content = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Failed to read {self.path}: {e}") from e

        try:
            data = yaml.safe_load(content) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"{self.path} must contain a mapping")

        try:
            self._policy = SecurityPolicy.from_dict(data)
        except ValueError as e:
            raise ConfigError(f"Invalid security policy in {self.path}: {e}") from e

        return self._policy

    async def save(self, policy: SecurityPolicy) -> None:
        """Write the policy to disk."""
        content = yaml.safe_dump(policy.to_dict(), sort_keys=False)
        try:
            await asyncio.to_thread(self.path.parent.mkdir, parents=True, exist_ok=True)
            await asyncio.to_thread(self.path.write_text, content, encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Failed to write {self.path}: {e}") from e
        self._policy = policy

    async def set_level(self, level: SecurityLevel) -> SecurityPolicy:
        """Change the severity level and persist it."""
        policy = await self.load()
        policy.level = level
        await self.save(policy)
        logger.info(f"Security validation level set to {level.value}")
        return policy

    async def enable(self) -> SecurityPolicy:
        return await self.set_level(SecurityLevel.ENFORCE)

    async def disable(self) -> SecurityPolicy:
        return await self.set_level(SecurityLevel.OFF)

    async def warn(self) -> SecurityPolicy:
        return await self.set_level(SecurityLevel.WARN)

    async def add_exemption(self, pattern: str) -> SecurityPolicy:
        """Exempt a pattern from future findings."""
        pattern = pattern.strip()
        if not pattern:
            raise ConfigError("Exemption pattern cannot be empty")
        policy = await self.load()
        if pattern not in policy.exempted_patterns:
            policy.exempted_patterns.add(pattern)
            await self.save(policy)
            logger.info(f"Added security exemption: {pattern}")
        return policy

    async def remove_exemption(self, pattern: str) -> SecurityPolicy:
        """Drop a previously added exemption."""
        policy = await self.load()
        policy.exempted_patterns.discard(pattern.strip())
        await self.save(policy)
        logger.info(f"Removed security exemption: {pattern}")
        return policy

    def status_text(self) -> str:
        """Human-readable summary of the current policy."""
        labels = {
            SecurityLevel.ENFORCE: "Enabled (Error)",
            SecurityLevel.WARN: "Warning Only",
            SecurityLevel.OFF: "Disabled",
        }
        status = f"🔒 Security Validation: {labels[self._policy.level]}"
        if self._policy.exempted_patterns:
            patterns = ", ".join(sorted(self._policy.exempted_patterns))
            status += f"\n📝 Exempted Patterns: {patterns}"
        return status
