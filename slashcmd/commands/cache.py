"""Time-bounded cache over repository discovery."""
import logging
import time
from typing import Callable

from slashcmd.exceptions import SlashCmdError
from slashcmd.utils.locks import AsyncRWLock

from .discovery import CommandRepository
from .models import CommandDefinition

logger = logging.getLogger(__name__)

DEFAULT_TTL = 30.0


class CommandCache:
    """Memoizes CommandRepository.discover() for ``ttl`` seconds.

    Lookups share a read lock; swapping in fresh definitions takes the write
    lock. Discovery itself runs outside the lock.
    """

    def __init__(
        self,
        repository: CommandRepository,
        ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.repository = repository
        self.ttl = ttl
        self._clock = clock
        self._definitions: dict[str, CommandDefinition] = {}
        self._last_refresh: float | None = None
        self._loaded = False
        self._lock = AsyncRWLock()

    @property
    def last_refresh(self) -> float | None:
        return self._last_refresh

    def needs_refresh(self) -> bool:
        """True before the first load and once the ttl has elapsed."""
        if self._last_refresh is None:
            return True
        return self._clock() - self._last_refresh >= self.ttl

    async def refresh(self) -> dict[str, CommandDefinition]:
        """Rediscover and replace the cached definitions."""
        definitions = await self.repository.discover()
        async with self._lock.write():
            self._definitions = definitions
            self._last_refresh = self._clock()
            self._loaded = True
        return dict(definitions)

    async def get(self, name: str) -> CommandDefinition | None:
        """Look up a command, refreshing first if stale.

        A failed refresh falls back to the previous definitions when there
        are any.
        """
        if self.needs_refresh():
            try:
                await self.refresh()
            except SlashCmdError as e:
                if not self._loaded:
                    raise
                logger.warning(f"Command refresh failed, using cached commands: {e}")

        async with self._lock.read():
            return self._definitions.get(name)

    async def all(self) -> dict[str, CommandDefinition]:
        if self.needs_refresh():
            await self.refresh()
        async with self._lock.read():
            return dict(self._definitions)

    async def names(self) -> list[str]:
        return sorted(await self.all())

    async def add(self, definition: CommandDefinition) -> None:
        """Insert or replace a definition until the next refresh."""
        async with self._lock.write():
            self._definitions[definition.name] = definition

    async def remove(self, name: str) -> CommandDefinition | None:
        async with self._lock.write():
            return self._definitions.pop(name, None)

    def invalidate(self) -> None:
        """Force a refresh on the next access."""
        self._last_refresh = None
