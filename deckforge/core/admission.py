"""Single-flight admission: at most one running generation per user."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Protocol

from deckforge.core.errors import SlotBusy
from deckforge.core.logging import get_logger

logger = get_logger(__name__)


class SlotStore(Protocol):
    async def add_if_absent(self, user_id: int) -> bool: ...

    async def discard(self, user_id: int) -> None: ...

    async def is_busy(self, user_id: int) -> bool: ...


class InMemorySlotStore:
    """Busy set for a single-process deployment.

    Check and insert run under one lock with no await between them.
    """

    def __init__(self) -> None:
        self._busy: set[int] = set()
        self._lock = asyncio.Lock()

    async def add_if_absent(self, user_id: int) -> bool:
        async with self._lock:
            if user_id in self._busy:
                return False
            self._busy.add(user_id)
            return True

    async def discard(self, user_id: int) -> None:
        async with self._lock:
            self._busy.discard(user_id)

    async def is_busy(self, user_id: int) -> bool:
        return user_id in self._busy


class AdmissionGate:
    def __init__(self, store: SlotStore | None = None) -> None:
        self.store = store or InMemorySlotStore()

    async def acquire(self, user_id: int) -> bool:
        acquired = await self.store.add_if_absent(user_id)
        if not acquired:
            logger.info("Generation already in progress", extra={"user_id": user_id})
        return acquired

    async def release(self, user_id: int) -> None:
        await self.store.discard(user_id)

    async def is_busy(self, user_id: int) -> bool:
        return await self.store.is_busy(user_id)

    @asynccontextmanager
    async def slot(self, user_id: int) -> AsyncIterator[None]:
        """Hold the user's slot for the block; raise ``SlotBusy`` if taken."""
        if not await self.acquire(user_id):
            raise SlotBusy()
        try:
            yield
        finally:
            await self.release(user_id)
