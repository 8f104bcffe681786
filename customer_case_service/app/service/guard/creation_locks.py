import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

logger = logging.getLogger(__name__)


class CaseCreationLocks:
    """
    Serializes check-then-create per customer ID within one process.

    Used when the record store cannot evaluate the open case predicate itself.
    Locks are dropped again once no creation attempt holds or awaits them.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._holders: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, customer_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(customer_id, asyncio.Lock())
        self._holders[customer_id] = self._holders.get(customer_id, 0) + 1
        try:
            async with lock:
                logger.debug(f"Creation lock acquired for customer {customer_id}.")
                yield
        finally:
            self._holders[customer_id] -= 1
            if self._holders[customer_id] == 0:
                del self._holders[customer_id]
                del self._locks[customer_id]

    def __len__(self) -> int:
        return len(self._locks)
