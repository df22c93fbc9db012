"""
Store gateway: paginated scans and size-bounded, retried batch writes.
"""

import asyncio
import logging
import random
from typing import Any, AsyncIterator, Awaitable, Callable, Iterable, Optional

from ruletable.clients.base import TableClient
from ruletable.config import BatchConfig
from ruletable.errors import PartialBatchFailure
from ruletable.models.rule import WriteRequest


logger = logging.getLogger(__name__)


def calculate_delay(attempt: int, config: BatchConfig) -> float:
    """Backoff before resubmitting after `attempt` submissions (exponential, 10% jitter)."""
    delay = min(config.base_delay * (2 ** (attempt - 1)), config.max_delay)
    jitter_amount = delay * 0.1
    delay += random.uniform(-jitter_amount, jitter_amount)
    return max(0.0, delay)


def dedupe(requests: Iterable[WriteRequest]) -> list[WriteRequest]:
    """Keep only the last request per key, in order of each key's first appearance."""
    latest: dict[str, WriteRequest] = {}
    for request in requests:
        latest[request.key] = request
    return list(latest.values())


def chunk(requests: list[WriteRequest], size: int) -> list[list[WriteRequest]]:
    """Split requests into consecutive chunks of at most `size` items."""
    return [requests[i:i + size] for i in range(0, len(requests), size)]


class StoreGateway:
    """
    Wraps a TableClient with the mechanics callers should not care about.

    - scan()/get_all() follow continuation tokens until the table is exhausted
    - batch_write() splits into chunks the store accepts and resubmits
      unprocessed items with exponential backoff
    """

    def __init__(
        self,
        client: TableClient,
        config: Optional[BatchConfig] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.client = client
        self.config = config or BatchConfig()
        self._sleep = sleep

    async def scan(self) -> AsyncIterator[dict[str, Any]]:
        """
        Iterate over every record in the table.

        Each call starts a fresh scan. A failing page raises out of the
        iteration; records already yielded must not be treated as complete.
        """
        start_key = None
        pages = 0
        while True:
            items, start_key = await self.client.scan_page(
                start_key, limit=self.config.scan_page_size
            )
            pages += 1
            for item in items:
                yield item
            if not start_key:
                break
        logger.debug(f"Scanned {self.client.table_name} in {pages} page(s)")

    async def get_all(self) -> list[dict[str, Any]]:
        """Fetch every record in the table."""
        return [item async for item in self.scan()]

    async def put(self, item: dict[str, str]) -> None:
        """Write a single record."""
        await self.client.put_item(item)

    async def delete(self, key: str) -> bool:
        """Delete a single record. Returns True if it existed."""
        return await self.client.delete_item(key)

    async def create_table(self) -> bool:
        """Create the backing table if it does not exist."""
        return await self.client.create_table()

    async def batch_write(self, requests: Iterable[WriteRequest]) -> int:
        """
        Apply puts and deletes in store-sized batches.

        Args:
            requests: Write requests in any order. Requests sharing a key are
                collapsed to the last one.

        Returns:
            Number of requests applied.

        Raises:
            PartialBatchFailure: A chunk still had unprocessed items after
                max_attempts submissions. Carries those items and every
                request of the chunks that were not submitted yet.
        """
        pending = dedupe(requests)
        if not pending:
            return 0

        chunks = chunk(pending, self.config.max_batch_size)
        for index, batch in enumerate(chunks):
            unprocessed = await self._submit_chunk(batch)
            if unprocessed:
                remaining = [r for later in chunks[index + 1:] for r in later]
                logger.error(
                    f"Batch write to {self.client.table_name} gave up with "
                    f"{len(unprocessed)} unprocessed item(s) in chunk {index + 1}/{len(chunks)}, "
                    f"{len(remaining)} item(s) not submitted"
                )
                raise PartialBatchFailure(unprocessed + remaining, self.config.max_attempts)

        logger.debug(f"Batch wrote {len(pending)} item(s) to {self.client.table_name} in {len(chunks)} chunk(s)")
        return len(pending)

    async def _submit_chunk(self, batch: list[WriteRequest]) -> list[WriteRequest]:
        """Submit a chunk, retrying unprocessed items. Returns what is still unprocessed."""
        attempt = 1
        unprocessed = await self.client.batch_write(batch)
        while unprocessed and attempt < self.config.max_attempts:
            delay = calculate_delay(attempt, self.config)
            logger.warning(
                f"{len(unprocessed)} of {len(batch)} item(s) unprocessed, "
                f"retrying in {delay:.2f}s (attempt {attempt + 1}/{self.config.max_attempts})"
            )
            await self._sleep(delay)
            attempt += 1
            unprocessed = await self.client.batch_write(unprocessed)
        return unprocessed
