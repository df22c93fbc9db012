"""
Shared fixtures for unit tests.
"""

import bisect
import os
import tempfile

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine

from ruletable.clients.sql import SqlTableClient
from ruletable.config import BatchConfig
from ruletable.errors import StoreUnavailable
from ruletable.models.rule import KEY_ATTRIBUTE, WriteRequest
from ruletable.services.gateway import StoreGateway
from ruletable.services.synchronizer import PolicySynchronizer


class FakeTableClient:
    """
    In-memory TableClient that records calls.

    - page_size: records returned per scan page
    - unprocessed_plan: for each batch_write call in turn, how many of the
      trailing requests to report as unprocessed (and not apply)
    - fail_scan_on_page: 1-based page number that raises StoreUnavailable
    """

    def __init__(self, page_size: int = 10):
        self.table_name = "fake_policy"
        self.page_size = page_size
        self.items: dict[str, dict] = {}
        self.batch_calls: list[list[WriteRequest]] = []
        self.put_calls = 0
        self.delete_calls = 0
        self.unprocessed_plan: list[int] = []
        self.fail_scan_on_page = None
        self.scan_pages = 0
        self._page = 0
        self._raw_counter = 0

    def insert_raw(self, item: dict) -> None:
        """Store an arbitrary item, even one without an id."""
        key = item.get(KEY_ATTRIBUTE)
        if not isinstance(key, str):
            self._raw_counter += 1
            key = f"~raw-{self._raw_counter}"
        self.items[key] = dict(item)

    async def scan_page(self, start_key=None, limit=None):
        limit = limit or self.page_size
        self._page = 1 if not start_key else self._page + 1
        self.scan_pages += 1
        if self.fail_scan_on_page == self._page:
            raise StoreUnavailable("scan", message="simulated page failure")

        keys = sorted(self.items)
        start = bisect.bisect_right(keys, start_key[KEY_ATTRIBUTE]) if start_key else 0
        page_keys = keys[start:start + limit]
        next_key = {KEY_ATTRIBUTE: page_keys[-1]} if start + limit < len(keys) else None
        return [dict(self.items[k]) for k in page_keys], next_key

    async def put_item(self, item):
        self.put_calls += 1
        self.items[item[KEY_ATTRIBUTE]] = dict(item)

    async def delete_item(self, key):
        self.delete_calls += 1
        return self.items.pop(key, None) is not None

    async def batch_write(self, requests):
        assert len(requests) <= 25
        assert len({r.key for r in requests}) == len(requests)
        self.batch_calls.append(list(requests))

        count = self.unprocessed_plan.pop(0) if self.unprocessed_plan else 0
        count = min(count, len(requests))
        applied = requests[:len(requests) - count]
        unprocessed = requests[len(requests) - count:]

        for request in applied:
            if request.is_put:
                self.items[request.key] = dict(request.item)
            else:
                self.items.pop(request.key, None)
        return list(unprocessed)

    async def create_table(self):
        return False


@pytest.fixture
def fake_client():
    """In-memory table client."""
    return FakeTableClient()


@pytest.fixture
def batch_config():
    """Batch config without real backoff delays."""
    return BatchConfig(max_batch_size=25, max_attempts=3, base_delay=0.0, max_delay=0.0)


@pytest.fixture
def sleeps():
    """Records requested backoff delays instead of sleeping."""
    return []


@pytest.fixture
def gateway(fake_client, batch_config, sleeps):
    """StoreGateway over the in-memory client."""
    async def fake_sleep(delay):
        sleeps.append(delay)

    return StoreGateway(fake_client, batch_config, sleep=fake_sleep)


@pytest_asyncio.fixture
async def sql_client():
    """SQL table client on a temporary SQLite database."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = os.path.join(tmpdir, "test.db")
        engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", echo=False)
        client = SqlTableClient(engine, page_size=3)
        await client.create_table()

        yield client

        await engine.dispose()


@pytest_asyncio.fixture(params=["fake", "sql"])
async def synchronizer(request, batch_config):
    """PolicySynchronizer over each backend."""
    if request.param == "fake":
        yield PolicySynchronizer(StoreGateway(FakeTableClient(page_size=4), batch_config))
        return

    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = os.path.join(tmpdir, "test.db")
        engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", echo=False)
        client = SqlTableClient(engine, page_size=4)
        await client.create_table()

        yield PolicySynchronizer(StoreGateway(client, batch_config))

        await engine.dispose()
