"""
Pytest fixtures for end-to-end tests against a live DynamoDB endpoint.

Set RULETABLE_DYNAMODB_ENDPOINT (for example http://localhost:8000 for
DynamoDB Local) to run them; they are skipped otherwise.
"""

import os
import uuid

import aioboto3
import pytest
import pytest_asyncio

from ruletable.clients.factory import open_synchronizer
from ruletable.config import BatchConfig, Config, StoreConfig


ENDPOINT_ENV = "RULETABLE_DYNAMODB_ENDPOINT"


@pytest.fixture
def store_config():
    """StoreConfig for a fresh, uniquely named table."""
    endpoint = os.environ.get(ENDPOINT_ENV)
    if not endpoint:
        pytest.skip(f"{ENDPOINT_ENV} is not set")

    return StoreConfig(
        backend="dynamodb",
        table_name=f"casbin_rule_{uuid.uuid4().hex[:12]}",
        region=os.environ.get("AWS_DEFAULT_REGION", "us-east-1"),
        endpoint_url=endpoint,
    )


@pytest.fixture
def config(store_config):
    return Config(
        store=store_config,
        batch=BatchConfig(max_attempts=8, base_delay=0.05, max_delay=1.0),
    )


@pytest_asyncio.fixture
async def synchronizer(config):
    """PolicySynchronizer on a newly created table, dropped afterwards."""
    async with open_synchronizer(config) as synchronizer:
        await synchronizer.gateway.create_table()
        yield synchronizer

    session = aioboto3.Session(region_name=config.store.region)
    async with session.resource("dynamodb", endpoint_url=config.store.endpoint_url) as resource:
        table = await resource.Table(config.store.table_name)
        await table.delete()
