"""
Build table clients and synchronizers from configuration.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from ruletable.clients.base import TableClient
from ruletable.clients.dynamodb import open_dynamodb_table
from ruletable.clients.sql import SqlTableClient
from ruletable.config import Config
from ruletable.models.database import create_async_db_engine
from ruletable.services.gateway import StoreGateway
from ruletable.services.synchronizer import PolicySynchronizer


logger = logging.getLogger(__name__)


@asynccontextmanager
async def open_table_client(config: Config) -> AsyncIterator[TableClient]:
    """Yield the table client selected by config.store.backend."""
    if config.store.backend == "sql":
        engine = create_async_db_engine(config.database)
        logger.debug(f"Using SQL table backend at {config.database.url}")
        try:
            yield SqlTableClient(engine)
        finally:
            await engine.dispose()
    else:
        logger.debug(f"Using DynamoDB table {config.store.table_name}")
        async with open_dynamodb_table(config.store) as client:
            yield client


@asynccontextmanager
async def open_synchronizer(config: Config) -> AsyncIterator[PolicySynchronizer]:
    """Yield a PolicySynchronizer wired to the configured backend."""
    async with open_table_client(config) as client:
        yield PolicySynchronizer(StoreGateway(client, config.batch))
