"""
SQL table backend.

Stores each record as a row of the policy_items table: the derived id as
primary key and the remaining attributes as a JSON document. Useful for
local development and tests; any database SQLAlchemy's asyncio extension
supports will do.
"""

import json
import logging
from contextlib import contextmanager
from typing import Any, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError, TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncEngine

from ruletable.clients.base import ScanToken
from ruletable.errors import StoreRejected, StoreUnavailable
from ruletable.models.database import create_async_session_factory, init_db
from ruletable.models.policy import PolicyItem
from ruletable.models.rule import KEY_ATTRIBUTE, WriteRequest


logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100


@contextmanager
def _translate_errors(operation: str):
    """Map SQLAlchemy errors onto StoreUnavailable / StoreRejected."""
    try:
        yield
    except (OperationalError, InterfaceError, PoolTimeoutError) as e:
        if "no such table" in str(e):
            raise StoreRejected(operation, e) from e
        raise StoreUnavailable(operation, e) from e
    except SQLAlchemyError as e:
        raise StoreRejected(operation, e) from e


def _to_row(item: dict[str, str]) -> PolicyItem:
    attributes = {k: v for k, v in item.items() if k != KEY_ATTRIBUTE}
    return PolicyItem(id=item[KEY_ATTRIBUTE], attributes=json.dumps(attributes, sort_keys=True))


def _from_row(row: PolicyItem) -> dict[str, Any]:
    try:
        attributes = json.loads(row.attributes)
    except ValueError:
        logger.warning(f"Row {row.id} holds invalid JSON")
        attributes = {}
    if not isinstance(attributes, dict):
        attributes = {}
    attributes[KEY_ATTRIBUTE] = row.id
    return attributes


class SqlTableClient:
    """TableClient backed by a SQL database."""

    def __init__(self, engine: AsyncEngine, page_size: int = DEFAULT_PAGE_SIZE):
        self.engine = engine
        self.page_size = page_size
        self.table_name = PolicyItem.__tablename__
        self._session_factory = create_async_session_factory(engine)

    async def scan_page(
        self, start_key: ScanToken = None, limit: Optional[int] = None
    ) -> tuple[list[dict[str, Any]], ScanToken]:
        limit = limit or self.page_size
        query = select(PolicyItem).order_by(PolicyItem.id).limit(limit)
        if start_key:
            query = query.where(PolicyItem.id > start_key[KEY_ATTRIBUTE])

        with _translate_errors("scan"):
            async with self._session_factory() as session:
                result = await session.execute(query)
                rows = list(result.scalars().all())

        next_key = {KEY_ATTRIBUTE: rows[-1].id} if len(rows) == limit else None
        return [_from_row(row) for row in rows], next_key

    async def put_item(self, item: dict[str, str]) -> None:
        with _translate_errors("put_item"):
            async with self._session_factory() as session:
                await session.merge(_to_row(item))
                await session.commit()

    async def delete_item(self, key: str) -> bool:
        with _translate_errors("delete_item"):
            async with self._session_factory() as session:
                result = await session.execute(
                    delete(PolicyItem).where(PolicyItem.id == key)
                )
                await session.commit()
                return result.rowcount > 0

    async def batch_write(self, requests: list[WriteRequest]) -> list[WriteRequest]:
        """Apply all requests in one transaction. Nothing is ever left unprocessed."""
        with _translate_errors("batch_write"):
            async with self._session_factory() as session:
                for request in requests:
                    if request.is_put:
                        await session.merge(_to_row(request.item))
                    else:
                        await session.execute(
                            delete(PolicyItem).where(PolicyItem.id == request.key)
                        )
                await session.commit()
        return []

    async def create_table(self) -> bool:
        with _translate_errors("create_table"):
            return await init_db(self.engine)
