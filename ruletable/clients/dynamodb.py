"""
DynamoDB table backend using aioboto3.

The table has a single string hash key "id" and no sort key. Rule fields
are ordinary string attributes (pType, v0, v1, ...).
"""

import logging
from contextlib import asynccontextmanager, contextmanager
from typing import Any, AsyncIterator, Optional

import aioboto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from ruletable.clients.base import ScanToken
from ruletable.config import StoreConfig
from ruletable.errors import StoreRejected, StoreUnavailable
from ruletable.models.rule import KEY_ATTRIBUTE, WriteRequest


logger = logging.getLogger(__name__)

# Error codes worth retrying later; every other ClientError is permanent.
TRANSIENT_ERROR_CODES = {
    "ProvisionedThroughputExceededException",
    "ThrottlingException",
    "RequestLimitExceeded",
    "InternalServerError",
    "ServiceUnavailable",
    "LimitExceededException",
}


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


@contextmanager
def _translate_errors(operation: str):
    """Map botocore errors onto StoreUnavailable / StoreRejected."""
    try:
        yield
    except ClientError as e:
        if _error_code(e) in TRANSIENT_ERROR_CODES:
            raise StoreUnavailable(operation, e) from e
        raise StoreRejected(operation, e) from e
    except BotoCoreError as e:
        # Connection failures, timeouts and the like
        raise StoreUnavailable(operation, e) from e


def _to_request(request: WriteRequest) -> dict[str, Any]:
    if request.is_put:
        return {"PutRequest": {"Item": request.item}}
    return {"DeleteRequest": {"Key": {KEY_ATTRIBUTE: request.key}}}


def _request_key(raw: dict[str, Any]) -> str:
    if "PutRequest" in raw:
        return raw["PutRequest"]["Item"][KEY_ATTRIBUTE]
    return raw["DeleteRequest"]["Key"][KEY_ATTRIBUTE]


class DynamoDBTableClient:
    """
    TableClient for a DynamoDB table.

    Args:
        resource: An open aioboto3 DynamoDB service resource.
        table_name: Name of the policy table.
    """

    def __init__(self, resource, table_name: str):
        self.resource = resource
        self.table_name = table_name
        self._table = None

    async def _get_table(self):
        if self._table is None:
            self._table = await self.resource.Table(self.table_name)
        return self._table

    async def scan_page(
        self, start_key: ScanToken = None, limit: Optional[int] = None
    ) -> tuple[list[dict[str, Any]], ScanToken]:
        kwargs: dict[str, Any] = {"ConsistentRead": True}
        if start_key:
            kwargs["ExclusiveStartKey"] = start_key
        if limit:
            kwargs["Limit"] = limit

        with _translate_errors("scan"):
            table = await self._get_table()
            response = await table.scan(**kwargs)

        return response.get("Items", []), response.get("LastEvaluatedKey")

    async def put_item(self, item: dict[str, str]) -> None:
        with _translate_errors("put_item"):
            table = await self._get_table()
            await table.put_item(Item=item)

    async def delete_item(self, key: str) -> bool:
        with _translate_errors("delete_item"):
            table = await self._get_table()
            response = await table.delete_item(
                Key={KEY_ATTRIBUTE: key},
                ReturnValues="ALL_OLD",
            )
        return bool(response.get("Attributes"))

    async def batch_write(self, requests: list[WriteRequest]) -> list[WriteRequest]:
        by_key = {request.key: request for request in requests}

        with _translate_errors("batch_write"):
            response = await self.resource.batch_write_item(
                RequestItems={self.table_name: [_to_request(r) for r in requests]}
            )

        unprocessed = response.get("UnprocessedItems", {}).get(self.table_name, [])
        return [by_key[_request_key(raw)] for raw in unprocessed]

    async def create_table(self) -> bool:
        try:
            with _translate_errors("create_table"):
                await self.resource.create_table(
                    TableName=self.table_name,
                    AttributeDefinitions=[
                        {"AttributeName": KEY_ATTRIBUTE, "AttributeType": "S"},
                    ],
                    KeySchema=[
                        {"AttributeName": KEY_ATTRIBUTE, "KeyType": "HASH"},
                    ],
                    BillingMode="PAY_PER_REQUEST",
                )
                table = await self._get_table()
                await table.wait_until_exists()
        except StoreRejected as e:
            if isinstance(e.cause, ClientError) and _error_code(e.cause) == "ResourceInUseException":
                logger.info(f"Table {self.table_name} already exists")
                return False
            raise

        logger.info(f"Created table {self.table_name}")
        return True


@asynccontextmanager
async def open_dynamodb_table(config: StoreConfig) -> AsyncIterator[DynamoDBTableClient]:
    """Open an aioboto3 session and yield a client for the configured table."""
    session = aioboto3.Session(profile_name=config.profile, region_name=config.region)
    async with session.resource(
        "dynamodb",
        endpoint_url=config.endpoint_url,
        config=BotoConfig(retries={"mode": "standard"}),
    ) as resource:
        yield DynamoDBTableClient(resource, config.table_name)
