# ruletable table clients
from ruletable.clients.base import TableClient
from ruletable.clients.dynamodb import DynamoDBTableClient, open_dynamodb_table
from ruletable.clients.sql import SqlTableClient

__all__ = [
    "TableClient",
    "DynamoDBTableClient",
    "open_dynamodb_table",
    "SqlTableClient",
]
