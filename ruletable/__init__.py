"""
ruletable: Casbin-style policy rule storage in DynamoDB.
"""

from ruletable.errors import (
    RuleTableError,
    MalformedRecord,
    StoreUnavailable,
    StoreRejected,
    PartialBatchFailure,
)
from ruletable.models.rule import PolicyRule, PolicyFilter, LoadResult, RemovalResult, WriteRequest
from ruletable.services.gateway import StoreGateway
from ruletable.services.synchronizer import PolicySynchronizer

__version__ = "0.1.0"

__all__ = [
    "RuleTableError",
    "MalformedRecord",
    "StoreUnavailable",
    "StoreRejected",
    "PartialBatchFailure",
    "PolicyRule",
    "PolicyFilter",
    "LoadResult",
    "RemovalResult",
    "WriteRequest",
    "StoreGateway",
    "PolicySynchronizer",
]
