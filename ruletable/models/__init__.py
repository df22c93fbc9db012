# ruletable models
from ruletable.models.database import Base, init_db, create_async_db_engine, create_async_session_factory
from ruletable.models.policy import PolicyItem
from ruletable.models.rule import (
    KEY_ATTRIBUTE,
    TYPE_ATTRIBUTE,
    FIELD_PREFIX,
    field_attribute,
    PolicyRule,
    PolicyFilter,
    LoadResult,
    RemovalResult,
    WriteAction,
    WriteRequest,
)

__all__ = [
    "Base",
    "init_db",
    "create_async_db_engine",
    "create_async_session_factory",
    "PolicyItem",
    "KEY_ATTRIBUTE",
    "TYPE_ATTRIBUTE",
    "FIELD_PREFIX",
    "field_attribute",
    "PolicyRule",
    "PolicyFilter",
    "LoadResult",
    "RemovalResult",
    "WriteAction",
    "WriteRequest",
]
