"""
Error types raised by ruletable.

Every failure a caller can observe is one of four kinds:

- MalformedRecord: a stored record cannot be decoded into a rule.
- StoreUnavailable: the store failed transiently (network, throttling).
  Retrying the whole operation later is reasonable.
- StoreRejected: the store refused the request permanently (permissions,
  missing table, schema violation). Retrying will not help.
- PartialBatchFailure: a bulk write still had unprocessed items after
  the retry budget was spent.
"""

from typing import Any, Optional


class RuleTableError(Exception):
    """Base class for all ruletable errors."""


class MalformedRecord(RuleTableError):
    """A stored record does not describe a valid policy rule."""

    def __init__(self, reason: str, record: Optional[dict[str, Any]] = None):
        self.reason = reason
        self.record = record or {}
        super().__init__(f"Malformed record {self.record.get('id', '<no id>')}: {reason}")


class StoreError(RuleTableError):
    """Base class for failures reported by the backing store."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None, message: str = ""):
        self.operation = operation
        self.cause = cause
        detail = message or (str(cause) if cause is not None else "unknown error")
        super().__init__(f"{operation} failed: {detail}")


class StoreUnavailable(StoreError):
    """Transient store failure; the operation may be retried."""


class StoreRejected(StoreError):
    """Permanent store failure; the operation must not be retried as-is."""


class PartialBatchFailure(RuleTableError):
    """
    A batch write could not be fully applied.

    Attributes:
        unprocessed: The write requests that were never confirmed applied,
            in submission order. Re-issuing exactly these is safe because
            every write is keyed and idempotent.
    """

    def __init__(self, unprocessed: list, attempts: int):
        self.unprocessed = list(unprocessed)
        self.attempts = attempts
        super().__init__(
            f"Batch write left {len(self.unprocessed)} item(s) unprocessed "
            f"after {attempts} attempt(s)"
        )
