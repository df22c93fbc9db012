"""
Store-facing contract implemented by every table backend.
"""

from typing import Any, Optional, Protocol

from ruletable.models.rule import WriteRequest


# Opaque continuation token returned by a scan page.
ScanToken = Optional[dict[str, Any]]


class TableClient(Protocol):
    """
    Minimal async interface to a key-value table keyed by "id".

    Implementations translate their native errors into StoreUnavailable
    (transient) or StoreRejected (permanent).
    """

    table_name: str

    async def scan_page(
        self, start_key: ScanToken = None, limit: Optional[int] = None
    ) -> tuple[list[dict[str, Any]], ScanToken]:
        """
        Fetch one page of records.

        Returns:
            Tuple of (records, next_token). next_token is None on the last page.
        """
        ...

    async def put_item(self, item: dict[str, str]) -> None:
        """Write a whole record, replacing any record with the same id."""
        ...

    async def delete_item(self, key: str) -> bool:
        """Delete the record with this id. Returns True if it existed."""
        ...

    async def batch_write(self, requests: list[WriteRequest]) -> list[WriteRequest]:
        """
        Submit one batch of at most 25 requests with distinct keys.

        Returns:
            The requests the store reported as unprocessed.
        """
        ...

    async def create_table(self) -> bool:
        """Create the table if missing. Returns True if it was created."""
        ...
