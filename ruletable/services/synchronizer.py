"""
Policy synchronizer: the storage contract used by the enforcement engine.

The synchronizer keeps no state of its own between calls. Every operation
works directly against the table, so several processes (or a recreated
engine) can share one table.

Concurrency: save_all() and remove_filtered_policy() read the table and then
write to it without a transaction. A concurrent writer can interleave
between the read and the write and its changes may be lost. The intended
deployment has a single writer. A cancelled call may leave some batch chunks
applied; issuing the same call again converges to the same end state because
every write is keyed by content.
"""

import logging
from typing import Iterable, Optional

from ruletable.errors import MalformedRecord
from ruletable.models.rule import KEY_ATTRIBUTE, LoadResult, PolicyFilter, PolicyRule, RemovalResult, WriteRequest
from ruletable.services.codec import decode, encode
from ruletable.services.gateway import StoreGateway
from ruletable.utils.crypto import derive_key


logger = logging.getLogger(__name__)


class PolicySynchronizer:
    """Loads, saves, adds and removes policy rules in a shared table."""

    def __init__(self, gateway: StoreGateway):
        self.gateway = gateway

    @property
    def table_name(self) -> str:
        return self.gateway.client.table_name

    async def _load(self, policy_filter: Optional[PolicyFilter] = None) -> LoadResult:
        """Decode every record, skipping malformed ones and applying the filter."""
        result = LoadResult()
        async for item in self.gateway.scan():
            try:
                rule = decode(item)
            except MalformedRecord as e:
                result.skipped += 1
                logger.warning(f"Skipping record in {self.table_name}: {e}")
                continue

            if policy_filter is not None and not policy_filter.matches(rule):
                result.filtered = True
                continue

            result.rules.add(rule)

        if result.skipped:
            logger.warning(f"Loaded {len(result.rules)} rule(s), skipped {result.skipped} malformed record(s)")
        else:
            logger.debug(f"Loaded {len(result.rules)} rule(s) from {self.table_name}")
        return result

    async def load_all(self) -> LoadResult:
        """
        Load the whole policy.

        Records that cannot be decoded are skipped and counted in
        LoadResult.skipped instead of failing the load.
        """
        return await self._load()

    async def load_filtered(self, policy_filter: PolicyFilter) -> LoadResult:
        """Load only the rules that pass `policy_filter`."""
        return await self._load(policy_filter)

    async def save_all(self, rules: Iterable[PolicyRule]) -> None:
        """
        Replace the stored policy with `rules`.

        Every stored record whose id is not produced by `rules` is deleted,
        including records that cannot be decoded. All target rules are
        written, so the table converges to exactly `rules`.
        """
        targets = {}
        for rule in rules:
            item = encode(rule)
            targets[item[KEY_ATTRIBUTE]] = item

        stale = []
        async for item in self.gateway.scan():
            key = item.get(KEY_ATTRIBUTE)
            if not isinstance(key, str):
                logger.warning(f"Record without a usable {KEY_ATTRIBUTE} in {self.table_name}, leaving it in place")
                continue
            if key not in targets:
                stale.append(key)

        requests = [WriteRequest.delete(key) for key in stale]
        requests.extend(WriteRequest.put(item) for item in targets.values())
        await self.gateway.batch_write(requests)

        logger.info(f"Saved {len(targets)} rule(s) to {self.table_name}, removed {len(stale)} stale record(s)")

    async def clear(self) -> None:
        """Delete every record in the table."""
        await self.save_all([])

    async def add_policy(self, rule: PolicyRule) -> bool:
        """Store a rule. Adding a rule that is already stored rewrites the same record."""
        await self.gateway.put(encode(rule))
        return True

    async def add_policies(self, rules: Iterable[PolicyRule]) -> bool:
        """Store several rules. Returns False if there was nothing to add."""
        requests = [WriteRequest.put(encode(rule)) for rule in rules]
        if not requests:
            return False
        await self.gateway.batch_write(requests)
        return True

    async def remove_policy(self, rule: PolicyRule) -> bool:
        """
        Remove a rule if it is stored.

        Returns:
            True if a record was deleted, False if the rule was not stored.
        """
        return await self.gateway.delete(derive_key(rule.ptype, rule.fields))

    async def remove_policies(self, rules: Iterable[PolicyRule]) -> bool:
        """Remove several rules, ignoring ones that are not stored. Returns False if `rules` is empty."""
        requests = [WriteRequest.delete(derive_key(rule.ptype, rule.fields)) for rule in rules]
        if not requests:
            return False
        await self.gateway.batch_write(requests)
        return True

    async def remove_filtered_policy(self, ptype: str, field_index: int, *field_values: str) -> int:
        """
        Remove every rule of type `ptype` whose fields match `field_values`
        starting at position `field_index`.

        An empty value leaves its position unconstrained. Records that cannot
        be decoded are never removed.

        Returns:
            Number of rules removed.
        """
        return (await self.remove_filtered(ptype, field_index, *field_values)).removed

    async def remove_filtered(self, ptype: str, field_index: int, *field_values: str) -> RemovalResult:
        """Same as remove_filtered_policy(), also reporting undecodable records left in place."""
        if field_index < 0:
            raise ValueError(f"field_index must not be negative, got {field_index}")
        if not field_values:
            return RemovalResult()

        def matches(rule: PolicyRule) -> bool:
            if rule.ptype != ptype:
                return False
            for offset, value in enumerate(field_values):
                if not value:
                    continue
                position = field_index + offset
                if position >= len(rule.fields) or rule.fields[position] != value:
                    return False
            return True

        keys = []
        result = RemovalResult()
        async for item in self.gateway.scan():
            try:
                rule = decode(item)
            except MalformedRecord as e:
                result.skipped += 1
                logger.warning(f"Keeping undecodable record in {self.table_name}: {e}")
                continue
            if matches(rule):
                key = item.get(KEY_ATTRIBUTE)
                keys.append(key if isinstance(key, str) else derive_key(rule.ptype, rule.fields))

        if keys:
            await self.gateway.batch_write(WriteRequest.delete(key) for key in keys)
        result.removed = len(keys)

        logger.info(
            f"Removed {result.removed} {ptype} rule(s) matching {list(field_values)} at index {field_index}"
            + (f", kept {result.skipped} undecodable record(s)" if result.skipped else "")
        )
        return result
