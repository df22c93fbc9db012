"""
Conversion between policy rules and stored records.
"""

import re
from typing import Any, Mapping

from ruletable.errors import MalformedRecord
from ruletable.models.rule import (
    FIELD_PREFIX,
    KEY_ATTRIBUTE,
    TYPE_ATTRIBUTE,
    PolicyRule,
    field_attribute,
)
from ruletable.utils.crypto import derive_key


_FIELD_ATTRIBUTE_RE = re.compile(rf"{FIELD_PREFIX}(0|[1-9][0-9]*)")


def encode(rule: PolicyRule) -> dict[str, str]:
    """
    Convert a rule into a record.

    Field i is stored as attribute "v<i>", the type tag as "pType" and the
    derived key as "id". Values are stored exactly as given.
    """
    item = {TYPE_ATTRIBUTE: rule.ptype}
    for i, value in enumerate(rule.fields):
        item[field_attribute(i)] = value
    item[KEY_ATTRIBUTE] = derive_key(rule.ptype, rule.fields)
    return item


def decode(record: Mapping[str, Any]) -> PolicyRule:
    """
    Convert a record back into a rule.

    Raises:
        MalformedRecord: If the type tag is missing, a value is not a
            string, or the field attributes have a gap.
    """
    record = dict(record)

    ptype = record.get(TYPE_ATTRIBUTE)
    if not isinstance(ptype, str) or not ptype:
        raise MalformedRecord(f"missing or invalid {TYPE_ATTRIBUTE}", record)

    positions = {}
    for name, value in record.items():
        match = _FIELD_ATTRIBUTE_RE.fullmatch(name)
        if match is None:
            continue
        if not isinstance(value, str):
            raise MalformedRecord(f"attribute {name} is not a string", record)
        positions[int(match.group(1))] = value

    if sorted(positions) != list(range(len(positions))):
        missing = min(set(range(max(positions) + 1)) - set(positions))
        raise MalformedRecord(f"field attributes are not contiguous, {field_attribute(missing)} is missing", record)

    return PolicyRule(ptype, tuple(positions[i] for i in range(len(positions))))
