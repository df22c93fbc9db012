"""
Record key derivation.
"""

import hashlib
from typing import Iterable


def _canonical(ptype: str, fields: Iterable[str]) -> bytes:
    """
    Length-prefixed encoding of a rule's content.

    Each part is written as "<byte length>:<utf-8 bytes>", so no choice of
    field values can make two different rules produce the same bytes.
    """
    parts = []
    for value in (ptype, *fields):
        encoded = value.encode("utf-8")
        parts.append(str(len(encoded)).encode("ascii") + b":" + encoded)
    return b"".join(parts)


def derive_key(ptype: str, fields: Iterable[str]) -> str:
    """
    Derive the record key for a rule.

    Args:
        ptype: The policy type tag.
        fields: The rule's fields in order.

    Returns:
        The SHA-256 of the canonical encoding (64 lowercase hex characters).
    """
    return hashlib.sha256(_canonical(ptype, fields)).hexdigest()

