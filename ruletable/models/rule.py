"""
Policy rule value types.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


# Attribute names of a stored record. These match the layout used by the
# existing Casbin DynamoDB adapters so tables can be shared with them.
KEY_ATTRIBUTE = "id"
TYPE_ATTRIBUTE = "pType"
FIELD_PREFIX = "v"


def field_attribute(index: int) -> str:
    """Get the record attribute name for the field at `index`."""
    return f"{FIELD_PREFIX}{index}"


def _quote(value: str) -> str:
    """Quote a CSV value when it would not survive a plain split."""
    if value != value.strip() or any(c in value for c in ',"\n\r'):
        return '"' + value.replace('"', '""') + '"'
    return value


def _unquote(token: str) -> str:
    token = token.strip()
    if len(token) >= 2 and token[0] == '"' and token[-1] == '"':
        return token[1:-1].replace('""', '"')
    return token


def _split_line(line: str) -> list[str]:
    """Split a policy line on commas outside double quotes."""
    tokens = []
    start = 0
    in_quotes = False
    for i, c in enumerate(line):
        if c == '"':
            in_quotes = not in_quotes
        elif c == "," and not in_quotes:
            tokens.append(line[start:i])
            start = i + 1
    if in_quotes:
        raise ValueError(f"Unterminated quote in policy line: {line!r}")
    tokens.append(line[start:])
    return [_unquote(t) for t in tokens]


@dataclass(frozen=True)
class PolicyRule:
    """
    A policy rule: a type tag plus an ordered tuple of string fields.

    Rules are plain values. Two rules are equal when the tag and every
    field are equal, including the number of fields, so a trailing empty
    field is significant.
    """

    ptype: str
    fields: tuple[str, ...] = ()

    def __post_init__(self):
        if not isinstance(self.ptype, str) or not self.ptype:
            raise ValueError("Policy type must be a non-empty string")
        if isinstance(self.fields, (str, bytes)):
            raise ValueError("Policy fields must be a sequence of strings, not a single string")
        fields = tuple(self.fields)
        for value in fields:
            if not isinstance(value, str):
                raise ValueError(f"Policy fields must be strings, got {type(value).__name__}")
        object.__setattr__(self, "fields", fields)

    @classmethod
    def of(cls, ptype: str, *fields: str) -> "PolicyRule":
        """Build a rule from positional fields, e.g. PolicyRule.of("p", "alice", "data1", "read")."""
        return cls(ptype, tuple(fields))

    @classmethod
    def from_line(cls, line: str) -> "PolicyRule":
        """
        Parse a Casbin CSV policy line such as "p, alice, data1, read".

        Whitespace around each value is trimmed. Values may be double-quoted
        to carry commas or surrounding spaces.
        """
        line = line.strip()
        if not line:
            raise ValueError(f"Empty policy line: {line!r}")
        ptype, *fields = _split_line(line)
        return cls(ptype, tuple(fields))

    def to_line(self) -> str:
        """Render as a Casbin CSV policy line."""
        return ", ".join(_quote(v) for v in (self.ptype, *self.fields))

    @property
    def section(self) -> str:
        """Model section this rule belongs to ("p" or "g")."""
        return self.ptype[0]

    def __len__(self) -> int:
        return len(self.fields)

    def __str__(self) -> str:
        return self.to_line()


class WriteAction(str, Enum):
    """Kind of a single write inside a batch."""

    PUT = "put"
    DELETE = "delete"


@dataclass(frozen=True)
class WriteRequest:
    """A put of a whole record or a delete by key."""

    action: WriteAction
    key: str
    item: Optional[dict[str, str]] = field(default=None, compare=False, hash=False)

    @classmethod
    def put(cls, item: dict[str, str]) -> "WriteRequest":
        return cls(WriteAction.PUT, item[KEY_ATTRIBUTE], dict(item))

    @classmethod
    def delete(cls, key: str) -> "WriteRequest":
        return cls(WriteAction.DELETE, key)

    @property
    def is_put(self) -> bool:
        return self.action == WriteAction.PUT


@dataclass
class LoadResult:
    """
    Outcome of loading rules from the store.

    Attributes:
        rules: Every rule that decoded (and matched the filter, if any).
        skipped: Number of stored records that could not be decoded.
        filtered: True when a filter dropped at least one valid rule.
    """

    rules: set[PolicyRule] = field(default_factory=set)
    skipped: int = 0
    filtered: bool = False

    def __len__(self) -> int:
        return len(self.rules)

    def __iter__(self):
        return iter(self.rules)

    def __contains__(self, rule: object) -> bool:
        return rule in self.rules


@dataclass
class RemovalResult:
    """
    Outcome of a filtered removal.

    Attributes:
        removed: Number of rules deleted.
        skipped: Number of stored records left in place because they could
            not be decoded.
    """

    removed: int = 0
    skipped: int = 0


@dataclass
class PolicyFilter:
    """
    Positional filter for loading a subset of the policy.

    `p` constrains rules whose type starts with "p", `g` those whose type
    starts with "g". An empty string at a position matches any value.
    """

    p: list[str] = field(default_factory=list)
    g: list[str] = field(default_factory=list)

    def matches(self, rule: PolicyRule) -> bool:
        """Check whether `rule` passes the filter."""
        values = self.p if rule.section == "p" else self.g
        for i, value in enumerate(values):
            if not value:
                continue
            if i >= len(rule.fields) or rule.fields[i] != value:
                return False
        return True
