"""
Casbin CSV policy files: export the stored policy and import a file in its place.
"""

import logging
from typing import Iterable

from ruletable.models.rule import PolicyRule
from ruletable.services.synchronizer import PolicySynchronizer


logger = logging.getLogger(__name__)


def parse_policy_text(text: str) -> list[PolicyRule]:
    """
    Parse CSV policy text, one rule per line.

    Blank lines and lines starting with "#" are ignored.

    Raises:
        ValueError: If a line is not a valid rule. The message names the line.
    """
    rules = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        try:
            rules.append(PolicyRule.from_line(stripped))
        except ValueError as e:
            raise ValueError(f"Invalid policy on line {lineno}: {e}")
    return rules


def format_policy_text(rules: Iterable[PolicyRule]) -> str:
    """Render rules as CSV policy text, "p" rules first, each group sorted."""
    ordered = sorted(rules, key=lambda r: (r.section != "p", r.ptype, r.fields))
    return "".join(f"{rule.to_line()}\n" for rule in ordered)


class PolicyFileService:
    """Moves whole policies between CSV text and the table."""

    def __init__(self, synchronizer: PolicySynchronizer):
        self.synchronizer = synchronizer

    async def export_text(self) -> str:
        """Export all stored rules as CSV policy text."""
        result = await self.synchronizer.load_all()
        if result.skipped:
            logger.warning(f"Export left out {result.skipped} malformed record(s)")
        return format_policy_text(result.rules)

    async def parse_import(self, text: str) -> dict[str, list[PolicyRule]]:
        """
        Parse policy text and return the diff against the stored policy.

        Returns:
            {
                "added": [rules in the file but not stored],
                "removed": [rules stored but not in the file],
                "unchanged": [rules in both],
            }
        """
        imported = set(parse_policy_text(text))
        current = (await self.synchronizer.load_all()).rules

        return {
            "added": sorted(imported - current, key=str),
            "removed": sorted(current - imported, key=str),
            "unchanged": sorted(imported & current, key=str),
        }

    async def apply_import(self, text: str) -> None:
        """Replace the stored policy with the rules in `text`."""
        rules = parse_policy_text(text)
        await self.synchronizer.save_all(rules)
