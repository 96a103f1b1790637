"""
Pattern rules built from the ``<extensions>`` section of the configuration.

Each enabled extension entry becomes a :class:`PatternRule`.  Entries that
do not contain a wildcard are treated as suffixes (``.js`` becomes
``*.js``).  Rules are ordered so that more specific (longer) patterns are
tried first; among patterns of equal length the one declared first wins.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, List, Optional

from .wildcard import has_wildcard, wildcard_match

if TYPE_CHECKING:  # pragma: no cover
    from .config import ConfigItem


@dataclass(frozen=True)
class PatternRule:
    pattern: str
    tree_only: bool
    declaration_index: int

    def matches(self, rel_path: str, filename: str) -> bool:
        return wildcard_match(rel_path, self.pattern) or wildcard_match(filename, self.pattern)


def to_pattern(value: str) -> str:
    """Turn a raw extension value into a wildcard pattern."""
    value = value.strip()
    if has_wildcard(value):
        return value
    return "*" + value


def build_rules(entries: Iterable["ConfigItem"]) -> List[PatternRule]:
    """Build the ordered rule list from extension entries in declaration order.

    Disabled and blank entries produce no rule but still use up an index,
    so tie-breaks stay relative to the full declared order.
    """
    rules: List[PatternRule] = []
    for index, entry in enumerate(entries):
        value = (entry.value or "").strip()
        if not value or not entry.enable:
            continue
        rules.append(PatternRule(to_pattern(value), entry.tree_only, index))
    rules.sort(key=lambda rule: (-len(rule.pattern), rule.declaration_index))
    return rules


def match_rule(rules: Iterable[PatternRule], rel_path: str, filename: str) -> Optional[PatternRule]:
    """Return the first rule matching the relative path or bare filename."""
    for rule in rules:
        if rule.matches(rel_path, filename):
            return rule
    return None
