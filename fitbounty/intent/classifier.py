"""Priority-cascade intent classification.

The first rule (group order, then declaration order) whose pattern matches wins. This is not a
best-match search.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from fitbounty.intent.normalize import mentions_bot
from fitbounty.intent.rules import RULE_GROUPS, Rule


@dataclass(frozen=True)
class RuleMatch:
    """A rule together with the match it produced on normalized text."""

    rule: Rule
    match: re.Match[str]

    @property
    def matched_text(self) -> str:
        return self.match.group(0)


def classify(normalized: str, rule_groups: tuple[tuple[Rule, ...], ...] = RULE_GROUPS) -> RuleMatch | None:
    """Return the winning rule match for normalized text, or `None` when nothing applies.

    Text that does not mention the bot is never classified.
    """

    if not normalized or not mentions_bot(normalized):
        return None

    for group in rule_groups:
        for rule in group:
            match = rule.pattern.search(normalized)
            if match:
                return RuleMatch(rule=rule, match=match)
    return None
