"""Confidence scoring for rule matches."""

from __future__ import annotations

from fitbounty.intent.extract import SlotValues
from fitbounty.intent.rules import UTILITY_COMMANDS, Rule

BASE_CONFIDENCE = 0.7
UTILITY_CONFIDENCE = 0.9
LONG_MATCH_CHARS = 50
MANY_SLOTS = 5


def score_match(rule: Rule, matched_text: str, slots: SlotValues) -> float:
    """Score a match in `[0, 1]` by specificity and completeness.

    Utility commands carry a fixed score; challenge rules start at 0.7 and gain 0.1 each for a long
    match, more than five filled slots, and a pattern without wildcard gaps.
    """

    if rule.command in UTILITY_COMMANDS:
        return UTILITY_CONFIDENCE

    score = BASE_CONFIDENCE
    if len(matched_text) > LONG_MATCH_CHARS:
        score += 0.1
    if sum(1 for value in slots.values() if value) > MANY_SLOTS:
        score += 0.1
    if not rule.wildcard:
        score += 0.1

    return round(min(max(score, 0.0), 1.0), 2)
