"""Command resolution orchestration.

Pipeline: normalize → classify → extract → score + validate. Resolution is synchronous, performs no
I/O and never raises for user input: failures come back as `CommandError` values.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence

from fitbounty.intent.classifier import classify
from fitbounty.intent.confidence import score_match
from fitbounty.intent.extract import capture_slots, extract_entities
from fitbounty.intent.normalize import mentions_bot, normalize_text
from fitbounty.intent.schema import CommandError, ErrorKind, ParsedCommand
from fitbounty.intent.validation import missing_fields, validate_command

logger = logging.getLogger(__name__)

_DIGITS_RE = re.compile(r"\d+")
_DURATION_WORD_RE = re.compile(r"day|week|month", flags=re.IGNORECASE)
_SATS_WORD_RE = re.compile(r"sat|bitcoin", flags=re.IGNORECASE)
_PENALTY_WORD_RE = re.compile(r"owe|pay|gets", flags=re.IGNORECASE)
_FRIEND_MENTION_RE = re.compile(r"@(?!fit.?bounty\b)\w+", flags=re.IGNORECASE)


def parsing_errors(text: str) -> list[str]:
    """Explain which common elements are missing from a message that matched no rule."""

    errors: list[str] = []
    content = text or ""

    if not _DIGITS_RE.search(content):
        errors.append("Missing numbers (exercise count, duration, or penalty amount)")

    if not _DURATION_WORD_RE.search(content):
        errors.append('Missing duration (e.g., "7 days", "2 weeks")')

    mentions_penalty = _PENALTY_WORD_RE.search(content) is not None
    if mentions_penalty and not _SATS_WORD_RE.search(content):
        errors.append("Missing penalty amount in sats")

    if mentions_penalty and not _FRIEND_MENTION_RE.search(content):
        errors.append("Missing friend mention (@username)")

    return errors


def resolve_command(
        text: str,
        tags: Sequence[Sequence[str]] = (),
        *,
        bot_identity_key: str | None = None,
) -> ParsedCommand | CommandError | None:
    """Resolve a post into a command.

    Returns:
        - `None` if the post does not address the bot;
        - `CommandError(kind=no_intent)` if it does but no rule matches;
        - `CommandError(kind=validation)` if a rule matched but the entities break domain limits;
        - otherwise a `ParsedCommand`.
    """

    normalized = normalize_text(text)
    if not mentions_bot(normalized):
        return None

    rule_match = classify(normalized)
    if rule_match is None:
        errors = parsing_errors(normalized)
        logger.info("no intent errors=%d", len(errors))
        return CommandError(kind=ErrorKind.no_intent, errors=errors)

    rule = rule_match.rule
    slots = capture_slots(rule, rule_match.match)
    params = extract_entities(rule, slots, tags, bot_identity_key=bot_identity_key)

    errors = validate_command(rule.command, params)
    if errors:
        logger.info("invalid command=%s rule=%s errors=%d", rule.command, rule.rule_id, len(errors))
        return CommandError(
            kind=ErrorKind.validation,
            command=rule.command,
            errors=errors,
            missing=missing_fields(rule.command, params),
        )

    confidence = score_match(rule, rule_match.matched_text, slots)
    logger.debug("resolved command=%s rule=%s confidence=%.2f", rule.command, rule.rule_id, confidence)
    return ParsedCommand(
        command=rule.command,
        params=params,
        confidence=confidence,
        original_matched_text=rule_match.matched_text,
        rule_id=rule.rule_id,
    )
