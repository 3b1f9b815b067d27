"""Entity extraction from a matched rule.

Captures are read strictly through the rule's declared slot layout.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from fitbounty.intent.dictionaries import duration_to_days, frequency_label, normalize_exercise
from fitbounty.intent.identity import resolve_recipient_key
from fitbounty.intent.rules import Rule
from fitbounty.intent.schema import CommandName, CommandParams, Slot
from fitbounty.intent.validation import DEFAULT_DURATION_DAYS

SlotValues = dict[Slot, str | None]


def capture_slots(rule: Rule, match: re.Match[str]) -> SlotValues:
    """Map each declared slot to its captured substring (`None` when the group did not take part)."""

    values: SlotValues = {}
    for index, slot in enumerate(rule.slots, start=1):
        raw = match.group(index)
        values[slot] = raw.strip() if raw is not None else None
    return values


def _parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _duration_days(slots: SlotValues) -> int:
    magnitude = _parse_int(slots.get(Slot.duration_magnitude))
    unit = slots.get(Slot.duration_unit)
    if magnitude is None and unit is None:
        return DEFAULT_DURATION_DAYS
    return duration_to_days(magnitude, unit)


def full_description(count: int | None, exercise_type: str, frequency: str, days: int) -> str:
    """Human-readable challenge summary, e.g. `20 pushup daily for 7 days`."""

    prefix = f"{count} {exercise_type}" if count is not None else exercise_type
    return f"{prefix} {frequency} for {days} days"


def _challenge_params(slots: SlotValues) -> dict[str, object]:
    count = _parse_int(slots.get(Slot.exercise_count))
    phrase = slots.get(Slot.exercise_phrase)
    exercise_type = normalize_exercise(phrase) if phrase else None
    frequency = frequency_label(slots.get(Slot.frequency_period))
    days = _duration_days(slots)

    params: dict[str, object] = {
        "exercise_count": count,
        "exercise_type": exercise_type,
        "frequency": frequency,
        "duration": days,
    }
    if exercise_type:
        params["exercise"] = f"{count} {exercise_type}" if count is not None else exercise_type
        params["full_description"] = full_description(count, exercise_type, frequency, days)
    return params


def extract_entities(
        rule: Rule,
        slots: SlotValues,
        tags: Sequence[Sequence[str]] = (),
        *,
        bot_identity_key: str | None = None,
) -> CommandParams:
    """Build command params from captured slots for the rule's command."""

    if rule.command == CommandName.create_penalty_challenge:
        params = _challenge_params(slots)
        token = slots.get(Slot.recipient_token)
        recipient = token.lstrip("@") if token else None
        params["penalty_amount"] = _parse_int(slots.get(Slot.amount))
        params["penalty_recipient"] = recipient or None
        params["penalty_recipient_key"] = resolve_recipient_key(
            recipient, tags, bot_identity_key=bot_identity_key
        )
        return CommandParams.model_validate(params)

    if rule.command == CommandName.create_bounty_challenge:
        return CommandParams.model_validate(_challenge_params(slots))

    if rule.command == CommandName.set_bounty:
        return CommandParams(amount=_parse_int(slots.get(Slot.amount)))

    return CommandParams()
