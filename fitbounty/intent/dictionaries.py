"""English dictionaries for exercises, duration units and frequencies.

These mappings are used by the entity extractor and should remain small and deterministic.
Exercise variants include common misspellings seen in real posts ("puships", "squads").
"""

from __future__ import annotations

# Order matters: the first canonical label whose variant occurs in the phrase wins
# ("crunches" must resolve to situp before "run" gets a chance).
EXERCISE_SYNONYMS: dict[str, tuple[str, ...]] = {
    "pushup": (
        "pushup", "pushups", "push-up", "push-ups", "push up", "push ups",
        "puships", "pushes", "press ups",
    ),
    "squat": (
        "squat", "squats", "air squat", "air squats", "bodyweight squat", "body weight squats",
        "squads",
    ),
    "pullup": (
        "pullup", "pullups", "pull-up", "pull-ups", "pull up", "pull ups",
        "chin up", "chin ups", "chinups",
    ),
    "burpee": ("burpee", "burpees", "burpies"),
    "situp": ("situp", "situps", "sit-up", "sit-ups", "sit up", "sit ups", "crunches", "crunch"),
    "plank": ("plank", "planks", "planking", "plank hold"),
    "jumping jack": ("jumping jack", "jumping jacks", "jumpingjack", "jumpingjacks", "star jumps"),
    "mountain climber": (
        "mountain climber", "mountain climbers", "mountainclimber", "mountain climbs",
    ),
    "lunge": ("lunge", "lunges", "walking lunge", "walking lunges"),
    "run": ("run", "running", "jog", "jogging", "sprint", "sprinting"),
    "walk": ("walk", "walking", "steps", "step"),
}

DURATION_UNIT_SYNONYMS: dict[str, tuple[str, ...]] = {
    "days": ("day", "days", "d"),
    "weeks": ("week", "weeks", "wk", "wks", "w"),
    "months": ("month", "months", "mo", "mos", "m"),
}

DAYS_PER_UNIT: dict[str, int] = {"days": 1, "weeks": 7, "months": 30}

DURATION_TERM_TO_UNIT: dict[str, str] = {
    term: unit for unit, terms in DURATION_UNIT_SYNONYMS.items() for term in terms
}

FREQUENCY_LABELS: dict[str, str] = {"day": "daily", "week": "weekly", "month": "monthly"}


def normalize_exercise(phrase: str) -> str:
    """Map a captured exercise phrase to its canonical label.

    Unknown exercises fall back to the cleaned phrase with one trailing plural `s` removed.
    """

    value = (phrase or "").lower().strip()
    for label, variants in EXERCISE_SYNONYMS.items():
        if any(variant in value for variant in variants):
            return label
    return value.removesuffix("s")


def duration_unit(term: str | None) -> str:
    """Return the canonical duration unit (`days`, `weeks`, `months`) for a unit term."""

    if not term:
        return "days"
    return DURATION_TERM_TO_UNIT.get(term.lower().strip(), "days")


def duration_to_days(magnitude: int | None, unit: str | None) -> int:
    """Convert a duration to days (week = 7 days, month = 30 days).

    A bare unit ("a week") has an implied magnitude of 1.
    """

    value = 1 if magnitude is None else magnitude
    return value * DAYS_PER_UNIT[duration_unit(unit)]


def frequency_label(period: str | None) -> str:
    """Map a frequency period ("day", "week", ...) to a label; defaults to `daily`."""

    if not period:
        return "daily"
    value = period.lower().strip()
    return FREQUENCY_LABELS.get(value, value)
