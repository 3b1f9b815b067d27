"""Tests for end-to-end command resolution (normalize -> classify -> extract -> validate)."""

from __future__ import annotations

import pytest

from fitbounty.intent.parser import parsing_errors, resolve_command
from fitbounty.intent.schema import CommandError, CommandName, ErrorKind, ParsedCommand

_ALICE_KEY = "7e7e9c42a91bfef19fa929e5fda1b72e0ebc1a4c1141673e2794234d86addf4e"
_BOT_KEY = "a" * 64


def _parsed(text: str, **kwargs: object) -> ParsedCommand:
    result = resolve_command(text, **kwargs)  # type: ignore[arg-type]
    assert isinstance(result, ParsedCommand), result
    return result


def test_penalty_have_to_or_owe() -> None:
    result = _parsed("I have to do 20 pushups for 7 days OR I owe @alice 1000 sats @fitbounty")

    assert result.command == CommandName.create_penalty_challenge
    assert result.rule_id == "have_to_or_owe"
    assert result.confidence == 1.0
    params = result.params
    assert params.exercise == "20 pushup"
    assert params.exercise_type == "pushup"
    assert params.exercise_count == 20
    assert params.duration == 7
    assert params.penalty_amount == 1000
    assert params.penalty_recipient == "alice"
    assert params.penalty_recipient_key is None
    assert params.full_description == "20 pushup daily for 7 days"


def test_penalty_daily_for_a_week_with_misspelled_exercise() -> None:
    result = _parsed("30 squads daily for a week or @helen receives 900 sats @fitbounty")

    assert result.rule_id == "daily_for_a_period_or_gets"
    assert result.params.exercise_type == "squat"
    assert result.params.duration == 7
    assert result.params.penalty_amount == 900
    assert result.params.penalty_recipient == "helen"


def test_penalty_if_not_then_gets_converts_weeks() -> None:
    result = _parsed("If I don't do 15 pullups for 2 weeks, @charlie gets 3000 sats @fitbounty")

    assert result.rule_id == "if_not_then_gets"
    assert result.params.exercise_type == "pullup"
    assert result.params.duration == 14
    assert result.params.penalty_recipient == "charlie"


def test_penalty_to_recipient_after_amount() -> None:
    result = _parsed("100 jumping jacks for 3 days, penalty 800 sats to @frank @fitbounty")

    assert result.rule_id == "for_period_penalty_to"
    assert result.params.exercise_type == "jumping jack"
    assert result.params.duration == 3
    assert result.params.penalty_amount == 800
    assert result.params.penalty_recipient == "frank"


def test_penalty_one_month_is_thirty_days() -> None:
    result = _parsed("20 lunges daily for 1 month or @jane gets 10000 sats @fitbounty")

    assert result.rule_id == "daily_or_gets"
    assert result.params.exercise_type == "lunge"
    assert result.params.duration == 30
    assert result.params.full_description == "20 lunge daily for 30 days"


def test_penalty_per_period_sets_frequency() -> None:
    result = _parsed("10 burpees per week for 4 weeks or I owe @bob 500 sats @fitbounty")

    assert result.rule_id == "per_period_or_owe"
    assert result.params.frequency == "weekly"
    assert result.params.duration == 28
    assert result.params.full_description == "10 burpee weekly for 28 days"


def test_recipient_key_comes_from_tags_excluding_bot() -> None:
    tags = [["p", _BOT_KEY], ["p", _ALICE_KEY]]
    result = _parsed(
        "I have to do 20 pushups for 7 days or I owe @alice 1000 sats @fitbounty",
        tags=tags,
        bot_identity_key=_BOT_KEY,
    )
    assert result.params.penalty_recipient_key == _ALICE_KEY


@pytest.mark.parametrize(
    ("text", "rule_id", "duration"),
    [
        ("I want to do 50 pushups daily for 10 days @fitbounty", "want_to_do", 10),
        ("@fitbounty challenge: 75 squats for 2 weeks", "mention_challenge", 14),
        ("Challenge: 100 burpees daily for 5 days @fitbounty", "challenge_daily", 5),
        ("Going to do 50 squats daily for 5 days @fitbounty", "want_to_do", 5),
        ("40 lunges daily for 5 days, who wants to bet? @fitbounty", "daily_who_bets", 5),
    ],
)
def test_bounty_challenges(text: str, rule_id: str, duration: int) -> None:
    result = _parsed(text)

    assert result.command == CommandName.create_bounty_challenge
    assert result.rule_id == rule_id
    assert result.params.duration == duration
    assert result.params.penalty_amount is None


def test_bounty_wildcard_rule_scores_lower() -> None:
    result = _parsed("I want to do 50 pushups daily for 10 days @fitbounty")
    assert result.confidence == 0.8


def test_set_bounty_amount() -> None:
    result = _parsed("@fitbounty bounty 1000 sats")

    assert result.command == CommandName.set_bounty
    assert result.params.amount == 1000
    assert result.confidence == 0.9


@pytest.mark.parametrize(
    ("text", "command"),
    [
        ("how's my challenge going? @fitbounty", CommandName.get_status),
        ("@fitbounty status", CommandName.get_status),
        ("show me the leaderboard @fitbounty", CommandName.get_leaderboard),
        ("@fitbounty help", CommandName.show_help),
        ("what can you do @fitbounty", CommandName.show_help),
    ],
)
def test_utility_commands(text: str, command: CommandName) -> None:
    result = _parsed(text)
    assert result.command == command
    assert result.confidence == 0.9


def test_text_without_mention_is_ignored() -> None:
    assert resolve_command("I have to do 20 pushups for 7 days or I owe @alice 1000 sats") is None


@pytest.mark.parametrize(
    "text",
    [
        "I like to exercise @fitbounty",
        "@fitbounty challenge",
        "I want to do pushups @fitbounty",
        "I owe someone money @fitbounty",
    ],
)
def test_unmatched_mentions_are_no_intent(text: str) -> None:
    result = resolve_command(text)
    assert isinstance(result, CommandError)
    assert result.kind == ErrorKind.no_intent
    assert "Missing numbers (exercise count, duration, or penalty amount)" in result.errors


def test_no_intent_diagnostics_for_penalty_wording() -> None:
    errors = parsing_errors("i owe someone money @fitbounty")
    assert errors == [
        "Missing numbers (exercise count, duration, or penalty amount)",
        'Missing duration (e.g., "7 days", "2 weeks")',
        "Missing penalty amount in sats",
        "Missing friend mention (@username)",
    ]


def test_out_of_bounds_penalty_is_a_validation_error() -> None:
    result = resolve_command("I have to do 20 pushups for 7 days or I owe @alice 200000 sats @fitbounty")

    assert isinstance(result, CommandError)
    assert result.kind == ErrorKind.validation
    assert result.command == CommandName.create_penalty_challenge
    assert result.errors == ["Penalty cannot exceed 100000 sats"]


def test_out_of_bounds_duration_is_a_validation_error() -> None:
    result = resolve_command("I have to do 20 pushups for 400 days or I owe @alice 100 sats @fitbounty")

    assert isinstance(result, CommandError)
    assert result.errors == ["Duration cannot exceed 365 days"]


def test_resolution_is_deterministic() -> None:
    text = "30 squads daily for a week or @helen receives 900 sats @fitbounty"
    assert resolve_command(text) == resolve_command(text)


@pytest.mark.parametrize(
    "text",
    [
        "I have to do 20 pushups for 7 days OR I owe @alice 1000 sats @fitbounty",
        "I want to do 50 pushups daily for 10 days @fitbounty",
        "12 planks then 3 days later @bob maybe 50 sats @fitbounty",
        "@fitbounty bounty 5 sats",
    ],
)
def test_confidence_is_bounded(text: str) -> None:
    result = _parsed(text)
    assert 0.0 <= result.confidence <= 1.0
