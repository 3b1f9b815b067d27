"""Ordered classification rules with explicit slot layouts.

Every rule declares which named slot each of its capture groups fills, in group order. The entity
extractor reads captures through this table only; nothing is inferred from the pattern text.

Rules are grouped by command and tried in declaration order (penalty bets first, then bounty
challenges, then utility commands). Penalty bets go first because their phrasing also satisfies the
looser bounty wording.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from fitbounty.intent.schema import CommandName, Slot


@dataclass(frozen=True)
class Rule:
    """A single classification rule.

    Attributes:
        rule_id: Stable identifier (used in logs and tests).
        command: The command this rule resolves to.
        pattern: Compiled pattern applied with `search` to normalized text.
        slots: Slot filled by each capture group, in group order.
        wildcard: Whether the pattern bridges unknown text with a lazy `.*?` gap.
    """

    rule_id: str
    command: CommandName
    pattern: re.Pattern[str]
    slots: tuple[Slot, ...]
    wildcard: bool = False

    def __post_init__(self) -> None:
        if self.pattern.groups != len(self.slots):
            raise ValueError(
                f"rule {self.rule_id} declares {len(self.slots)} slots "
                f"for {self.pattern.groups} capture groups"
            )


_COUNT = r"(\d+)"
_EXERCISE = r"([a-z\s-]+?)"
_MAGNITUDE = r"(\d+)"
_MAGNITUDE_OR_A = r"(?:(\d+)|a)"
_UNIT = r"(days?|weeks?|wks?|months?|mos?)"
_RECIPIENT = r"(@(?!fit.?bounty\b)\w+)"
_AMOUNT = r"(\d+)"
_SATS = r"(sats?|satoshis?)"
_BOT = r"@fit.?bounty"

_C = Slot.exercise_count
_E = Slot.exercise_phrase
_F = Slot.frequency_period
_M = Slot.duration_magnitude
_U = Slot.duration_unit
_R = Slot.recipient_token
_A = Slot.amount
_S = Slot.currency_unit


def _rule(
        rule_id: str,
        command: CommandName,
        pattern: str,
        slots: tuple[Slot, ...] = (),
        *,
        wildcard: bool = False,
) -> Rule:
    return Rule(
        rule_id=rule_id,
        command=command,
        pattern=re.compile(pattern, flags=re.IGNORECASE),
        slots=slots,
        wildcard=wildcard,
    )


PENALTY_RULES: tuple[Rule, ...] = (
    # "i have to do 20 pushups for 7 days or i owe @alice 1000 sats"
    _rule(
        "have_to_or_owe",
        CommandName.create_penalty_challenge,
        rf"i\s+(?:have\s+to|need\s+to|must|will|gonna)\s+do\s+{_COUNT}\s+{_EXERCISE}\s+"
        rf"(?:for\s+|daily\s+for\s+|every\s+day\s+for\s+){_MAGNITUDE_OR_A}\s+{_UNIT}\s+"
        rf"(?:or|otherwise)\s+i\s+(?:owe|pay|send|give)\s+{_RECIPIENT}\s+{_AMOUNT}\s+{_SATS}",
        (_C, _E, _M, _U, _R, _A, _S),
    ),
    # "if i do not do 15 pullups for 2 weeks, @dave gets 3000 sats"
    _rule(
        "if_not_then_gets",
        CommandName.create_penalty_challenge,
        rf"if\s+i\s+(?:don'?t|do\s+not|fail\s+to)\s+do\s+{_COUNT}\s+{_EXERCISE}\s+"
        rf"(?:for\s+|daily\s+for\s+){_MAGNITUDE_OR_A}\s+{_UNIT}\s*,?\s*"
        rf"{_RECIPIENT}\s+(?:gets|receives)\s+{_AMOUNT}\s+{_SATS}",
        (_C, _E, _M, _U, _R, _A, _S),
    ),
    # "20 pushups per day for 7 days or i owe @alice 1000 sats"
    _rule(
        "per_period_or_owe",
        CommandName.create_penalty_challenge,
        rf"{_COUNT}\s+{_EXERCISE}\s+(?:per|a|every)\s+(day|week)\s+for\s+{_MAGNITUDE}\s+{_UNIT}\s*,?\s*"
        rf"(?:or|otherwise)\s+(?:i\s+(?:owe|pay|send|give)\s+)?{_RECIPIENT}\s+"
        rf"(?:(?:gets|receives)\s+)?{_AMOUNT}\s+{_SATS}",
        (_C, _E, _F, _M, _U, _R, _A, _S),
    ),
    # "25 situps daily for 7 days or @eve gets 1500 sats"
    _rule(
        "daily_or_gets",
        CommandName.create_penalty_challenge,
        rf"{_COUNT}\s+{_EXERCISE}\s+(?:daily|every\s+day)\s+for\s+{_MAGNITUDE}\s+{_UNIT}\s+"
        rf"(?:or|otherwise)\s+{_RECIPIENT}\s+(?:gets|receives)\s+{_AMOUNT}\s+{_SATS}",
        (_C, _E, _M, _U, _R, _A, _S),
    ),
    # "30 squads daily for a week or @helen receives 900 sats"
    _rule(
        "daily_for_a_period_or_gets",
        CommandName.create_penalty_challenge,
        rf"{_COUNT}\s+{_EXERCISE}\s+daily\s+for\s+(?:a\s+)?(week|month)\s+or\s+"
        rf"{_RECIPIENT}\s+(?:gets|receives)\s+{_AMOUNT}\s+{_SATS}",
        (_C, _E, _U, _R, _A, _S),
    ),
    # "100 jumping jacks for 3 days, penalty 800 sats to @frank"
    _rule(
        "for_period_penalty_to",
        CommandName.create_penalty_challenge,
        rf"{_COUNT}\s+{_EXERCISE}\s+for\s+{_MAGNITUDE}\s+{_UNIT}\s*,?\s*(?:penalty|fine|cost)\s+"
        rf"{_AMOUNT}\s+{_SATS}\s+(?:to|for)\s+{_RECIPIENT}",
        (_C, _E, _M, _U, _A, _S, _R),
    ),
    # Catch-all: count, one or two words, ..., duration, ..., recipient, ..., amount sats.
    _rule(
        "flexible_penalty",
        CommandName.create_penalty_challenge,
        rf"{_COUNT}\s+(\w+(?:\s+\w+)?)\s+.*?{_MAGNITUDE}\s+(days?|weeks?|months?)\s+.*?"
        rf"{_RECIPIENT}\s+.*?{_AMOUNT}\s+{_SATS}",
        (_C, _E, _M, _U, _R, _A, _S),
        wildcard=True,
    ),
)

BOUNTY_RULES: tuple[Rule, ...] = (
    # "@fitbounty challenge: 75 squats for 2 weeks"
    _rule(
        "mention_challenge",
        CommandName.create_bounty_challenge,
        rf"{_BOT}\s+challenge:?\s*{_COUNT}\s+{_EXERCISE}\s+(?:for\s+|daily\s+for\s+)"
        rf"{_MAGNITUDE}\s+{_UNIT}",
        (_C, _E, _M, _U),
    ),
    # "i want to do 50 pushups daily for 10 days @fitbounty"
    _rule(
        "want_to_do",
        CommandName.create_bounty_challenge,
        rf"(?:i\s+(?:want\s+to|will|gonna|am\s+going\s+to)|going\s+to)\s+do\s+{_COUNT}\s+"
        rf"{_EXERCISE}\s+(?:for\s+|daily\s+for\s+){_MAGNITUDE}\s+{_UNIT}\s+.*?{_BOT}",
        (_C, _E, _M, _U),
        wildcard=True,
    ),
    # "challenge: 100 burpees daily for 5 days"
    _rule(
        "challenge_daily",
        CommandName.create_bounty_challenge,
        rf"challenge:?\s*{_COUNT}\s+{_EXERCISE}\s+(?:daily\s+|every\s+day\s+)?for\s+"
        rf"{_MAGNITUDE}\s+{_UNIT}",
        (_C, _E, _M, _U),
    ),
    # "40 lunges daily for 5 days, who wants to bet?"
    _rule(
        "daily_who_bets",
        CommandName.create_bounty_challenge,
        rf"{_COUNT}\s+{_EXERCISE}\s+(?:daily|every\s+day)\s+for\s+{_MAGNITUDE}\s+{_UNIT}"
        r".*?(?:bet|bounty|pledge)",
        (_C, _E, _M, _U),
        wildcard=True,
    ),
)

SET_BOUNTY_RULES: tuple[Rule, ...] = (
    _rule("mention_bounty", CommandName.set_bounty, rf"{_BOT}\s+bounty\s+{_AMOUNT}\s+{_SATS}", (_A, _S)),
    _rule(
        "pledge",
        CommandName.set_bounty,
        rf"(?:i\s+will\s+(?:put|bet|pledge)|bounty)\s+{_AMOUNT}\s+{_SATS}",
        (_A, _S),
    ),
    _rule("bet", CommandName.set_bounty, rf"(?:i\s+bet|betting)\s+{_AMOUNT}\s+{_SATS}", (_A, _S)),
)

STATUS_RULES: tuple[Rule, ...] = (
    _rule("mention_status", CommandName.get_status, rf"{_BOT}\s+status"),
    _rule(
        "my_challenge",
        CommandName.get_status,
        r"how'?s?\s+my\s+challenge|show\s+(?:my\s+)?(?:challenge\s+)?(?:status|progress)",
    ),
    _rule("my_progress", CommandName.get_status, r"what'?s\s+my\s+progress|check\s+my\s+challenge"),
)

LEADERBOARD_RULES: tuple[Rule, ...] = (
    _rule("mention_leaderboard", CommandName.get_leaderboard, rf"{_BOT}\s+leaderboard"),
    _rule("leaderboard", CommandName.get_leaderboard, r"(?:show\s+)?(?:the\s+)?leaderboard"),
    _rule("top_performers", CommandName.get_leaderboard, r"top\s+performers"),
)

HELP_RULES: tuple[Rule, ...] = (
    _rule("mention_help", CommandName.show_help, rf"{_BOT}\s+help"),
    _rule(
        "how_to_use",
        CommandName.show_help,
        r"how\s+do\s+i\s+use|what\s+(?:can\s+you\s+do|commands)",
    ),
    _rule("help", CommandName.show_help, r"help|instructions"),
)

RULE_GROUPS: tuple[tuple[Rule, ...], ...] = (
    PENALTY_RULES,
    BOUNTY_RULES,
    SET_BOUNTY_RULES,
    STATUS_RULES,
    LEADERBOARD_RULES,
    HELP_RULES,
)

UTILITY_COMMANDS: frozenset[CommandName] = frozenset(
    {
        CommandName.set_bounty,
        CommandName.get_status,
        CommandName.get_leaderboard,
        CommandName.show_help,
    }
)
