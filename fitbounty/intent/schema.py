"""Command schema (Pydantic models).

This schema is the contract between command resolution (normalize → classify → extract → validate)
and command execution. Resolution never raises past this boundary: it produces either a
`ParsedCommand` or a `CommandError`.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class CommandName(StrEnum):
    """Supported bot commands."""

    create_penalty_challenge = "create_penalty_challenge"
    create_bounty_challenge = "create_bounty_challenge"
    set_bounty = "set_bounty"
    get_status = "get_status"
    get_leaderboard = "get_leaderboard"
    show_help = "show_help"


class Slot(StrEnum):
    """Named capture positions a classification rule may populate."""

    exercise_count = "exercise_count"
    exercise_phrase = "exercise_phrase"
    frequency_period = "frequency_period"
    duration_magnitude = "duration_magnitude"
    duration_unit = "duration_unit"
    recipient_token = "recipient_token"
    amount = "amount"
    currency_unit = "currency_unit"


class ErrorKind(StrEnum):
    """Why a message could not be turned into an executable command."""

    no_intent = "no_intent"
    validation = "validation"
    unknown_command = "unknown_command"


class CommandParams(BaseModel):
    """Entities extracted for a command.

    Fields are optional on purpose: extraction is lenient and the validator reports what is missing
    or out of bounds as a list of messages instead of raising.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    exercise: str | None = None
    exercise_type: str | None = None
    exercise_count: int | None = None
    frequency: str = "daily"
    duration: int | None = None
    penalty_amount: int | None = None
    penalty_recipient: str | None = None
    penalty_recipient_key: str | None = None
    amount: int | None = None
    full_description: str | None = None


class ParsedCommand(BaseModel):
    """A resolved, validated command ready for execution."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    command: CommandName
    params: CommandParams = Field(default_factory=CommandParams)
    confidence: float = Field(ge=0.0, le=1.0)
    original_matched_text: str
    rule_id: str


class CommandError(BaseModel):
    """A message addressed to the bot that could not be resolved into a command."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: ErrorKind
    command: CommandName | None = None
    errors: list[str] = Field(default_factory=list)
    missing: dict[str, bool] = Field(default_factory=dict)
