"""Domain constraints for resolved commands.

The validator never raises; it returns an ordered list of human-readable problems. An empty list
means the command may be executed.
"""

from __future__ import annotations

from fitbounty.intent.schema import CommandName, CommandParams

MIN_DURATION = 1
MAX_DURATION = 365
MIN_PENALTY = 1
MAX_PENALTY = 100_000
MIN_EXERCISE_COUNT = 1
MIN_BOUNTY = 1
DEFAULT_DURATION_DAYS = 3
INVOICE_EXPIRY_SECONDS = 3600


def _duration_errors(duration: int | None) -> list[str]:
    if duration is None or duration < MIN_DURATION:
        return [f"Duration must be at least {MIN_DURATION} day(s)"]
    if duration > MAX_DURATION:
        return [f"Duration cannot exceed {MAX_DURATION} days"]
    return []


def _exercise_errors(params: CommandParams) -> list[str]:
    errors: list[str] = []
    if not params.exercise:
        errors.append("Exercise description is required")
    if params.exercise_count is None or params.exercise_count < MIN_EXERCISE_COUNT:
        errors.append(f"Exercise count must be at least {MIN_EXERCISE_COUNT}")
    return errors


def validate_command(command: CommandName, params: CommandParams) -> list[str]:
    """Validate extracted params for a command.

    Returns:
        A list of error messages in a stable order (empty when valid).
    """

    errors: list[str] = []

    if command == CommandName.create_penalty_challenge:
        errors.extend(_exercise_errors(params))
        errors.extend(_duration_errors(params.duration))
        if params.penalty_amount is None or params.penalty_amount < MIN_PENALTY:
            errors.append(f"Penalty must be at least {MIN_PENALTY} sats")
        elif params.penalty_amount > MAX_PENALTY:
            errors.append(f"Penalty cannot exceed {MAX_PENALTY} sats")
        if not params.penalty_recipient:
            errors.append("Penalty recipient must be specified (e.g., @username)")

    elif command == CommandName.create_bounty_challenge:
        errors.extend(_exercise_errors(params))
        errors.extend(_duration_errors(params.duration))

    elif command == CommandName.set_bounty:
        if params.amount is None or params.amount < MIN_BOUNTY:
            errors.append(f"Bounty amount must be at least {MIN_BOUNTY} sat")

    return errors


def missing_fields(command: CommandName, params: CommandParams) -> dict[str, bool]:
    """Flags for required fields that are absent (used by error responses)."""

    if command == CommandName.create_penalty_challenge:
        return {
            "exercise": not params.exercise,
            "duration": params.duration is None,
            "penalty_amount": params.penalty_amount is None,
            "penalty_recipient": not params.penalty_recipient,
        }
    if command == CommandName.create_bounty_challenge:
        return {"exercise": not params.exercise, "duration": params.duration is None}
    if command == CommandName.set_bounty:
        return {"amount": params.amount is None}
    return {}
