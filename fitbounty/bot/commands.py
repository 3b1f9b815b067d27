"""Command execution.

Turns a resolved command into lifecycle calls and a `CommandResponse`. Expected domain failures
(duplicate challenge, payment backend down, missing bounty target) become error replies here;
anything else propagates to the handler boundary.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from fitbounty.bot import messages
from fitbounty.challenges.lifecycle import ChallengeLifecycle
from fitbounty.challenges.models import (
    Challenge,
    ChallengeKind,
    ChallengeStateError,
    ChallengeStatus,
    DuplicateChallengeError,
    MessageOrigin,
)
from fitbounty.intent.schema import CommandError, CommandName, CommandParams, ParsedCommand
from fitbounty.payments.client import Invoice, PaymentError

logger = logging.getLogger(__name__)


class ResponseType(StrEnum):
    penalty_bet_created = "penalty_bet_created"
    bounty_challenge_created = "bounty_challenge_created"
    bounty_set = "bounty_set"
    challenge_status = "challenge_status"
    no_challenge = "no_challenge"
    leaderboard = "leaderboard"
    help = "help"
    error = "error"


class CommandResponse(BaseModel):
    """What the bot answers (if anything) and the records the command touched."""

    model_config = ConfigDict(frozen=True)

    type: ResponseType
    message: str
    should_reply: bool = True
    challenge: Challenge | None = None
    invoice: Invoice | None = None


@dataclass(frozen=True)
class CommandContext:
    """Who sent the command and where it came from."""

    sender_identity: str
    message_id: str | None = None
    relay_origin: str | None = None
    original_text: str = ""
    reply_target_id: str | None = None
    tags: Sequence[Sequence[str]] = field(default_factory=tuple)

    def origin(self) -> MessageOrigin:
        return MessageOrigin(
            message_id=self.message_id,
            relay_origin=self.relay_origin,
            original_text=self.original_text,
        )


def error_response(message: str) -> CommandResponse:
    return CommandResponse(type=ResponseType.error, message=message)


def respond_to_error(error: CommandError) -> CommandResponse:
    """Reply for a post that addressed the bot but did not resolve into a command."""

    return error_response(messages.command_error(error))


Handler = Callable[[CommandParams, CommandContext], Awaitable[CommandResponse]]


class CommandExecutor:
    def __init__(self, lifecycle: ChallengeLifecycle, *, leaderboard_size: int = 3) -> None:
        self._lifecycle = lifecycle
        self._leaderboard_size = leaderboard_size
        self._handlers: dict[CommandName, Handler] = {
            CommandName.create_penalty_challenge: self._create_penalty_challenge,
            CommandName.create_bounty_challenge: self._create_bounty_challenge,
            CommandName.set_bounty: self._set_bounty,
            CommandName.get_status: self._get_status,
            CommandName.get_leaderboard: self._get_leaderboard,
            CommandName.show_help: self._show_help,
        }

    async def execute(self, command: ParsedCommand, context: CommandContext) -> CommandResponse:
        logger.info(
            "executing command=%s rule=%s confidence=%.2f sender=%s",
            command.command,
            command.rule_id,
            command.confidence,
            context.sender_identity,
        )

        handler = self._handlers.get(command.command)
        if handler is None:
            logger.error("unknown command=%s", command.command)
            return error_response(messages.UNKNOWN_COMMAND)

        try:
            return await handler(command.params, context)
        except DuplicateChallengeError:
            existing = await self._lifecycle.store.open_for_owner(context.sender_identity)
            logger.info("duplicate challenge refused sender=%s", context.sender_identity)
            return error_response(messages.duplicate_challenge(existing))
        except PaymentError as exc:
            logger.warning("payment backend unavailable command=%s reason=%s", command.command, exc)
            return error_response(messages.payment_unavailable())

    async def _create_penalty_challenge(
            self, params: CommandParams, context: CommandContext
    ) -> CommandResponse:
        challenge, invoice = await self._lifecycle.create_penalty_challenge(
            context.sender_identity, params, context.origin()
        )
        return CommandResponse(
            type=ResponseType.penalty_bet_created,
            message=messages.penalty_accepted(challenge, invoice),
            challenge=challenge,
            invoice=invoice,
        )

    async def _create_bounty_challenge(
            self, params: CommandParams, context: CommandContext
    ) -> CommandResponse:
        challenge = await self._lifecycle.create_bounty_challenge(
            context.sender_identity, params, context.origin()
        )
        return CommandResponse(
            type=ResponseType.bounty_challenge_created,
            message=messages.bounty_created(challenge),
            challenge=challenge,
        )

    async def _set_bounty(self, params: CommandParams, context: CommandContext) -> CommandResponse:
        target = None
        if context.reply_target_id:
            target = await self._lifecycle.store.find_by_origin_message(context.reply_target_id)

        if target is None or target.kind != ChallengeKind.bounty:
            logger.info("bounty target not found reply_to=%s", context.reply_target_id)
            return error_response(messages.NO_BOUNTY_TARGET)

        amount = params.amount or 0
        try:
            challenge, invoice = await self._lifecycle.pledge_bounty(
                target.id, context.sender_identity, amount
            )
        except ChallengeStateError:
            logger.info("bounty target closed challenge_id=%s", target.id)
            return error_response(messages.NO_BOUNTY_TARGET)

        return CommandResponse(
            type=ResponseType.bounty_set,
            message=messages.bounty_pledged(challenge, amount, invoice),
            challenge=challenge,
            invoice=invoice,
        )

    async def _get_status(self, params: CommandParams, context: CommandContext) -> CommandResponse:
        challenge = await self._lifecycle.store.open_for_owner(context.sender_identity)
        if challenge is None:
            history = await self._lifecycle.store.list_challenges(owner_identity=context.sender_identity)
            challenge = max(history, key=lambda c: c.created_at, default=None)

        if challenge is None:
            return CommandResponse(type=ResponseType.no_challenge, message=messages.NO_CHALLENGE)

        return CommandResponse(
            type=ResponseType.challenge_status,
            message=messages.challenge_status(challenge),
            challenge=challenge,
        )

    async def _get_leaderboard(self, params: CommandParams, context: CommandContext) -> CommandResponse:
        challenges = await self._lifecycle.store.list_challenges()
        entries, stats = leaderboard_from(challenges, limit=self._leaderboard_size)
        return CommandResponse(
            type=ResponseType.leaderboard,
            message=messages.leaderboard(entries, stats),
        )

    async def _show_help(self, params: CommandParams, context: CommandContext) -> CommandResponse:
        return CommandResponse(type=ResponseType.help, message=messages.HELP)


def leaderboard_from(
        challenges: Sequence[Challenge],
        *,
        limit: int = 3,
) -> tuple[list[messages.LeaderboardEntry], messages.LeaderboardStats]:
    """Rank owners by completed challenges (ties broken by bounty sats earned)."""

    completed: dict[str, int] = defaultdict(int)
    earned: dict[str, int] = defaultdict(int)
    finished = 0
    succeeded = 0
    staked = 0

    for challenge in challenges:
        if challenge.penalty and challenge.escrow.paid:
            staked += challenge.penalty.amount_sats
        if challenge.bounty:
            staked += challenge.bounty.amount_sats

        if challenge.status in (ChallengeStatus.completed, ChallengeStatus.failed):
            finished += 1
        if challenge.status == ChallengeStatus.completed:
            succeeded += 1
            completed[challenge.owner_identity] += 1
            if challenge.bounty:
                earned[challenge.owner_identity] += challenge.bounty.amount_sats

    ranked = sorted(completed, key=lambda owner: (-completed[owner], -earned[owner], owner))
    entries = [
        messages.LeaderboardEntry(
            owner_identity=owner,
            completed=completed[owner],
            sats_earned=earned[owner],
        )
        for owner in ranked[:limit]
    ]
    stats = messages.LeaderboardStats(
        total_challenges=len(challenges),
        success_rate=round(succeeded / finished * 100) if finished else 0,
        total_sats_staked=staked,
    )
    return entries, stats
