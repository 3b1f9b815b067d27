"""Challenge lifecycle manager.

Every state change goes through the store's single-writer `update` path, and the transition check
runs inside the mutator so that concurrent callers (command handler, escrow monitor, evaluator)
cannot both move the same challenge out of a state.
"""

from __future__ import annotations

import logging
from datetime import datetime

from fitbounty.challenges.escrow import DEFAULT_INITIAL_DELAY_S, DEFAULT_INTERVAL_S, EscrowMonitor
from fitbounty.challenges.models import (
    Bounty,
    BountyPledge,
    Challenge,
    ChallengeKind,
    ChallengeNotFoundError,
    ChallengeStateError,
    ChallengeStatus,
    DailyProgress,
    DuplicateChallengeError,
    Duration,
    Escrow,
    Exercise,
    MessageOrigin,
    Penalty,
    utc_now,
)
from fitbounty.challenges.store import ChallengeStore, KeyedLocks
from fitbounty.intent.schema import CommandParams
from fitbounty.intent.validation import DEFAULT_DURATION_DAYS, INVOICE_EXPIRY_SECONDS
from fitbounty.payments.client import Invoice, PaymentClient

logger = logging.getLogger(__name__)

_SETTLEMENT_IN_FLIGHT = "in_flight"


def _exercise(params: CommandParams) -> Exercise:
    count = params.exercise_count or 0
    exercise_type = params.exercise_type or ""
    return Exercise(
        description=params.exercise or f"{count} {exercise_type}".strip(),
        normalized_type=exercise_type,
        count_per_period=count,
        frequency=params.frequency,
        full_description=params.full_description or params.exercise or "",
    )


class ChallengeLifecycle:
    """Creates challenges and drives them through their states."""

    def __init__(
            self,
            store: ChallengeStore,
            payments: PaymentClient,
            *,
            invoice_expiry_s: int = INVOICE_EXPIRY_SECONDS,
            monitor_initial_delay_s: float = DEFAULT_INITIAL_DELAY_S,
            monitor_interval_s: float = DEFAULT_INTERVAL_S,
    ) -> None:
        self.store = store
        self.payments = payments
        self.invoice_expiry_s = invoice_expiry_s
        self.monitor = EscrowMonitor(
            self,
            payments,
            initial_delay_s=monitor_initial_delay_s,
            interval_s=monitor_interval_s,
        )
        self._owner_locks = KeyedLocks()

    async def _require(self, challenge_id: str) -> Challenge:
        challenge = await self.store.get(challenge_id)
        if challenge is None:
            raise ChallengeNotFoundError(challenge_id)
        return challenge

    async def _ensure_no_open_challenge(self, owner_identity: str) -> None:
        """Apply the one-open-challenge-per-owner rule.

        An unpaid challenge still blocks: its invoice can be paid until it lapses.
        """

        existing = await self.store.open_for_owner(owner_identity)
        if existing is not None:
            raise DuplicateChallengeError(
                f"owner already has an open challenge in status {existing.status}: "
                f"{existing.exercise.full_description}"
            )

    async def create_penalty_challenge(
            self,
            owner_identity: str,
            params: CommandParams,
            origin: MessageOrigin | None = None,
    ) -> tuple[Challenge, Invoice]:
        """Create a penalty challenge awaiting its escrow payment.

        Raises:
            DuplicateChallengeError: The owner already has an open challenge.
            PaymentError: The escrow invoice could not be created; nothing is persisted.
        """

        if params.penalty_amount is None or not params.penalty_recipient:
            raise ValueError("penalty challenge requires penalty_amount and penalty_recipient")

        challenge = Challenge(
            kind=ChallengeKind.penalty,
            owner_identity=owner_identity,
            exercise=_exercise(params),
            duration=Duration(days=params.duration or DEFAULT_DURATION_DAYS),
            penalty=Penalty(
                amount_sats=params.penalty_amount,
                recipient_identity=params.penalty_recipient,
                recipient_identity_key=params.penalty_recipient_key,
            ),
            origin=origin or MessageOrigin(),
        )

        # Held across the invoice request so two creates for one owner cannot both pass the check.
        async with self._owner_locks.hold(owner_identity):
            await self._ensure_no_open_challenge(owner_identity)

            invoice = await self.payments.create_invoice(
                challenge.penalty.amount_sats,
                f"FitBounty escrow: {challenge.exercise.full_description}",
                self.invoice_expiry_s,
            )
            challenge.escrow = Escrow(
                invoice_reference=invoice.payment_request,
                payment_hash=invoice.payment_hash,
            )

            stored = await self.store.add(challenge)
        self.monitor.watch(stored.id, invoice.payment_hash)

        logger.info(
            "penalty challenge created challenge_id=%s owner=%s amount_sats=%s days=%s",
            stored.id,
            owner_identity,
            challenge.penalty.amount_sats,
            challenge.duration.days,
        )
        return stored, invoice

    async def create_bounty_challenge(
            self,
            owner_identity: str,
            params: CommandParams,
            origin: MessageOrigin | None = None,
    ) -> Challenge:
        """Create a bounty challenge. No escrow is owed, so it starts active."""

        challenge = Challenge(
            kind=ChallengeKind.bounty,
            owner_identity=owner_identity,
            exercise=_exercise(params),
            duration=Duration(days=params.duration or DEFAULT_DURATION_DAYS),
            bounty=Bounty(),
            origin=origin or MessageOrigin(),
        )
        challenge.mark_activated(None, utc_now())

        async with self._owner_locks.hold(owner_identity):
            await self._ensure_no_open_challenge(owner_identity)
            stored = await self.store.add(challenge)

        logger.info(
            "bounty challenge created challenge_id=%s owner=%s days=%s",
            stored.id,
            owner_identity,
            challenge.duration.days,
        )
        return stored

    async def pledge_bounty(
            self,
            challenge_id: str,
            contributor_identity: str,
            amount_sats: int,
    ) -> tuple[Challenge, Invoice]:
        """Record a pledge towards a bounty challenge and return the pledge invoice."""

        challenge = await self._require(challenge_id)
        if challenge.kind != ChallengeKind.bounty or challenge.status.is_terminal:
            raise ChallengeStateError(f"challenge {challenge_id} does not accept bounty pledges")

        invoice = await self.payments.create_invoice(
            amount_sats,
            f"FitBounty bounty: {challenge.exercise.full_description}",
            self.invoice_expiry_s,
        )

        def _pledge(current: Challenge) -> None:
            if current.kind != ChallengeKind.bounty or current.status.is_terminal:
                raise ChallengeStateError(f"challenge {challenge_id} does not accept bounty pledges")
            bounty = current.bounty or Bounty()
            bounty.contributors.append(
                BountyPledge(
                    contributor_identity=contributor_identity,
                    amount_sats=amount_sats,
                    payment_request=invoice.payment_request,
                    payment_hash=invoice.payment_hash,
                )
            )
            bounty.amount_sats += amount_sats
            current.bounty = bounty

        updated = await self.store.update(challenge_id, _pledge)
        logger.info(
            "bounty pledged challenge_id=%s contributor=%s amount_sats=%s total_sats=%s",
            challenge_id,
            contributor_identity,
            amount_sats,
            updated.bounty.amount_sats if updated.bounty else amount_sats,
        )
        return updated, invoice

    async def activate(self, challenge_id: str, payment_confirmation_id: str | None) -> Challenge:
        """Escrow was paid: `pending_payment → active`."""

        now = utc_now()
        updated = await self.store.update(
            challenge_id, lambda current: current.mark_activated(payment_confirmation_id, now)
        )
        self.monitor.cancel(challenge_id)
        logger.info("challenge activated challenge_id=%s ends=%s", challenge_id, updated.duration.end_date)
        return updated

    async def expire(self, challenge_id: str) -> Challenge:
        """Escrow invoice lapsed unpaid: `pending_payment → expired`."""

        def _expire(current: Challenge) -> None:
            if current.status != ChallengeStatus.pending_payment:
                raise ChallengeStateError(
                    f"cannot expire challenge {challenge_id} in status {current.status}"
                )
            current.transition(ChallengeStatus.expired)

        updated = await self.store.update(challenge_id, _expire)
        self.monitor.cancel(challenge_id)
        logger.info("challenge expired challenge_id=%s", challenge_id)
        return updated

    async def record_daily_progress(
            self,
            challenge_id: str,
            day: int,
            completed: bool,
            proof_reference: str | None = None,
    ) -> Challenge:
        """Upsert the progress entry for one day of an active challenge."""

        def _record(current: Challenge) -> None:
            if current.status != ChallengeStatus.active:
                raise ChallengeStateError(
                    f"cannot record progress for challenge {challenge_id} in status {current.status}"
                )
            if day < 1 or day > current.duration.days:
                raise ValueError(f"day must be between 1 and {current.duration.days}, got {day}")
            current.daily_progress[day] = DailyProgress(
                completed=completed,
                proof_reference=proof_reference,
            )

        updated = await self.store.update(challenge_id, _record)
        logger.info(
            "progress recorded challenge_id=%s day=%s completed=%s",
            challenge_id,
            day,
            completed,
        )
        return updated

    async def challenges_needing_check(self, now: datetime | None = None) -> list[Challenge]:
        """Active challenges whose end date has passed and await evaluation."""

        current = now or utc_now()
        active = await self.store.list_challenges(status=ChallengeStatus.active)
        return [
            challenge
            for challenge in active
            if challenge.duration.end_date is not None and challenge.duration.end_date < current
        ]

    async def finish(self, challenge_id: str, succeeded: bool) -> Challenge:
        """Record the evaluation outcome: `active → completed | failed`."""

        target = ChallengeStatus.completed if succeeded else ChallengeStatus.failed
        now = utc_now()

        def _finish(current: Challenge) -> None:
            current.transition(target)
            current.completed_at = now

        updated = await self.store.update(challenge_id, _finish)
        logger.info("challenge finished challenge_id=%s status=%s", challenge_id, target)
        return updated

    async def settle_escrow(self, challenge_id: str, destination_invoice: str) -> Challenge:
        """Pay out the captured escrow of a finished penalty challenge, exactly once.

        A completed challenge is refunded to the owner and a failed one pays the penalty recipient;
        the caller supplies the matching destination invoice.
        """

        def _claim(current: Challenge) -> None:
            if current.kind != ChallengeKind.penalty:
                raise ChallengeStateError(f"challenge {challenge_id} holds no escrow")
            if current.status not in (ChallengeStatus.completed, ChallengeStatus.failed):
                raise ChallengeStateError(
                    f"cannot settle challenge {challenge_id} in status {current.status}"
                )
            if not current.escrow.paid:
                raise ChallengeStateError(f"challenge {challenge_id} escrow was never paid")
            if current.escrow.settlement_reference is not None:
                raise ChallengeStateError(f"challenge {challenge_id} escrow already settled")
            current.escrow.settlement_reference = _SETTLEMENT_IN_FLIGHT

        claimed = await self.store.update(challenge_id, _claim)

        try:
            payment_hash = await self.payments.pay(destination_invoice)
        except BaseException as exc:
            # Release the claim on any failure, cancellation included, so settlement can be retried.
            await self.store.update(
                challenge_id, lambda current: setattr(current.escrow, "settlement_reference", None)
            )
            logger.warning(
                "escrow settlement failed challenge_id=%s reason=%s", challenge_id, type(exc).__name__
            )
            raise

        def _settled(current: Challenge) -> None:
            current.escrow.settlement_reference = payment_hash

        updated = await self.store.update(challenge_id, _settled)
        logger.info(
            "escrow settled challenge_id=%s status=%s disposition=%s",
            challenge_id,
            claimed.status,
            "refund" if claimed.status == ChallengeStatus.completed else "recipient",
        )
        return updated

    async def delete(self, challenge_id: str) -> bool:
        self.monitor.cancel(challenge_id)
        deleted = await self.store.delete(challenge_id)
        if deleted:
            logger.info("challenge deleted challenge_id=%s", challenge_id)
        return deleted

    async def resume_monitors(self) -> int:
        """Re-register payment monitors for stored challenges still awaiting escrow."""

        pending = await self.store.list_challenges(status=ChallengeStatus.pending_payment)
        resumed = 0
        for challenge in pending:
            if challenge.escrow.payment_hash:
                self.monitor.watch(challenge.id, challenge.escrow.payment_hash)
                resumed += 1
        if resumed:
            logger.info("escrow monitors resumed count=%s", resumed)
        return resumed

    async def close(self) -> None:
        await self.monitor.close()
