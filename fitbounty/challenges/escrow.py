"""Escrow payment monitor.

One asyncio task per `pending_payment` challenge polls the payment backend: first after a fixed
initial delay, then at a fixed interval. A paid invoice activates the challenge (paid wins over
expired when both are reported); an expired invoice expires it. Backend errors are logged and the
poll is retried on the next tick.

The challenge status is re-read before every poll and before every reschedule, so a late poll can
never resurrect a challenge that already left `pending_payment`.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from fitbounty.challenges.models import ChallengeNotFoundError, ChallengeStateError, ChallengeStatus
from fitbounty.payments.client import PaymentClient, PaymentError

if TYPE_CHECKING:
    from fitbounty.challenges.lifecycle import ChallengeLifecycle

logger = logging.getLogger(__name__)

DEFAULT_INITIAL_DELAY_S = 10.0
DEFAULT_INTERVAL_S = 30.0


class EscrowMonitor:
    """Schedules and tracks per-challenge payment polling tasks."""

    def __init__(
            self,
            lifecycle: ChallengeLifecycle,
            payments: PaymentClient,
            *,
            initial_delay_s: float = DEFAULT_INITIAL_DELAY_S,
            interval_s: float = DEFAULT_INTERVAL_S,
    ) -> None:
        self._lifecycle = lifecycle
        self._payments = payments
        self._initial_delay_s = initial_delay_s
        self._interval_s = interval_s
        self._tasks: dict[str, asyncio.Task[None]] = {}

    def watch(self, challenge_id: str, payment_hash: str) -> asyncio.Task[None]:
        """Start polling for a challenge (idempotent while a task is running)."""

        task = self._tasks.get(challenge_id)
        if task is not None and not task.done():
            return task

        task = asyncio.create_task(
            self._run(challenge_id, payment_hash),
            name=f"escrow-monitor-{challenge_id}",
        )
        self._tasks[challenge_id] = task
        task.add_done_callback(lambda done, cid=challenge_id: self._forget(cid, done))
        logger.info("monitoring escrow challenge_id=%s", challenge_id)
        return task

    def is_watching(self, challenge_id: str) -> bool:
        task = self._tasks.get(challenge_id)
        return task is not None and not task.done()

    def cancel(self, challenge_id: str) -> None:
        """Stop polling for a challenge. A task never cancels itself."""

        task = self._tasks.get(challenge_id)
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()

    async def close(self) -> None:
        """Cancel all polling tasks and wait for them to finish."""

        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    def _forget(self, challenge_id: str, task: asyncio.Task[None]) -> None:
        if self._tasks.get(challenge_id) is task:
            del self._tasks[challenge_id]

    async def _still_pending(self, challenge_id: str) -> bool:
        challenge = await self._lifecycle.store.get(challenge_id)
        return challenge is not None and challenge.status == ChallengeStatus.pending_payment

    async def poll_once(self, challenge_id: str, payment_hash: str) -> bool:
        """Run a single status check.

        Returns:
            `True` when monitoring is finished for this challenge, `False` to poll again.
        """

        if not await self._still_pending(challenge_id):
            return True

        try:
            status = await self._payments.invoice_status(payment_hash)
        except PaymentError as exc:
            logger.warning("escrow status query failed challenge_id=%s reason=%s", challenge_id, exc)
            return False

        try:
            if status.paid:
                await self._lifecycle.activate(challenge_id, payment_hash)
                return True
            if status.expired:
                await self._lifecycle.expire(challenge_id)
                return True
        except (ChallengeStateError, ChallengeNotFoundError) as exc:
            # Resolved elsewhere between the status check and the transition.
            logger.info("stale escrow poll challenge_id=%s reason=%s", challenge_id, exc)
            return True

        return False

    async def _run(self, challenge_id: str, payment_hash: str) -> None:
        await asyncio.sleep(self._initial_delay_s)

        while True:
            # noinspection PyBroadException
            try:
                if await self.poll_once(challenge_id, payment_hash):
                    return
                if not await self._still_pending(challenge_id):
                    return
            except Exception:
                # Monitor boundary: a failing poll must not kill the loop.
                logger.exception("escrow poll failed challenge_id=%s", challenge_id)

            await asyncio.sleep(self._interval_s)
