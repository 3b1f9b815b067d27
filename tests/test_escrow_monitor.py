"""Tests for escrow payment polling."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import pytest

from fitbounty.challenges.lifecycle import ChallengeLifecycle
from fitbounty.challenges.models import ChallengeStatus
from fitbounty.intent.schema import CommandParams
from fitbounty.payments.client import InvoiceStatus

_PENALTY = CommandParams(
    exercise="20 pushup",
    exercise_type="pushup",
    exercise_count=20,
    duration=7,
    penalty_amount=1000,
    penalty_recipient="alice",
    full_description="20 pushup daily for 7 days",
)


@pytest.fixture
async def fast_lifecycle(store, payments) -> AsyncIterator[ChallengeLifecycle]:
    manager = ChallengeLifecycle(store, payments, monitor_initial_delay_s=0, monitor_interval_s=0)
    yield manager
    await manager.close()


async def _run_monitor(lifecycle: ChallengeLifecycle, challenge_id: str, payment_hash: str) -> None:
    task = lifecycle.monitor.watch(challenge_id, payment_hash)
    await asyncio.wait_for(task, timeout=2)


@pytest.mark.asyncio
async def test_paid_invoice_activates(fast_lifecycle: ChallengeLifecycle, payments) -> None:
    challenge, invoice = await fast_lifecycle.create_penalty_challenge("bob", _PENALTY)
    payments.statuses[invoice.payment_hash] = InvoiceStatus(paid=True)

    await _run_monitor(fast_lifecycle, challenge.id, invoice.payment_hash)

    stored = await fast_lifecycle.store.get(challenge.id)
    assert stored is not None
    assert stored.status == ChallengeStatus.active
    assert stored.escrow.payment_confirmation_id == invoice.payment_hash


@pytest.mark.asyncio
async def test_paid_takes_precedence_over_expired(fast_lifecycle: ChallengeLifecycle, payments) -> None:
    challenge, invoice = await fast_lifecycle.create_penalty_challenge("bob", _PENALTY)
    payments.statuses[invoice.payment_hash] = InvoiceStatus(paid=True, expired=True)

    await _run_monitor(fast_lifecycle, challenge.id, invoice.payment_hash)

    assert (await fast_lifecycle.store.get(challenge.id)).status == ChallengeStatus.active  # type: ignore[union-attr]


@pytest.mark.asyncio
async def test_expired_invoice_expires_challenge(fast_lifecycle: ChallengeLifecycle, payments) -> None:
    challenge, invoice = await fast_lifecycle.create_penalty_challenge("bob", _PENALTY)
    payments.statuses[invoice.payment_hash] = InvoiceStatus(expired=True)

    await _run_monitor(fast_lifecycle, challenge.id, invoice.payment_hash)

    assert (await fast_lifecycle.store.get(challenge.id)).status == ChallengeStatus.expired  # type: ignore[union-attr]
    assert await fast_lifecycle.store.open_for_owner("bob") is None


@pytest.mark.asyncio
async def test_backend_errors_are_retried(fast_lifecycle: ChallengeLifecycle, payments) -> None:
    challenge, invoice = await fast_lifecycle.create_penalty_challenge("bob", _PENALTY)
    payments.status_errors = 2
    payments.statuses[invoice.payment_hash] = InvoiceStatus(paid=True)

    await _run_monitor(fast_lifecycle, challenge.id, invoice.payment_hash)

    assert payments.status_calls == 3
    assert (await fast_lifecycle.store.get(challenge.id)).status == ChallengeStatus.active  # type: ignore[union-attr]


@pytest.mark.asyncio
async def test_late_poll_is_a_no_op(lifecycle: ChallengeLifecycle, payments) -> None:
    challenge, invoice = await lifecycle.create_penalty_challenge("bob", _PENALTY)
    await lifecycle.activate(challenge.id, "manual-confirmation")
    payments.statuses[invoice.payment_hash] = InvoiceStatus(expired=True)

    finished = await lifecycle.monitor.poll_once(challenge.id, invoice.payment_hash)

    assert finished is True
    assert payments.status_calls == 0
    stored = await lifecycle.store.get(challenge.id)
    assert stored is not None
    assert stored.status == ChallengeStatus.active
    assert stored.escrow.payment_confirmation_id == "manual-confirmation"


@pytest.mark.asyncio
async def test_unpaid_invoice_keeps_polling(lifecycle: ChallengeLifecycle, payments) -> None:
    challenge, invoice = await lifecycle.create_penalty_challenge("bob", _PENALTY)

    assert await lifecycle.monitor.poll_once(challenge.id, invoice.payment_hash) is False
    assert (await lifecycle.store.get(challenge.id)).status == ChallengeStatus.pending_payment  # type: ignore[union-attr]


@pytest.mark.asyncio
async def test_watch_is_idempotent(lifecycle: ChallengeLifecycle) -> None:
    challenge, invoice = await lifecycle.create_penalty_challenge("bob", _PENALTY)

    first = lifecycle.monitor.watch(challenge.id, invoice.payment_hash)
    second = lifecycle.monitor.watch(challenge.id, invoice.payment_hash)

    assert first is second


@pytest.mark.asyncio
async def test_close_cancels_all_monitors(store, payments) -> None:
    manager = ChallengeLifecycle(store, payments, monitor_initial_delay_s=3600)
    challenge, _ = await manager.create_penalty_challenge("bob", _PENALTY)
    assert manager.monitor.is_watching(challenge.id)

    await manager.close()

    assert not manager.monitor.is_watching(challenge.id)
