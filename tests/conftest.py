"""Pytest configuration.

The repository uses a flat layout without requiring an installed package. This conftest ensures
tests can import `fitbounty.*` when running `pytest` locally, and provides an in-process payment
backend plus store/lifecycle fixtures.
"""

from __future__ import annotations

import asyncio
import sys
from collections.abc import AsyncIterator
from pathlib import Path

import pytest

# Ensure `import fitbounty...` works when running pytest without installing the package.
REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))

from fitbounty.challenges.lifecycle import ChallengeLifecycle  # noqa: E402
from fitbounty.challenges.store import InMemoryChallengeStore  # noqa: E402
from fitbounty.payments.client import Invoice, InvoiceStatus, PaymentError  # noqa: E402


class FakePaymentClient:
    """Scriptable stand-in for a Lightning wallet."""

    def __init__(self) -> None:
        self.invoices: list[tuple[Invoice, int, str, int]] = []
        self.statuses: dict[str, InvoiceStatus] = {}
        self.paid_destinations: list[str] = []
        self.status_calls = 0
        self.status_errors = 0
        self.fail_create = False
        self.fail_pay = False

    async def create_invoice(self, amount_sats: int, description: str, expiry_seconds: int) -> Invoice:
        # The real client hops to a worker thread here; give other tasks the same chance to run.
        await asyncio.sleep(0)
        if self.fail_create:
            raise PaymentError("wallet unavailable")
        number = len(self.invoices) + 1
        invoice = Invoice(
            payment_request=f"lnbc{amount_sats}n1fake{number}",
            payment_hash=f"{number:064x}",
        )
        self.invoices.append((invoice, amount_sats, description, expiry_seconds))
        return invoice

    async def invoice_status(self, payment_hash: str) -> InvoiceStatus:
        self.status_calls += 1
        if self.status_errors:
            self.status_errors -= 1
            raise PaymentError("status query timed out")
        return self.statuses.get(payment_hash, InvoiceStatus())

    async def pay(self, destination_invoice: str) -> str:
        if self.fail_pay:
            raise PaymentError("route not found")
        self.paid_destinations.append(destination_invoice)
        return f"settlement-{len(self.paid_destinations)}"


@pytest.fixture
def payments() -> FakePaymentClient:
    return FakePaymentClient()


@pytest.fixture
def store() -> InMemoryChallengeStore:
    return InMemoryChallengeStore()


@pytest.fixture
async def lifecycle(
        store: InMemoryChallengeStore,
        payments: FakePaymentClient,
) -> AsyncIterator[ChallengeLifecycle]:
    """Lifecycle whose monitors never fire on their own during a test."""

    manager = ChallengeLifecycle(
        store,
        payments,
        monitor_initial_delay_s=3600,
        monitor_interval_s=3600,
    )
    yield manager
    await manager.close()
