"""Application composition root.

Wires settings, the challenge store, the payment backend, the lifecycle manager and the command
executor together for the bot runtime.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from psycopg_pool import AsyncConnectionPool

from fitbounty.bot.commands import CommandExecutor
from fitbounty.challenges.lifecycle import ChallengeLifecycle
from fitbounty.challenges.store import ChallengeStore, InMemoryChallengeStore
from fitbounty.config.settings import Settings
from fitbounty.db.pool import create_pool
from fitbounty.db.store import PostgresChallengeStore
from fitbounty.payments.client import PaymentClient
from fitbounty.payments.lnbits import LNbitsClient, LNbitsConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class App:
    """Shared application dependencies for handlers."""

    settings: Settings
    store: ChallengeStore
    payments: PaymentClient
    lifecycle: ChallengeLifecycle
    executor: CommandExecutor
    pool: AsyncConnectionPool | None = None


def create_app(
        settings: Settings,
        *,
        store: ChallengeStore | None = None,
        payments: PaymentClient | None = None,
) -> App:
    """Create the application container.

    Note:
        A Postgres pool (when `DATABASE_URL` is set) is created closed. Call `await open_app(app)`
        at startup.
    """

    pool = None
    if store is None:
        if settings.database_url:
            pool = create_pool(settings.database_url, max_size=10)
            store = PostgresChallengeStore(pool)
        else:
            logger.warning("DATABASE_URL not set; challenges are kept in memory only")
            store = InMemoryChallengeStore()

    if payments is None:
        payments = LNbitsClient(
            LNbitsConfig(
                api_key=settings.lnbits_api_key,
                base_url=settings.lnbits_url,
                timeout_s=settings.lnbits_timeout_s,
            )
        )

    lifecycle = ChallengeLifecycle(
        store,
        payments,
        invoice_expiry_s=settings.invoice_expiry_s,
        monitor_initial_delay_s=settings.monitor_initial_delay_s,
        monitor_interval_s=settings.monitor_interval_s,
    )
    return App(
        settings=settings,
        store=store,
        payments=payments,
        lifecycle=lifecycle,
        executor=CommandExecutor(lifecycle),
        pool=pool,
    )


async def open_app(app: App) -> None:
    """Open the DB pool and resume escrow monitors for unpaid challenges."""

    if app.pool is not None:
        await app.pool.open(wait=True)
    await app.lifecycle.resume_monitors()


async def close_app(app: App) -> None:
    await app.lifecycle.close()
    if app.pool is not None:
        await app.pool.close()
