"""Postgres connection helpers.

Challenge timestamps (activation, end dates, pledges) are stored as `TIMESTAMPTZ` and compared in
UTC, so every session, pooled or not, is locked to the UTC timezone.
"""

from __future__ import annotations

import os

import psycopg
from psycopg import AsyncConnection


def require_database_url() -> str:
    """Read `DATABASE_URL` from the environment or raise a clear error."""

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise RuntimeError("DATABASE_URL is required for the Postgres challenge store")
    return database_url


def connect_utc(database_url: str) -> psycopg.Connection:
    """Open a synchronous connection (used by the migration CLI) pinned to UTC."""

    conn = psycopg.connect(database_url)
    conn.execute("SET TIME ZONE 'UTC'", prepare=False)
    return conn


async def ensure_utc(conn: AsyncConnection) -> None:
    """Pin an async session to UTC (pool `configure` hook)."""

    async with conn.cursor() as cur:
        await cur.execute("SET TIME ZONE 'UTC'", prepare=False)
    # Leave the connection idle, not INTRANS, when it goes back to the pool.
    await conn.commit()
