"""Postgres-backed challenge store.

Each challenge is one row holding the full record as JSONB plus the columns needed for lookups.
`update` locks the row with `SELECT ... FOR UPDATE`, so writers to the same challenge are serialized
across processes, not just within one event loop.
"""

from __future__ import annotations

import logging

from psycopg import errors
from psycopg.types.json import Jsonb
from psycopg_pool import AsyncConnectionPool

from fitbounty.challenges.models import (
    Challenge,
    ChallengeNotFoundError,
    ChallengeStatus,
    DuplicateChallengeError,
    utc_now,
)
from fitbounty.challenges.store import Mutator
from fitbounty.db.pool import get_conn

logger = logging.getLogger(__name__)

_INSERT_SQL = """
    INSERT INTO challenges (id, owner_identity, kind, status, origin_message_id, record, created_at, updated_at)
    VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
"""

_UPDATE_SQL = """
    UPDATE challenges
    SET status     = %s,
        record     = %s,
        updated_at = %s
    WHERE id = %s
"""

_CLAIM_OPEN_SQL = """
    INSERT INTO owner_open_challenges (owner_identity, challenge_id)
    VALUES (%s, %s)
    ON CONFLICT (owner_identity) DO NOTHING
"""


def _record(challenge: Challenge) -> Jsonb:
    return Jsonb(challenge.model_dump(mode="json"))


class PostgresChallengeStore:
    """`ChallengeStore` over the `challenges` and `owner_open_challenges` tables."""

    def __init__(self, pool: AsyncConnectionPool) -> None:
        self._pool = pool

    async def add(self, challenge: Challenge) -> Challenge:
        async with get_conn(self._pool) as conn:
            try:
                async with conn.transaction():
                    await conn.execute(
                        _INSERT_SQL,
                        (
                            challenge.id,
                            challenge.owner_identity,
                            str(challenge.kind),
                            str(challenge.status),
                            challenge.origin.message_id,
                            _record(challenge),
                            challenge.created_at,
                            challenge.updated_at,
                        ),
                    )
                    if not challenge.status.is_terminal:
                        claim = await conn.execute(_CLAIM_OPEN_SQL, (challenge.owner_identity, challenge.id))
                        if claim.rowcount == 0:
                            raise DuplicateChallengeError(
                                f"owner {challenge.owner_identity} already has an open challenge"
                            )
            except errors.UniqueViolation as exc:
                raise ValueError(f"challenge {challenge.id} already exists") from exc
        return challenge.model_copy(deep=True)

    async def _fetch_one(self, query: str, params: tuple[object, ...]) -> Challenge | None:
        async with get_conn(self._pool) as conn:
            async with conn.cursor() as cur:
                await cur.execute(query, params)
                row = await cur.fetchone()
        return Challenge.model_validate(row[0]) if row else None

    async def get(self, challenge_id: str) -> Challenge | None:
        return await self._fetch_one("SELECT record FROM challenges WHERE id = %s", (challenge_id,))

    async def open_for_owner(self, owner_identity: str) -> Challenge | None:
        return await self._fetch_one(
            """
            SELECT c.record
            FROM owner_open_challenges o
                     JOIN challenges c ON c.id = o.challenge_id
            WHERE o.owner_identity = %s
            """,
            (owner_identity,),
        )

    async def find_by_origin_message(self, message_id: str) -> Challenge | None:
        return await self._fetch_one(
            """
            SELECT record
            FROM challenges
            WHERE origin_message_id = %s
            ORDER BY created_at
            LIMIT 1
            """,
            (message_id,),
        )

    async def list_challenges(
            self,
            *,
            owner_identity: str | None = None,
            status: ChallengeStatus | None = None,
    ) -> list[Challenge]:
        status_value = str(status) if status is not None else None
        async with get_conn(self._pool) as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    SELECT record
                    FROM challenges
                    WHERE (%s::text IS NULL OR owner_identity = %s)
                      AND (%s::text IS NULL OR status = %s)
                    ORDER BY created_at
                    """,
                    (owner_identity, owner_identity, status_value, status_value),
                )
                rows = await cur.fetchall()
        return [Challenge.model_validate(row[0]) for row in rows]

    async def update(self, challenge_id: str, mutate: Mutator) -> Challenge:
        async with get_conn(self._pool) as conn:
            async with conn.transaction():
                async with conn.cursor() as cur:
                    await cur.execute(
                        "SELECT record FROM challenges WHERE id = %s FOR UPDATE",
                        (challenge_id,),
                    )
                    row = await cur.fetchone()
                if row is None:
                    raise ChallengeNotFoundError(challenge_id)

                # A raising mutator aborts the transaction and leaves the row untouched.
                working = Challenge.model_validate(row[0])
                mutate(working)
                working.updated_at = utc_now()

                await conn.execute(
                    _UPDATE_SQL,
                    (str(working.status), _record(working), working.updated_at, challenge_id),
                )
                if working.status.is_terminal:
                    await conn.execute(
                        "DELETE FROM owner_open_challenges WHERE owner_identity = %s AND challenge_id = %s",
                        (working.owner_identity, challenge_id),
                    )
        return working

    async def delete(self, challenge_id: str) -> bool:
        async with get_conn(self._pool) as conn:
            async with conn.transaction():
                async with conn.cursor() as cur:
                    await cur.execute(
                        "DELETE FROM challenges WHERE id = %s RETURNING id",
                        (challenge_id,),
                    )
                    row = await cur.fetchone()
        if row:
            logger.debug("challenge row deleted challenge_id=%s", challenge_id)
        return row is not None
