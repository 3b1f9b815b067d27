"""Challenge storage.

Stores hold challenge records plus an index from owner identity to that owner's single open
(non-terminal) challenge. All mutations of an existing record go through `update`, which serializes
writers per challenge id. Stores hand out copies; mutating a returned record has no effect until it
is written back through `update`.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Protocol

from fitbounty.challenges.models import (
    Challenge,
    ChallengeNotFoundError,
    ChallengeStatus,
    DuplicateChallengeError,
    utc_now,
)

Mutator = Callable[[Challenge], None]


class KeyedLocks:
    """One `asyncio.Lock` per key, kept only while some task holds or awaits it."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]


class ChallengeStore(Protocol):
    """Keyed challenge storage with a one-open-challenge-per-owner index."""

    async def add(self, challenge: Challenge) -> Challenge: ...

    async def get(self, challenge_id: str) -> Challenge | None: ...

    async def open_for_owner(self, owner_identity: str) -> Challenge | None: ...

    async def find_by_origin_message(self, message_id: str) -> Challenge | None: ...

    async def list_challenges(
            self,
            *,
            owner_identity: str | None = None,
            status: ChallengeStatus | None = None,
    ) -> list[Challenge]: ...

    async def update(self, challenge_id: str, mutate: Mutator) -> Challenge: ...

    async def delete(self, challenge_id: str) -> bool: ...


class InMemoryChallengeStore:
    """Process-local store backed by dicts, with one `asyncio.Lock` per challenge id in use."""

    def __init__(self) -> None:
        self._challenges: dict[str, Challenge] = {}
        self._open_by_owner: dict[str, str] = {}
        self._locks = KeyedLocks()
        self._index_lock = asyncio.Lock()

    async def add(self, challenge: Challenge) -> Challenge:
        async with self._index_lock:
            if challenge.id in self._challenges:
                raise ValueError(f"challenge {challenge.id} already exists")
            if not challenge.status.is_terminal:
                open_id = self._open_by_owner.get(challenge.owner_identity)
                if open_id is not None:
                    raise DuplicateChallengeError(
                        f"owner {challenge.owner_identity} already has open challenge {open_id}"
                    )
            stored = challenge.model_copy(deep=True)
            self._challenges[stored.id] = stored
            if not stored.status.is_terminal:
                self._open_by_owner[stored.owner_identity] = stored.id
        return stored.model_copy(deep=True)

    async def get(self, challenge_id: str) -> Challenge | None:
        challenge = self._challenges.get(challenge_id)
        return challenge.model_copy(deep=True) if challenge else None

    async def open_for_owner(self, owner_identity: str) -> Challenge | None:
        challenge_id = self._open_by_owner.get(owner_identity)
        if challenge_id is None:
            return None
        return await self.get(challenge_id)

    async def find_by_origin_message(self, message_id: str) -> Challenge | None:
        for challenge in self._challenges.values():
            if challenge.origin.message_id == message_id:
                return challenge.model_copy(deep=True)
        return None

    async def list_challenges(
            self,
            *,
            owner_identity: str | None = None,
            status: ChallengeStatus | None = None,
    ) -> list[Challenge]:
        return [
            challenge.model_copy(deep=True)
            for challenge in self._challenges.values()
            if (owner_identity is None or challenge.owner_identity == owner_identity)
            and (status is None or challenge.status == status)
        ]

    async def update(self, challenge_id: str, mutate: Mutator) -> Challenge:
        async with self._locks.hold(challenge_id):
            current = self._challenges.get(challenge_id)
            if current is None:
                raise ChallengeNotFoundError(challenge_id)

            # Mutate a copy so a failing mutator leaves the stored record untouched.
            working = current.model_copy(deep=True)
            mutate(working)
            working.updated_at = utc_now()

            async with self._index_lock:
                self._challenges[challenge_id] = working
                if (
                        working.status.is_terminal
                        and self._open_by_owner.get(working.owner_identity) == challenge_id
                ):
                    del self._open_by_owner[working.owner_identity]

        return working.model_copy(deep=True)

    async def delete(self, challenge_id: str) -> bool:
        async with self._locks.hold(challenge_id):
            async with self._index_lock:
                challenge = self._challenges.pop(challenge_id, None)
                if challenge is None:
                    return False
                if self._open_by_owner.get(challenge.owner_identity) == challenge_id:
                    del self._open_by_owner[challenge.owner_identity]
        return True
