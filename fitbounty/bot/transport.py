"""Transport boundary.

The relay network (subscriptions, event signing, publishing) lives outside this package. The bot
sees inbound mentions as `MentionEvent` values and answers through a `ReplyPublisher`.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import AsyncIterator
from typing import Protocol, TextIO

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class MentionEvent(BaseModel):
    """A post that mentions the bot."""

    model_config = ConfigDict(frozen=True)

    text: str
    sender_identity: str
    message_id: str
    relay_origin: str | None = None
    metadata_tags: list[list[str]] = Field(default_factory=list)

    @property
    def reply_target_id(self) -> str | None:
        """Id of the post this one replies to (first `e` tag), if any."""

        for tag in self.metadata_tags:
            if len(tag) >= 2 and tag[0] == "e":
                return tag[1]
        return None


class ReplyPublisher(Protocol):
    async def publish_reply(self, original_message_id: str, text: str) -> int:
        """Publish a reply and return the number of destinations that accepted it."""
        ...


class ConsoleTransport:
    """Line-oriented local transport: each stdin line is a mention from one fixed identity."""

    def __init__(
            self,
            identity: str,
            *,
            stream_in: TextIO | None = None,
            stream_out: TextIO | None = None,
    ) -> None:
        self._identity = identity
        self._in = stream_in or sys.stdin
        self._out = stream_out or sys.stdout
        self._counter = 0

    async def events(self) -> AsyncIterator[MentionEvent]:
        while True:
            line = await asyncio.to_thread(self._in.readline)
            if not line:
                return

            text = line.strip()
            if not text:
                continue

            self._counter += 1
            yield MentionEvent(
                text=text,
                sender_identity=self._identity,
                message_id=f"console-{self._counter}",
                relay_origin="console",
            )

    async def publish_reply(self, original_message_id: str, text: str) -> int:
        self._out.write(f"[reply to {original_message_id}]\n{text}\n\n")
        self._out.flush()
        return 1
