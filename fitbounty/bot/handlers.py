"""Mention handler.

Contract: a post that addresses the bot gets at most one reply. Internal errors are logged and
answered with a generic apology; their details never reach the network.
"""

from __future__ import annotations

import logging
from time import monotonic

from fitbounty.app import App
from fitbounty.bot import messages
from fitbounty.bot.commands import CommandContext, CommandResponse, error_response, respond_to_error
from fitbounty.bot.transport import MentionEvent, ReplyPublisher
from fitbounty.intent.parser import resolve_command
from fitbounty.intent.schema import CommandError

logger = logging.getLogger(__name__)


def _context(event: MentionEvent) -> CommandContext:
    return CommandContext(
        sender_identity=event.sender_identity,
        message_id=event.message_id,
        relay_origin=event.relay_origin,
        original_text=event.text,
        reply_target_id=event.reply_target_id,
        tags=event.metadata_tags,
    )


async def _publish(publisher: ReplyPublisher, event: MentionEvent, response: CommandResponse) -> None:
    # noinspection PyBroadException
    try:
        delivered = await publisher.publish_reply(event.message_id, response.message)
    except Exception:
        # Domain state is already committed; a lost reply is not rolled back.
        logger.exception("reply publish failed message_id=%s", event.message_id)
        return

    if delivered == 0:
        logger.warning("reply not accepted by any relay message_id=%s", event.message_id)


async def handle_mention(event: MentionEvent, app: App, publisher: ReplyPublisher) -> CommandResponse | None:
    """Resolve and execute one inbound post, then publish the reply.

    Returns:
        The response that was (or would have been) published, or `None` for posts the bot ignores.
    """

    started = monotonic()
    bot_key = app.settings.bot_pubkey

    if bot_key and event.sender_identity.lower() == bot_key:
        return None

    # noinspection PyBroadException
    try:
        result = resolve_command(event.text, event.metadata_tags, bot_identity_key=bot_key)
        if result is None:
            logger.debug("ignored message_id=%s (bot not mentioned)", event.message_id)
            return None

        if isinstance(result, CommandError):
            response = respond_to_error(result)
            logger.info(
                "unresolved message_id=%s kind=%s errors=%d",
                event.message_id,
                result.kind,
                len(result.errors),
            )
        else:
            response = await app.executor.execute(result, _context(event))

        latency_ms = int((monotonic() - started) * 1000)
        logger.info(
            "handled message_id=%s response=%s latency_ms=%d",
            event.message_id,
            response.type,
            latency_ms,
        )
    except Exception:
        logger.exception("handler failed message_id=%s", event.message_id)
        response = error_response(messages.GENERIC_ERROR)

    if response.should_reply:
        await _publish(publisher, event, response)
    return response
