"""Bot process entrypoint (console transport)."""

from __future__ import annotations

import asyncio
import logging

from fitbounty.app import App, close_app, create_app, open_app
from fitbounty.bot.handlers import handle_mention
from fitbounty.bot.transport import ConsoleTransport
from fitbounty.config.logging import configure_logging
from fitbounty.config.settings import load_settings

logger = logging.getLogger(__name__)


async def serve(app: App, transport: ConsoleTransport) -> int:
    """Handle mentions until the transport is exhausted; returns the number of events seen."""

    handled = 0
    async for event in transport.events():
        await handle_mention(event, app, transport)
        handled += 1
    return handled


async def main() -> None:
    """Run the bot against stdin/stdout."""

    settings = load_settings()
    configure_logging()

    app = create_app(settings)
    await open_app(app)

    transport = ConsoleTransport(settings.console_identity)
    try:
        await serve(app, transport)
    finally:
        logger.info("shutting down")
        await close_app(app)


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
