# =============================================================================
#  Forwardcord
#  Copyright (C) 2025 github.com/Forwardcord
#
#  This source code is released under the GNU Affero General Public License
#  version 3.0. A copy of the license is available at:
#  https://www.gnu.org/licenses/agpl-3.0.en.html
# =============================================================================


import contextlib
import signal
import asyncio
import logging
import sqlite3
import sys
from typing import Optional

import aiohttp
import discord

from common.config import Config, ConfigError, CURRENT_VERSION
from common.db import DBManager
from forwarder import logctx
from forwarder.commands import AdminCommands
from forwarder.forwarding import ForwardDecisionEngine
from forwarder.state import ForwardRecord, RoutingTable
from forwarder.webhooks import WebhookForwarder

logger = logging.getLogger("forwarder")


class _GuildPrefixFilter(logging.Filter):
    """
    Prepend the guild name to every forwarder log line.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        prefix = logctx.guild_prefix()
        if prefix and not getattr(record, "_guild_prefix_injected", False):
            record.msg = prefix + str(record.msg)
            record._guild_prefix_injected = True
        return True


def setup_logging(level_name: str = "INFO") -> None:
    level = getattr(logging, str(level_name).upper(), logging.INFO)
    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-5s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root = logging.getLogger()
    root.setLevel(level)

    ch = logging.StreamHandler()
    ch.setFormatter(formatter)
    ch.setLevel(level)
    ch.addFilter(_GuildPrefixFilter())
    root.addHandler(ch)

    for lib in (
        "discord",
        "discord.client",
        "discord.gateway",
        "discord.state",
        "discord.http",
    ):
        logging.getLogger(lib).setLevel(logging.WARNING)


def build_intents() -> discord.Intents:
    intents = discord.Intents.none()
    intents.guilds = True
    intents.guild_messages = True
    intents.guild_reactions = True
    intents.message_content = True
    return intents


class ForwarderBot:
    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config(logger=logger)
        self.db = DBManager(self.config.DB_PATH, init_schema=True)
        self.bot = discord.Bot(intents=build_intents())
        self.bot.forwarder = self
        self.session: aiohttp.ClientSession | None = None
        self._shutting_down = False
        self._shutdown_task: asyncio.Task | None = None

        self.routes = RoutingTable(self.db)
        self.record = ForwardRecord()
        self.webhooks = WebhookForwarder(
            webhook_name=self.config.WEBHOOK_NAME,
            attachment_timeout=self.config.ATTACHMENT_TIMEOUT_SECONDS,
        )
        self.engine = ForwardDecisionEngine(
            self.bot,
            routes=self.routes,
            record=self.record,
            webhooks=self.webhooks,
            agree_emoji=self.config.AGREE_EMOJI,
            threshold=self.config.COUNT_THRESHOLD,
            recency_days=self.config.RECENCY_WINDOW_DAYS,
        )
        self.commands = AdminCommands(
            self.routes, admin_ids=self.config.ADMIN_USER_IDS, bot=self.bot
        )

        self.bot.event(self.on_ready)
        self.bot.event(self.on_message)
        self.bot.event(self.on_raw_reaction_add)

    def _log_route_summary(self) -> None:
        routes = self.routes.snapshot()
        if not routes:
            logger.warning(
                "[⚠️] No forward channels configured yet; use .setchanid <channel_id>"
            )
            return
        for gid, cid in sorted(routes.items()):
            guild = self.bot.get_guild(gid)
            label = guild.name if guild else "not joined"
            logger.info("[🔀] %s (%s) -> #%s", label, gid, cid)

    async def on_ready(self):
        """
        Event handler that is called when the bot is ready.
        """
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession()
            self.webhooks.set_session(self.session)
        logger.info("[🤖] Logged in as %s", self.bot.user)
        self._log_route_summary()

    async def on_message(self, message: discord.Message):
        guild_name = message.guild.name if message.guild else None
        with logctx.guild_label(guild_name):
            try:
                await self.commands.handle_message(message)
            except Exception:
                logger.exception("[⛔] Error handling message %s", message.id)

    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent):
        try:
            await self.engine.handle_reaction(payload)
        except Exception:
            logger.exception(
                "[⛔] Error handling reaction on message %s", payload.message_id
            )

    async def _shutdown(self):
        """
        Gracefully shut down the bot.
        """
        if self._shutting_down:
            return
        self._shutting_down = True
        logger.info(
            "Shutting down forwarder (%d message(s) forwarded this session)...",
            len(self.record),
        )

        try:
            if self.session is not None and not self.session.closed:
                await self.session.close()
        except Exception:
            logger.debug("[shutdown] aiohttp session close failed", exc_info=True)

        try:
            if not self.bot.is_closed():
                await self.bot.close()
        except Exception:
            logger.debug("[shutdown] bot close failed", exc_info=True)

        with contextlib.suppress(sqlite3.Error):
            self.db.close()

        logger.info("Shutdown complete.")

    def _request_shutdown(self) -> None:
        if self._shutdown_task is None:
            self._shutdown_task = asyncio.create_task(self._shutdown())

    async def start(self):
        """
        Loads routes, then connects to the gateway and runs until closed.
        """
        await self.routes.load_all()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, self._request_shutdown)
            except (NotImplementedError, RuntimeError):
                break

        try:
            await self.bot.start(self.config.TOKEN)
        finally:
            await self._shutdown()


async def _amain() -> int:
    try:
        config = Config(logger=logger)
    except ConfigError as e:
        logger.error("[⛔] %s", e)
        return 2

    setup_logging(config.LOG_LEVEL)
    logger.info("[✨] Starting Forwardcord %s", CURRENT_VERSION)

    try:
        app = ForwarderBot(config)
    except sqlite3.Error:
        logger.exception("[⛔] Could not open the routing store at %s", config.DB_PATH)
        return 1

    await app.start()
    return 0


def main() -> int:
    try:
        return asyncio.run(_amain())
    except KeyboardInterrupt:
        logger.info("shutdown requested")
        return 0


if __name__ == "__main__":
    sys.exit(main())
