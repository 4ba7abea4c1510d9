# =============================================================================
#  Forwardcord
#  Copyright (C) 2025 github.com/Forwardcord
#
#  This source code is released under the GNU Affero General Public License
#  version 3.0. A copy of the license is available at:
#  https://www.gnu.org/licenses/agpl-3.0.en.html
# =============================================================================

from __future__ import annotations
import enum
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

import discord

from forwarder import logctx
from forwarder.state import ForwardRecord, RoutingTable
from forwarder.webhooks import ForwardError, WebhookForwarder

logger = logging.getLogger("forwarder")


class ForwardOutcome(enum.Enum):
    IGNORED_EMOJI = "ignored_emoji"
    NO_GUILD = "no_guild"
    MESSAGE_UNAVAILABLE = "message_unavailable"
    THRESHOLD_MISS = "threshold_miss"
    STALE = "stale"
    DUPLICATE = "duplicate"
    NO_ROUTE = "no_route"
    TARGET_UNAVAILABLE = "target_unavailable"
    FORWARDED_NATIVE = "forwarded_native"
    FORWARDED_WEBHOOK = "forwarded_webhook"
    FAILED = "failed"


def emoji_identity(emoji) -> str:
    """
    Custom emojis are identified by id, unicode emojis by their text.
    Accepts Emoji, PartialEmoji or a plain str.
    """
    eid = getattr(emoji, "id", None)
    if eid:
        return str(eid)
    name = getattr(emoji, "name", None)
    return str(name if name is not None else emoji)


class ForwardDecisionEngine:
    def __init__(
        self,
        bot: discord.Client,
        *,
        routes: RoutingTable,
        record: ForwardRecord,
        webhooks: WebhookForwarder,
        agree_emoji: str,
        threshold: int = 1,
        recency_days: int = 3,
        now: Callable[[], datetime] = discord.utils.utcnow,
    ):
        self.bot = bot
        self.routes = routes
        self.record = record
        self.webhooks = webhooks
        self.agree_emoji = str(agree_emoji)
        self.threshold = int(threshold)
        self.recency = timedelta(days=int(recency_days))
        self._now = now

    def is_agree(self, emoji) -> bool:
        return emoji_identity(emoji) == self.agree_emoji

    def agree_count(self, message: discord.Message) -> Optional[int]:
        for reaction in message.reactions:
            if self.is_agree(reaction.emoji):
                return int(reaction.count)
        return None

    def is_stale(self, created_at: datetime) -> bool:
        return created_at + self.recency < self._now()

    async def _resolve_channel(self, channel_id: int):
        ch = self.bot.get_channel(int(channel_id))
        if ch is None:
            ch = await self.bot.fetch_channel(int(channel_id))
        return ch

    async def handle_reaction(
        self, payload: discord.RawReactionActionEvent
    ) -> ForwardOutcome:
        if not self.is_agree(payload.emoji):
            return ForwardOutcome.IGNORED_EMOJI
        if payload.guild_id is None:
            return ForwardOutcome.NO_GUILD

        try:
            source = await self._resolve_channel(payload.channel_id)
            message = await source.fetch_message(payload.message_id)
        except discord.DiscordException as e:
            logger.warning(
                "[⚠️] Could not fetch message %s in #%s: %s",
                payload.message_id,
                payload.channel_id,
                e,
            )
            return ForwardOutcome.MESSAGE_UNAVAILABLE

        guild = getattr(message, "guild", None)
        with logctx.guild_label(getattr(guild, "name", None)):
            return await self._decide(payload, message)

    async def _decide(
        self, payload: discord.RawReactionActionEvent, message: discord.Message
    ) -> ForwardOutcome:
        count = self.agree_count(message)
        logger.debug("Agree count on %s is %s", message.id, count)
        # exact match only: counts that skip past the threshold never fire
        if count != self.threshold:
            return ForwardOutcome.THRESHOLD_MISS

        if self.is_stale(message.created_at):
            logger.debug("Message %s is older than %s, skipping", message.id, self.recency)
            return ForwardOutcome.STALE

        if not await self.record.claim(message.id):
            return ForwardOutcome.DUPLICATE

        channel_id = await self.routes.get(payload.guild_id)
        if channel_id is None:
            logger.debug("No forward channel configured for guild %s", payload.guild_id)
            return ForwardOutcome.NO_ROUTE

        logger.info("[📨] Message %s hit threshold, forwarding to #%s", message.id, channel_id)
        try:
            target = await self._resolve_channel(channel_id)
        except discord.DiscordException:
            logger.exception("[⛔] Forward channel %s is unavailable", channel_id)
            return ForwardOutcome.TARGET_UNAVAILABLE

        try:
            if message.components:
                await message.forward_to(target)
                outcome = ForwardOutcome.FORWARDED_NATIVE
            else:
                await self.webhooks.forward(message, target)
                outcome = ForwardOutcome.FORWARDED_WEBHOOK
        except (ForwardError, discord.DiscordException):
            logger.exception("[⛔] Failed to forward message %s", message.id)
            return ForwardOutcome.FAILED

        logger.info("[✅] Forwarded message %s (%s)", message.id, outcome.value)
        return outcome
