# =============================================================================
#  Forwardcord
#  Copyright (C) 2025 github.com/Forwardcord
#
#  This source code is released under the GNU Affero General Public License
#  version 3.0. A copy of the license is available at:
#  https://www.gnu.org/licenses/agpl-3.0.en.html
# =============================================================================


import logging
import re
import sqlite3
from typing import Iterable, Optional

import discord

from forwarder.state import RoutingTable

logger = logging.getLogger("forwarder.commands")

SETCHANID = ".setchanid"
_CHANNEL_MENTION_RE = re.compile(r"^<#(\d+)>$")


def parse_channel_id(raw: str) -> Optional[int]:
    """
    Accepts a bare id or a channel mention like <#123>.
    """
    raw = (raw or "").strip()
    m = _CHANNEL_MENTION_RE.match(raw)
    if m:
        raw = m.group(1)
    if not raw.isdigit():
        return None
    value = int(raw)
    # snowflakes are unsigned 64-bit, the store keeps signed 64-bit integers
    if value <= 0 or value >= 2**63:
        return None
    return value


class AdminCommands:
    """
    Text commands for guild owners and bot administrators.
    """

    def __init__(
        self,
        routes: RoutingTable,
        *,
        admin_ids: Iterable[int] = (),
        bot: Optional[discord.Client] = None,
    ):
        self.routes = routes
        self.admin_ids = {int(x) for x in admin_ids}
        self.bot = bot

    async def _owner_id(self, guild: discord.Guild) -> Optional[int]:
        if guild.owner_id is not None:
            return int(guild.owner_id)
        if self.bot is None:
            return None
        try:
            fetched = await self.bot.fetch_guild(guild.id)
        except discord.HTTPException:
            logger.warning("[⚠️] Could not resolve owner for guild %s", guild.id)
            return None
        return fetched.owner_id

    async def is_authorized(self, message: discord.Message) -> bool:
        uid = int(message.author.id)
        if uid in self.admin_ids:
            return True
        return uid == await self._owner_id(message.guild)

    async def _reply(self, message: discord.Message, text: str) -> None:
        try:
            await message.reply(text, mention_author=False)
        except discord.HTTPException as e:
            logger.warning("[⚠️] Could not reply in #%s: %s", message.channel.id, e)

    async def handle_message(self, message: discord.Message) -> bool:
        """
        Returns True when a forward channel was stored.
        """
        if message.author.bot or message.guild is None:
            return False

        parts = (message.content or "").strip().split()
        if not parts or parts[0] != SETCHANID:
            return False

        if not await self.is_authorized(message):
            logger.debug(
                "Ignoring %s from unauthorized user %s in guild %s",
                SETCHANID,
                message.author.id,
                message.guild.id,
            )
            return False

        channel_id = parse_channel_id(parts[1]) if len(parts) > 1 else None
        if channel_id is None:
            logger.warning(
                "[⚠️] Malformed %s from %s: %r",
                SETCHANID,
                message.author.id,
                message.content,
            )
            await self._reply(message, f"Usage: `{SETCHANID} <channel_id>`")
            return False

        try:
            await self.routes.set(message.guild.id, channel_id)
        except sqlite3.Error:
            logger.exception(
                "[⛔] Failed to store forward channel for guild %s", message.guild.id
            )
            await self._reply(message, "Could not save the forward channel, try again later.")
            return False

        await self._reply(message, f"Forward channel set to <#{channel_id}>.")
        return True
