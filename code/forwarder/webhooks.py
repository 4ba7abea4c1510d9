# =============================================================================
#  Forwardcord
#  Copyright (C) 2025 github.com/Forwardcord
#
#  This source code is released under the GNU Affero General Public License
#  version 3.0. A copy of the license is available at:
#  https://www.gnu.org/licenses/agpl-3.0.en.html
# =============================================================================

from __future__ import annotations
import asyncio
import io
import logging
from typing import Any, Dict, List, Optional

import aiohttp
import discord

from forwarder.embeds import convert_embed

logger = logging.getLogger("forwarder.webhooks")

MESSAGE_LINK = "https://discord.com/channels/{guild_id}/{channel_id}/{message_id}"
MAX_CONTENT_LEN = 2000
MAX_USERNAME_LEN = 80


class ForwardError(Exception):
    """Base class for failures while forwarding a message."""


class NotGuildChannelError(ForwardError):
    """The source message does not live in a guild channel."""


class WebhookForwardError(ForwardError):
    """Listing, creating or executing the target webhook failed."""


def _clip(s: str, limit: int) -> str:
    s = s or ""
    return s if len(s) <= limit else (s[: limit - 3] + "...")


def build_content(content: str, guild_id: int, channel_id: int, message_id: int) -> str:
    """
    Original text followed by a jump link back to the source message.
    The text is clipped so the whole body stays within Discord's limit.
    """
    link = "[Learn More →](" + MESSAGE_LINK.format(
        guild_id=guild_id, channel_id=channel_id, message_id=message_id
    ) + ")"
    room = MAX_CONTENT_LEN - len(link) - 1
    return f"{_clip(content or '', room)}\n{link}"


def author_avatar_url(author: discord.abc.User) -> str:
    avatar = getattr(author, "avatar", None)
    if avatar is not None:
        return str(avatar.url)
    return str(author.default_avatar.url)


class WebhookForwarder:
    def __init__(
        self,
        *,
        webhook_name: str = "Forwarder",
        attachment_timeout: float = 15.0,
        session: aiohttp.ClientSession | None = None,
    ):
        self.webhook_name = webhook_name
        self.attachment_timeout = float(attachment_timeout)
        self.session = session

    def set_session(self, session: aiohttp.ClientSession | None):
        self.session = session

    async def _get_or_create_webhook(self, channel) -> discord.Webhook:
        """
        First webhook on `channel` that carries a token, else a new one.
        """
        try:
            hooks = await channel.webhooks()
        except discord.HTTPException as e:
            raise WebhookForwardError(
                f"Could not list webhooks in channel {channel.id}"
            ) from e

        for wh in hooks:
            if wh.token:
                return wh

        try:
            wh = await channel.create_webhook(
                name=self.webhook_name, reason="Forwardcord forwarding webhook"
            )
        except discord.HTTPException as e:
            raise WebhookForwardError(
                f"Could not create webhook in channel {channel.id}"
            ) from e
        logger.info("[➕] Created webhook '%s' in channel #%s", self.webhook_name, channel.id)
        return wh

    async def _download_attachment(
        self, session: aiohttp.ClientSession, attachment: discord.Attachment
    ) -> Optional[discord.File]:
        url = attachment.url
        try:
            async with session.get(
                url, timeout=aiohttp.ClientTimeout(total=self.attachment_timeout)
            ) as resp:
                if resp.status != 200:
                    logger.warning(
                        "[⚠️] Skipping attachment %s: HTTP %s", attachment.filename, resp.status
                    )
                    return None
                data = await resp.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(
                "[⚠️] Skipping attachment %s: %s", attachment.filename, e
            )
            return None
        return discord.File(io.BytesIO(data), filename=attachment.filename)

    async def _download_attachments(
        self, attachments: List[discord.Attachment]
    ) -> List[discord.File]:
        if not attachments:
            return []
        if self.session is not None and not self.session.closed:
            return await self._collect(self.session, attachments)
        async with aiohttp.ClientSession() as session:
            return await self._collect(session, attachments)

    async def _collect(self, session, attachments) -> List[discord.File]:
        files: List[discord.File] = []
        for a in attachments:
            f = await self._download_attachment(session, a)
            if f is not None:
                files.append(f)
        return files

    async def forward(self, message: discord.Message, target_channel) -> None:
        """
        Re-post `message` into `target_channel` through a webhook that
        impersonates the original author.
        """
        webhook = await self._get_or_create_webhook(target_channel)

        guild = message.guild or getattr(message.channel, "guild", None)
        if guild is None:
            raise NotGuildChannelError(
                f"Message {message.id} is not in a guild channel"
            )

        author = message.author
        kwargs: Dict[str, Any] = {
            "content": build_content(
                message.content, guild.id, message.channel.id, message.id
            ),
            "username": _clip(author.display_name, MAX_USERNAME_LEN),
            "avatar_url": author_avatar_url(author),
            "allowed_mentions": discord.AllowedMentions.none(),
            "wait": False,
        }
        logger.debug(
            "Forwarding %s/%s/%s via webhook %s",
            guild.id,
            message.channel.id,
            message.id,
            webhook.id,
        )

        embeds = [convert_embed(e) for e in message.embeds]
        if embeds:
            kwargs["embeds"] = embeds

        files = await self._download_attachments(list(message.attachments))
        if files:
            kwargs["files"] = files

        try:
            await webhook.send(**kwargs)
        except discord.HTTPException as e:
            raise WebhookForwardError(
                f"Webhook send failed for message {message.id}"
            ) from e
