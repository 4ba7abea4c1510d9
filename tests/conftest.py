from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from common.db import DBManager
from forwarder.state import ForwardRecord, RoutingTable

AGREE_ID = 230782152164245505
GUILD_ID = 111
SOURCE_CHANNEL_ID = 222
TARGET_CHANNEL_ID = 333
MESSAGE_ID = 444
NOW = datetime(2025, 6, 10, 12, 0, tzinfo=timezone.utc)


def agree_emoji() -> discord.PartialEmoji:
    return discord.PartialEmoji(name="agree", id=AGREE_ID)


def make_payload(
    *,
    emoji: Any = None,
    guild_id: int | None = GUILD_ID,
    channel_id: int = SOURCE_CHANNEL_ID,
    message_id: int = MESSAGE_ID,
) -> SimpleNamespace:
    return SimpleNamespace(
        emoji=emoji if emoji is not None else agree_emoji(),
        guild_id=guild_id,
        channel_id=channel_id,
        message_id=message_id,
    )


def make_author(*, avatar_url: str | None = "https://cdn.example/avatar.png"):
    return SimpleNamespace(
        id=42,
        bot=False,
        name="alice",
        display_name="Alice",
        avatar=SimpleNamespace(url=avatar_url) if avatar_url else None,
        default_avatar=SimpleNamespace(
            url="https://cdn.discordapp.com/embed/avatars/0.png"
        ),
    )


def make_message(
    *,
    count: int | None = 1,
    age: timedelta = timedelta(days=1),
    components: list | None = None,
    content: str = "hello world",
    embeds: list | None = None,
    attachments: list | None = None,
    guild: Any = "default",
    message_id: int = MESSAGE_ID,
) -> MagicMock:
    if guild == "default":
        guild = SimpleNamespace(id=GUILD_ID, name="Test Guild", owner_id=42)
    reactions = []
    if count is not None:
        reactions.append(SimpleNamespace(emoji=agree_emoji(), count=count))
    msg = MagicMock()
    msg.id = message_id
    msg.content = content
    msg.author = make_author()
    msg.guild = guild
    msg.channel = SimpleNamespace(id=SOURCE_CHANNEL_ID, guild=guild)
    msg.reactions = reactions
    msg.created_at = NOW - age
    msg.components = components or []
    msg.embeds = embeds or []
    msg.attachments = attachments or []
    msg.forward_to = AsyncMock()
    return msg


def make_bot(message: MagicMock, target: Any = None) -> MagicMock:
    source = MagicMock()
    source.id = SOURCE_CHANNEL_ID
    source.fetch_message = AsyncMock(return_value=message)
    target = target if target is not None else MagicMock(id=TARGET_CHANNEL_ID)
    channels = {SOURCE_CHANNEL_ID: source, TARGET_CHANNEL_ID: target}

    bot = MagicMock()
    bot.get_channel.side_effect = lambda cid: channels.get(cid)
    bot.fetch_channel = AsyncMock(side_effect=lambda cid: channels[cid])
    bot.source = source
    bot.target = target
    return bot


@pytest.fixture
def db(tmp_path):
    manager = DBManager(str(tmp_path / "routes.db"), init_schema=True)
    yield manager
    manager.close()


@pytest.fixture
def routes(db):
    return RoutingTable(db)


@pytest.fixture
def record():
    return ForwardRecord()
