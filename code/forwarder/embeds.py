# =============================================================================
#  Forwardcord
#  Copyright (C) 2025 github.com/Forwardcord
#
#  This source code is released under the GNU Affero General Public License
#  version 3.0. A copy of the license is available at:
#  https://www.gnu.org/licenses/agpl-3.0.en.html
# =============================================================================

from __future__ import annotations
import logging
from datetime import datetime
from typing import Optional

import discord

logger = logging.getLogger("forwarder.embeds")

_SCALAR_KEYS = ("title", "description", "url")


def _as_dict(part) -> dict:
    if isinstance(part, dict):
        return part
    to_dict = getattr(part, "to_dict", None)
    return to_dict() if callable(to_dict) else {}


def _parse_timestamp(raw) -> Optional[datetime]:
    if not raw:
        return None
    try:
        return discord.utils.parse_time(str(raw))
    except (TypeError, ValueError):
        logger.debug("Dropping unparsable embed timestamp %r", raw)
        return None


def convert_embed(embed: discord.Embed) -> discord.Embed:
    """
    Rebuild a received embed as a sendable one.

    Reads the rendered embed through its dict form so video/link/image embeds
    and rich embeds are handled the same way. Every optional part that is
    absent on the source is omitted on the result.
    """
    src = embed.to_dict() if isinstance(embed, discord.Embed) else dict(embed or {})

    kwargs = {k: src[k] for k in _SCALAR_KEYS if src.get(k)}
    if src.get("color") is not None:
        kwargs["colour"] = int(src["color"])
    ts = _parse_timestamp(src.get("timestamp"))
    if ts is not None:
        kwargs["timestamp"] = ts

    new_embed = discord.Embed(**kwargs)

    author = _as_dict(src.get("author"))
    if author.get("name"):
        auth = {"name": author["name"]}
        if author.get("url"):
            auth["url"] = author["url"]
        if author.get("icon_url"):
            auth["icon_url"] = author["icon_url"]
        new_embed.set_author(**auth)

    footer = _as_dict(src.get("footer"))
    if footer.get("text"):
        foot = {"text": footer["text"]}
        if footer.get("icon_url"):
            foot["icon_url"] = footer["icon_url"]
        new_embed.set_footer(**foot)

    image = _as_dict(src.get("image"))
    if image.get("url"):
        new_embed.set_image(url=image["url"])

    thumb = _as_dict(src.get("thumbnail"))
    if thumb.get("url"):
        new_embed.set_thumbnail(url=thumb["url"])

    for f in map(_as_dict, src.get("fields") or []):
        new_embed.add_field(
            name=f.get("name", ""),
            value=f.get("value", ""),
            inline=bool(f.get("inline", False)),
        )

    return new_embed
