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
import logging
from typing import Dict, Optional

from common.db import DBManager

logger = logging.getLogger("forwarder.state")


class ForwardRecord:
    """
    Message ids that have already been forwarded during this process.
    """

    def __init__(self):
        self._posted: set[int] = set()
        self._lock = asyncio.Lock()

    async def claim(self, message_id: int) -> bool:
        """
        Atomically mark `message_id` as forwarded.
        Returns False if it was already marked.
        """
        mid = int(message_id)
        async with self._lock:
            if mid in self._posted:
                return False
            self._posted.add(mid)
            return True

    def __len__(self) -> int:
        return len(self._posted)


class RoutingTable:
    """
    guild_id -> forward channel_id, mirrored in the forward_channels table.
    """

    def __init__(self, db: DBManager):
        self.db = db
        self._routes: Dict[int, int] = {}
        self._lock = asyncio.Lock()

    async def load_all(self) -> int:
        rows = self.db.get_all_forward_channels()
        async with self._lock:
            self._routes = dict(rows)
        logger.info("[📋] Loaded %d forward channel route(s)", len(rows))
        return len(rows)

    async def get(self, guild_id: int) -> Optional[int]:
        async with self._lock:
            return self._routes.get(int(guild_id))

    async def set(self, guild_id: int, channel_id: int) -> None:
        """
        Writes the store before memory.
        """
        gid, cid = int(guild_id), int(channel_id)
        async with self._lock:
            self.db.upsert_forward_channel(gid, cid)
            self._routes[gid] = cid
        logger.info("[🔀] Forward channel for guild %s set to %s", gid, cid)

    def snapshot(self) -> Dict[int, int]:
        return dict(self._routes)
