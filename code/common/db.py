# =============================================================================
#  Forwardcord
#  Copyright (C) 2025 github.com/Forwardcord
#
#  This source code is released under the GNU Affero General Public License
#  version 3.0. A copy of the license is available at:
#  https://www.gnu.org/licenses/agpl-3.0.en.html
# =============================================================================

import os
import sqlite3, threading
from typing import Dict, List


class DBManager:
    def __init__(self, db_path: str, init_schema: bool = False):
        self.path = db_path
        parent = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(parent, exist_ok=True)
        self.conn = sqlite3.connect(self.path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row

        self.conn.execute("PRAGMA journal_mode = DELETE;")
        self.conn.execute("PRAGMA synchronous = FULL;")
        self.conn.execute("PRAGMA busy_timeout = 5000;")
        self.lock = threading.RLock()
        if init_schema:
            self._init_schema()

    def _init_schema(self):
        """
        Creates the forward_channels table and imports rows from the
        original bare `channel_id` table when one is present.
        """
        with self.lock:
            self.conn.execute(
                """
                CREATE TABLE IF NOT EXISTS forward_channels (
                    guild_id      INTEGER PRIMARY KEY,
                    channel_id    INTEGER NOT NULL,
                    last_updated  TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                );
                """
            )
            self._import_legacy_channel_id_table()
            self.conn.commit()

    def _import_legacy_channel_id_table(self) -> None:
        if not self._table_exists("channel_id"):
            return
        self.conn.execute(
            """
            INSERT OR IGNORE INTO forward_channels (guild_id, channel_id)
            SELECT guild_id, channel_id FROM channel_id
            """
        )

    def _table_exists(self, name: str) -> bool:
        row = self.conn.execute(
            "SELECT 1 FROM sqlite_master WHERE type='table' AND name=?",
            (name,),
        ).fetchone()
        return row is not None

    def upsert_forward_channel(self, guild_id: int, channel_id: int) -> None:
        with self.lock, self.conn:
            self.conn.execute(
                """
                INSERT INTO forward_channels (guild_id, channel_id, last_updated)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(guild_id) DO UPDATE SET
                    channel_id   = excluded.channel_id,
                    last_updated = CURRENT_TIMESTAMP
                """,
                (int(guild_id), int(channel_id)),
            )

    def get_all_forward_channels(self) -> Dict[int, int]:
        """
        Returns {guild_id: channel_id} for every configured guild.
        """
        with self.lock:
            rows: List[sqlite3.Row] = self.conn.execute(
                "SELECT guild_id, channel_id FROM forward_channels"
            ).fetchall()
        return {int(r["guild_id"]): int(r["channel_id"]) for r in rows}

    def close(self) -> None:
        with self.lock:
            self.conn.close()
