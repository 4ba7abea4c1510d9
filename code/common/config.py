# =============================================================================
#  Forwardcord
#  Copyright (C) 2025 github.com/Forwardcord
#
#  This source code is released under the GNU Affero General Public License
#  version 3.0. A copy of the license is available at:
#  https://www.gnu.org/licenses/agpl-3.0.en.html
# =============================================================================

import os
import logging
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv

logger = logging.getLogger(__name__)
CURRENT_VERSION = "v1.0.0"

BASE_DIR = Path(__file__).resolve().parent.parent.parent


class ConfigError(RuntimeError):
    """Raised when a required setting is missing."""


class Config:
    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        *,
        require_token: bool = True,
        env_file: Optional[Path] = None,
        **overrides,
    ):
        load_dotenv(env_file or find_dotenv(usecwd=True) or BASE_DIR / ".env")

        self.logger = (logger or logging.getLogger(__name__)).getChild(
            self.__class__.__name__
        )

        def _str(key: str, env_default: Optional[str] = None) -> Optional[str]:
            v = os.getenv(key, env_default)
            if isinstance(v, str) and v.strip() == "":
                v = env_default
            return v

        def _int(key: str, env_default: str = "0") -> int:
            raw = _str(key, env_default)
            try:
                return int(str(raw).strip())
            except Exception:
                self.logger.warning(
                    "[⚠️] Invalid %s=%r, using default %s", key, raw, env_default
                )
                return int(env_default)

        def _float(key: str, env_default: str) -> float:
            raw = _str(key, env_default)
            try:
                return float(str(raw).strip())
            except Exception:
                self.logger.warning(
                    "[⚠️] Invalid %s=%r, using default %s", key, raw, env_default
                )
                return float(env_default)

        self.TOKEN = _str("TOKEN")
        self.DB_PATH = _str("DB_PATH", "channel_id.db")
        self.LOG_LEVEL = (_str("LOG_LEVEL", "INFO") or "INFO").upper()

        self.AGREE_EMOJI = (_str("AGREE_EMOJI", "230782152164245505") or "").strip()
        self.COUNT_THRESHOLD = _int("COUNT_THRESHOLD", "1")
        self.RECENCY_WINDOW_DAYS = _int("RECENCY_WINDOW_DAYS", "3")
        self.WEBHOOK_NAME = _str("WEBHOOK_NAME", "Forwarder") or "Forwarder"
        self.ATTACHMENT_TIMEOUT_SECONDS = _float("ATTACHMENT_TIMEOUT_SECONDS", "15")

        admin_raw = _str("ADMIN_USER_IDS", "859472531974520832") or ""
        self.ADMIN_USER_IDS: set[int] = set()
        for tok in str(admin_raw).split(","):
            tok = tok.strip()
            if tok:
                try:
                    self.ADMIN_USER_IDS.add(int(tok))
                except ValueError:
                    self.logger.warning("[⚠️] Skipping invalid admin id %r", tok)

        for key, value in overrides.items():
            if not hasattr(self, key):
                raise ConfigError(f"Unknown setting: {key}")
            setattr(self, key, value)

        if require_token and not self.TOKEN:
            raise ConfigError("Missing required env var: TOKEN")
