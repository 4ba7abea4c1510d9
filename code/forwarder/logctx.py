# =============================================================================
#  Forwardcord
#  Copyright (C) 2025 github.com/Forwardcord
#
#  This source code is released under the GNU Affero General Public License
#  version 3.0. A copy of the license is available at:
#  https://www.gnu.org/licenses/agpl-3.0.en.html
# =============================================================================


import contextlib
import contextvars
from typing import Optional

guild_name = contextvars.ContextVar("guild_name", default=None)


def guild_prefix() -> str:
    """
    Returns something like "[Guild A] " if a guild_name is set
    for this task/context, else "".
    """
    g = guild_name.get()
    if g:
        return f"[{g}] "
    return ""


@contextlib.contextmanager
def guild_label(name: Optional[str]):
    """
    Temporarily set the log prefix for the current task.
    Always resets after the wrapped block.
    """
    token = guild_name.set(name or None)
    try:
        yield
    finally:
        guild_name.reset(token)
