"""
pointbot.constants — Shared Constants
======================================

Single source of truth for reward amounts, caps and presentation constants.
Import from here instead of duplicating in cogs and services.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Balance cap
# ---------------------------------------------------------------------------
MAX_POINTS = 200_000

# ---------------------------------------------------------------------------
# Activity rewards (points)
# ---------------------------------------------------------------------------
ATTEND_POINTS = 50
REACT_POINTS = 3
RECEIVE_POINTS = 10
POLL_POINTS = 15
BAD_EMOJI_PENALTY = -10

# Reacting with one of these costs the reactor points instead of earning them
BAD_EMOJI: frozenset[str] = frozenset({
    "\U0001f44e",  # 👎
    "\U0001f595",  # 🖕
    "\U0001f4a9",  # 💩
    "\U0001f92c",  # 🤬
    "\U0001f621",  # 😡
    "\U0001f92e",  # 🤮
})

# ---------------------------------------------------------------------------
# Exchange
# ---------------------------------------------------------------------------
POINTS_PER_TICKET = 1_000
ITEM_TICKET = "ticket"
MAX_TICKETS_PER_REQUEST = 256
RECORDS_PAGE_SIZE = 8

# ---------------------------------------------------------------------------
# Lotto
# ---------------------------------------------------------------------------
LOTTO_DIGITS = 4
LOTTO_WEEKLY_GUESS_LIMIT = 5

# matched positions → points
LOTTO_REWARDS: dict[int, int] = {
    0: 0,
    1: 400,
    2: 1_000,
    3: 5_000,
    4: 100_000,
}

# ---------------------------------------------------------------------------
# Retention
# ---------------------------------------------------------------------------
ACTIVITY_RETENTION_WEEKS = 5

# ---------------------------------------------------------------------------
# Presentation
# ---------------------------------------------------------------------------
COLOR_RECORDS = 0x00FA9A
COLOR_POINTS = 0x00AAFF
COLOR_LOTTO = 0xFFB300

RANK_BADGES: list[str] = ["\U0001f947", "\U0001f948", "\U0001f949"]  # 🥇🥈🥉
LEADERBOARD_SIZE = 10
