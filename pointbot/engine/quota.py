"""
pointbot.engine.quota — Activity Rate-Limit Policy
===================================================

Anti-abuse limits applied before any activity reward is granted.  The
table is pure data; the store layer evaluates it at write time with a live
``COUNT(*)`` over the window, so there is no cached counter to drift.

Concurrent writers for the same user can transiently overshoot a limit by
the number of requests in flight.  That race is accepted.

| Activity | Limit | Window        | Dedup key  |
|----------|-------|---------------|------------|
| poll     | 2     | UTC day       | message ID |
| react    | 5     | UTC day       | —          |
| receive  | 10    | UTC day       | —          |
| attend   | 1     | UTC day       | —          |
| lotto    | 5     | ISO week      | —          |
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime

from pointbot.constants import LOTTO_WEEKLY_GUESS_LIMIT
from pointbot.database.models import ActivityKind
from pointbot.engine.calendar import start_of_iso_week, start_of_utc_day


class Window(enum.StrEnum):
    DAY = "day"
    ISO_WEEK = "iso_week"


@dataclass(frozen=True, slots=True)
class QuotaPolicy:
    """Per-user limit for one activity kind."""

    kind: ActivityKind
    limit: int
    window: Window = Window.DAY
    dedup_by_message: bool = False

    def window_start(self, now: datetime) -> datetime:
        """Inclusive lower bound of the window that contains *now*."""
        if self.window is Window.ISO_WEEK:
            return start_of_iso_week(now)
        return start_of_utc_day(now)

    def allows(self, used: int) -> bool:
        """True while *used* is still under the limit."""
        return used < self.limit


QUOTAS: dict[ActivityKind, QuotaPolicy] = {
    ActivityKind.POLL: QuotaPolicy(ActivityKind.POLL, 2, dedup_by_message=True),
    ActivityKind.REACT: QuotaPolicy(ActivityKind.REACT, 5),
    ActivityKind.RECEIVE: QuotaPolicy(ActivityKind.RECEIVE, 10),
    ActivityKind.ATTEND: QuotaPolicy(ActivityKind.ATTEND, 1),
    ActivityKind.LOTTO: QuotaPolicy(
        ActivityKind.LOTTO, LOTTO_WEEKLY_GUESS_LIMIT, window=Window.ISO_WEEK
    ),
}


def get_policy(kind: ActivityKind | str) -> QuotaPolicy | None:
    """Policy for *kind*, or ``None`` when the kind is unlimited."""
    return QUOTAS.get(ActivityKind(kind))
