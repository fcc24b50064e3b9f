"""Streak reconciliation between a guest session and a server account."""

from __future__ import annotations

import logging

from rangexp.dates import DateLike, are_consecutive_days, is_within_last_n_days

logger = logging.getLogger(__name__)

# A streak is still alive if its last activity was today or yesterday.
STREAK_ACTIVITY_WINDOW_DAYS = 1


def merge_streak(
    server_streak: int,
    server_last_date: DateLike | None,
    guest_streak: int,
    guest_last_date: DateLike | None,
    today: DateLike | None = None,
) -> int:
    """Decide the unified streak length when a guest signs into an account.

    Rules, in order:
    - Guest inactive (no activity today/yesterday) or guest streak 0: keep the server streak.
    - Server streak alive, consecutive with the guest's last day, and > 0: sum both.
    - Otherwise the server streak is broken: guest streak alone.
    """
    guest_active = is_within_last_n_days(guest_last_date, STREAK_ACTIVITY_WINDOW_DAYS, today)
    if not guest_active or guest_streak == 0:
        logger.debug("guest streak stale or empty, keeping server streak %d", server_streak)
        return server_streak

    server_active = is_within_last_n_days(server_last_date, STREAK_ACTIVITY_WINDOW_DAYS, today)
    if (
        server_active
        and are_consecutive_days(server_last_date, guest_last_date)
        and server_streak > 0
    ):
        logger.debug("continuous streak: %d + %d", server_streak, guest_streak)
        return server_streak + guest_streak

    logger.debug("server streak broken, using guest streak %d", guest_streak)
    return guest_streak
