"""Reconcile guest progress into a freshly authenticated account."""

from __future__ import annotations

import logging
import threading
from dataclasses import replace

from rangexp.dates import DateLike
from rangexp.db import Database
from rangexp.levels import level_for_experience
from rangexp.progress import AccountKind, ProgressRecord
from rangexp.streaks import merge_streak

logger = logging.getLogger(__name__)


class LinkError(Exception):
    """Base error for the account link flow."""


class LinkInProgressError(LinkError):
    """Raised when a link is attempted while another one is still running."""


def link_account(
    server_record: ProgressRecord,
    current_record: ProgressRecord | None = None,
    today: DateLike | None = None,
) -> ProgressRecord:
    """Fold a guest's local progress into the server's record for the same user.

    With no guest record (absent or already linked) the server record is
    returned as-is, marked linked. Otherwise XP is summed, the streak goes
    through merge_streak, the guest's last activity date wins when present,
    and the level is recomputed from the summed XP.
    """
    if current_record is None or not current_record.is_guest:
        return replace(server_record, account_kind=AccountKind.LINKED)

    total_xp = server_record.experience_points + current_record.experience_points
    merged_streak = merge_streak(
        server_record.streak_length,
        server_record.last_streak_activity_date,
        current_record.streak_length,
        current_record.last_streak_activity_date,
        today=today,
    )
    merged_last_date = (
        current_record.last_streak_activity_date or server_record.last_streak_activity_date
    )

    return replace(
        server_record,
        experience_points=total_xp,
        level=level_for_experience(total_xp),
        streak_length=merged_streak,
        last_streak_activity_date=merged_last_date,
        account_kind=AccountKind.LINKED,
        anonymous_id=current_record.anonymous_id or server_record.anonymous_id,
    )


class AccountLinker:
    """Runs the read-merge-persist-discard link sequence, one at a time.

    The in-process lock rejects a second link while one is running; the
    database transaction in Database.link_guest covers other processes.
    """

    def __init__(self, db: Database) -> None:
        self.db = db
        self._lock = threading.Lock()

    @property
    def in_progress(self) -> bool:
        return self._lock.locked()

    def link(self, server_record: ProgressRecord, today: DateLike | None = None) -> ProgressRecord:
        """Merge the stored guest record into server_record and persist the result."""
        linked, _guest = self.link_with_guest(server_record, today=today)
        return linked

    def link_with_guest(
        self, server_record: ProgressRecord, today: DateLike | None = None
    ) -> tuple[ProgressRecord, ProgressRecord | None]:
        """Like link, but also return the guest record that was consumed (None if none was stored).

        Raises LinkInProgressError if another link on this linker has not finished.
        """
        if not self._lock.acquire(blocking=False):
            raise LinkInProgressError("an account link is already in progress")
        try:
            guest, linked = self.db.link_guest(
                lambda stored: link_account(server_record, stored, today=today)
            )
        finally:
            self._lock.release()

        if guest is None:
            logger.info("linked account %s with no guest progress", linked.user_id)
        else:
            logger.info(
                "linked guest %s into account %s: xp %d + %d = %d, streak %d",
                guest.anonymous_id,
                linked.user_id,
                server_record.experience_points,
                guest.experience_points,
                linked.experience_points,
                linked.streak_length,
            )
        return linked, guest
