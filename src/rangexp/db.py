"""SQLite storage for local progress records."""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

from rangexp.progress import AccountKind, ProgressRecord

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path.home() / ".rangexp" / "data.db"

_SLOTS: dict[AccountKind, str] = {
    AccountKind.GUEST: "guest",
    AccountKind.LINKED: "linked",
}


class GuestSlotClosedError(Exception):
    """Raised when guest progress is written after the device has been linked."""


class Database:
    """SQLite database manager with WAL mode. Holds at most one record per account kind.

    Once a linked record exists the guest slot is closed: guest writes are
    refused so progress read before a link can never be merged a second time.
    """

    def __init__(self, db_path: Path | None = None) -> None:
        self.db_path = db_path or DEFAULT_DB_PATH
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(self.db_path))
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.init_db()

    def init_db(self) -> None:
        """Create tables if they do not exist."""
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS progress (
                slot TEXT PRIMARY KEY,
                payload TEXT NOT NULL,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP
            );
        """)
        self.conn.commit()

    @contextmanager
    def _immediate(self) -> Iterator[None]:
        """Run a block in a BEGIN IMMEDIATE transaction (write lock taken up front)."""
        self.conn.execute("BEGIN IMMEDIATE")
        try:
            yield
        except BaseException:
            self.conn.rollback()
            raise
        self.conn.commit()

    def _get_slot(self, slot: str) -> ProgressRecord | None:
        row = self.conn.execute(
            "SELECT payload FROM progress WHERE slot = ?", (slot,)
        ).fetchone()
        return ProgressRecord.from_dict(json.loads(row["payload"])) if row else None

    def _write_slot(self, record: ProgressRecord) -> None:
        payload = json.dumps(record.to_dict())
        if record.account_kind is AccountKind.LINKED:
            self.conn.execute(
                "INSERT INTO progress (slot, payload) VALUES ('linked', ?) "
                "ON CONFLICT(slot) DO UPDATE SET payload = excluded.payload, "
                "updated_at = CURRENT_TIMESTAMP",
                (payload,),
            )
            return

        cursor = self.conn.execute(
            "INSERT INTO progress (slot, payload) "
            "SELECT 'guest', ? WHERE NOT EXISTS (SELECT 1 FROM progress WHERE slot = 'linked') "
            "ON CONFLICT(slot) DO UPDATE SET payload = excluded.payload, "
            "updated_at = CURRENT_TIMESTAMP",
            (payload,),
        )
        if cursor.rowcount == 0:
            raise GuestSlotClosedError("device is already linked; guest progress is closed")

    def get_guest_record(self) -> ProgressRecord | None:
        """Return the locally tracked guest record, if any."""
        return self._get_slot(_SLOTS[AccountKind.GUEST])

    def get_linked_record(self) -> ProgressRecord | None:
        """Return the linked account record, if any."""
        return self._get_slot(_SLOTS[AccountKind.LINKED])

    def get_current_record(self) -> ProgressRecord | None:
        """Return the linked record if present, else the guest record."""
        return self.get_linked_record() or self.get_guest_record()

    def save_record(self, record: ProgressRecord) -> None:
        """Upsert a record into the slot for its account kind.

        Raises GuestSlotClosedError for a guest record once a linked record exists.
        """
        with self._immediate():
            self._write_slot(record)

    def link_guest(
        self, merge: Callable[[ProgressRecord | None], ProgressRecord]
    ) -> tuple[ProgressRecord | None, ProgressRecord]:
        """Read the guest, merge it, store the linked result and drop the guest in one transaction.

        Returns (consumed_guest, linked). Nothing is written if merge raises.
        """
        with self._immediate():
            guest = self.get_guest_record()
            linked = merge(guest)
            if linked.account_kind is not AccountKind.LINKED:
                raise ValueError("link_guest expects merge to return a linked record")
            self._write_slot(linked)
            self.conn.execute("DELETE FROM progress WHERE slot = 'guest'")
        logger.debug("committed linked record for %s", linked.user_id)
        return guest, linked

    def commit_link(self, linked: ProgressRecord) -> None:
        """Persist the linked record and discard the guest record atomically."""
        self.link_guest(lambda _guest: linked)

    def clear(self) -> None:
        """Remove every stored record (logout)."""
        with self._immediate():
            self.conn.execute("DELETE FROM progress")

    def close(self) -> None:
        """Close the database connection."""
        self.conn.close()
