"""CLI commands for rangexp."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from rangexp.config import get_db_path, get_log_level, set_db_path, set_log_level
from rangexp.db import Database, GuestSlotClosedError
from rangexp.display import (
    print_error,
    print_level_up,
    print_link_result,
    print_config_result,
    print_no_data_message,
    print_progress,
)
from rangexp.levels import is_level_up
from rangexp.linking import AccountLinker, LinkError
from rangexp.log import setup_logging
from rangexp.progress import ProgressRecord, add_experience, new_guest_record, update_streak

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    parser = argparse.ArgumentParser(
        prog="rangexp",
        description="Track RangeXP progress and link guest sessions to accounts",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase log verbosity")
    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("status", help="Show current progress")
    subparsers.add_parser("guest", help="Start a guest session on this device")
    xp_parser = subparsers.add_parser("add-xp", help="Add experience points")
    xp_parser.add_argument("amount", type=int)
    streak_parser = subparsers.add_parser("streak", help="Record today's streak length")
    streak_parser.add_argument("days", type=int)
    link_parser = subparsers.add_parser("link", help="Link guest progress into an authenticated account")
    link_parser.add_argument("server_json", help="Path to the auth response user JSON")
    subparsers.add_parser("logout", help="Forget all local progress")
    config_parser = subparsers.add_parser("config", help="Set the database path or default log level")
    config_parser.add_argument("--db-path", default=None, help="Path to the progress database")
    config_parser.add_argument("--log-level", default=None, help="Default log level, e.g. INFO")
    return parser


def main() -> None:
    """Entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args()
    command = args.command or "status"

    setup_logging(args.verbose, default=get_log_level())
    if command == "config":
        do_config(db_path=args.db_path, log_level=args.log_level)
        return

    db = Database(get_db_path())

    try:
        if command == "status":
            do_status(db)
        elif command == "guest":
            do_guest(db)
        elif command == "add-xp":
            do_add_xp(db, args.amount)
        elif command == "streak":
            do_streak(db, args.days)
        elif command == "link":
            do_link(db, args.server_json)
        elif command == "logout":
            do_logout(db)
    finally:
        db.close()


def do_status(db: Database) -> ProgressRecord | None:
    """Show the current record, linked first."""
    record = db.get_current_record()
    if record is None:
        print_no_data_message()
        return None
    print_progress(record)
    return record


def do_guest(db: Database) -> dict:
    """Create a guest record unless this device already tracks progress."""
    existing = db.get_current_record()
    if existing is not None:
        print_progress(existing)
        return {"ok": False, "reason": "exists", "account_kind": existing.account_kind.value}

    record = new_guest_record()
    db.save_record(record)
    logger.info("started guest session %s", record.anonymous_id)
    print_progress(record)
    return {"ok": True, "anonymous_id": record.anonymous_id}


def do_add_xp(db: Database, amount: int) -> dict:
    """Add XP to the current record and report a level-up."""
    record = db.get_current_record()
    if record is None:
        print_no_data_message()
        return {"ok": False, "reason": "no_data"}

    updated = add_experience(record, amount)
    try:
        db.save_record(updated)
    except GuestSlotClosedError as exc:
        print_error(str(exc))
        return {"ok": False, "reason": "account_linked"}
    leveled_up = is_level_up(record.experience_points, updated.experience_points)
    if leveled_up:
        print_level_up(updated.level)
    print_progress(updated)
    return {"ok": True, "total_xp": updated.experience_points, "level": updated.level, "leveled_up": leveled_up}


def do_streak(db: Database, days: int, today: str | None = None) -> dict:
    """Set the current streak and stamp today as the last activity."""
    record = db.get_current_record()
    if record is None:
        print_no_data_message()
        return {"ok": False, "reason": "no_data"}

    updated = update_streak(record, days, today=today)
    try:
        db.save_record(updated)
    except GuestSlotClosedError as exc:
        print_error(str(exc))
        return {"ok": False, "reason": "account_linked"}
    print_progress(updated)
    return {"ok": True, "streak": updated.streak_length, "last_date": updated.last_streak_activity_date}


def _load_server_record(path: Path) -> ProgressRecord:
    payload = json.loads(path.read_text(encoding="utf-8"))
    # Auth responses wrap the user object.
    if isinstance(payload, dict) and isinstance(payload.get("user"), dict):
        payload = payload["user"]
    if not isinstance(payload, dict):
        raise ValueError("server payload must be a JSON object")
    return ProgressRecord.from_dict(payload)


def do_link(db: Database, server_json: str, today: str | None = None) -> dict:
    """Link stored guest progress into the account described by server_json."""
    try:
        server_record = _load_server_record(Path(server_json))
    except (OSError, json.JSONDecodeError, ValueError) as exc:
        print_error(f"could not read server record: {exc}")
        return {"ok": False, "reason": "invalid_payload"}

    try:
        linked, guest = AccountLinker(db).link_with_guest(server_record, today=today)
    except LinkError as exc:
        print_error(str(exc))
        return {"ok": False, "reason": "link_failed"}

    result = {
        "ok": True,
        "merged": guest is not None,
        "guest_xp": guest.experience_points if guest else 0,
        "total_xp": linked.experience_points,
        "level": linked.level,
        "streak": linked.streak_length,
    }
    print_link_result(result)
    return result


def do_logout(db: Database) -> dict:
    """Forget all locally stored progress."""
    db.clear()
    logger.info("cleared local progress")
    return {"ok": True}


def do_config(
    db_path: str | None = None,
    log_level: str | None = None,
    config_path: Path | None = None,
) -> dict:
    """Persist the database path and/or default log level."""
    if db_path is None and log_level is None:
        print_error("nothing to set; pass --db-path and/or --log-level")
        return {"ok": False, "reason": "nothing_to_set"}

    result: dict = {"ok": True}
    if log_level is not None:
        try:
            set_log_level(log_level, config_path)
        except ValueError as exc:
            print_error(str(exc))
            return {"ok": False, "reason": "invalid_log_level"}
        result["log_level"] = log_level.strip().upper()
    if db_path is not None:
        path = Path(db_path).expanduser()
        set_db_path(path, config_path)
        result["db_path"] = str(path)
    print_config_result(result)
    return result
