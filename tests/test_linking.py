"""Tests for guest-to-account linking."""

import logging
from dataclasses import replace

import pytest

from rangexp.db import Database, GuestSlotClosedError
from rangexp.linking import AccountLinker, LinkInProgressError, link_account
from rangexp.progress import AccountKind, ProgressRecord, add_experience, new_guest_record

TODAY = "2024-01-15"
YESTERDAY = "2024-01-14"
THREE_DAYS_AGO = "2024-01-12"


def _server(**overrides) -> ProgressRecord:
    base = ProgressRecord(
        experience_points=500,
        level=6,
        streak_length=10,
        last_streak_activity_date=TODAY,
        account_kind=AccountKind.LINKED,
        user_id="user-1",
        display_name="John Doe",
        email="test@example.com",
    )
    return replace(base, **overrides)


def _guest(xp: int = 0, streak: int = 0, last_date: str | None = None) -> ProgressRecord:
    return replace(
        new_guest_record("guest-123"),
        experience_points=xp,
        streak_length=streak,
        last_streak_activity_date=last_date,
    )


@pytest.fixture
def db(tmp_path):
    """Create a temporary database for testing."""
    database = Database(db_path=tmp_path / "test.db")
    yield database
    database.close()


class TestPassThrough:
    def test_no_current_record(self):
        server = _server(account_kind=AccountKind.GUEST)
        result = link_account(server, None, today=TODAY)
        assert result.account_kind is AccountKind.LINKED
        assert result.experience_points == server.experience_points
        assert result.streak_length == server.streak_length
        assert result.level == server.level

    def test_already_linked_current_record(self):
        server = _server()
        other = _server(experience_points=999, streak_length=99, user_id="user-2")
        result = link_account(server, other, today=TODAY)
        assert result == server

    def test_does_not_mutate_server_record(self):
        server = _server(account_kind=AccountKind.GUEST)
        link_account(server, None)
        assert server.account_kind is AccountKind.GUEST


class TestExperienceMerge:
    def test_xp_is_summed(self):
        result = link_account(_server(), _guest(xp=50), today=TODAY)
        assert result.experience_points == 550

    def test_level_recomputed_from_total(self):
        result = link_account(_server(experience_points=90, level=1), _guest(xp=100), today=TODAY)
        assert result.experience_points == 190
        assert result.level == 2

    def test_additivity_regardless_of_streaks(self):
        for a, b in [(0, 0), (1, 0), (0, 1), (37, 963), (1000, 2500)]:
            for streak, last in [(0, None), (3, TODAY), (2, THREE_DAYS_AGO)]:
                result = link_account(_server(experience_points=b), _guest(a, streak, last), today=TODAY)
                assert result.experience_points == a + b
                assert result.level == (a + b) // 100 + 1


class TestStreakMerge:
    def test_inactive_guest_keeps_server_streak(self):
        result = link_account(_server(), _guest(), today=TODAY)
        assert result.streak_length == 10
        assert result.last_streak_activity_date == TODAY

    def test_broken_server_streak_uses_guest(self):
        server = _server(last_streak_activity_date=THREE_DAYS_AGO)
        result = link_account(server, _guest(streak=2, last_date=TODAY), today=TODAY)
        assert result.streak_length == 2

    def test_consecutive_streaks_combine(self):
        server = _server(last_streak_activity_date=YESTERDAY)
        result = link_account(server, _guest(streak=2, last_date=TODAY), today=TODAY)
        assert result.streak_length == 12

    def test_server_without_date_uses_guest(self):
        server = _server(last_streak_activity_date=None)
        result = link_account(server, _guest(streak=3, last_date=TODAY), today=TODAY)
        assert result.streak_length == 3

    def test_guest_last_date_preferred(self):
        server = _server(last_streak_activity_date=YESTERDAY)
        result = link_account(server, _guest(streak=1, last_date=TODAY), today=TODAY)
        assert result.last_streak_activity_date == TODAY

    def test_server_last_date_used_when_guest_has_none(self):
        server = _server(last_streak_activity_date=YESTERDAY)
        result = link_account(server, _guest(xp=10), today=TODAY)
        assert result.last_streak_activity_date == YESTERDAY


class TestLinkedRecordIdentity:
    def test_keeps_server_identity(self):
        result = link_account(_server(), _guest(xp=10), today=TODAY)
        assert result.user_id == "user-1"
        assert result.display_name == "John Doe"
        assert result.email == "test@example.com"
        assert result.account_kind is AccountKind.LINKED

    def test_preserves_anonymous_id(self):
        result = link_account(_server(), _guest(xp=10), today=TODAY)
        assert result.anonymous_id == "guest-123"


class TestScenarios:
    def test_scenario_continuous_streak(self):
        guest = _guest(xp=80, streak=2, last_date=TODAY)
        server = _server(experience_points=150, level=2, streak_length=4, last_streak_activity_date=YESTERDAY)
        result = link_account(server, guest, today=TODAY)
        assert result.experience_points == 230
        assert result.streak_length == 6
        assert result.level == 3

    def test_scenario_fresh_account(self):
        guest = _guest(xp=40, streak=1, last_date=TODAY)
        server = _server(experience_points=0, level=1, streak_length=0, last_streak_activity_date=None)
        result = link_account(server, guest, today=TODAY)
        assert result.experience_points == 40
        assert result.streak_length == 1
        assert result.level == 1


class TestAccountLinker:
    def test_merges_stored_guest_and_discards_it(self, db):
        db.save_record(_guest(xp=80, streak=2, last_date=TODAY))
        linked = AccountLinker(db).link(
            _server(experience_points=150, streak_length=4, last_streak_activity_date=YESTERDAY),
            today=TODAY,
        )
        assert linked.experience_points == 230
        assert linked.streak_length == 6
        assert db.get_guest_record() is None
        assert db.get_linked_record() == linked

    def test_without_guest_stores_server_record(self, db):
        server = _server()
        linked = AccountLinker(db).link(server, today=TODAY)
        assert linked == server
        assert db.get_linked_record() == server

    def test_relink_does_not_double_count(self, db):
        db.save_record(_guest(xp=80))
        linker = AccountLinker(db)
        server = _server(experience_points=150)
        first = linker.link(server, today=TODAY)
        second = linker.link(server, today=TODAY)
        assert first.experience_points == 230
        assert second.experience_points == 150

    def test_concurrent_link_rejected(self, db):
        db.save_record(_guest(xp=80))
        linker = AccountLinker(db)
        linker._lock.acquire()
        try:
            assert linker.in_progress is True
            with pytest.raises(LinkInProgressError):
                linker.link(_server(), today=TODAY)
        finally:
            linker._lock.release()
        assert db.get_guest_record() is not None
        assert linker.in_progress is False

    def test_lock_released_after_failure(self, db, monkeypatch):
        linker = AccountLinker(db)

        def boom(merge):
            raise RuntimeError("disk full")

        monkeypatch.setattr(db, "link_guest", boom)
        with pytest.raises(RuntimeError):
            linker.link(_server(), today=TODAY)
        assert linker.in_progress is False

    def test_logs_merge(self, db, caplog):
        db.save_record(_guest(xp=80))
        with caplog.at_level(logging.INFO, logger="rangexp"):
            AccountLinker(db).link(_server(), today=TODAY)
        assert "linked guest guest-123 into account user-1" in caplog.text

    def test_link_with_guest_returns_consumed_guest(self, db):
        db.save_record(_guest(xp=80))
        linked, guest = AccountLinker(db).link_with_guest(_server(), today=TODAY)
        assert guest.anonymous_id == "guest-123"
        assert guest.experience_points == 80
        assert linked.experience_points == 580

    def test_link_with_guest_none_without_guest(self, db):
        _linked, guest = AccountLinker(db).link_with_guest(_server(), today=TODAY)
        assert guest is None

    def test_stale_guest_write_after_link_cannot_be_merged_again(self, db):
        db.save_record(_guest(xp=80))
        stale = db.get_current_record()
        linker = AccountLinker(db)
        server = _server(experience_points=150)
        first = linker.link(server, today=TODAY)

        with pytest.raises(GuestSlotClosedError):
            db.save_record(add_experience(stale, 10))

        assert db.get_guest_record() is None
        second = linker.link(server, today=TODAY)
        assert first.experience_points == 230
        assert second.experience_points == 150

    def test_separate_linkers_share_one_stored_guest(self, tmp_path):
        path = tmp_path / "shared.db"
        first_db = Database(db_path=path)
        second_db = Database(db_path=path)
        try:
            first_db.save_record(_guest(xp=80))
            a = AccountLinker(first_db).link(_server(experience_points=150), today=TODAY)
            b = AccountLinker(second_db).link(_server(experience_points=150), today=TODAY)
        finally:
            first_db.close()
            second_db.close()
        assert a.experience_points == 230
        assert b.experience_points == 150
