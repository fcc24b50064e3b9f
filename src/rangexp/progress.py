"""Progress records and the local operations that update them."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from datetime import date
from enum import Enum

from rangexp.dates import DateLike, to_date
from rangexp.levels import level_for_experience

GUEST_DISPLAY_NAME = "Invitado"


class AccountKind(Enum):
    GUEST = "guest"  # tracked on this device only
    LINKED = "linked"  # tied to a server identity


# Server payloads use the app's account type names.
_KIND_FROM_ACCOUNT_TYPE: dict[str, AccountKind] = {
    "anonymous": AccountKind.GUEST,
    "registered": AccountKind.LINKED,
}
_ACCOUNT_TYPE_FROM_KIND: dict[AccountKind, str] = {v: k for k, v in _KIND_FROM_ACCOUNT_TYPE.items()}


def _int_field(payload: dict, key: str, default: int | None = None) -> int:
    """Read an integer field. Missing or null falls back to default; other types raise ValueError."""
    value = payload.get(key)
    if value is None and default is not None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValueError(f"{key} must be an integer, got {value!r}")
    return int(value)


@dataclass
class ProgressRecord:
    """Gamification state of one account at a point in time."""

    experience_points: int = 0
    level: int = 1
    streak_length: int = 0
    last_streak_activity_date: str | None = None  # YYYY-MM-DD
    account_kind: AccountKind = AccountKind.GUEST
    user_id: str | None = None
    display_name: str | None = None
    email: str | None = None
    is_premium: bool = False
    anonymous_id: str | None = None

    @property
    def is_guest(self) -> bool:
        return self.account_kind is AccountKind.GUEST

    def to_dict(self) -> dict:
        """Serialize to the server's user JSON shape."""
        return {
            "id": self.user_id,
            "name": self.display_name,
            "email": self.email,
            "xp": self.experience_points,
            "level": self.level,
            "streak": self.streak_length,
            "lastStreakDate": self.last_streak_activity_date,
            "isPremium": self.is_premium,
            "accountType": _ACCOUNT_TYPE_FROM_KIND[self.account_kind],
            "anonymousId": self.anonymous_id,
        }

    @classmethod
    def from_dict(cls, payload: dict) -> ProgressRecord:
        """Build a record from a server user payload.

        Raises ValueError if xp is missing, a numeric or date field has the
        wrong type, or accountType is unknown.
        """
        if "xp" not in payload:
            raise ValueError("progress payload is missing 'xp'")
        account_type = payload.get("accountType", "registered")
        if not isinstance(account_type, str) or account_type not in _KIND_FROM_ACCOUNT_TYPE:
            raise ValueError(f"unknown accountType: {account_type!r}")

        xp = max(0, _int_field(payload, "xp"))
        level = _int_field(payload, "level", default=0)
        last_date = payload.get("lastStreakDate")
        if last_date is not None and not isinstance(last_date, str):
            raise ValueError(f"lastStreakDate must be an ISO date string, got {last_date!r}")
        return cls(
            experience_points=xp,
            level=level or level_for_experience(xp),
            streak_length=max(0, _int_field(payload, "streak", default=0)),
            last_streak_activity_date=to_date(last_date).isoformat() if last_date else None,
            account_kind=_KIND_FROM_ACCOUNT_TYPE[account_type],
            user_id=payload.get("id"),
            display_name=payload.get("name"),
            email=payload.get("email"),
            is_premium=bool(payload.get("isPremium", False)),
            anonymous_id=payload.get("anonymousId"),
        )


def new_guest_record(anonymous_id: str | None = None) -> ProgressRecord:
    """Create a fresh guest record with zero progress."""
    anon = anonymous_id or f"guest-{uuid.uuid4().hex}"
    return ProgressRecord(
        account_kind=AccountKind.GUEST,
        user_id=anon,
        display_name=GUEST_DISPLAY_NAME,
        anonymous_id=anon,
    )


def add_experience(record: ProgressRecord, amount: int) -> ProgressRecord:
    """Return a copy of record with amount XP added and the level recomputed."""
    new_xp = record.experience_points + max(0, amount)
    return replace(record, experience_points=new_xp, level=level_for_experience(new_xp))


def update_streak(record: ProgressRecord, days: int, today: DateLike | None = None) -> ProgressRecord:
    """Set the streak length and stamp today as the last streak activity."""
    stamp = to_date(today) if today is not None else date.today()
    return replace(record, streak_length=max(0, days), last_streak_activity_date=stamp.isoformat())
