"""Level progression from cumulative XP. Pure functions, no side effects."""

XP_PER_LEVEL = 100


def level_for_experience(xp: int) -> int:
    """Level for a cumulative XP total: floor(xp / 100) + 1."""
    if xp <= 0:
        return 1
    return xp // XP_PER_LEVEL + 1


def is_level_up(old_xp: int, new_xp: int) -> bool:
    """Return True if going from old_xp to new_xp crosses a level boundary."""
    return level_for_experience(new_xp) > level_for_experience(old_xp)


def xp_progress_in_level(xp: int) -> tuple[int, int]:
    """Return (current_xp_in_level, xp_needed_for_next_level)."""
    if xp <= 0:
        return (0, XP_PER_LEVEL)
    return (xp % XP_PER_LEVEL, XP_PER_LEVEL)
