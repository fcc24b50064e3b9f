"""Rich terminal display for rangexp."""

from __future__ import annotations

from rich import box
from rich.console import Console
from rich.panel import Panel

from rangexp.levels import xp_progress_in_level
from rangexp.progress import ProgressRecord

console = Console()


def format_number(n: int) -> str:
    """Format large numbers: 1200 -> '1,200', 42100 -> '42.1K'."""
    if n >= 1_000_000:
        return f"{n / 1_000_000:.1f}M"
    if n >= 10_000:
        return f"{n / 1_000:.1f}K"
    return f"{n:,}"


def _xp_bar(current: int, total: int, width: int = 20) -> str:
    """Render an XP progress bar as text: [████████░░░░░░░░░░░░]."""
    if total <= 0:
        return "[" + "█" * width + "]"
    ratio = min(current / total, 1.0)
    filled = int(ratio * width)
    return "[" + "█" * filled + "░" * (width - filled) + "]"


def _progress_lines(record: ProgressRecord) -> list[str]:
    xp_in_level, xp_for_next = xp_progress_in_level(record.experience_points)
    streak_since = record.last_streak_activity_date or "never"
    lines: list[str] = []
    lines.append("")
    lines.append(f"  [bold]{record.display_name or 'Unknown'}[/]  ({record.account_kind.value})")
    lines.append("")
    lines.append(f"  Level {record.level}")
    lines.append(f"  {_xp_bar(xp_in_level, xp_for_next)} {xp_in_level}/{xp_for_next} XP")
    lines.append(f"  Total XP: {format_number(record.experience_points)}")
    lines.append(f"  Streak:   {record.streak_length} days (last: {streak_since})")
    lines.append("")
    return lines


def print_progress(record: ProgressRecord) -> None:
    """Print the progress panel for a guest or linked record."""
    border = "grey50" if record.is_guest else "green"
    panel = Panel(
        "\n".join(_progress_lines(record)),
        title="[bold]RangeXP[/]",
        box=box.ROUNDED,
        border_style=border,
        width=50,
    )
    console.print(panel)


def print_no_data_message() -> None:
    """Print a message when no progress is stored yet."""
    console.print(
        Panel(
            "\n  No progress yet. Run [bold]rangexp guest[/] to start a guest session.\n",
            title="[bold]RangeXP[/]",
            box=box.ROUNDED,
            border_style="grey50",
            width=50,
        )
    )


def print_level_up(level: int) -> None:
    """Print a level-up notice."""
    console.print(f"[bold yellow]LEVEL UP![/] You reached level {level}.")


def print_link_result(result: dict) -> None:
    """Print the outcome of linking a guest into an account."""
    lines: list[str] = []
    lines.append("")
    if result.get("merged"):
        lines.append(f"  Guest XP carried over: {format_number(result.get('guest_xp', 0))}")
    else:
        lines.append("  No guest progress to merge.")
    lines.append(f"  Total XP: {format_number(result.get('total_xp', 0))}")
    lines.append(f"  Level:    {result.get('level', 1)}")
    lines.append(f"  Streak:   {result.get('streak', 0)} days")
    lines.append("")

    panel = Panel(
        "\n".join(lines),
        title="[bold]Account Linked[/]",
        box=box.ROUNDED,
        border_style="green",
        width=50,
    )
    console.print(panel)


def print_error(message: str) -> None:
    """Print an error line."""
    console.print(f"[bold red]Error:[/] {message}")


def print_config_result(result: dict) -> None:
    """Print the settings that were saved."""
    lines: list[str] = [""]
    if "db_path" in result:
        lines.append(f"  Database:  [bold]{result['db_path']}[/]")
    if "log_level" in result:
        lines.append(f"  Log level: [bold]{result['log_level']}[/]")
    lines.append("")
    console.print(
        Panel(
            "\n".join(lines),
            title="[bold]Config Saved[/]",
            box=box.ROUNDED,
            border_style="green",
            width=50,
        )
    )
