"""Time calculation utilities.

Day windows are computed in local time using the system offset at
computation time.
"""
import time
from datetime import datetime, timedelta

MS_PER_MINUTE = 60 * 1000


def now_ms() -> int:
    """Get current timestamp in milliseconds."""
    return int(time.time() * 1000)


def to_ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


def from_ms(ts_ms: int) -> datetime:
    """Convert a millisecond timestamp to a naive local datetime."""
    return datetime.fromtimestamp(ts_ms / 1000)


def start_of_day_ms(current_ms: int) -> int:
    """Get the start of the local calendar day containing ``current_ms``."""
    current = from_ms(current_ms)
    midnight = current.replace(hour=0, minute=0, second=0, microsecond=0)
    return to_ms(midnight)


def day_windows(current_ms: int, days: int = 2) -> list[tuple[int, int]]:
    """Compute consecutive local day windows starting with today.

    Args:
        current_ms: Current timestamp in ms
        days: Number of windows, today first

    Returns:
        List of half-open ``(start_ms, end_ms)`` windows
    """
    midnight = from_ms(start_of_day_ms(current_ms))
    windows = []
    for i in range(days):
        start = midnight + timedelta(days=i)
        end = midnight + timedelta(days=i + 1)
        windows.append((to_ms(start), to_ms(end)))
    return windows


def format_ms(ts_ms: int) -> str:
    """Format a timestamp for logs and the CLI."""
    return from_ms(ts_ms).strftime("%Y-%m-%d %H:%M")


def offset_to_human(offset_minutes: int) -> str:
    """Convert an offset in minutes to "H:MM".

    Args:
        offset_minutes: Offset in minutes

    Returns:
        Hours and zero-padded minutes, e.g. "1:30"
    """
    hours, minutes = divmod(offset_minutes, 60)
    return f"{hours}:{minutes:02d}"


def relative_to_human(target_ms: int, current_ms: int) -> str:
    """Describe ``target_ms`` relative to ``current_ms``.

    Returns:
        "now", "in H:MM" or "H:MM ago"
    """
    delta_minutes = round((target_ms - current_ms) / MS_PER_MINUTE)
    if delta_minutes == 0:
        return "now"
    if delta_minutes > 0:
        return f"in {offset_to_human(delta_minutes)}"
    return f"{offset_to_human(-delta_minutes)} ago"
