"""
Helper functions for formatting data into human-readable strings.
"""

from datetime import datetime, timezone


def format_size(bytes_size: int) -> str:
    """Formats bytes into a human-readable size string (e.g., '145.3 MB')."""
    if bytes_size <= 0:
        return "0 B"
    size = float(bytes_size)
    units = ["B", "KB", "MB", "GB", "TB"]
    i = 0
    while size >= 1024 and i < len(units) - 1:
        size /= 1024
        i += 1
    if i == 0:
        return f"{int(size)} B"
    return f"{size:.1f} {units[i]}"


def format_duration(seconds: float) -> str:
    """
    Formats a duration in seconds into a human-readable string (e.g., '1m 12s').
    Sub-second durations are shown in milliseconds.
    """
    if 0 < seconds < 1:
        return f"{int(seconds * 1000)}ms"
    s = int(seconds)
    hours, remainder = divmod(s, 3600)
    minutes, secs = divmod(remainder, 60)
    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if secs > 0 or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)


def format_age(moment: datetime, now: datetime | None = None) -> str:
    """Formats how long ago `moment` was (e.g., '3h 5m ago')."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    delta = (now - moment).total_seconds()
    if delta < 60:
        return "just now"
    return f"{format_duration(delta // 60 * 60)} ago"
