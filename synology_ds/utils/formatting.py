"""
Helper functions for formatting data into human-readable strings.
"""

from typing import Optional


def format_size(bytes_size: int) -> str:
    """Formats bytes into a human-readable size string (e.g., '145.3 MB')."""
    if bytes_size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    i = 0
    while bytes_size >= 1024 and i < len(units) - 1:
        bytes_size /= 1024
        i += 1
    return f"{bytes_size:.1f} {units[i]}"


def format_speed(bytes_per_second: Optional[int]) -> str:
    """Formats a transfer rate, e.g. '1.2 MB/s'. Zero renders as a dash."""
    if not bytes_per_second or bytes_per_second <= 0:
        return "-"
    return f"{format_size(bytes_per_second)}/s"


def format_percent(percent: Optional[float]) -> str:
    """Formats a 0-100 progress value, e.g. '42%'. Unknown renders as a dash."""
    if percent is None:
        return "-"
    return f"{percent:.0f}%"


def format_duration(seconds: Optional[float]) -> str:
    """
    Formats a duration in seconds into a human-readable string (e.g., '2h 34m 12s').
    None renders as '--' for unknown remaining times.
    """
    if seconds is None:
        return "--"
    s = int(seconds)
    days, s = divmod(s, 86400)
    hours, remainder = divmod(s, 3600)
    minutes, secs = divmod(remainder, 60)
    parts = []
    if days > 0:
        parts.append(f"{days}d")
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if (secs > 0 or not parts) and days == 0:
        parts.append(f"{secs}s")
    return " ".join(parts)


def truncate(text: str, width: int) -> str:
    """Shortens text to ``width`` characters, ending with an ellipsis when cut."""
    if width <= 0:
        return ""
    if len(text) <= width:
        return text
    if width == 1:
        return "…"
    return text[: width - 1] + "…"
