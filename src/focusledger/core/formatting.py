"""Human-readable duration formatting."""


def ms_to_clock(ms: int) -> str:
    """Format *ms* as ``M:SS``."""
    total = max(int(ms), 0) // 1000
    return f"{total // 60}:{total % 60:02d}"


def format_total_duration(ms: int) -> str:
    """Format *ms* as hours and minutes, e.g. ``1h 30m``, ``45m`` or ``0m``."""
    total_minutes = max(int(ms), 0) // 60_000
    hours, minutes = divmod(total_minutes, 60)
    if hours and minutes:
        return f"{hours}h {minutes}m"
    if hours:
        return f"{hours}h"
    return f"{minutes}m"
