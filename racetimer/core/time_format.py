"""
time_format.py

Shared MM:SS.mmm formatter for the clock and the results list.
"""


def format_time(ms) -> str:
    """
    Format a duration in milliseconds as ``MM:SS.mmm``.

    There is no hour field: minutes keep counting past 59
    (``format_time(3_600_000) == "60:00.000"``). Negative values clamp to zero.
    """
    total_ms = max(0, int(ms))
    total_seconds = total_ms // 1000
    minutes = total_seconds // 60
    seconds = total_seconds % 60
    milliseconds = total_ms % 1000
    return f"{minutes:02d}:{seconds:02d}.{milliseconds:03d}"
