"""
Timestamp parsing and formatting for TTML time expressions.
"""

import math
import re

from .errors import MalformedTimestamp

# Sentinel for an interval with no known end
UNBOUNDED = math.inf
UNBOUNDED_TEXT = "99:99.999"
ZERO_TEXT = "00:00.000"

# [[HH:]MM:]SS[.fff]
_CLOCK_RE = re.compile(r"^(?:(?:(?P<h>\d+):)?(?P<m>\d+):)?(?P<s>\d+)(?:\.(?P<f>\d+))?$")
# 12s, 12.3s
_SECONDS_RE = re.compile(r"^(?P<s>\d+)(?:\.(?P<f>\d+))?s$")


def _fraction_ms(digits: str | None) -> int:
    """Scale a fractional-second digit string to whole milliseconds (floored)."""
    if not digits:
        return 0
    return int(digits[:3].ljust(3, "0"))


def parse_timestamp(text: str) -> int | float:
    """Parse a TTML time expression into integer milliseconds."""
    if not isinstance(text, str):
        raise MalformedTimestamp(repr(text), "不是字符串")
    raw = text.strip()
    if raw == UNBOUNDED_TEXT:
        return UNBOUNDED

    m = _CLOCK_RE.match(raw)
    if m:
        hours = int(m.group("h") or 0)
        minutes = int(m.group("m") or 0)
        seconds = int(m.group("s"))
        if ":" in raw:
            if minutes >= 60:
                raise MalformedTimestamp(text, f"分钟值 {minutes} 应小于 60")
            if seconds >= 60:
                raise MalformedTimestamp(text, f"秒值 {seconds} 应小于 60")
        return (hours * 3600 + minutes * 60 + seconds) * 1000 + _fraction_ms(m.group("f"))

    m = _SECONDS_RE.match(raw)
    if m:
        return int(m.group("s")) * 1000 + _fraction_ms(m.group("f"))

    raise MalformedTimestamp(text)


def format_timestamp(ms: float | None) -> str:
    """Format milliseconds as MM:SS.fff, or HH:MM:SS.fff from one hour up."""
    if ms == UNBOUNDED:
        return UNBOUNDED_TEXT
    if ms is None or not isinstance(ms, (int, float)) or not math.isfinite(ms) or ms < 0:
        return ZERO_TEXT
    total = int(ms)
    hours, rest = divmod(total, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    seconds, millis = divmod(rest, 1000)
    if hours > 0:
        return f"{hours:02}:{minutes:02}:{seconds:02}.{millis:03}"
    return f"{minutes:02}:{seconds:02}.{millis:03}"
