"""Parse clock times found in theater pages"""
import re
from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple

CLOCK_PATTERN = re.compile(r'(\d{1,2}):(\d{2})')

# Japanese theaters write post-midnight shows as 24:00-30:59 of the same day
MAX_HOUR = 30
MAX_MINUTE = 59


def match_clock(text: str, max_length: int = 10, pattern=CLOCK_PATTERN) -> Optional[Tuple[int, int, str]]:
    """
    Find "H:MM" or "HH:MM" in short, already-trimmed text

    Decorated cells like "10:00～" or "▶9:30" match. Longer text is rejected
    so a sentence that merely mentions a time doesn't count. Returns
    (hour, minute, matched text) as written, without range checks.
    """
    if not text or len(text) >= max_length:
        return None
    match = pattern.search(text)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2)), match.group(0)


def is_valid_clock(hour: int, minute: int, max_hour: int = MAX_HOUR) -> bool:
    """Hours 0-30 (extended hours) and minutes 0-59"""
    return 0 <= hour <= max_hour and 0 <= minute <= MAX_MINUTE


def showtime_on(day: date, hour: int, minute: int) -> datetime:
    """
    Combine a date with a clock time

    Extended hours roll over: 25:30 on the 5th is 01:30 on the 6th.
    """
    extra_days, hour = divmod(hour, 24)
    return datetime.combine(day, time(hour, minute)) + timedelta(days=extra_days)


def local_today(tz) -> date:
    """Today's date in the theaters' timezone"""
    return datetime.now(tz).date()


def local_now_naive(tz) -> datetime:
    """Current time as naive datetime in the theaters' timezone (for DB comparisons)"""
    return datetime.now(tz).replace(tzinfo=None)
