"""
Retry delay calculation for delivery jobs.
"""

from datetime import UTC, datetime, timedelta

DEFAULT_BACKOFF_BASE_S = 30
DEFAULT_MAX_BACKOFF_S = 3600


def backoff_delay_seconds(
    attempts: int,
    base_s: int = DEFAULT_BACKOFF_BASE_S,
    max_s: int = DEFAULT_MAX_BACKOFF_S,
) -> int:
    """
    Delay before the next attempt: base * 2^max(1, attempts), capped at max_s.

    With the defaults attempts 1..5 give 60, 120, 240, 480 and 960 seconds
    and no attempt count ever waits more than an hour.
    """
    # Bounded exponent; anything past 2^32 is over the cap anyway
    exponent = min(max(1, attempts), 32)
    return min(max_s, base_s * 2**exponent)


def compute_next_attempt(
    attempts: int,
    now: datetime | None = None,
    base_s: int = DEFAULT_BACKOFF_BASE_S,
    max_s: int = DEFAULT_MAX_BACKOFF_S,
) -> datetime:
    """Earliest time a job that has made ``attempts`` attempts may run again."""
    now = now or datetime.now(UTC)
    return now + timedelta(seconds=backoff_delay_seconds(attempts, base_s, max_s))
