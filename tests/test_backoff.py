from datetime import UTC, datetime, timedelta

import pytest

from api.v1.communications.backoff import backoff_delay_seconds, compute_next_attempt


@pytest.mark.parametrize(
    "attempts,expected",
    [(0, 60), (1, 60), (2, 120), (3, 240), (4, 480), (5, 960), (6, 1920), (7, 3600)],
)
def test_backoff_delay_defaults(attempts, expected):
    """Delay doubles per attempt from a 60 second floor."""
    assert backoff_delay_seconds(attempts) == expected


def test_backoff_delay_capped_for_large_attempt_counts():
    """Very large attempt counts never exceed the cap."""
    assert backoff_delay_seconds(10_000) == 3600


def test_backoff_delay_custom_base_and_cap():
    assert backoff_delay_seconds(3, base_s=10, max_s=50) == 50
    assert backoff_delay_seconds(2, base_s=10, max_s=50) == 40


def test_compute_next_attempt_is_offset_from_now():
    now = datetime(2026, 3, 1, 8, 30, tzinfo=UTC)

    assert compute_next_attempt(1, now=now) == now + timedelta(seconds=60)
    assert compute_next_attempt(20, now=now) == now + timedelta(hours=1)


def test_compute_next_attempt_defaults_to_current_time():
    before = datetime.now(UTC)
    next_attempt = compute_next_attempt(1)

    assert next_attempt >= before + timedelta(seconds=60)
    assert next_attempt.tzinfo is not None
