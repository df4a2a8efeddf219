from datetime import datetime, timezone

import pytest

from backend.mission_analytics.models import ProgressEntry, UserAnalyticsRecord


def to_ns(year, month, day, hour=12, minute=0):
    """UTC wall time as integer nanoseconds since the epoch."""
    moment = datetime(year, month, day, hour, minute, tzinfo=timezone.utc)
    return int(moment.timestamp()) * 1_000_000_000


@pytest.fixture
def ns():
    return to_ns


@pytest.fixture
def make_user():
    """Build a record from a first-seen day and a list of activity days.

    ``activity`` items are ``(year, month, day)`` tuples or ``ProgressEntry``
    instances; tuples become entries for consecutive mission ids.
    """

    def _make(user_uuid, first_seen, activity=()):
        entries = []
        for mission_id, item in enumerate(activity, start=1):
            if isinstance(item, ProgressEntry):
                entries.append(item)
            else:
                entries.append(ProgressEntry(mission_id=mission_id, last_active_time=to_ns(*item)))
        return UserAnalyticsRecord(
            user_uuid=user_uuid,
            first_seen_time_approx=to_ns(*first_seen),
            progress_entries=tuple(entries),
        )

    return _make


@pytest.fixture
def cohort_fixture(make_user):
    """Three users joining the week of 2024-01-01, one back in the week after."""
    return [
        make_user("u1", (2024, 1, 1), [(2024, 1, 1), (2024, 1, 9)]),
        make_user("u2", (2024, 1, 2), [(2024, 1, 3)]),
        make_user("u3", (2024, 1, 4), [(2024, 1, 7)]),
    ]
