from __future__ import annotations

import logging
from datetime import date, timedelta, tzinfo
from typing import Dict, List, Sequence, Tuple, Union

from .dataset import AnalyticsDataset
from .models import ComparisonPoint, MetricKind, TimeSeriesDataPoint, UserAnalyticsRecord
from .timeutils import DateLike, day_range, to_local_day

logger = logging.getLogger(__name__)


def build_activity_series(
    records: Sequence[UserAnalyticsRecord],
    metric_kind: Union[MetricKind, str],
    range_start: DateLike,
    range_end: DateLike,
    tz: Union[str, tzinfo, None] = None,
) -> List[TimeSeriesDataPoint]:
    """
    Build one dense daily series for ``metric_kind`` over ``[range_start, range_end]``.

    Every day of the range is present (zero when nothing happened) and points
    are ordered by date ascending. Counting rules:

    - ``active-users``: one per user per day with any entry last active that day.
    - ``new-users``: one per user on the day they were first seen.
    - ``completions``: one per entry completed on the same day it was last
      active. Entries completed on a different day count nowhere.
    """

    kind = MetricKind.parse(metric_kind)
    dataset = AnalyticsDataset(records, tz)
    start = to_local_day(range_start, dataset.tz)
    end = to_local_day(range_end, dataset.tz)

    buckets: Dict[date, int] = {day: 0 for day in day_range(start, end)}
    if not buckets:
        return []

    for record in dataset:
        if kind is MetricKind.NEW_USERS:
            first_seen = dataset.first_seen_day(record)
            if first_seen in buckets:
                buckets[first_seen] += 1
        elif kind is MetricKind.ACTIVE_USERS:
            for day in set(dataset.activity_days(record)):
                if day in buckets:
                    buckets[day] += 1
        else:
            for _, day in dataset.same_day_completions(record):
                if day in buckets:
                    buckets[day] += 1

    logger.debug("Built %s series for %s..%s over %d records", kind.value, start, end, len(dataset))
    return [TimeSeriesDataPoint(date=day.isoformat(), value=value) for day, value in sorted(buckets.items())]


def users_for_day(
    records: Sequence[UserAnalyticsRecord],
    metric_kind: Union[MetricKind, str],
    day: DateLike,
    tz: Union[str, tzinfo, None] = None,
) -> List[str]:
    """
    List the users behind a single chart point.

    Completions are attributed by completion day here, regardless of the
    entry's last activity.
    """

    kind = MetricKind.parse(metric_kind)
    dataset = AnalyticsDataset(records, tz)
    target = to_local_day(day, dataset.tz)

    users: Dict[str, None] = {}
    for record in dataset:
        if kind is MetricKind.NEW_USERS:
            matched = dataset.first_seen_day(record) == target
        elif kind is MetricKind.ACTIVE_USERS:
            matched = target in dataset.activity_days(record)
        else:
            matched = any(
                entry.completion_time is not None and dataset.day(entry.completion_time) == target
                for entry in record.progress_entries
            )
        if matched:
            users.setdefault(record.user_uuid)
    return list(users)


def previous_range(range_start: date, range_end: date) -> Tuple[date, date]:
    """The range of equal length ending the day before ``range_start``."""

    length = (range_end - range_start).days + 1
    previous_end = range_start - timedelta(days=1)
    return previous_end - timedelta(days=length - 1), previous_end


def build_period_comparison(
    records: Sequence[UserAnalyticsRecord],
    metric_kind: Union[MetricKind, str],
    range_start: DateLike,
    range_end: DateLike,
    tz: Union[str, tzinfo, None] = None,
) -> List[ComparisonPoint]:
    """
    Align the series for a range with the series for the preceding range.

    Points are matched by position (``Day 1`` is the first day of each range).
    """

    dataset = AnalyticsDataset(records, tz)
    start = to_local_day(range_start, dataset.tz)
    end = to_local_day(range_end, dataset.tz)
    if end < start:
        return []

    prev_start, prev_end = previous_range(start, end)
    current = build_activity_series(dataset.records, metric_kind, start, end, dataset.tz)
    previous = build_activity_series(dataset.records, metric_kind, prev_start, prev_end, dataset.tz)
    return [
        ComparisonPoint(
            day_label=f"Day {index + 1}",
            current_value=current_point.value,
            previous_value=previous_point.value,
        )
        for index, (current_point, previous_point) in enumerate(zip(current, previous))
    ]
