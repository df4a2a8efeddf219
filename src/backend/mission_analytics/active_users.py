from __future__ import annotations

import logging
from datetime import tzinfo
from typing import Sequence, Set, Union

from .dataset import AnalyticsDataset
from .models import UserAnalyticsRecord
from .timeutils import DateLike, to_local_day, trailing_window

logger = logging.getLogger(__name__)

WAU_WINDOW_DAYS = 7
MAU_WINDOW_DAYS = 30


def active_users_in_window(
    records: Sequence[UserAnalyticsRecord],
    start: DateLike,
    end: DateLike,
    tz: Union[str, tzinfo, None] = None,
) -> Set[str]:
    """
    Users with at least one entry last active between ``start`` and ``end``.

    Both bounds are inclusive calendar days.
    """

    dataset = AnalyticsDataset(records, tz)
    window_start = to_local_day(start, dataset.tz)
    window_end = to_local_day(end, dataset.tz)
    return {
        record.user_uuid
        for record in dataset
        if dataset.is_active_between(record, window_start, window_end)
    }


def _trailing_active_users(
    records: Sequence[UserAnalyticsRecord],
    reference_date: DateLike,
    days: int,
    tz: Union[str, tzinfo, None],
) -> int:
    start, end = trailing_window(reference_date, days, tz)
    count = len(active_users_in_window(records, start, end, tz))
    logger.debug("%d active users in %s..%s", count, start, end)
    return count


def daily_active_users(
    records: Sequence[UserAnalyticsRecord],
    reference_date: DateLike,
    tz: Union[str, tzinfo, None] = None,
) -> int:
    return _trailing_active_users(records, reference_date, 1, tz)


def weekly_active_users(
    records: Sequence[UserAnalyticsRecord],
    reference_date: DateLike,
    tz: Union[str, tzinfo, None] = None,
) -> int:
    """Unique users active in the 7 days ending on ``reference_date``."""
    return _trailing_active_users(records, reference_date, WAU_WINDOW_DAYS, tz)


def monthly_active_users(
    records: Sequence[UserAnalyticsRecord],
    reference_date: DateLike,
    tz: Union[str, tzinfo, None] = None,
) -> int:
    """Unique users active in the 30 days ending on ``reference_date``."""
    return _trailing_active_users(records, reference_date, MAU_WINDOW_DAYS, tz)
