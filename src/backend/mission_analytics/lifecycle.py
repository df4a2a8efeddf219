from __future__ import annotations

import logging
from datetime import timedelta, tzinfo
from typing import Optional, Sequence, Set, Union

from .dataset import AnalyticsDataset
from .models import LifecycleData, UserAnalyticsRecord
from .timeutils import DateLike, trailing_window

logger = logging.getLogger(__name__)


def classify_lifecycle(
    records: Sequence[UserAnalyticsRecord],
    period_length_days: int,
    reference_date: DateLike,
    tz: Union[str, tzinfo, None] = None,
) -> Optional[LifecycleData]:
    """
    Split users between the current period and the equally long one before it.

    Among users active in the current period, those first seen inside it are
    new (even if they were also active before), the rest are retained when
    active in the previous period and resurrected otherwise. Users active only
    in the previous period are churned.
    """

    if not records:
        return None
    if period_length_days < 1:
        raise ValueError("period_length_days must be at least 1")

    dataset = AnalyticsDataset(records, tz)
    current_start, current_end = trailing_window(reference_date, period_length_days, dataset.tz)
    previous_start, previous_end = trailing_window(
        current_start - timedelta(days=1), period_length_days, dataset.tz
    )

    active_current: Set[str] = set()
    active_previous: Set[str] = set()
    new_in_current: Set[str] = set()

    for record in dataset:
        days = dataset.activity_days(record)
        if any(current_start <= day <= current_end for day in days):
            active_current.add(record.user_uuid)
            if current_start <= dataset.first_seen_day(record) <= current_end:
                new_in_current.add(record.user_uuid)
        if any(previous_start <= day <= previous_end for day in days):
            active_previous.add(record.user_uuid)

    new_count = retained_count = resurrected_count = 0
    for user_uuid in active_current:
        if user_uuid in new_in_current:
            new_count += 1
        elif user_uuid in active_previous:
            retained_count += 1
        else:
            resurrected_count += 1

    churned_count = len(active_previous - active_current)
    quick_ratio = None
    if churned_count:
        quick_ratio = round((new_count + resurrected_count) / churned_count, 2)

    logger.debug(
        "Lifecycle %s..%s: new=%d retained=%d resurrected=%d churned=%d",
        current_start,
        current_end,
        new_count,
        retained_count,
        resurrected_count,
        churned_count,
    )
    return LifecycleData(
        new_users=new_count,
        retained_users=retained_count,
        resurrected_users=resurrected_count,
        churned_users=churned_count,
        current_period_active_users=len(active_current),
        previous_period_active_users=len(active_previous),
        quick_ratio=quick_ratio,
    )
