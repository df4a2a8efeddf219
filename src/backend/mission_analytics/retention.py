from __future__ import annotations

import logging
from datetime import date, timedelta, tzinfo
from typing import Dict, List, Sequence, Union

from .dataset import AnalyticsDataset
from .models import RetentionCellValue, RetentionCohortWeek, UserAnalyticsRecord
from .timeutils import DateLike, start_of_week, to_local_day

logger = logging.getLogger(__name__)


def build_retention_cohorts(
    records: Sequence[UserAnalyticsRecord],
    num_weeks_to_track: int,
    reference_date: DateLike,
    tz: Union[str, tzinfo, None] = None,
) -> List[RetentionCohortWeek]:
    """
    Weekly join cohorts with the share of members active in each following week.

    Users are grouped by the Monday of the week they were first seen in, and
    that membership never changes. Week ``i`` of a cohort covers the seven days
    starting ``i`` weeks after the cohort's Monday; weeks starting after the
    reference day are reported as ``percentage=None``. Newest cohort first.
    """

    if not records:
        return []
    if num_weeks_to_track < 0:
        raise ValueError("num_weeks_to_track must not be negative")

    dataset = AnalyticsDataset(records, tz)
    reference_day = to_local_day(reference_date, dataset.tz)
    most_recent_monday = start_of_week(reference_day)

    cohorts: Dict[date, Dict[str, None]] = {}
    for record in dataset:
        cohort_start = start_of_week(dataset.first_seen_day(record))
        if cohort_start > most_recent_monday:
            logger.debug("Skipping %s: joined after week of %s", record.user_uuid, most_recent_monday)
            continue
        cohorts.setdefault(cohort_start, {}).setdefault(record.user_uuid)

    results: List[RetentionCohortWeek] = []
    for cohort_start in sorted(cohorts, reverse=True):
        members = list(cohorts[cohort_start])
        cohort_size = len(members)
        cells: List[RetentionCellValue] = []

        for week_index in range(num_weeks_to_track):
            week_start = cohort_start + timedelta(days=week_index * 7)
            week_end = week_start + timedelta(days=6)
            if week_start > reference_day:
                cells.append(RetentionCellValue(percentage=None, users=()))
                continue

            retained = [
                user_uuid
                for user_uuid in members
                if dataset.is_active_between(dataset.get(user_uuid), week_start, week_end)
            ]
            percentage = len(retained) / cohort_size * 100 if cohort_size else 0.0
            cells.append(RetentionCellValue(percentage=percentage, users=tuple(retained)))

        results.append(
            RetentionCohortWeek(
                cohort_date_label=f"Week of {cohort_start.isoformat()}",
                cohort_start_date=cohort_start,
                cohort_size=cohort_size,
                retention_values=tuple(cells),
            )
        )

    logger.debug("Built %d retention cohorts up to week of %s", len(results), most_recent_monday)
    return results
