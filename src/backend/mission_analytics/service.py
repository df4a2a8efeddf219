from __future__ import annotations

from datetime import date, timedelta
from typing import List, Sequence, Tuple

from .active_users import daily_active_users, monthly_active_users, weekly_active_users
from .activity import build_activity_series, build_period_comparison
from .funnel import summarize_overview
from .lifecycle import classify_lifecycle
from .models import AnalyticsQuery, AnalyticsReport, MetricKind, MetricSeries, UserAnalyticsRecord
from .retention import build_retention_cohorts
from .timeutils import coerce_timezone, to_local_day


class MissionAnalyticsService:
    """
    Builds every dashboard figure for one project snapshot.

    The service only holds the records it was given; each ``build`` call
    recomputes everything from them.
    """

    def __init__(self, records: Sequence[UserAnalyticsRecord]) -> None:
        self.records = tuple(records)

    def build(self, query: AnalyticsQuery) -> AnalyticsReport:
        tz = coerce_timezone(query.timezone)
        range_start, range_end = self.resolve_range(query)

        return AnalyticsReport(
            range_start=range_start,
            range_end=range_end,
            series=self._build_series(query, range_start, range_end),
            dau=daily_active_users(self.records, query.reference_date, tz),
            wau=weekly_active_users(self.records, query.reference_date, tz),
            mau=monthly_active_users(self.records, query.reference_date, tz),
            lifecycle=classify_lifecycle(self.records, query.period_length_days, query.reference_date, tz),
            retention=build_retention_cohorts(self.records, query.num_weeks_to_track, query.reference_date, tz),
            overview=summarize_overview(self.records),
        )

    @staticmethod
    def resolve_range(query: AnalyticsQuery) -> Tuple[date, date]:
        tz = coerce_timezone(query.timezone)
        if query.range_start is not None and query.range_end is not None:
            return to_local_day(query.range_start, tz), to_local_day(query.range_end, tz)
        end = to_local_day(query.reference_date, tz)
        return end - timedelta(days=query.period_length_days - 1), end

    def _build_series(self, query: AnalyticsQuery, range_start: date, range_end: date) -> List[MetricSeries]:
        series: List[MetricSeries] = []
        for kind in MetricKind:
            points = build_activity_series(self.records, kind, range_start, range_end, query.timezone)
            comparison = None
            if query.compare_previous:
                comparison = build_period_comparison(self.records, kind, range_start, range_end, query.timezone)
            series.append(MetricSeries(metric=kind, points=points, comparison=comparison))
        return series
