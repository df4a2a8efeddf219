from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence


NO_CHURN_LABEL = "N/A (No Churn)"


class MetricKind(str, Enum):
    ACTIVE_USERS = "active-users"
    NEW_USERS = "new-users"
    COMPLETIONS = "completions"

    @classmethod
    def parse(cls, value: "MetricKind | str") -> "MetricKind":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(kind.value for kind in cls)
            raise ValueError(f"unknown metric kind {value!r}; expected one of: {allowed}") from None


@dataclass(frozen=True)
class ProgressEntry:
    """
    Per-(user, mission) engagement record as handed over by the backend.

    All timestamps are integer nanoseconds since the epoch. ``completion_time``
    is only present once the mission has been completed.
    """

    mission_id: int
    last_active_time: int
    completion_time: Optional[int] = None


@dataclass(frozen=True)
class UserAnalyticsRecord:
    """
    Snapshot of one user's analytics row for a project.

    ``first_seen_time_approx`` is assigned once by the backend and is the only
    input used for cohort membership.
    """

    user_uuid: str
    first_seen_time_approx: int
    progress_entries: Sequence[ProgressEntry] = field(default_factory=tuple)


@dataclass(frozen=True)
class TimeSeriesDataPoint:
    date: str
    value: int


@dataclass(frozen=True)
class ComparisonPoint:
    day_label: str
    current_value: int
    previous_value: int


@dataclass(frozen=True)
class LifecycleData:
    """
    Lifecycle buckets for one (period length, reference date) pair.

    ``quick_ratio`` is ``None`` when nobody churned; use ``quick_ratio_label``
    for display.
    """

    new_users: int
    retained_users: int
    resurrected_users: int
    churned_users: int
    current_period_active_users: int
    previous_period_active_users: int
    quick_ratio: Optional[float] = None

    @property
    def quick_ratio_label(self) -> str:
        if self.quick_ratio is None:
            return NO_CHURN_LABEL
        return f"{self.quick_ratio:.2f}"


@dataclass(frozen=True)
class RetentionCellValue:
    percentage: Optional[float]
    users: Sequence[str] = field(default_factory=tuple)


@dataclass(frozen=True)
class RetentionCohortWeek:
    cohort_date_label: str
    cohort_start_date: date
    cohort_size: int
    retention_values: Sequence[RetentionCellValue]


@dataclass(frozen=True)
class AggregatedFunnelStep:
    """Per-step counters returned by the backend for a mission funnel."""

    step_id: int
    users_reached_step: int
    users_completed_step: int
    step_name: Optional[str] = None


@dataclass(frozen=True)
class FunnelStepMetrics:
    step_id: int
    label: str
    users_reached: int
    users_completed: int
    step_conversion_rate: float
    overall_conversion_rate: float
    drop_off_from_previous: float
    drop_off_within_step: float


@dataclass(frozen=True)
class OverviewStats:
    unique_users: int
    missions_attempted: int
    missions_completed: int
    avg_missions_attempted: Optional[float]
    avg_missions_completed: Optional[float]


@dataclass(frozen=True)
class AnalyticsQuery:
    """
    Parameters shared by every report section.

    ``range_start``/``range_end`` are inclusive calendar days. When they are
    omitted the range covers the ``period_length_days`` days ending on
    ``reference_date``. ``timezone`` decides which calendar day a timestamp
    belongs to.
    """

    reference_date: datetime
    range_start: Optional[date] = None
    range_end: Optional[date] = None
    period_length_days: int = 7
    num_weeks_to_track: int = 8
    timezone: str = "UTC"
    compare_previous: bool = False

    def __post_init__(self) -> None:
        if (self.range_start is None) != (self.range_end is None):
            raise ValueError("range_start and range_end must be given together")


@dataclass(frozen=True)
class MetricSeries:
    metric: MetricKind
    points: Sequence[TimeSeriesDataPoint]
    comparison: Optional[Sequence[ComparisonPoint]] = None


@dataclass(frozen=True)
class AnalyticsReport:
    range_start: date
    range_end: date
    series: Sequence[MetricSeries]
    dau: int
    wau: int
    mau: int
    lifecycle: Optional[LifecycleData]
    retention: Sequence[RetentionCohortWeek]
    overview: OverviewStats

    def as_dict(self) -> Dict[str, Any]:
        """
        Convert the nested dataclasses into a JSON-serialisable structure.

        Keys are camelCased for the admin console charts.
        """

        return {
            "rangeStart": self.range_start.isoformat(),
            "rangeEnd": self.range_end.isoformat(),
            "series": [serialize(series) for series in self.series],
            "dau": self.dau,
            "wau": self.wau,
            "mau": self.mau,
            "lifecycle": serialize(self.lifecycle),
            "retention": [serialize(cohort) for cohort in self.retention],
            "overview": serialize(self.overview),
        }


def serialize(obj: Any) -> Any:
    if obj is None:
        return None
    if isinstance(obj, AnalyticsReport):
        return obj.as_dict()
    if isinstance(obj, MetricSeries):
        return {
            "metric": obj.metric.value,
            "points": [serialize(point) for point in obj.points],
            "comparison": (
                None if obj.comparison is None else [serialize(point) for point in obj.comparison]
            ),
        }
    if isinstance(obj, TimeSeriesDataPoint):
        return {"date": obj.date, "value": obj.value}
    if isinstance(obj, ComparisonPoint):
        return {
            "dayLabel": obj.day_label,
            "currentValue": obj.current_value,
            "previousValue": obj.previous_value,
        }
    if isinstance(obj, LifecycleData):
        return {
            "newUsers": obj.new_users,
            "retainedUsers": obj.retained_users,
            "resurrectedUsers": obj.resurrected_users,
            "churnedUsers": obj.churned_users,
            "currentPeriodActiveUsers": obj.current_period_active_users,
            "previousPeriodActiveUsers": obj.previous_period_active_users,
            "quickRatio": obj.quick_ratio,
            "quickRatioLabel": obj.quick_ratio_label,
        }
    if isinstance(obj, RetentionCohortWeek):
        return {
            "cohortDateLabel": obj.cohort_date_label,
            "cohortStartDate": obj.cohort_start_date.isoformat(),
            "cohortSize": obj.cohort_size,
            "retentionValues": [serialize(cell) for cell in obj.retention_values],
        }
    if isinstance(obj, RetentionCellValue):
        return {"percentage": obj.percentage, "users": list(obj.users)}
    if isinstance(obj, FunnelStepMetrics):
        return {
            "stepId": obj.step_id,
            "label": obj.label,
            "usersReached": obj.users_reached,
            "usersCompleted": obj.users_completed,
            "stepConversionRate": obj.step_conversion_rate,
            "overallConversionRate": obj.overall_conversion_rate,
            "dropOffFromPrevious": obj.drop_off_from_previous,
            "dropOffWithinStep": obj.drop_off_within_step,
        }
    if isinstance(obj, OverviewStats):
        return {
            "uniqueUsers": obj.unique_users,
            "missionsAttempted": obj.missions_attempted,
            "missionsCompleted": obj.missions_completed,
            "avgMissionsAttempted": obj.avg_missions_attempted,
            "avgMissionsCompleted": obj.avg_missions_completed,
        }
    return obj


def serialize_many(items: Iterable[Any]) -> List[Any]:
    return [serialize(item) for item in items]
