"""
Mission analytics engine.

Turns per-user mission progress snapshots (nanosecond timestamps) into the
figures shown on the project admin dashboard: daily activity series, WAU/MAU,
lifecycle buckets and weekly retention cohorts.
"""

from .active_users import (  # noqa: F401
    active_users_in_window,
    daily_active_users,
    monthly_active_users,
    weekly_active_users,
)
from .activity import (  # noqa: F401
    build_activity_series,
    build_period_comparison,
    previous_range,
    users_for_day,
)
from .dataset import AnalyticsDataset  # noqa: F401
from .funnel import (  # noqa: F401
    average_per_user,
    build_funnel_metrics,
    mission_completion_rate,
    summarize_overview,
)
from .lifecycle import classify_lifecycle  # noqa: F401
from .models import (  # noqa: F401
    AggregatedFunnelStep,
    AnalyticsQuery,
    AnalyticsReport,
    ComparisonPoint,
    FunnelStepMetrics,
    LifecycleData,
    MetricKind,
    MetricSeries,
    OverviewStats,
    ProgressEntry,
    RetentionCellValue,
    RetentionCohortWeek,
    TimeSeriesDataPoint,
    UserAnalyticsRecord,
)
from .retention import build_retention_cohorts  # noqa: F401
from .service import MissionAnalyticsService  # noqa: F401
from .timeutils import day_key, nanos_to_date, start_of_week  # noqa: F401
