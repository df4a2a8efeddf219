import json
from datetime import date, datetime, timezone

import pytest

from backend.mission_analytics.models import AnalyticsQuery, MetricKind
from backend.mission_analytics.service import MissionAnalyticsService


@pytest.fixture
def service(cohort_fixture, make_user):
    records = list(cohort_fixture) + [make_user("u4", (2024, 1, 15), [(2024, 1, 16), (2024, 1, 20)])]
    return MissionAnalyticsService(records)


class TestMissionAnalyticsService:
    def test_default_range_ends_on_reference(self, service):
        query = AnalyticsQuery(reference_date=datetime(2024, 1, 20, 15, tzinfo=timezone.utc))
        report = service.build(query)

        assert (report.range_start, report.range_end) == (date(2024, 1, 14), date(2024, 1, 20))
        assert [series.metric for series in report.series] == list(MetricKind)
        assert all(len(series.points) == 7 for series in report.series)
        assert all(series.comparison is None for series in report.series)

    def test_counters_and_sections(self, service):
        report = service.build(AnalyticsQuery(reference_date=datetime(2024, 1, 20, tzinfo=timezone.utc)))

        assert report.dau == 1
        assert report.wau == 1
        assert report.mau == 4
        assert report.lifecycle.new_users == 1
        assert report.lifecycle.churned_users == 2
        assert [cohort.cohort_date_label for cohort in report.retention] == [
            "Week of 2024-01-15",
            "Week of 2024-01-01",
        ]
        assert report.overview.unique_users == 4

    def test_explicit_range_with_comparison(self, service):
        query = AnalyticsQuery(
            reference_date=datetime(2024, 1, 20, tzinfo=timezone.utc),
            range_start=date(2024, 1, 8),
            range_end=date(2024, 1, 14),
            compare_previous=True,
        )
        report = service.build(query)
        active = report.series[0]

        assert active.points[0].date == "2024-01-08"
        assert len(active.comparison) == 7
        # 2024-01-01 (previous Day 1) had u1 active
        assert active.comparison[0].previous_value == 1

    def test_report_is_json_serialisable(self, service):
        report = service.build(
            AnalyticsQuery(reference_date=datetime(2024, 1, 20, tzinfo=timezone.utc), compare_previous=True)
        )
        payload = report.as_dict()

        encoded = json.loads(json.dumps(payload))
        assert encoded["rangeEnd"] == "2024-01-20"
        assert encoded["series"][0]["metric"] == "active-users"
        assert encoded["lifecycle"]["quickRatio"] == 0.5
        assert encoded["lifecycle"]["quickRatioLabel"] == "0.50"
        assert encoded["retention"][0]["retentionValues"][1]["percentage"] is None
        assert encoded["overview"]["avgMissionsAttempted"] == 1.5

    @pytest.mark.parametrize(
        "bounds",
        [{"range_start": date(2024, 1, 8)}, {"range_end": date(2024, 1, 14)}],
    )
    def test_half_open_range_rejected(self, bounds):
        with pytest.raises(ValueError, match="given together"):
            AnalyticsQuery(reference_date=datetime(2024, 1, 20, tzinfo=timezone.utc), **bounds)

    def test_records_are_not_mutated(self, service):
        before = service.records
        service.build(AnalyticsQuery(reference_date=datetime(2024, 1, 20, tzinfo=timezone.utc)))
        assert service.records == before
