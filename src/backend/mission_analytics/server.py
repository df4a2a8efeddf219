from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field, ValidationInfo, field_validator, model_validator
from sqlalchemy.exc import SQLAlchemyError

from .activity import build_activity_series, build_period_comparison
from .config import configure_logging, load_settings
from .funnel import build_funnel_metrics, mission_completion_rate
from .lifecycle import classify_lifecycle
from .models import (
    AggregatedFunnelStep,
    AnalyticsQuery,
    MetricKind,
    MetricSeries,
    ProgressEntry,
    UserAnalyticsRecord,
    serialize,
    serialize_many,
)
from .repository import AnalyticsRepository, build_repository_from_env
from .retention import build_retention_cohorts
from .service import MissionAnalyticsService
from .timeutils import coerce_timezone

settings = load_settings()
logger = logging.getLogger(__name__)

MAX_PERIOD_DAYS = 3660
MAX_WEEKS_TO_TRACK = 520

T = TypeVar("T")


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    configure_logging(settings.log_level)
    yield


app = FastAPI(title="Mission Analytics API", version="0.1.0", lifespan=lifespan)
repository: Optional[AnalyticsRepository] = build_repository_from_env(settings)


class ProgressEntryPayload(BaseModel):
    mission_id: int
    last_active_time: int = Field(..., ge=0)
    completion_time: Optional[int] = Field(default=None, ge=0)


class UserRecordPayload(BaseModel):
    user_uuid: str
    first_seen_time_approx: int = Field(..., ge=0)
    progress_entries: List[ProgressEntryPayload] = Field(default_factory=list)


class SnapshotRequest(BaseModel):
    project_id: Optional[str] = None
    records: Optional[List[UserRecordPayload]] = None
    reference_date: Optional[datetime] = None
    timezone: str = Field(default_factory=lambda: settings.timezone)


class SeriesRequest(SnapshotRequest):
    metric: MetricKind
    range_start: date
    range_end: date
    compare_previous: bool = False

    @field_validator("range_end")
    @classmethod
    def _validate_range(cls, range_end: date, info: ValidationInfo) -> date:
        range_start = info.data.get("range_start")
        if range_start and range_end < range_start:
            raise ValueError("range_end must not be before range_start")
        if range_start and (range_end - range_start).days >= MAX_PERIOD_DAYS:
            raise ValueError(f"range must not span more than {MAX_PERIOD_DAYS} days")
        return range_end


class LifecycleRequest(SnapshotRequest):
    period_length_days: int = Field(default_factory=lambda: settings.default_period_days, ge=1, le=MAX_PERIOD_DAYS)


class RetentionRequest(SnapshotRequest):
    num_weeks_to_track: int = Field(default_factory=lambda: settings.default_num_weeks, ge=0, le=MAX_WEEKS_TO_TRACK)


class ReportRequest(SnapshotRequest):
    range_start: Optional[date] = None
    range_end: Optional[date] = None
    period_length_days: int = Field(default_factory=lambda: settings.default_period_days, ge=1, le=MAX_PERIOD_DAYS)
    num_weeks_to_track: int = Field(default_factory=lambda: settings.default_num_weeks, ge=0, le=MAX_WEEKS_TO_TRACK)
    compare_previous: bool = False

    @model_validator(mode="after")
    def _validate_range(self) -> "ReportRequest":
        if (self.range_start is None) != (self.range_end is None):
            raise ValueError("range_start and range_end must be given together")
        if self.range_start is not None and self.range_end < self.range_start:
            raise ValueError("range_end must not be before range_start")
        if self.range_start is not None and (self.range_end - self.range_start).days >= MAX_PERIOD_DAYS:
            raise ValueError(f"range must not span more than {MAX_PERIOD_DAYS} days")
        return self


class FunnelStepPayload(BaseModel):
    step_id: int
    users_reached_step: int = Field(..., ge=0)
    users_completed_step: int = Field(..., ge=0)
    step_name: Optional[str] = None


class FunnelRequest(BaseModel):
    steps: List[FunnelStepPayload]
    total_completions: Optional[int] = Field(default=None, ge=0)
    estimated_starts: Optional[int] = Field(default=None, ge=0)


class AnalyticsResponse(BaseModel):
    data: Any
    source: str


@app.get("/health")
async def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/analytics/report", response_model=AnalyticsResponse)
async def report_endpoint(request: ReportRequest) -> AnalyticsResponse:
    records, source = _load_records(request)
    if not records:
        raise HTTPException(status_code=400, detail="No analytics records available for the requested project.")

    query = AnalyticsQuery(
        reference_date=_reference_date(request),
        range_start=request.range_start,
        range_end=request.range_end,
        period_length_days=request.period_length_days,
        num_weeks_to_track=request.num_weeks_to_track,
        timezone=request.timezone,
        compare_previous=request.compare_previous,
    )
    report = _run(lambda: MissionAnalyticsService(records).build(query))
    return AnalyticsResponse(data=report.as_dict(), source=source)


@app.post("/analytics/series", response_model=AnalyticsResponse)
async def series_endpoint(request: SeriesRequest) -> AnalyticsResponse:
    records, source = _load_records(request)
    series = _run(lambda: _build_metric_series(records, request))
    return AnalyticsResponse(data=serialize(series), source=source)


@app.post("/analytics/lifecycle", response_model=AnalyticsResponse)
async def lifecycle_endpoint(request: LifecycleRequest) -> AnalyticsResponse:
    records, source = _load_records(request)
    lifecycle = _run(
        lambda: classify_lifecycle(records, request.period_length_days, _reference_date(request), request.timezone)
    )
    return AnalyticsResponse(data=serialize(lifecycle), source=source)


@app.post("/analytics/retention", response_model=AnalyticsResponse)
async def retention_endpoint(request: RetentionRequest) -> AnalyticsResponse:
    records, source = _load_records(request)
    cohorts = _run(
        lambda: build_retention_cohorts(records, request.num_weeks_to_track, _reference_date(request), request.timezone)
    )
    return AnalyticsResponse(data=serialize_many(cohorts), source=source)


@app.post("/analytics/funnel", response_model=AnalyticsResponse)
async def funnel_endpoint(request: FunnelRequest) -> AnalyticsResponse:
    steps = [
        AggregatedFunnelStep(
            step_id=step.step_id,
            users_reached_step=step.users_reached_step,
            users_completed_step=step.users_completed_step,
            step_name=step.step_name,
        )
        for step in request.steps
    ]
    completion_rate = None
    if request.total_completions is not None and request.estimated_starts is not None:
        completion_rate = mission_completion_rate(request.total_completions, request.estimated_starts)
    data = {
        "steps": serialize_many(build_funnel_metrics(steps)),
        "completionRate": completion_rate,
    }
    return AnalyticsResponse(data=data, source="inline")


def _run(compute: Callable[[], T]) -> T:
    try:
        return compute()
    except (ValueError, OverflowError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _build_metric_series(records: Sequence[UserAnalyticsRecord], request: SeriesRequest) -> MetricSeries:
    points = build_activity_series(records, request.metric, request.range_start, request.range_end, request.timezone)
    comparison = None
    if request.compare_previous:
        comparison = build_period_comparison(
            records, request.metric, request.range_start, request.range_end, request.timezone
        )
    return MetricSeries(metric=request.metric, points=points, comparison=comparison)


def _reference_date(request: SnapshotRequest) -> datetime:
    if request.reference_date is not None:
        return request.reference_date
    return datetime.now(coerce_timezone(request.timezone))


def _load_records(request: SnapshotRequest) -> Tuple[Sequence[UserAnalyticsRecord], str]:
    if request.project_id is not None and repository is not None:
        try:
            return repository.load(request.project_id), "database"
        except SQLAlchemyError as exc:
            logger.warning("Failed to load analytics for project %s: %s", request.project_id, exc)
            raise HTTPException(status_code=503, detail="Analytics store is unavailable.") from exc

    if request.records is None:
        raise HTTPException(
            status_code=500,
            detail=(
                "MISSION_ANALYTICS_DATABASE_URL is not configured; "
                "supply records in the request body for ad-hoc queries."
            ),
        )

    return tuple(_convert_record_payload(payload) for payload in request.records), "inline"


def _convert_record_payload(payload: UserRecordPayload) -> UserAnalyticsRecord:
    return UserAnalyticsRecord(
        user_uuid=payload.user_uuid,
        first_seen_time_approx=payload.first_seen_time_approx,
        progress_entries=tuple(
            ProgressEntry(
                mission_id=entry.mission_id,
                last_active_time=entry.last_active_time,
                completion_time=entry.completion_time,
            )
            for entry in payload.progress_entries
        ),
    )
