"""
Mission funnel and overview figures for the dashboard cards.

The per-step counters come from the backend; this module only derives the
conversion and drop-off percentages shown next to them.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from .models import AggregatedFunnelStep, FunnelStepMetrics, OverviewStats, UserAnalyticsRecord


def _percent(part: int, whole: int) -> float:
    return part / whole * 100 if whole else 0.0


def build_funnel_metrics(steps: Sequence[AggregatedFunnelStep]) -> List[FunnelStepMetrics]:
    if not steps:
        return []

    initial_reached = steps[0].users_reached_step
    metrics: List[FunnelStepMetrics] = []
    for index, step in enumerate(steps):
        reached = step.users_reached_step
        completed = step.users_completed_step

        drop_off_from_previous = 0.0
        if index > 0:
            previous_completed = steps[index - 1].users_completed_step
            drop_off_from_previous = _percent(previous_completed - reached, previous_completed)

        if reached:
            drop_off_within_step = (reached - completed) / reached * 100
        else:
            drop_off_within_step = 0.0 if completed == 0 else 100.0

        metrics.append(
            FunnelStepMetrics(
                step_id=step.step_id,
                label=step.step_name or f"Step ID: {step.step_id}",
                users_reached=reached,
                users_completed=completed,
                step_conversion_rate=_percent(completed, reached),
                overall_conversion_rate=_percent(completed, initial_reached),
                drop_off_from_previous=drop_off_from_previous,
                drop_off_within_step=drop_off_within_step,
            )
        )
    return metrics


def mission_completion_rate(total_completions: int, estimated_starts: int) -> Optional[float]:
    if estimated_starts <= 0:
        return None
    return total_completions / estimated_starts * 100


def average_per_user(total: int, unique_users: int) -> Optional[float]:
    if unique_users <= 0:
        return None
    return round(total / unique_users, 2)


def summarize_overview(records: Sequence[UserAnalyticsRecord]) -> OverviewStats:
    """Attempts and completions per user, counting one attempt per progress entry."""

    unique_users = len({record.user_uuid for record in records})
    attempted = sum(len(record.progress_entries) for record in records)
    completed = sum(
        1
        for record in records
        for entry in record.progress_entries
        if entry.completion_time is not None
    )
    return OverviewStats(
        unique_users=unique_users,
        missions_attempted=attempted,
        missions_completed=completed,
        avg_missions_attempted=average_per_user(attempted, unique_users),
        avg_missions_completed=average_per_user(completed, unique_users),
    )
