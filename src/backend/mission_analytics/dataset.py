from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, tzinfo
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, Union

from .models import ProgressEntry, UserAnalyticsRecord
from .timeutils import coerce_timezone, nanos_to_day


@dataclass
class AnalyticsDataset:
    """
    Read-only view over one snapshot of user analytics records.

    Built fresh for every computation: it indexes records by ``user_uuid`` and
    converts nanosecond timestamps into local calendar days, but keeps nothing
    between calls.
    """

    records: Sequence[UserAnalyticsRecord]
    timezone: Union[str, tzinfo, None] = None
    by_uuid: Dict[str, UserAnalyticsRecord] = field(init=False, repr=False, default_factory=dict)

    def __post_init__(self) -> None:
        self.records = tuple(self.records)
        self.tz = coerce_timezone(self.timezone)
        for record in self.records:
            # first occurrence wins, matching a linear search by uuid
            self.by_uuid.setdefault(record.user_uuid, record)

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[UserAnalyticsRecord]:
        return iter(self.records)

    def get(self, user_uuid: str) -> Optional[UserAnalyticsRecord]:
        return self.by_uuid.get(user_uuid)

    def day(self, nanos: int) -> date:
        return nanos_to_day(nanos, self.tz)

    def first_seen_day(self, record: UserAnalyticsRecord) -> date:
        return self.day(record.first_seen_time_approx)

    def activity_days(self, record: UserAnalyticsRecord) -> List[date]:
        return [self.day(entry.last_active_time) for entry in record.progress_entries]

    def is_active_between(self, record: UserAnalyticsRecord, start: date, end: date) -> bool:
        """
        True when any progress entry was last active on a day in ``[start, end]``.
        """

        return any(start <= day <= end for day in self.activity_days(record))

    def same_day_completions(self, record: UserAnalyticsRecord) -> Iterator[Tuple[ProgressEntry, date]]:
        """
        Yield entries completed on the same local day they were last active.

        Entries whose completion falls on another day are skipped entirely.
        """

        for entry in record.progress_entries:
            if entry.completion_time is None:
                continue
            active_day = self.day(entry.last_active_time)
            if self.day(entry.completion_time) == active_day:
                yield entry, active_day
