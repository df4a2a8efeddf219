from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, Row

from .config import AnalyticsSettings, DatabaseConfig, load_settings
from .models import ProgressEntry, UserAnalyticsRecord

logger = logging.getLogger(__name__)


class AnalyticsRepository:
    """
    Interface for loading a project's analytics snapshot.

    Implementations return every user record of the project with all of its
    progress entries; windowing happens in the engine.
    """

    def load(self, project_id: str) -> Sequence[UserAnalyticsRecord]:
        raise NotImplementedError


class SQLAnalyticsRepository(AnalyticsRepository):
    """
    Load user analytics rows from a relational mirror of the project backend.

    Expected tables:
      - user_analytics(project_id, user_uuid, first_seen_time_approx)
      - mission_progress(project_id, user_uuid, mission_id, last_active_time, completion_time)

    Timestamps are stored as 64-bit integer nanoseconds.
    """

    def __init__(self, engine: Engine, config: Optional[DatabaseConfig] = None):
        self.engine = engine
        self.config = config or DatabaseConfig()

    def load(self, project_id: str) -> Sequence[UserAnalyticsRecord]:
        users = self._load_users(project_id)
        entries = self._load_progress(project_id)
        records = tuple(
            UserAnalyticsRecord(
                user_uuid=user_uuid,
                first_seen_time_approx=first_seen,
                progress_entries=tuple(entries.get(user_uuid, ())),
            )
            for user_uuid, first_seen in users
        )
        logger.debug("Loaded %d user records for project %s", len(records), project_id)
        return records

    def _load_users(self, project_id: str) -> List[Tuple[str, int]]:
        query = text(
            f"""
            SELECT user_uuid, first_seen_time_approx
            FROM {self.config.user_table}
            WHERE project_id = :project_id
            ORDER BY first_seen_time_approx ASC, user_uuid ASC
            """
        )
        with self.engine.connect() as connection:
            rows = connection.execute(query, {"project_id": project_id}).fetchall()
        return [(str(row.user_uuid), int(row.first_seen_time_approx)) for row in rows]

    def _load_progress(self, project_id: str) -> Dict[str, List[ProgressEntry]]:
        query = text(
            f"""
            SELECT user_uuid, mission_id, last_active_time, completion_time
            FROM {self.config.progress_table}
            WHERE project_id = :project_id
            ORDER BY user_uuid ASC, mission_id ASC
            """
        )
        with self.engine.connect() as connection:
            rows = connection.execute(query, {"project_id": project_id}).fetchall()

        entries: Dict[str, List[ProgressEntry]] = defaultdict(list)
        for row in rows:
            entries[str(row.user_uuid)].append(self._row_to_entry(row))
        return entries

    @staticmethod
    def _row_to_entry(row: Row) -> ProgressEntry:
        completion_time = row.completion_time
        return ProgressEntry(
            mission_id=int(row.mission_id),
            last_active_time=int(row.last_active_time),
            completion_time=None if completion_time is None else int(completion_time),
        )


def build_repository_from_env(settings: Optional[AnalyticsSettings] = None) -> Optional[AnalyticsRepository]:
    cfg = settings or load_settings()
    if cfg.database.url:
        engine = create_engine(cfg.database.url)
        return SQLAnalyticsRepository(engine, cfg.database)
    return None
