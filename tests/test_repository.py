import pytest
from sqlalchemy import create_engine, text

from backend.mission_analytics.config import AnalyticsSettings, DatabaseConfig
from backend.mission_analytics.models import ProgressEntry
from backend.mission_analytics.repository import SQLAnalyticsRepository, build_repository_from_env

SCHEMA = [
    """
    CREATE TABLE user_analytics (
        project_id TEXT NOT NULL,
        user_uuid TEXT NOT NULL,
        first_seen_time_approx BIGINT NOT NULL
    )
    """,
    """
    CREATE TABLE mission_progress (
        project_id TEXT NOT NULL,
        user_uuid TEXT NOT NULL,
        mission_id INTEGER NOT NULL,
        last_active_time BIGINT NOT NULL,
        completion_time BIGINT
    )
    """,
]


@pytest.fixture
def engine(tmp_path, ns):
    engine = create_engine(f"sqlite:///{tmp_path / 'analytics.db'}")
    with engine.begin() as connection:
        for statement in SCHEMA:
            connection.execute(text(statement))
        connection.execute(
            text("INSERT INTO user_analytics VALUES (:project, :user, :first_seen)"),
            [
                {"project": "alpha", "user": "u2", "first_seen": ns(2024, 1, 3)},
                {"project": "alpha", "user": "u1", "first_seen": ns(2024, 1, 1)},
                {"project": "beta", "user": "u9", "first_seen": ns(2024, 1, 1)},
            ],
        )
        connection.execute(
            text(
                "INSERT INTO mission_progress VALUES "
                "(:project, :user, :mission, :last_active, :completed)"
            ),
            [
                {"project": "alpha", "user": "u1", "mission": 2, "last_active": ns(2024, 1, 4), "completed": None},
                {
                    "project": "alpha",
                    "user": "u1",
                    "mission": 1,
                    "last_active": ns(2024, 1, 2),
                    "completed": ns(2024, 1, 2),
                },
                {"project": "beta", "user": "u9", "mission": 1, "last_active": ns(2024, 1, 2), "completed": None},
            ],
        )
    yield engine
    engine.dispose()


class TestSQLAnalyticsRepository:
    def test_loads_project_snapshot(self, engine, ns):
        records = SQLAnalyticsRepository(engine).load("alpha")

        assert [record.user_uuid for record in records] == ["u1", "u2"]
        u1, u2 = records
        assert u1.first_seen_time_approx == ns(2024, 1, 1)
        assert list(u1.progress_entries) == [
            ProgressEntry(mission_id=1, last_active_time=ns(2024, 1, 2), completion_time=ns(2024, 1, 2)),
            ProgressEntry(mission_id=2, last_active_time=ns(2024, 1, 4), completion_time=None),
        ]
        assert list(u2.progress_entries) == []

    def test_timestamps_stay_integers(self, engine):
        records = SQLAnalyticsRepository(engine).load("alpha")
        assert all(isinstance(record.first_seen_time_approx, int) for record in records)

    def test_unknown_project_is_empty(self, engine):
        assert SQLAnalyticsRepository(engine).load("gamma") == ()

    def test_custom_table_names(self, tmp_path, ns):
        engine = create_engine(f"sqlite:///{tmp_path / 'custom.db'}")
        with engine.begin() as connection:
            connection.execute(text("CREATE TABLE users_v2 (project_id TEXT, user_uuid TEXT, first_seen_time_approx BIGINT)"))
            connection.execute(
                text(
                    "CREATE TABLE progress_v2 (project_id TEXT, user_uuid TEXT, mission_id INTEGER, "
                    "last_active_time BIGINT, completion_time BIGINT)"
                )
            )
            connection.execute(text("INSERT INTO users_v2 VALUES ('p', 'u1', :ts)"), {"ts": ns(2024, 1, 1)})

        config = DatabaseConfig(user_table="users_v2", progress_table="progress_v2")
        records = SQLAnalyticsRepository(engine, config).load("p")
        assert [record.user_uuid for record in records] == ["u1"]
        engine.dispose()


class TestBuildRepositoryFromEnv:
    def test_none_without_url(self):
        assert build_repository_from_env(AnalyticsSettings()) is None

    def test_sql_repository_with_url(self, tmp_path):
        settings = AnalyticsSettings(database=DatabaseConfig(url=f"sqlite:///{tmp_path / 'x.db'}"))
        repository = build_repository_from_env(settings)
        assert isinstance(repository, SQLAnalyticsRepository)
        repository.engine.dispose()
