from backend.mission_analytics.config import AnalyticsSettings, load_settings


class TestLoadSettings:
    def test_defaults(self, monkeypatch):
        for name in (
            "MISSION_ANALYTICS_DATABASE_URL",
            "MISSION_ANALYTICS_TIMEZONE",
            "MISSION_ANALYTICS_PERIOD_DAYS",
            "MISSION_ANALYTICS_NUM_WEEKS",
            "MISSION_ANALYTICS_LOG_LEVEL",
        ):
            monkeypatch.delenv(name, raising=False)

        settings = load_settings(dotenv=False)
        assert settings == AnalyticsSettings()
        assert settings.database.url is None

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("MISSION_ANALYTICS_DATABASE_URL", "sqlite:///analytics.db")
        monkeypatch.setenv("MISSION_ANALYTICS_TIMEZONE", "Europe/Berlin")
        monkeypatch.setenv("MISSION_ANALYTICS_PERIOD_DAYS", "30")
        monkeypatch.setenv("MISSION_ANALYTICS_LOG_LEVEL", "debug")

        settings = load_settings(dotenv=False)
        assert settings.database.url == "sqlite:///analytics.db"
        assert settings.timezone == "Europe/Berlin"
        assert settings.default_period_days == 30
        assert settings.log_level == "DEBUG"

    def test_bad_values_fall_back(self, monkeypatch):
        monkeypatch.setenv("MISSION_ANALYTICS_NUM_WEEKS", "eight")
        monkeypatch.setenv("MISSION_ANALYTICS_LOG_LEVEL", "loud")

        settings = load_settings(dotenv=False)
        assert settings.default_num_weeks == 8
        assert settings.log_level == "INFO"
