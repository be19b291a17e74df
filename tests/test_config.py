from config import DEFAULT_STALE_AFTER, DEFAULT_SWEEP_INTERVAL, Settings


def test_defaults(monkeypatch):
    for var in ("DATABASE_URL", "DATABASE_NAME", "SWEEP_INTERVAL", "STALE_AFTER", "LOG_LEVEL", "PORT"):
        monkeypatch.delenv(var, raising=False)

    settings = Settings.from_env()
    assert settings.database_url is None
    assert settings.database_name == "chat"
    assert settings.sweep_interval == DEFAULT_SWEEP_INTERVAL
    assert settings.stale_after == DEFAULT_STALE_AFTER
    assert settings.port == 8000


def test_overrides(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "mongodb://db:27017")
    monkeypatch.setenv("SWEEP_INTERVAL", "2.5")
    monkeypatch.setenv("STALE_AFTER", "4")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings.from_env()
    assert settings.database_url == "mongodb://db:27017"
    assert settings.sweep_interval == 2.5
    assert settings.stale_after == 4
    assert settings.log_level == "DEBUG"


def test_invalid_numbers_fall_back(monkeypatch):
    monkeypatch.setenv("SWEEP_INTERVAL", "soon")
    monkeypatch.setenv("STALE_AFTER", "-1")

    settings = Settings.from_env()
    assert settings.sweep_interval == DEFAULT_SWEEP_INTERVAL
    assert settings.stale_after == DEFAULT_STALE_AFTER
