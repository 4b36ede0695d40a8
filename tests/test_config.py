import pytest

from tradeboard.config import _load_settings, reload_settings, settings


def test_missing_sheet_id_is_fatal(monkeypatch):
    monkeypatch.delenv("GOOGLE_SHEET_ID", raising=False)
    with pytest.raises(RuntimeError, match="GOOGLE_SHEET_ID"):
        _load_settings()


def test_env_values_are_parsed(monkeypatch):
    monkeypatch.setenv("GOOGLE_SHEET_ID", "sheet-1")
    monkeypatch.setenv("TEST_LOGIN_ENABLED", "true")
    monkeypatch.setenv("PORT", "4100")
    monkeypatch.setenv("CORS_ALLOW_ORIGINS", "http://a.test, http://b.test,")
    loaded = _load_settings()
    assert loaded.TEST_LOGIN_ENABLED is True
    assert loaded.PORT == 4100
    assert loaded.cors_origins() == ["http://a.test", "http://b.test"]
    assert loaded.CACHE_TTL_SECONDS == 30


def test_reload_updates_live_settings(monkeypatch):
    previous = settings.PNL_POINTS
    monkeypatch.setenv("PNL_POINTS", "5")
    try:
        assert reload_settings().PNL_POINTS == 5
        assert settings.PNL_POINTS == 5
    finally:
        monkeypatch.delenv("PNL_POINTS")
        settings.PNL_POINTS = previous
