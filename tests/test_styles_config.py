"""Tests for the environment-driven style settings."""

from services.styles_config import StyleSettings, get_style_settings, reload_style_settings


class TestStyleSettings:
    def test_defaults(self):
        settings = StyleSettings()
        assert settings.min_col_width == 6.0
        assert settings.max_col_chars == 40
        assert settings.max_col_width == 54.0
        assert settings.width_expansion == 1.35
        assert settings.max_upload_bytes == 10 * 1024 * 1024

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("EXCEL_STYLES_MAX_COL_CHARS", "30")
        monkeypatch.setenv("EXCEL_STYLES_WIDTH_EXPANSION", "1.5")
        settings = reload_style_settings()
        assert settings.max_col_chars == 30
        assert settings.width_expansion == 1.5
        assert get_style_settings() is settings

    def test_singleton(self):
        assert get_style_settings() is get_style_settings()
