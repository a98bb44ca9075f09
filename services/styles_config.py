"""Centralized Excel styles configuration.

Single source of truth for the tunables of the styles engine and its
HTTP surface. Reads from environment variables with sensible defaults.
"""
from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass
class StyleSettings:
    """Excel styles settings loaded from environment.

    Usage:
        settings = get_style_settings()
        print(settings.max_col_width)  # 54.0
    """
    # Column auto-sizing for inserted cells (Excel character widths)
    min_col_width: float = 6.0
    max_col_chars: int = 40
    max_col_width: float = 54.0
    width_expansion: float = 1.35

    # HTTP upload guardrail
    max_upload_mb: float = 10.0

    @property
    def max_upload_bytes(self) -> int:
        return int(self.max_upload_mb * 1024 * 1024)


def _load_settings_from_env() -> StyleSettings:
    """Load style settings from environment variables."""
    settings = StyleSettings()

    if os.getenv("EXCEL_STYLES_MIN_COL_WIDTH"):
        settings.min_col_width = float(os.getenv("EXCEL_STYLES_MIN_COL_WIDTH"))
    if os.getenv("EXCEL_STYLES_MAX_COL_CHARS"):
        settings.max_col_chars = int(os.getenv("EXCEL_STYLES_MAX_COL_CHARS"))
    if os.getenv("EXCEL_STYLES_MAX_COL_WIDTH"):
        settings.max_col_width = float(os.getenv("EXCEL_STYLES_MAX_COL_WIDTH"))
    if os.getenv("EXCEL_STYLES_WIDTH_EXPANSION"):
        settings.width_expansion = float(os.getenv("EXCEL_STYLES_WIDTH_EXPANSION"))
    if os.getenv("EXCEL_STYLES_MAX_UPLOAD_MB"):
        settings.max_upload_mb = float(os.getenv("EXCEL_STYLES_MAX_UPLOAD_MB"))

    return settings


# Singleton instance
_settings: StyleSettings | None = None


def get_style_settings() -> StyleSettings:
    """Get the style settings singleton.

    Settings are loaded once from environment on first access.
    """
    global _settings
    if _settings is None:
        _settings = _load_settings_from_env()
    return _settings


def reload_style_settings() -> StyleSettings:
    """Force reload settings from environment.

    Useful for testing or after env changes.
    """
    global _settings
    _settings = _load_settings_from_env()
    return _settings
