"""Utilities for application paths and date formatting.

Centralizes the storage locations and the timestamp formats shown in reports so
the rest of the app can depend on a single behavior.
"""

from __future__ import annotations

from datetime import datetime
import os
from pathlib import Path

APP_NAME = "CityChamberHunt"
REPORT_DATE_FMT = "%Y-%m-%d"
DISPLAY_DT_FMT = "%b %d, %Y %H:%M"


def get_app_data_dir() -> Path:
    """Per-user data directory (LOCALAPPDATA on Windows, XDG data home elsewhere)."""
    local = os.environ.get("LOCALAPPDATA")
    if local:
        return Path(local) / APP_NAME
    xdg = os.environ.get("XDG_DATA_HOME")
    base = Path(xdg) if xdg else Path.home() / ".local" / "share"
    return base / APP_NAME


def ensure_dir(p: Path) -> Path:
    """Create directory `p` if missing (including parents) and return it."""
    p.mkdir(parents=True, exist_ok=True)
    return p


def format_display_datetime(dt: datetime | None) -> str:
    """Format a datetime for report text; empty string when None."""
    try:
        return dt.strftime(DISPLAY_DT_FMT) if dt else ""
    except (ValueError, TypeError, AttributeError):
        return ""


def report_filename(when: datetime) -> str:
    """Report file name including the generation date."""
    return f"CityHunt_Report_{when.strftime(REPORT_DATE_FMT)}.pdf"


def is_degenerate_coordinate(lat: float | None, lon: float | None) -> bool:
    """True for missing or (0, 0) coordinates."""
    if lat is None or lon is None:
        return True
    return lat == 0 and lon == 0
