"""Nominatim geocoding client.

Maps search hits into `HuntLocation` records. Every failure degrades to an
empty list; callers never see an exception.
"""

from __future__ import annotations

from typing import Any

from loguru import logger
import requests

from core.models import HuntLocation
from core.services.interfaces import ILocationSearch

DEFAULT_ENDPOINT = "https://nominatim.openstreetmap.org/search"
DEFAULT_USER_AGENT = "CityChamberHunt/1.0 (citychamberhunt@example.com)"


def _parse_coordinate(value: Any) -> float | None:
    """Parse a string-encoded coordinate; zero and non-numeric are invalid."""
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    if f == 0 or f != f:  # NaN
        return None
    return f


def map_result(item: Any) -> HuntLocation | None:
    """Convert one Nominatim result object, or None when unusable."""
    if not isinstance(item, dict):
        return None
    display_name = item.get("display_name")
    if not isinstance(display_name, str) or not display_name.strip():
        return None
    lat = _parse_coordinate(item.get("lat"))
    lon = _parse_coordinate(item.get("lon"))
    if lat is None or lon is None:
        logger.warning("Skipped invalid coords for: {}", display_name)
        return None
    title = display_name.split(",")[0].strip() or "Unknown"
    return HuntLocation(name=title, address=display_name, lat=lat, lon=lon)


class NominatimClient(ILocationSearch):
    """Search local businesses via OpenStreetMap Nominatim."""

    def __init__(self, settings: object | None = None, session: Any | None = None) -> None:
        """Create the client.

        Args:
            settings: `JsonSettings`-like object with `search.*` keys.
            session: Object with a `requests`-compatible `get`; defaults to a new
                `requests.Session`.
        """
        self._endpoint = DEFAULT_ENDPOINT
        self._user_agent = DEFAULT_USER_AGENT
        self._limit = 10
        self._country_codes = "ca"
        self._timeout = 10.0
        if settings is not None:
            get = settings.get  # type: ignore[attr-defined]
            self._endpoint = str(get("search.endpoint", self._endpoint))
            self._user_agent = str(get("search.user_agent", self._user_agent))
            self._country_codes = str(get("search.country_codes", self._country_codes) or "")
            try:
                self._limit = int(get("search.limit", self._limit))
                self._timeout = float(get("search.timeout_seconds", self._timeout))
            except (ValueError, TypeError):
                logger.warning("Invalid search limit/timeout in settings; using defaults")
        self._session = session or requests.Session()

    def search(self, query: str) -> list[HuntLocation]:
        """Return locations matching `query` in upstream ranking order."""
        q = (query or "").strip()
        if not q:
            return []

        params: dict[str, Any] = {"q": q, "format": "json", "limit": self._limit}
        if self._country_codes:
            params["countrycodes"] = self._country_codes
        try:
            resp = self._session.get(
                self._endpoint,
                params=params,
                headers={"User-Agent": self._user_agent},
                timeout=self._timeout,
            )
            resp.raise_for_status()
            payload = resp.json()
        except requests.RequestException as ex:
            logger.error("Network error searching '{}': {}", q, ex)
            return []
        except ValueError as ex:
            logger.error("Decode error searching '{}': {}", q, ex)
            return []

        if not isinstance(payload, list):
            logger.error("Unexpected search payload type: {}", type(payload).__name__)
            return []

        mapped: list[HuntLocation] = []
        for item in payload:
            loc = map_result(item)
            if loc is not None:
                mapped.append(loc)
        logger.info("Found {} valid locations for '{}'", len(mapped), q)
        return mapped
