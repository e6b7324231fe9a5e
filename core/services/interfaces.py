"""Core service interfaces and shared data structures.

This module defines the contracts the infrastructure layer implements for
location search, stock photos and map rendering, plus the report result type
used across the infrastructure and view-model layers.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from core.models import HuntLocation


@dataclass
class ReportResult:
    """Outcome of a report export.

    Attributes:
        path: Where the PDF was written.
        data: The PDF bytes.
        page_count: Number of pages including the cover.
        location_pages: Identities of the locations that got a page.
    """

    path: Path
    data: bytes
    page_count: int
    location_pages: list[str]


class ReportExportError(Exception):
    """Raised when the report as a whole could not be written."""


class ILocationSearch:
    """Interface for geocoding search clients."""

    def search(self, query: str) -> list[HuntLocation]:
        """Return locations for `query`; empty list on any failure."""
        raise NotImplementedError


class IStockPhotoSource:
    """Interface for keyword-based stock photo providers."""

    def fetch_photo(self, query: str) -> bytes | None:
        """Return image bytes for `query`, or None when unavailable."""
        raise NotImplementedError


class ISnapshotRenderer:
    """Interface for map snapshot renderers."""

    def render(
        self, lat: float, lon: float, span_meters: float, size: tuple[int, int]
    ) -> bytes | None:
        """Render a JPEG map centred on (lat, lon); None on failure."""
        raise NotImplementedError
