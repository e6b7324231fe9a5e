"""On-disk cache of rendered map snapshots keyed by location identity.

A file's presence is the cache-hit signal; snapshots never expire.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
import os
from pathlib import Path
import threading
import time

from loguru import logger

from core.models import HuntLocation
from core.services.interfaces import ISnapshotRenderer
from infrastructure.utils import ensure_dir, get_app_data_dir, is_degenerate_coordinate

DEFAULT_SPAN_METERS = 4000.0
DEFAULT_SIZE = (520, 320)
DEFAULT_FALLBACK = (43.6532, -79.3832)  # Toronto City Hall
DEFAULT_PRELOAD_PAUSE = 0.5


def snapshot_filename(identity: str) -> str:
    return f"map_{identity}.jpg"


class MapSnapshotCache:
    """Lazily renders and caches one map image per location."""

    def __init__(
        self,
        renderer: ISnapshotRenderer,
        settings: object | None = None,
        cache_dir: str | Path | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._renderer = renderer
        self._sleep = sleep
        self._span = DEFAULT_SPAN_METERS
        self._size = DEFAULT_SIZE
        self._fallback = DEFAULT_FALLBACK
        self._pause = DEFAULT_PRELOAD_PAUSE
        base = get_app_data_dir() / "Documents"
        if settings is not None:
            self._span = settings.get_float("maps.span_meters", DEFAULT_SPAN_METERS)  # type: ignore[attr-defined]
            self._pause = settings.get_float("maps.preload_pause_seconds", DEFAULT_PRELOAD_PAUSE)  # type: ignore[attr-defined]
            w = settings.get_int("maps.width", DEFAULT_SIZE[0])  # type: ignore[attr-defined]
            h = settings.get_int("maps.height", DEFAULT_SIZE[1])  # type: ignore[attr-defined]
            self._size = (w, h)
            raw_fb = settings.get("maps.fallback_coordinate", None)  # type: ignore[attr-defined]
            if isinstance(raw_fb, list) and len(raw_fb) == 2:
                try:
                    self._fallback = (float(raw_fb[0]), float(raw_fb[1]))
                except (ValueError, TypeError):
                    logger.warning("Invalid maps.fallback_coordinate: {}", raw_fb)
            if cache_dir is None:
                cache_dir = settings.get_path("storage.documents_dir", base)  # type: ignore[attr-defined]
        self._dir = ensure_dir(Path(cache_dir) if cache_dir is not None else base)
        self._lock = threading.Lock()
        self._snapshots: dict[str, bytes] = {}

    @property
    def snapshots(self) -> dict[str, bytes]:
        """Snapshot of the in-memory identity -> JPEG bytes mapping."""
        with self._lock:
            return dict(self._snapshots)

    @property
    def fallback_coordinate(self) -> tuple[float, float]:
        return self._fallback

    def cache_path(self, identity: str) -> Path:
        return self._dir / snapshot_filename(identity)

    def get(self, identity: str, coordinates: tuple[float, float]) -> bytes | None:
        """Return the cached snapshot, rendering and storing it on a miss."""
        data, _rendered = self._get(identity, coordinates)
        return data

    def preload(
        self, locations: Iterable[HuntLocation], pause_seconds: float | None = None
    ) -> dict[str, bytes]:
        """Fill the cache for `locations` one at a time.

        A fixed pause follows every render that reached the renderer, except
        after the last location, so the tile backend is not hammered. Returns
        identity -> bytes for the snapshots that are available.
        """
        pause = self._pause if pause_seconds is None else pause_seconds
        result: dict[str, bytes] = {}
        items = list(locations)
        for i, loc in enumerate(items):
            data, rendered = self._get(loc.id, loc.coordinates)
            if data is not None:
                result[loc.id] = data
            if rendered and pause > 0 and i < len(items) - 1:
                self._sleep(pause)
        logger.info("Preloaded {} map snapshots", len(result))
        return result

    def _get(self, identity: str, coordinates: tuple[float, float]) -> tuple[bytes | None, bool]:
        with self._lock:
            cached = self._snapshots.get(identity)
        if cached is not None:
            return cached, False

        path = self.cache_path(identity)
        if path.exists():
            try:
                data = path.read_bytes()
            except OSError as ex:
                logger.warning("Cached map unreadable {}: {}", path, ex)
            else:
                with self._lock:
                    self._snapshots[identity] = data
                return data, False

        lat, lon = coordinates
        if is_degenerate_coordinate(lat, lon):
            logger.info("Degenerate coordinates for {}; using fallback", identity)
            lat, lon = self._fallback

        data = self._renderer.render(lat, lon, self._span, self._size)
        if not data:
            logger.error("Map snapshot failed for {} ({:.5f}, {:.5f})", identity, lat, lon)
            return None, True

        try:
            tmp = path.with_name(path.name + ".tmp")
            tmp.write_bytes(data)
            os.replace(tmp, path)
        except OSError as ex:
            logger.error("Could not cache map snapshot {}: {}", path, ex)
        with self._lock:
            self._snapshots[identity] = data
        logger.info("Rendered map snapshot for {}", identity)
        return data, True
