"""Static map snapshots composed from OpenStreetMap raster tiles.

The renderer picks the Web-Mercator zoom whose ground resolution covers the
requested span within the output width, stitches the covering tiles with
QPainter, crops the exact span around the coordinate, scales it to the output
size and draws a pin at the centre.
"""

from __future__ import annotations

import math
from typing import Any

from PySide6.QtCore import QBuffer, QByteArray, QIODevice, QPointF, QRectF, Qt
from PySide6.QtGui import QColor, QImage, QPainter, QPen
from loguru import logger
import requests

from core.services.interfaces import ISnapshotRenderer
from infrastructure.location_api import DEFAULT_USER_AGENT

TILE_SIZE = 256
MAX_ZOOM = 19
EARTH_RESOLUTION_M = 156543.03392  # metres per pixel at zoom 0 on the equator
DEFAULT_TILE_URL = "https://tile.openstreetmap.org/{z}/{x}/{y}.png"
MAX_LAT = 85.05112878


def lonlat_to_world_px(lat: float, lon: float, zoom: int) -> tuple[float, float]:
    """Project (lat, lon) to global pixel coordinates at `zoom`."""
    lat = max(-MAX_LAT, min(MAX_LAT, lat))
    scale = TILE_SIZE * (2**zoom)
    x = (lon + 180.0) / 360.0 * scale
    lat_r = math.radians(lat)
    y = (1.0 - math.log(math.tan(lat_r) + 1.0 / math.cos(lat_r)) / math.pi) / 2.0 * scale
    return x, y


def meters_per_pixel(lat: float, zoom: int) -> float:
    return EARTH_RESOLUTION_M * math.cos(math.radians(lat)) / (2**zoom)


def zoom_for_span(lat: float, span_meters: float, width_px: int) -> int:
    """Largest zoom at which `span_meters` still fits in `width_px`."""
    if span_meters <= 0 or width_px <= 0:
        return MAX_ZOOM
    wanted = span_meters / width_px
    ground = EARTH_RESOLUTION_M * math.cos(math.radians(max(-MAX_LAT, min(MAX_LAT, lat))))
    if ground <= 0:
        return 0
    z = math.floor(math.log2(ground / wanted))
    return max(0, min(MAX_ZOOM, z))


def encode_qimage_jpeg(img: QImage, quality: int = 85) -> bytes | None:
    """Encode a QImage as JPEG bytes."""
    ba = QByteArray()
    buf = QBuffer(ba)
    buf.open(QIODevice.WriteOnly)
    ok = img.convertToFormat(QImage.Format_RGB32).save(buf, "JPG", quality)
    buf.close()
    if not ok:
        return None
    return bytes(ba.data())


def draw_marker(img: QImage, x: float, y: float) -> None:
    """Draw a red pin whose tip sits on (x, y)."""
    painter = QPainter(img)
    try:
        painter.setRenderHint(QPainter.Antialiasing, True)
        radius = max(6.0, min(img.width(), img.height()) / 32.0)
        head = QPointF(x, y - radius * 2.2)
        painter.setPen(QPen(QColor(180, 0, 0), 3))
        painter.drawLine(head, QPointF(x, y))
        painter.setPen(QPen(QColor(255, 255, 255), 2))
        painter.setBrush(QColor(230, 30, 40))
        painter.drawEllipse(head, radius, radius)
        painter.setBrush(QColor(255, 255, 255))
        painter.setPen(Qt.NoPen)
        painter.drawEllipse(head, radius / 3.0, radius / 3.0)
    finally:
        painter.end()


class TileMapRenderer(ISnapshotRenderer):
    """Render map snapshots by stitching slippy-map tiles."""

    def __init__(self, settings: object | None = None, session: Any | None = None) -> None:
        self._tile_url = DEFAULT_TILE_URL
        self._user_agent = DEFAULT_USER_AGENT
        self._timeout = 10.0
        self._quality = 85
        if settings is not None:
            get = settings.get  # type: ignore[attr-defined]
            self._tile_url = str(get("maps.tile_url", self._tile_url))
            self._user_agent = str(get("search.user_agent", self._user_agent))
            try:
                self._timeout = float(get("maps.timeout_seconds", self._timeout))
                self._quality = int(get("maps.jpeg_quality", self._quality))
            except (ValueError, TypeError):
                logger.warning("Invalid map timeout/quality in settings; using defaults")
        self._session = session or requests.Session()

    def render(
        self, lat: float, lon: float, span_meters: float, size: tuple[int, int]
    ) -> bytes | None:
        """Render a JPEG centred on (lat, lon); None when any tile fails."""
        width, height = int(size[0]), int(size[1])
        if width <= 0 or height <= 0:
            return None
        zoom = zoom_for_span(lat, span_meters, width)
        # Source area in world pixels at `zoom` covering exactly `span_meters`
        src_w = max(1.0, min(float(width), span_meters / meters_per_pixel(lat, zoom)))
        src_h = src_w * height / width
        cx, cy = lonlat_to_world_px(lat, lon, zoom)
        left, top = cx - src_w / 2.0, cy - src_h / 2.0

        n = 2**zoom
        tx0, ty0 = math.floor(left / TILE_SIZE), math.floor(top / TILE_SIZE)
        tx1 = math.floor((left + src_w) / TILE_SIZE)
        ty1 = math.floor((top + src_h) / TILE_SIZE)

        canvas = QImage(
            (tx1 - tx0 + 1) * TILE_SIZE, (ty1 - ty0 + 1) * TILE_SIZE, QImage.Format_RGB32
        )
        canvas.fill(QColor(229, 227, 223))
        painter = QPainter(canvas)
        try:
            for ty in range(ty0, ty1 + 1):
                if ty < 0 or ty >= n:
                    continue
                for tx in range(tx0, tx1 + 1):
                    tile = self._fetch_tile(zoom, tx % n, ty)
                    if tile is None:
                        return None
                    painter.drawImage((tx - tx0) * TILE_SIZE, (ty - ty0) * TILE_SIZE, tile)
        finally:
            painter.end()

        crop = QRectF(left - tx0 * TILE_SIZE, top - ty0 * TILE_SIZE, src_w, src_h).toRect()
        region = canvas.copy(crop).scaled(
            width, height, Qt.IgnoreAspectRatio, Qt.SmoothTransformation
        )
        draw_marker(region, width / 2.0, height / 2.0)
        data = encode_qimage_jpeg(region, self._quality)
        if data is None:
            logger.error("Map snapshot encode failed for {:.5f},{:.5f}", lat, lon)
        return data

    def _fetch_tile(self, zoom: int, x: int, y: int) -> QImage | None:
        url = self._tile_url.format(z=zoom, x=x, y=y)
        try:
            resp = self._session.get(
                url, headers={"User-Agent": self._user_agent}, timeout=self._timeout
            )
            resp.raise_for_status()
        except requests.RequestException as ex:
            logger.error("Tile fetch failed {}: {}", url, ex)
            return None
        img = QImage.fromData(resp.content)
        if img.isNull():
            logger.error("Tile decode failed {}", url)
            return None
        return img
