"""PDF report rendering with Qt's PDF writer.

Pages are US Letter painted in points (72 dpi, no margins): a cover page, then
one page per location that has a photo or a map snapshot.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
from pathlib import Path
import tempfile

from PySide6.QtCore import QMarginsF, QRectF, Qt
from PySide6.QtGui import QColor, QFont, QPageSize, QPainter, QPdfWriter
from loguru import logger

from core.models import HuntLocation, HuntPhotoInfo, StoredPhoto
from core.services.interfaces import ReportExportError, ReportResult
from infrastructure.image_service import ImageService, fit_size
from infrastructure.utils import format_display_datetime, report_filename

PAGE_WIDTH = 612.0
PAGE_HEIGHT = 792.0
MARGIN = 20.0
PHOTO_MAX_WIDTH = PAGE_WIDTH - 60.0
PHOTO_MAX_HEIGHT = 220.0
MAP_WIDTH = 260.0
MAP_HEIGHT = 160.0
REPORT_TITLE = "City Chamber Hunt Report"
MAP_ATTRIBUTION = "Map data © OpenStreetMap contributors"
MAP_UNAVAILABLE = "Map unavailable"

_TEXT_COLOR = QColor(20, 20, 20)
_SECONDARY_COLOR = QColor(110, 110, 115)


def _font(size: int, bold: bool = False) -> QFont:
    f = QFont("Helvetica")
    f.setPointSize(size)
    f.setBold(bold)
    return f


def draw_text_block(painter: QPainter, text: str, top: float, font: QFont) -> float:
    """Draw word-wrapped `text` across the content width; return its bottom edge."""
    flags = Qt.AlignLeft | Qt.AlignTop | Qt.TextWordWrap
    painter.setFont(font)
    bounds = painter.boundingRect(
        QRectF(MARGIN, top, PAGE_WIDTH - 2 * MARGIN, PAGE_HEIGHT - top), flags, text
    )
    painter.drawText(bounds, flags, text)
    return bounds.bottom()


def format_meta(info: HuntPhotoInfo) -> str:
    """Multi-line metadata text shown under the page header."""
    lines = [f"Added: {format_display_datetime(info.date_added)}  |  Source: {info.source.value}"]
    if info.address:
        lines.append(f"Address: {info.address}")
    coords = info.coordinates
    if coords is not None:
        lines.append(f"Coordinates: {coords[0]:.4f}, {coords[1]:.4f}")
    return "\n".join(lines)


def pages_for(
    locations: Sequence[HuntLocation],
    photos: Mapping[str, StoredPhoto],
    snapshots: Mapping[str, bytes],
) -> list[HuntLocation]:
    """Locations that get a page: those with a photo or a map snapshot."""
    return [loc for loc in locations if loc.id in photos or loc.id in snapshots]


class ReportGenerator:
    """Paints the hunt report into a PDF file."""

    def __init__(
        self,
        settings: object | None = None,
        image_service: ImageService | None = None,
        output_dir: str | Path | None = None,
    ) -> None:
        if output_dir is None:
            default = Path(tempfile.gettempdir())
            output_dir = (
                settings.get_path("report.output_dir", default)  # type: ignore[attr-defined]
                if settings is not None
                else default
            )
        self._output_dir = Path(output_dir)
        self._title = REPORT_TITLE
        if settings is not None:
            self._title = str(settings.get("report.title", REPORT_TITLE) or REPORT_TITLE)  # type: ignore[attr-defined]
        self._images = image_service or ImageService(settings)

    def generate(
        self,
        locations: Sequence[HuntLocation],
        photos: Mapping[str, StoredPhoto],
        snapshots: Mapping[str, bytes],
        output_dir: str | Path | None = None,
        now: datetime | None = None,
    ) -> ReportResult:
        """Write the report and return its path, bytes and page count.

        Raises:
            ReportExportError: if the PDF could not be written at all.
        """
        now = now or datetime.now()
        out_dir = Path(output_dir) if output_dir is not None else self._output_dir
        try:
            out_dir.mkdir(parents=True, exist_ok=True)
        except OSError as ex:
            raise ReportExportError(f"Cannot create report directory {out_dir}: {ex}") from ex
        path = out_dir / report_filename(now)

        writer = QPdfWriter(str(path))
        writer.setPageSize(QPageSize(QPageSize.Letter))
        writer.setResolution(72)
        writer.setPageMargins(QMarginsF(0, 0, 0, 0))
        writer.setTitle(self._title)
        writer.setCreator("CityChamberHunt")

        painter = QPainter()
        if not painter.begin(writer):
            raise ReportExportError(f"Cannot open report for writing: {path}")

        with_photo = sum(1 for loc in locations if loc.id in photos)
        page_locations = pages_for(locations, photos, snapshots)
        page_count = 1
        try:
            self._draw_cover(painter, now, with_photo, len(locations))
            for loc in page_locations:
                if not writer.newPage():
                    raise ReportExportError(f"Cannot add page to report: {path}")
                page_count += 1
                self._draw_location(painter, loc, photos.get(loc.id), snapshots.get(loc.id))
        finally:
            painter.end()

        try:
            data = path.read_bytes()
        except OSError as ex:
            raise ReportExportError(f"Report was not written: {path}: {ex}") from ex
        if not data:
            raise ReportExportError(f"Report is empty: {path}")

        logger.info("Report written to {} ({} pages)", path, page_count)
        return ReportResult(
            path=path,
            data=data,
            page_count=page_count,
            location_pages=[loc.id for loc in page_locations],
        )

    # Painting helpers
    def _draw_cover(self, painter: QPainter, now: datetime, with_photo: int, total: int) -> None:
        painter.setPen(_TEXT_COLOR)
        painter.setFont(_font(26, bold=True))
        painter.drawText(
            QRectF(40, 150, PAGE_WIDTH - 80, 40), Qt.AlignLeft | Qt.AlignTop, self._title
        )
        painter.setPen(_SECONDARY_COLOR)
        painter.setFont(_font(14))
        painter.drawText(
            QRectF(40, 200, PAGE_WIDTH - 80, 24),
            Qt.AlignLeft | Qt.AlignTop,
            f"Generated {format_display_datetime(now)}",
        )
        painter.drawText(
            QRectF(40, 228, PAGE_WIDTH - 80, 24),
            Qt.AlignLeft | Qt.AlignTop,
            f"{with_photo} of {total} locations with photo",
        )

    def _draw_location(
        self,
        painter: QPainter,
        loc: HuntLocation,
        photo: StoredPhoto | None,
        snapshot: bytes | None,
    ) -> None:
        painter.setPen(_TEXT_COLOR)
        y = draw_text_block(painter, loc.name, 20.0, _font(18, bold=True)) + 4.0
        painter.setPen(_SECONDARY_COLOR)
        y = draw_text_block(painter, loc.address, y, _font(12)) + 12.0

        if photo is not None:
            y = draw_text_block(painter, format_meta(photo.info), y, _font(11)) + 12.0

            img = self._images.to_qimage(photo.image_bytes)
            if img is None:
                logger.warning("Photo for {} could not be decoded; skipped in report", loc.name)
            else:
                w, h = fit_size(img.width(), img.height(), PHOTO_MAX_WIDTH, PHOTO_MAX_HEIGHT)
                painter.drawImage(QRectF((PAGE_WIDTH - w) / 2.0, y, w, h), img)
                y += h + 20.0

        map_rect = QRectF((PAGE_WIDTH - MAP_WIDTH) / 2.0, y, MAP_WIDTH, MAP_HEIGHT)
        map_img = self._images.to_qimage(snapshot) if snapshot else None
        if map_img is not None:
            painter.drawImage(map_rect, map_img)
            painter.setFont(_font(9))
            painter.drawText(
                QRectF(0, map_rect.bottom() + 8, PAGE_WIDTH, 16),
                Qt.AlignHCenter | Qt.AlignTop,
                MAP_ATTRIBUTION,
            )
        else:
            painter.setPen(QColor(200, 200, 200))
            painter.drawRect(map_rect)
            painter.setPen(_SECONDARY_COLOR)
            painter.setFont(_font(12))
            painter.drawText(map_rect, Qt.AlignCenter, MAP_UNAVAILABLE)
