from __future__ import annotations

from datetime import datetime

from conftest import make_image_bytes
from PySide6.QtGui import QFont, QImage, QPainter
import pytest

from core.models import HuntLocation, HuntPhotoInfo, PhotoSource, StoredPhoto
from core.services.interfaces import ReportExportError
from infrastructure.pdf_report import ReportGenerator, draw_text_block, format_meta, pages_for

NOW = datetime(2025, 10, 15, 9, 30)
WITH_PHOTO = HuntLocation("Best Bakery", "Best Bakery, 1 King St, Toronto", 43.65, -79.38)
WITH_MAP = HuntLocation("Corner Cafe", "Corner Cafe, 5 Bay St, Ottawa", 45.42, -75.69)
NOTHING = HuntLocation("Empty Deli", "Empty Deli, 7 Main St, Kingston", 44.23, -76.48)


def _photo(loc: HuntLocation, size=(1200, 300)) -> StoredPhoto:
    info = HuntPhotoInfo(
        f"{loc.id}.jpg", NOW, PhotoSource.CAMERA, loc.address, loc.lat, loc.lon
    )
    return StoredPhoto(make_image_bytes(size), info)


def test_cover_only_for_zero_locations(qapp, tmp_path):
    result = ReportGenerator(output_dir=tmp_path).generate([], {}, {}, now=NOW)
    assert result.page_count == 1
    assert result.location_pages == []
    assert result.path == tmp_path / "CityHunt_Report_2025-10-15.pdf"
    assert result.path.read_bytes() == result.data
    assert result.data.startswith(b"%PDF")


def test_pages_only_for_locations_with_content(qapp, tmp_path):
    photos = {WITH_PHOTO.id: _photo(WITH_PHOTO)}
    maps = {WITH_MAP.id: make_image_bytes((520, 320), (90, 160, 90))}
    result = ReportGenerator(output_dir=tmp_path).generate(
        [WITH_PHOTO, NOTHING, WITH_MAP], photos, maps, now=NOW
    )
    assert result.page_count == 3
    assert result.location_pages == [WITH_PHOTO.id, WITH_MAP.id]


def test_corrupt_photo_does_not_abort(qapp, tmp_path):
    bad = StoredPhoto(b"not a jpeg", _photo(WITH_PHOTO).info)
    result = ReportGenerator(output_dir=tmp_path).generate(
        [WITH_PHOTO], {WITH_PHOTO.id: bad}, {WITH_PHOTO.id: b"broken map"}, now=NOW
    )
    assert result.page_count == 2


def test_systemic_write_failure_raises(qapp, tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x", encoding="utf-8")
    with pytest.raises(ReportExportError):
        ReportGenerator(output_dir=blocker).generate([], {}, {}, now=NOW)


def test_output_dir_from_settings(qapp, settings, tmp_path):
    result = ReportGenerator(settings).generate([], {}, {}, now=NOW)
    assert result.path.parent == tmp_path / "Reports"


def test_pages_for_keeps_order():
    assert pages_for([WITH_MAP, NOTHING, WITH_PHOTO], {WITH_PHOTO.id: 1}, {WITH_MAP.id: b""}) == [
        WITH_MAP,
        WITH_PHOTO,
    ]


def test_format_meta():
    text = format_meta(_photo(WITH_PHOTO).info)
    assert "Source: camera" in text
    assert "Address: Best Bakery, 1 King St, Toronto" in text
    assert "Coordinates: 43.6500, -79.3800" in text
    bare = HuntPhotoInfo("x.jpg", NOW, PhotoSource.LIBRARY)
    assert format_meta(bare).count("\n") == 0


def test_long_text_block_grows_instead_of_clipping(qapp):
    img = QImage(612, 792, QImage.Format_RGB32)
    font = QFont("Helvetica", 12)
    painter = QPainter(img)
    try:
        short_bottom = draw_text_block(painter, WITH_PHOTO.address, 45.0, font)
        long_bottom = draw_text_block(painter, ", ".join([WITH_PHOTO.address] * 12), 45.0, font)
    finally:
        painter.end()
    assert 45.0 < short_bottom < long_bottom
    assert long_bottom - 45.0 > 40.0


def test_long_address_still_renders(qapp, tmp_path):
    loc = HuntLocation("Best Bakery", ", ".join([WITH_PHOTO.address] * 8), 43.65, -79.38)
    result = ReportGenerator(output_dir=tmp_path).generate(
        [loc], {loc.id: _photo(loc)}, {}, now=NOW
    )
    assert result.page_count == 2
    assert result.location_pages == [loc.id]
