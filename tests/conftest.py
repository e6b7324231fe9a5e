from __future__ import annotations

from io import BytesIO
import os
from pathlib import Path

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from PIL import Image  # noqa: E402
from PySide6.QtGui import QGuiApplication  # noqa: E402
import pytest  # noqa: E402
import requests  # noqa: E402

from infrastructure.settings import JsonSettings  # noqa: E402


@pytest.fixture(scope="session")
def qapp():
    app = QGuiApplication.instance() or QGuiApplication([])
    yield app


@pytest.fixture
def settings(tmp_path: Path) -> JsonSettings:
    return JsonSettings.from_dict(
        {
            "storage": {
                "documents_dir": str(tmp_path / "Documents"),
                "preferences_dir": str(tmp_path / "Preferences"),
            },
            "photos": {"access_key": "test-key", "jpeg_quality": 90},
            "maps": {"preload_pause_seconds": 0.25},
            "report": {"output_dir": str(tmp_path / "Reports")},
        }
    )


def make_image_bytes(
    size: tuple[int, int] = (40, 20),
    color: tuple[int, int, int] = (200, 50, 50),
    fmt: str = "JPEG",
    split_color: tuple[int, int, int] | None = None,
    exif_orientation: int | None = None,
) -> bytes:
    """Solid image, optionally with the right half painted `split_color`."""
    im = Image.new("RGB", size, color)
    if split_color is not None:
        w, h = size
        im.paste(Image.new("RGB", (w - w // 2, h), split_color), (w // 2, 0))
    buf = BytesIO()
    if exif_orientation is not None:
        exif = Image.Exif()
        exif[0x0112] = exif_orientation
        im.save(buf, format=fmt, exif=exif)
    else:
        im.save(buf, format=fmt)
    return buf.getvalue()


def image_size(data: bytes) -> tuple[int, int]:
    with Image.open(BytesIO(data)) as im:
        return im.size


def dominant_channel(data: bytes, xy: tuple[int, int]) -> str:
    """'r', 'g' or 'b' for the strongest channel of the pixel at `xy`."""
    with Image.open(BytesIO(data)) as im:
        r, g, b = im.convert("RGB").getpixel(xy)
    return max((r, "r"), (g, "g"), (b, "b"))[1]


class FakeResponse:
    def __init__(self, payload=None, status_code: int = 200, content: bytes = b"", json_error=False):
        self._payload = payload
        self.status_code = status_code
        self.content = content
        self._json_error = json_error

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if self._json_error:
            raise ValueError("Expecting value")
        return self._payload


class FakeSession:
    """Records `get` calls and answers from a list or a url -> response mapping."""

    def __init__(self, responses=None, error: Exception | None = None):
        self.calls: list[dict] = []
        self._responses = responses
        self._error = error

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        if self._error is not None:
            raise self._error
        if callable(self._responses):
            return self._responses(url)
        if isinstance(self._responses, dict):
            return self._responses[url]
        return self._responses.pop(0)


class FakeRenderer:
    def __init__(self, result: bytes | None = None):
        self.calls: list[tuple] = []
        self._result = result if result is not None else make_image_bytes((52, 32), (90, 160, 90))
        self.fail = False

    def render(self, lat, lon, span_meters, size):
        self.calls.append((lat, lon, span_meters, size))
        return None if self.fail else self._result
