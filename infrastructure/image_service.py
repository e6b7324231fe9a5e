"""Image decoding, orientation, mirroring and encoding utilities.

Pillow does the pixel work (HEIC/HEIF from phone libraries is registered via
pillow-heif); Qt images are produced only where the report painter needs them.
Intermediate results are kept lossless (PNG) and only the photo store encodes
the final JPEG.
"""

from __future__ import annotations

from io import BytesIO
from typing import Any

from PIL import Image, ImageOps, UnidentifiedImageError
from PySide6.QtGui import QImage
from loguru import logger
from pillow_heif import register_heif_opener

register_heif_opener()

DEFAULT_JPEG_QUALITY = 80


def fit_size(width: float, height: float, max_width: float, max_height: float) -> tuple[float, float]:
    """Scale (width, height) to `max_width`, capping the height at `max_height`.

    Aspect ratio is preserved; the result is never cropped.
    """
    if width <= 0 or height <= 0:
        return (0.0, 0.0)
    ratio = width / height
    w = float(max_width)
    h = w / ratio
    if h > max_height:
        h = float(max_height)
        w = h * ratio
    return (w, h)


class ImageService:
    """Stateless helpers operating on encoded image bytes."""

    def __init__(self, settings: object | None = None) -> None:
        """Initialize encoding options from settings."""
        self._jpeg_quality = DEFAULT_JPEG_QUALITY
        if settings is not None:
            try:
                self._jpeg_quality = int(
                    settings.get("photos.jpeg_quality", DEFAULT_JPEG_QUALITY)  # type: ignore[attr-defined]
                    or DEFAULT_JPEG_QUALITY
                )
            except (ValueError, TypeError):
                self._jpeg_quality = DEFAULT_JPEG_QUALITY
        self._jpeg_quality = max(1, min(95, self._jpeg_quality))

    # Public API
    def normalize_orientation(self, data: bytes) -> bytes | None:
        """Apply EXIF orientation so the image is stored upright."""
        im = self._open(data)
        if im is None:
            return None
        try:
            im = ImageOps.exif_transpose(im)
        except (OSError, ValueError, AttributeError) as ex:
            logger.debug("exif_transpose failed: {}", ex)
        return self._encode(im, "PNG")

    def mirror_horizontal(self, data: bytes) -> bytes | None:
        """Flip the image left-to-right."""
        im = self._open(data)
        if im is None:
            return None
        return self._encode(ImageOps.mirror(im), "PNG")

    def encode_jpeg(self, data: bytes) -> bytes | None:
        """Re-encode any decodable image as RGB JPEG."""
        im = self._open(data)
        if im is None:
            return None
        return self._encode(im, "JPEG")

    def to_qimage(self, data: bytes) -> QImage | None:
        """Decode bytes into a detached `QImage` for painting."""
        im = self._open(data)
        if im is None:
            return None
        return self._pil_to_qimage(im)

    # Internal helpers
    def _open(self, data: bytes) -> Any:
        if not data:
            return None
        try:
            im = Image.open(BytesIO(data))
            im.load()
            return im
        except (UnidentifiedImageError, OSError, ValueError) as ex:
            logger.debug("Image decode failed: {}", ex)
            return None

    def _encode(self, im: Any, fmt: str) -> bytes | None:
        try:
            if fmt == "JPEG" and im.mode != "RGB":
                im = im.convert("RGB")
            elif im.mode not in ("RGB", "RGBA", "L"):
                im = im.convert("RGBA")
            buf = BytesIO()
            if fmt == "JPEG":
                im.save(buf, format="JPEG", quality=self._jpeg_quality)
            else:
                im.save(buf, format=fmt)
            return buf.getvalue()
        except (OSError, ValueError) as ex:
            logger.error("Image encode ({}) failed: {}", fmt, ex)
            return None

    def _pil_to_qimage(self, pil_img: Any) -> QImage | None:
        """Convert a Pillow image to `QImage` and detach from the source buffer."""
        try:
            mode = pil_img.mode
            if mode not in ("RGBA", "RGB"):
                pil_img = pil_img.convert("RGBA")
                mode = pil_img.mode
            if mode == "RGB":
                data = pil_img.tobytes("raw", "RGB")
                qimg = QImage(
                    data, pil_img.width, pil_img.height, pil_img.width * 3, QImage.Format_RGB888
                )
            else:
                data = pil_img.tobytes("raw", "RGBA")
                qimg = QImage(
                    data, pil_img.width, pil_img.height, pil_img.width * 4, QImage.Format_RGBA8888
                )
            if qimg is None or qimg.isNull():
                return None
            return qimg.copy()
        except (ValueError, TypeError) as ex:
            logger.debug("PIL->QImage convert failed: {}", ex)
            return None
