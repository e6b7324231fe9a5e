"""Priority-ordered photo source resolution.

User-supplied photos (camera or library) always win. The stock-photo fallback
is only consulted when the location has no photo yet.
"""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from core.models import HuntLocation, PhotoSource, ResolvedPhoto
from core.services.interfaces import IStockPhotoSource


@dataclass(frozen=True)
class UserPhoto:
    """A photo the user explicitly captured or picked."""

    image_bytes: bytes
    source: PhotoSource = PhotoSource.LIBRARY
    front_facing: bool = False


class PhotoSourceResolver:
    """Resolves at most one photo for a location."""

    def __init__(self, image_service, stock_source: IStockPhotoSource | None = None) -> None:
        """Create a resolver.

        Args:
            image_service: Provides `normalize_orientation` and `mirror_horizontal`.
            stock_source: Optional stock photo provider used as fallback.
        """
        self._images = image_service
        self._stock = stock_source

    def resolve(
        self,
        location: HuntLocation,
        user_photo: UserPhoto | None = None,
        has_existing: bool = False,
    ) -> ResolvedPhoto | None:
        """Return the photo to store for `location`, or None for no change."""
        if user_photo is not None:
            return self._from_user(location, user_photo)
        if has_existing:
            return None
        return self._from_stock(location)

    def _from_user(self, location: HuntLocation, photo: UserPhoto) -> ResolvedPhoto | None:
        data = self._images.normalize_orientation(photo.image_bytes)
        if data is None:
            logger.warning("Unreadable {} photo for {}", photo.source.value, location.name)
            return None
        if photo.source is PhotoSource.CAMERA and photo.front_facing:
            data = self._images.mirror_horizontal(data)
            if data is None:
                return None
        return ResolvedPhoto(source=photo.source, image_bytes=data)

    def _from_stock(self, location: HuntLocation) -> ResolvedPhoto | None:
        if self._stock is None:
            return None
        data = self._stock.fetch_photo(location.name)
        if not data:
            logger.info("No stock photo for {}", location.name)
            return None
        return ResolvedPhoto(source=PhotoSource.STOCK_FALLBACK, image_bytes=data)
