"""Core domain models for hunt locations and stored photos."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
import hashlib
import json


def location_identity(name: str, address: str) -> str:
    """Return a stable key for the (name, address) pair.

    The pair is JSON-encoded before hashing so that ("a_b", "c") and
    ("a", "b_c") never share an identity.
    """
    sig = json.dumps([name, address], ensure_ascii=False).encode("utf-8")
    return hashlib.sha1(sig).hexdigest()


@dataclass(frozen=True)
class HuntLocation:
    """A searched place. Not persisted; only derived artifacts are."""

    name: str
    address: str
    lat: float
    lon: float

    @property
    def id(self) -> str:
        return location_identity(self.name, self.address)

    @property
    def coordinates(self) -> tuple[float, float]:
        return (self.lat, self.lon)


class PhotoSource(str, Enum):
    """Origin of a stored photo."""

    CAMERA = "camera"
    LIBRARY = "library"
    STOCK_FALLBACK = "stock-fallback"


@dataclass
class HuntPhotoInfo:
    """Metadata describing how/when/where a stored photo was acquired."""

    filename: str
    date_added: datetime
    source: PhotoSource
    address: str | None = None
    latitude: float | None = None
    longitude: float | None = None

    @property
    def coordinates(self) -> tuple[float, float] | None:
        if self.latitude is None or self.longitude is None:
            return None
        return (self.latitude, self.longitude)

    def to_dict(self) -> dict:
        """Convert to a JSON-friendly dictionary."""
        return {
            "filename": self.filename,
            "date_added": self.date_added.isoformat(),
            "source": self.source.value,
            "address": self.address,
            "latitude": self.latitude,
            "longitude": self.longitude,
        }

    @classmethod
    def from_dict(cls, data: dict) -> HuntPhotoInfo:
        """Create from a dictionary produced by `to_dict`.

        Raises ValueError/KeyError/TypeError on malformed input.
        """
        lat = data.get("latitude")
        lon = data.get("longitude")
        return cls(
            filename=str(data["filename"]),
            date_added=datetime.fromisoformat(data["date_added"]),
            source=PhotoSource(data.get("source", PhotoSource.LIBRARY.value)),
            address=data.get("address"),
            latitude=float(lat) if lat is not None else None,
            longitude=float(lon) if lon is not None else None,
        )


@dataclass
class StoredPhoto:
    """Image bytes restored from disk together with their metadata."""

    image_bytes: bytes
    info: HuntPhotoInfo


@dataclass(frozen=True)
class ResolvedPhoto:
    """Result of photo source resolution, tagged with its origin."""

    source: PhotoSource
    image_bytes: bytes
