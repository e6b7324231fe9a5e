"""Local persistence for location photos and their metadata.

Layout:
- documents dir: `<identity>.jpg` per location and `HuntPhotoFiles.json`
  (identity -> filename)
- preferences dir: `HuntPhotoInfo.json` (identity -> metadata record)

Both mappings are rewritten as whole blobs on every save. Saves are serialized
by a store-owned lock so there is a single writer per store instance.
"""

from __future__ import annotations

from datetime import datetime
import json
import os
from pathlib import Path
import threading
from typing import Any

from loguru import logger

from core.models import HuntPhotoInfo, PhotoSource, StoredPhoto
from infrastructure.image_service import ImageService
from infrastructure.utils import ensure_dir, get_app_data_dir

FILES_MAP_NAME = "HuntPhotoFiles.json"
INFO_MAP_NAME = "HuntPhotoInfo.json"


def photo_filename(identity: str) -> str:
    """File name for the photo of `identity`."""
    return f"{identity}.jpg"


def _read_json_mapping(path: Path) -> dict[str, Any]:
    """Read a JSON object from `path`; empty dict when missing or corrupt."""
    if not path.exists():
        logger.info("No saved mapping at {}", path)
        return {}
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as ex:
        logger.error("Could not read {}: {}", path, ex)
        return {}
    if not isinstance(data, dict):
        logger.error("Ignoring non-object mapping in {}", path)
        return {}
    return data


def _write_bytes_atomic(path: Path, data: bytes) -> None:
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_bytes(data)
    os.replace(tmp, path)


def _write_json_mapping(path: Path, mapping: dict[str, Any]) -> None:
    data = json.dumps(mapping, ensure_ascii=False, indent=2).encode("utf-8")
    _write_bytes_atomic(path, data)


class LocalPhotoStore:
    """Owns photo files and metadata, with explicit load/save."""

    def __init__(
        self,
        settings: object | None = None,
        image_service: ImageService | None = None,
        documents_dir: str | Path | None = None,
        preferences_dir: str | Path | None = None,
    ) -> None:
        base = get_app_data_dir()
        if documents_dir is None:
            documents_dir = (
                settings.get_path("storage.documents_dir", base / "Documents")  # type: ignore[attr-defined]
                if settings is not None
                else base / "Documents"
            )
        if preferences_dir is None:
            preferences_dir = (
                settings.get_path("storage.preferences_dir", base / "Preferences")  # type: ignore[attr-defined]
                if settings is not None
                else base / "Preferences"
            )
        self._docs = ensure_dir(Path(documents_dir))
        self._prefs = ensure_dir(Path(preferences_dir))
        self._images = image_service or ImageService(settings)
        self._lock = threading.Lock()
        self._files: dict[str, str] = {}
        self._infos: dict[str, HuntPhotoInfo] = {}
        self._entries: dict[str, StoredPhoto] = {}

    @property
    def documents_dir(self) -> Path:
        return self._docs

    @property
    def files_map_path(self) -> Path:
        return self._docs / FILES_MAP_NAME

    @property
    def info_map_path(self) -> Path:
        return self._prefs / INFO_MAP_NAME

    @property
    def entries(self) -> dict[str, StoredPhoto]:
        """Snapshot of the in-memory identity -> StoredPhoto mapping."""
        with self._lock:
            return dict(self._entries)

    def photo_path(self, identity: str) -> Path:
        return self._docs / photo_filename(identity)

    def get(self, identity: str) -> StoredPhoto | None:
        with self._lock:
            return self._entries.get(identity)

    def has_photo(self, identity: str) -> bool:
        with self._lock:
            return identity in self._entries

    def save(
        self,
        identity: str,
        image_bytes: bytes,
        source: PhotoSource,
        address: str | None = None,
        coordinates: tuple[float, float] | None = None,
    ) -> HuntPhotoInfo | None:
        """Persist a photo for `identity`, overwriting any previous one.

        Returns the written metadata, or None when the image could not be
        encoded or written (the previous state is kept).
        """
        jpeg = self._images.encode_jpeg(image_bytes)
        if jpeg is None:
            logger.error("Not saving photo for {}: image could not be encoded", identity)
            return None

        filename = photo_filename(identity)
        lat, lon = coordinates if coordinates is not None else (None, None)
        info = HuntPhotoInfo(
            filename=filename,
            date_added=datetime.now(),
            source=PhotoSource(source),
            address=address,
            latitude=lat,
            longitude=lon,
        )

        with self._lock:
            files = dict(self._files)
            infos = dict(self._infos)
            files[identity] = filename
            infos[identity] = info
            # The image replaces the old file only once both mappings are on disk
            target = self._docs / filename
            tmp = target.with_name(target.name + ".tmp")
            try:
                tmp.write_bytes(jpeg)
                _write_json_mapping(self.files_map_path, files)
                _write_json_mapping(
                    self.info_map_path, {k: v.to_dict() for k, v in infos.items()}
                )
                os.replace(tmp, target)
            except OSError as ex:
                logger.error("Error saving photo for {}: {}", identity, ex)
                tmp.unlink(missing_ok=True)
                self._restore_mappings()
                return None
            self._files = files
            self._infos = infos
            self._entries[identity] = StoredPhoto(image_bytes=jpeg, info=info)

        logger.info("Saved {} photo {} ({} bytes)", info.source.value, filename, len(jpeg))
        return info

    def _restore_mappings(self) -> None:
        """Rewrite both mappings from the last committed in-memory state."""
        try:
            _write_json_mapping(self.files_map_path, self._files)
            _write_json_mapping(
                self.info_map_path, {k: v.to_dict() for k, v in self._infos.items()}
            )
        except OSError as ex:
            logger.warning("Could not restore photo mappings: {}", ex)

    def load_all(self) -> dict[str, StoredPhoto]:
        """Restore metadata and photo files; entries without a file are dropped."""
        raw_infos = _read_json_mapping(self.info_map_path)
        raw_files = _read_json_mapping(self.files_map_path)

        infos: dict[str, HuntPhotoInfo] = {}
        for identity, raw in raw_infos.items():
            try:
                infos[identity] = HuntPhotoInfo.from_dict(raw)
            except (ValueError, TypeError, KeyError, AttributeError) as ex:
                logger.warning("Skipping bad metadata for {}: {}", identity, ex)

        files: dict[str, str] = {
            k: v for k, v in raw_files.items() if isinstance(k, str) and isinstance(v, str)
        }
        entries: dict[str, StoredPhoto] = {}
        for identity, info in infos.items():
            filename = info.filename or files.get(identity, photo_filename(identity))
            path = self._docs / filename
            try:
                data = path.read_bytes()
            except OSError:
                logger.debug("Photo file missing for {}: {}", identity, path)
                continue
            entries[identity] = StoredPhoto(image_bytes=data, info=info)

        with self._lock:
            self._infos = infos
            self._files = files
            self._entries = entries
        logger.info("Loaded {} saved images", len(entries))
        return dict(entries)
