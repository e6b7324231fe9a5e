from __future__ import annotations

import json

from conftest import dominant_channel, make_image_bytes

from core.models import HuntLocation, PhotoSource
from infrastructure.photo_store import LocalPhotoStore, photo_filename

LOC = HuntLocation("Best Bakery", "Best Bakery, 1 King St, Toronto", 43.65, -79.38)


def test_save_then_reload_round_trip(settings):
    store = LocalPhotoStore(settings)
    info = store.save(LOC.id, make_image_bytes(), PhotoSource.CAMERA, LOC.address, LOC.coordinates)
    assert info.filename == photo_filename(LOC.id)

    written = (store.documents_dir / info.filename).read_bytes()
    loaded = LocalPhotoStore(settings).load_all()
    assert list(loaded) == [LOC.id]
    assert loaded[LOC.id].image_bytes == written
    restored = loaded[LOC.id].info
    assert restored.source is PhotoSource.CAMERA
    assert restored.address == LOC.address
    assert restored.coordinates == (43.65, -79.38)


def test_persisted_layout(settings):
    store = LocalPhotoStore(settings)
    store.save(LOC.id, make_image_bytes(), PhotoSource.LIBRARY)
    files = json.loads(store.files_map_path.read_text(encoding="utf-8"))
    infos = json.loads(store.info_map_path.read_text(encoding="utf-8"))
    assert files == {LOC.id: photo_filename(LOC.id)}
    assert infos[LOC.id]["source"] == "library"
    assert infos[LOC.id]["latitude"] is None
    assert store.info_map_path.parent != store.files_map_path.parent


def test_second_save_overwrites(settings):
    store = LocalPhotoStore(settings)
    store.save(LOC.id, make_image_bytes(color=(255, 0, 0)), PhotoSource.CAMERA)
    store.save(LOC.id, make_image_bytes(color=(0, 0, 255)), PhotoSource.STOCK_FALLBACK)
    loaded = LocalPhotoStore(settings).load_all()
    assert len(loaded) == 1
    assert loaded[LOC.id].info.source is PhotoSource.STOCK_FALLBACK
    assert len(list(store.documents_dir.glob("*.jpg"))) == 1


def test_same_name_different_address_kept_apart(settings):
    other = HuntLocation("Best Bakery", "Best Bakery, 9 Bay St, Ottawa", 45.4, -75.7)
    store = LocalPhotoStore(settings)
    store.save(LOC.id, make_image_bytes(color=(255, 0, 0)), PhotoSource.CAMERA)
    store.save(other.id, make_image_bytes(color=(0, 0, 255)), PhotoSource.LIBRARY)
    loaded = LocalPhotoStore(settings).load_all()
    assert set(loaded) == {LOC.id, other.id}
    assert loaded[LOC.id].info.source is PhotoSource.CAMERA
    assert loaded[other.id].info.source is PhotoSource.LIBRARY


def test_missing_image_file_is_dropped(settings):
    other = HuntLocation("Cafe", "Cafe, 2 King St, Toronto", 43.6, -79.3)
    store = LocalPhotoStore(settings)
    store.save(LOC.id, make_image_bytes(), PhotoSource.CAMERA)
    store.save(other.id, make_image_bytes(), PhotoSource.CAMERA)
    store.photo_path(LOC.id).unlink()
    loaded = LocalPhotoStore(settings).load_all()
    assert set(loaded) == {other.id}


def test_empty_or_corrupt_state_loads_nothing(settings):
    store = LocalPhotoStore(settings)
    assert store.load_all() == {}
    store.info_map_path.write_text("{not json", encoding="utf-8")
    assert store.load_all() == {}


def test_undecodable_image_is_not_saved(settings):
    store = LocalPhotoStore(settings)
    assert store.save(LOC.id, b"not an image", PhotoSource.CAMERA) is None
    assert not store.has_photo(LOC.id)
    assert not store.info_map_path.exists()


def test_in_memory_state_follows_saves(settings):
    store = LocalPhotoStore(settings)
    assert store.get(LOC.id) is None
    store.save(LOC.id, make_image_bytes(), PhotoSource.CAMERA)
    assert store.has_photo(LOC.id)
    assert store.entries[LOC.id].info.filename == photo_filename(LOC.id)


def test_failed_mapping_write_keeps_previous_photo(settings):
    store = LocalPhotoStore(settings)
    store.save(LOC.id, make_image_bytes(color=(255, 0, 0)), PhotoSource.CAMERA)
    # a directory in the temp file's place makes the metadata write fail
    store.info_map_path.with_name(store.info_map_path.name + ".tmp").mkdir()

    assert store.save(LOC.id, make_image_bytes(color=(0, 0, 255)), PhotoSource.STOCK_FALLBACK) is None
    assert store.get(LOC.id).info.source is PhotoSource.CAMERA

    loaded = LocalPhotoStore(settings).load_all()
    assert loaded[LOC.id].info.source is PhotoSource.CAMERA
    assert dominant_channel(loaded[LOC.id].image_bytes, (5, 5)) == "r"
    assert not list(store.documents_dir.glob("*.jpg.tmp"))
