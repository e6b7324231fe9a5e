from __future__ import annotations

import argparse
import os
from pathlib import Path
import sys

from PySide6.QtGui import QGuiApplication
from loguru import logger

from app.tasks import TaskRunner
from app.viewmodels.hunt_vm import HuntVM
from core.models import PhotoSource
from core.services.photo_resolver import PhotoSourceResolver
from infrastructure.image_service import ImageService
from infrastructure.location_api import NominatimClient
from infrastructure.logging import init_logging
from infrastructure.map_renderer import TileMapRenderer
from infrastructure.pdf_report import ReportGenerator
from infrastructure.photo_api import UnsplashClient
from infrastructure.photo_store import LocalPhotoStore
from infrastructure.settings import JsonSettings
from infrastructure.snapshot_cache import MapSnapshotCache

BASE_DIR = Path(__file__).parent


def build_vm(settings: JsonSettings) -> HuntVM:
    """Wire services from `settings` into a `HuntVM`."""
    images = ImageService(settings)
    store = LocalPhotoStore(settings, image_service=images)
    snapshots = MapSnapshotCache(TileMapRenderer(settings), settings)
    resolver = PhotoSourceResolver(images, UnsplashClient(settings))
    reporter = ReportGenerator(settings, image_service=images)
    return HuntVM(
        NominatimClient(settings),
        store,
        snapshots,
        resolver,
        reporter,
        runner=TaskRunner(),
    )


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="cityhunt", description="City Chamber Hunt")
    parser.add_argument("--settings", default=str(BASE_DIR / "settings.json"))
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("search", help="search local businesses")
    p.add_argument("query")

    p = sub.add_parser("attach", help="attach a photo to a search result")
    p.add_argument("query")
    p.add_argument("index", type=int)
    p.add_argument("image")
    p.add_argument("--library", action="store_true", help="photo comes from the library")
    p.add_argument("--front", action="store_true", help="captured with the front camera")

    p = sub.add_parser("fallback", help="fetch a stock photo for a search result")
    p.add_argument("query")
    p.add_argument("index", type=int)

    p = sub.add_parser("export", help="export the PDF report for a search")
    p.add_argument("query")
    p.add_argument("--open", action="store_true", help="open the report when done")

    sub.add_parser("status", help="show stored photo count")
    return parser.parse_args(argv)


def _pick(vm: HuntVM, query: str, index: int):
    results = vm.search(query)
    if not 0 <= index < len(results):
        print(f"No result #{index} for '{query}' ({len(results)} found)")
        return None
    return results[index]


def run(args: argparse.Namespace, vm: HuntVM) -> int:
    """Execute one CLI command against `vm`."""
    vm.load()

    if args.command == "search":
        results = vm.search(args.query)
        for i, loc in enumerate(results):
            mark = "*" if vm.store.has_photo(loc.id) else " "
            print(f"{i:>2} {mark} {loc.name} | {loc.address} | {loc.lat:.5f}, {loc.lon:.5f}")
        return 0 if results else 1

    if args.command == "attach":
        loc = _pick(vm, args.query, args.index)
        if loc is None:
            return 1
        try:
            data = Path(args.image).read_bytes()
        except OSError as ex:
            logger.error("Cannot read {}: {}", args.image, ex)
            return 1
        source = PhotoSource.LIBRARY if args.library else PhotoSource.CAMERA
        info = vm.attach_photo(loc, data, source, front_facing=args.front)
        if info is None:
            return 1
        print(f"Saved {info.filename} for {loc.name}")
        return 0

    if args.command == "fallback":
        loc = _pick(vm, args.query, args.index)
        if loc is None:
            return 1
        saved: list = []
        vm.ensure_fallback_photo_async(loc, saved.append)
        vm.wait()
        info = saved[0] if saved else None
        if info is None:
            print(f"No new photo for {loc.name}")
            return 1
        print(f"Saved stock photo {info.filename} for {loc.name}")
        return 0

    if args.command == "export":
        vm.search(args.query)
        done: list = []
        vm.export_report_async(done.append, open_after=args.open)
        vm.wait()
        path = done[0] if done else None
        if path is None:
            return 1
        print(path)
        return 0

    print(f"{len(vm.store.entries)} stored photos")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    init_logging()
    try:
        settings = JsonSettings(args.settings)
    except (FileNotFoundError, ValueError) as ex:
        logger.error("Settings error: {}", ex)
        return 1

    # Fonts for PDF painting need a GUI application; no window is shown.
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    app = QGuiApplication.instance() or QGuiApplication(sys.argv[:1])  # noqa: F841
    return run(args, build_vm(settings))


if __name__ == "__main__":
    raise SystemExit(main())
