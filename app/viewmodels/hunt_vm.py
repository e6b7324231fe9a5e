"""ViewModel orchestrating search, photo capture, persistence and export."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from loguru import logger

from app.tasks import TaskRunner
from core.models import HuntLocation, HuntPhotoInfo, PhotoSource, ResolvedPhoto
from core.services.interfaces import ILocationSearch, ReportExportError, ReportResult
from core.services.photo_resolver import PhotoSourceResolver, UserPhoto
from core.services.search_session import SearchSession
from infrastructure.logging import open_file_in_default_app
from infrastructure.pdf_report import ReportGenerator
from infrastructure.photo_store import LocalPhotoStore
from infrastructure.snapshot_cache import MapSnapshotCache

ALL_FOUND_THRESHOLD = 10


def reward_message(found: int) -> str:
    """Progress message for the number of locations with a photo."""
    if found >= ALL_FOUND_THRESHOLD:
        return "🎉 All items found!"
    if found > 0:
        return f"You found {found} items"
    return "Start your hunt!"


class HuntVM:
    """Main application view-model.

    Owns the current location list (through a `SearchSession`), the photo
    store and the map snapshot cache. Presentation code only calls methods
    here.
    """

    def __init__(
        self,
        search_client: ILocationSearch,
        store: LocalPhotoStore,
        snapshots: MapSnapshotCache,
        resolver: PhotoSourceResolver,
        reporter: ReportGenerator,
        runner: TaskRunner | None = None,
        opener: Callable[[str], bool] = open_file_in_default_app,
    ) -> None:
        self._search = search_client
        self._store = store
        self._snapshots = snapshots
        self._resolver = resolver
        self._reporter = reporter
        self._runner = runner
        self._opener = opener
        self._session = SearchSession()
        self.last_report: ReportResult | None = None

    @property
    def locations(self) -> list[HuntLocation]:
        return list(self._session.locations)

    @property
    def store(self) -> LocalPhotoStore:
        return self._store

    def load(self) -> int:
        """Restore saved photos; returns how many were loaded."""
        return len(self._store.load_all())

    # Search
    def search(self, query: str) -> list[HuntLocation]:
        """Run a search synchronously and make it the current list."""
        token = self._session.begin(query)
        results = self._search.search(query)
        self._session.accept(token, results)
        return self.locations

    def search_async(
        self, query: str, on_done: Callable[[list[HuntLocation]], None] | None = None
    ) -> int:
        """Start a background search; stale completions are ignored.

        `on_done` is called with the new list only when this search is still
        the latest one. Returns the generation token.
        """
        token = self._session.begin(query)
        if self._runner is None:
            self._on_search_done(token, self._search.search(query), on_done)
            return token
        self._runner.request_search(
            self._search.search,
            query,
            token,
            lambda t, results: self._on_search_done(t, results, on_done),
        )
        return token

    def _on_search_done(
        self,
        token: int,
        results: list[HuntLocation],
        on_done: Callable[[list[HuntLocation]], None] | None,
    ) -> None:
        if self._session.accept(token, results or []) and on_done is not None:
            on_done(self.locations)

    # Photos
    def attach_photo(
        self,
        location: HuntLocation,
        image_bytes: bytes,
        source: PhotoSource = PhotoSource.CAMERA,
        front_facing: bool = False,
    ) -> HuntPhotoInfo | None:
        """Store a user-captured or library photo for `location`."""
        user_photo = UserPhoto(image_bytes=image_bytes, source=source, front_facing=front_facing)
        resolved = self._resolver.resolve(location, user_photo=user_photo)
        if resolved is None:
            return None
        return self._save(location, resolved.image_bytes, resolved.source)

    def ensure_fallback_photo(self, location: HuntLocation) -> HuntPhotoInfo | None:
        """Fetch and store a stock photo when `location` has none yet."""
        resolved = self._resolver.resolve(
            location, has_existing=self._store.has_photo(location.id)
        )
        if resolved is None:
            return None
        return self._save(location, resolved.image_bytes, resolved.source)

    def ensure_fallback_photo_async(
        self,
        location: HuntLocation,
        on_done: Callable[[HuntPhotoInfo | None], None] | None = None,
    ) -> str:
        """Fetch a stock photo in the background and save it if still needed.

        A user photo attached while the fetch was running wins; the stock photo
        is then discarded and `on_done` receives None.
        """
        if self._runner is None:
            info = self.ensure_fallback_photo(location)
            if on_done is not None:
                on_done(info)
            return location.id
        return self._runner.request_fallback(
            lambda loc: self._resolver.resolve(loc, has_existing=self._store.has_photo(loc.id)),
            location,
            lambda _token, resolved: self._on_fallback_done(location, resolved, on_done),
        )

    def _on_fallback_done(
        self,
        location: HuntLocation,
        resolved: ResolvedPhoto | None,
        on_done: Callable[[HuntPhotoInfo | None], None] | None,
    ) -> None:
        info = None
        if resolved is not None:
            if self._store.has_photo(location.id):
                logger.info("Discarding stock photo for {}: a photo was attached", location.name)
            else:
                info = self._save(location, resolved.image_bytes, resolved.source)
        if on_done is not None:
            on_done(info)

    def _save(
        self, location: HuntLocation, data: bytes, source: PhotoSource
    ) -> HuntPhotoInfo | None:
        info = self._store.save(
            location.id, data, source, address=location.address, coordinates=location.coordinates
        )
        if info is not None:
            logger.info("Saved image for {}", location.name)
        return info

    def found_count(self) -> int:
        """Number of current locations that have a stored photo."""
        return sum(1 for loc in self._session.locations if self._store.has_photo(loc.id))

    def reward_message(self) -> str:
        return reward_message(self.found_count())

    # Export
    def export_report(self, open_after: bool = False) -> Path | None:
        """Build the PDF report for the current list; None when it failed."""
        locations = self.locations
        self._snapshots.preload(locations)
        return self._generate(locations, open_after)

    def export_report_async(
        self,
        on_done: Callable[[Path | None], None] | None = None,
        open_after: bool = False,
    ) -> None:
        """Preload map snapshots in the background, then build the report.

        `on_done` receives the report path, or None when the export failed.
        """
        locations = self.locations
        if self._runner is None:
            path = self.export_report(open_after=open_after)
            if on_done is not None:
                on_done(path)
            return

        def finish(_token: str, _snapshots: dict[str, bytes]) -> None:
            path = self._generate(locations, open_after)
            if on_done is not None:
                on_done(path)

        self._runner.request_preload(self._snapshots.preload, locations, finish)

    def _generate(self, locations: list[HuntLocation], open_after: bool) -> Path | None:
        try:
            result = self._reporter.generate(
                locations, self._store.entries, self._snapshots.snapshots
            )
        except ReportExportError as ex:
            logger.error("PDF error: {}", ex)
            return None
        self.last_report = result
        if open_after:
            self._opener(str(result.path))
        return result.path

    def wait(self, timeout_ms: int = -1) -> bool:
        """Block until background work finished; True when there is no runner."""
        if self._runner is None:
            return True
        return self._runner.wait(timeout_ms)
