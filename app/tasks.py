from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

from PySide6.QtCore import QRunnable, QThreadPool
from loguru import logger

from core.models import HuntLocation


class _CallbackTask(QRunnable):
    """QRunnable that runs `work()` and hands the result to `callback(token, result)`.

    Unexpected exceptions are logged and reported as `fallback`.
    """

    def __init__(
        self,
        *,
        work: Callable[[], Any],
        callback: Callable[[Any, Any], None],
        token: Any,
        fallback: Any = None,
        name: str = "task",
    ) -> None:
        super().__init__()
        self._work = work
        self._callback = callback
        self._token = token
        self._fallback = fallback
        self._name = name

    def run(self) -> None:  # type: ignore[override]
        try:
            result = self._work()
        except Exception as ex:  # pylint: disable=broad-exception-caught
            logger.error("Background {} failed: {}", self._name, ex)
            result = self._fallback
        try:
            self._callback(self._token, result)
        except Exception as ex:  # pylint: disable=broad-exception-caught
            logger.error("Callback for {} failed: {}", self._name, ex)


class TaskRunner:
    """Dispatches one-shot hunt tasks to a thread pool.

    Callbacks run on the worker thread; receivers that touch UI state must
    marshal back to the UI thread themselves.
    """

    def __init__(self, pool: QThreadPool | None = None) -> None:
        self._pool = pool or QThreadPool.globalInstance()

    def request_search(
        self,
        search: Callable[[str], list[HuntLocation]],
        query: str,
        token: int,
        callback: Callable[[int, list[HuntLocation]], None],
    ) -> int:
        """Run `search(query)` in the background. Returns `token`."""
        self._pool.start(
            _CallbackTask(
                work=lambda: search(query),
                callback=callback,
                token=token,
                fallback=[],
                name=f"search '{query}'",
            )
        )
        return token

    def request_fallback(
        self,
        fetch: Callable[[HuntLocation], Any],
        location: HuntLocation,
        callback: Callable[[str, Any], None],
    ) -> str:
        """Fetch a fallback photo for `location`. Returns the location identity as token."""
        token = location.id
        self._pool.start(
            _CallbackTask(
                work=lambda: fetch(location),
                callback=callback,
                token=token,
                name=f"fallback photo for {location.name}",
            )
        )
        return token

    def request_preload(
        self,
        preload: Callable[[Sequence[HuntLocation]], dict[str, bytes]],
        locations: Sequence[HuntLocation],
        callback: Callable[[str, dict[str, bytes]], None],
    ) -> str:
        """Preload map snapshots for all `locations` as one sequential task."""
        token = f"preload|{len(locations)}"
        items = list(locations)
        self._pool.start(
            _CallbackTask(
                work=lambda: preload(items),
                callback=callback,
                token=token,
                fallback={},
                name="map preload",
            )
        )
        return token

    def wait(self, timeout_ms: int = -1) -> bool:
        """Block until all queued tasks finished; False on timeout."""
        return self._pool.waitForDone(timeout_ms)
