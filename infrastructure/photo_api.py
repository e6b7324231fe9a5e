"""Unsplash stock-photo client used as the photo fallback."""

from __future__ import annotations

import os
from typing import Any

from loguru import logger
import requests

from core.services.interfaces import IStockPhotoSource

DEFAULT_ENDPOINT = "https://api.unsplash.com/photos/random"
ACCESS_KEY_ENV = "UNSPLASH_ACCESS_KEY"


class UnsplashClient(IStockPhotoSource):
    """Fetch a random photo matching a keyword."""

    def __init__(self, settings: object | None = None, session: Any | None = None) -> None:
        self._endpoint = DEFAULT_ENDPOINT
        self._access_key = ""
        self._timeout = 15.0
        if settings is not None:
            get = settings.get  # type: ignore[attr-defined]
            self._endpoint = str(get("photos.endpoint", self._endpoint))
            self._access_key = str(get("photos.access_key", "") or "")
            try:
                self._timeout = float(get("photos.timeout_seconds", self._timeout))
            except (ValueError, TypeError):
                logger.warning("Invalid photos timeout in settings; using default")
        if not self._access_key:
            self._access_key = os.environ.get(ACCESS_KEY_ENV, "")
        self._session = session or requests.Session()

    @property
    def enabled(self) -> bool:
        return bool(self._access_key)

    def fetch_photo_url(self, query: str) -> str | None:
        """Return the regular-size image URL for `query`, or None."""
        if not self.enabled:
            logger.warning("Stock photo fallback disabled: {} not configured", ACCESS_KEY_ENV)
            return None
        q = (query or "").strip()
        if not q:
            return None
        try:
            resp = self._session.get(
                self._endpoint,
                params={"query": q, "client_id": self._access_key},
                timeout=self._timeout,
            )
            resp.raise_for_status()
            payload = resp.json()
        except requests.RequestException as ex:
            logger.error("Stock photo request failed for '{}': {}", q, ex)
            return None
        except ValueError as ex:
            logger.error("Stock photo decode failed for '{}': {}", q, ex)
            return None

        # /photos/random returns a list when `count` is passed
        if isinstance(payload, list):
            payload = payload[0] if payload else {}
        urls = payload.get("urls") if isinstance(payload, dict) else None
        url = urls.get("regular") if isinstance(urls, dict) else None
        if not isinstance(url, str) or not url:
            logger.error("Stock photo payload for '{}' has no urls.regular", q)
            return None
        return url

    def fetch_photo(self, query: str) -> bytes | None:
        """Return image bytes for `query`, or None."""
        url = self.fetch_photo_url(query)
        if url is None:
            return None
        try:
            resp = self._session.get(url, timeout=self._timeout)
            resp.raise_for_status()
        except requests.RequestException as ex:
            logger.error("Stock photo download failed ({}): {}", url, ex)
            return None
        data = resp.content
        if not data:
            return None
        logger.info("Fetched stock photo for '{}' ({} bytes)", query, len(data))
        return data
