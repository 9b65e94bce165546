"""HTTP client for the layout hosting service."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Callable, Optional
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter

from layoutuploader.config.loader import DEFAULT_USER_AGENT
from layoutuploader.core.errors import (
    CancelledByUser,
    FinalizeError,
    UploadFatalError,
    UploadRetryableError,
)
from layoutuploader.core.models import PyramidMetadata
from layoutuploader.logging import get_logger
from layoutuploader.tiling.encoder import CONTENT_TYPE, FILE_NAME

if TYPE_CHECKING:  # pragma: no cover - typing only
    from layoutuploader.pipeline.state import CancellationToken

LOGGER = get_logger(__name__)

UPLOAD_PATH = "LayoutUtil/UploadTile"
FINALIZE_PATH = "api/Location/LocationLayout/UpdatePath"
RETRYABLE_STATUS_CODES = frozenset({408, 429})


def is_retryable_status(status_code: int) -> bool:
    return status_code >= 500 or status_code in RETRYABLE_STATUS_CODES


class UploadClient:
    """Upload encoded tiles and register the finished layout.

    One client (and its pooled :class:`requests.Session`) is shared by all
    upload workers of a run.
    """

    def __init__(
        self,
        server_address: str,
        layout_key: str,
        secret: str,
        *,
        session: Optional[requests.Session] = None,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        timeout: float = 30.0,
        user_agent: str = DEFAULT_USER_AGENT,
        pool_size: int = 10,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._server = server_address.rstrip("/")
        self._layout_key = layout_key
        self._secret = secret
        self._max_attempts = max_attempts
        self._backoff = backoff_seconds
        self._timeout = timeout
        self._headers = {"User-Agent": user_agent}
        self._sleep = sleep
        self._owns_session = session is None
        if session is None:
            session = requests.Session()
            adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size)
            session.mount("http://", adapter)
            session.mount("https://", adapter)
        self._session = session

    def __enter__(self) -> "UploadClient":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_session:
            self._session.close()

    def tile_url(self, layout_path: str, tile_key: str) -> str:
        return "/".join(
            [
                self._server,
                UPLOAD_PATH,
                quote(self._layout_key, safe=""),
                quote(layout_path, safe=""),
                tile_key,
            ]
        )

    def upload_tile(
        self,
        layout_path: str,
        tile_key: str,
        payload: bytes,
        *,
        cancel_token: Optional["CancellationToken"] = None,
    ) -> None:
        """Upload one encoded tile, retrying transient failures.

        Raises :class:`UploadFatalError` on a non-retryable response or once
        every attempt failed, and :class:`CancelledByUser` if the run is
        cancelled while waiting to retry.
        """

        url = self.tile_url(layout_path, tile_key)
        last_error: Optional[UploadRetryableError] = None
        for attempt in range(1, self._max_attempts + 1):
            try:
                self._post_tile(url, payload)
                return
            except UploadRetryableError as exc:
                last_error = exc
                LOGGER.warning(
                    "tile upload failed on attempt %d/%d: %s",
                    attempt,
                    self._max_attempts,
                    exc,
                    extra={"tile": tile_key, "status_code": exc.status_code},
                )
            if attempt < self._max_attempts:
                self._backoff_wait(attempt, cancel_token)
        raise UploadFatalError(
            f"Upload of tile {tile_key} failed after {self._max_attempts} attempts: {last_error}",
            status_code=last_error.status_code if last_error else None,
        ) from last_error

    def _post_tile(self, url: str, payload: bytes) -> None:
        files = {"file": (FILE_NAME, payload, CONTENT_TYPE)}
        try:
            response = self._session.post(
                url,
                params={"__sc__": self._secret},
                files=files,
                headers=self._headers,
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise UploadRetryableError(f"network error: {exc}") from exc
        status = response.status_code
        if status < 400:
            return
        if is_retryable_status(status):
            raise UploadRetryableError(f"server responded {status}", status_code=status)
        raise UploadFatalError(
            f"Upload rejected with status {status}: {_short_text(response)}",
            status_code=status,
        )

    def _backoff_wait(self, attempt: int, cancel_token: Optional["CancellationToken"]) -> None:
        delay = self._backoff * attempt
        if cancel_token is None:
            self._sleep(delay)
            return
        if cancel_token.wait(delay):
            raise CancelledByUser("Processing cancelled")

    def finalize(self, layout_path: str, metadata: PyramidMetadata) -> None:
        """Register the uploaded pyramid as a layout. Not retried."""

        url = f"{self._server}/{FINALIZE_PATH}"
        params = {
            "LayoutKey": self._layout_key,
            "LayoutPath": layout_path,
            "apikey": self._secret,
            "MaxZoom": str(metadata.max_zoom),
        }
        LOGGER.info(
            "registering layout",
            extra={"layout_path": layout_path, "max_zoom": metadata.max_zoom, "levels": metadata.level_count},
        )
        try:
            response = self._session.post(
                url,
                params=params,
                json=metadata.to_dict(),
                headers=self._headers,
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise FinalizeError(f"Failed to finalize upload: {exc}") from exc
        if response.status_code >= 400:
            raise FinalizeError(
                f"Failed to finalize upload: server responded {response.status_code} {_short_text(response)}"
            )


def _short_text(response: requests.Response, limit: int = 200) -> str:
    try:
        text = response.text.strip()
    except (AttributeError, ValueError):
        return ""
    return text[:limit]
