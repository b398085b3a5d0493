import logging
import os
import threading
import time
from typing import Any, Callable, Optional, Tuple

import requests

from emushim.core.errors import DownloadCancelledError
from emushim.core.models import Settings

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int], None]

# Streaming read size for downloads (80 KB)
DOWNLOAD_CHUNK_SIZE = 81920


class NetworkManager:
    """Handles all HTTP traffic for the shim installer.

    The session is injected so that callers (and tests) decide how requests
    are actually sent.
    """

    def __init__(self, session: Optional[requests.Session] = None, settings: Optional[Settings] = None,
                 retry_delay: float = 1.0):
        self.settings = settings or Settings()
        self.session = session or requests.Session()
        self.retry_delay = retry_delay

    def _headers(self) -> dict:
        return {
            "User-Agent": self.settings.user_agent,
            "Accept": "application/vnd.github+json",
        }

    def fetch_json(self, url: str, operation_name: str = "request") -> Any:
        """
        Fetches and parses a JSON document, retrying transient failures.

        Connection errors, timeouts and 5xx responses are retried with
        exponential backoff; 4xx responses and malformed JSON are raised
        immediately.

        Args:
            url: The URL to fetch.
            operation_name: Human-readable name used in log messages.

        Returns:
            The decoded JSON value.
        """
        max_retries = self.settings.max_retries
        for attempt in range(max_retries + 1):
            try:
                response = self.session.get(url, headers=self._headers(), timeout=self.settings.request_timeout)
                response.raise_for_status()
                return response.json()
            except requests.HTTPError as e:
                status = e.response.status_code if e.response is not None else None
                if status is not None and status < 500:
                    raise
                if attempt >= max_retries:
                    raise
                self._backoff(operation_name, attempt, e)
            except (requests.ConnectionError, requests.Timeout) as e:
                if attempt >= max_retries:
                    raise
                self._backoff(operation_name, attempt, e)

    def _backoff(self, operation_name: str, attempt: int, error: Exception):
        delay = self.retry_delay * (2 ** attempt)
        logger.debug(
            f"{operation_name} failed (attempt {attempt + 1}/{self.settings.max_retries + 1}): {error}. "
            f"Retrying in {delay:.1f}s..."
        )
        time.sleep(delay)

    def download_file(
        self,
        url: str,
        destination: str,
        progress_callback: Optional[ProgressCallback] = None,
        progress_range: Tuple[int, int] = (10, 70),
        cancel_event: Optional[threading.Event] = None,
    ) -> str:
        """
        Streams a remote file to disk.

        Args:
            url: The URL to download.
            destination: The local path to write to.
            progress_callback: Called with (message, percentage). The percentage is
                mapped into progress_range; nothing is reported mid-transfer when
                the server does not send a Content-Length.
            progress_range: The (start, end) band of overall progress this download occupies.
            cancel_event: When set, the transfer stops and the partial file is removed.

        Returns:
            The destination path.
        """
        start, end = progress_range
        logger.info(f"Downloading {url} to {destination}")
        try:
            with self.session.get(url, headers={"User-Agent": self.settings.user_agent}, stream=True,
                                  timeout=self.settings.request_timeout) as response:
                response.raise_for_status()
                total_size = int(response.headers.get("content-length", 0) or 0)
                bytes_downloaded = 0
                with open(destination, "wb") as f:
                    for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                        if cancel_event is not None and cancel_event.is_set():
                            raise DownloadCancelledError(f"Download of {url} was cancelled")
                        if not chunk:
                            continue
                        f.write(chunk)
                        bytes_downloaded += len(chunk)
                        if progress_callback and total_size > 0:
                            percent = int(start + bytes_downloaded / total_size * (end - start))
                            progress_callback(
                                f"Downloading: {bytes_downloaded // (1024 * 1024)}MB / {total_size // (1024 * 1024)}MB",
                                percent,
                            )
        except BaseException:
            if os.path.exists(destination):
                try:
                    os.remove(destination)
                except OSError as cleanup_error:
                    logger.debug(f"Could not remove partial download {destination}: {cleanup_error}")
            raise

        logger.info(f"Download complete: {bytes_downloaded} bytes")
        return destination
