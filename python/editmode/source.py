"""
Loading the original page source.

The fetch runs on a background worker and is never awaited by the
session. Until it lands (or if it fails) the buffer reads as None and
the save policy treats that as "no source".
"""

from concurrent import futures
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Optional, Union
from urllib.parse import urlsplit, urlunsplit
from urllib.request import url2pathname

import requests
import structlog

logger = structlog.get_logger(__name__)

FETCH_HEADERS = {
    "Cache-Control": "no-store",
    "User-Agent": "Mozilla/5.0 (compatible; editmode source fetch)",
}


def fetch_source(location: Union[str, Path], timeout: Optional[float] = None) -> str:
    """
    Reads the raw source of a page.

    Args:
        location: A filesystem path, a file:// URL, or an http(s) URL.
        timeout: Passed to requests for http(s) URLs. None waits forever.

    Raises:
        FileNotFoundError: If a local file does not exist.
        requests.RequestException: If the page cannot be fetched.
    """
    if isinstance(location, Path):
        return _read_local(location)

    parts = urlsplit(location)
    scheme = parts.scheme.lower()

    if scheme == "file":
        # Query and fragment are page-state flags, not part of the file
        return _read_local(Path(url2pathname(parts.path)))

    if scheme in ("http", "https"):
        url = urlunsplit((parts.scheme, parts.netloc, parts.path, parts.query, ""))
        try:
            response = requests.get(url, headers=FETCH_HEADERS, timeout=timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise requests.RequestException(f"Error fetching source {url}: {str(e)}") from e
        return response.text

    return _read_local(Path(location))


def _read_local(path: Path) -> str:
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


class SourceBuffer:
    """
    The original, unmodified page source. Immutable once resolved.

    A failed fetch is permanent for the lifetime of the buffer; there is
    no retry.
    """

    def __init__(self, text: Optional[str] = None):
        self._text = text
        self._future: Optional[Future] = None

    @classmethod
    def from_text(cls, text: str) -> "SourceBuffer":
        return cls(text)

    @classmethod
    def load(cls, location: Union[str, Path], executor: Optional[ThreadPoolExecutor] = None) -> "SourceBuffer":
        """Starts fetching location in the background and returns immediately."""
        buffer = cls()
        owned = executor is None
        pool = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="editmode-source")
        buffer._future = pool.submit(fetch_source, location)
        buffer._future.add_done_callback(_log_fetch_failure)
        if owned:
            pool.shutdown(wait=False)
        return buffer

    @property
    def value(self) -> Optional[str]:
        """The source text if it has landed, else None. Never blocks."""
        if self._text is None and self._future is not None and self._future.done():
            if self._future.exception() is None:
                self._text = self._future.result()
        return self._text

    @property
    def pending(self) -> bool:
        return self._future is not None and not self._future.done()

    @property
    def failed(self) -> bool:
        return self._future is not None and self._future.done() and self._future.exception() is not None

    def wait(self, timeout: Optional[float] = None) -> Optional[str]:
        """Blocks until the fetch settles or timeout passes. Returns value afterwards."""
        if self._future is not None:
            futures.wait([self._future], timeout=timeout)
        return self.value


def _log_fetch_failure(future: Future):
    error = future.exception()
    if error is not None:
        logger.warning(f"Could not load original source: {error}")
