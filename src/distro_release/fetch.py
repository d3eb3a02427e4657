"""Remote text fetching for upstream version scraping.

Upstream files (go.mod, scripts/version.sh, Dockerfile, image lists) are
read straight from raw.githubusercontent.com. A failed fetch is not an
error for the caller: it only means the version is unavailable, so the
fetcher logs at debug level and returns None.

Design notes:
- One GET per call, no retries and no caching
- Uses a Protocol so resolvers can be driven by MockTextFetcher in tests
"""

from __future__ import annotations

from typing import Protocol

import httpx

from distro_release.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 15.0


class TextFetcherProtocol(Protocol):
    """Anything that can turn a URL into text, or None when unavailable."""

    def fetch(self, url: str) -> str | None:
        ...


class RemoteTextFetcher:
    """Fetches UTF-8 text over HTTP with httpx.

    Usage:
        with RemoteTextFetcher(timeout=10) as fetcher:
            text = fetcher.fetch("https://raw.githubusercontent.com/k3s-io/k3s/master/go.mod")
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.Client | None = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            timeout: Per-request timeout in seconds.
            client: Pre-built httpx client (e.g. with a MockTransport).
                    Created on demand if not provided.
        """
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=True)

    def fetch(self, url: str) -> str | None:
        """GET ``url`` and return the body on HTTP 200, otherwise None."""
        try:
            resp = self._client.get(url)
        except httpx.HTTPError as exc:
            logger.debug("fetch_failed", url=url, error=str(exc))
            return None

        if resp.status_code != httpx.codes.OK:
            logger.debug("fetch_status_error", url=url, status_code=resp.status_code)
            return None

        return resp.text

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> RemoteTextFetcher:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class MockTextFetcher:
    """Serves predefined documents by URL.

    Unknown URLs behave like a 404 and return None. Every requested URL is
    recorded in ``requested`` so tests can assert which refs were read.

    Usage:
        fetcher = MockTextFetcher({"https://example.test/go.mod": "module x\n"})
    """

    def __init__(self, documents: dict[str, str] | None = None) -> None:
        self._documents = documents or {}
        self.requested: list[str] = []

    def __enter__(self) -> MockTextFetcher:
        return self

    def __exit__(self, *exc_info: object) -> None:
        pass

    def fetch(self, url: str) -> str | None:
        self.requested.append(url)
        return self._documents.get(url)
