"""
HTTP client abstraction for the ratecast load generator.

Every request task talks to the target through an `HttpClient`. The default
implementation, `PooledHttpClient`, keeps a single `requests.Session` whose
connection pool is shared by all worker threads for the whole run.

Example:
    >>> from ratecast._http import PooledHttpClient
    >>> with PooledHttpClient(pool_maxsize=50) as client:
    ...     response = client.get("http://localhost:8080/", data=" ", timeout=5.0)
    ...     print(response.status_code)
"""

import logging
from abc import ABC, abstractmethod
from typing import Self, override

import requests
from requests.adapters import HTTPAdapter

logger = logging.getLogger(__name__)

# Body sent with every load request. Some servers reject GETs with an empty
# body under keep-alive, so a single space is sent.
REQUEST_BODY = " "


# =============================================================================
# Abstract Base Class
# =============================================================================


class HttpClient(ABC):
    """
    Abstract base class for HTTP clients.

    Implementations must be safe to share between worker threads: request
    tasks call `get()` concurrently without any external locking.

    Example:
        >>> class MyHttpClient(HttpClient):
        ...     def get(self, url, data=None, timeout=30.0):
        ...         return requests.get(url, data=data, timeout=timeout)
    """

    @abstractmethod
    def get(
        self,
        url: str,
        data: str | None = None,
        timeout: float = 30.0,
    ) -> requests.Response:
        """
        Execute a GET request and read the full response body.

        Args:
            url: The full URL to request.
            data: Raw request body.
            timeout: Request timeout in seconds.

        Returns:
            The HTTP response, with its body already consumed.

        Raises:
            requests.RequestException: If the HTTP request fails.
        """
        pass

    def close(self) -> None:
        """Release any pooled resources. No-op by default."""
        return None

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


# =============================================================================
# Pooled Implementation
# =============================================================================


class PooledHttpClient(HttpClient):
    """
    HTTP client backed by one `requests.Session` and its connection pool.

    Connections to the target are reused across requests (HTTP keep-alive).
    Transport errors are never retried at this level: each failed request
    surfaces as a `requests.RequestException` to the caller.

    Note:
        `requests` speaks HTTP/1.1 only, so the pool holds keep-alive
        HTTP/1.1 connections rather than cleartext HTTP/2 streams.

    Args:
        pool_maxsize: Maximum number of connections kept in the pool.
        session: Optional pre-built session (mainly for testing).
    """

    def __init__(
        self,
        pool_maxsize: int = 100,
        session: requests.Session | None = None,
    ):
        assert pool_maxsize is not None, "pool_maxsize cannot be None."
        assert pool_maxsize > 0, "pool_maxsize must be greater than 0."

        self.pool_maxsize = pool_maxsize
        self._session = session or requests.Session()

        adapter = HTTPAdapter(
            pool_connections=1,
            pool_maxsize=pool_maxsize,
            max_retries=0,
        )
        self._session.mount("http://", adapter)
        self._session.mount("https://", adapter)

    @override
    def get(
        self,
        url: str,
        data: str | None = None,
        timeout: float = 30.0,
    ) -> requests.Response:
        """
        Execute a GET request through the shared pool.

        The body is downloaded before returning (non-streaming request),
        so timing this call covers the complete round trip.

        Raises:
            AssertionError: If url is empty or timeout is invalid.
            requests.RequestException: If the HTTP request fails.
        """
        assert url, "URL cannot be empty."
        assert timeout is not None, "Timeout cannot be None."
        assert timeout > 0, "Timeout must be greater than 0."

        return self._session.get(url, data=data, timeout=timeout)

    @override
    def close(self) -> None:
        """Close the session and every pooled connection."""
        logger.debug(f"Closing HTTP connection pool (pool_maxsize={self.pool_maxsize})")
        self._session.close()
