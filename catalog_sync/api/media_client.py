"""
Async HTTP client for the media object store: cheap HEAD freshness probes and
full payload downloads with retry logic.
"""

import asyncio
import logging

import aiohttp

from catalog_sync.exceptions import MediaDownloadFailed, MediaProbeFailed
from catalog_sync.models.media import DownloadedMedia
from catalog_sync.utils.circuit_breaker import CircuitBreaker, CircuitBreakerError

log = logging.getLogger(__name__)


class MediaClient:
    """
    Probes and downloads media files over a pooled aiohttp session.

    Any HTTP response, including 4xx/5xx, proves the CDN is reachable; only
    connection errors and timeouts count towards the circuit breaker, which
    lets an offline device skip the rest of a sync pass quickly.
    """

    def __init__(
        self,
        concurrency: int = 5,
        timeout: float = 30.0,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        session: aiohttp.ClientSession | None = None,
    ):
        """
        Args:
            concurrency: Number of sync workers, used to size the connection pool.
            timeout: Socket read timeout in seconds.
            max_attempts: Download attempts per URL for transient failures.
            base_delay: Initial backoff delay between attempts, doubled each time.
            session: An existing session to use instead of creating one.
        """
        self.concurrency = concurrency
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._session = session
        self._owns_session = session is None
        self._breaker = CircuitBreaker(
            "Media CDN",
            failure_threshold=max(5, concurrency * 2),
            ignored=(aiohttp.ClientResponseError,),
        )

    async def _get_session(self) -> aiohttp.ClientSession:
        """Ensures an active aiohttp session sized for the worker pool."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=self.concurrency * 2,
                limit_per_host=self.concurrency,
                ttl_dns_cache=600,  # 10 minutes
                keepalive_timeout=30,
                enable_cleanup_closed=True,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=aiohttp.ClientTimeout(
                    total=None, sock_connect=15, sock_read=self.timeout
                ),
            )
            self._owns_session = True
            log.debug(f"Created media session with limit_per_host={self.concurrency}")
        return self._session

    async def close(self) -> None:
        """Closes the session if this client created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
            log.debug("Media session closed.")

    async def __aenter__(self) -> "MediaClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    async def probe_freshness(self, url: str) -> str | None:
        """Issues a HEAD request and returns the Last-Modified header, if any."""
        try:
            async with self._breaker:
                session = await self._get_session()
                async with session.head(url, allow_redirects=True) as response:
                    response.raise_for_status()
                    return response.headers.get("Last-Modified")
        except CircuitBreakerError as e:
            raise MediaProbeFailed(str(e)) from e
        except aiohttp.ClientResponseError as e:
            raise MediaProbeFailed(f"HEAD {url} returned {e.status}") from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise MediaProbeFailed(f"HEAD {url} failed: {e}") from e

    async def download_payload(self, url: str) -> DownloadedMedia:
        """
        Downloads the full payload. Server errors and connection problems are
        retried with exponential backoff; 4xx responses are not.
        """
        last_exception: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                async with self._breaker:
                    session = await self._get_session()
                    async with session.get(url, allow_redirects=True) as response:
                        response.raise_for_status()
                        content = await response.read()
                        return DownloadedMedia(
                            content=content,
                            content_type=response.content_type,
                            token=response.headers.get("Last-Modified"),
                        )
            except CircuitBreakerError as e:
                raise MediaDownloadFailed(str(e)) from e
            except aiohttp.ClientResponseError as e:
                if e.status < 500:
                    raise MediaDownloadFailed(f"GET {url} returned {e.status}") from e
                last_exception = e
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_exception = e

            log.debug(
                f"Download attempt {attempt}/{self.max_attempts} for '{url}' failed:"
                f" {last_exception}."
            )
            if attempt < self.max_attempts:
                await asyncio.sleep(self.base_delay * (2 ** (attempt - 1)))

        raise MediaDownloadFailed(
            f"GET {url} failed after {self.max_attempts} attempts: {last_exception}"
        ) from last_exception
