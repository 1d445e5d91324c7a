"""
Authenticated page and file fetcher for ILIAS.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional
from urllib.parse import urlparse

import aiohttp
from aiohttp import ClientSession, ClientTimeout, ClientError, ClientResponse
from bs4 import BeautifulSoup

from .errors import FetchError, ServiceError


ERROR_BANNER = "div.alert-danger"


class IliasFetcher:
    """
    Fetches ILIAS pages and streams downloads over one shared session.

    The session (and its cookie jar) is set up by the login handshake and
    reused read-only by every crawl task.
    """

    def __init__(self, base_url: str, user_agent: str, request_timeout: int = 11):
        self.base_url = base_url
        self.host = urlparse(base_url).netloc
        self.user_agent = user_agent
        self.request_timeout = request_timeout

        self.logger = logging.getLogger(__name__)
        self.session: Optional[ClientSession] = None

        # Statistics
        self.stats = {
            'total_requests': 0,
            'failed_requests': 0,
            'total_bytes_downloaded': 0
        }

    async def __aenter__(self):
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def start(self):
        """Initialize the HTTP session."""
        if self.session is None:
            # downloads may take long, only bound connect and read stalls
            timeout = ClientTimeout(
                total=None,
                sock_connect=self.request_timeout,
                sock_read=self.request_timeout
            )
            self.session = aiohttp.ClientSession(
                timeout=timeout,
                headers={'User-Agent': self.user_agent},
                cookie_jar=aiohttp.CookieJar()
            )
            self.logger.debug("IliasFetcher session started")

    async def close(self):
        """Close the HTTP session."""
        if self.session:
            await self.session.close()
            self.session = None
            self.logger.debug("IliasFetcher session closed")

    def resolve(self, url: str) -> str:
        """Absolute URLs pass through, everything else is relative to the base URL."""
        if url.startswith("http") or url.startswith(self.host):
            return url
        return f"{self.base_url}{url}"

    @asynccontextmanager
    async def stream(self, url: str) -> AsyncIterator[ClientResponse]:
        """
        Open a GET request and yield the response for streaming.

        Raises:
            FetchError: on transport errors or an HTTP error status
        """
        url = self.resolve(url)
        self.logger.debug(f"Downloading {url}")
        self.stats['total_requests'] += 1
        try:
            async with self.session.get(url) as response:
                if response.status >= 400:
                    raise FetchError(f"HTTP {response.status} for {url}")
                yield response
        except (ClientError, asyncio.TimeoutError) as e:
            self.stats['failed_requests'] += 1
            raise FetchError(f"Request to {url} failed") from e

    async def iter_bytes(self, response: ClientResponse,
                         chunk_size: int = 64 * 1024) -> AsyncIterator[bytes]:
        """Iterate over the body of a streamed response."""
        try:
            async for chunk in response.content.iter_chunked(chunk_size):
                self.stats['total_bytes_downloaded'] += len(chunk)
                yield chunk
        except (ClientError, asyncio.TimeoutError) as e:
            self.stats['failed_requests'] += 1
            raise FetchError(f"Download of {response.url} interrupted") from e

    async def get_text(self, url: str) -> str:
        """Fetch a page and return its decoded body."""
        start_time = time.time()
        async with self.stream(url) as response:
            try:
                text = await response.text(errors='replace')
            except (ClientError, asyncio.TimeoutError) as e:
                self.stats['failed_requests'] += 1
                raise FetchError(f"Reading {response.url} failed") from e
        self.stats['total_bytes_downloaded'] += len(text)
        self.logger.debug(f"Fetched {url} ({len(text)} chars) in {time.time() - start_time:.2f}s")
        return text

    async def get_html(self, url: str) -> BeautifulSoup:
        """Fetch and parse a full page, failing on ILIAS error banners."""
        return self._check_banner(soupify(await self.get_text(url)), url)

    async def get_html_fragment(self, url: str) -> BeautifulSoup:
        """Fetch an asynchronously loaded page fragment (tables, trees)."""
        return self._check_banner(soupify(await self.get_text(url), fragment=True), url)

    def _check_banner(self, soup: BeautifulSoup, url: str) -> BeautifulSoup:
        banner = soup.select_one(ERROR_BANNER)
        if banner is not None:
            raise ServiceError(f"ILIAS error on {url}: {banner.get_text(' ', strip=True)}")
        return soup

    async def set_repository_view(self, mode: str):
        """Switch the repository frameset between 'tree' and 'flat' mode."""
        url = (f"{self.base_url}ilias.php?baseClass=ilRepositoryGUI"
               f"&cmd=frameset&set_mode={mode}&ref_id=1")
        try:
            async with self.stream(url):
                pass
        except FetchError as e:
            self.logger.warning(f"Could not switch repository view to {mode}: {e}")

    def get_stats(self) -> Dict[str, int]:
        """Get fetcher statistics."""
        return self.stats.copy()


def soupify(html: str, fragment: bool = False) -> BeautifulSoup:
    # lxml drops table rows that arrive without their table
    return BeautifulSoup(html, 'html.parser' if fragment else 'lxml')
