"""
In-memory stand-ins for the network side of the sync engine.
"""

from contextlib import asynccontextmanager

from iliasync.crawler.errors import FetchError
from iliasync.crawler.fetcher import IliasFetcher
from iliasync.crawler.scheduler import CrawlScheduler

BASE_URL = "https://ilias.example.edu/"


class FakeResponse:
    def __init__(self, url: str, body: bytes):
        self.url = url
        self.body = body


class FakeFetcher(IliasFetcher):
    """Serves pages and downloads from dictionaries keyed by resolved URL."""

    def __init__(self, pages=None, downloads=None):
        super().__init__(BASE_URL, "iliasync-test")
        self.pages = pages or {}
        self.downloads = downloads or {}
        self.requested = []

    async def get_text(self, url: str) -> str:
        url = self.resolve(url)
        self.requested.append(url)
        if url not in self.pages:
            raise FetchError(f"HTTP 404 for {url}")
        return self.pages[url]

    @asynccontextmanager
    async def stream(self, url: str):
        url = self.resolve(url)
        self.requested.append(url)
        if url not in self.downloads:
            raise FetchError(f"HTTP 404 for {url}")
        yield FakeResponse(url, self.downloads[url])

    async def iter_bytes(self, response, chunk_size: int = 4):
        for i in range(0, len(response.body), chunk_size):
            yield response.body[i:i + chunk_size]


def drain(scheduler: CrawlScheduler):
    """Pop every task submitted so far without running it."""
    tasks = []
    while not scheduler.queue.empty():
        tasks.append(scheduler.queue.get_nowait())
    return tasks
