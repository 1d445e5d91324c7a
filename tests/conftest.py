from pathlib import Path

import pytest

from iliasync.crawler.handlers import ContentHandlers
from iliasync.crawler.scheduler import CrawlScheduler
from iliasync.storage.filesystem import FileSink
from iliasync.utils.config import SyncConfig

from .helpers import FakeFetcher


@pytest.fixture
def make_handlers(tmp_path: Path):
    """Build handlers around a fake fetcher; flags go into the sync config."""

    def factory(pages=None, downloads=None, **flags):
        fetcher = FakeFetcher(pages, downloads)
        scheduler = CrawlScheduler(flags.pop('jobs', 2))
        config = SyncConfig(output=str(tmp_path), **flags)
        handlers = ContentHandlers(fetcher, FileSink(), scheduler, config)
        return handlers, fetcher, scheduler

    return factory
