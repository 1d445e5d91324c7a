"""
Top-level driver that wires the sync components together.
"""

import logging
from pathlib import Path

from ..storage.filesystem import FileSink
from ..utils.config import Config
from .auth import ShibbolethLogin
from .fetcher import IliasFetcher
from .handlers import ContentHandlers
from .parser import parse_container_items
from .scheduler import CrawlScheduler, CrawlTask

DESKTOP_URL = "ilias.php?baseClass=ilPersonalDesktopGUI&cmd=jumpToSelectedItems"


class IliasSyncer:
    """
    Mirrors the courses on the personal desktop into the output directory.
    """

    def __init__(self, config: Config):
        self.config = config
        self.output = Path(config.sync.output)
        self.logger = logging.getLogger(__name__)

        self.fetcher = IliasFetcher(
            base_url=config.ilias.base_url,
            user_agent=config.ilias.user_agent,
            request_timeout=config.ilias.request_timeout
        )
        self.sink = FileSink()
        self.scheduler = CrawlScheduler(config.sync.jobs)
        self.handlers = ContentHandlers(self.fetcher, self.sink, self.scheduler, config.sync)

    async def initialize(self):
        """Open the HTTP session and make sure the output directory exists."""
        await self.fetcher.start()
        self.output.mkdir(parents=True, exist_ok=True)

    async def login(self, username: str, password: str):
        """Authenticate the shared session. Raises LoginError on failure."""
        await ShibbolethLogin(self.fetcher, self.config.ilias.idp_url).login(username, password)

    async def sync(self):
        """Sync everything on the personal desktop and wait until done."""
        try:
            if self.config.sync.content_tree:
                # the content tree is only served while the tree view is active
                await self.fetcher.set_repository_view("tree")

            desktop = await self.fetcher.get_html(DESKTOP_URL)
            items = parse_container_items(desktop)
            self.logger.info(f"Found {len(items)} items on the personal desktop")

            self.scheduler.start(self.handlers.process)
            for item in items:
                self.scheduler.submit(CrawlTask(self.output / item.path_name, item))
            await self.scheduler.await_completion()

            self._log_final_stats()
        finally:
            await self.scheduler.close()
            if self.config.sync.content_tree:
                # restore fast page loading times
                await self.fetcher.set_repository_view("flat")

    def _log_final_stats(self):
        stats = self.scheduler.get_stats()
        self.logger.info("=== SYNC COMPLETED ===")
        self.logger.info(f"Tasks processed: {stats['tasks_processed']}")
        self.logger.info(f"Files downloaded: {stats['files_downloaded']}")
        self.logger.info(f"Videos downloaded: {stats['videos_downloaded']}")
        self.logger.info(f"Forum posts written: {stats['posts_written']}")
        self.logger.info(f"Data written: {stats['bytes_written'] / 1024 / 1024:.1f} MB")
        self.logger.info(f"Errors: {stats['errors']}")
        self.logger.info(f"Total time: {stats['elapsed_time']:.2f} seconds")
        self.logger.debug(f"Fetcher stats: {self.fetcher.get_stats()}")

    async def stop(self):
        """Stop syncing; in-flight tasks are cancelled."""
        self.logger.info("Stopping sync...")
        await self.scheduler.close()

    async def close(self):
        """Close all connections and cleanup resources."""
        await self.scheduler.close()
        await self.fetcher.close()

