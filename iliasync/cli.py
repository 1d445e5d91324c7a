"""
Command line interface of the ILIAS synchronizer.
"""

import asyncio
import argparse
import getpass
import logging
import os
import signal
import sys
from typing import Optional

from dotenv import load_dotenv

from . import __version__
from .crawler.errors import LoginError
from .crawler.syncer import IliasSyncer
from .utils.config import Config, ConfigError, load_config
from .utils.logger import setup_logging

EXIT_LOGIN_FAILED = 77


class SyncApp:
    """Main application class for the synchronizer."""

    def __init__(self):
        self.syncer: Optional[IliasSyncer] = None
        self.logger = logging.getLogger(__name__)
        self._shutdown_event: Optional[asyncio.Event] = None

    def setup_signal_handlers(self):
        """Setup signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, self._request_shutdown, signum)
            except NotImplementedError:
                # not supported on Windows event loops
                pass

    def _request_shutdown(self, signum: int):
        self.logger.info(f"Received signal {signum}, initiating shutdown...")
        self._shutdown_event.set()

    async def run(self, config: Config, username: str, password: str) -> int:
        """Log in and sync. Returns the process exit status."""
        self._shutdown_event = asyncio.Event()
        self.setup_signal_handlers()

        self.logger.info("=== ILIAS SYNC STARTING ===")
        self.logger.info(f"Output directory: {config.sync.output}")
        self.logger.info(f"Parallel jobs: {config.sync.jobs}")

        self.syncer = IliasSyncer(config)
        try:
            await self.syncer.initialize()
            try:
                await self.syncer.login(username, password)
            except LoginError as e:
                self.logger.error(f"Login failed: {e}", exc_info=True)
                return EXIT_LOGIN_FAILED

            sync_task = asyncio.create_task(self.syncer.sync())
            shutdown_task = asyncio.create_task(self._shutdown_event.wait())

            done, pending = await asyncio.wait(
                [sync_task, shutdown_task],
                return_when=asyncio.FIRST_COMPLETED
            )
            for task in pending:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

            if shutdown_task in done:
                self.logger.info("Shutdown requested, stopping sync...")
                await self.syncer.stop()
                return 1

            # re-raise errors of the desktop listing
            sync_task.result()

        except Exception as e:
            self.logger.error(f"Fatal error: {e}", exc_info=True)
            return 1

        finally:
            await self.syncer.close()
            self.logger.info("=== ILIAS SYNC FINISHED ===")

        return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="iliasync",
        description="Download the content of your ILIAS courses",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  iliasync -o ~/ilias                    # Sync files of all desktop courses
  iliasync -o ~/ilias -j 4 -t            # Four parallel jobs, include forums
  iliasync -o ~/ilias --content-tree -v  # Thorough (slow) course listing
  iliasync --config config.yaml          # Read settings from a YAML file

Credentials are read from ILIAS_USERNAME / ILIAS_PASSWORD (also from a
.env file) or prompted for.
        """
    )

    parser.add_argument('-s', '--skip-files', action='store_true', default=None,
                        help='Do not download files')
    parser.add_argument('-n', '--no-videos', action='store_true', default=None,
                        help='Do not download Opencast videos')
    parser.add_argument('-t', '--forum', action='store_true', default=None,
                        help='Download forum content')
    parser.add_argument('-f', dest='force', action='store_true', default=None,
                        help='Re-download already present files')
    parser.add_argument('--content-tree', action='store_true', default=None,
                        help='Use content tree (slow but thorough)')
    parser.add_argument('-v', dest='verbose', action='count', default=None,
                        help='Verbose logging (print objects downloaded)')
    parser.add_argument('-o', '--output',
                        help='Output directory')
    parser.add_argument('-j', '--jobs', type=int,
                        help='Parallel download jobs (default: 1)')
    parser.add_argument('--config',
                        help='Path to a YAML configuration file')
    parser.add_argument('--version', action='version',
                        version=f'iliasync {__version__}')
    return parser


def read_credentials() -> tuple:
    load_dotenv()
    username = os.environ.get('ILIAS_USERNAME') or input("Username: ")
    password = os.environ.get('ILIAS_PASSWORD') or getpass.getpass("Password: ")
    return username, password


def main(argv=None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    overrides = {
        'skip_files': args.skip_files,
        'no_videos': args.no_videos,
        'forum': args.forum,
        'force': args.force,
        'content_tree': args.content_tree,
        'verbose': args.verbose,
        'output': args.output,
        'jobs': args.jobs,
    }
    try:
        config = load_config(args.config, overrides)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    setup_logging(config.logging, config.sync.verbose)

    try:
        username, password = read_credentials()
    except (EOFError, KeyboardInterrupt):
        print("\nInterrupted by user")
        return 1

    app = SyncApp()
    try:
        return asyncio.run(app.run(config, username, password))
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 1
