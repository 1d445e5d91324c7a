"""
Per-kind handlers that sync a classified node.

A handler either submits child tasks back into the scheduler or performs a
terminal write (file, video, forum post).
"""

import logging
from pathlib import Path
from typing import Awaitable, Callable, Dict, List

from ..storage.filesystem import FileSink
from ..utils.config import SyncConfig
from .errors import IliasError
from .fetcher import IliasFetcher
from .objects import ContentNode, NodeKind, ReferenceDescriptor, sanitize_name
from .parser import (
    extract_player_json,
    extract_video_source,
    find_cmd_node,
    find_full_thread_list_link,
    find_next_thread_page,
    has_forum_pagination,
    is_join_prompt,
    parse_container_items,
    parse_content_tree,
    parse_posts,
    parse_thread_rows,
    parse_video_rows,
)
from .scheduler import CrawlScheduler, CrawlTask


class ContentHandlers:
    """Dispatches crawl tasks to the handler of their node kind."""

    def __init__(self, fetcher: IliasFetcher, sink: FileSink,
                 scheduler: CrawlScheduler, config: SyncConfig):
        self.fetcher = fetcher
        self.sink = sink
        self.scheduler = scheduler
        self.config = config
        self.output = Path(config.output)
        self.logger = logging.getLogger(__name__)

        self._handlers: Dict[NodeKind, Callable[[Path, ContentNode], Awaitable[None]]] = {
            NodeKind.COURSE: self.sync_course,
            NodeKind.FOLDER: self.sync_folder,
            NodeKind.FILE: self.sync_file,
            NodeKind.PLUGIN_DISPATCH: self.sync_video_list,
            NodeKind.VIDEO: self.sync_video,
            NodeKind.FORUM: self.sync_forum,
            NodeKind.THREAD: self.sync_thread,
        }

    async def process(self, task: CrawlTask):
        """Sync one node. Entry point for the scheduler workers."""
        node = task.node
        self.logger.debug(
            f"Syncing {node.kind.label} {self._relative(task.path)}.. {node.url.url}"
        )
        handler = self._handlers.get(node.kind)
        if handler is None:
            self.logger.debug(f"Ignoring {node}")
            return
        await handler(task.path, node)

    def _relative(self, path: Path) -> str:
        try:
            return str(path.relative_to(self.output))
        except ValueError:
            return str(path)

    def _submit_children(self, path: Path, items: List[ContentNode]):
        for item in items:
            self.scheduler.submit(CrawlTask(path / item.path_name, item))

    def _skip_existing(self, path: Path) -> bool:
        if not self.config.force and self.sink.exists(path):
            self.logger.debug(f"Skipping download, file exists already: {path}")
            return True
        return False

    async def _get_items(self, url: ReferenceDescriptor) -> List[ContentNode]:
        return parse_container_items(await self.fetcher.get_html(url.url))

    async def _get_content_tree(self, ref_id: str, cmd_node: str) -> List[ContentNode]:
        # sub-folders are missing from this listing even though the browser shows them
        url = (
            f"ilias.php?ref_id={ref_id}&cmdClass=ilobjcoursegui&cmd=showRepTree"
            f"&cmdNode={cmd_node}&baseClass=ilRepositoryGUI&cmdMode=asynch"
            f"&exp_cmd=getNodeAsync&node_id=exp_node_rep_exp_{ref_id}"
            f"&exp_cont=il_expl2_jstree_cont_rep_exp&searchterm="
        )
        self.logger.debug(f"Loading {url}..")
        return parse_content_tree(await self.fetcher.get_html_fragment(url))

    async def sync_course(self, path: Path, node: ContentNode):
        self.sink.create_dir(path)
        if not self.config.content_tree:
            self._submit_children(path, await self._get_items(node.url))
            return

        html = await self.fetcher.get_text(node.url.url)
        try:
            items = await self._get_content_tree(node.url.ref_id, find_cmd_node(html))
        except IliasError as e:
            # some folders only show up in the content tree
            if is_join_prompt(html):
                # not a member of this course
                return
            self.logger.warning(
                f"{node.name!r} falling back to incomplete course content extractor! {e}"
            )
            items = await self._get_items(node.url)
        self._submit_children(path, items)

    async def sync_folder(self, path: Path, node: ContentNode):
        self.sink.create_dir(path)
        self._submit_children(path, await self._get_items(node.url))

    async def sync_file(self, path: Path, node: ContentNode):
        if self.config.skip_files or self._skip_existing(path):
            return
        async with self.fetcher.stream(node.url.url) as response:
            self.logger.info(f"Writing to {path}..")
            written = await self.sink.write_stream(path, self.fetcher.iter_bytes(response))
        self.scheduler.stats.files_downloaded += 1
        self.scheduler.stats.bytes_written += written

    async def sync_video_list(self, path: Path, node: ContentNode):
        if self.config.no_videos:
            return
        self.sink.create_dir(path)
        list_url = (
            f"ilias.php?ref_id={node.url.ref_id}&cmdClass=xocteventgui&cmdNode=n7:mz:14p"
            f"&baseClass=ilObjPluginDispatchGUI&lang=de&limit=20"
            f"&cmd=asyncGetTableGUI&cmdMode=asynch"
        )
        soup = await self.fetcher.get_html_fragment(list_url)
        for title, href in parse_video_rows(soup):
            name = f"{title}.mp4"
            self.logger.debug(f"Found video: {title}")
            video = ContentNode.video(ReferenceDescriptor.raw(href), name)
            self.scheduler.submit(CrawlTask(path / sanitize_name(name), video))

    async def sync_video(self, path: Path, node: ContentNode):
        if self.config.no_videos or self._skip_existing(path):
            return
        html = await self.fetcher.get_text(node.url.url)
        if self.config.verbose > 1:
            self.logger.debug(html)
            self.logger.debug(extract_player_json(html))
        source = extract_video_source(html)
        async with self.fetcher.stream(source) as response:
            self.logger.info(f"Saving video to {path}")
            written = await self.sink.write_stream(path, self.fetcher.iter_bytes(response))
        self.scheduler.stats.videos_downloaded += 1
        self.scheduler.stats.bytes_written += written

    async def sync_forum(self, path: Path, node: ContentNode):
        if not self.config.forum:
            return
        self.sink.create_dir(path)
        url = (
            f"ilias.php?ref_id={node.url.ref_id}&cmd=showThreads"
            f"&cmdClass=ilrepositorygui&cmdNode=uf&baseClass=ilrepositorygui"
        )
        overview = await self.fetcher.get_html(url)
        soup = await self.fetcher.get_html(find_full_thread_list_link(overview))

        for row in parse_thread_rows(soup):
            thread_path = path / sanitize_name(row.dir_name)
            saved_posts = self.sink.count_entries(thread_path)
            if row.available_posts <= saved_posts and not self.config.force:
                continue
            self.logger.info(f"New posts in {thread_path}..")
            self.scheduler.submit(CrawlTask(thread_path, row.node))

        if has_forum_pagination(soup):
            self.logger.warning(f"Ignoring older threads (801st+) in {path}..")

    async def sync_thread(self, path: Path, node: ContentNode):
        if not self.config.forum:
            return
        self.sink.create_dir(path)
        soup = await self.fetcher.get_html(node.url.url)
        for post in parse_posts(soup):
            post_path = path / sanitize_name(post.file_name)
            self.logger.debug(f"Writing to {post_path}..")
            self.scheduler.stats.bytes_written += self.sink.write_text(post_path, post.body)
            self.scheduler.stats.posts_written += 1

        next_page = find_next_thread_page(soup)
        if next_page is not None:
            # later pages go into the same directory
            self.scheduler.submit(CrawlTask(
                path, ContentNode(NodeKind.THREAD, node.name, ReferenceDescriptor.from_href(next_page))
            ))
