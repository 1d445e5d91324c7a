"""
Parsers for the ILIAS pages the handlers work with: repository listings,
the course content tree, Opencast video tables and player pages, forum
thread lists and thread pages.
"""

import re
import json
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from bs4 import BeautifulSoup, Tag

from .errors import ParseError
from .objects import ContentNode, NodeKind, classify


logger = logging.getLogger(__name__)

CMD_NODE_PATTERN = re.compile(r'cmdNode=uf:\w\w')
JOIN_PROMPT_MARKER = 'input[name="cmd[join]"'
FULL_THREAD_LIST_MARKER = "trows=800"
NEXT_PAGE_TEXT = ">>"
# lxml only adds tbody when the markup has one
FORUM_PAGINATION = (
    "div.ilTableNav > table > tr > td > a, "
    "div.ilTableNav > table > tbody > tr > td > a"
)

# Fragile: depends on the exact player bootstrap emitted by the Opencast
# plugin. The first argument is a JSON object followed by non-JSON options,
# so it is cut at the first ",\n". Expect this to break on plugin updates.
XOCT_PLAYER_PATTERN = re.compile(
    r'<script>\s+xoctPaellaPlayer\.init\(([\s\S]+)\)\s+</script>', re.MULTILINE
)


@dataclass
class ForumThreadRow:
    """One row of the forum thread table."""
    node: ContentNode
    title: str
    available_posts: int

    @property
    def dir_name(self) -> str:
        return f"{self.node.url.thr_pk}_{self.title}"


@dataclass
class ForumPost:
    """A single post on a thread page."""
    anchor: str
    author: str
    title: str
    body: str

    @property
    def file_name(self) -> str:
        return f"{self.anchor}_{self.author}_{self.title}.html"


def parse_container_items(soup: BeautifulSoup) -> List[ContentNode]:
    """Classify every item of a repository listing (desktop, course, folder)."""
    items = []
    for item in soup.select("div.il_ContainerListItem"):
        link = item.select_one("a.il_ContainerItemTitle")
        if link is None:
            raise ParseError("can't find link")
        items.append(classify(item, link))
    return items


def parse_content_tree(soup: BeautifulSoup) -> List[ContentNode]:
    """Classify the links of an asynchronously loaded content tree node."""
    items = []
    for link in soup.find_all('a'):
        if not link.get('href'):
            # disabled course
            continue
        items.append(classify(link, link))
    return items


def find_cmd_node(html: str) -> str:
    """Extract the course command node needed to request the content tree."""
    match = CMD_NODE_PATTERN.search(html)
    if match is None:
        raise ParseError("can't find cmdNode")
    return match.group(0)[len("cmdNode="):]


def is_join_prompt(html: str) -> bool:
    """True if the course page offers to join, i.e. we are not a member."""
    return JOIN_PROMPT_MARKER in html


def parse_video_rows(soup: BeautifulSoup) -> List[Tuple[str, str]]:
    """
    Find videos in an Opencast event table.

    Returns:
        (title, href) for every row with a player link and a plain-text title
    """
    videos = []
    for row in soup.find_all('tr'):
        link = row.select_one('a[target="_blank"]')
        if link is None:
            continue
        cells = row.find_all('td')
        if len(cells) < 3:
            continue
        title = cells[2].decode_contents().strip()
        if not title or title.startswith("<div"):
            continue
        videos.append((title, link.get('href', '')))
    return videos


def extract_player_json(html: str) -> str:
    """Cut the stream configuration out of the player page."""
    match = XOCT_PLAYER_PATTERN.search(html)
    if match is None:
        raise ParseError("xoct player json not found")
    return match.group(1).split(",\n", 1)[0].strip()


def extract_video_source(html: str) -> str:
    """Return the first MP4 source URL of the Opencast player page."""
    raw = extract_player_json(html)
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ParseError("invalid xoct player json") from e
    try:
        src = data["streams"][0]["sources"]["mp4"][0]["src"]
    except (KeyError, IndexError, TypeError) as e:
        raise ParseError("no mp4 source in xoct player json") from e
    if not isinstance(src, str):
        raise ParseError("no mp4 source in xoct player json")
    return src


def find_full_thread_list_link(soup: BeautifulSoup) -> str:
    """Find the link that shows 800 threads per page."""
    for link in soup.find_all('a', href=True):
        if FULL_THREAD_LIST_MARKER in link['href']:
            return link['href']
    raise ParseError("can't find forum thread count selector (empty forum?)")


def parse_thread_rows(soup: BeautifulSoup) -> List[ForumThreadRow]:
    """Parse the forum thread table. Only rows with six cells are threads."""
    rows = []
    for row in soup.find_all('tr'):
        cells = row.find_all('td')
        if len(cells) != 6:
            continue
        link = cells[1].find('a')
        if link is None:
            raise ParseError("thread link not found")
        node = classify(link, link)
        if node.kind is not NodeKind.THREAD:
            raise ParseError("thr_pk not found for thread")
        title = link.get_text().replace('/', '-').strip()
        count_text = cells[3].find(string=True)
        try:
            available = int((count_text or "").strip())
        except ValueError as e:
            raise ParseError("parsing post count failed") from e
        rows.append(ForumThreadRow(node=node, title=title, available_posts=available))
    return rows


def has_forum_pagination(soup: BeautifulSoup) -> bool:
    return soup.select_one(FORUM_PAGINATION) is not None


def _required(parent: Tag, selector: str) -> Tag:
    element = parent.select_one(selector)
    if element is None:
        raise ParseError(f"forum post without {selector}")
    return element


def parse_posts(soup: BeautifulSoup) -> List[ForumPost]:
    """Extract anchor, author, title and raw body of every post."""
    posts = []
    for post in soup.select(".ilFrmPostRow"):
        title = _required(post, ".ilFrmPostTitle").get_text().replace('/', '-')
        byline = _required(post, "span.small").get_text().strip().split('|')
        if len(byline) < 2:
            raise ParseError("can't find post author")
        container = _required(post, ".ilFrmPostContentContainer")
        anchor = container.find('a')
        if anchor is None or anchor.get('name') is None:
            raise ParseError("can't find post anchor")
        body = _required(post, ".ilFrmPostContent").decode_contents()
        posts.append(ForumPost(
            anchor=anchor['name'],
            author=byline[1].strip(),
            title=title.strip(),
            body=body,
        ))
    return posts


def find_next_thread_page(soup: BeautifulSoup) -> Optional[str]:
    """Href of the next page of a thread, None on the last page."""
    table = soup.find('table')
    if table is None:
        return None
    links = table.select("tr td a")
    if not links:
        logger.error("unable to find pagination links")
        return None
    last = links[-1]
    if last.get_text().strip() == NEXT_PAGE_TEXT:
        return last.get('href')
    return None
