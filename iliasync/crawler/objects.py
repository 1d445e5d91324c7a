"""
Content model of an ILIAS repository and the link classifier.

Every hyperlink found on a listing page is turned into a ``ContentNode``:
a tagged record whose ``kind`` decides which handler syncs it.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import parse_qsl, urljoin, urlparse

from bs4 import Tag

from .errors import ParseError


INVALID_PATH_CHARS = re.compile(r'[/\\:<>"|?*\n\t]')
VERSION_PREFIX = "Version: "


class NodeKind(Enum):
    """Kinds of objects found in the ILIAS repository tree."""
    COURSE = "course"
    FOLDER = "folder"
    FILE = "file"
    FORUM = "forum"
    THREAD = "thread"
    WIKI = "wiki"
    EXERCISE_HANDLER = "exercise handler"
    PLUGIN_DISPATCH = "plugin dispatch"
    VIDEO = "video"
    GENERIC = "generic"

    @property
    def label(self) -> str:
        return self.value


def sanitize_name(name: str) -> str:
    """Replace characters that are not allowed in file names."""
    return INVALID_PATH_CHARS.sub('-', name)


@dataclass
class ReferenceDescriptor:
    """Addressing information parsed from an ILIAS hyperlink."""
    url: str
    base_class: str = ""
    cmd_class: Optional[str] = None
    cmd_node: Optional[str] = None
    cmd: Optional[str] = None
    forward_cmd: Optional[str] = None
    thr_pk: Optional[str] = None
    pos_pk: Optional[str] = None
    ref_id: str = ""
    target: Optional[str] = None

    @classmethod
    def raw(cls, url: str) -> 'ReferenceDescriptor':
        """Wrap a URL without interpreting its query."""
        return cls(url=url)

    @classmethod
    def from_href(cls, href: str) -> 'ReferenceDescriptor':
        """Parse the query component of an href (relative or absolute)."""
        parsed = urlparse(urljoin("http://domain/", href))
        ref = cls(url=href)
        for key, value in parse_qsl(parsed.query, keep_blank_values=True):
            if key == 'baseClass':
                ref.base_class = value
            elif key == 'cmdClass':
                ref.cmd_class = value
            elif key == 'cmdNode':
                ref.cmd_node = value
            elif key == 'cmd':
                ref.cmd = value
            elif key == 'forwardCmd':
                ref.forward_cmd = value
            elif key == 'thr_pk':
                ref.thr_pk = value
            elif key == 'pos_pk':
                ref.pos_pk = value
            elif key == 'ref_id':
                ref.ref_id = value
            elif key == 'target':
                ref.target = value
        return ref

    @property
    def is_router_link(self) -> bool:
        """Links through goto.php carry an opaque target token."""
        path = urlparse(urljoin("http://domain/", self.url)).path
        return path.endswith("/goto.php")

    def target_has_prefix(self, prefix: str) -> bool:
        return self.target is not None and self.target.startswith(prefix)

    def target_ref_id(self) -> str:
        """Second underscore-delimited segment of the target, e.g. crs_1234_ -> 1234."""
        parts = (self.target or "").split('_')
        if len(parts) < 2:
            raise ParseError(f"no reference id in target {self.target!r}")
        return parts[1]


@dataclass
class ContentNode:
    """A classified object of the repository tree."""
    kind: NodeKind
    name: str
    url: ReferenceDescriptor

    @classmethod
    def thread(cls, url: ReferenceDescriptor) -> 'ContentNode':
        # threads have no display name until their page is fetched
        return cls(NodeKind.THREAD, url.thr_pk or url.url, url)

    @classmethod
    def video(cls, url: ReferenceDescriptor, name: Optional[str] = None) -> 'ContentNode':
        return cls(NodeKind.VIDEO, name or url.url, url)

    @property
    def path_name(self) -> str:
        return sanitize_name(self.name)

    def __str__(self) -> str:
        return f"{self.kind.label} {self.name!r}"


def _link_name(link: Tag) -> str:
    return link.get_text().replace('/', '-').strip()


def _classify_router_link(item: Tag, name: str, url: ReferenceDescriptor) -> ContentNode:
    if url.target_has_prefix("wiki_"):
        return ContentNode(NodeKind.WIKI, name, url)
    if url.target_has_prefix("root_"):
        # magazine link
        return ContentNode(NodeKind.GENERIC, name, url)
    if url.target_has_prefix("crs_"):
        url.ref_id = url.target_ref_id()
        return ContentNode(NodeKind.COURSE, name, url)
    if url.target_has_prefix("frm_"):
        url.ref_id = url.target_ref_id()
        return ContentNode(NodeKind.FORUM, name, url)
    if url.target_has_prefix("lm_"):
        # interactive learning module
        return ContentNode(NodeKind.GENERIC, name, url)
    if url.target_has_prefix("fold_"):
        url.ref_id = url.target_ref_id()
        return ContentNode(NodeKind.FOLDER, name, url)
    if url.target_has_prefix("file_"):
        if not url.target.endswith("download"):
            # info page of the file, the file itself is listed anyway
            return ContentNode(NodeKind.GENERIC, name, url)
        return ContentNode(NodeKind.FILE, _file_name(item, name), url)
    return ContentNode(NodeKind.GENERIC, name, url)


def _file_name(item: Tag, name: str) -> str:
    """Append version and extension found in the item properties."""
    props = item.select("span.il_ItemProperty")
    if not props:
        raise ParseError(f"no item properties for file {name!r}")
    extension = props[0].get_text().strip()
    # props[1] is the file size
    if len(props) > 2:
        version = props[2].get_text().strip()
        if version.startswith(VERSION_PREFIX):
            name = f"{name}_v{version[len(VERSION_PREFIX):]}"
    return f"{name}.{extension}"


def classify(item: Tag, link: Tag) -> ContentNode:
    """
    Classify a hyperlink found on an ILIAS page.

    Args:
        item: Element enclosing the link, holds the item properties of files
        link: The ``<a>`` element itself

    Returns:
        ContentNode of the matching kind, GENERIC for anything unknown
    """
    name = _link_name(link)
    url = ReferenceDescriptor.from_href(link.get('href', ''))

    if url.thr_pk is not None:
        return ContentNode.thread(url)

    if url.is_router_link:
        return _classify_router_link(item, name, url)

    if url.cmd == "showThreads":
        return ContentNode(NodeKind.FORUM, name, url)

    # class name is sometimes in CamelCase
    base_class = url.base_class.lower()
    if base_class == "ilexercisehandlergui":
        return ContentNode(NodeKind.EXERCISE_HANDLER, name, url)
    if base_class == "ililwikihandlergui":
        return ContentNode(NodeKind.WIKI, name, url)
    if base_class == "ilrepositorygui":
        if url.cmd == "view":
            return ContentNode(NodeKind.FOLDER, name, url)
        if url.cmd is not None:
            return ContentNode(NodeKind.GENERIC, name, url)
        return ContentNode(NodeKind.COURSE, name, url)
    if base_class == "ilobjplugindispatchgui":
        return ContentNode(NodeKind.PLUGIN_DISPATCH, name, url)
    return ContentNode(NodeKind.GENERIC, name, url)
