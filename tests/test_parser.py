"""
Tests for the ILIAS page parsers.
"""

import pytest
from bs4 import BeautifulSoup

from iliasync.crawler.errors import ParseError
from iliasync.crawler.fetcher import soupify
from iliasync.crawler.objects import NodeKind
from iliasync.crawler import parser

PLAYER_PAGE = """<html><body>
<script>
    xoctPaellaPlayer.init({"streams":[{"sources":{"mp4":[{"src":"https://host/clip.mp4","mimetype":"video/mp4"}]}}]},
{"frame": "paella", "debug": false})
</script>
</body></html>"""

THREAD_LIST = """<html><body>
<table><tbody>
<tr><th>Title</th><th>Posts</th></tr>
<tr><td><input type="checkbox"></td>
    <td><a href="ilias.php?ref_id=5&amp;thr_pk=55&amp;cmd=viewThread">Exam / dates</a></td>
    <td>Alice</td><td>10 <span>new</span></td><td>0</td><td>today</td></tr>
<tr><td></td><td><a href="ilias.php?ref_id=5&amp;thr_pk=56&amp;cmd=viewThread">Other</a></td>
    <td>Bob</td><td>2</td><td>0</td><td>today</td></tr>
</tbody></table>
</body></html>"""

THREAD_PAGE = """<html><body>
<table><tbody><tr>
  <td><a href="ilias.php?ref_id=5&amp;thr_pk=55&amp;page=0">1</a></td>
  <td><a href="ilias.php?ref_id=5&amp;thr_pk=55&amp;page=1">&gt;&gt;</a></td>
</tr></tbody></table>
<div class="ilFrmPostRow">
  <div class="ilFrmPostTitle">Re: a/b</div>
  <span class="small">12. Mar 2020 | Bob Builder | Student</span>
  <div class="ilFrmPostContentContainer"><a name="post_901"></a>
    <div class="ilFrmPostContent"><p>Hello <b>world</b></p></div>
  </div>
</div>
</body></html>"""


class TestListings:

    def test_container_items(self):
        soup = soupify("""
        <div class="il_ContainerListItem">
          <a class="il_ContainerItemTitle" href="goto.php?target=crs_1234_">Analysis</a>
        </div>
        <div class="il_ContainerListItem">
          <a class="il_ContainerItemTitle" href="ilias.php?ref_id=7&amp;cmd=view&amp;baseClass=ilRepositoryGUI">Sheets</a>
        </div>""")
        items = parser.parse_container_items(soup)
        assert [(i.kind, i.name) for i in items] == [
            (NodeKind.COURSE, "Analysis"),
            (NodeKind.FOLDER, "Sheets"),
        ]

    def test_container_item_without_link(self):
        soup = soupify('<div class="il_ContainerListItem"><span>nothing</span></div>')
        with pytest.raises(ParseError):
            parser.parse_container_items(soup)

    def test_content_tree_skips_disabled(self):
        soup = soupify(
            '<ul><li><a href="goto.php?target=fold_3">Folder</a></li>'
            '<li><a href="">Disabled</a></li><li><a>No href</a></li></ul>',
            fragment=True
        )
        items = parser.parse_content_tree(soup)
        assert [(i.kind, i.url.ref_id) for i in items] == [(NodeKind.FOLDER, "3")]

    def test_cmd_node(self):
        html = '<a href="ilias.php?ref_id=1&cmdNode=uf:x7&cmd=view">x</a>'
        assert parser.find_cmd_node(html) == "uf:x7"
        with pytest.raises(ParseError):
            parser.find_cmd_node("<html></html>")

    def test_join_prompt(self):
        assert parser.is_join_prompt('<form><input[name="cmd[join]"]></form>')
        assert parser.is_join_prompt('x input[name="cmd[join]" y')
        assert not parser.is_join_prompt('<input name="cmd[join]">')


class TestVideos:

    def test_video_rows(self):
        soup = soupify("""<table>
        <tr><td>1</td><td>x</td><td> Lecture 1 </td>
            <td><a target="_blank" href="ilias.php?ref_id=9&amp;event_id=abc">play</a></td></tr>
        <tr><td>2</td><td>x</td><td><div class="waiting">processing</div></td>
            <td><a target="_blank" href="ilias.php?event_id=b">play</a></td></tr>
        <tr><td>3</td><td>x</td><td>No player</td></tr>
        <tr><td>4</td><td>x</td><td>  </td>
            <td><a target="_blank" href="ilias.php?event_id=c">play</a></td></tr>
        </table>""", fragment=True)
        assert parser.parse_video_rows(soup) == [
            ("Lecture 1", "ilias.php?ref_id=9&event_id=abc")
        ]

    def test_video_source(self):
        assert parser.extract_video_source(PLAYER_PAGE) == "https://host/clip.mp4"

    def test_player_json_is_cut_at_first_comma_newline(self):
        raw = parser.extract_player_json(PLAYER_PAGE)
        assert raw.startswith('{"streams"')
        assert raw.endswith('}]}}]}')

    def test_missing_player(self):
        with pytest.raises(ParseError, match="not found"):
            parser.extract_video_source("<html><script>other()</script></html>")

    def test_malformed_json(self):
        page = "<script>\n  xoctPaellaPlayer.init({broken,\n{})\n</script>"
        with pytest.raises(ParseError, match="invalid"):
            parser.extract_video_source(page)

    def test_missing_mp4_source(self):
        page = '<script>\n  xoctPaellaPlayer.init({"streams": []},\n{})\n</script>'
        with pytest.raises(ParseError, match="no mp4 source"):
            parser.extract_video_source(page)


class TestForum:

    def test_full_thread_list_link(self):
        soup = soupify(
            '<a href="ilias.php?trows=10">10</a>'
            '<a href="ilias.php?ref_id=5&amp;frm_tt_e39_5_trows=800&amp;cmd=showThreads">800</a>'
        )
        assert parser.find_full_thread_list_link(soup) == \
            "ilias.php?ref_id=5&frm_tt_e39_5_trows=800&cmd=showThreads"

    def test_empty_forum(self):
        with pytest.raises(ParseError, match="empty forum"):
            parser.find_full_thread_list_link(soupify("<p>no threads</p>"))

    def test_thread_rows(self):
        rows = parser.parse_thread_rows(soupify(THREAD_LIST))
        assert [(r.node.url.thr_pk, r.title, r.available_posts) for r in rows] == [
            ("55", "Exam - dates", 10),
            ("56", "Other", 2),
        ]
        assert rows[0].dir_name == "55_Exam - dates"
        assert rows[0].node.kind is NodeKind.THREAD

    def test_unparsable_post_count(self):
        html = THREAD_LIST.replace("<td>2</td>", "<td>two</td>")
        with pytest.raises(ParseError, match="post count") as excinfo:
            parser.parse_thread_rows(soupify(html))
        assert isinstance(excinfo.value.__cause__, ValueError)

    def test_forum_pagination(self):
        nav = ('<div class="ilTableNav"><table><tbody><tr><td>'
               '<a href="x">2</a></td></tr></tbody></table></div>')
        assert parser.has_forum_pagination(soupify(nav))
        assert not parser.has_forum_pagination(soupify(THREAD_LIST))

    def test_forum_pagination_without_tbody(self):
        nav = '<div class="ilTableNav"><table><tr><td><a href="x">2</a></td></tr></table></div>'
        assert parser.has_forum_pagination(soupify(nav))


class TestThreadPage:

    def test_posts(self):
        posts = parser.parse_posts(soupify(THREAD_PAGE))
        assert len(posts) == 1
        post = posts[0]
        assert post.anchor == "post_901"
        assert post.author == "Bob Builder"
        assert post.title == "Re: a-b"
        assert post.body.strip() == "<p>Hello <b>world</b></p>"
        assert post.file_name == "post_901_Bob Builder_Re: a-b.html"

    def test_next_page(self):
        assert parser.find_next_thread_page(soupify(THREAD_PAGE)) == \
            "ilias.php?ref_id=5&thr_pk=55&page=1"

    def test_next_page_without_tbody(self):
        html = ('<html><body><table><tr>'
                '<td><a href="p1">1</a></td>'
                '<td><a href="ilias.php?thr_pk=55&amp;page=1">&gt;&gt;</a></td>'
                '</tr></table></body></html>')
        assert parser.find_next_thread_page(soupify(html)) == "ilias.php?thr_pk=55&page=1"

    def test_last_page(self):
        html = THREAD_PAGE.replace("&gt;&gt;", "2")
        assert parser.find_next_thread_page(soupify(html)) is None

    def test_no_table(self):
        assert parser.find_next_thread_page(BeautifulSoup("<p></p>", 'lxml')) is None
