from __future__ import annotations

from pressgen.errors import BrokenLinkWarning
from pressgen.links import find_broken_links, rewrite_source_links, site_path

KNOWN = {"index.html", "posts/a/index.html", "img/logo.png", "index.xml"}
BASE = "https://kirillvolkov.com"


def test_rewrite_source_links_points_at_page_url() -> None:
    html_text = '<p><a href="../guides/intro.md#setup">intro</a></p>'

    result = rewrite_source_links(html_text, "posts/a.md", "posts/a/index.html", {"guides/intro.md": "guides/intro/"})

    assert result == '<p><a href="../../guides/intro/#setup">intro</a></p>'


def test_rewrite_leaves_unknown_sources() -> None:
    html_text = '<a href="missing.md">gone</a>'

    assert rewrite_source_links(html_text, "posts/a.md", "posts/a/index.html", {}) == html_text


def test_site_path_resolution() -> None:
    assert site_path("../../img/logo.png", "posts/a/index.html", BASE) == "img/logo.png"
    assert site_path("/posts/a/", "index.html", BASE) == "posts/a"
    assert site_path("https://kirillvolkov.com/posts/a/", "index.html", BASE) == "posts/a"
    assert site_path("https://github.com/x", "index.html", BASE) is None
    assert site_path("mailto:me@example.com", "index.html", BASE) is None
    assert site_path("#top", "index.html", BASE) is None


def test_site_path_strips_base_path() -> None:
    assert site_path("/blog/posts/a/", "index.html", "https://example.com/blog/") == "posts/a"


def test_find_broken_links_reports_internal_misses_once() -> None:
    html_text = (
        '<a href="/">home</a>'
        '<img src="../../img/logo.png">'
        '<a href="/posts/missing/">missing</a>'
        '<a href="/posts/missing/">again</a>'
        '<a href="https://elsewhere.com/x">external</a>'
        '<a href="https://kirillvolkov.com/nope/">own host</a>'
        '<a href="#top">anchor</a>'
    )

    warnings = find_broken_links(html_text, "posts/a.md", "posts/a/index.html", KNOWN, BASE)

    assert warnings == [
        BrokenLinkWarning("posts/a.md", "/posts/missing/"),
        BrokenLinkWarning("posts/a.md", "https://kirillvolkov.com/nope/"),
    ]


def test_links_escaping_the_site_are_broken() -> None:
    warnings = find_broken_links('<a href="../../../up/">up</a>', "posts/a.md", "posts/a/index.html", KNOWN, BASE)

    assert len(warnings) == 1
    assert str(warnings[0]) == "posts/a.md: unresolved link to ../../../up/"
