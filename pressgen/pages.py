from __future__ import annotations

import datetime as dt
import html
import json
import math
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from .config import MenuEntry, SiteConfig
from .content import Page, reading_time
from .render import render_template
from .utils import format_date, iso_date, join_url, parse_bool, parse_int, relative_root, rfc822_date, slugify

GENERATOR = "pressgen"


@dataclass(frozen=True)
class RenderedPage:
    page: Page
    content: str
    toc: str
    summary: str
    words: int


@dataclass(frozen=True)
class Layout:
    template: str
    config: SiteConfig
    menu: tuple[MenuEntry, ...]
    year: Optional[int] = None

    def render(self, output_path: str, title: str, content: str, description: str = "", extra_head: str = "") -> str:
        config = self.config
        root = relative_root(output_path)
        site_name = config.param("header.title.name") or config.title
        page_title = f"{title} | {config.title}" if title and config.title and title != config.title else title
        return render_template(
            self.template,
            lang=html.escape(config.language_code),
            theme_default=html.escape(str(config.param("defaultTheme") or "auto")),
            title=html.escape(page_title or config.title),
            description=html.escape(description or config.description),
            root=root,
            site_name=html.escape(str(site_name)),
            menu=build_menu(self.menu, root),
            social_header=build_social(config, "header") if parse_bool(config.param("socialInHeader")) else "",
            social_footer=build_social(config, "footer") if parse_bool(config.param("socialInFooter")) else "",
            footer=build_footer(config, self.year),
            extra_head=extra_head,
            analytics=build_analytics(config),
            content=content,
        )


def link(root: str, url: str) -> str:
    if url.startswith(("http://", "https://", "//", "mailto:")):
        return url
    return f"{root}/{url.lstrip('/')}"


def build_menu(entries: Sequence[MenuEntry], root: str) -> str:
    items = []
    for entry in entries:
        title_attr = f' title="{html.escape(entry.title)}"' if entry.title else ""
        items.append(
            f'<a class="menu-item" href="{html.escape(link(root, entry.url))}"{title_attr}>'
            f"{entry.pre}{html.escape(entry.name)}{entry.post}</a>"
        )
    return "".join(items)


def build_social(config: SiteConfig, place: str) -> str:
    social = config.param("social") or {}
    if not isinstance(social, Mapping):
        return ""
    links = []
    for name, url in social.items():
        if not isinstance(url, str) or not url.startswith(("http://", "https://")):
            continue
        links.append(f'<a href="{html.escape(url)}" rel="me noopener" target="_blank">{html.escape(name)}</a>')
    if not links:
        return ""
    return f'<div class="social social-{place}">{" ".join(links)}</div>'


def build_footer(config: SiteConfig, year: Optional[int]) -> str:
    if not parse_bool(config.param("footer.enable", True)):
        return ""
    since = parse_int(config.param("footer.since"), 0)
    if year is None:
        years = str(since) if since else ""
    elif since and since < year:
        years = f"{since} - {year}"
    else:
        years = str(year)
    author = ""
    if parse_bool(config.param("footer.author", True)):
        author = str(config.param("author.name") or "")
    parts = [part for part in (f"&copy; {years}" if years else "", html.escape(author)) if part]
    return f'<div class="copyright">{" ".join(parts)}</div>' if parts else ""


def build_analytics(config: SiteConfig) -> str:
    if not parse_bool(config.param("analytics.enable")):
        return ""
    tracking_id = str(config.param("analytics.google.id") or "").strip()
    if not tracking_id:
        return ""
    options = ", { 'anonymize_ip': true }" if parse_bool(config.param("analytics.google.anonymizeIP")) else ""
    tracking_id = html.escape(tracking_id)
    return (
        f'<script async src="https://www.googletagmanager.com/gtag/js?id={tracking_id}"></script>\n'
        "<script>window.dataLayer = window.dataLayer || [];"
        "function gtag(){dataLayer.push(arguments);}"
        "gtag('js', new Date());"
        f"gtag('config', '{tracking_id}'{options});</script>"
    )


def display_date(config: SiteConfig, value: Optional[dt.datetime]) -> str:
    if value is None:
        return ""
    return f'<time class="post-date" datetime="{iso_date(value)}">{html.escape(format_date(value, config.date_format))}</time>'


def term_links(config: SiteConfig, page: Page, root: str) -> str:
    chips = []
    for plural, terms in page.terms.items():
        for term in terms:
            chips.append(
                f'<a class="chip chip-{html.escape(plural)}" href="{root}/{plural}/{slugify(term)}/">'
                f"{html.escape(term)}</a>"
            )
    return f'<div class="post-tags">{" ".join(chips)}</div>' if chips else ""


def render_page(layout: Layout, rendered: RenderedPage) -> str:
    page = rendered.page
    config = layout.config
    root = relative_root(page.output_path)
    meta = [display_date(config, page.date)]
    minutes = reading_time(rendered.words)
    if minutes:
        meta.append(f'<span class="post-reading">{minutes} min read</span>')
    toc = ""
    if rendered.toc and "<li" in rendered.toc:
        toc = f'<aside class="toc"><h2>Contents</h2>{rendered.toc}</aside>'
    content = (
        '<article class="post">'
        f'<h1 class="post-title">{html.escape(page.title)}</h1>'
        f'<div class="post-meta">{" ".join(part for part in meta if part)}</div>'
        f"{toc}"
        f'<div class="post-body">{rendered.content}</div>'
        f"{term_links(config, page, root)}"
        "</article>"
    )
    return layout.render(page.output_path, page.title, content, description=rendered.summary)


def build_post_list(config: SiteConfig, items: Sequence[RenderedPage], root: str) -> str:
    if not items:
        return '<p class="post-empty">No posts yet.</p>'
    rows = []
    for item in items:
        page = item.page
        rows.append(
            '<article class="post-card">'
            f'<h2 class="post-title"><a href="{root}/{page.url}">{html.escape(page.title)}</a></h2>'
            f'<div class="post-meta">{display_date(config, page.date)}</div>'
            f'<p class="post-summary">{html.escape(item.summary)}</p>'
            "</article>"
        )
    return f'<div class="post-list">{"".join(rows)}</div>'


def pager_url(base: str, pagination_path: str, number: int) -> str:
    if number == 1:
        return base
    return f"{base}{pagination_path}/{number}/"


def build_pagination(root: str, base: str, pagination_path: str, number: int, total: int) -> str:
    if total <= 1:
        return ""
    items = []
    if number > 1:
        items.append(f'<a class="page-link" href="{root}/{pager_url(base, pagination_path, number - 1)}">Previous</a>')
    else:
        items.append('<span class="page-link is-disabled">Previous</span>')
    for num in range(1, total + 1):
        if num == number:
            items.append(f'<span class="page-number is-active">{num}</span>')
        else:
            items.append(f'<a class="page-number" href="{root}/{pager_url(base, pagination_path, num)}">{num}</a>')
    if number < total:
        items.append(f'<a class="page-link" href="{root}/{pager_url(base, pagination_path, number + 1)}">Next</a>')
    else:
        items.append('<span class="page-link is-disabled">Next</span>')
    return f'<nav class="pagination">{"".join(items)}</nav>'


def render_alias(target: str) -> str:
    target = html.escape(target)
    return (
        "<!DOCTYPE html>\n"
        "<html>\n"
        "<head>\n"
        f"<title>{target}</title>\n"
        f'<link rel="canonical" href="{target}">\n'
        '<meta name="robots" content="noindex">\n'
        '<meta charset="utf-8">\n'
        f'<meta http-equiv="refresh" content="0; url={target}">\n'
        "</head>\n"
        "</html>\n"
    )


def render_listing(
    layout: Layout,
    base: str,
    title: str,
    items: Sequence[RenderedPage],
    pager_size: int,
    intro: str = "",
    header: str = "",
    show_posts: bool = True,
) -> dict[str, str]:
    """Render a paginated list page rooted at ``base`` ("" for home, "posts/" for a section)."""
    config = layout.config
    outputs = {}
    total = max(1, math.ceil(len(items) / pager_size)) if show_posts else 1
    for number in range(1, total + 1):
        url = pager_url(base, config.pagination_path, number)
        output_path = f"{url}index.html"
        root = relative_root(output_path)
        listing = ""
        if show_posts:
            chunk = items[(number - 1) * pager_size : number * pager_size]
            listing = build_post_list(config, chunk, root) + build_pagination(
                root, base, config.pagination_path, number, total
            )
        heading = f'<div class="section-head"><h1>{html.escape(title)}</h1></div>' if title else ""
        feed = ""
        if "RSS" in config.outputs_for(kind_of(base, config)):
            feed = f'<link rel="alternate" type="application/rss+xml" href="{root}/{base}index.xml" title="{html.escape(title or config.title)}">'
        page_title = title if number == 1 else f"{title or config.title} - Page {number}"
        # intro links were rewritten relative to the first page
        lead = intro if number == 1 else ""
        outputs[output_path] = layout.render(
            output_path,
            page_title,
            f"{header}{heading}{lead}{listing}",
            extra_head=feed,
        )
    if not config.disable_aliases and total > 1:
        alias_path = f"{base}{config.pagination_path}/1/index.html"
        outputs[alias_path] = render_alias(f"{relative_root(alias_path)}/{base}")
    return outputs


def kind_of(base: str, config: SiteConfig) -> str:
    if not base:
        return "home"
    top = base.strip("/").split("/")[0]
    if top in config.taxonomies.values():
        return "taxonomy"
    return "section"


def render_home_header(config: SiteConfig) -> str:
    if not parse_bool(config.param("home.profile.enable")):
        return ""
    title = config.param("home.profile.title") or config.title
    subtitle = config.param("home.profile.subtitle") or ""
    subtitle_html = f'<p class="home-subtitle">{html.escape(str(subtitle))}</p>' if subtitle else ""
    return f'<div class="home-profile"><h1 class="home-title">{html.escape(str(title))}</h1>{subtitle_html}</div>'


def render_terms(layout: Layout, plural: str, term_map: Mapping[str, Sequence[RenderedPage]]) -> str:
    output_path = f"{plural}/index.html"
    root = relative_root(output_path)
    rows = []
    for term, items in sorted(term_map.items(), key=lambda x: (-len(x[1]), x[0].lower())):
        rows.append(
            f'<li><a href="{root}/{plural}/{slugify(term)}/">{html.escape(term)}</a>'
            f'<span class="count">{len(items)}</span></li>'
        )
    body = "".join(rows) if rows else "<li>Nothing here yet.</li>"
    title = plural.capitalize()
    content = f'<div class="section-head"><h1>{html.escape(title)}</h1></div><ul class="term-list">{body}</ul>'
    return layout.render(output_path, title, content)


def render_rss(config: SiteConfig, title: str, base: str, items: Sequence[RenderedPage]) -> str:
    limit = config.feed_limit
    if limit >= 0:
        items = items[:limit]
    site_link = join_url(config.base_url, base)
    feed_link = join_url(config.base_url, f"{base}index.xml")
    channel_title = f"{title} on {config.title}" if title and title != config.title else config.title
    dated = [item.page.date for item in items if item.page.date]
    entries = []
    for item in items:
        page = item.page
        permalink = join_url(config.base_url, page.url)
        lines = [
            "<item>",
            f"<title>{html.escape(page.title)}</title>",
            f"<link>{html.escape(permalink)}</link>",
        ]
        if page.date:
            lines.append(f"<pubDate>{rfc822_date(page.date)}</pubDate>")
        author = config.param("author.name")
        if author:
            lines.append(f"<author>{html.escape(str(author))}</author>")
        lines.extend(
            [
                f"<guid>{html.escape(permalink)}</guid>",
                f"<description>{html.escape(item.summary)}</description>",
                "</item>",
            ]
        )
        entries.append("\n".join(lines))
    head = [
        '<?xml version="1.0" encoding="utf-8" standalone="yes"?>',
        '<rss version="2.0" xmlns:atom="http://www.w3.org/2005/Atom">',
        "<channel>",
        f"<title>{html.escape(channel_title)}</title>",
        f"<link>{html.escape(site_link)}</link>",
        f"<description>{html.escape(config.description or channel_title)}</description>",
        f"<generator>{GENERATOR}</generator>",
        f"<language>{html.escape(config.language_code)}</language>",
    ]
    if dated:
        head.append(f"<lastBuildDate>{rfc822_date(max(dated))}</lastBuildDate>")
    head.append(f'<atom:link href="{html.escape(feed_link)}" rel="self" type="application/rss+xml" />')
    return "\n".join(head + entries + ["</channel>", "</rss>", ""])


def render_json_index(config: SiteConfig, items: Sequence[RenderedPage]) -> str:
    index = []
    for item in items:
        page = item.page
        entry = {
            "title": page.title,
            "url": join_url(config.base_url, page.url),
            "uri": f"/{page.url}",
            "date": iso_date(page.date) if page.date else None,
            "section": page.section,
            "summary": item.summary,
            "wordCount": item.words,
            "readingTime": reading_time(item.words),
        }
        for plural in config.taxonomies.values():
            entry[plural] = list(page.terms.get(plural, ()))
        index.append(entry)
    return json.dumps(index, indent=2, ensure_ascii=True) + "\n"
