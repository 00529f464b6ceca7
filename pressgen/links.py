"""Internal link handling for rendered page bodies.

Two passes run over every rendered body: links written against source files
(``[intro](../guides/intro.md)``) are rewritten to the target page's URL,
and every remaining link that stays inside the site is checked against the
set of artifacts the build produced.
"""
from __future__ import annotations

import html
import posixpath
import re
from typing import Collection, Mapping, Optional
from urllib.parse import unquote, urlsplit

from .errors import BrokenLinkWarning
from .utils import relative_root

LINK_RE = re.compile(r'(<(?:a|img|link|script|source)\b[^>]*?\b(?:href|src)=")([^"]*)(")', re.IGNORECASE)
SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:")


def split_target(href: str) -> tuple[str, str]:
    """Split a link into its path and its "?query#fragment" suffix."""
    for marker in ("?", "#"):
        index = href.find(marker)
        if index != -1:
            return href[:index], href[index:]
    return href, ""


def rewrite_source_links(html_text: str, source: str, output_path: str, url_by_source: Mapping[str, str]) -> str:
    root = relative_root(output_path)
    source_dir = posixpath.dirname(source)

    def repl(match: re.Match) -> str:
        href = html.unescape(match.group(2))
        path, suffix = split_target(href)
        if not path.endswith(".md") or SCHEME_RE.match(path) or path.startswith("//"):
            return match.group(0)
        if path.startswith("/"):
            target = posixpath.normpath(path.lstrip("/"))
        else:
            target = posixpath.normpath(posixpath.join(source_dir, unquote(path)))
        url = url_by_source.get(target)
        if url is None:
            return match.group(0)
        new_href = f"{root}/{url}{suffix}"
        return f"{match.group(1)}{html.escape(new_href, quote=True)}{match.group(3)}"

    return LINK_RE.sub(repl, html_text)


def site_path(href: str, output_path: str, base_url: str) -> Optional[str]:
    """Resolve a link to a path relative to the site root, or None if it leaves the site."""
    path, _ = split_target(html.unescape(href).strip())
    if not path:
        return None
    base = urlsplit(base_url)
    base_path = base.path.strip("/")
    if SCHEME_RE.match(path) or path.startswith("//"):
        parts = urlsplit(path if not path.startswith("//") else f"{base.scheme or 'https'}:{path}")
        if not base.netloc or parts.netloc != base.netloc:
            return None
        path = "/" + parts.path.lstrip("/")
    path = unquote(path)
    if path.startswith("/"):
        target = path.strip("/")
        if base_path:
            if target == base_path:
                target = ""
            elif target.startswith(base_path + "/"):
                target = target[len(base_path) + 1 :]
        return posixpath.normpath(target) if target else ""
    return posixpath.normpath(posixpath.join(posixpath.dirname(output_path), path))


def link_resolves(target: str, known_paths: Collection[str]) -> bool:
    if target in ("", "."):
        return "index.html" in known_paths
    if target == ".." or target.startswith("../"):
        return False
    return target in known_paths or f"{target}/index.html" in known_paths


def find_broken_links(
    html_text: str, source: str, output_path: str, known_paths: Collection[str], base_url: str
) -> list[BrokenLinkWarning]:
    warnings = []
    seen = set()
    for match in LINK_RE.finditer(html_text):
        href = match.group(2)
        target = site_path(href, output_path, base_url)
        if target is None or link_resolves(target, known_paths):
            continue
        href = html.unescape(href)
        if href in seen:
            continue
        seen.add(href)
        warnings.append(BrokenLinkWarning(source, href))
    return warnings
