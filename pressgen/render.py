from __future__ import annotations

import re
from pathlib import Path
from typing import Optional

import markdown
from markdown.extensions import Extension

from .errors import ConfigError

TAG_RE = re.compile(r"<[^>]+>")
SPACE_RE = re.compile(r"\s+")
MORE_MARKER = "<!--more-->"
SUMMARY_LENGTH = 200
DEFAULT_TEMPLATE = Path(__file__).parent / "templates" / "base.html"


class EscapeRawHtml(Extension):
    """Treat raw HTML in Markdown source as text (goldmark's unsafe = false)."""

    def extendMarkdown(self, md: markdown.Markdown) -> None:
        md.preprocessors.deregister("html_block")
        md.inlinePatterns.deregister("html")


def markdown_converter(unsafe_html: bool) -> markdown.Markdown:
    extensions: list = ["fenced_code", "tables", "toc"]
    if not unsafe_html:
        extensions.append(EscapeRawHtml())
    return markdown.Markdown(extensions=extensions)


def render_markdown(text: str, unsafe_html: bool = False) -> tuple[str, str]:
    """Convert Markdown to HTML. Returns the HTML and its table of contents."""
    md = markdown_converter(unsafe_html)
    html_content = md.convert(text.replace(MORE_MARKER, ""))
    toc_html = md.toc
    md.reset()
    return html_content, toc_html


def strip_tags(html_text: str) -> str:
    return TAG_RE.sub("", html_text)


def plain_text(html_text: str) -> str:
    return SPACE_RE.sub(" ", strip_tags(html_text)).strip()


def summarize(body: str, html_content: str, explicit: str = "", unsafe_html: bool = False) -> str:
    if explicit:
        return explicit.strip()
    if MORE_MARKER in body:
        lead, _ = render_markdown(body.split(MORE_MARKER, 1)[0], unsafe_html)
        return plain_text(lead)
    summary = plain_text(html_content)
    return summary[:SUMMARY_LENGTH] + ("..." if len(summary) > SUMMARY_LENGTH else "")


def render_template(template: str, **context: str) -> str:
    output = template
    late_keys = {"content"}
    for key, value in context.items():
        if key in late_keys:
            continue
        output = output.replace(f"{{{{{key}}}}}", value)
    for key in late_keys:
        if key in context:
            output = output.replace(f"{{{{{key}}}}}", context[key])
    return output


def read_template(site_root: Optional[Path] = None, theme: str = "") -> str:
    """Theme base template if the site ships one, else the bundled default."""
    if site_root is not None and theme:
        themed = site_root / "themes" / theme / "base.html"
        if themed.exists():
            try:
                return themed.read_text(encoding="utf-8")
            except UnicodeDecodeError as exc:
                raise ConfigError(f"not valid UTF-8: {exc}", path=str(themed)) from exc
    return DEFAULT_TEMPLATE.read_text(encoding="utf-8")
