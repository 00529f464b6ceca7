from __future__ import annotations

import dataclasses
import os
import posixpath
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Mapping, Optional, Sequence, TypeVar

from .config import MenuEntry, SiteConfig, find_config, load_site_config, sort_menu
from .content import Document, Page, count_words, humanize, parse_document
from .errors import BrokenLinkWarning, ConfigError
from .links import find_broken_links, rewrite_source_links
from .pages import (
    Layout,
    RenderedPage,
    render_alias,
    render_home_header,
    render_json_index,
    render_listing,
    render_page,
    render_rss,
    render_terms,
)
from .render import read_template, render_markdown, strip_tags, summarize
from .utils import clean_output_dir, hash_text, list_files, parse_bool, relative_root, slugify, url_to_output_path

MAX_WORKERS = 32
T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class Artifact:
    path: str
    data: bytes
    kind: str
    format: str
    source: str = ""

    @property
    def text(self) -> str:
        return self.data.decode("utf-8")


@dataclass
class BuildResult:
    artifacts: dict[str, Artifact] = field(default_factory=dict)
    warnings: list[BrokenLinkWarning] = field(default_factory=list)
    pages: list[Page] = field(default_factory=list)

    def __contains__(self, path: str) -> bool:
        return path in self.artifacts

    def __getitem__(self, path: str) -> Artifact:
        return self.artifacts[path]

    def text(self, path: str) -> str:
        return self.artifacts[path].text

    def for_source(self, source: str) -> list[Artifact]:
        return [artifact for artifact in self.artifacts.values() if artifact.source == source]


def resolve_workers(workers: int) -> int:
    if workers <= 0:
        workers = os.cpu_count() or 1
    return max(1, min(workers, MAX_WORKERS))


def run_parallel(func: Callable[[T], R], items: Sequence[T], workers: int) -> list[R]:
    """Map ``func`` over ``items`` in a thread pool, preserving input order."""
    workers = min(workers, len(items)) if items else 1
    if workers <= 1:
        return [func(item) for item in items]
    with ThreadPoolExecutor(max_workers=workers) as executor:
        return list(executor.map(func, items))


def read_content(content_dir: Path) -> tuple[list[Document], dict[str, bytes]]:
    """Load Markdown documents and the other files (page resources) under ``content_dir``."""
    if not content_dir.exists():
        raise ConfigError("content directory not found", path=str(content_dir))
    documents = []
    resources = {}
    for path in list_files(content_dir):
        if path.suffix.lower() == ".md":
            documents.append(Document.from_file(path, content_dir))
        else:
            resources[path.relative_to(content_dir).as_posix()] = path.read_bytes()
    return documents, resources


def read_static(static_dir: Path) -> dict[str, bytes]:
    return {path.relative_to(static_dir).as_posix(): path.read_bytes() for path in list_files(static_dir)}


def assign_urls(pages: Sequence[Page], config: SiteConfig) -> list[Page]:
    """Give every page a unique URL. Order of ``pages`` decides who keeps a contested slug."""
    sections = {page.section for page in pages if page.section}
    reserved = set(config.taxonomies.values()) | {config.pagination_path} | sections
    used: dict[str, str] = {}
    urls: dict[str, str] = {}

    for page in pages:
        if page.kind == "home":
            urls[page.source] = ""
        elif page.kind == "section":
            urls[page.source] = f"{page.section}/"
        elif page.explicit_url:
            url = f"{page.explicit_url}/"
            if url in used:
                raise ConfigError(f"url {url!r} is already used by {used[url]}", path=page.source, field="url")
            used[url] = page.source
            urls[page.source] = url

    for page in pages:
        if page.source in urls:
            continue
        prefix = "/".join(page.dirs)
        candidate = f"{prefix}/{page.slug}" if prefix else page.slug
        url = f"{candidate}/"
        if url in used or (not prefix and page.slug in reserved):
            digest = hash_text(page.source)
            url = f"{candidate}-{digest[:8]}/"
            if url in used:
                for length in (12, 16):
                    url = f"{candidate}-{digest[:length]}/"
                    if url not in used:
                        break
            counter = 2
            while url in used:
                url = f"{candidate}-{counter}/"
                counter += 1
        used[url] = page.source
        urls[page.source] = url

    return [dataclasses.replace(page, url=urls[page.source]) for page in pages]


def render_document(page: Page, config: SiteConfig, url_by_source: Mapping[str, str]) -> RenderedPage:
    html_content, toc_html = render_markdown(page.body, config.unsafe_html)
    html_content = rewrite_source_links(html_content, page.source, page.output_path, url_by_source)
    explicit = page.params.get("summary") or page.params.get("description") or ""
    return RenderedPage(
        page=page,
        content=html_content,
        toc=toc_html,
        summary=summarize(page.body, html_content, str(explicit), config.unsafe_html),
        words=count_words(strip_tags(html_content)),
    )


def collect_menu(config: SiteConfig, pages: Iterable[Page], name: str = "main") -> tuple[MenuEntry, ...]:
    entries = list(config.menus.get(name, ()))
    for page in pages:
        for ref in page.menus:
            if ref.menu != name:
                continue
            entries.append(
                MenuEntry(
                    name=ref.name,
                    url=f"/{page.url}",
                    weight=ref.weight,
                    identifier=ref.identifier or page.slug,
                )
            )
    return sort_menu(entries)


def main_sections(config: SiteConfig, regular: Sequence[Page]) -> set[str]:
    configured = config.param("mainSections")
    if isinstance(configured, str):
        return {configured}
    if configured:
        return {str(name) for name in configured}
    counts = Counter(page.section for page in regular if page.section)
    if not counts:
        return {""}
    top = max(counts.values())
    return {min(name for name, count in counts.items() if count == top)}


class ArtifactSet:
    def __init__(self) -> None:
        self.items: dict[str, Artifact] = {}

    def add(self, path: str, text: str, kind: str, fmt: str, source: str = "", origin: str = "") -> None:
        if path in self.items:
            owner = self.items[path].source or self.items[path].kind
            raise ConfigError(f"output path {path!r} is already produced by {owner}", path=source or origin or None)
        self.items[path] = Artifact(path=path, data=text.encode("utf-8"), kind=kind, format=fmt, source=source)

    def add_file(self, path: str, data: bytes, kind: str) -> None:
        if path not in self.items:
            self.items[path] = Artifact(path=path, data=data, kind=kind, format="file")

    def ordered(self) -> dict[str, Artifact]:
        return {path: self.items[path] for path in sorted(self.items)}


def emit_listing(
    artifacts: ArtifactSet,
    layout: Layout,
    kind: str,
    base: str,
    title: str,
    items: Sequence[RenderedPage],
    pager_size: int,
    source: str = "",
    **options,
) -> None:
    config = layout.config
    for path, text in render_listing(layout, base, title, items, pager_size, **options).items():
        is_main = path == f"{base}index.html"
        artifacts.add(path, text, kind if is_main else "pager", "HTML", source if is_main else "")
    formats = config.outputs_for(kind)
    if "RSS" in formats:
        artifacts.add(f"{base}index.xml", render_rss(config, title, base, items), kind, "RSS")
    if "JSON" in formats:
        artifacts.add(f"{base}index.json", render_json_index(config, items), kind, "JSON")


def resource_target(path: str, bundles: Mapping[str, Page], hidden: set[str]) -> Optional[str]:
    directory = posixpath.dirname(path)
    while directory:
        if directory in bundles:
            page = bundles[directory]
            return f"{page.url}{path[len(directory) + 1:]}"
        if directory in hidden:
            return None
        directory = posixpath.dirname(directory)
    return path


def build(
    documents: Sequence[Document],
    config: SiteConfig,
    *,
    include_drafts: bool = False,
    template: Optional[str] = None,
    resources: Optional[Mapping[str, bytes]] = None,
    static: Optional[Mapping[str, bytes]] = None,
    workers: int = 0,
) -> BuildResult:
    """Render documents into an in-memory set of artifacts.

    Parsing and Markdown rendering run per document in a thread pool; list
    pages, feeds and indexes are aggregated once every page is rendered.
    Raises ConfigError for malformed input; unresolved internal links are
    returned on ``BuildResult.warnings``.
    """
    workers = resolve_workers(workers)
    seen = Counter(document.path for document in documents)
    duplicates = sorted(path for path, count in seen.items() if count > 1)
    if duplicates:
        raise ConfigError("document is listed more than once", path=duplicates[0])

    ordered = sorted(documents, key=lambda document: document.path)
    parsed = run_parallel(lambda document: parse_document(document, config.taxonomies), ordered, workers)
    hidden = {page.bundle_dir for page in parsed if page.draft and not include_drafts and page.bundle_dir}
    published = [page for page in parsed if include_drafts or not page.draft]
    published = assign_urls(published, config)
    url_by_source = {page.source: page.url for page in published}

    rendered_all = run_parallel(lambda page: render_document(page, config, url_by_source), published, workers)
    by_kind: dict[str, list[RenderedPage]] = {"home": [], "section": [], "page": []}
    for item in rendered_all:
        by_kind[item.page.kind].append(item)
    regular = sorted(by_kind["page"], key=lambda item: item.page.sort_key)
    section_index = {item.page.section: item for item in by_kind["section"]}
    home_index = by_kind["home"][0] if by_kind["home"] else None

    years = [page.date.year for page in published if page.date]
    layout = Layout(
        template=template if template is not None else read_template(),
        config=config,
        menu=collect_menu(config, published),
        year=max(years) if years else None,
    )
    artifacts = ArtifactSet()

    for item in regular:
        page = item.page
        artifacts.add(page.output_path, render_page(layout, item), "page", "HTML", page.source)
        if "MarkDown" in config.outputs_for("page"):
            body = page.body.strip("\n") + "\n"
            artifacts.add(f"{page.url}index.md", body, "page", "MarkDown", page.source)
        if not config.disable_aliases:
            for alias in page.aliases:
                alias_path = url_to_output_path(alias)
                redirect = render_alias(f"{relative_root(alias_path)}/{page.url}")
                artifacts.add(alias_path, redirect, "alias", "HTML", origin=page.source)

    mains = main_sections(config, [item.page for item in regular])
    home_items = [item for item in regular if item.page.section in mains or mains == {""}]
    intro = f'<div class="home-intro">{home_index.content}</div>' if home_index else ""
    emit_listing(
        artifacts,
        layout,
        "home",
        "",
        home_index.page.title if home_index else "",
        home_items,
        config.home_pager_size,
        source=home_index.page.source if home_index else "",
        intro=intro,
        header=render_home_header(config),
        show_posts=parse_bool(config.param("home.posts.enable", True)),
    )

    sections = sorted({item.page.section for item in regular if item.page.section} | set(section_index))
    for section in sections:
        index = section_index.get(section)
        emit_listing(
            artifacts,
            layout,
            "section",
            f"{section}/",
            index.page.title if index else humanize(section),
            [item for item in regular if item.page.section == section],
            config.pager_size,
            source=index.page.source if index else "",
            intro=f'<div class="section-intro">{index.content}</div>' if index and index.content else "",
        )

    for plural in sorted(set(config.taxonomies.values())):
        term_map: dict[str, list[RenderedPage]] = {}
        names: dict[str, str] = {}
        for item in regular:
            for term_slug in dict.fromkeys(slugify(term) for term in item.page.terms.get(plural, ())):
                term = next(t for t in item.page.terms[plural] if slugify(t) == term_slug)
                names.setdefault(term_slug, term)
                term_map.setdefault(names[term_slug], []).append(item)
        artifacts.add(f"{plural}/index.html", render_terms(layout, plural, term_map), "taxonomyTerm", "HTML")
        for term, items in sorted(term_map.items(), key=lambda x: slugify(x[0])):
            emit_listing(artifacts, layout, "taxonomy", f"{plural}/{slugify(term)}/", term, items, config.pager_size)

    bundles = {page.bundle_dir: page for page in published if page.bundle_dir}
    for path, data in sorted((resources or {}).items()):
        target = resource_target(path, bundles, hidden)
        if target is not None:
            artifacts.add_file(target, data, "resource")
    for path, data in sorted((static or {}).items()):
        artifacts.add_file(path, data, "static")

    known = set(artifacts.items)
    warnings = []
    for item in rendered_all:
        warnings.extend(find_broken_links(item.content, item.page.source, item.page.output_path, known, config.base_url))

    return BuildResult(artifacts=artifacts.ordered(), warnings=warnings, pages=published)


def write_site(result: BuildResult, output_dir: Path, site_root: Path, clean: bool = True) -> list[Path]:
    root = output_dir.resolve()
    for artifact in result.artifacts.values():
        if not (output_dir / artifact.path).resolve().is_relative_to(root):
            raise ConfigError(
                "artifact would be written outside the output directory", path=artifact.source or artifact.path
            )
    if clean:
        clean_output_dir(output_dir, site_root)
    written = []
    for artifact in result.artifacts.values():
        target = output_dir / artifact.path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(artifact.data)
        written.append(target)
    return written


def resolve_config_path(site_root: Path, config_path: Optional[Path]) -> Path:
    if config_path is not None:
        return config_path if config_path.is_absolute() else site_root / config_path
    found = find_config(site_root)
    if found is None:
        raise ConfigError("no site configuration found (expected hugo.toml, config.toml, ...)", path=str(site_root))
    return found


def build_site(
    site_root: Path,
    config_path: Optional[Path] = None,
    content_dir: Optional[Path] = None,
    output_dir: Optional[Path] = None,
    static_dir: Optional[Path] = None,
    include_drafts: bool = False,
    clean: bool = True,
    base_url: str = "",
    workers: int = 0,
) -> BuildResult:
    """Load a site from disk, build it and write the output tree."""
    config = load_site_config(resolve_config_path(site_root, config_path), base_url=base_url)
    content_dir = content_dir or site_root / "content"
    static_dir = static_dir or site_root / "static"
    output_dir = output_dir or site_root / "public"
    documents, resources = read_content(content_dir)
    result = build(
        documents,
        config,
        include_drafts=include_drafts,
        template=read_template(site_root, config.theme),
        resources=resources,
        static=read_static(static_dir),
        workers=workers,
    )
    write_site(result, output_dir, site_root, clean=clean)
    return result
