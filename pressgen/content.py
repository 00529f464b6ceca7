from __future__ import annotations

import datetime as dt
import html as html_lib
import math
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from types import MappingProxyType
from typing import Any, Mapping, Optional

import yaml

from .config import freeze
from .errors import ConfigError
from .utils import parse_strict_bool, site_relative, slugify

CJK_RE = re.compile(r"[\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uac00-\ud7af]")
WORD_RE = re.compile(r"[A-Za-z0-9]+(?:'[A-Za-z0-9]+)?")
WORDS_PER_MINUTE = 213
DELIMITERS = {"---": "yaml", "+++": "toml"}
EPOCH = dt.datetime(1970, 1, 1)


@dataclass(frozen=True)
class Document:
    """A source document: its path relative to the content root and its raw text."""

    path: str
    text: str

    @classmethod
    def from_file(cls, file_path: Path, content_dir: Path) -> "Document":
        rel = file_path.relative_to(content_dir).as_posix()
        try:
            text = file_path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise ConfigError(f"not valid UTF-8: {exc}", path=rel) from exc
        return cls(path=rel, text=text)


@dataclass(frozen=True)
class MenuRef:
    menu: str
    name: str
    weight: int = 0
    identifier: str = ""


@dataclass(frozen=True)
class Page:
    source: str
    kind: str
    title: str
    body: str
    section: str = ""
    date: Optional[dt.datetime] = None
    draft: bool = False
    slug: str = ""
    dirs: tuple[str, ...] = ()
    explicit_url: str = ""
    weight: int = 0
    terms: Mapping[str, tuple[str, ...]] = field(default_factory=lambda: MappingProxyType({}))
    aliases: tuple[str, ...] = ()
    menus: tuple[MenuRef, ...] = ()
    params: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    url: str = ""

    @property
    def output_path(self) -> str:
        return f"{self.url}index.html" if self.url else "index.html"

    @property
    def bundle_dir(self) -> Optional[str]:
        """Source directory whose resources travel with this page, if it is a bundle."""
        path = PurePosixPath(self.source)
        if path.stem == "index" and len(path.parts) > 1:
            return path.parent.as_posix()
        return None

    @property
    def sort_key(self) -> tuple:
        """Newest first, undated pages last, then title and source path."""
        age = (EPOCH - self.date).total_seconds() if self.date else math.inf
        return (age, self.title.lower(), self.source)


def split_front_matter(text: str, path: str) -> tuple[dict, str]:
    clean_text = text.lstrip("\ufeff")
    lines = clean_text.splitlines()
    if not lines or lines[0].strip() not in DELIMITERS:
        return {}, clean_text

    delimiter = lines[0].strip()
    end = None
    for i in range(1, len(lines)):
        if lines[i].strip() == delimiter:
            end = i
            break
    if end is None:
        raise ConfigError(f"front matter is missing its closing {delimiter!r} delimiter", path=path, field="front matter")

    raw = "\n".join(lines[1:end])
    # TOMLDecodeError is a ValueError, and PyYAML raises a bare ValueError for dates like 2025-13-01.
    try:
        if DELIMITERS[delimiter] == "yaml":
            meta = yaml.safe_load(raw)
        else:
            meta = tomllib.loads(raw)
    except (yaml.YAMLError, ValueError) as exc:
        raise ConfigError(f"invalid front matter: {exc}", path=path, field="front matter") from exc
    if meta is None:
        meta = {}
    if not isinstance(meta, dict):
        raise ConfigError("front matter must be a mapping", path=path, field="front matter")
    body = "\n".join(lines[end + 1 :])
    return {str(key).lower(): value for key, value in meta.items()}, body


def parse_date(value: object, path: str, field_name: str = "date") -> Optional[dt.datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, dt.datetime):
        parsed = value
    elif isinstance(value, dt.date):
        parsed = dt.datetime.combine(value, dt.time())
    elif isinstance(value, str):
        try:
            parsed = dt.datetime.fromisoformat(value.strip())
        except ValueError as exc:
            raise ConfigError(f"unparseable date {value!r}", path=path, field=field_name) from exc
    else:
        raise ConfigError(f"unparseable date {value!r}", path=path, field=field_name)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(dt.timezone.utc).replace(tzinfo=None)
    return parsed


def parse_list(value: object, path: str, field_name: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        raise ConfigError("expected a list of strings", path=path, field=field_name)
    items = [str(item).strip() for item in value if item is not None]
    return tuple(item for item in items if item)


def parse_menu_refs(value: object, path: str, title: str, weight: int) -> tuple[MenuRef, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        value = [value]
    if isinstance(value, (list, tuple)):
        return tuple(MenuRef(menu=str(name), name=title, weight=weight) for name in value)
    if not isinstance(value, dict):
        raise ConfigError("menu must be a name, a list of names or a table", path=path, field="menu")
    refs = []
    for menu_name, options in sorted(value.items(), key=lambda x: str(x[0])):
        options = options or {}
        if not isinstance(options, dict):
            raise ConfigError("menu options must be a table", path=path, field=f"menu.{menu_name}")
        entry_weight = options.get("weight", weight)
        if isinstance(entry_weight, bool) or not isinstance(entry_weight, int):
            raise ConfigError("menu weight must be an integer", path=path, field=f"menu.{menu_name}.weight")
        refs.append(
            MenuRef(
                menu=str(menu_name),
                name=str(options.get("name") or title),
                weight=entry_weight,
                identifier=str(options.get("identifier") or ""),
            )
        )
    return tuple(refs)


def humanize(stem: str) -> str:
    words = re.sub(r"[-_]+", " ", stem).strip()
    return words[:1].upper() + words[1:] if words else "Untitled"


def locate(path: str) -> tuple[str, str, tuple[str, ...], str]:
    """Return (kind, section, directories, default slug) for a content path."""
    parts = PurePosixPath(path).parts
    stem = PurePosixPath(path).stem
    if stem == "_index" and len(parts) == 1:
        return "home", "", (), ""
    if stem == "_index" and len(parts) == 2:
        return "section", parts[0], (), parts[0]
    if stem == "_index":
        raise ConfigError("nested sections are not supported, _index.md must sit directly in a section", path=path)
    if stem == "index" and len(parts) > 1:
        dirs = tuple(parts[:-2])
        slug = parts[-2]
    else:
        dirs = tuple(parts[:-1])
        slug = stem
    section = dirs[0] if dirs else ""
    return "page", section, dirs, slug


def parse_document(document: Document, taxonomies: Mapping[str, str]) -> Page:
    path = document.path
    meta, body = split_front_matter(document.text, path)
    kind, section, dirs, default_slug = locate(path)

    title = meta.get("title")
    if title is None or title == "":
        title = humanize(default_slug or section) if kind != "home" else ""
    elif isinstance(title, (dict, list)):
        raise ConfigError("title must be a string", path=path, field="title")
    title = str(title)

    draft = parse_strict_bool(meta.get("draft", False))
    if draft is None:
        raise ConfigError(f"draft must be true or false, got {meta.get('draft')!r}", path=path, field="draft")

    weight = meta.get("weight", 0)
    if isinstance(weight, bool) or not isinstance(weight, int):
        raise ConfigError("weight must be an integer", path=path, field="weight")

    slug = meta.get("slug")
    slug = slugify(str(slug)) if slug else slugify(default_slug) if default_slug else ""

    explicit_url = meta.get("url") or ""
    if explicit_url and not isinstance(explicit_url, str):
        raise ConfigError("url must be a string", path=path, field="url")
    explicit_url = site_relative(explicit_url)
    if explicit_url is None:
        raise ConfigError(f"url {meta.get('url')!r} points outside the site", path=path, field="url")

    aliases = []
    for alias in parse_list(meta.get("aliases"), path, "aliases"):
        target = site_relative(alias)
        if target is None:
            raise ConfigError(f"alias {alias!r} points outside the site", path=path, field="aliases")
        aliases.append(target)

    terms = {}
    for plural in taxonomies.values():
        values = parse_list(meta.get(plural), path, plural)
        if values:
            terms[plural] = values

    return Page(
        source=path,
        kind=kind,
        title=title,
        body=body,
        section=section,
        date=parse_date(meta.get("date"), path),
        draft=draft,
        slug=slug,
        dirs=dirs,
        explicit_url=explicit_url,
        weight=weight,
        terms=MappingProxyType(terms),
        aliases=tuple(aliases),
        menus=parse_menu_refs(meta.get("menu"), path, title, weight),
        params=freeze(meta),
    )


def count_words(text: str) -> int:
    text = html_lib.unescape(text)
    cjk_count = len(CJK_RE.findall(text))
    text = CJK_RE.sub(" ", text)
    word_count = len(WORD_RE.findall(text))
    return cjk_count + word_count


def reading_time(words: int) -> int:
    return max(1, math.ceil(words / WORDS_PER_MINUTE)) if words else 0
