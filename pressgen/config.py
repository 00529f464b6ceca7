from __future__ import annotations

import json
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional

import yaml

from .errors import ConfigError
from .utils import parse_bool, parse_int

CONFIG_NAMES = (
    "hugo.toml",
    "config.toml",
    "hugo.yaml",
    "hugo.yml",
    "config.yaml",
    "config.yml",
    "hugo.json",
    "config.json",
)

# Canonical spelling of every output format, keyed by its lower-case name.
OUTPUT_FORMATS = {"html": "HTML", "rss": "RSS", "json": "JSON", "markdown": "MarkDown"}
CONTENT_KINDS = ("home", "page", "section", "taxonomy", "taxonomyTerm")
SUPPORTED_FORMATS = {
    "home": {"HTML", "RSS", "JSON"},
    "page": {"HTML", "MarkDown"},
    "section": {"HTML", "RSS", "JSON"},
    "taxonomy": {"HTML", "RSS", "JSON"},
    "taxonomyTerm": {"HTML"},
}
DEFAULT_OUTPUTS = {
    "home": ("HTML", "RSS"),
    "page": ("HTML",),
    "section": ("HTML", "RSS"),
    "taxonomy": ("HTML", "RSS"),
    "taxonomyTerm": ("HTML",),
}
DEFAULT_TAXONOMIES = {"tag": "tags", "category": "categories"}
DEFAULT_DATE_FORMAT = "2006-01-02"


def load_config(path: Path) -> dict:
    """Read a TOML, YAML or JSON config file into a plain dict."""
    if not path.exists():
        raise ConfigError("config file not found", path=str(path))
    suffix = path.suffix.lower()
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ConfigError(f"not valid UTF-8: {exc}", path=str(path)) from exc
    if suffix == ".toml":
        try:
            data = tomllib.loads(text)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"invalid TOML: {exc}", path=str(path)) from exc
    elif suffix in {".yml", ".yaml"}:
        try:
            data = yaml.safe_load(text)
        except (yaml.YAMLError, ValueError) as exc:
            raise ConfigError(f"invalid YAML: {exc}", path=str(path)) from exc
        if data is None:
            data = {}
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"invalid JSON: {exc}", path=str(path)) from exc
    if not isinstance(data, dict):
        raise ConfigError("config must be a mapping", path=str(path))
    return data


def find_config(site_root: Path) -> Optional[Path]:
    for name in CONFIG_NAMES:
        candidate = site_root / name
        if candidate.exists():
            return candidate
    return None


def freeze(value: Any) -> Any:
    """Recursively turn dicts into read-only mappings and lists into tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({str(key): freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(item) for item in value)
    return value


def lookup(tree: Mapping, dotted: str, default: Any = None) -> Any:
    """Fetch a nested value, e.g. lookup(params, "home.profile.title")."""
    node: Any = tree
    for part in dotted.split("."):
        if not isinstance(node, Mapping) or part not in node:
            return default
        node = node[part]
    return node


@dataclass(frozen=True)
class MenuEntry:
    name: str
    url: str
    weight: int = 0
    identifier: str = ""
    pre: str = ""
    post: str = ""
    title: str = ""

    @property
    def sort_key(self) -> tuple:
        return (self.weight, self.name.lower(), self.identifier)


def sort_menu(entries) -> tuple[MenuEntry, ...]:
    return tuple(sorted(entries, key=lambda entry: entry.sort_key))


@dataclass(frozen=True)
class SiteConfig:
    """Immutable site configuration, passed explicitly to build().

    Recognized top-level keys: baseURL, languageCode, languageName, title,
    theme, menu.<name> (list of {weight, identifier, name, url, pre, post,
    title}), params (free-form tree), outputs (kind -> format list),
    taxonomies, pagination.{pagerSize, path, disableAliases}, paginate,
    markup.goldmark.renderer.unsafe. Anything else is ignored.
    """

    base_url: str = "/"
    language_code: str = "en-us"
    language_name: str = ""
    title: str = ""
    theme: str = ""
    menus: Mapping[str, tuple[MenuEntry, ...]] = field(default_factory=lambda: MappingProxyType({}))
    params: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    outputs: Mapping[str, tuple[str, ...]] = field(default_factory=lambda: MappingProxyType(dict(DEFAULT_OUTPUTS)))
    taxonomies: Mapping[str, str] = field(default_factory=lambda: MappingProxyType(dict(DEFAULT_TAXONOMIES)))
    pager_size: int = 10
    pagination_path: str = "page"
    disable_aliases: bool = False
    unsafe_html: bool = False
    source: str = ""

    @classmethod
    def from_mapping(cls, data: Mapping, source: str = "") -> "SiteConfig":
        if not isinstance(data, Mapping):
            raise ConfigError("config must be a mapping", path=source or None)

        pagination = data.get("pagination") or {}
        if not isinstance(pagination, Mapping):
            raise ConfigError("pagination must be a table", path=source or None, field="pagination")
        pager_size = parse_int(pagination.get("pagerSize", data.get("paginate")), 10)
        if pager_size < 1:
            raise ConfigError("pager size must be positive", path=source or None, field="pagination.pagerSize")

        params = data.get("params") or {}
        if not isinstance(params, Mapping):
            raise ConfigError("params must be a table", path=source or None, field="params")

        taxonomies = data.get("taxonomies")
        if taxonomies is None:
            taxonomies = DEFAULT_TAXONOMIES
        if not isinstance(taxonomies, Mapping):
            raise ConfigError("taxonomies must be a table", path=source or None, field="taxonomies")

        return cls(
            base_url=str(data.get("baseURL") or "/"),
            language_code=str(data.get("languageCode") or "en-us"),
            language_name=str(data.get("languageName") or ""),
            title=str(data.get("title") or ""),
            theme=str(data.get("theme") or ""),
            menus=parse_menus(data.get("menu") or data.get("menus") or {}, source),
            params=freeze(params),
            outputs=parse_outputs(data.get("outputs") or {}, source),
            taxonomies=MappingProxyType({str(k): str(v) for k, v in taxonomies.items()}),
            pager_size=pager_size,
            pagination_path=str(pagination.get("path") or "page").strip("/") or "page",
            disable_aliases=parse_bool(pagination.get("disableAliases", False)),
            unsafe_html=parse_bool(lookup(data, "markup.goldmark.renderer.unsafe", False)),
            source=source,
        )

    @property
    def menu(self) -> tuple[MenuEntry, ...]:
        return self.menus.get("main", ())

    def param(self, dotted: str, default: Any = None) -> Any:
        return lookup(self.params, dotted, default)

    def outputs_for(self, kind: str) -> tuple[str, ...]:
        formats = self.outputs.get(kind, DEFAULT_OUTPUTS[kind])
        if "HTML" not in formats:
            formats = ("HTML",) + tuple(formats)
        return formats

    @property
    def description(self) -> str:
        return str(self.param("description") or "")

    @property
    def date_format(self) -> str:
        return str(self.param("dateFormat") or DEFAULT_DATE_FORMAT)

    @property
    def feed_limit(self) -> int:
        return parse_int(self.param("home.rss"), -1)

    @property
    def home_pager_size(self) -> int:
        size = parse_int(self.param("home.posts.paginate"), self.pager_size)
        return size if size > 0 else self.pager_size


def parse_menus(raw: object, source: str) -> Mapping[str, tuple[MenuEntry, ...]]:
    if not isinstance(raw, Mapping):
        raise ConfigError("menu must be a table of menus", path=source or None, field="menu")
    menus = {}
    for menu_name, items in raw.items():
        if not isinstance(items, list):
            raise ConfigError("menu must be a list of entries", path=source or None, field=f"menu.{menu_name}")
        entries = []
        for index, item in enumerate(items):
            field_name = f"menu.{menu_name}[{index}]"
            if not isinstance(item, Mapping):
                raise ConfigError("menu entry must be a table", path=source or None, field=field_name)
            name = str(item.get("name") or item.get("identifier") or "").strip()
            if not name:
                raise ConfigError("menu entry needs a name", path=source or None, field=f"{field_name}.name")
            weight = item.get("weight", 0)
            if isinstance(weight, bool) or not isinstance(weight, int):
                raise ConfigError("menu weight must be an integer", path=source or None, field=f"{field_name}.weight")
            entries.append(
                MenuEntry(
                    name=name,
                    url=str(item.get("url") or "/"),
                    weight=weight,
                    identifier=str(item.get("identifier") or name.lower()),
                    pre=str(item.get("pre") or ""),
                    post=str(item.get("post") or ""),
                    title=str(item.get("title") or ""),
                )
            )
        menus[str(menu_name)] = sort_menu(entries)
    return MappingProxyType(menus)


def parse_outputs(raw: object, source: str) -> Mapping[str, tuple[str, ...]]:
    if not isinstance(raw, Mapping):
        raise ConfigError("outputs must be a table", path=source or None, field="outputs")
    outputs = dict(DEFAULT_OUTPUTS)
    for kind, formats in raw.items():
        if kind not in CONTENT_KINDS:
            raise ConfigError(f"unknown content kind {kind!r}", path=source or None, field=f"outputs.{kind}")
        if isinstance(formats, str):
            formats = [formats]
        if not isinstance(formats, list):
            raise ConfigError("output formats must be a list", path=source or None, field=f"outputs.{kind}")
        resolved = []
        for name in formats:
            canonical = OUTPUT_FORMATS.get(str(name).strip().lower())
            if canonical is None:
                raise ConfigError(f"unknown output format {name!r}", path=source or None, field=f"outputs.{kind}")
            if canonical not in SUPPORTED_FORMATS[kind]:
                raise ConfigError(
                    f"output format {canonical} is not supported for {kind} pages",
                    path=source or None,
                    field=f"outputs.{kind}",
                )
            if canonical not in resolved:
                resolved.append(canonical)
        outputs[kind] = tuple(resolved)
    return MappingProxyType(outputs)


def load_site_config(path: Path, base_url: str = "") -> SiteConfig:
    data = load_config(path)
    if base_url:
        data["baseURL"] = base_url
    return SiteConfig.from_mapping(data, source=str(path))
