from __future__ import annotations

import datetime as dt
import hashlib
import posixpath
import re
import shutil
from pathlib import Path
from typing import Optional

from .errors import ConfigError

TRUE_WORDS = {"1", "true", "yes", "y", "on"}
FALSE_WORDS = {"0", "false", "no", "n", "off", ""}

MONTHS = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)
WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
GO_LAYOUT_RE = re.compile(
    r"January|Jan|Monday|Mon|2006|-07:00|-0700|Z07:00|MST|PM|pm|_2|01|02|03|04|05|06|15|1|2|3|4|5"
)


def parse_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in TRUE_WORDS
    return False


def parse_strict_bool(value: object) -> Optional[bool]:
    """Like parse_bool, but returns None for values that are not recognizably boolean."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0 if value in (0, 1) else None
    if isinstance(value, str):
        word = value.strip().lower()
        if word in TRUE_WORDS:
            return True
        if word in FALSE_WORDS:
            return False
    return None


def parse_int(value: object, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def slugify(text: str, fallback: str = "page") -> str:
    text = text.lower()
    text = re.sub(r"[^\w]+", "-", text, flags=re.UNICODE)
    text = text.strip("-_").replace("_", "-")
    return text or fallback


def join_url(base: str, path: str) -> str:
    base = base.rstrip("/")
    path = path.lstrip("/")
    if not path:
        return base + "/"
    return f"{base}/{path}"


def relative_root(output_path: str) -> str:
    """Relative prefix leading from an artifact back to the site root."""
    depth = output_path.count("/")
    if depth == 0:
        return "."
    return "/".join([".."] * depth)


def site_relative(path: str) -> Optional[str]:
    """Normalize "/old/../new/" to "new", or None when the path climbs out of the site root."""
    path = path.strip().replace("\\", "/").strip("/")
    if not path:
        return ""
    path = posixpath.normpath(path)
    if path == ".":
        return ""
    if path == ".." or path.startswith("../"):
        return None
    return path


def url_to_output_path(url: str) -> str:
    """Map a site URL path ("posts/hello/") to the artifact that serves it."""
    url = url.strip("/")
    if not url:
        return "index.html"
    if posixpath.splitext(url)[1]:
        return url
    return f"{url}/index.html"


def rfc822_date(value: dt.datetime) -> str:
    value = value.replace(tzinfo=dt.timezone.utc)
    return f"{WEEKDAYS[value.weekday()][:3]}, {value.day:02d} {MONTHS[value.month - 1][:3]} " + value.strftime(
        "%Y %H:%M:%S %z"
    )


def iso_date(value: dt.datetime) -> str:
    value = value.replace(tzinfo=dt.timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


def format_date(value: dt.datetime, layout: str) -> str:
    """Format a datetime using a Go reference layout such as "2006-01-02" or "02-01-2006"."""
    hour12 = value.hour % 12 or 12

    def repl(match: re.Match) -> str:
        token = match.group(0)
        if token == "January":
            return MONTHS[value.month - 1]
        if token == "Jan":
            return MONTHS[value.month - 1][:3]
        if token == "Monday":
            return WEEKDAYS[value.weekday()]
        if token == "Mon":
            return WEEKDAYS[value.weekday()][:3]
        if token == "2006":
            return f"{value.year:04d}"
        if token == "06":
            return f"{value.year % 100:02d}"
        if token == "01":
            return f"{value.month:02d}"
        if token == "1":
            return str(value.month)
        if token == "02":
            return f"{value.day:02d}"
        if token == "_2":
            return f"{value.day:>2d}"
        if token == "2":
            return str(value.day)
        if token == "15":
            return f"{value.hour:02d}"
        if token == "03":
            return f"{hour12:02d}"
        if token == "3":
            return str(hour12)
        if token == "04":
            return f"{value.minute:02d}"
        if token == "4":
            return str(value.minute)
        if token == "05":
            return f"{value.second:02d}"
        if token == "5":
            return str(value.second)
        if token == "PM":
            return "PM" if value.hour >= 12 else "AM"
        if token == "pm":
            return "pm" if value.hour >= 12 else "am"
        if token == "MST":
            return "UTC"
        if token == "-0700":
            return "+0000"
        return "+00:00" if token == "-07:00" else "Z"

    return GO_LAYOUT_RE.sub(repl, layout)


def hash_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def hash_text(text: str) -> str:
    return hash_bytes(text.encode("utf-8"))


def list_files(root: Path) -> list[Path]:
    if not root.exists():
        return []
    return sorted((path for path in root.rglob("*") if path.is_file()), key=lambda p: p.as_posix())


def hash_paths(paths: list[Path], base: Optional[Path] = None) -> str:
    digest = hashlib.sha256()
    for path in sorted(paths, key=lambda p: p.as_posix()):
        rel = path
        if base is not None:
            try:
                rel = path.relative_to(base)
            except ValueError:
                rel = path
        digest.update(rel.as_posix().encode("utf-8"))
        digest.update(b"\0")
        try:
            digest.update(path.read_bytes())
        except FileNotFoundError:
            digest.update(b"<missing>")
        digest.update(b"\0")
    return digest.hexdigest()


def clean_output_dir(output_dir: Path, project_root: Path) -> None:
    if not output_dir.exists():
        return
    output_resolved = output_dir.resolve()
    root_resolved = project_root.resolve()
    if output_resolved == root_resolved:
        raise ConfigError("refusing to clean the site root", path=str(output_dir), field="output")
    if not output_resolved.is_relative_to(root_resolved):
        raise ConfigError(
            "refusing to clean an output directory outside the site root", path=str(output_dir), field="output"
        )
    shutil.rmtree(output_dir)
