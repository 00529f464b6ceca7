from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from pressgen.content import Document

FIXTURES = Path(__file__).parent / "fixtures"


def make_document(path: str, title: str, body: str = "Body text.", **meta: object) -> Document:
    lines = ["---", f"title: {title}"]
    lines.extend(f"{key}: {value}" for key, value in meta.items())
    lines.extend(["---", body])
    return Document(path, "\n".join(lines) + "\n")


@pytest.fixture
def hugo_config_path() -> Path:
    return FIXTURES / "hugo.toml"


@pytest.fixture
def site_dir(tmp_path: Path) -> Callable[[dict[str, str]], Path]:
    """Lay out a site under tmp_path from a mapping of relative path -> text."""

    def create(files: dict[str, str]) -> Path:
        for rel, text in files.items():
            target = tmp_path / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(text, encoding="utf-8")
        return tmp_path

    return create
