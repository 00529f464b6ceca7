from __future__ import annotations

import dataclasses
import json
from pathlib import Path

import pytest

from pressgen.config import SiteConfig, find_config, load_config, load_site_config
from pressgen.errors import ConfigError


def test_load_hugo_config(hugo_config_path: Path) -> None:
    config = load_site_config(hugo_config_path)

    assert config.base_url == "https://kirillvolkov.com"
    assert config.language_code == "en-us"
    assert config.language_name == "English"
    assert config.title == "Kiryl Volkau"
    assert config.theme == "LoveIt"
    assert [entry.identifier for entry in config.menu] == ["home", "post"]
    assert config.outputs["home"] == ("HTML", "RSS", "JSON")
    assert config.outputs["page"] == ("HTML", "MarkDown")
    assert config.outputs["taxonomyTerm"] == ("HTML",)
    assert config.param("home.profile.subtitle").startswith("Senior Software Engineer")
    assert config.feed_limit == 10
    assert config.pager_size == 10
    assert config.home_pager_size == 6
    assert config.unsafe_html is True
    assert config.date_format == "02-01-2006"
    assert config.source == str(hugo_config_path)


def test_base_url_override(hugo_config_path: Path) -> None:
    config = load_site_config(hugo_config_path, base_url="http://127.0.0.1:1313/")

    assert config.base_url == "http://127.0.0.1:1313/"


def test_menu_sorted_by_weight() -> None:
    config = SiteConfig.from_mapping(
        {
            "menu": {
                "main": [
                    {"name": "Gamma", "weight": 3, "url": "/c/"},
                    {"name": "Alpha", "weight": 1, "url": "/"},
                    {"name": "Beta", "weight": 2, "url": "/b/"},
                ]
            }
        }
    )

    assert [entry.name for entry in config.menu] == ["Alpha", "Beta", "Gamma"]


def test_menu_weight_must_be_integer() -> None:
    with pytest.raises(ConfigError) as excinfo:
        SiteConfig.from_mapping({"menu": {"main": [{"name": "Home", "weight": "first"}]}}, source="hugo.toml")

    assert excinfo.value.field == "menu.main[0].weight"


def test_unknown_output_format() -> None:
    with pytest.raises(ConfigError) as excinfo:
        SiteConfig.from_mapping({"outputs": {"home": ["HTML", "AMP"]}}, source="hugo.toml")

    assert excinfo.value.field == "outputs.home"
    assert "hugo.toml" in str(excinfo.value)
    assert "AMP" in str(excinfo.value)


def test_unknown_content_kind() -> None:
    with pytest.raises(ConfigError):
        SiteConfig.from_mapping({"outputs": {"blog": ["HTML"]}})


def test_unsupported_format_for_kind() -> None:
    with pytest.raises(ConfigError):
        SiteConfig.from_mapping({"outputs": {"home": ["MarkDown"]}})


def test_output_names_are_case_insensitive() -> None:
    config = SiteConfig.from_mapping({"outputs": {"page": ["html", "markdown"]}})

    assert config.outputs["page"] == ("HTML", "MarkDown")


def test_html_is_always_produced() -> None:
    config = SiteConfig.from_mapping({"outputs": {"section": ["RSS"]}})

    assert config.outputs_for("section") == ("HTML", "RSS")


def test_config_is_immutable() -> None:
    config = SiteConfig.from_mapping({"params": {"social": {"GitHub": "https://github.com/x"}, "keywords": ["a", "b"]}})

    with pytest.raises(dataclasses.FrozenInstanceError):
        config.title = "changed"  # type: ignore[misc]
    with pytest.raises(TypeError):
        config.params["social"]["GitHub"] = "elsewhere"  # type: ignore[index]
    assert config.param("keywords") == ("a", "b")


def test_pager_size_must_be_positive() -> None:
    with pytest.raises(ConfigError):
        SiteConfig.from_mapping({"pagination": {"pagerSize": 0}})


def test_load_yaml_and_json(tmp_path: Path) -> None:
    yaml_path = tmp_path / "config.yaml"
    yaml_path.write_text("baseURL: https://example.com/\ntitle: Example\n", encoding="utf-8")
    json_path = tmp_path / "hugo.json"
    json_path.write_text(json.dumps({"title": "From JSON"}), encoding="utf-8")

    assert load_config(yaml_path)["title"] == "Example"
    assert load_config(json_path)["title"] == "From JSON"


def test_invalid_toml_names_file(tmp_path: Path) -> None:
    path = tmp_path / "hugo.toml"
    path.write_text("title = \n", encoding="utf-8")

    with pytest.raises(ConfigError) as excinfo:
        load_config(path)

    assert excinfo.value.path == str(path)


def test_missing_config_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_config(tmp_path / "hugo.toml")


def test_find_config_prefers_hugo_toml(tmp_path: Path) -> None:
    (tmp_path / "config.yaml").write_text("title: yaml\n", encoding="utf-8")
    assert find_config(tmp_path) == tmp_path / "config.yaml"

    (tmp_path / "hugo.toml").write_text("title = 'toml'\n", encoding="utf-8")
    assert find_config(tmp_path) == tmp_path / "hugo.toml"


def test_config_must_be_utf8(tmp_path: Path) -> None:
    path = tmp_path / "hugo.toml"
    path.write_bytes(b'title = "\xff\xfe"\n')

    with pytest.raises(ConfigError) as excinfo:
        load_config(path)

    assert excinfo.value.path == str(path)


def test_yaml_config_with_impossible_date(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("title: x\nlaunched: 2025-02-30\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(path)
