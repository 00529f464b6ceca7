from __future__ import annotations

from pathlib import Path

from pressgen.cli import main

CONFIG = 'baseURL = "https://example.com/"\ntitle = "Example"\n'


def test_build_command(site_dir, capsys) -> None:
    site = site_dir({"hugo.toml": CONFIG, "content/posts/hello.md": "---\ntitle: Hello\n---\n# Hi\n"})

    code = main(["build", "--source", str(site)])

    assert code == 0
    assert (site / "public/posts/hello/index.html").exists()
    out = capsys.readouterr().out
    assert "Build completed" in out
    assert "Rendered 1 documents" in out


def test_build_output_and_drafts_options(site_dir) -> None:
    site = site_dir(
        {
            "hugo.toml": CONFIG,
            "content/posts/wip.md": "---\ntitle: WIP\ndraft: true\n---\nBody\n",
        }
    )

    assert main(["build", "-s", str(site), "-d", "out"]) == 0
    assert not (site / "out/posts/wip/index.html").exists()

    assert main(["build", "-s", str(site), "-d", "out", "--drafts"]) == 0
    assert (site / "out/posts/wip/index.html").exists()


def test_config_defaults_feed_options(site_dir) -> None:
    site = site_dir(
        {
            "hugo.toml": CONFIG + 'publishDir = "site"\nbuildDrafts = true\n',
            "content/posts/wip.md": "---\ntitle: WIP\ndraft: true\n---\nBody\n",
        }
    )

    assert main(["build", "--source", str(site)]) == 0
    assert (site / "site/posts/wip/index.html").exists()


def test_malformed_front_matter_exits_with_one(site_dir, capsys) -> None:
    site = site_dir({"hugo.toml": CONFIG, "content/posts/broken.md": "---\ntitle: Broken\n\nno closing line\n"})

    code = main(["build", "--source", str(site)])

    assert code == 1
    assert "posts/broken.md" in capsys.readouterr().err
    assert not (site / "public").exists()


def test_unknown_output_format_exits_with_one(site_dir, capsys) -> None:
    site = site_dir({"hugo.toml": CONFIG + '[outputs]\nhome = ["HTML", "AMP"]\n', "content/a.md": "A\n"})

    assert main(["build", "--source", str(site)]) == 1
    assert "AMP" in capsys.readouterr().err


def test_missing_config_exits_with_one(tmp_path: Path, capsys) -> None:
    assert main(["build", "--source", str(tmp_path)]) == 1
    assert "no site configuration found" in capsys.readouterr().err


def test_broken_link_is_reported_but_not_fatal(site_dir, capsys) -> None:
    site = site_dir({"hugo.toml": CONFIG, "content/posts/a.md": "---\ntitle: A\n---\n[gone](/nowhere/)\n"})

    code = main(["build", "--source", str(site)])

    assert code == 0
    assert "WARN  posts/a.md: unresolved link to /nowhere/" in capsys.readouterr().err


def test_undecodable_config_exits_with_one(tmp_path: Path, capsys) -> None:
    (tmp_path / "hugo.toml").write_bytes(b'title = "\xff\xfe"\n')
    (tmp_path / "content").mkdir()

    assert main(["build", "--source", str(tmp_path)]) == 1
    assert "not valid UTF-8" in capsys.readouterr().err
