from __future__ import annotations

import threading
import urllib.request
from pathlib import Path

import pytest

from pressgen.errors import ConfigError
from pressgen.server import SiteWatcher, make_server


def test_watcher_rebuilds_on_change(tmp_path: Path) -> None:
    content = tmp_path / "content"
    content.mkdir()
    post = content / "a.md"
    post.write_text("first", encoding="utf-8")
    calls = []

    watcher = SiteWatcher(tmp_path, [content, tmp_path / "hugo.toml"], lambda: calls.append(1))

    assert watcher.check() is False
    post.write_text("second", encoding="utf-8")
    assert watcher.check() is True
    assert watcher.check() is False
    (content / "b.md").write_text("new", encoding="utf-8")
    assert watcher.check() is True
    assert len(calls) == 2


def test_watcher_reports_build_errors(tmp_path: Path) -> None:
    config = tmp_path / "hugo.toml"
    config.write_text("title = 'a'\n", encoding="utf-8")
    errors = []

    def rebuild() -> None:
        raise ConfigError("bad config", path=str(config))

    watcher = SiteWatcher(tmp_path, [config], rebuild, on_error=errors.append)
    config.write_text("title = \n", encoding="utf-8")

    assert watcher.check() is True
    assert [str(error) for error in errors] == [f"{config}: bad config"]


def test_watcher_without_handler_raises(tmp_path: Path) -> None:
    config = tmp_path / "hugo.toml"
    config.write_text("a", encoding="utf-8")

    def rebuild() -> None:
        raise ConfigError("broken")

    watcher = SiteWatcher(tmp_path, [config], rebuild)
    config.write_text("b", encoding="utf-8")

    with pytest.raises(ConfigError):
        watcher.check()


def test_make_server_serves_output(tmp_path: Path) -> None:
    (tmp_path / "posts").mkdir()
    (tmp_path / "posts" / "index.html").write_text("<h1>Posts</h1>", encoding="utf-8")
    server = make_server(tmp_path, "127.0.0.1", 0)
    port = server.server_address[1]
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        with urllib.request.urlopen(f"http://127.0.0.1:{port}/posts/", timeout=5) as response:
            body = response.read().decode("utf-8")
    finally:
        server.shutdown()
        server.server_close()

    assert body == "<h1>Posts</h1>"
