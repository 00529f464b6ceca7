from __future__ import annotations

import functools
import threading
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Callable, Optional, Sequence

from .errors import ConfigError
from .utils import hash_paths, list_files


class SiteWatcher:
    """Polls the site sources and rebuilds when their fingerprint changes."""

    def __init__(
        self,
        site_root: Path,
        watched: Sequence[Path],
        rebuild: Callable[[], object],
        on_error: Optional[Callable[[ConfigError], None]] = None,
    ) -> None:
        self.site_root = site_root
        self.watched = list(watched)
        self.rebuild = rebuild
        self.on_error = on_error
        self.last = self.fingerprint()

    def fingerprint(self) -> str:
        files: list[Path] = []
        for path in self.watched:
            if path.is_dir():
                files.extend(list_files(path))
            elif path.exists():
                files.append(path)
        return hash_paths(files, self.site_root)

    def check(self) -> bool:
        current = self.fingerprint()
        if current == self.last:
            return False
        self.last = current
        try:
            self.rebuild()
        except ConfigError as exc:
            if self.on_error is None:
                raise
            self.on_error(exc)
        return True

    def watch(self, stop: threading.Event, interval: float) -> None:
        while not stop.wait(interval):
            self.check()


def make_server(output_dir: Path, bind: str, port: int) -> ThreadingHTTPServer:
    handler = functools.partial(SimpleHTTPRequestHandler, directory=str(output_dir))
    return ThreadingHTTPServer((bind, port), handler)


def serve(
    output_dir: Path,
    bind: str = "127.0.0.1",
    port: int = 1313,
    watcher: Optional[SiteWatcher] = None,
    interval: float = 1.0,
) -> None:
    server = make_server(output_dir, bind, port)
    stop = threading.Event()
    if watcher is not None:
        thread = threading.Thread(target=watcher.watch, args=(stop, interval), daemon=True)
        thread.start()
    try:
        server.serve_forever()
    finally:
        stop.set()
        server.server_close()
