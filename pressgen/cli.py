from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path
from typing import Optional, Sequence

from .builder import BuildResult, build_site, resolve_config_path
from .config import load_config
from .errors import ConfigError
from .server import SiteWatcher, serve
from .utils import parse_bool, parse_int

DEFAULT_PORT = 1313


def resolve_dir(site_root: Path, value: str) -> Path:
    path = Path(value)
    return path if path.is_absolute() else site_root / path


def report(result: BuildResult, elapsed: float, output_dir: Path) -> None:
    for warning in result.warnings:
        print(f"WARN  {warning}", file=sys.stderr)
    pages = sum(1 for artifact in result.artifacts.values() if artifact.format == "HTML")
    print(f"Rendered {len(result.pages)} documents into {pages} pages ({len(result.artifacts)} files).")
    print(f"Build completed in {elapsed:.2f}s.")
    print(f"Site generated in: {output_dir}")


def run_build(args: argparse.Namespace, base_url: str = "") -> tuple[BuildResult, Path]:
    site_root = Path(args.source)
    output_dir = resolve_dir(site_root, args.output)
    start = time.perf_counter()
    result = build_site(
        site_root,
        config_path=Path(args.config) if args.config else None,
        content_dir=resolve_dir(site_root, args.content),
        output_dir=output_dir,
        static_dir=resolve_dir(site_root, args.static),
        include_drafts=args.drafts,
        clean=args.clean,
        base_url=base_url or args.base_url,
        workers=args.build_workers,
    )
    report(result, time.perf_counter() - start, output_dir)
    return result, output_dir


def build_command(args: argparse.Namespace) -> int:
    try:
        run_build(args)
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


def serve_command(args: argparse.Namespace) -> int:
    base_url = args.base_url or f"http://{args.bind}:{args.port}/"
    try:
        _, output_dir = run_build(args, base_url=base_url)
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    watcher = None
    if args.watch:
        site_root = Path(args.source)
        watched = [
            resolve_dir(site_root, args.content),
            resolve_dir(site_root, args.static),
            site_root / "themes",
            resolve_config_path(site_root, Path(args.config) if args.config else None),
        ]

        def rebuild() -> None:
            print("Change detected, rebuilding site.")
            run_build(args, base_url=base_url)

        def on_error(exc: ConfigError) -> None:
            print(f"Error: {exc}", file=sys.stderr)

        watcher = SiteWatcher(site_root, watched, rebuild, on_error=on_error)

    print(f"Serving {output_dir} at {base_url} (Ctrl+C to stop)")
    try:
        serve(output_dir, args.bind, args.port, watcher=watcher, interval=args.poll_interval)
    except KeyboardInterrupt:
        print("Stopped.")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    pre_parser = argparse.ArgumentParser(add_help=False, allow_abbrev=False)
    pre_parser.add_argument("--source", "-s", default=".")
    pre_parser.add_argument("--config", default="")
    pre_args, _ = pre_parser.parse_known_args(argv)
    site_root = Path(pre_args.source)
    try:
        config = load_config(resolve_config_path(site_root, Path(pre_args.config) if pre_args.config else None))
    except ConfigError:
        config = {}

    def cfg_str(key: str, default: str) -> str:
        value = config.get(key)
        return default if value is None else str(value)

    def cfg_bool(key: str, default: bool) -> bool:
        value = config.get(key)
        return default if value is None else parse_bool(value)

    def cfg_int(key: str, default: int) -> int:
        return parse_int(config.get(key), default)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--source", "-s", default=pre_args.source, help="Site root directory.")
    common.add_argument(
        "--config",
        default=pre_args.config,
        help="Site config file (TOML/YAML/JSON). Defaults to hugo.toml, config.toml, ... in the site root.",
    )
    common.add_argument("--content", default=cfg_str("contentDir", "content"), help="Content directory.")
    common.add_argument("--static", default=cfg_str("staticDir", "static"), help="Static files directory.")
    common.add_argument("--output", "-d", default=cfg_str("publishDir", "public"), help="Output directory.")
    common.add_argument("--base-url", "-b", default="", help="Override baseURL from the config file.")
    common.add_argument(
        "--drafts",
        "-D",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("buildDrafts", False),
        help="Include documents marked as draft.",
    )
    common.add_argument(
        "--clean",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("cleanDestinationDir", True),
        help="Clean output directory before writing.",
    )
    common.add_argument(
        "--build-workers",
        default=cfg_int("buildWorkers", 0),
        type=int,
        help="Number of worker threads for parsing/rendering (0 = auto).",
    )

    parser = argparse.ArgumentParser(prog="pressgen", description="Markdown blog site generator.")
    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("build", parents=[common], help="Build the site into the output directory.")
    serve_parser = commands.add_parser("serve", parents=[common], help="Build and preview the site locally.")
    serve_parser.add_argument("--bind", default="127.0.0.1", help="Interface to bind the preview server to.")
    serve_parser.add_argument("--port", "-p", default=DEFAULT_PORT, type=int, help="Port for the preview server.")
    serve_parser.add_argument(
        "--watch",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Rebuild when content, static files or config change.",
    )
    serve_parser.add_argument(
        "--poll-interval", default=1.0, type=float, help="Seconds between change checks when watching."
    )

    args = parser.parse_args(argv)
    if args.command == "serve":
        return serve_command(args)
    return build_command(args)
