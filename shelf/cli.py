#!/usr/bin/env python3
"""
AnimeShelf - command line interface

Scan anime folders, fetch metadata and inspect the library store.
"""
import argparse
import logging
import sys
from pathlib import Path

from .errors import ShelfError
from .images import ImageCache
from .library import IMAGE_CACHE_DIR, Library, ScanResult
from .models import format_episode_number
from .settings import SettingsManager

log = logging.getLogger(__name__)


def print_message(message: str) -> None:
    """Print a progress message from the library."""
    print(f"  {message}")


def print_summary(result: ScanResult) -> None:
    print("-" * 50)
    print(
        f"Units: {result.units} | Saved: {result.persisted} | "
        f"Cached: {result.cache_hits} | Local only: {result.local_only}"
    )
    if result.failed_roots:
        print(f"Unreadable folders: {', '.join(result.failed_roots)}")
    if result.cancelled:
        print("Scan was cancelled before all units were processed.")


def format_size(size_bytes: int) -> str:
    if size_bytes < 1024:
        return f"{size_bytes} B"
    size = size_bytes / 1024
    for unit in ("KB", "MB"):
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_scan(settings: SettingsManager, args: argparse.Namespace) -> int:
    library = Library.from_settings(settings, log_fn=print_message)
    if args.paths:
        for path in args.paths:
            print(f"Scanning: {path}")
            print_summary(library.scan(path))
        return 0

    if not settings.folder_sources():
        print("No folder sources configured. Add one with: animeshelf sources add PATH")
        return 0
    print(f"Scanning {len(settings.folder_sources())} folder source(s)")
    print_summary(library.scan_all())
    return 0


def cmd_sources(settings: SettingsManager, args: argparse.Namespace) -> int:
    if args.action == "list":
        sources = settings.folder_sources()
        if not sources:
            print("No folder sources configured.")
        for source in sources:
            print(source)
        return 0

    if args.path is None:
        print(f"Error: 'sources {args.action}' needs a PATH")
        return 1

    if args.action == "add":
        if not args.path.is_dir():
            print(f"Error: Not a directory: {args.path}")
            return 1
        if settings.add_folder_source(args.path):
            print(f"Added: {args.path}")
        else:
            print(f"Already configured: {args.path}")
    else:
        if settings.remove_folder_source(args.path):
            print(f"Removed: {args.path}")
        else:
            print(f"Not configured: {args.path}")
            return 1
    settings.save()
    return 0


def cmd_show(settings: SettingsManager, args: argparse.Namespace) -> int:
    library = Library.from_settings(settings)
    records = library.store.load()

    if args.series_id is None:
        if not records:
            print("Library is empty.")
        for series_id, record in sorted(records.items()):
            print(f"{series_id:<40} {record.title} [{record.source}, {len(record.file_episodes)} file(s)]")
        return 0

    record = records.get(args.series_id)
    if record is None:
        print(f"Error: Unknown series: {args.series_id}")
        return 1

    print(record.title)
    print(f"  Source:   {record.source}" + (f" #{record.provider_id}" if record.provider_id else ""))
    print(f"  Folder:   {record.folder_path}")
    if record.genres:
        print(f"  Genres:   {', '.join(record.genres)}")
    if record.total_episodes is not None:
        print(f"  Episodes: {record.total_episodes}")
    print()
    for ep in record.episodes:
        marker = "x" if ep.downloaded else " "
        print(f"  [{marker}] {format_episode_number(ep.episode):>5}  {ep.title}")
    return 0


def cmd_delete(settings: SettingsManager, args: argparse.Namespace) -> int:
    library = Library.from_settings(settings)
    if not library.delete_series(args.series_id):
        print(f"Error: Unknown series: {args.series_id}")
        return 1
    print(f"Deleted: {args.series_id}")
    return 0


def cmd_cache(settings: SettingsManager, args: argparse.Namespace) -> int:
    cache = ImageCache(settings.directory / IMAGE_CACHE_DIR)
    if args.action == "clear":
        cache.clear()
        print("Image cache cleared.")
        return 0
    count, size = cache.stats()
    print(f"Cached images: {count} ({format_size(size)})")
    return 0


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="animeshelf",
        description="Organise anime folders with AniList, MyAnimeList and TVDB metadata."
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help="Directory for settings, metadata and caches (default: platform app-data folder)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show detailed debug information"
    )

    sub = parser.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", help="Scan folders and fetch metadata")
    scan.add_argument(
        "paths",
        nargs="*",
        type=Path,
        help="Folders to scan (default: configured folder sources)"
    )
    scan.set_defaults(func=cmd_scan)

    sources = sub.add_parser("sources", help="Manage configured folder sources")
    sources.add_argument("action", choices=["list", "add", "remove"])
    sources.add_argument("path", nargs="?", type=Path, default=None)
    sources.set_defaults(func=cmd_sources)

    show = sub.add_parser("show", help="List the library or show one series")
    show.add_argument("series_id", nargs="?", default=None)
    show.set_defaults(func=cmd_show)

    delete = sub.add_parser("delete", help="Remove a series and its cached images")
    delete.add_argument("series_id")
    delete.set_defaults(func=cmd_delete)

    cache = sub.add_parser("cache", help="Inspect or clear the image cache")
    cache.add_argument("action", choices=["stats", "clear"])
    cache.set_defaults(func=cmd_cache)

    return parser


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parsed_args = build_parser().parse_args(args)

    logging.basicConfig(
        level=logging.DEBUG if parsed_args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = SettingsManager(parsed_args.data_dir)
        return parsed_args.func(settings, parsed_args)
    except ShelfError as e:
        log.debug("Command failed", exc_info=True)
        print(f"Error: {e}")
        return 1
    except KeyboardInterrupt:
        print("Cancelled.")
        return 130


if __name__ == "__main__":
    sys.exit(main())
