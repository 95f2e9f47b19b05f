from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal

from dotenv import load_dotenv

from .content_cache import ContentCache
from .downloader.media_cache import unresolved_assets
from .registry import ResourceRegistry
from .sync.poller import SyncPoller
from .utils.version_gate import current_version

load_dotenv()

DEFAULT_CACHE_DIR = os.path.join(os.path.expanduser("~"), ".cache", "trailguide")


def _env_str(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or value == "":
        return None
    return value


def _env_int(name: str) -> int | None:
    value = _env_str(name)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _env_bool(name: str) -> bool:
    value = _env_str(name)
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Mirror field-guide content into an offline cache.")
    parser.add_argument("--api-url", default=_env_str("TRAILGUIDE_API_URL"), help="Base URL of the content backend")
    parser.add_argument("--api-key", default=_env_str("TRAILGUIDE_API_KEY"), help="Bearer token for the content backend")
    parser.add_argument("--cdn-url", default=_env_str("TRAILGUIDE_CDN_URL"), help="Optional CDN base tried before /assets/")
    cache_dir_env = _env_str("TRAILGUIDE_CACHE_DIR")
    parser.add_argument(
        "--cache-dir",
        default=os.path.expanduser(cache_dir_env) if cache_dir_env else DEFAULT_CACHE_DIR,
        help="Directory holding resource JSON files and downloaded assets",
    )
    parser.add_argument("--app-version", default=_env_str("TRAILGUIDE_APP_VERSION"), help="Release version of the running app")
    parser.add_argument("--build-number", default=_env_str("TRAILGUIDE_BUILD_NUMBER"), help="Build number of the running app")
    parser.add_argument("--timeout", type=int, default=_env_int("TRAILGUIDE_TIMEOUT") or 30, help="HTTP timeout in seconds")
    parser.add_argument("--media-workers", type=int, default=_env_int("TRAILGUIDE_MEDIA_WORKERS") or 4, help="Concurrent asset downloads")
    parser.add_argument(
        "--concurrent-resources",
        type=int,
        default=_env_int("TRAILGUIDE_CONCURRENT_RESOURCES") or 1,
        help="Resources synced at the same time during a pass",
    )
    parser.add_argument("--list-resources", action="store_true", help="List registered resources and exit")
    parser.add_argument("--status", action="store_true", help="Show what is cached locally and exit")
    parser.add_argument("--fetch", metavar="NAME", help="Fully fetch one resource")
    parser.add_argument("--resync", action="store_true", help="Run one incremental resync pass over every resource")
    parser.add_argument("--check-updates", action="store_true", help="Consult the update record and resync if needed")
    parser.add_argument("--watch", action="store_true", help="Keep polling for updates until interrupted")
    parser.add_argument("--wipe", action="store_true", help="Delete the whole cache directory")
    parser.add_argument("--verbose", action="store_true", default=_env_bool("TRAILGUIDE_VERBOSE"), help="Enable debug logging")
    return parser.parse_args(argv)


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )


def build_cache(args: argparse.Namespace) -> ContentCache:
    return ContentCache.create(
        base_url=args.api_url or "",
        access_token=args.api_key or "",
        cache_dir=args.cache_dir,
        app_version=current_version(args.app_version, args.build_number),
        cdn_url=args.cdn_url,
        timeout=args.timeout,
        media_workers=args.media_workers,
        concurrent_resources=args.concurrent_resources,
    )


def print_resources(registry: ResourceRegistry) -> None:
    logging.info("%-22s | %-10s | %-22s | %s", "Name", "Kind", "Cache key", "Endpoint")
    logging.info("%s", "-" * 90)
    for descriptor in registry:
        kind = "collection" if descriptor.is_collection else "singleton"
        logging.info("%-22s | %-10s | %-22s | %s", descriptor.name, kind, descriptor.cache_key, descriptor.endpoint)


def print_status(cache: ContentCache) -> None:
    logging.info("Cache directory: %s (version %s)", cache.store.cache_dir, cache.version_gate.read_marker() or "none")
    logging.info("Last sync: %s", cache.engine.last_sync_date() or "never")
    for descriptor in cache.registry:
        envelope = cache.get_envelope(descriptor.name)
        if envelope is None:
            logging.info("  - %-22s not cached", descriptor.name)
            continue
        items = len(envelope.data) if isinstance(envelope.data, list) else 1
        pending = unresolved_assets(envelope.data, envelope.media_paths, descriptor.media_schema)
        logging.info(
            "  - %-22s items=%s assets=%s missing_assets=%s updated=%s",
            descriptor.name,
            items,
            len(envelope.media_paths),
            len(pending),
            envelope.last_sync_timestamp or "-",
        )


async def watch(cache: ContentCache) -> None:
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            pass
    poller = SyncPoller(cache.background_update_check)
    await poller.run_forever(stop_event, run_immediately=True)


async def run(args: argparse.Namespace) -> int:
    async with build_cache(args) as cache:
        if args.wipe:
            return 0 if cache.store.wipe() else 1

        cache.startup()

        if args.status:
            print_status(cache)
            return 0

        if not args.api_url or not args.api_key:
            logging.error("--api-url and --api-key (or TRAILGUIDE_API_URL / TRAILGUIDE_API_KEY) are required.")
            return 2

        if args.fetch:
            if args.fetch not in cache.registry:
                logging.error("Unknown resource %s; use --list-resources", args.fetch)
                return 2
            data = await cache.fetch(args.fetch)
            if data is None:
                logging.error("No data available for %s", args.fetch)
                return 1
            logging.info("Fetched %s", args.fetch)
            return 0

        if args.resync:
            await cache.resync_all()
        elif args.check_updates:
            await cache.check_for_updates()

        if args.watch:
            await watch(cache)
        elif not (args.resync or args.check_updates):
            logging.info("Nothing to do. Use --resync, --check-updates, --fetch NAME or --watch.")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.verbose)

    if args.list_resources:
        print_resources(ResourceRegistry())
        return 0

    return asyncio.run(run(args))


if __name__ == "__main__":
    raise SystemExit(main())
