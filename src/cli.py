#!/usr/bin/env python3
"""
CLI for the client catalog, change watcher and download pipeline.

Usage:
    python -m src.cli watch --updates-root ./updates --db catalog.db
    python -m src.cli verify 1.20.1
    python -m src.cli create-client "My Forge Client" --loader forge --version 1.20.1
"""

import argparse
import json
import logging
import signal
import sys
import time
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

_env_file = Path(__file__).parent.parent / ".env"
if _env_file.exists():
    load_dotenv(_env_file)
else:
    load_dotenv()

from src.catalog import (
    ActivityEventSink,
    CatalogConfig,
    CatalogError,
    CatalogReconciler,
    CatalogStore,
    DatabaseLogHandler,
    IntegrityVerifier,
    VersionNotFoundError,
)
from src.distribution import (
    DistributionConfig,
    DistributionError,
    DownloadCoordinator,
    FABRIC,
    FORGE,
    LoaderType,
)
from src.watcher import ChangeWatcher, WatcherConfig, WatcherError


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("cli")


class GracefulShutdown:
    """Handle graceful shutdown on SIGINT/SIGTERM."""

    def __init__(self):
        self.should_exit = False
        signal.signal(signal.SIGINT, self._handler)
        signal.signal(signal.SIGTERM, self._handler)

    def _handler(self, signum, frame):
        logger.info("Received shutdown signal, stopping...")
        self.should_exit = True


def _catalog_config(args) -> CatalogConfig:
    config = CatalogConfig.from_env()
    if args.db:
        config.db_path = Path(args.db)
    if args.updates_root:
        config.updates_root = Path(args.updates_root)
    config.db_path = config.db_path.resolve()
    config.db_path.parent.mkdir(parents=True, exist_ok=True)
    config.updates_root = config.updates_root.resolve()
    return config


def _distribution_config(args, catalog_config: CatalogConfig) -> DistributionConfig:
    config = DistributionConfig.from_env()
    config.updates_root = catalog_config.updates_root
    if getattr(args, "concurrency", None):
        config.asset_concurrency = args.concurrency
    return config


def _open_catalog(args):
    """Open the store and build a reconciler publishing to the activity log."""
    config = _catalog_config(args)
    store = CatalogStore(config)
    sink = ActivityEventSink(config.db_path)
    reconciler = CatalogReconciler(store, config, sink=sink)
    return config, store, sink, reconciler


def _print_progress(stage: str, percent: int, message: str) -> None:
    print(f"[{percent:3d}%] {stage}: {message}")


def cmd_watch(args):
    """Watch the updates root and keep the catalog in sync."""
    config, store, sink, reconciler = _open_catalog(args)

    if args.log_to_db:
        handler = DatabaseLogHandler(config.db_path)
        handler.setLevel(logging.INFO)
        logging.getLogger().addHandler(handler)

    watcher_config = WatcherConfig.from_env()
    watcher_config.updates_root = config.updates_root
    if args.debounce is not None:
        watcher_config.debounce_ms = args.debounce

    if not config.updates_root.is_dir():
        logger.error(f"Updates root does not exist: {config.updates_root}")
        sys.exit(1)

    shutdown = GracefulShutdown()
    watcher = ChangeWatcher(reconciler, watcher_config)

    try:
        seeded = watcher.start()
        logger.info(f"Watching {config.updates_root} ({len(seeded)} client directories seeded)")
        logger.info(f"Database: {config.db_path}")
        logger.info("Press Ctrl+C to stop")

        while not shutdown.should_exit:
            time.sleep(1)
    except WatcherError as e:
        logger.error(str(e))
        sys.exit(1)
    finally:
        if watcher.is_running:
            watcher.stop()
        store.close()

    logger.info("Watcher stopped")


def cmd_sync(args):
    """Reconcile one client directory, or every bundle directory."""
    config, store, sink, reconciler = _open_catalog(args)

    with store:
        if args.directory:
            directories = [args.directory]
        else:
            directories = sorted(
                p.name for p in config.updates_root.iterdir()
                if p.is_dir() and not p.name.startswith(".") and p.name != "assets"
            ) if config.updates_root.is_dir() else []

        for directory in directories:
            if args.version:
                profile = store.find_by_directory(directory)
                result = reconciler.reconcile(directory, args.version, profile)
            else:
                result = reconciler.sync_directory(directory)
            print(f"{directory}: {json.dumps(result.to_dict())}")


def cmd_verify(args):
    """Verify cataloged files of a version against disk."""
    config, store, sink, reconciler = _open_catalog(args)
    verifier = IntegrityVerifier(store, config, sink=sink)

    with store:
        try:
            if args.file:
                version = store.get_version(args.version)
                if version is None:
                    raise VersionNotFoundError(args.version)
                ok = verifier.verify_file(version.id, args.file, args.directory)
                print(f"{args.file}: {'valid' if ok else 'INVALID'}")
                if not ok:
                    sys.exit(2)
            else:
                result = verifier.verify_version(args.version, max_workers=args.workers)
                print(json.dumps(result.to_dict(), indent=2))
                if result.invalid:
                    sys.exit(2)
        except VersionNotFoundError as e:
            logger.error(str(e))
            sys.exit(1)


def cmd_stats(args):
    """Show verification statistics of a version."""
    config, store, sink, reconciler = _open_catalog(args)

    with store:
        try:
            stats = reconciler.get_sync_stats(args.version)
        except VersionNotFoundError as e:
            logger.error(str(e))
            sys.exit(1)

        print(f"\n=== Catalog Statistics: {args.version} ===")
        print(f"Database: {config.db_path}")
        print(f"Files: {stats.total_files}")
        print(f"Verified: {stats.verified_files}")
        print(f"Failed: {stats.failed_files}")
        print(f"Last verification: {stats.last_sync.isoformat() if stats.last_sync else 'never'}")
        print()


def cmd_delete_file(args):
    """Remove one file row from the catalog."""
    config, store, sink, reconciler = _open_catalog(args)

    with store:
        version = store.get_version(args.version)
        if version is None:
            logger.error(f"Version {args.version} not found in catalog")
            sys.exit(1)
        if not reconciler.delete_file(version.id, args.directory, args.path):
            sys.exit(1)
        print(f"Deleted {args.directory}/{args.path}")


def cmd_download_client(args):
    """Download the vanilla bundle of a version into a client directory."""
    config, store, sink, reconciler = _open_catalog(args)
    coordinator = DownloadCoordinator(_distribution_config(args, config))

    try:
        report = coordinator.download_client(args.version, args.directory, _print_progress)
        print(json.dumps(report.to_dict(), indent=2))
    except DistributionError as e:
        logger.error(f"Download failed: {e}")
        sys.exit(1)
    finally:
        coordinator.close()
        store.close()


def cmd_download_assets(args):
    """Download the assets of a version."""
    config, store, sink, reconciler = _open_catalog(args)
    coordinator = DownloadCoordinator(_distribution_config(args, config))

    try:
        report = coordinator.download_assets(args.version, _print_progress)
        print(json.dumps(report.to_dict(), indent=2))
    except DistributionError as e:
        logger.error(f"Asset download failed: {e}")
        sys.exit(1)
    finally:
        coordinator.close()
        store.close()


def cmd_install_loader(args):
    """Install a mod loader into an existing vanilla client directory."""
    config, store, sink, reconciler = _open_catalog(args)
    dist_config = _distribution_config(args, config)
    coordinator = DownloadCoordinator(dist_config, store=store, reconciler=reconciler)
    downloaded_installer = None

    try:
        loader = LoaderType.parse(args.loader)
        if loader == LoaderType.VANILLA:
            logger.error("Vanilla has no loader to install")
            sys.exit(1)

        if args.installer:
            installer_path = Path(args.installer).resolve()
            loader_version = args.loader_version
            if not loader_version:
                loader_version = coordinator.resolve_loader(loader.value, args.version).version
        else:
            release = coordinator.resolve_loader(loader.value, args.version)
            loader_version = args.loader_version or release.version
            installer_path = dist_config.workspace_root / f"{loader.value}-installer-{args.version}.jar"
            coordinator.fetch_with_verification(release.installer_url, installer_path)
            downloaded_installer = installer_path

        spec = FORGE if loader == LoaderType.FORGE else FABRIC
        result = coordinator.installer.install(
            spec, args.version, loader_version, args.directory, installer_path
        )
        print(f"Installed {result.loader} {result.loader_version} ({result.output_dir})")
        reconciler.sync_directory(args.directory)
    except (DistributionError, ValueError) as e:
        logger.error(f"Install failed: {e}")
        sys.exit(1)
    finally:
        if downloaded_installer is not None:
            downloaded_installer.unlink(missing_ok=True)
        coordinator.close()
        store.close()


def cmd_create_client(args):
    """Download, install and register a complete client."""
    config, store, sink, reconciler = _open_catalog(args)
    coordinator = DownloadCoordinator(
        _distribution_config(args, config),
        store=store,
        reconciler=reconciler,
    )

    try:
        created = coordinator.download_loader_client(
            args.title, args.loader, args.version, _print_progress
        )
        print(f"Created profile {created.profile_id} in {created.client_directory}")
    except (DistributionError, CatalogError, ValueError) as e:
        logger.error(f"Failed to create client: {e}")
        sys.exit(1)
    finally:
        coordinator.close()
        store.close()


def cmd_activity(args):
    """Show recent catalog activity."""
    config = _catalog_config(args)
    sink = ActivityEventSink(config.db_path)

    for row in reversed(sink.recent(args.limit)):
        when = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(row["created_at"]))
        print(f"{when}  {row['type']:<16} {row['path'] or '-':<12} {row['message'][:120]}")


def main():
    parser = argparse.ArgumentParser(
        description="CLI for the client catalog, change watcher and download pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Watch the updates root and keep the catalog in sync
  python -m src.cli watch --updates-root ./updates --db catalog.db

  # Reconcile every client directory once
  python -m src.cli sync

  # Verify all files of a version
  python -m src.cli verify 1.20.1 --workers 4

  # Download a complete Forge client and register its profile
  python -m src.cli create-client "My Forge Client" --loader forge --version 1.20.1
        """,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--db", default=None, help="Catalog database path (or set CATALOG_DB_PATH)")
    parser.add_argument("--updates-root", default=None, help="Updates root directory (or set UPDATES_ROOT)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # Watch command
    watch_parser = subparsers.add_parser("watch", help="Watch the updates root")
    watch_parser.add_argument("--debounce", type=int, default=None, help="Debounce time in ms")
    watch_parser.add_argument("--log-to-db", action="store_true", help="Mirror log records into the activity log")
    watch_parser.set_defaults(func=cmd_watch)

    # Sync command
    sync_parser = subparsers.add_parser("sync", help="Reconcile client directories with the catalog")
    sync_parser.add_argument("directory", nargs="?", help="Client directory (default: all)")
    sync_parser.add_argument("--version", help="Version string to catalog the files under")
    sync_parser.set_defaults(func=cmd_sync)

    # Verify command
    verify_parser = subparsers.add_parser("verify", help="Verify cataloged files against disk")
    verify_parser.add_argument("version", help="Version string")
    verify_parser.add_argument("--file", help="Verify a single catalog-relative path")
    verify_parser.add_argument("--directory", help="Client directory of --file")
    verify_parser.add_argument("--workers", type=int, default=None, help="Verification threads")
    verify_parser.set_defaults(func=cmd_verify)

    # Stats command
    stats_parser = subparsers.add_parser("stats", help="Show verification statistics")
    stats_parser.add_argument("version", help="Version string")
    stats_parser.set_defaults(func=cmd_stats)

    # Delete-file command
    delete_parser = subparsers.add_parser("delete-file", help="Remove a file row from the catalog")
    delete_parser.add_argument("version", help="Version string")
    delete_parser.add_argument("directory", help="Client directory")
    delete_parser.add_argument("path", help="Catalog-relative file path")
    delete_parser.set_defaults(func=cmd_delete_file)

    # Download-client command
    client_parser = subparsers.add_parser("download-client", help="Download a vanilla client bundle")
    client_parser.add_argument("version", help="Game version")
    client_parser.add_argument("directory", help="Client directory")
    client_parser.set_defaults(func=cmd_download_client)

    # Download-assets command
    assets_parser = subparsers.add_parser("download-assets", help="Download the assets of a version")
    assets_parser.add_argument("version", help="Game version")
    assets_parser.add_argument("--concurrency", type=int, default=None,
                               help="Parallel downloads (or set ASSETS_CONCURRENT_DOWNLOADS)")
    assets_parser.set_defaults(func=cmd_download_assets)

    # Install-loader command
    install_parser = subparsers.add_parser("install-loader", help="Install a mod loader into a client directory")
    install_parser.add_argument("loader", choices=["forge", "fabric"], help="Loader")
    install_parser.add_argument("version", help="Game version")
    install_parser.add_argument("directory", help="Client directory holding the vanilla client")
    install_parser.add_argument("--loader-version", help="Loader version (default: resolved)")
    install_parser.add_argument("--installer", help="Use a local installer JAR")
    install_parser.set_defaults(func=cmd_install_loader)

    # Create-client command
    create_parser = subparsers.add_parser("create-client", help="Download and register a complete client")
    create_parser.add_argument("title", help="Profile title")
    create_parser.add_argument("--loader", default="vanilla", help="vanilla, forge or fabric")
    create_parser.add_argument("--version", required=True, help="Game version")
    create_parser.add_argument("--concurrency", type=int, default=None, help="Parallel asset downloads")
    create_parser.set_defaults(func=cmd_create_client)

    # Activity command
    activity_parser = subparsers.add_parser("activity", help="Show recent catalog activity")
    activity_parser.add_argument("--limit", type=int, default=20, help="Number of entries")
    activity_parser.set_defaults(func=cmd_activity)

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    args.func(args)


if __name__ == "__main__":
    main()
