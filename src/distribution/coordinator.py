"""
Download coordination for client bundles, assets and mod loaders.
"""

import json
import logging
import re
import threading
from pathlib import Path
from typing import Dict, Optional, Tuple

from src.catalog.reconciler import CatalogReconciler
from src.catalog.store import CatalogStore
from .assets import AssetPool, parse_asset_index
from .config import DistributionConfig
from .exceptions import (
    ClientDirectoryExistsError,
    DistributionError,
    DownloadError,
    LoaderNotFoundError,
    ManifestError,
)
from .fetcher import Fetcher
from .installer import FABRIC, FORGE, LoaderInstaller
from .models import (
    AssetIndexRef,
    AssetReport,
    ClientCreated,
    DownloadReport,
    LoaderRelease,
    LoaderType,
    ProgressCallback,
    VersionDescriptor,
)
from .natives import extract_all_natives
from .rules import java_major_for, native_classifiers, should_include_library

logger = logging.getLogger(__name__)

# Used when the Forge promotions feed is unreachable or has no entry
KNOWN_FORGE_VERSIONS = {
    "1.12.2": "14.23.5.2860",
    "1.16.5": "36.2.39",
    "1.18.2": "40.2.0",
    "1.19.2": "43.2.0",
    "1.20.1": "47.1.0",
    "1.20.4": "49.0.0",
}

VANILLA_MAIN_CLASS = "net.minecraft.client.main.Main"
FORGE_LEGACY_MAIN_CLASS = "net.minecraft.launchwrapper.Launch"
FORGE_MAIN_CLASS = "cpw.mods.bootstraplauncher.BootstrapLauncher"
FABRIC_MAIN_CLASS = "net.fabricmc.loader.launch.knot.KnotClient"


def client_directory_for(title: str) -> str:
    """Directory name derived from a client title: lowercase, non-alphanumerics as '_'."""
    return re.sub(r"[^a-z0-9]+", "_", title.lower()).strip("_")


def profile_defaults(loader: LoaderType, mc_version: str) -> Tuple[str, str]:
    """
    Launch defaults for a new profile.

    Returns:
        (main class, jvm version)
    """
    if loader == LoaderType.FORGE:
        if mc_version == "1.12" or mc_version.startswith("1.12."):
            return FORGE_LEGACY_MAIN_CLASS, "8"
        return FORGE_MAIN_CLASS, "17"
    if loader == LoaderType.FABRIC:
        return FABRIC_MAIN_CLASS, "17"
    return VANILLA_MAIN_CLASS, str(java_major_for(mc_version))


def _notify(progress: Optional[ProgressCallback], stage: str, percent: int, message: str) -> None:
    if progress is None:
        return
    try:
        progress(stage, percent, message)
    except Exception as e:
        logger.debug(f"Progress callback failed: {e}")


class DownloadCoordinator:
    """
    Populates the updates root with client bundles and shared assets.

    Usage:
        coordinator = DownloadCoordinator(config, store=store, reconciler=reconciler)
        coordinator.download_loader_client("My Forge Client", "forge", "1.20.1")
    """

    def __init__(
        self,
        config: Optional[DistributionConfig] = None,
        fetcher: Optional[Fetcher] = None,
        store: Optional[CatalogStore] = None,
        reconciler: Optional[CatalogReconciler] = None,
        installer: Optional[LoaderInstaller] = None,
    ):
        """
        Initialize the coordinator.

        Args:
            config: Distribution configuration
            fetcher: HTTP fetcher (created from config if omitted)
            store: Catalog store, needed to create profiles
            reconciler: Catalog reconciler run after a client is created
            installer: Loader installer (created from config if omitted)
        """
        self.config = config or DistributionConfig()
        self.fetcher = fetcher or Fetcher(config=self.config)
        self.store = store
        self.reconciler = reconciler
        self.installer = installer or LoaderInstaller(self.config)

        self._descriptors: Dict[str, VersionDescriptor] = {}
        self._lock = threading.Lock()

    # Manifest

    def resolve_manifest(self, version: str) -> VersionDescriptor:
        """
        Resolve the descriptor of a game version.

        Raises:
            ManifestError: If the version is unknown or the documents are malformed
        """
        with self._lock:
            cached = self._descriptors.get(version)
        if cached is not None:
            return cached

        try:
            manifest = self.fetcher.get_json(self.config.manifest_url)
            entry = next((v for v in manifest.get("versions", []) if v.get("id") == version), None)
            if entry is None:
                raise ManifestError(f"Version {version} not found in manifest")
            descriptor = VersionDescriptor.from_dict(self.fetcher.get_json(entry["url"]))
        except DownloadError as e:
            raise ManifestError(f"Failed to resolve version {version}: {e}") from e
        except (KeyError, TypeError, AttributeError) as e:
            raise ManifestError(f"Malformed descriptor for version {version}: {e}") from e

        with self._lock:
            self._descriptors[version] = descriptor
        return descriptor

    def fetch_with_verification(
        self,
        url: str,
        dest: Path,
        expected_hash: Optional[str] = None,
        algorithm: str = "sha1",
    ) -> bool:
        """Download ``url`` to ``dest`` unless a verified copy exists. See Fetcher."""
        return self.fetcher.fetch_with_verification(url, dest, expected_hash, algorithm)

    # Client bundle

    def download_client(
        self,
        version: str,
        client_directory: str,
        progress: Optional[ProgressCallback] = None,
    ) -> DownloadReport:
        """
        Download the vanilla client bundle of a version.

        The client JAR is required; library and native failures are logged
        and counted.

        Returns:
            DownloadReport with per-kind counters
        """
        _notify(progress, "manifest", 0, f"Fetching version info for {version}...")
        descriptor = self.resolve_manifest(version)

        client_dir = self.config.updates_root / client_directory
        libraries_dir = client_dir / "libraries"
        libraries_dir.mkdir(parents=True, exist_ok=True)
        report = DownloadReport(version=version, client_directory=client_directory)

        _notify(progress, "client", 20, "Downloading client.jar...")
        self.fetcher.fetch_with_verification(
            descriptor.client.url,
            client_dir / "client.jar",
            descriptor.client.sha1,
        )

        _notify(progress, "libraries", 30, "Downloading libraries...")
        total = len(descriptor.libraries) or 1
        for index, lib in enumerate(descriptor.libraries, start=1):
            # Natives of every platform are served, whatever the rules say
            wanted = should_include_library(lib) or lib.is_natives
            if wanted and lib.artifact is not None:
                try:
                    fetched = self.fetcher.fetch_with_verification(
                        lib.artifact.url,
                        libraries_dir / lib.artifact.path,
                        lib.artifact.sha1,
                    )
                    if fetched:
                        report.libraries_downloaded += 1
                    else:
                        report.libraries_skipped += 1
                except Exception as e:
                    report.library_errors += 1
                    logger.warning(f"Failed to download library {lib.name}: {e}")

            for classifier, artifact in native_classifiers(lib):
                try:
                    fetched = self.fetcher.fetch_with_verification(
                        artifact.url,
                        libraries_dir / artifact.path,
                        artifact.sha1,
                    )
                    if fetched:
                        report.natives_downloaded += 1
                    else:
                        report.natives_skipped += 1
                except Exception as e:
                    report.library_errors += 1
                    logger.warning(f"Failed to download {classifier} for {lib.name}: {e}")

            _notify(progress, "libraries", 30 + index * 40 // total,
                    f"Processed {index}/{len(descriptor.libraries)} libraries...")

        _notify(progress, "natives", 70, "Extracting native libraries...")
        report.natives_extracted = extract_all_natives(libraries_dir, client_dir)

        (client_dir / "version.json").write_text(json.dumps(descriptor.raw, indent=2))
        _notify(progress, "complete", 100, f"Client {version} downloaded")

        logger.info(
            f"Downloaded client {version} into {client_directory}: "
            f"{report.libraries_downloaded} libraries downloaded, "
            f"{report.libraries_skipped} skipped, {report.library_errors} errors"
        )
        return report

    # Assets

    def get_asset_index(self, version: str) -> AssetIndexRef:
        descriptor = self.resolve_manifest(version)
        if descriptor.asset_index is None:
            raise ManifestError(f"Version {version} has no asset index")
        return descriptor.asset_index

    def download_assets(
        self,
        version: str,
        progress: Optional[ProgressCallback] = None,
    ) -> AssetReport:
        """
        Download the asset index and every asset object of a version.

        Returns:
            AssetReport with downloaded/skipped/errors counters
        """
        ref = self.get_asset_index(version)
        index_dir = self.config.assets_dir / ref.id
        index_path = index_dir / "index.json"

        self.fetcher.fetch_with_verification(ref.url, index_path, ref.sha1)
        try:
            index = json.loads(index_path.read_text())
        except ValueError as e:
            raise ManifestError(f"Asset index {ref.id} is not valid JSON: {e}") from e

        objects = parse_asset_index(index)
        logger.info(f"Asset index {ref.id}: {len(objects)} objects")
        pool = AssetPool(self.fetcher, self.config)
        return pool.download(objects, index_dir / "objects", progress)

    # Loaders

    def resolve_loader(self, loader: str, mc_version: str) -> LoaderRelease:
        """
        Resolve the loader release to install for a game version.

        Raises:
            LoaderNotFoundError: If no release is known
        """
        loader_type = LoaderType.parse(loader) if isinstance(loader, str) else loader
        if loader_type == LoaderType.FORGE:
            return self._resolve_forge(mc_version)
        if loader_type == LoaderType.FABRIC:
            return self._resolve_fabric(mc_version)
        raise LoaderNotFoundError("Vanilla clients have no loader")

    def _forge_installer_url(self, mc_version: str, forge_version: str) -> str:
        coordinate = f"{mc_version}-{forge_version}"
        return f"{self.config.forge_maven_url}/{coordinate}/forge-{coordinate}-installer.jar"

    def _resolve_forge(self, mc_version: str) -> LoaderRelease:
        try:
            promos = self.fetcher.get_json(self.config.forge_promotions_url).get("promos", {})
            for channel in ("recommended", "latest"):
                forge_version = promos.get(f"{mc_version}-{channel}")
                if forge_version:
                    return LoaderRelease(
                        loader=LoaderType.FORGE,
                        mc_version=mc_version,
                        version=forge_version,
                        installer_url=self._forge_installer_url(mc_version, forge_version),
                        channel=channel,
                    )
        except (DownloadError, AttributeError) as e:
            logger.warning(f"Failed to fetch Forge promotions: {e}")

        forge_version = KNOWN_FORGE_VERSIONS.get(mc_version)
        if forge_version is None:
            raise LoaderNotFoundError(f"Could not find Forge version for Minecraft {mc_version}")
        return LoaderRelease(
            loader=LoaderType.FORGE,
            mc_version=mc_version,
            version=forge_version,
            installer_url=self._forge_installer_url(mc_version, forge_version),
            channel="known",
        )

    def _resolve_fabric(self, mc_version: str) -> LoaderRelease:
        try:
            entries = self.fetcher.get_json(f"{self.config.fabric_meta_url}/{mc_version}")
        except DownloadError as e:
            raise LoaderNotFoundError(f"Failed to get Fabric loader for {mc_version}: {e}") from e

        loaders = [entry.get("loader", entry) for entry in entries or []]
        stable = next((item for item in loaders if item.get("stable")), None)
        chosen = stable or (loaders[0] if loaders else None)
        if chosen is None or not chosen.get("version"):
            raise LoaderNotFoundError(f"No Fabric loader available for Minecraft {mc_version}")

        return LoaderRelease(
            loader=LoaderType.FABRIC,
            mc_version=mc_version,
            version=chosen["version"],
            installer_url=self.config.fabric_installer_url,
            channel="stable" if stable else "latest",
        )

    def download_loader_client(
        self,
        title: str,
        loader: str,
        version: str,
        progress: Optional[ProgressCallback] = None,
    ) -> ClientCreated:
        """
        Build a complete client directory and register its profile.

        Downloads the vanilla bundle, installs the loader (if any), fetches
        assets, creates the profile and reconciles the new directory.

        Raises:
            ClientDirectoryExistsError: If the derived directory already exists
            DistributionError: On fatal download or install failures
        """
        if self.store is None:
            raise DistributionError("A catalog store is required to create client profiles")

        loader_type = LoaderType.parse(loader)
        client_directory = client_directory_for(title)
        if not client_directory:
            raise DistributionError(f"Title {title!r} does not yield a directory name")
        if (self.config.updates_root / client_directory).exists():
            raise ClientDirectoryExistsError(
                f'Client directory "{client_directory}" already exists'
            )

        _notify(progress, "download", 0, f"Downloading {loader_type.value} client {version}...")
        report = self.download_client(version, client_directory, progress)

        install = None
        if loader_type != LoaderType.VANILLA:
            release = self.resolve_loader(loader_type.value, version)
            logger.info(f"Using {loader_type.value} {release.version} for Minecraft {version}")

            installer_path = (
                self.config.workspace_root
                / f"{loader_type.value}-installer-{version}-{release.version}.jar"
            )
            _notify(progress, "loader", 60, f"Installing {loader_type.value} {release.version}...")
            self.fetcher.fetch_with_verification(release.installer_url, installer_path)
            spec = FORGE if loader_type == LoaderType.FORGE else FABRIC
            try:
                install = self.installer.install(
                    spec, version, release.version, client_directory, installer_path
                )
            finally:
                installer_path.unlink(missing_ok=True)

        _notify(progress, "assets", 80, "Downloading assets...")
        assets = None
        try:
            asset_index = self.get_asset_index(version).id
            assets = self.download_assets(version, progress)
        except DistributionError as e:
            asset_index = ".".join(version.split(".")[:2])
            logger.warning(f"Failed to download assets for {version}, using index {asset_index}: {e}")

        main_class, jvm_version = profile_defaults(loader_type, version)
        profile = self.store.add_profile(
            title=title,
            version=version,
            client_directory=client_directory,
            main_class=main_class,
            jvm_version=jvm_version,
            asset_index=asset_index,
            loader=loader_type.value,
        )

        if self.reconciler is not None:
            _notify(progress, "sync", 95, "Synchronizing files with catalog...")
            self.reconciler.sync_directory(client_directory)

        _notify(progress, "complete", 100, f'Client "{title}" created')
        return ClientCreated(
            profile_id=profile.id,
            client_directory=client_directory,
            asset_index=asset_index,
            download=report,
            assets=assets,
            install=install,
        )

    def close(self) -> None:
        self.fetcher.close()
