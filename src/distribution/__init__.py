"""
Distribution package for client downloads and mod-loader installation.

Fetches version descriptors, client JARs, libraries, natives and assets
into the updates root, and runs loader installers against it.
"""

from .models import (
    ProgressCallback,
    LoaderType,
    Artifact,
    LibrarySpec,
    AssetIndexRef,
    VersionDescriptor,
    AssetObject,
    DownloadReport,
    AssetReport,
    LoaderRelease,
    InstallResult,
    ClientCreated,
)

from .config import DistributionConfig

from .exceptions import (
    DistributionError,
    ManifestError,
    DownloadError,
    IntegrityError,
    LoaderNotFoundError,
    ClientDirectoryExistsError,
    InstallerError,
    InstallerNotFoundError,
    InstallerTimeoutError,
    InstallerOutputNotFoundError,
)

from .rules import (
    NATIVE_CLASSIFIERS,
    current_os_name,
    should_include_library,
    native_classifiers,
    platform_from_name,
    java_major_for,
    is_legacy_forge,
)
from .fetcher import Fetcher
from .natives import extract_natives_archive, extract_all_natives
from .assets import AssetPool, parse_asset_index
from .installer import (
    SuccessDetector,
    SubstringSuccessDetector,
    LoaderSpec,
    LoaderInstaller,
    FORGE,
    FABRIC,
)
from .coordinator import DownloadCoordinator, client_directory_for, profile_defaults


__all__ = [
    # Models
    "ProgressCallback",
    "LoaderType",
    "Artifact",
    "LibrarySpec",
    "AssetIndexRef",
    "VersionDescriptor",
    "AssetObject",
    "DownloadReport",
    "AssetReport",
    "LoaderRelease",
    "InstallResult",
    "ClientCreated",
    # Config
    "DistributionConfig",
    # Exceptions
    "DistributionError",
    "ManifestError",
    "DownloadError",
    "IntegrityError",
    "LoaderNotFoundError",
    "ClientDirectoryExistsError",
    "InstallerError",
    "InstallerNotFoundError",
    "InstallerTimeoutError",
    "InstallerOutputNotFoundError",
    # Rules
    "NATIVE_CLASSIFIERS",
    "current_os_name",
    "should_include_library",
    "native_classifiers",
    "platform_from_name",
    "java_major_for",
    "is_legacy_forge",
    # Components
    "Fetcher",
    "extract_natives_archive",
    "extract_all_natives",
    "AssetPool",
    "parse_asset_index",
    "SuccessDetector",
    "SubstringSuccessDetector",
    "LoaderSpec",
    "LoaderInstaller",
    "FORGE",
    "FABRIC",
    "DownloadCoordinator",
    "client_directory_for",
    "profile_defaults",
]
