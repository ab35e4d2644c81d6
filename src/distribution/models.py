"""
Data models for the distribution package.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

# (stage, percent, message)
ProgressCallback = Callable[[str, int, str], None]


class LoaderType(Enum):
    """Supported client flavours."""
    VANILLA = "vanilla"
    FORGE = "forge"
    FABRIC = "fabric"

    @classmethod
    def parse(cls, value: str) -> "LoaderType":
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(f"Unknown loader: {value}. Supported: Vanilla, Forge, Fabric") from None


@dataclass
class Artifact:
    """A downloadable file described by a version descriptor."""
    path: str
    url: str
    sha1: Optional[str] = None
    size: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any], path: Optional[str] = None) -> "Artifact":
        return cls(
            path=data.get("path", path or ""),
            url=data["url"],
            sha1=data.get("sha1"),
            size=int(data.get("size", 0)),
        )


@dataclass
class LibrarySpec:
    """
    One library entry of a version descriptor.

    Attributes:
        name: Maven coordinate (group:artifact:version[:classifier])
        artifact: Main JAR, if any
        classifiers: Classifier name to artifact (natives live here)
        rules: Ordered OS rules as found in the descriptor
    """
    name: str
    artifact: Optional[Artifact] = None
    classifiers: Dict[str, Artifact] = field(default_factory=dict)
    rules: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def is_natives(self) -> bool:
        return ":natives-" in self.name or "natives" in self.name.lower()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LibrarySpec":
        downloads = data.get("downloads") or {}
        artifact = downloads.get("artifact")
        classifiers = downloads.get("classifiers") or {}
        return cls(
            name=data["name"],
            artifact=Artifact.from_dict(artifact) if artifact else None,
            classifiers={name: Artifact.from_dict(c) for name, c in classifiers.items()},
            rules=list(data.get("rules") or []),
        )


@dataclass
class AssetIndexRef:
    """Pointer from a version descriptor to its asset index."""
    id: str
    url: str
    sha1: Optional[str] = None
    size: int = 0
    total_size: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AssetIndexRef":
        return cls(
            id=data["id"],
            url=data["url"],
            sha1=data.get("sha1"),
            size=int(data.get("size", 0)),
            total_size=int(data.get("totalSize", 0)),
        )


@dataclass
class VersionDescriptor:
    """Per-version descriptor resolved from the version manifest."""
    id: str
    main_class: str
    client: Artifact
    libraries: List[LibrarySpec] = field(default_factory=list)
    asset_index: Optional[AssetIndexRef] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VersionDescriptor":
        client = data["downloads"]["client"]
        asset_index = data.get("assetIndex")
        return cls(
            id=data["id"],
            main_class=data.get("mainClass", "net.minecraft.client.main.Main"),
            client=Artifact.from_dict(client, path="client.jar"),
            libraries=[LibrarySpec.from_dict(lib) for lib in data.get("libraries", [])],
            asset_index=AssetIndexRef.from_dict(asset_index) if asset_index else None,
            raw=data,
        )


@dataclass(frozen=True)
class AssetObject:
    """One entry of an asset index."""
    name: str
    hash: str
    size: int = 0

    @property
    def object_path(self) -> str:
        return f"{self.hash[:2]}/{self.hash}"


@dataclass
class DownloadReport:
    """Outcome of a client download."""
    version: str
    client_directory: str
    libraries_downloaded: int = 0
    libraries_skipped: int = 0
    library_errors: int = 0
    natives_downloaded: int = 0
    natives_skipped: int = 0
    natives_extracted: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "clientDirectory": self.client_directory,
            "librariesDownloaded": self.libraries_downloaded,
            "librariesSkipped": self.libraries_skipped,
            "libraryErrors": self.library_errors,
            "nativesDownloaded": self.natives_downloaded,
            "nativesSkipped": self.natives_skipped,
            "nativesExtracted": self.natives_extracted,
        }


@dataclass
class AssetReport:
    """Outcome of an asset download."""
    downloaded: int = 0
    skipped: int = 0
    errors: int = 0

    @property
    def total(self) -> int:
        return self.downloaded + self.skipped + self.errors

    def to_dict(self) -> Dict[str, int]:
        return {"downloaded": self.downloaded, "skipped": self.skipped, "errors": self.errors}


@dataclass
class LoaderRelease:
    """A resolved mod-loader release and where to get its installer."""
    loader: LoaderType
    mc_version: str
    version: str
    installer_url: str
    channel: str = "recommended"


@dataclass
class InstallResult:
    """Outcome of a loader installation."""
    loader: str
    mc_version: str
    loader_version: str
    output_dir: str
    client_jar: Path
    success_detected: bool
    returncode: int = 0
    stdout: str = ""
    stderr: str = ""


@dataclass
class ClientCreated:
    """Result of building a complete client directory with its profile."""
    profile_id: int
    client_directory: str
    asset_index: str
    download: DownloadReport
    assets: Optional[AssetReport] = None
    install: Optional[InstallResult] = None
