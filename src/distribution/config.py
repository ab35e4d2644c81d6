"""
Configuration for the distribution package.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


@dataclass
class DistributionConfig:
    """Configuration for client downloads and loader installation."""
    updates_root: Path = field(default_factory=lambda: Path("updates"))

    # Upstream endpoints
    manifest_url: str = "https://launchermeta.mojang.com/mc/game/version_manifest.json"
    resources_base_url: str = "https://resources.download.minecraft.net"
    forge_promotions_url: str = "https://files.minecraftforge.net/net/minecraftforge/forge/promotions_slim.json"
    forge_maven_url: str = "https://maven.minecraftforge.net/net/minecraftforge/forge"
    fabric_meta_url: str = "https://meta.fabricmc.net/v2/versions/loader"
    fabric_installer_url: str = (
        "https://maven.fabricmc.net/net/fabricmc/fabric-installer/0.11.2/fabric-installer-0.11.2.jar"
    )

    # Asset pool
    asset_concurrency: int = 20
    progress_every: int = 50

    # Loader installer
    installer_timeout: float = 300.0
    installer_max_output: int = 10 * 1024 * 1024
    poll_attempts: int = 10
    poll_interval: float = 0.5
    java_8_home: Optional[str] = None
    java_17_home: Optional[str] = None

    http_timeout: float = 60.0

    def __post_init__(self):
        if isinstance(self.updates_root, str):
            self.updates_root = Path(self.updates_root)

    @classmethod
    def from_env(cls) -> "DistributionConfig":
        """Build a config from environment variables."""
        config = cls()
        if os.environ.get("UPDATES_ROOT"):
            config.updates_root = Path(os.environ["UPDATES_ROOT"])
        if os.environ.get("ASSETS_CONCURRENT_DOWNLOADS"):
            config.asset_concurrency = int(os.environ["ASSETS_CONCURRENT_DOWNLOADS"])
        if os.environ.get("INSTALLER_TIMEOUT"):
            config.installer_timeout = float(os.environ["INSTALLER_TIMEOUT"])
        return config

    def get_java_8_home(self) -> Optional[str]:
        """Get Java 8 home from config or environment."""
        return self.java_8_home or os.environ.get("JAVA_8_HOME")

    def get_java_17_home(self) -> Optional[str]:
        """Get Java 17 home from config or environment."""
        return self.java_17_home or os.environ.get("JAVA_17_HOME")

    @property
    def assets_dir(self) -> Path:
        return self.updates_root / "assets"

    @property
    def workspace_root(self) -> Path:
        """Parent of disposable installer workspaces (a dot-directory)."""
        return self.updates_root / ".temp-minecraft"
