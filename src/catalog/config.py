"""
Configuration for the catalog package.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List


@dataclass
class CatalogConfig:
    """Configuration for the catalog store and the sync engine."""
    db_path: Path = field(default_factory=lambda: Path("catalog.db"))
    updates_root: Path = field(default_factory=lambda: Path("updates"))

    # Defaults for versions first seen on disk without a profile
    default_main_class: str = "net.minecraft.client.main.Main"
    default_jvm_version: str = "8"
    default_title_template: str = "Minecraft {version}"

    hash_algorithm: str = "sha256"
    skip_dirs: List[str] = field(
        default_factory=lambda: ["node_modules", "__pycache__"]
    )

    def __post_init__(self):
        if isinstance(self.db_path, str):
            self.db_path = Path(self.db_path)
        if isinstance(self.updates_root, str):
            self.updates_root = Path(self.updates_root)

    @classmethod
    def from_env(cls) -> "CatalogConfig":
        """Build a config from CATALOG_DB_PATH / UPDATES_ROOT environment variables."""
        config = cls()
        if os.environ.get("CATALOG_DB_PATH"):
            config.db_path = Path(os.environ["CATALOG_DB_PATH"])
        if os.environ.get("UPDATES_ROOT"):
            config.updates_root = Path(os.environ["UPDATES_ROOT"])
        return config

    def client_dir(self, client_directory: str) -> Path:
        """Absolute location of a client directory under the updates root."""
        return self.updates_root / client_directory
