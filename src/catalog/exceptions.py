"""
Custom exceptions for the catalog package.
"""


class CatalogError(Exception):
    """Base exception for catalog errors."""
    pass


class StoreError(CatalogError):
    """Error in catalog store operations."""
    pass


class VersionNotFoundError(StoreError):
    """Client version is not present in the catalog."""
    def __init__(self, version: str):
        super().__init__(f"Version {version} not found in catalog")
        self.version = version

