"""
Library selection rules and platform helpers.
"""

import sys
from typing import Any, Dict, List, Optional, Tuple

from .models import Artifact, LibrarySpec

# Every native classifier served, for all client platforms
NATIVE_CLASSIFIERS = [
    "natives-windows",
    "natives-windows-64",
    "natives-windows-32",
    "natives-osx",
    "natives-macos",
    "natives-macos-arm64",
    "natives-linux",
    "natives-linux-arm64",
    "natives-linux-arm32",
]

NATIVE_BINARY_EXTENSIONS = (".so", ".dll", ".dylib", ".jnilib")

_OS_ALIASES = {
    "win32": "windows",
    "windows": "windows",
    "darwin": "osx",
    "osx": "osx",
    "macos": "osx",
    "linux": "linux",
}


def current_os_name() -> str:
    """Descriptor OS name of the running interpreter ('windows', 'osx' or 'linux')."""
    if sys.platform.startswith("win"):
        return "windows"
    if sys.platform == "darwin":
        return "osx"
    return "linux"


def rule_matches(rule: Dict[str, Any], os_name: str) -> bool:
    """
    Check whether a single rule applies on an OS.

    A rule without an ``os`` clause applies everywhere. Rules gated on
    launcher features never apply here.
    """
    if rule.get("features"):
        return False
    os_clause = rule.get("os")
    if not os_clause or "name" not in os_clause:
        return True
    wanted = _OS_ALIASES.get(os_clause["name"], os_clause["name"])
    return wanted == _OS_ALIASES.get(os_name, os_name)


def should_include_library(lib: LibrarySpec, os_name: Optional[str] = None) -> bool:
    """
    Evaluate a library's ordered OS rules.

    The last matching rule decides. No rules means allow; rules of which
    none matches mean disallow.
    """
    if not lib.rules:
        return True

    os_name = os_name or current_os_name()
    decision = False
    for rule in lib.rules:
        if rule_matches(rule, os_name):
            decision = rule.get("action") == "allow"
    return decision


def native_classifiers(lib: LibrarySpec) -> List[Tuple[str, Artifact]]:
    """Native classifier artifacts of a library, for every platform."""
    return [
        (name, lib.classifiers[name])
        for name in NATIVE_CLASSIFIERS
        if name in lib.classifiers
    ]


def platform_from_name(file_name: str) -> Optional[str]:
    """
    Infer the target platform of a natives archive from its file name.

    Returns:
        'linux', 'windows', 'macos' or None
    """
    name = file_name.lower()
    if "natives-linux" in name:
        return "linux"
    if "natives-windows" in name or "natives-win" in name:
        return "windows"
    if "natives-macos" in name or "natives-osx" in name or "natives-mac" in name:
        return "macos"
    return None


def is_native_binary(file_name: str) -> bool:
    return file_name.lower().endswith(NATIVE_BINARY_EXTENSIONS)


def java_major_for(mc_version: str) -> int:
    """
    Java major version needed to run a game version.

    Releases up to 1.16 run on Java 8, later ones on Java 17.
    """
    parts = mc_version.split(".")
    try:
        minor = int(parts[1]) if len(parts) > 1 else 0
    except ValueError:
        return 17
    return 8 if minor <= 16 else 17


def is_legacy_forge(mc_version: str) -> bool:
    """Forge releases for 1.12 through 1.16 use the legacy installer layout."""
    parts = mc_version.split(".")
    try:
        minor = int(parts[1]) if len(parts) > 1 else 0
    except ValueError:
        return False
    return 12 <= minor <= 16
