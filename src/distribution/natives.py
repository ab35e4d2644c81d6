"""
Extraction of native libraries from downloaded natives archives.
"""

import logging
import shutil
import zipfile
from pathlib import Path, PurePosixPath
from typing import List

from .rules import is_native_binary, platform_from_name

logger = logging.getLogger(__name__)


def has_native_binaries(natives_dir: Path) -> bool:
    """Check whether a natives directory already holds native binaries."""
    if not natives_dir.is_dir():
        return False
    return any(p.is_file() and is_native_binary(p.name) for p in natives_dir.rglob("*"))


def find_natives_archives(libraries_dir: Path) -> List[Path]:
    """JAR/ZIP archives under a libraries directory whose name mentions natives."""
    if not libraries_dir.is_dir():
        return []
    return sorted(
        p for p in libraries_dir.rglob("*")
        if p.is_file()
        and p.suffix.lower() in (".jar", ".zip")
        and "natives" in p.name.lower()
    )


def extract_natives_archive(archive: Path, natives_dir: Path) -> int:
    """
    Extract one natives archive into ``natives_dir/<platform>``.

    Archives whose platform cannot be inferred from their name are
    extracted into ``natives_dir`` itself. META-INF entries are skipped.

    Returns:
        Number of files written

    Raises:
        zipfile.BadZipFile: If the archive is not a valid zip
    """
    platform = platform_from_name(archive.name)
    target = natives_dir / platform if platform else natives_dir
    target.mkdir(parents=True, exist_ok=True)
    target_resolved = target.resolve()

    written = 0
    with zipfile.ZipFile(archive) as zf:
        for info in zf.infolist():
            if info.is_dir():
                continue
            member = PurePosixPath(info.filename)
            if member.parts and member.parts[0].upper() == "META-INF":
                continue

            out_path = (target / Path(*member.parts)).resolve()
            if target_resolved not in out_path.parents:
                logger.warning(f"Skipping unsafe entry {info.filename} in {archive.name}")
                continue

            out_path.parent.mkdir(parents=True, exist_ok=True)
            with zf.open(info) as src, open(out_path, "wb") as dst:
                shutil.copyfileobj(src, dst)
            written += 1

    logger.debug(f"Extracted {written} files from {archive.name} to {platform or 'common'}")
    return written


def extract_all_natives(libraries_dir: Path, client_dir: Path) -> int:
    """
    Extract every natives archive of a client into ``client_dir/natives``.

    Nothing is done when native binaries are already present.

    Returns:
        Number of archives extracted
    """
    natives_dir = client_dir / "natives"
    if has_native_binaries(natives_dir):
        logger.info(f"Natives already extracted to {natives_dir}")
        return 0

    archives = find_natives_archives(libraries_dir)
    if not archives:
        logger.warning(f"No natives archives found in {libraries_dir}")
        return 0

    natives_dir.mkdir(parents=True, exist_ok=True)
    logger.info(f"Extracting {len(archives)} natives archives to {natives_dir}")

    extracted = 0
    for archive in archives:
        try:
            extract_natives_archive(archive, natives_dir)
            extracted += 1
        except (zipfile.BadZipFile, OSError) as e:
            logger.warning(f"Failed to extract natives from {archive.name}: {e}")
    return extracted
