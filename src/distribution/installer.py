"""
Mod-loader installation by running the upstream installer in a scratch workspace.
"""

import json
import logging
import os
import shutil
import subprocess
import tempfile
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Callable, List, Optional, Sequence

from .config import DistributionConfig
from .exceptions import (
    DistributionError,
    InstallerError,
    InstallerNotFoundError,
    InstallerOutputNotFoundError,
    InstallerTimeoutError,
)
from .models import InstallResult
from .rules import is_legacy_forge, java_major_for

logger = logging.getLogger(__name__)

SUCCESS_INDICATORS = ("Successfully installed", "Success", "You can delete")

CommandBuilder = Callable[[str, Path, Path, str, str], List[str]]


class SuccessDetector(ABC):
    """Decides whether an installer run reported success."""

    @abstractmethod
    def is_success(self, returncode: int, stdout: str, stderr: str) -> bool:
        pass


class SubstringSuccessDetector(SuccessDetector):
    """
    Looks for known success phrases in the installer's stdout.

    The exit code is not consulted. Pass ``include_stderr=True`` to also
    match phrases written to stderr.
    """

    def __init__(self, indicators: Sequence[str] = SUCCESS_INDICATORS, include_stderr: bool = False):
        self.indicators = tuple(indicators)
        self.include_stderr = include_stderr

    def is_success(self, returncode: int, stdout: str, stderr: str) -> bool:
        text = stdout + "\n" + stderr if self.include_stderr else stdout
        return any(i in text for i in self.indicators)


def forge_command(java: str, installer: Path, workspace: Path, mc_version: str, loader_version: str) -> List[str]:
    if is_legacy_forge(mc_version):
        return [java, "-jar", str(installer), "--installClient", str(workspace)]
    return [java, "-jar", str(installer), "--installClient", "--target", str(workspace)]


def fabric_command(java: str, installer: Path, workspace: Path, mc_version: str, loader_version: str) -> List[str]:
    return [
        java, "-jar", str(installer), "client",
        "-dir", str(workspace),
        "-mcversion", mc_version,
        "-loader", loader_version,
    ]


@dataclass
class LoaderSpec:
    """
    How to run and harvest one loader's installer.

    Attributes:
        name: Loader name, used in log messages and results
        output_marker: Substring identifying the produced versions/ directory
        build_command: Builds argv from (java, installer, workspace, mc_version, loader_version)
        keeps_original_jar: Whether a game version keeps the vanilla client JAR
        java_major: Java major version needed for a game version
    """
    name: str
    output_marker: str
    build_command: CommandBuilder
    keeps_original_jar: Callable[[str], bool] = field(default=lambda mc_version: False)
    java_major: Callable[[str], int] = field(default=java_major_for)


FORGE = LoaderSpec(
    name="forge",
    output_marker="forge",
    build_command=forge_command,
    keeps_original_jar=is_legacy_forge,
)

FABRIC = LoaderSpec(
    name="fabric",
    output_marker="fabric",
    build_command=fabric_command,
    java_major=lambda mc_version: 17,
)


class OutputTail:
    """
    Keeps the last ``limit`` bytes read from a pipe.

    The pipe is drained in chunks so a noisy child never holds more than
    ``limit`` bytes plus one chunk in memory.
    """

    CHUNK_SIZE = 64 * 1024

    def __init__(self, limit: int):
        self.limit = max(0, limit)
        self._buffer = bytearray()

    def feed(self, chunk: bytes) -> None:
        self._buffer.extend(chunk)
        excess = len(self._buffer) - self.limit
        if excess > 0:
            del self._buffer[:excess]

    def drain(self, pipe: BinaryIO) -> None:
        with pipe:
            for chunk in iter(lambda: pipe.read(self.CHUNK_SIZE), b""):
                self.feed(chunk)

    def text(self) -> str:
        data = bytes(self._buffer)
        # Trimming may have cut into a multi-byte character
        start = 0
        while start < len(data) and start < 3 and data[start] & 0xC0 == 0x80:
            start += 1
        return data[start:].decode("utf-8", errors="replace")


class LoaderInstaller:
    """
    Runs a loader installer against a disposable game directory and copies
    the result into a client directory.

    Usage:
        installer = LoaderInstaller(config)
        result = installer.install(FORGE, "1.20.1", "47.1.0", "my_client", jar_path)
    """

    def __init__(
        self,
        config: Optional[DistributionConfig] = None,
        detector: Optional[SuccessDetector] = None,
    ):
        self.config = config or DistributionConfig()
        self.detector = detector or SubstringSuccessDetector()

    def select_java(self, major: int) -> str:
        """Java executable for a major version, falling back to ``java`` on PATH."""
        home = self.config.get_java_8_home() if major == 8 else self.config.get_java_17_home()
        if home:
            executable = "java.exe" if os.name == "nt" else "java"
            candidate = Path(home) / "bin" / executable
            if candidate.exists():
                return str(candidate)
            logger.warning(f"Java {major} not found at {candidate}, using java from PATH")
        return "java"

    def _stage(self, workspace: Path, mc_version: str, client_dir: Path) -> None:
        versions_dir = workspace / "versions" / mc_version
        versions_dir.mkdir(parents=True, exist_ok=True)
        shutil.copy2(client_dir / "client.jar", versions_dir / f"{mc_version}.jar")

        libraries = client_dir / "libraries"
        if libraries.is_dir():
            shutil.copytree(libraries, workspace / "libraries", dirs_exist_ok=True)

        profiles = {
            "profiles": {
                mc_version: {
                    "name": mc_version,
                    "lastVersionId": mc_version,
                    "gameDir": str(workspace),
                }
            }
        }
        (workspace / "launcher_profiles.json").write_text(json.dumps(profiles, indent=2))

    def _run(self, command: List[str], workspace: Path) -> subprocess.CompletedProcess:
        logger.info(f"Running installer: {' '.join(command)}")
        limit = self.config.installer_max_output
        try:
            process = subprocess.Popen(
                command,
                cwd=str(workspace),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            raise InstallerError(f"Failed to start installer: {e}") from e

        stdout, stderr = OutputTail(limit), OutputTail(limit)
        readers = [
            threading.Thread(target=stdout.drain, args=(process.stdout,), daemon=True),
            threading.Thread(target=stderr.drain, args=(process.stderr,), daemon=True),
        ]
        for reader in readers:
            reader.start()

        try:
            returncode = process.wait(timeout=self.config.installer_timeout)
        except subprocess.TimeoutExpired as e:
            process.kill()
            process.wait()
            for reader in readers:
                reader.join(timeout=5.0)
            raise InstallerTimeoutError(
                f"Installer timed out after {self.config.installer_timeout}s",
                stdout=stdout.text(),
                stderr=stderr.text(),
            ) from e

        for reader in readers:
            reader.join()
        return subprocess.CompletedProcess(command, returncode, stdout.text(), stderr.text())

    def _find_output_dir(self, spec: LoaderSpec, workspace: Path, mc_version: str) -> Optional[Path]:
        versions_dir = workspace / "versions"
        if not versions_dir.is_dir():
            return None
        for entry in sorted(versions_dir.iterdir()):
            if entry.is_dir() and entry.name != mc_version and spec.output_marker in entry.name.lower():
                return entry
        return None

    def _poll_output_dir(self, spec: LoaderSpec, workspace: Path, mc_version: str) -> Optional[Path]:
        attempts = max(1, self.config.poll_attempts)
        for attempt in range(attempts):
            found = self._find_output_dir(spec, workspace, mc_version)
            if found is not None:
                logger.info(f"Found {spec.name} output on attempt {attempt + 1}: {found.name}")
                return found
            if attempt < attempts - 1:
                time.sleep(self.config.poll_interval)
        return None

    def _select_jar(self, spec: LoaderSpec, workspace: Path, output_dir: Path, mc_version: str) -> Optional[Path]:
        if spec.keeps_original_jar(mc_version):
            original = workspace / "versions" / mc_version / f"{mc_version}.jar"
            return original if original.is_file() else None

        named = output_dir / f"{output_dir.name}.jar"
        if named.is_file():
            return named
        jars = sorted(output_dir.glob("*.jar"))
        return jars[0] if jars else None

    def install(
        self,
        spec: LoaderSpec,
        mc_version: str,
        loader_version: str,
        client_directory: str,
        installer_path: Path,
    ) -> InstallResult:
        """
        Install a loader into an existing vanilla client directory.

        Args:
            spec: Loader to install
            mc_version: Game version
            loader_version: Loader release version
            client_directory: Directory name under the updates root
            installer_path: Installer JAR

        Returns:
            InstallResult describing the produced client.jar

        Raises:
            InstallerNotFoundError: If the installer JAR does not exist
            InstallerTimeoutError: If the installer exceeds its timeout
            InstallerOutputNotFoundError: If the loader output never appears
        """
        installer_path = Path(installer_path)
        if not installer_path.is_file():
            raise InstallerNotFoundError(f"Installer not found: {installer_path}")

        client_dir = self.config.updates_root / client_directory
        if not (client_dir / "client.jar").is_file():
            raise DistributionError(f"Vanilla client.jar missing in {client_dir}")

        self.config.workspace_root.mkdir(parents=True, exist_ok=True)
        workspace = Path(tempfile.mkdtemp(prefix=f"{mc_version}-", dir=self.config.workspace_root))

        try:
            self._stage(workspace, mc_version, client_dir)

            java = self.select_java(spec.java_major(mc_version))
            command = spec.build_command(java, installer_path, workspace, mc_version, loader_version)
            completed = self._run(command, workspace)

            success = self.detector.is_success(completed.returncode, completed.stdout, completed.stderr)
            if success:
                logger.info(f"{spec.name} installer reported success")
            else:
                logger.warning(
                    f"{spec.name} installer output has no success indicator "
                    f"(exit code {completed.returncode})"
                )
            if completed.stderr:
                logger.debug(f"{spec.name} installer stderr: {completed.stderr}")

            output_dir = self._poll_output_dir(spec, workspace, mc_version)
            if output_dir is None:
                versions_dir = workspace / "versions"
                found = sorted(p.name for p in versions_dir.iterdir()) if versions_dir.is_dir() else []
                raise InstallerOutputNotFoundError(
                    f"{spec.name} output directory not found after "
                    f"{self.config.poll_attempts} attempts. Available: {', '.join(found)}",
                    found=found,
                    stdout=completed.stdout,
                    stderr=completed.stderr,
                )

            jar = self._select_jar(spec, workspace, output_dir, mc_version)
            if jar is None:
                raise InstallerOutputNotFoundError(
                    f"{spec.name} JAR not found in {output_dir.name}",
                    found=sorted(p.name for p in output_dir.iterdir()),
                    stdout=completed.stdout,
                    stderr=completed.stderr,
                )

            client_jar = client_dir / "client.jar"
            shutil.copy2(jar, client_jar)
            logger.info(f"Copied {jar.name} to {client_jar}")

            workspace_libraries = workspace / "libraries"
            if workspace_libraries.is_dir():
                shutil.copytree(workspace_libraries, client_dir / "libraries", dirs_exist_ok=True)

            logger.info(f"{spec.name} {loader_version} installed for {mc_version} in {client_directory}")
            return InstallResult(
                loader=spec.name,
                mc_version=mc_version,
                loader_version=loader_version,
                output_dir=output_dir.name,
                client_jar=client_jar,
                success_detected=success,
                returncode=completed.returncode,
                stdout=completed.stdout,
                stderr=completed.stderr,
            )
        finally:
            shutil.rmtree(workspace, ignore_errors=True)
