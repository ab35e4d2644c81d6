"""Tests for the loader installer."""

import io
import sys
import textwrap
import pytest
from pathlib import Path

from src.distribution.config import DistributionConfig
from src.distribution.exceptions import (
    DistributionError,
    InstallerNotFoundError,
    InstallerOutputNotFoundError,
    InstallerTimeoutError,
)
from src.distribution.installer import (
    FABRIC,
    FORGE,
    LoaderInstaller,
    LoaderSpec,
    OutputTail,
    SubstringSuccessDetector,
    fabric_command,
    forge_command,
)

FORGE_SCRIPT = textwrap.dedent("""
    import sys
    from pathlib import Path

    workspace, mc, loader = Path(sys.argv[1]), sys.argv[2], sys.argv[3]
    if not (workspace / "versions" / mc / (mc + ".jar")).is_file():
        print("vanilla jar not staged")
        sys.exit(1)
    if not (workspace / "launcher_profiles.json").is_file():
        print("launcher profiles missing")
        sys.exit(1)

    name = mc + "-forge-" + loader
    out = workspace / "versions" / name
    out.mkdir(parents=True)
    (out / (name + ".jar")).write_bytes(b"forge-jar")
    lib = workspace / "libraries" / "net" / "minecraftforge" / "forge.jar"
    lib.parent.mkdir(parents=True, exist_ok=True)
    lib.write_bytes(b"forge-lib")
    print("Successfully installed client profile")
""")

SILENT_SCRIPT = textwrap.dedent("""
    import sys
    from pathlib import Path

    workspace, mc, loader = Path(sys.argv[1]), sys.argv[2], sys.argv[3]
    out = workspace / "versions" / ("fabric-loader-" + loader + "-" + mc)
    out.mkdir(parents=True)
    (out / "other.jar").write_bytes(b"fabric-jar")
""")

NOISY_PREFIX = textwrap.dedent("""
    import sys
    sys.stdout.buffer.write(("\\u20ac" * 5000 + "\\n").encode("utf-8"))
    sys.stdout.flush()
""")

NOOP_SCRIPT = "print('nothing to do')\n"

SLOW_SCRIPT = "import time\ntime.sleep(10)\n"


def python_command(java, installer, workspace, mc_version, loader_version):
    return [sys.executable, str(installer), str(workspace), mc_version, loader_version]


def _spec(name="forge", keeps_original_jar=lambda mc: False):
    return LoaderSpec(
        name=name,
        output_marker=name,
        build_command=python_command,
        keeps_original_jar=keeps_original_jar,
    )


class TestLoaderInstaller:
    """Tests for LoaderInstaller.install."""

    @pytest.fixture
    def config(self, tmp_path):
        updates = tmp_path / "updates"
        client = updates / "my_client"
        (client / "libraries" / "org" / "lwjgl").mkdir(parents=True)
        (client / "libraries" / "org" / "lwjgl" / "lwjgl.jar").write_bytes(b"lwjgl")
        (client / "client.jar").write_bytes(b"vanilla-jar")
        return DistributionConfig(updates_root=updates, poll_attempts=3, poll_interval=0.01)

    def _installer_script(self, tmp_path, body):
        path = tmp_path / "installer.py"
        path.write_text(body)
        return path

    def test_install(self, config, tmp_path):
        installer = LoaderInstaller(config)
        script = self._installer_script(tmp_path, FORGE_SCRIPT)

        result = installer.install(_spec(), "1.20.1", "47.1.0", "my_client", script)

        client = config.updates_root / "my_client"
        assert result.success_detected is True
        assert result.returncode == 0
        assert result.output_dir == "1.20.1-forge-47.1.0"
        assert result.client_jar == client / "client.jar"
        assert (client / "client.jar").read_bytes() == b"forge-jar"
        assert (client / "libraries" / "net" / "minecraftforge" / "forge.jar").read_bytes() == b"forge-lib"
        assert (client / "libraries" / "org" / "lwjgl" / "lwjgl.jar").is_file()
        assert "Successfully installed" in result.stdout

    def test_workspace_removed(self, config, tmp_path):
        installer = LoaderInstaller(config)
        script = self._installer_script(tmp_path, FORGE_SCRIPT)

        installer.install(_spec(), "1.20.1", "47.1.0", "my_client", script)

        assert list(config.workspace_root.iterdir()) == []

    def test_legacy_keeps_original_jar(self, config, tmp_path):
        installer = LoaderInstaller(config)
        script = self._installer_script(tmp_path, FORGE_SCRIPT)

        installer.install(
            _spec(keeps_original_jar=lambda mc: True), "1.12.2", "14.23.5.2860", "my_client", script
        )

        assert (config.updates_root / "my_client" / "client.jar").read_bytes() == b"vanilla-jar"

    def test_missing_success_phrase_still_installs(self, config, tmp_path):
        installer = LoaderInstaller(config)
        script = self._installer_script(tmp_path, SILENT_SCRIPT)

        result = installer.install(_spec("fabric"), "1.20.1", "0.14.22", "my_client", script)

        assert result.success_detected is False
        assert result.output_dir == "fabric-loader-0.14.22-1.20.1"
        assert (config.updates_root / "my_client" / "client.jar").read_bytes() == b"fabric-jar"

    def test_output_not_found(self, config, tmp_path):
        installer = LoaderInstaller(config)
        script = self._installer_script(tmp_path, NOOP_SCRIPT)

        with pytest.raises(InstallerOutputNotFoundError) as exc_info:
            installer.install(_spec(), "1.20.1", "47.1.0", "my_client", script)

        assert exc_info.value.found == ["1.20.1"]
        assert "nothing to do" in exc_info.value.stdout
        assert (config.updates_root / "my_client" / "client.jar").read_bytes() == b"vanilla-jar"
        assert list(config.workspace_root.iterdir()) == []

    def test_timeout(self, config, tmp_path):
        config.installer_timeout = 0.5
        installer = LoaderInstaller(config)
        script = self._installer_script(tmp_path, SLOW_SCRIPT)

        with pytest.raises(InstallerTimeoutError):
            installer.install(_spec(), "1.20.1", "47.1.0", "my_client", script)

        assert list(config.workspace_root.iterdir()) == []

    def test_missing_installer(self, config, tmp_path):
        with pytest.raises(InstallerNotFoundError):
            LoaderInstaller(config).install(_spec(), "1.20.1", "47.1.0", "my_client", tmp_path / "nope.jar")

    def test_missing_vanilla_client(self, config, tmp_path):
        script = self._installer_script(tmp_path, FORGE_SCRIPT)
        with pytest.raises(DistributionError):
            LoaderInstaller(config).install(_spec(), "1.20.1", "47.1.0", "other_client", script)

    def test_output_bounded(self, config, tmp_path):
        config.installer_max_output = 64
        installer = LoaderInstaller(config)
        script = self._installer_script(tmp_path, NOISY_PREFIX + FORGE_SCRIPT)

        result = installer.install(_spec(), "1.20.1", "47.1.0", "my_client", script)

        assert len(result.stdout.encode("utf-8")) <= 64
        assert "\ufffd" not in result.stdout
        assert "Successfully installed" in result.stdout


class TestInstallerHelpers:
    """Tests for commands, java selection and success detection."""

    def test_forge_commands(self, tmp_path):
        legacy = forge_command("java", tmp_path / "i.jar", tmp_path / "ws", "1.12.2", "14.23.5.2860")
        modern = forge_command("java", tmp_path / "i.jar", tmp_path / "ws", "1.20.1", "47.1.0")
        assert legacy[-2:] == ["--installClient", str(tmp_path / "ws")]
        assert modern[-3:] == ["--installClient", "--target", str(tmp_path / "ws")]

    def test_fabric_command(self, tmp_path):
        cmd = fabric_command("java", tmp_path / "i.jar", tmp_path / "ws", "1.20.1", "0.14.22")
        assert cmd[:4] == ["java", "-jar", str(tmp_path / "i.jar"), "client"]
        assert cmd[4:] == ["-dir", str(tmp_path / "ws"), "-mcversion", "1.20.1", "-loader", "0.14.22"]

    def test_builtin_specs(self):
        assert FORGE.keeps_original_jar("1.12.2") is True
        assert FORGE.keeps_original_jar("1.20.1") is False
        assert FORGE.java_major("1.12.2") == 8
        assert FABRIC.java_major("1.16.5") == 17

    def test_select_java_from_home(self, tmp_path):
        java = tmp_path / "jdk17" / "bin" / "java"
        java.parent.mkdir(parents=True)
        java.write_text("")
        installer = LoaderInstaller(DistributionConfig(java_17_home=str(tmp_path / "jdk17")))

        if sys.platform.startswith("win"):
            pytest.skip("java.exe naming")
        assert installer.select_java(17) == str(java)

    def test_select_java_falls_back_to_path(self, tmp_path, monkeypatch):
        monkeypatch.delenv("JAVA_8_HOME", raising=False)
        installer = LoaderInstaller(DistributionConfig(java_8_home=str(tmp_path / "missing")))
        assert installer.select_java(8) == "java"

    def test_success_detector(self):
        detector = SubstringSuccessDetector()
        assert detector.is_success(1, "Successfully installed client", "") is True
        assert detector.is_success(0, "You can delete this installer", "") is True
        assert detector.is_success(0, "done", "") is False

    def test_success_detector_ignores_stderr_by_default(self):
        assert SubstringSuccessDetector().is_success(0, "", "Successfully installed") is False
        detector = SubstringSuccessDetector(include_stderr=True)
        assert detector.is_success(0, "", "Successfully installed") is True


class TestOutputTail:
    """Tests for the byte-bounded output buffer."""

    def test_keeps_last_bytes(self):
        tail = OutputTail(8)
        for chunk in (b"abcdef", b"ghijkl", b"mn"):
            tail.feed(chunk)
        assert tail.text() == "ghijklmn"

    def test_drops_partial_character(self):
        tail = OutputTail(4)
        tail.feed("\u20ac\u20ac".encode("utf-8"))
        assert tail.text() == "\u20ac"

    def test_drain_reads_until_eof(self):
        tail = OutputTail(5)
        tail.drain(io.BytesIO(b"0123456789"))
        assert tail.text() == "56789"
