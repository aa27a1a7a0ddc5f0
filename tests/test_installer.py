import grp
import os
import stat
import pytest
from plugin_deployer.models import DeploymentTarget, DeploySettings
from plugin_deployer.installer import HostInstaller
from plugin_deployer.simulation import ScriptedTransport
from plugin_deployer.transport import LocalTransport
from plugin_deployer.errors import InstallError

TARGET = DeploymentTarget("kafka-1", "kafka-connect")
PLUGIN_DIR = "/usr/share/java/connect_plugins/confluentinc-kafka-connect-jdbc"


class TestInstallCommands:
    """Remote command sequence issued by the installer."""

    @pytest.mark.asyncio
    async def test_replace_wholesale_sequence(self, settings):
        transport = ScriptedTransport()
        warnings = await HostInstaller(transport, settings).install(TARGET, "/tmp/pkg-1.0")

        assert warnings == []
        commands = transport.commands("kafka-1")
        assert commands[:6] == [
            f"sudo rm -rf {PLUGIN_DIR}",
            f"sudo mkdir -p {PLUGIN_DIR}",
            f"sudo cp -r /tmp/pkg-1.0/* {PLUGIN_DIR}/",
            f"sudo chown -R cp-kafka-connect:confluent {PLUGIN_DIR}",
            f"sudo find {PLUGIN_DIR} -type d -exec chmod 755 {{}} +",
            f"sudo find {PLUGIN_DIR} -type f -exec chmod 644 {{}} +",
        ]
        assert f"sudo test -f {PLUGIN_DIR}/manifest.json" in commands
        assert f"sudo test -d {PLUGIN_DIR}/lib" in commands

    @pytest.mark.asyncio
    async def test_copy_failure_raises_install_error(self, settings):
        transport = ScriptedTransport().respond("cp -r", (1, "cp: cannot stat '/tmp/pkg/*'"))
        with pytest.raises(InstallError) as exc_info:
            await HostInstaller(transport, settings).install(TARGET, "/tmp/pkg")

        assert exc_info.value.host == "kafka-1"
        assert exc_info.value.stage == "install"
        assert "cannot stat" in str(exc_info.value)
        # Nothing after the failed copy runs
        assert not any("chown" in c for c in transport.commands())

    @pytest.mark.asyncio
    async def test_failed_removal_of_old_directory_is_not_fatal(self, settings):
        transport = ScriptedTransport().respond("rm -rf", (1, "rm: cannot remove: Device or resource busy"))
        warnings = await HostInstaller(transport, settings).install(TARGET, "/tmp/pkg")

        assert warnings == []
        commands = transport.commands()
        assert commands[0] == f"sudo rm -rf {PLUGIN_DIR}"
        assert f"sudo chown -R cp-kafka-connect:confluent {PLUGIN_DIR}" in commands

    @pytest.mark.asyncio
    async def test_missing_manifest_and_lib_only_warn(self, settings):
        transport = ScriptedTransport().respond("test -f", (1, "")).respond("test -d", (1, ""))
        warnings = await HostInstaller(transport, settings).install(TARGET, "/tmp/pkg")
        assert len(warnings) == 2
        assert "manifest" in warnings[0]
        assert "library directory" in warnings[1]

    @pytest.mark.asyncio
    async def test_verification_paths_are_configurable(self):
        settings = DeploySettings(plugin_dir="/opt/plugins/jdbc", manifest_path="pkg/manifest.json",
                                  lib_path="share/java/jdbc")
        transport = ScriptedTransport()
        await HostInstaller(transport, settings).verify(TARGET)
        assert "sudo test -f /opt/plugins/jdbc/pkg/manifest.json" in transport.commands()
        assert "sudo test -d /opt/plugins/jdbc/share/java/jdbc" in transport.commands()


def make_staged_package(root):
    staged = root / "staged"
    (staged / "lib").mkdir(parents=True)
    (staged / "etc").mkdir()
    (staged / "manifest.json").write_text('{"name": "jdbc"}')
    (staged / "lib" / "kafka-connect-jdbc.jar").write_bytes(b"PK")
    (staged / "etc" / "sink.properties").write_text("name=sink")
    os.chmod(staged / "etc", 0o700)
    os.chmod(staged / "lib" / "kafka-connect-jdbc.jar", 0o600)
    return staged


class TestLocalRoundTrip:
    """Install onto the local filesystem and inspect the result."""

    @pytest.mark.asyncio
    async def test_modes_and_owner(self, tmp_path):
        staged = make_staged_package(tmp_path)
        plugin_dir = tmp_path / "connect_plugins" / "jdbc"
        plugin_dir.mkdir(parents=True)
        (plugin_dir / "stale-1.0.jar").write_text("old")

        owner = f"{os.getuid()}:{grp.getgrgid(os.getgid()).gr_name}"
        settings = DeploySettings(plugin_dir=str(plugin_dir), plugin_owner=owner, use_sudo=False)
        warnings = await HostInstaller(LocalTransport(), settings).install(
            DeploymentTarget("localhost", "kafka-connect"), str(staged))

        assert warnings == []
        assert not (plugin_dir / "stale-1.0.jar").exists()
        assert (plugin_dir / "lib" / "kafka-connect-jdbc.jar").read_bytes() == b"PK"

        dirs, files = [plugin_dir], []
        for root, dirnames, filenames in os.walk(plugin_dir):
            dirs.extend(os.path.join(root, d) for d in dirnames)
            files.extend(os.path.join(root, f) for f in filenames)
        assert len(files) == 3
        for d in dirs:
            assert stat.S_IMODE(os.stat(d).st_mode) == 0o755, d
        for f in files:
            assert stat.S_IMODE(os.stat(f).st_mode) == 0o644, f
            assert os.stat(f).st_uid == os.getuid()
            assert os.stat(f).st_gid == os.getgid()

    @pytest.mark.asyncio
    async def test_missing_staged_package_fails_copy(self, tmp_path):
        settings = DeploySettings(plugin_dir=str(tmp_path / "jdbc"), plugin_owner=str(os.getuid()), use_sudo=False)
        with pytest.raises(InstallError, match="Copying package contents"):
            await HostInstaller(LocalTransport(), settings).install(
                DeploymentTarget("localhost", "kafka-connect"), str(tmp_path / "missing"))
