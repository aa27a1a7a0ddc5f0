import posixpath
import shlex
from .errors import InstallError
from .logger import get_logger


class HostInstaller:
    """Replaces the plugin directory on a host with a staged package, wholesale"""

    def __init__(self, transport, settings):
        self.transport = transport
        self.settings = settings
        self.logger = get_logger("installer")

    def _sudo(self, command):
        return f"sudo {command}" if self.settings.use_sudo else command

    async def _step(self, host, description, command):
        self.logger.info(f"{host}: {description}")
        code, output = await self.transport.run_remote(host, self._sudo(command))
        if code != 0:
            raise InstallError(f"{description} failed (exit {code}): {output.strip()}",
                               host=host, stage="install")
        return output

    async def _exists(self, host, test_flag, path):
        code, _ = await self.transport.run_remote(host, self._sudo(f"test {test_flag} {shlex.quote(path)}"))
        return code == 0

    async def install(self, target, staged_path):
        """Install the staged package on a host; returns verification warnings"""
        host = target.host
        plugin_dir = self.settings.plugin_dir
        dest = shlex.quote(plugin_dir)

        self.logger.info(f"{host}: Removing existing plugin directory")
        code, output = await self.transport.run_remote(host, self._sudo(f"rm -rf {dest}"))
        if code != 0:
            # Non-fatal; mkdir and cp below still fail if the directory is unusable
            self.logger.warning(f"{host}: removing {plugin_dir} exited {code}: {output.strip()}")
        await self._step(host, "Creating plugin directory", f"mkdir -p {dest}")
        await self._step(host, "Copying package contents",
                         f"cp -r {shlex.quote(staged_path)}/* {dest}/")
        await self._step(host, "Setting ownership", f"chown -R {shlex.quote(self.settings.plugin_owner)} {dest}")
        await self._step(host, "Setting directory permissions", f"find {dest} -type d -exec chmod 755 {{}} +")
        await self._step(host, "Setting file permissions", f"find {dest} -type f -exec chmod 644 {{}} +")

        warnings = await self.verify(target)
        return warnings

    async def verify(self, target):
        host = target.host
        plugin_dir = self.settings.plugin_dir
        warnings = []

        manifest = posixpath.join(plugin_dir, self.settings.manifest_path)
        if await self._exists(host, "-f", manifest):
            self.logger.info(f"{host}: manifest present at {manifest}")
        else:
            # Nested layouts keep the manifest one level down
            warnings.append(f"manifest not found at {manifest}")

        lib_dir = posixpath.join(plugin_dir, self.settings.lib_path)
        if await self._exists(host, "-d", lib_dir):
            self.logger.info(f"{host}: library directory present at {lib_dir}")
        else:
            warnings.append(f"library directory not found at {lib_dir}")

        for warning in warnings:
            self.logger.warning(f"{host}: {warning}")

        code, output = await self.transport.run_remote(
            host, self._sudo(f"stat -c '%a (%U:%G)' {shlex.quote(plugin_dir)}"))
        if code == 0:
            self.logger.info(f"{host}: plugin dir {output.strip()}")
        return warnings
