import os
import subprocess
from .models import Package, PLUGIN_NAME
from .errors import ArtifactNotFoundError, ManifestMissingError, BuildError
from .logger import get_logger

PACKAGES_ROOT = os.path.join("target", "components", "packages")
MANIFEST_NAME = "manifest.json"

logger = get_logger("artifact")


def locate_package(version, packages_root=PACKAGES_ROOT, plugin_name=PLUGIN_NAME,
                   manifest_name=MANIFEST_NAME):
    """Find the built package directory for a version and check its manifest"""
    path = os.path.join(packages_root, f"{plugin_name}-{version}")
    if not os.path.isdir(path):
        raise ArtifactNotFoundError(f"Package directory not found: {path}", stage="locate")

    # Some builds wrap the package in one more directory named after the plugin
    nested = os.path.join(path, plugin_name)
    if os.path.isdir(nested):
        logger.info(f"Found nested package structure, using: {nested}")
        path = nested

    if not os.path.isfile(os.path.join(path, manifest_name)):
        raise ManifestMissingError(f"{manifest_name} not found at {path}", stage="locate")

    return Package(version=version, local_path=path, manifest_present=True)


class MavenBuilder:
    def __init__(self, project_dir=".", mvn="mvn", packages_root=None, plugin_name=PLUGIN_NAME):
        self.project_dir = project_dir
        self.plugin_name = plugin_name
        self.mvn = mvn
        self.packages_root = packages_root or os.path.join(project_dir, PACKAGES_ROOT)

    def _run(self, *args):
        cmd = [self.mvn, *args]
        logger.debug(f"Running {' '.join(cmd)}")
        try:
            proc = subprocess.run(cmd, cwd=self.project_dir, capture_output=True, text=True)
        except FileNotFoundError:
            raise BuildError(f"{self.mvn} not found on PATH", stage="build")
        if proc.returncode != 0:
            raise BuildError(f"{' '.join(cmd)} exited with {proc.returncode}: "
                             f"{(proc.stderr or proc.stdout).strip()[-500:]}", stage="build")
        return proc.stdout

    def resolve_version(self):
        version = self._run("-q", "help:evaluate", "-Dexpression=project.version",
                            "-DforceStdout").strip()
        if not version:
            raise BuildError("maven reported an empty project version", stage="build")
        return version

    def build_package(self):
        """Build the plugin and return (version, Package)"""
        version = self.resolve_version()
        logger.info(f"Building {self.plugin_name} {version}")
        self._run("clean", "package", "-DskipTests")
        return version, locate_package(version, self.packages_root, self.plugin_name)
