from .models import (
    Environment, RestartMode, RestartState, PipelineOutcome,
    DeploymentTarget, Package, HostDeploymentResult, PipelineResult, DeploySettings
)
from .errors import (
    DeploymentError, ConfigurationError, ArtifactNotFoundError, ManifestMissingError,
    BuildError, HostConnectionError, InstallError, RestartError, ServiceCommandError,
    StopTimeoutError, StartTimeoutError
)
from .config import EnvironmentResolver, load_settings
from .artifact import locate_package, MavenBuilder
from .transport import Transport, SSHTransport, LocalTransport
from .readiness import ReadinessProbe, MarkerProbe, ExitCodeProbe
from .installer import HostInstaller
from .restart import RestartCoordinator
from .engine import DeploymentEngine

__all__ = [
    "Environment", "RestartMode", "RestartState", "PipelineOutcome",
    "DeploymentTarget", "Package", "HostDeploymentResult", "PipelineResult", "DeploySettings",
    "DeploymentError", "ConfigurationError", "ArtifactNotFoundError", "ManifestMissingError",
    "BuildError", "HostConnectionError", "InstallError", "RestartError", "ServiceCommandError",
    "StopTimeoutError", "StartTimeoutError",
    "EnvironmentResolver", "load_settings", "locate_package", "MavenBuilder",
    "Transport", "SSHTransport", "LocalTransport",
    "ReadinessProbe", "MarkerProbe", "ExitCodeProbe",
    "HostInstaller", "RestartCoordinator", "DeploymentEngine"
]
