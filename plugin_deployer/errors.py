class DeploymentError(Exception):
    """Base for every failure that stops a rollout"""

    def __init__(self, message, host=None, stage=None):
        super().__init__(message)
        self.message = message
        self.host = host
        self.stage = stage

    def __str__(self):
        where = "/".join(part for part in (self.host, self.stage) if part)
        return f"[{where}] {self.message}" if where else self.message


class ConfigurationError(DeploymentError):
    pass


class ArtifactNotFoundError(DeploymentError):
    pass


class ManifestMissingError(DeploymentError):
    pass


class BuildError(DeploymentError):
    pass


class HostConnectionError(DeploymentError, ConnectionError):
    pass


class InstallError(DeploymentError):
    pass


class RestartError(DeploymentError):
    pass


class ServiceCommandError(RestartError):
    """Stop or start command exited non-zero"""


class StopTimeoutError(RestartError):
    pass


class StartTimeoutError(RestartError):
    pass
