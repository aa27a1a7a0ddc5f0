from dataclasses import dataclass, field
from enum import Enum

PLUGIN_NAME = "confluentinc-kafka-connect-jdbc"
PLUGINS_ROOT = "/usr/share/java/connect_plugins"


class Environment(str, Enum):
    DEV = "dev"
    SQA = "sqa"
    STAGE = "stage"
    PROD = "prod"


class RestartMode(str, Enum):
    CONNECT_ONLY = "connect"
    FULL_CLUSTER = "full"


class RestartState(str, Enum):
    STOPPING = "stopping"
    STOPPED = "stopped"
    STARTING = "starting"
    READY = "ready"
    FAILED = "failed"


class PipelineOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class DeploymentTarget:
    host: str
    service_name: str


@dataclass(frozen=True)
class Package:
    version: str
    local_path: str
    manifest_present: bool = True


@dataclass
class HostDeploymentResult:
    host: str
    installed: bool = False
    restarted: bool = False
    error: str = None
    stage: str = None  # Stage that failed, if any
    warnings: list = field(default_factory=list)
    history: list = field(default_factory=list)

    @property
    def success(self):
        return self.installed and self.restarted and self.error is None


@dataclass
class PipelineResult:
    """Outcome of a rollout across every host of an environment"""
    outcome: PipelineOutcome
    environment: str = None
    restart_mode: str = None
    version: str = None
    hosts: list = field(default_factory=list)  # HostDeploymentResult per host touched
    aborted_reason: str = None
    completed_before_abort: int = 0  # Hosts left on the new version when a later host failed
    history: list = field(default_factory=list)

    @property
    def success(self):
        return self.outcome == PipelineOutcome.SUCCESS


@dataclass
class DeploySettings:
    """Tunables for transport, install and restart behavior"""
    ssh_user: str = "deploy"
    ssh_key: str = None  # Private key file used for both copy and exec
    ssh_port: int = 22
    connect_timeout_s: float = 10.0
    command_timeout_s: float = 300.0  # Longest a remote command may leave the channel silent
    plugin_name: str = PLUGIN_NAME
    plugin_dir: str = f"{PLUGINS_ROOT}/{PLUGIN_NAME}"
    plugin_owner: str = "cp-kafka-connect:confluent"
    staging_dir: str = "/tmp"
    scripts_dir: str = "/usr/local/bin/res_scripts"
    use_sudo: bool = True
    manifest_path: str = "manifest.json"  # Relative to the plugin directory
    lib_path: str = "lib"
    ready_marker: str = "running"
    poll_interval_s: float = 2.0
    connect_stop_attempts: int = 5
    connect_start_attempts: int = 5
    full_stop_attempts: int = 15
    full_start_attempts: int = 30

    def stop_attempts(self, mode):
        if mode == RestartMode.CONNECT_ONLY:
            return self.connect_stop_attempts
        return self.full_stop_attempts

    def start_attempts(self, mode):
        if mode == RestartMode.CONNECT_ONLY:
            return self.connect_start_attempts
        return self.full_start_attempts
