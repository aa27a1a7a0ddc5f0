"""Per-environment host/service configuration and global settings.

Both are read from the process environment once at startup. Per-environment
values follow the ``<PREFIX>_<ENVIRONMENT>`` naming convention, e.g.
``DEPLOY_HOSTS_PROD="kafka-1 kafka-2"`` and ``DEPLOY_SERVICE_PROD=kafka-connect``.
"""
import os
from dataclasses import fields
from .models import Environment, DeploymentTarget, DeploySettings
from .errors import ConfigurationError
from .logger import get_logger

HOSTS_PREFIX = "DEPLOY_HOSTS"
SERVICE_PREFIX = "DEPLOY_SERVICE"

# Environment variable -> DeploySettings field
SETTINGS_ENV = {
    "DEPLOY_SSH_USER": "ssh_user",
    "DEPLOY_SSH_KEY": "ssh_key",
    "DEPLOY_SSH_PORT": "ssh_port",
    "DEPLOY_CONNECT_TIMEOUT": "connect_timeout_s",
    "DEPLOY_COMMAND_TIMEOUT": "command_timeout_s",
    "DEPLOY_PLUGIN_DIR": "plugin_dir",
    "DEPLOY_PLUGIN_OWNER": "plugin_owner",
    "DEPLOY_STAGING_DIR": "staging_dir",
    "DEPLOY_SCRIPTS_DIR": "scripts_dir",
    "DEPLOY_USE_SUDO": "use_sudo",
    "DEPLOY_MANIFEST_PATH": "manifest_path",
    "DEPLOY_LIB_PATH": "lib_path",
    "DEPLOY_READY_MARKER": "ready_marker",
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _scan_prefix(environ, prefix):
    """Collect ``<prefix>_<ENV>`` values, rejecting unknown environment suffixes"""
    values = {}
    marker = prefix + "_"
    for key, value in environ.items():
        if not key.startswith(marker):
            continue
        suffix = key[len(marker):]
        try:
            env = Environment(suffix.lower())
        except ValueError:
            raise ConfigurationError(f"{key} does not name a known environment "
                                     f"({', '.join(e.value for e in Environment)})")
        values[env] = value
    return values


class EnvironmentResolver:
    def __init__(self, hosts=None, services=None):
        self.hosts = dict(hosts or {})
        self.services = dict(services or {})
        self.logger = get_logger("config")

    @classmethod
    def from_environ(cls, environ=None):
        environ = os.environ if environ is None else environ
        return cls(_scan_prefix(environ, HOSTS_PREFIX), _scan_prefix(environ, SERVICE_PREFIX))

    def resolve_hosts(self, environment):
        environment = Environment(environment)
        key = f"{HOSTS_PREFIX}_{environment.value.upper()}"
        hosts = (self.hosts.get(environment) or "").split()
        if not hosts:
            raise ConfigurationError(f"{key} is not set or empty")
        self.logger.debug(f"Resolved {len(hosts)} hosts for {environment.value}: {hosts}")
        return hosts

    def resolve_service(self, environment):
        environment = Environment(environment)
        key = f"{SERVICE_PREFIX}_{environment.value.upper()}"
        service = (self.services.get(environment) or "").strip()
        if not service:
            raise ConfigurationError(f"{key} is not set or empty")
        return service

    def resolve_targets(self, environment):
        service = self.resolve_service(environment)
        return [DeploymentTarget(host, service) for host in self.resolve_hosts(environment)]


def _convert(key, raw, default):
    if isinstance(default, bool):
        value = raw.strip().lower()
        if value in _TRUE:
            return True
        if value in _FALSE:
            return False
        raise ConfigurationError(f"{key} must be a boolean, got {raw!r}")
    if isinstance(default, (int, float)):
        try:
            return type(default)(raw)
        except ValueError:
            raise ConfigurationError(f"{key} must be a {type(default).__name__}, got {raw!r}")
    return raw


def load_settings(environ=None, **overrides):
    """Build DeploySettings from defaults, then environment, then explicit overrides"""
    environ = os.environ if environ is None else environ
    defaults = {f.name: f.default for f in fields(DeploySettings)}
    values = {}
    for key, name in SETTINGS_ENV.items():
        raw = environ.get(key)
        if raw is None or raw == "":
            continue
        values[name] = _convert(key, raw, defaults[name])
    values.update({k: v for k, v in overrides.items() if v is not None})
    return DeploySettings(**values)
