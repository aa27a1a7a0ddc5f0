import asyncio
import posixpath
import shlex
from .models import (
    Environment, RestartMode, PipelineOutcome, PipelineResult, HostDeploymentResult, DeploySettings
)
from .errors import DeploymentError
from .installer import HostInstaller
from .restart import RestartCoordinator
from .logger import get_logger


class DeploymentEngine:
    def __init__(self, transport, resolver, settings=None, sleep=asyncio.sleep):
        self.transport = transport
        self.resolver = resolver
        self.settings = settings or DeploySettings()
        self.installer = HostInstaller(transport, self.settings)
        self.restarter = RestartCoordinator(transport, self.settings, sleep=sleep)
        self.deployment_in_progress = False
        self.logger = get_logger("engine")

    def staging_path(self, package):
        return posixpath.join(self.settings.staging_dir, f"{self.settings.plugin_name}-{package.version}")

    async def _cleanup(self, host, staged):
        """Remove the staged package; failures here never change the host's outcome"""
        try:
            code, output = await self.transport.run_remote(host, f"rm -rf {shlex.quote(staged)}")
        except DeploymentError as e:
            self.logger.warning(f"{host}: could not clean up {staged}: {e}")
            return
        if code != 0:
            self.logger.warning(f"{host}: cleanup of {staged} exited {code}: {output.strip()}")

    async def _deploy_host(self, target, package, restart_mode, probe):
        """Copy, install and restart on a single host"""
        host = target.host
        host_result = HostDeploymentResult(host=host)
        staged = self.staging_path(package)
        stage = "copy"

        try:
            self.logger.info(f"{host}: copying package to {staged}")
            await self.transport.copy_to_host(host, package.local_path, staged)
            host_result.history.append({"event": "copied", "path": staged})

            stage = "install"
            host_result.warnings = await self.installer.install(target, staged)
            host_result.installed = True
            host_result.history.append({"event": "installed", "warnings": len(host_result.warnings)})

            stage = "restart"
            await self.restarter.restart(target, restart_mode, probe)
            host_result.restarted = True
            host_result.history.append({"event": "restarted", "states": self.restarter.states(host)})

        except DeploymentError as e:
            host_result.error = str(e)
            host_result.stage = e.stage or stage
            host_result.history.append({"event": "failed", "stage": host_result.stage, "error": host_result.error})
            self.logger.error(f"{host}: deployment failed during {host_result.stage}: {e.message}")

        finally:
            await self._cleanup(host, staged)

        return host_result

    def _finish_deployment(self, result):
        """Work out the overall outcome from the per-host results"""
        completed = [h for h in result.hosts if h.success]

        if len(completed) == len(result.hosts) and result.aborted_reason is None:
            result.outcome = PipelineOutcome.SUCCESS
            self.logger.info(f"SUCCESS: {result.version} deployed to {len(completed)} hosts")
        else:
            # Any failed host fails the rollout; earlier hosts already run the new version
            result.outcome = PipelineOutcome.FAILURE
            result.completed_before_abort = len(completed)
            self.logger.error(f"FAILURE: {len(completed)} hosts updated before abort: {result.aborted_reason}")

    async def deploy(self, environment, restart_mode, package, dry_run=False, probe=None):
        """Roll a package out to every host of an environment, one host at a time"""
        if self.deployment_in_progress:
            error_msg = "deployment already in progress"
            self.logger.error(error_msg)
            raise RuntimeError(error_msg)

        environment = Environment(environment)
        restart_mode = RestartMode(restart_mode)
        # Configuration errors surface here, before any host is touched
        targets = self.resolver.resolve_targets(environment)

        result = PipelineResult(
            outcome=PipelineOutcome.FAILURE,
            environment=environment.value,
            restart_mode=restart_mode.value,
            version=package.version,
        )
        self.logger.info(f"Starting deployment of {package.version} to {environment.value} "
                         f"({len(targets)} hosts, restart={restart_mode.value}, dry_run={dry_run})")
        result.history.append({"event": "deployment_start", "hosts": [t.host for t in targets]})

        if dry_run:
            for target in targets:
                self.logger.info(f"DRY RUN: would deploy {package.local_path} to {target.host} "
                                 f"and restart {target.service_name}")
            result.history.append({"event": "dry_run", "hosts_planned": len(targets)})
            result.outcome = PipelineOutcome.SUCCESS
            return result

        self.deployment_in_progress = True
        try:
            for idx, target in enumerate(targets, start=1):
                self.logger.info(f"Deploying to host {idx}/{len(targets)}: {target.host}")
                result.history.append({"event": "host_start", "host": target.host})

                host_result = await self._deploy_host(target, package, restart_mode, probe)
                result.hosts.append(host_result)

                if not host_result.success:
                    remaining = [t.host for t in targets[idx:]]
                    result.aborted_reason = f"{target.host} failed during {host_result.stage}"
                    result.history.append({"event": "host_failed", "host": target.host,
                                           "stage": host_result.stage, "error": host_result.error})
                    result.history.append({"event": "abort", "reason": result.aborted_reason,
                                           "not_attempted": remaining})
                    if remaining:
                        self.logger.error(f"DEPLOYMENT ABORTED: skipping {remaining}")
                    break

                result.history.append({"event": "host_completed", "host": target.host})

            self._finish_deployment(result)
            return result

        finally:
            self.deployment_in_progress = False
            self.logger.debug("Deployment lock released")
