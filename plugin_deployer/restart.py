import asyncio
import posixpath
from .models import RestartMode, RestartState
from .errors import DeploymentError, ServiceCommandError, StopTimeoutError, StartTimeoutError
from .readiness import MarkerProbe
from .logger import get_logger


class RestartCoordinator:
    """Drives stopping -> stopped -> starting -> ready on one host at a time.

    Stop/start failures are not retried. The stopped and ready states are
    confirmed by polling the status script with a fixed interval up to a
    mode-specific attempt budget; full-cluster restarts get the longer budget.
    """

    def __init__(self, transport, settings, sleep=asyncio.sleep):
        self.transport = transport
        self.settings = settings
        self.sleep = sleep
        self.transitions = []
        self.poll_attempts = {}
        self.logger = get_logger("restart")

    def _script(self, name, mode=None):
        command = posixpath.join(self.settings.scripts_dir, name)
        if mode == RestartMode.CONNECT_ONLY:
            command += " -c"
        return f"sudo {command}" if self.settings.use_sudo else command

    def _enter(self, host, state, **details):
        self.logger.debug(f"{host}: -> {state.value}")
        self.transitions.append({"host": host, "state": state.value, **details})

    def reset(self, host):
        """Forget a host's transitions and poll counts from earlier restarts"""
        self.transitions = [t for t in self.transitions if t["host"] != host]
        self.poll_attempts = {k: v for k, v in self.poll_attempts.items() if k[0] != host}

    def states(self, host):
        return [t["state"] for t in self.transitions if t["host"] == host]

    async def _command(self, host, name, mode, what):
        command = self._script(name, mode)
        code, output = await self.transport.run_remote(host, command)
        if code != 0:
            raise ServiceCommandError(f"{what} command exited {code}: {output.strip()}",
                                      host=host, stage=what)

    async def _poll(self, host, phase, probe, want_ready, attempts):
        """Poll status until probe readiness equals want_ready; returns attempts used or None"""
        command = self._script("kafka_status.sh")
        for attempt in range(1, attempts + 1):
            self.poll_attempts[(host, phase)] = attempt
            code, output = await self.transport.run_remote(host, command)
            if probe.is_ready(code, output) == want_ready:
                return attempt
            if attempt < attempts:
                self.logger.debug(f"{host}: {phase} not confirmed (attempt {attempt}/{attempts}), "
                                  f"retrying in {self.settings.poll_interval_s}s")
                await self.sleep(self.settings.poll_interval_s)
        return None

    async def restart(self, target, mode, probe=None):
        mode = RestartMode(mode)
        host = target.host
        probe = probe or MarkerProbe(target.service_name, self.settings.ready_marker)
        self.reset(host)
        label = "Connect only" if mode == RestartMode.CONNECT_ONLY else "Full cluster"
        self.logger.info(f"{host}: restarting ({label}) with {probe!r}")

        try:
            self._enter(host, RestartState.STOPPING)
            await self._command(host, "kafka_stop.sh", mode, "stop")

            self._enter(host, RestartState.STOPPED)
            budget = self.settings.stop_attempts(mode)
            if await self._poll(host, "stop", probe, False, budget) is None:
                raise StopTimeoutError(f"{target.service_name} still reported running after {budget} status checks",
                                       host=host, stage="stop")
            self.logger.info(f"{host}: {target.service_name} stopped")

            self._enter(host, RestartState.STARTING)
            await self._command(host, "kafka_start.sh", mode, "start")

            budget = self.settings.start_attempts(mode)
            used = await self._poll(host, "start", probe, True, budget)
            if used is None:
                raise StartTimeoutError(f"{target.service_name} not ready after {budget} status checks",
                                        host=host, stage="start")
            self._enter(host, RestartState.READY, attempts=used)
            self.logger.info(f"{host}: {target.service_name} ready after {used} status checks")
            return RestartState.READY
        except DeploymentError as e:
            self._enter(host, RestartState.FAILED, error=str(e))
            self.logger.error(str(e))
            raise
