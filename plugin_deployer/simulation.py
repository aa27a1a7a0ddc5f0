import asyncio
from .transport import Transport
from .errors import HostConnectionError


class ScriptedTransport(Transport):
    """In-memory transport that answers commands from scripted rules.

    Rules are matched in the order they were added; a command matches when the
    rule's pattern is a substring of it and the rule's host (if any) matches.
    A rule's result is either one ``(exit_code, output)`` pair or a list of
    pairs consumed one per call, the last one repeating.
    """

    def __init__(self, unreachable=None, delay=0):
        self.rules = []
        self.unreachable = set(unreachable or ())
        self.delay = delay
        self.calls = []
        self.attempts = {}

    def respond(self, pattern, result, host=None):
        self.rules.append((pattern, host, result))
        return self

    def _check_reachable(self, host, stage):
        if host in self.unreachable:
            raise HostConnectionError("connection timed out", host=host, stage=stage)

    def _answer(self, host, command):
        for idx, (pattern, rule_host, result) in enumerate(self.rules):
            if pattern not in command or rule_host not in (None, host):
                continue
            if isinstance(result, list):
                seen = self.attempts.get(idx, 0)
                self.attempts[idx] = seen + 1
                return result[min(seen, len(result) - 1)]
            return result
        return 0, ""

    async def copy_to_host(self, host, local_path, remote_path):
        self.calls.append((host, "copy", f"{local_path} -> {remote_path}"))
        self._check_reachable(host, "copy")
        if self.delay:
            await asyncio.sleep(self.delay)

    async def run_remote(self, host, command):
        self.calls.append((host, "run", command))
        self._check_reachable(host, "exec")
        if self.delay:
            await asyncio.sleep(self.delay)
        return self._answer(host, command)

    def commands(self, host=None):
        return [detail for h, kind, detail in self.calls if kind == "run" and host in (None, h)]

    def hosts_touched(self):
        seen = []
        for h, _, _ in self.calls:
            if h not in seen:
                seen.append(h)
        return seen
