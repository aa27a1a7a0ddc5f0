"""Remote copy and remote execution channels.

Every transport exposes coroutine methods; blocking work (paramiko, subprocess,
shutil) runs in a worker thread so the engine's event loop stays responsive.
"""
import asyncio
import os
import posixpath
import shutil
import socket
import subprocess
import paramiko
from .errors import HostConnectionError
from .logger import get_logger


class Transport:
    """Copy files to a host and run shell commands on it"""

    async def copy_to_host(self, host, local_path, remote_path):
        raise NotImplementedError

    async def run_remote(self, host, command):
        """Run a shell command, returning (exit_code, combined stdout/stderr)"""
        raise NotImplementedError

    async def close(self):
        pass


class SSHTransport(Transport):
    keepalive_s = 30

    def __init__(self, user, key_file=None, port=22, connect_timeout=10.0, command_timeout=300.0):
        self.user = user
        self.key_file = os.path.expanduser(key_file) if key_file else None
        self.port = port
        self.connect_timeout = connect_timeout
        self.command_timeout = command_timeout
        self._clients = {}
        self.logger = get_logger("transport")

    @classmethod
    def from_settings(cls, settings):
        return cls(settings.ssh_user, settings.ssh_key, settings.ssh_port,
                   settings.connect_timeout_s, settings.command_timeout_s)

    def _client(self, host):
        client = self._clients.get(host)
        if client is not None:
            return client

        client = paramiko.SSHClient()
        # Hosts are rebuilt often; host-key checking is disabled like the scp/ssh calls it replaces
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            client.connect(
                hostname=host,
                port=self.port,
                username=self.user,
                key_filename=self.key_file,
                look_for_keys=self.key_file is None,
                timeout=self.connect_timeout,
                banner_timeout=self.connect_timeout,
                auth_timeout=self.connect_timeout,
            )
        except paramiko.AuthenticationException as e:
            client.close()
            raise HostConnectionError(f"authentication failed for {self.user}: {e}", host=host, stage="connect")
        except (paramiko.SSHException, OSError) as e:
            client.close()
            raise HostConnectionError(f"cannot connect on port {self.port}: {e}", host=host, stage="connect")

        # A peer that goes silent must surface as a dead connection, not a hang
        client.get_transport().set_keepalive(self.keepalive_s)
        self.logger.debug(f"Connected to {self.user}@{host}:{self.port}")
        self._clients[host] = client
        return client

    def _exec(self, host, command):
        client = self._client(host)
        try:
            _, stdout, stderr = client.exec_command(command, timeout=self.command_timeout)
            out = stdout.read().decode("utf-8", errors="replace")
            err = stderr.read().decode("utf-8", errors="replace")
            code = stdout.channel.recv_exit_status()
        except socket.timeout:
            self._drop(host)
            raise HostConnectionError(f"no output from command for {self.command_timeout}s: {command}",
                                      host=host, stage="exec")
        except (paramiko.SSHException, OSError) as e:
            self._drop(host)
            raise HostConnectionError(f"command channel failed: {e}", host=host, stage="exec")
        return code, out + err

    @staticmethod
    def _sftp_mkdir(sftp, path):
        try:
            sftp.stat(path)
        except IOError:
            sftp.mkdir(path)

    def _put(self, host, local_path, remote_path):
        client = self._client(host)
        try:
            sftp = client.open_sftp()
            sftp.get_channel().settimeout(self.command_timeout)
            try:
                if not os.path.isdir(local_path):
                    sftp.put(local_path, remote_path)
                    return
                self._sftp_mkdir(sftp, remote_path)
                for root, dirs, files in os.walk(local_path):
                    rel = os.path.relpath(root, local_path)
                    remote_root = remote_path if rel == "." else posixpath.join(remote_path, *rel.split(os.sep))
                    for d in dirs:
                        self._sftp_mkdir(sftp, posixpath.join(remote_root, d))
                    for f in files:
                        sftp.put(os.path.join(root, f), posixpath.join(remote_root, f))
            finally:
                sftp.close()
        except (paramiko.SSHException, OSError) as e:
            raise HostConnectionError(f"copy of {local_path} to {remote_path} failed: {e}", host=host, stage="copy")

    def _drop(self, host):
        client = self._clients.pop(host, None)
        if client is not None:
            client.close()

    async def copy_to_host(self, host, local_path, remote_path):
        await asyncio.to_thread(self._put, host, local_path, remote_path)

    async def run_remote(self, host, command):
        return await asyncio.to_thread(self._exec, host, command)

    async def close(self):
        for host in list(self._clients):
            self._drop(host)


class LocalTransport(Transport):
    """Runs everything on this machine; the host argument is only used for logging"""

    def __init__(self, shell="bash"):
        self.shell = shell
        self.logger = get_logger("transport")

    def _exec(self, command):
        proc = subprocess.run([self.shell, "-c", command], capture_output=True, text=True)
        return proc.returncode, proc.stdout + proc.stderr

    @staticmethod
    def _copy(local_path, remote_path):
        if os.path.isdir(local_path):
            shutil.copytree(local_path, remote_path, dirs_exist_ok=True)
        else:
            shutil.copy2(local_path, remote_path)

    async def copy_to_host(self, host, local_path, remote_path):
        self.logger.debug(f"{host}: copying {local_path} -> {remote_path}")
        try:
            await asyncio.to_thread(self._copy, local_path, remote_path)
        except OSError as e:
            raise HostConnectionError(f"copy of {local_path} to {remote_path} failed: {e}", host=host, stage="copy")

    async def run_remote(self, host, command):
        return await asyncio.to_thread(self._exec, command)
