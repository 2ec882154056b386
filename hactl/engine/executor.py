"""Command execution and file access on the host being provisioned.

Providers never touch the host directly; everything goes through an
``Executor`` so the same plan can be applied locally or over SSH.
"""

import grp
import logging
import os
import pwd
import shlex
import shutil
import socket
import subprocess
import tempfile
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import paramiko

from ..config import Config, SSHTarget

logger = logging.getLogger("hactl.engine.executor")


@dataclass
class CommandResult:
    """Outcome of a command run through an executor."""
    argv: List[str]
    returncode: int
    stdout: str = ''
    stderr: str = ''

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def command(self) -> str:
        return shlex.join(self.argv)


class CommandError(Exception):
    """Raised when a checked command exits non-zero."""

    def __init__(self, result: CommandResult):
        self.result = result
        detail = result.stderr.strip() or result.stdout.strip()
        message = f"Command failed with exit code {result.returncode}: {result.command}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


@dataclass
class FileStat:
    mode: int
    owner: str
    group: str


class Executor(ABC):
    """Runs commands and manages files on one host."""

    name: str = 'executor'

    def run(self, argv: Sequence[str], check: bool = True) -> CommandResult:
        """Run a command given as an argument vector.

        Args:
            argv: Command and arguments
            check: Raise CommandError on a non-zero exit code

        Returns:
            CommandResult: exit code and captured output
        """
        argv = [str(a) for a in argv]
        logger.debug("[%s] $ %s", self.name, shlex.join(argv))
        result = self._run(argv)
        if result.stdout.strip():
            logger.debug("[%s] stdout: %s", self.name, result.stdout.strip())
        if check and not result.ok:
            raise CommandError(result)
        return result

    @abstractmethod
    def _run(self, argv: List[str]) -> CommandResult:
        ...

    @abstractmethod
    def read_file(self, path: str) -> Optional[bytes]:
        """Return the file content, or None if the file does not exist."""

    @abstractmethod
    def write_file(self, path: str, data: bytes, mode: int) -> None:
        ...

    @abstractmethod
    def stat(self, path: str) -> Optional[FileStat]:
        ...

    @abstractmethod
    def chown(self, path: str, owner: str, group: str) -> None:
        ...

    @abstractmethod
    def exists(self, path: str) -> bool:
        ...

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class LocalExecutor(Executor):
    """Executor for the machine hactl runs on."""

    name = 'localhost'

    def __init__(self, timeout: Optional[int] = None):
        self.timeout = timeout or Config.COMMAND_TIMEOUT

    def _run(self, argv: List[str]) -> CommandResult:
        try:
            proc = subprocess.run(
                argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            return CommandResult(argv, 127, '', str(e))
        except subprocess.TimeoutExpired:
            return CommandResult(argv, 124, '', f"timed out after {self.timeout}s")
        return CommandResult(argv, proc.returncode, proc.stdout, proc.stderr)

    def read_file(self, path: str) -> Optional[bytes]:
        try:
            with open(path, 'rb') as f:
                return f.read()
        except FileNotFoundError:
            return None

    def write_file(self, path: str, data: bytes, mode: int) -> None:
        directory = os.path.dirname(os.path.abspath(path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix='.hactl-', dir=directory)
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(data)
            os.chmod(tmp_path, mode)
            os.replace(tmp_path, path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def stat(self, path: str) -> Optional[FileStat]:
        try:
            st = os.stat(path)
        except FileNotFoundError:
            return None
        try:
            owner = pwd.getpwuid(st.st_uid).pw_name
        except KeyError:
            owner = str(st.st_uid)
        try:
            group = grp.getgrgid(st.st_gid).gr_name
        except KeyError:
            group = str(st.st_gid)
        return FileStat(mode=st.st_mode & 0o7777, owner=owner, group=group)

    def chown(self, path: str, owner: str, group: str) -> None:
        shutil.chown(path, user=owner, group=group)

    def exists(self, path: str) -> bool:
        return os.path.exists(path)


class SSHExecutor(Executor):
    """Executor for a remote host reached with paramiko.

    File content is uploaded over SFTP to a temporary path and moved into
    place with ``install`` so it also works through ``sudo``.
    """

    def __init__(
        self,
        host: str,
        username: Optional[str] = None,
        port: int = 22,
        key_path: Optional[str] = None,
        sudo: bool = False,
        timeout: Optional[int] = None,
        command_timeout: Optional[int] = None,
        name: Optional[str] = None,
        client: Optional[paramiko.SSHClient] = None,
    ):
        self.host = host
        self.username = username or Config.SSH_USER
        self.port = port
        self.key_path = os.path.expanduser(key_path) if key_path else None
        self.sudo = sudo
        self.timeout = timeout or Config.SSH_TIMEOUT
        self.command_timeout = command_timeout or Config.COMMAND_TIMEOUT
        self.name = name or host
        self._client = client

    @classmethod
    def from_target(cls, target: SSHTarget) -> 'SSHExecutor':
        return cls(
            host=target.address,
            username=target.user,
            port=target.port,
            key_path=target.key_path,
            sudo=target.sudo,
            name=target.name,
        )

    def connect(self) -> paramiko.SSHClient:
        if self._client is None:
            logger.debug(f"Connecting to {self.username}@{self.host}:{self.port}")
            client = paramiko.SSHClient()
            client.load_system_host_keys()
            client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
            client.connect(
                hostname=self.host,
                port=self.port,
                username=self.username,
                key_filename=self.key_path,
                timeout=self.timeout,
                allow_agent=True,
                look_for_keys=self.key_path is None,
            )
            self._client = client
        return self._client

    def _wrap(self, argv: List[str]) -> str:
        command = shlex.join(argv)
        if self.sudo:
            command = f"sudo -n {command}"
        return command

    def _exec(self, argv: List[str]) -> Tuple[int, bytes, bytes]:
        client = self.connect()
        _, stdout, stderr = client.exec_command(self._wrap(argv), timeout=self.command_timeout)
        try:
            out = stdout.read()
            err = stderr.read()
        except socket.timeout:
            return 124, b'', f"timed out after {self.command_timeout}s".encode('utf-8')
        return stdout.channel.recv_exit_status(), out, err

    def _run(self, argv: List[str]) -> CommandResult:
        rc, out, err = self._exec(argv)
        return CommandResult(argv, rc, out.decode('utf-8', errors='replace'), err.decode('utf-8', errors='replace'))

    def read_file(self, path: str) -> Optional[bytes]:
        if not self.exists(path):
            return None
        # Not through run(): content may be secret and run() logs stdout
        argv = ['cat', '--', path]
        rc, out, err = self._exec(argv)
        if rc != 0:
            raise CommandError(CommandResult(argv, rc, '', err.decode('utf-8', errors='replace')))
        return out

    def write_file(self, path: str, data: bytes, mode: int) -> None:
        tmp_path = f"/tmp/.hactl-{uuid.uuid4().hex}"
        sftp = self.connect().open_sftp()
        try:
            f = sftp.file(tmp_path, 'wb')
            try:
                f.write(data)
            finally:
                f.close()
        finally:
            sftp.close()
        try:
            self.run(['install', '-D', '-m', f'{mode:04o}', tmp_path, path])
        finally:
            self.run(['rm', '-f', tmp_path], check=False)

    def stat(self, path: str) -> Optional[FileStat]:
        result = self.run(['stat', '-c', '%a %U %G', path], check=False)
        if not result.ok:
            if not self.exists(path):
                return None
            raise CommandError(result)
        mode, owner, group = result.stdout.split()
        return FileStat(mode=int(mode, 8), owner=owner, group=group)

    def chown(self, path: str, owner: str, group: str) -> None:
        self.run(['chown', f'{owner}:{group}', path])

    def exists(self, path: str) -> bool:
        return self.run(['test', '-e', path], check=False).ok

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
