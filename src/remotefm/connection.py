"""Paramiko-backed implementation of :class:`remotefm.session.RemoteSession`."""

from __future__ import annotations

import logging
import posixpath
import socket
import threading
import time
from contextlib import contextmanager
from typing import Iterator, Optional

import paramiko

from .config import ConnectionConfig
from .errors import ConnectionLostError, FileOperationError
from .fileops import FileEntry, entry_from_attr
from .logger import summarize
from .session import CommandResult, TransferCallback

logger = logging.getLogger(__name__)

_TRANSPORT_ERRORS = (paramiko.SSHException, EOFError, socket.timeout, ConnectionError)
_RECV_SIZE = 32768
_POLL_INTERVAL = 0.05

@contextmanager
def _transport_errors(action: str) -> Iterator[None]:
    """Re-raise transport failures as :class:`ConnectionLostError`."""
    try:
        yield
    except _TRANSPORT_ERRORS as exc:
        raise ConnectionLostError(f"Connection lost while trying to {action}: {exc}") from exc

class SFTPSession:
    """One SSH connection carrying an SFTP channel and exec channels.

    Calls block; the engine runs them on worker threads. Tests can
    monkeypatch :class:`paramiko.SSHClient` to avoid talking to a real server.
    """

    def __init__(
        self,
        host: str,
        username: str,
        port: Optional[int] = None,
        password: Optional[str] = None,
        *,
        config: Optional[ConnectionConfig] = None,
    ) -> None:
        self._config = config or ConnectionConfig()
        self._host = host
        self._username = username
        self._password = password
        self._port = port or self._config.port
        self._client: Optional[paramiko.SSHClient] = None
        self._sftp: Optional[paramiko.SFTPClient] = None
        self._home: Optional[str] = None
        self._lock = threading.RLock()

    def __enter__(self) -> "SFTPSession":
        self.connect()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # -- connection -----------------------------------------------------

    def connect(self) -> None:
        """Establish SSH/SFTP connection."""
        logger.info(f"Connecting to {self._username}@{self._host}:{self._port}")

        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            client.connect(
                hostname=self._host,
                username=self._username,
                password=self._password,
                port=self._port,
                allow_agent=self._config.allow_agent,
                look_for_keys=self._config.look_for_keys,
                timeout=self._config.timeout,
                auth_timeout=self._config.timeout,
            )
            sftp = client.open_sftp()
        except paramiko.AuthenticationException as e:
            client.close()
            raise FileOperationError(f"Authentication failed: {e}") from e
        except (paramiko.SSHException, OSError, EOFError) as e:
            client.close()
            raise ConnectionLostError(f"SSH connection failed: {e}") from e

        with self._lock:
            self._client = client
            self._sftp = sftp
            self._home = self._discover_home(sftp)

        logger.info(f"SFTP connection established, home directory is {self._home}")

    def close(self) -> None:
        """Close connections and cleanup resources."""
        with self._lock:
            if self._sftp is not None:
                try:
                    self._sftp.close()
                except Exception as e:
                    logger.warning(f"Error closing SFTP client: {e}")
                finally:
                    self._sftp = None
            if self._client is not None:
                try:
                    self._client.close()
                except Exception as e:
                    logger.warning(f"Error closing SSH client: {e}")
                finally:
                    self._client = None

    @property
    def is_connected(self) -> bool:
        with self._lock:
            if self._client is None or self._sftp is None:
                return False
            transport = self._client.get_transport()
            return bool(transport and transport.is_active())

    @property
    def home_directory(self) -> Optional[str]:
        return self._home

    def _ensure_connected(self) -> paramiko.SFTPClient:
        with self._lock:
            if not self._sftp or not self._client:
                raise ConnectionLostError("Not connected to server")
            return self._sftp

    def _discover_home(self, sftp: paramiko.SFTPClient) -> str:
        """Resolve the login directory, which is normally the user's home."""
        try:
            return sftp.normalize(".")
        except Exception as e:
            logger.warning(f"normalize('.') failed, probing common home paths: {e}")

        for candidate in (
            f"/home/{self._username}",
            f"/Users/{self._username}",
            f"/export/home/{self._username}",
        ):
            try:
                sftp.stat(candidate)
                return candidate
            except IOError:
                continue
        return f"/home/{self._username}"

    # -- file-transfer primitives ---------------------------------------

    def list_directory(self, path: str) -> Iterator[FileEntry]:
        sftp = self._ensure_connected()
        with _transport_errors(f"list {path}"):
            for attr in sftp.listdir_iter(path):
                if not attr.filename:
                    continue
                yield entry_from_attr(attr)

    def stat(self, path: str) -> FileEntry:
        sftp = self._ensure_connected()
        with _transport_errors(f"stat {path}"):
            attr = sftp.stat(path)
        return entry_from_attr(attr, name=posixpath.basename(path.rstrip("/")) or path)

    def exists(self, path: str) -> bool:
        try:
            self.stat(path)
        except FileNotFoundError:
            return False
        return True

    def upload_stream(
        self, local_path: str, remote_path: str, callback: Optional[TransferCallback] = None
    ) -> None:
        sftp = self._ensure_connected()
        with _transport_errors(f"upload {local_path}"):
            sftp.put(local_path, remote_path, callback=callback)

    def download_stream(
        self, remote_path: str, local_path: str, callback: Optional[TransferCallback] = None
    ) -> None:
        sftp = self._ensure_connected()
        with _transport_errors(f"download {remote_path}"):
            sftp.get(remote_path, local_path, callback=callback)

    def create_directory(self, path: str) -> None:
        sftp = self._ensure_connected()
        with _transport_errors(f"create {path}"):
            sftp.mkdir(path)

    def delete_file(self, path: str) -> None:
        sftp = self._ensure_connected()
        with _transport_errors(f"delete {path}"):
            sftp.remove(path)

    def delete_empty_directory(self, path: str) -> None:
        sftp = self._ensure_connected()
        with _transport_errors(f"remove directory {path}"):
            sftp.rmdir(path)

    def rename(self, old_path: str, new_path: str) -> None:
        sftp = self._ensure_connected()
        with _transport_errors(f"rename {old_path}"):
            sftp.rename(old_path, new_path)

    # -- command channel ------------------------------------------------

    def run_command(self, command: str) -> CommandResult:
        """Run *command* on a fresh exec channel and wait for its exit status.

        A channel the server refuses to open, or a command still running after
        ``command_timeout`` seconds, is reported as exit status -1 so callers
        can fall back to the file-transfer primitives. Only a dead transport
        raises :class:`ConnectionLostError`.
        """
        self._ensure_connected()
        client = self._client
        logger.debug(f"Running remote command: {summarize(command)}")
        with _transport_errors("run a command"):
            try:
                stdin, stdout, _stderr = client.exec_command(command)
            except paramiko.ChannelException as exc:
                return CommandResult(-1, "", f"channel rejected: {exc}")
            except paramiko.SSHException as exc:
                if not self.is_connected:
                    raise
                return CommandResult(-1, "", f"command channel unavailable: {exc}")

            stdin.close()
            return self._wait_for_exit(stdout.channel, command)

    def _wait_for_exit(self, channel: paramiko.Channel, command: str) -> CommandResult:
        """Drain stdout and stderr as data arrives until the command exits."""
        out = bytearray()
        err = bytearray()
        timeout = self._config.command_timeout
        deadline = time.monotonic() + timeout if timeout > 0 else None

        while True:
            idle = True
            if channel.recv_ready():
                out += channel.recv(_RECV_SIZE)
                idle = False
            if channel.recv_stderr_ready():
                err += channel.recv_stderr(_RECV_SIZE)
                idle = False
            if not idle:
                continue

            if channel.exit_status_ready():
                break
            if not self.is_connected:
                raise ConnectionLostError(
                    f"Connection lost while running: {summarize(command, 80)}"
                )
            if deadline is not None and time.monotonic() > deadline:
                channel.close()
                logger.warning(f"Command timed out after {timeout:g}s: {summarize(command)}")
                return CommandResult(-1, _decode(out), f"timed out after {timeout:g}s")
            time.sleep(_POLL_INTERVAL)

        return CommandResult(channel.recv_exit_status(), _decode(out), _decode(err))

def _decode(data: bytes) -> str:
    return bytes(data).decode("utf-8", errors="replace")
