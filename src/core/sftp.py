"""
SFTP Client Wrapper for SquadRelay

Provides an async wrapper around asyncssh exposing the small set of
operations plugins need to fetch files written on a remote game server.
"""

import logging
import stat
from dataclasses import dataclass
from typing import List, Optional, Union

import asyncssh

from .server import SFTPOptions


class SFTPError(Exception):
    """Raised for SFTP connection or transfer failures"""
    pass


@dataclass
class RemoteEntry:
    """A directory entry on the remote server"""
    name: str
    type: str  # '-' regular file, 'd' directory, 'l' link, '?' other
    modify_time: float
    size: int = 0

    @property
    def is_file(self) -> bool:
        return self.type == '-'


def _entry_type(permissions: Optional[int]) -> str:
    if permissions is None:
        return '?'
    if stat.S_ISREG(permissions):
        return '-'
    if stat.S_ISDIR(permissions):
        return 'd'
    if stat.S_ISLNK(permissions):
        return 'l'
    return '?'


class SFTPClient:
    """
    Async SFTP client.

    Usage::

        client = SFTPClient()
        await client.connect(options)
        try:
            entries = await client.list('/path')
        finally:
            await client.end()
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._connection: Optional[asyncssh.SSHClientConnection] = None
        self._sftp: Optional[asyncssh.SFTPClient] = None

    @property
    def connected(self) -> bool:
        return self._sftp is not None

    async def connect(self, options: Union[SFTPOptions, dict]):
        """Open an SSH connection and start an SFTP session"""
        if isinstance(options, dict):
            options = SFTPOptions.from_dict(options)

        if not options.host:
            raise SFTPError("SFTP host is not configured")

        try:
            self._connection = await asyncssh.connect(
                options.host,
                port=options.port,
                username=options.username or None,
                password=options.password or None,
                known_hosts=None
            )
            self._sftp = await self._connection.start_sftp_client()
        except (OSError, asyncssh.Error) as e:
            await self.end()
            raise SFTPError(f"Failed to connect to {options.host}:{options.port}: {e}") from e

        self.logger.debug(f"SFTP session opened to {options.host}:{options.port}")

    def _require_session(self) -> asyncssh.SFTPClient:
        if not self.connected:
            raise SFTPError("SFTP session is not connected")
        return self._sftp

    async def exists(self, path: str) -> bool:
        sftp = self._require_session()
        try:
            return await sftp.exists(path)
        except asyncssh.Error as e:
            raise SFTPError(f"Failed to check {path}: {e}") from e

    async def list(self, path: str) -> List[RemoteEntry]:
        """List a remote directory"""
        sftp = self._require_session()
        try:
            names = await sftp.readdir(path)
        except asyncssh.Error as e:
            raise SFTPError(f"Failed to list {path}: {e}") from e

        entries = []
        for item in names:
            if item.filename in ('.', '..'):
                continue
            attrs = item.attrs
            entries.append(RemoteEntry(
                name=item.filename,
                type=_entry_type(attrs.permissions),
                modify_time=float(attrs.mtime or 0),
                size=int(attrs.size or 0)
            ))
        return entries

    async def get(self, remote_path: str, local_path: str):
        """Download a remote file"""
        sftp = self._require_session()
        try:
            await sftp.get(remote_path, local_path)
        except (OSError, asyncssh.Error) as e:
            raise SFTPError(f"Failed to download {remote_path}: {e}") from e

    async def end(self):
        """Close the session; safe to call more than once"""
        if self._sftp is not None:
            self._sftp.exit()
            self._sftp = None

        if self._connection is not None:
            connection = self._connection
            self._connection = None
            connection.close()
            try:
                await connection.wait_closed()
            except (OSError, asyncssh.Error) as e:
                self.logger.debug(f"Error while closing SFTP connection: {e}")
