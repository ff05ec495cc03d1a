"""
Scoreboard file lookup for the Discord Scoreboard plugin

Finds the most recently written scoreboard CSV, either on the local
filesystem or on the game server over SFTP. Lookup problems are logged
and reported as "not found" rather than raised.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from core.server import SFTPOptions
from core.sftp import RemoteEntry, SFTPClient


SCOREBOARD_EXTENSION = '.csv'
DEFAULT_STAGING_DIR = Path('/tmp/squadrelay-scoreboards')


def is_scoreboard_name(name: str) -> bool:
    return name.endswith(SCOREBOARD_EXTENSION)


def pick_latest(candidates: List[Tuple[str, float]]) -> Optional[str]:
    """
    Pick the name with the greatest modification time.

    Ties keep the earliest candidate in list order.
    """
    latest_name = None
    latest_time = None
    for name, mtime in candidates:
        if latest_time is None or mtime > latest_time:
            latest_name = name
            latest_time = mtime
    return latest_name


def _scan_local(directory: Path) -> List[Tuple[str, float]]:
    candidates = []
    for name in os.listdir(directory):
        if not is_scoreboard_name(name):
            continue
        candidates.append((name, (directory / name).stat().st_mtime))
    return candidates


class ScoreboardFinder:
    """Locates the latest scoreboard CSV for a finished round"""

    def __init__(self, logger: Optional[logging.Logger] = None,
                 staging_dir: Path = DEFAULT_STAGING_DIR,
                 sftp_factory: Callable[..., SFTPClient] = SFTPClient):
        self.logger = logger or logging.getLogger(__name__)
        self.staging_dir = Path(staging_dir)
        self.sftp_factory = sftp_factory

    async def find_latest(self, directory: str, use_sftp: bool = False,
                          sftp_options: Optional[SFTPOptions] = None) -> Optional[Path]:
        """
        Find the latest scoreboard file.

        Args:
            directory: Scoreboard directory (local or remote)
            use_sftp: Look on the remote server instead of locally
            sftp_options: Remote credentials, required when use_sftp is set

        Returns:
            Local path of the scoreboard file, or None if not found
        """
        try:
            if use_sftp:
                return await self.find_latest_sftp(directory, sftp_options or SFTPOptions())
            return await self.find_latest_local(directory)
        except Exception as e:
            self.logger.error(f"Error finding latest scoreboard file: {e}")
            return None

    async def find_latest_local(self, directory: str) -> Optional[Path]:
        scoreboard_dir = Path(directory)

        if not await asyncio.to_thread(scoreboard_dir.is_dir):
            self.logger.info(f"Scoreboard directory does not exist: {scoreboard_dir}")
            return None

        candidates = await asyncio.to_thread(_scan_local, scoreboard_dir)
        if not candidates:
            self.logger.info("No CSV files found in scoreboard directory.")
            return None

        return scoreboard_dir / pick_latest(candidates)

    async def find_latest_sftp(self, directory: str, sftp_options: SFTPOptions) -> Optional[Path]:
        sftp = self.sftp_factory(logger=self.logger)

        try:
            await sftp.connect(sftp_options)
            self.logger.info(f"Connected to SFTP server, checking directory: {directory}")

            if not await sftp.exists(directory):
                self.logger.info(f"Scoreboard directory does not exist: {directory}")
                return None

            entries: List[RemoteEntry] = await sftp.list(directory)
            candidates = [
                (entry.name, entry.modify_time)
                for entry in entries
                if entry.is_file and is_scoreboard_name(entry.name)
            ]
            if not candidates:
                self.logger.info("No CSV files found in scoreboard directory.")
                return None

            latest_name = pick_latest(candidates)
            self.logger.info(f"Found latest scoreboard file: {latest_name}")

            await asyncio.to_thread(self.staging_dir.mkdir, parents=True, exist_ok=True)
            local_path = self.staging_dir / latest_name
            await sftp.get(f"{directory.rstrip('/')}/{latest_name}", str(local_path))

            self.logger.info(f"Downloaded scoreboard file to: {local_path}")
            return local_path
        finally:
            await sftp.end()
