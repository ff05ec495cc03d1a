"""
Discord Scoreboard Plugin for SquadRelay

Posts the match scoreboard CSV to a Discord channel when a round ends.
The game server writes one CSV per round into its OSI_Scoreboards
directory; this plugin waits for the write to finish, picks the newest
file (locally or over SFTP, following the server's log reader mode) and
attaches it to a short summary message.

Author: SquadRelay Team
Version: 1.0.0
"""

import asyncio
import io
from pathlib import Path
from typing import Any, Dict, Optional

import discord

from core.discord_connector import DiscordBasePlugin
from core.events import RoundEndedPayload, ServerEvent
from core.plugin_manager import PluginMetadata

from plugins.discord_scoreboard.scoreboard_finder import ScoreboardFinder


DEFAULT_SCOREBOARD_PATH = '/SquadGame/Saved/OSI_Scoreboards/'
DEFAULT_WAIT_TIME_MS = 5000


class DiscordScoreboardPlugin(DiscordBasePlugin):
    """
    Discord Scoreboard Plugin

    Options:
        discordClient: Discord connector name (default: 'discord')
        channelID: ID of the channel to post scoreboards to (required)
        scoreboardPath: Path to the OSI_Scoreboards directory on the server
        waitTime: Milliseconds to wait after round end before looking for the CSV
    """

    def __init__(self, name: str, config: Dict[str, Any], plugin_manager):
        super().__init__(name, config, plugin_manager)

        self.initialized = False
        self._config_cache: Dict[str, Any] = {}
        self.finder = ScoreboardFinder(logger=self.logger)

        self.stats = {
            'rounds_ended': 0,
            'scoreboards_posted': 0,
            'scoreboards_missing': 0,
            'publish_errors': 0
        }

    async def initialize(self) -> bool:
        """Validate options; the plugin is mounted in start()"""
        self.logger.info("Initializing Discord Scoreboard plugin")

        if not self._load_and_validate_config():
            self.logger.error("Configuration validation failed")
            return False

        self.initialized = True
        return True

    def _load_and_validate_config(self) -> bool:
        if not self._validate_discord_options(self._config_cache):
            return False

        scoreboard_path = self.get_config('scoreboardPath', DEFAULT_SCOREBOARD_PATH)
        if not isinstance(scoreboard_path, str) or not scoreboard_path.strip():
            self.logger.error("Configuration validation failed: scoreboardPath must be a non-empty string")
            return False
        self._config_cache['scoreboardPath'] = scoreboard_path.strip()

        wait_time = self.get_config('waitTime', DEFAULT_WAIT_TIME_MS)
        if isinstance(wait_time, bool) or not isinstance(wait_time, (int, float)):
            self.logger.error(f"Configuration validation failed: waitTime must be a number, got {type(wait_time).__name__}")
            return False
        if wait_time < 0:
            self.logger.error(f"Configuration validation failed: waitTime must be >= 0, got {wait_time}")
            return False
        self._config_cache['waitTime'] = wait_time

        self.logger.debug(f"Configuration validated: channel={self._config_cache['channelID']}, "
                          f"path={self._config_cache['scoreboardPath']}, wait={wait_time}ms")
        return True

    async def start(self) -> bool:
        """Resolve the channel and subscribe to round end"""
        if not self.initialized:
            self.logger.error("Cannot start plugin: not initialized")
            return False

        if not await self.resolve_channel(self._config_cache['discordClient'],
                                          self._config_cache['channelID']):
            return False

        self.subscribe(ServerEvent.ROUND_ENDED, self.on_round_ended)
        self.logger.info("DiscordScoreboard plugin mounted.")
        return True

    async def stop(self) -> bool:
        self.unsubscribe_all()
        self.logger.info("DiscordScoreboard plugin unmounted.")
        return True

    def get_metadata(self) -> PluginMetadata:
        return PluginMetadata(
            name="discord_scoreboard",
            version="1.0.0",
            description="Posts match scoreboard CSV files to a Discord channel when a round ends",
            author="SquadRelay Team"
        )

    async def on_round_ended(self, data: Any = None):
        """Handle ROUND_ENDED; never raises"""
        self.stats['rounds_ended'] += 1
        self.logger.info("Round ended, looking for scoreboard CSV...")

        try:
            payload = RoundEndedPayload.from_raw(data)

            await asyncio.sleep(self._config_cache['waitTime'] / 1000)

            csv_file = await self.find_latest_scoreboard_file()
            if csv_file is None:
                self.stats['scoreboards_missing'] += 1
                self.logger.info("No scoreboard CSV file found.")
                return

            self.logger.info(f"Found scoreboard file: {csv_file}")

            await self.send_scoreboard(csv_file, payload)

            self.stats['scoreboards_posted'] += 1
            self.logger.info("Scoreboard posted to Discord successfully.")
        except Exception as e:
            self.logger.error(f"Error posting scoreboard: {e}")
            self.logger.debug("Scoreboard posting traceback", exc_info=True)

    async def find_latest_scoreboard_file(self) -> Optional[Path]:
        options = self.server.options
        return await self.finder.find_latest(
            self._config_cache['scoreboardPath'],
            use_sftp=options.uses_sftp,
            sftp_options=options.sftp
        )

    def format_message(self, payload: RoundEndedPayload) -> str:
        layer_name = self.server.layer_name or 'Unknown Map'
        winner = payload.winner or 'Unknown'
        return f"**Match Scoreboard**\nWinner: **{winner}**\n Map: **{layer_name}**"

    async def send_scoreboard(self, csv_file: Path, payload: RoundEndedPayload):
        """
        Send the scoreboard file to the configured channel.

        Raises:
            Exception: Whatever the channel raised, after logging it
        """
        try:
            content = await asyncio.to_thread(Path(csv_file).read_bytes)
            attachment = discord.File(fp=io.BytesIO(content), filename=Path(csv_file).name)
            await self.channel.send(content=self.format_message(payload), files=[attachment])
        except Exception as e:
            self.stats['publish_errors'] += 1
            self.logger.error(f"Error sending scoreboard to Discord: {e}")
            raise
