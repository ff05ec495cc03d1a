"""
Discord Connector for SquadRelay

Thin wrapper around a discord.py client that plugins use to resolve the
channel they post to. The connector owns the connection; plugins only
hold channel references.
"""

import asyncio
from typing import Any, Dict, Optional

import discord

from .logging import get_logger
from .plugin_manager import BasePlugin


class ChannelNotFoundError(Exception):
    """Raised when a configured channel cannot be resolved"""
    pass


class DiscordConnector:
    """
    Owns a discord.py client.

    Provides:
    - async login()/close() lifecycle
    - channel lookup from cache with API fallback
    """

    def __init__(self, client: Optional[discord.Client] = None):
        self.logger = get_logger('discord_connector')
        self._client = client
        self._run_task: Optional[asyncio.Task] = None

    def _build_client(self) -> discord.Client:
        intents = discord.Intents.default()
        intents.guilds = True
        intents.members = False
        intents.message_content = False
        return discord.Client(intents=intents)

    @property
    def client(self) -> Optional[discord.Client]:
        return self._client

    async def login(self, token: str):
        """Start the client in the background and wait until it is ready"""
        if not token:
            raise ValueError("Discord token is required")

        if self._client is None:
            self._client = self._build_client()

        self.logger.info("Connecting Discord client")
        self._run_task = asyncio.create_task(self._client.start(token))
        await self._client.wait_until_ready()
        self.logger.info(f"Discord connected as {self._client.user}")

    async def fetch_channel(self, channel_id: Any) -> discord.abc.Messageable:
        """
        Resolve a channel by ID.

        Raises:
            ChannelNotFoundError: If the channel does not exist, is not
                accessible, or cannot receive messages
        """
        if self._client is None:
            raise ChannelNotFoundError("Discord client is not connected")

        try:
            channel_id = int(channel_id)
        except (TypeError, ValueError):
            raise ChannelNotFoundError(f"Invalid channel ID: {channel_id!r}")

        channel = self._client.get_channel(channel_id)
        if channel is None:
            try:
                channel = await self._client.fetch_channel(channel_id)
            except discord.NotFound:
                raise ChannelNotFoundError(f"Channel {channel_id} not found")
            except discord.Forbidden:
                raise ChannelNotFoundError(f"No access to channel {channel_id}")
            except discord.HTTPException as e:
                raise ChannelNotFoundError(f"Failed to fetch channel {channel_id}: {e}")

        if not isinstance(channel, discord.abc.Messageable):
            raise ChannelNotFoundError(f"Channel {channel_id} is not messageable")

        return channel

    async def close(self):
        """Close the Discord connection"""
        if self._client is None:
            return

        self.logger.info("Closing Discord connection")
        try:
            await self._client.close()
        except Exception as e:
            self.logger.warning(f"Discord close error ignored: {e}")

        if self._run_task is not None:
            await asyncio.gather(self._run_task, return_exceptions=True)
            self._run_task = None


class DiscordBasePlugin(BasePlugin):
    """
    Base class for plugins that post to a Discord channel.

    Options:
        discordClient: Name of the Discord connector (default: 'discord')
        channelID: ID of the channel to post to (required)
    """

    def __init__(self, name: str, config: Dict[str, Any], plugin_manager):
        super().__init__(name, config, plugin_manager)
        self.channel: Optional[discord.abc.Messageable] = None

    def _validate_discord_options(self, config_cache: Dict[str, Any]) -> bool:
        connector_name = self.get_config('discordClient', 'discord')
        if not isinstance(connector_name, str) or not connector_name.strip():
            self.logger.error("Configuration validation failed: discordClient must be a non-empty string")
            return False
        config_cache['discordClient'] = connector_name.strip()

        channel_id = self.get_config('channelID', '')
        if isinstance(channel_id, bool) or not isinstance(channel_id, (str, int)):
            self.logger.error(f"Configuration validation failed: channelID must be a string, got {type(channel_id).__name__}")
            return False
        channel_id = str(channel_id).strip()
        if not channel_id:
            self.logger.error("Configuration validation failed: channelID is required")
            return False
        config_cache['channelID'] = channel_id
        return True

    async def resolve_channel(self, connector_name: str, channel_id: str) -> bool:
        """Look up the configured channel on the named connector"""
        connector = self.plugin_manager.get_connector(connector_name)
        if connector is None:
            self.logger.error(f"Discord connector '{connector_name}' is not available")
            return False

        try:
            self.channel = await connector.fetch_channel(channel_id)
        except ChannelNotFoundError as e:
            self.logger.error(f"Could not resolve Discord channel: {e}")
            return False

        self.logger.debug(f"Resolved Discord channel {channel_id}")
        return True
