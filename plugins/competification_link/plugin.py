"""
Competification Link Plugin for SquadRelay

Sends each connecting player's Steam ID and EOS ID to the Competification
API so the two accounts can be linked. Pairs already sent during this
session are skipped; the cache is pruned against the live roster every
time the server refreshes its player list.

Author: SquadRelay Team
Version: 1.0.0
"""

import asyncio
from typing import Any, Dict, List

from core.events import PayloadError, PlayerConnectedPayload, RosterUpdatePayload, ServerEvent
from core.http_client import HTTPRequestError, PluginHTTPClient
from core.plugin_manager import BasePlugin, PluginMetadata
from models.player import Player

from plugins.competification_link.processed_players import ProcessedPlayerCache


DEFAULT_API_ENDPOINT = 'https://squad.competification.com/api-squad/eoslink'
DEFAULT_TIMEOUT_MS = 5000
MAX_RETRIES = 2
RETRY_DELAY_SECONDS = 2
PROCESSED_CACHE_SIZE = 500


class CompetificationLinkPlugin(BasePlugin):
    """
    Competification Link Plugin

    Options:
        apiEndpoint: API endpoint URL to send player data to
        apiToken: API authentication token
        timeout: API request timeout in milliseconds
        retryOnFailure: Whether to retry failed API calls
        logSuccessful: Log successful API calls
    """

    def __init__(self, name: str, config: Dict[str, Any], plugin_manager):
        super().__init__(name, config, plugin_manager)

        self.initialized = False
        self._config_cache: Dict[str, Any] = {}
        self.processed_players = ProcessedPlayerCache(max_size=PROCESSED_CACHE_SIZE)
        self.http_client = PluginHTTPClient(name)

        self.stats = {
            'submissions_attempted': 0,
            'submissions_succeeded': 0,
            'submissions_failed': 0,
            'duplicates_skipped': 0,
            'players_evicted': 0
        }

    async def initialize(self) -> bool:
        self.logger.info("CompetificationLink plugin initializing...")

        if not self._load_and_validate_config():
            self.logger.error("Configuration validation failed")
            return False

        if not self._config_cache['apiToken']:
            self.logger.warning("No apiToken configured; API calls will be sent unauthenticated")

        self.initialized = True
        return True

    def _load_and_validate_config(self) -> bool:
        api_endpoint = self.get_config('apiEndpoint', DEFAULT_API_ENDPOINT)
        if not isinstance(api_endpoint, str) or not api_endpoint.startswith(('http://', 'https://')):
            self.logger.error(f"Configuration validation failed: apiEndpoint must be an http(s) URL, got {api_endpoint!r}")
            return False
        self._config_cache['apiEndpoint'] = api_endpoint

        api_token = self.get_config('apiToken', '')
        if not isinstance(api_token, str):
            self.logger.error(f"Configuration validation failed: apiToken must be a string, got {type(api_token).__name__}")
            return False
        self._config_cache['apiToken'] = api_token

        timeout = self.get_config('timeout', DEFAULT_TIMEOUT_MS)
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            self.logger.error(f"Configuration validation failed: timeout must be a positive number, got {timeout!r}")
            return False
        self._config_cache['timeout'] = timeout

        for flag in ('retryOnFailure', 'logSuccessful'):
            value = self.get_config(flag, False)
            if not isinstance(value, bool):
                self.logger.error(f"Configuration validation failed: {flag} must be a boolean, got {type(value).__name__}")
                return False
            self._config_cache[flag] = value

        return True

    async def start(self) -> bool:
        if not self.initialized:
            self.logger.error("Cannot start plugin: not initialized")
            return False

        self.subscribe(ServerEvent.PLAYER_CONNECTED, self.on_player_connected)
        self.subscribe(ServerEvent.UPDATED_PLAYER_INFORMATION, self.on_player_list_update)
        self.logger.info("CompetificationLink plugin mounted and listening for player events.")
        return True

    async def stop(self) -> bool:
        self.unsubscribe_all()
        self.logger.info("CompetificationLink plugin unmounted.")
        return True

    async def cleanup(self) -> bool:
        # In-flight submissions are cancelled before the session closes
        result = await super().cleanup()
        await self.http_client.close()
        return result

    def get_metadata(self) -> PluginMetadata:
        return PluginMetadata(
            name="competification_link",
            version="1.0.0",
            description="Sends player Steam ID and EOS ID to the Competification API when they connect",
            author="SquadRelay Team"
        )

    async def on_player_list_update(self, data: Any = None):
        """Handle UPDATED_PLAYER_INFORMATION; never raises"""
        try:
            try:
                payload = RosterUpdatePayload.from_raw(data)
            except PayloadError as e:
                self.logger.warning(f"Ignoring malformed roster update: {e}")
                return

            players: List[Player] = payload.players if payload.players is not None else list(self.server.players)
            self.logger.debug(f"Player list updated - {len(players)} players online")

            for player in players:
                key = player.link_key()
                if key is None or key in self.processed_players:
                    continue

                self.logger.debug(f"New player found in list - Name: {player.name}, "
                                  f"SteamID: {player.steam_id}, EOSID: {player.eos_id}")
                self.processed_players.add(key)
                await self.send_to_api(player.steam_id, player.eos_id, player.display_name)

            current_keys = [p.link_key() for p in players if p.has_link_ids()]
            evicted = self.processed_players.retain_only(current_keys)
            if evicted:
                self.stats['players_evicted'] += evicted
                self.logger.debug(f"Removed {evicted} disconnected player(s) from cache")

            self._enforce_cache_cap()
        except Exception as e:
            self.logger.error(f"Error in onPlayerListUpdate: {e}", exc_info=True)

    async def on_player_connected(self, data: Any = None):
        """Handle PLAYER_CONNECTED; never raises"""
        try:
            self.logger.debug(f"PLAYER_CONNECTED event received: {data!r}")

            try:
                payload = PlayerConnectedPayload.from_raw(data)
            except PayloadError as e:
                self.logger.warning(f"{e}; ignoring event")
                return

            player = payload.player
            key = player.link_key()
            if key is None:
                self.logger.warning(
                    f"Missing IDs for player {player.display_name} - "
                    f"SteamID: {player.steam_id or 'N/A'}, EOSID: {player.eos_id or 'N/A'}"
                )
                return

            if key in self.processed_players:
                self.stats['duplicates_skipped'] += 1
                self.logger.debug(f"Player {player.display_name} ({player.steam_id}) already processed, skipping API call.")
                return

            self.logger.info(f"Player connected - Name: {player.display_name}, "
                             f"SteamID: {player.steam_id}, EOSID: {player.eos_id}")

            # Marked before the call so a concurrent roster refresh skips it
            self.processed_players.add(key)
            await self.send_to_api(player.steam_id, player.eos_id, player.display_name)

            self.logger.debug(f"Added player to processed list (total: {len(self.processed_players)})")
            self._enforce_cache_cap()
        except Exception as e:
            self.logger.error(f"Error in onPlayerConnected: {e}", exc_info=True)

    def _enforce_cache_cap(self):
        removed = self.processed_players.enforce_cap()
        if removed:
            self.logger.debug(f"Cleaned up processed players cache ({removed} removed)")

    def _build_headers(self) -> Dict[str, str]:
        return {
            'X-Squad-JS-Token': self._config_cache['apiToken'],
            'Content-Type': 'application/json'
        }

    async def send_to_api(self, steam_id: str, eos_id: str,
                          player_name: str = 'Unknown', retry_count: int = 0) -> bool:
        """
        Send a Steam/EOS ID pair to the API.

        Failures are logged and, when retryOnFailure is set, retried up to
        MAX_RETRIES more times with a fixed delay. Never raises.

        Returns:
            True if the API accepted the link, False otherwise
        """
        self.stats['submissions_attempted'] += 1
        self.logger.info(f"Sending link to API for {player_name}: SteamID={steam_id}, EOSID={eos_id}")

        try:
            response = await self.http_client.put(
                self._config_cache['apiEndpoint'],
                data={'steamid': steam_id, 'eosid': eos_id},
                timeout=self._config_cache['timeout'] / 1000,
                headers=self._build_headers()
            )
        except Exception as e:
            self.stats['submissions_failed'] += 1
            self.logger.error(f"Failed to send link to API: {e}")
            if isinstance(e, HTTPRequestError) and e.has_response:
                self.logger.error(f"API Error - Status: {e.status}, Data: {e.data!r}")
            elif isinstance(e, HTTPRequestError):
                self.logger.error("API Error - No response received from server")
            else:
                self.logger.error(f"API Error - Request setup error: {e}")

            if self._config_cache['retryOnFailure'] and retry_count < MAX_RETRIES:
                self.logger.info(f"Retrying API call (attempt {retry_count + 2}/{MAX_RETRIES + 1})...")
                await asyncio.sleep(RETRY_DELAY_SECONDS)
                return await self.send_to_api(steam_id, eos_id, player_name, retry_count + 1)
            return False

        if isinstance(response, dict) and response.get('success'):
            self.stats['submissions_succeeded'] += 1
            if self._config_cache['logSuccessful']:
                self.logger.debug(f"Successfully linked player: {response.get('message') or 'Link saved'}")
                self.logger.debug(f"API Response: {response!r}")
            return True

        self.logger.warning(f"API returned unsuccessful response: {response!r}")
        return False
