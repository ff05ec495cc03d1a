"""
SquadRelay Main Application Entry Point

Loads configuration, sets up logging, connects the Discord connector and
mounts the enabled plugins on the host server state. The host's log
parser feeds events into ``application.server.events``.
"""

import asyncio
import signal
from typing import Any, Dict, Optional

from core.config import ConfigurationManager
from core.discord_connector import DiscordConnector
from core.logging import initialize_logging, get_logger
from core.plugin_manager import PluginManager
from core.server import ServerOptions, ServerState

from plugins.competification_link import CompetificationLinkPlugin
from plugins.discord_scoreboard import DiscordScoreboardPlugin


PLUGIN_CLASSES = {
    'discord_scoreboard': DiscordScoreboardPlugin,
    'competification_link': CompetificationLinkPlugin,
}


class SquadRelayApplication:
    """Main SquadRelay application"""

    def __init__(self, config_manager: Optional[ConfigurationManager] = None):
        self.config_manager = config_manager
        self.server: Optional[ServerState] = None
        self.plugin_manager: Optional[PluginManager] = None
        self.connectors: Dict[str, Any] = {}
        self.logger = None
        self.shutdown_event = asyncio.Event()

    async def initialize(self):
        """Initialize configuration, logging, connectors and plugins"""
        if self.config_manager is None:
            self.config_manager = ConfigurationManager()
            self.config_manager.load_config()

        initialize_logging(self.config_manager.config)
        self.logger = get_logger('main')
        self.logger.info("SquadRelay starting up...")
        self.logger.info(f"Version: {self.config_manager.get('app.version', '1.0.0')}")

        self.server = ServerState(options=ServerOptions.from_dict(self.config_manager.get_server_options()))
        self.logger.info(f"Log reader mode: {self.server.options.log_reader_mode}")

        await self._initialize_connectors()

        self.plugin_manager = PluginManager(self.config_manager, self.server, self.connectors)
        for name, plugin_class in PLUGIN_CLASSES.items():
            self.plugin_manager.register_plugin_class(name, plugin_class)

    async def _initialize_connectors(self):
        token = self.config_manager.get_connector_config('discord').get('token')
        if not token:
            self.logger.info("No Discord token configured; Discord connector disabled")
            return

        connector = DiscordConnector()
        try:
            await connector.login(token)
        except Exception as e:
            self.logger.error(f"Failed to connect Discord connector: {e}")
            await connector.close()
            return
        self.connectors['discord'] = connector

    async def start(self):
        """Start plugins and wait for a shutdown signal"""
        await self.initialize()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, self.shutdown_event.set)
            except NotImplementedError:
                signal.signal(sig, lambda signum, frame: self.shutdown_event.set())

        if not await self.plugin_manager.start_all_plugins():
            self.logger.warning("One or more plugins failed to start")

        self.logger.info(f"Running plugins: {', '.join(self.plugin_manager.get_running_plugins()) or 'none'}")

        await self.shutdown_event.wait()
        self.logger.info("Shutdown signal received")
        await self.shutdown()

    async def shutdown(self):
        """Stop plugins and close connectors"""
        if self.plugin_manager is not None:
            await self.plugin_manager.stop_all_plugins()
        if self.server is not None:
            await self.server.events.drain()
        for connector in self.connectors.values():
            await connector.close()
        self.connectors.clear()
        if self.logger:
            self.logger.info("SquadRelay stopped")


def main():
    asyncio.run(SquadRelayApplication().start())


if __name__ == "__main__":
    main()
