"""
Plugin Management System for SquadRelay

Provides registration, lifecycle management and status tracking for
the event-driven plugins mounted on the host server.
"""

import asyncio
import traceback
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple, Type

from .config import ConfigurationManager
from .logging import get_logger, get_structured_logger, log_plugin_error
from .events import ServerEvent
from .server import ServerState


class PluginStatus(Enum):
    """Plugin status enumeration"""
    UNLOADED = "unloaded"
    LOADED = "loaded"
    RUNNING = "running"
    STOPPED = "stopped"
    FAILED = "failed"
    DISABLED = "disabled"


@dataclass
class PluginMetadata:
    """Plugin metadata"""
    name: str
    version: str
    description: str
    author: str
    default_enabled: bool = False

    def __post_init__(self):
        """Validate metadata after initialization"""
        if not self.name or not isinstance(self.name, str):
            raise ValueError("Plugin name must be a non-empty string")
        if not self.version or not isinstance(self.version, str):
            raise ValueError("Plugin version must be a non-empty string")


@dataclass
class PluginInfo:
    """Complete plugin information"""
    plugin_class: Type['BasePlugin']
    status: PluginStatus = PluginStatus.UNLOADED
    instance: Optional['BasePlugin'] = None
    config: Dict[str, Any] = field(default_factory=dict)
    load_time: Optional[datetime] = None
    start_time: Optional[datetime] = None
    last_error: Optional[str] = None


class BasePlugin(ABC):
    """
    Abstract base class for all SquadRelay plugins.

    ``start`` mounts the plugin (subscribes its event handlers) and
    ``stop`` unmounts it. Handler runs are tracked as plugin tasks so
    ``cleanup`` cancels and awaits any still in flight.
    """

    def __init__(self, name: str, config: Dict[str, Any], plugin_manager: 'PluginManager'):
        self.name = name
        self.config = config or {}
        self.plugin_manager = plugin_manager
        self.logger = get_logger(f'plugin_{name}')
        self.is_running = False
        self._tasks: Set[asyncio.Task] = set()
        self._subscriptions: Dict[Tuple[ServerEvent, Callable], Callable[[Any], Awaitable[None]]] = {}

    @property
    def server(self) -> ServerState:
        return self.plugin_manager.server

    def get_config(self, key: str, default: Any = None) -> Any:
        """Get a plugin option"""
        return self.config.get(key, default)

    def subscribe(self, event: ServerEvent, handler: Callable[[Any], Awaitable[None]]):
        """Subscribe a handler to a server event"""
        async def dispatch(payload: Any = None):
            await self.create_task(handler(payload))

        key = (event, handler)
        if key not in self._subscriptions:
            self._subscriptions[key] = dispatch
            self.server.on(event, dispatch)

    def unsubscribe_all(self):
        """Remove every handler this plugin subscribed"""
        for (event, _), dispatch in self._subscriptions.items():
            self.server.remove_listener(event, dispatch)
        self._subscriptions.clear()

    @abstractmethod
    async def initialize(self) -> bool:
        """
        Initialize the plugin.

        Returns:
            bool: True if initialization successful, False otherwise
        """
        pass

    @abstractmethod
    async def start(self) -> bool:
        """
        Mount the plugin on the server.

        Returns:
            bool: True if start successful, False otherwise
        """
        pass

    @abstractmethod
    async def stop(self) -> bool:
        """
        Unmount the plugin.

        Returns:
            bool: True if stop successful, False otherwise
        """
        pass

    async def cleanup(self) -> bool:
        """Clean up plugin resources"""
        await self.cancel_tasks()
        return True

    @abstractmethod
    def get_metadata(self) -> PluginMetadata:
        """Get plugin metadata"""
        pass

    def create_task(self, coro) -> asyncio.Task:
        """Create and track an async task"""
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def cancel_tasks(self):
        """Cancel all plugin tasks"""
        for task in self._tasks.copy():
            if not task.done():
                task.cancel()

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()


class PluginManager:
    """
    Manages the lifecycle of plugins: loading with their configuration,
    mounting on the server and unmounting.
    """

    def __init__(self, config_manager: Optional[ConfigurationManager] = None,
                 server: Optional[ServerState] = None,
                 connectors: Optional[Dict[str, Any]] = None):
        self.config_manager = config_manager
        self.server = server or ServerState()
        self.connectors: Dict[str, Any] = connectors or {}
        self.logger = get_logger('plugin_manager')
        self.lifecycle_log = get_structured_logger('plugin_lifecycle')
        self.plugins: Dict[str, PluginInfo] = {}

    def register_plugin_class(self, plugin_name: str, plugin_class: Type[BasePlugin]):
        """Make a plugin class available under a name"""
        self.plugins[plugin_name] = PluginInfo(plugin_class=plugin_class)
        self.logger.debug(f"Registered plugin class {plugin_class.__name__} as {plugin_name}")

    def get_connector(self, name: str) -> Any:
        return self.connectors.get(name)

    def get_plugin(self, plugin_name: str) -> Optional[BasePlugin]:
        info = self.plugins.get(plugin_name)
        return info.instance if info else None

    def get_plugin_status(self, plugin_name: str) -> Optional[PluginStatus]:
        info = self.plugins.get(plugin_name)
        return info.status if info else None

    async def load_plugin(self, plugin_name: str, config: Optional[Dict[str, Any]] = None) -> bool:
        """
        Instantiate and initialize a registered plugin.

        Args:
            plugin_name: Name of the plugin to load
            config: Plugin options (defaults to the config manager's block)

        Returns:
            bool: True if loaded successfully, False otherwise
        """
        if plugin_name not in self.plugins:
            self.logger.error(f"Plugin {plugin_name} not registered")
            return False

        plugin_info = self.plugins[plugin_name]
        if config is None and self.config_manager is not None:
            config = self.config_manager.get_plugin_config(plugin_name)
        plugin_info.config = config or {}

        try:
            instance = plugin_info.plugin_class(plugin_name, plugin_info.config, self)
            plugin_info.instance = instance

            if not await instance.initialize():
                raise RuntimeError(f"Plugin {plugin_name} initialize method returned False")

            plugin_info.status = PluginStatus.LOADED
            plugin_info.load_time = datetime.now(timezone.utc)
            self.logger.info(f"Successfully loaded plugin: {plugin_name}")
            return True

        except Exception as e:
            self.logger.error(f"Failed to load plugin {plugin_name}: {e}")
            log_plugin_error(self.logger, plugin_name, type(e).__name__, str(e),
                             context={'phase': 'load'}, stack_trace=traceback.format_exc())
            plugin_info.status = PluginStatus.FAILED
            plugin_info.last_error = str(e)
            return False

    async def start_plugin(self, plugin_name: str) -> bool:
        """
        Mount a loaded plugin.

        Args:
            plugin_name: Name of the plugin to start

        Returns:
            bool: True if started successfully, False otherwise
        """
        if plugin_name not in self.plugins:
            self.logger.error(f"Plugin {plugin_name} not found")
            return False

        plugin_info = self.plugins[plugin_name]

        if plugin_info.status == PluginStatus.RUNNING:
            self.logger.warning(f"Plugin {plugin_name} already running")
            return True

        if plugin_info.status not in (PluginStatus.LOADED, PluginStatus.STOPPED):
            self.logger.error(f"Plugin {plugin_name} not in loaded state (current: {plugin_info.status})")
            return False

        try:
            if not await plugin_info.instance.start():
                raise RuntimeError(f"Plugin {plugin_name} start method returned False")

            plugin_info.instance.is_running = True
            plugin_info.status = PluginStatus.RUNNING
            plugin_info.start_time = datetime.now(timezone.utc)
            self.logger.info(f"Successfully started plugin: {plugin_name}")
            self.lifecycle_log.info("plugin_started", plugin=plugin_name,
                                    version=plugin_info.instance.get_metadata().version)
            return True

        except Exception as e:
            self.logger.error(f"Failed to start plugin {plugin_name}: {e}")
            log_plugin_error(self.logger, plugin_name, type(e).__name__, str(e),
                             context={'phase': 'start'}, stack_trace=traceback.format_exc())
            plugin_info.status = PluginStatus.FAILED
            plugin_info.last_error = str(e)
            return False

    async def stop_plugin(self, plugin_name: str) -> bool:
        """
        Unmount a running plugin and release its resources.

        Args:
            plugin_name: Name of the plugin to stop

        Returns:
            bool: True if stopped successfully, False otherwise
        """
        plugin_info = self.plugins.get(plugin_name)
        if plugin_info is None or plugin_info.instance is None:
            self.logger.error(f"Plugin {plugin_name} not found")
            return False

        if plugin_info.status != PluginStatus.RUNNING:
            self.logger.warning(f"Plugin {plugin_name} not running")
            return True

        try:
            await plugin_info.instance.stop()
            await plugin_info.instance.cleanup()
            plugin_info.instance.is_running = False
            plugin_info.status = PluginStatus.STOPPED
            self.logger.info(f"Successfully stopped plugin: {plugin_name}")
            self.lifecycle_log.info("plugin_stopped", plugin=plugin_name)
            return True

        except Exception as e:
            self.logger.error(f"Failed to stop plugin {plugin_name}: {e}")
            log_plugin_error(self.logger, plugin_name, type(e).__name__, str(e),
                             context={'phase': 'stop'}, stack_trace=traceback.format_exc())
            plugin_info.status = PluginStatus.FAILED
            plugin_info.last_error = str(e)
            return False

    async def start_all_plugins(self) -> bool:
        """Load and start every enabled plugin"""
        self.logger.info("Starting all plugins")
        success = True

        for plugin_name, plugin_info in self.plugins.items():
            if self.config_manager is not None and not self.config_manager.is_plugin_enabled(plugin_name):
                plugin_info.status = PluginStatus.DISABLED
                self.logger.info(f"Plugin {plugin_name} is disabled, skipping")
                continue

            if not await self.load_plugin(plugin_name) or not await self.start_plugin(plugin_name):
                success = False

        return success

    async def stop_all_plugins(self) -> bool:
        """Stop every running plugin"""
        self.logger.info("Stopping all plugins")
        success = True

        for plugin_name in reversed(list(self.plugins)):
            if self.plugins[plugin_name].status == PluginStatus.RUNNING:
                if not await self.stop_plugin(plugin_name):
                    success = False

        return success

    def get_running_plugins(self) -> List[str]:
        return [name for name, info in self.plugins.items() if info.status == PluginStatus.RUNNING]
