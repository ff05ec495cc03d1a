"""
Core module for SquadRelay

Contains the host event bus, configuration management, plugin lifecycle
and the clients plugins use to reach external services.
"""

from .events import (
    EventBus,
    ServerEvent,
    PayloadError,
    RoundEndedPayload,
    PlayerConnectedPayload,
    RosterUpdatePayload
)
from .plugin_manager import BasePlugin, PluginManager, PluginMetadata, PluginStatus
from .server import ServerState, ServerOptions, SFTPOptions

__all__ = [
    'EventBus',
    'ServerEvent',
    'PayloadError',
    'RoundEndedPayload',
    'PlayerConnectedPayload',
    'RosterUpdatePayload',
    'BasePlugin',
    'PluginManager',
    'PluginMetadata',
    'PluginStatus',
    'ServerState',
    'ServerOptions',
    'SFTPOptions'
]
