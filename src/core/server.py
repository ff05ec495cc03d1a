"""
Host Server State for SquadRelay

Holds the live roster, the active layer and the server options that
plugins read, along with the event bus they subscribe to.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

try:
    from ..models.player import Player, Layer
except ImportError:
    from models.player import Player, Layer
from .events import EventBus, ServerEvent


@dataclass
class SFTPOptions:
    """Credentials for the remote file-transfer connection"""
    host: str = ""
    port: int = 22
    username: str = ""
    password: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'SFTPOptions':
        data = data or {}
        return cls(
            host=data.get('host', ''),
            port=int(data.get('port', 22)),
            username=data.get('username', ''),
            password=data.get('password', '')
        )


@dataclass
class ServerOptions:
    """Host options relevant to plugins"""
    log_reader_mode: str = "tail"
    sftp: SFTPOptions = field(default_factory=SFTPOptions)

    @property
    def uses_sftp(self) -> bool:
        return self.log_reader_mode == "sftp"

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'ServerOptions':
        data = data or {}
        return cls(
            log_reader_mode=data.get('log_reader_mode', 'tail'),
            sftp=SFTPOptions.from_dict(data.get('sftp'))
        )


class ServerState:
    """
    Live server state shared with plugins.

    The host updates the roster and layer as it parses the server; plugins
    subscribe to events through ``on``/``remove_listener``.
    """

    def __init__(self, options: Optional[ServerOptions] = None,
                 event_bus: Optional[EventBus] = None):
        self.options = options or ServerOptions()
        self.events = event_bus or EventBus()
        self.players: List[Player] = []
        self.current_layer: Optional[Layer] = None

    def on(self, event: ServerEvent, handler):
        self.events.on(event, handler)

    def remove_listener(self, event: ServerEvent, handler):
        self.events.remove_listener(event, handler)

    def update_players(self, players: List[Player]):
        """Replace the roster"""
        self.players = list(players)

    def set_layer(self, name: Optional[str]):
        self.current_layer = Layer(name=name) if name else None

    @property
    def layer_name(self) -> Optional[str]:
        return self.current_layer.name if self.current_layer else None
