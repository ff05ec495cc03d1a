"""
Host Event Bus for SquadRelay

Defines the server events plugins subscribe to, the payload shapes each
event carries, and the asyncio event bus that delivers them.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Set, Union

try:
    from ..models.player import Player
except ImportError:
    from models.player import Player
from .logging import get_logger


EventHandler = Callable[[Any], Awaitable[None]]


class ServerEvent(Enum):
    """Events emitted by the host server"""
    ROUND_ENDED = "ROUND_ENDED"
    PLAYER_CONNECTED = "PLAYER_CONNECTED"
    UPDATED_PLAYER_INFORMATION = "UPDATED_PLAYER_INFORMATION"


class PayloadError(ValueError):
    """Raised when an event payload is missing required fields"""
    pass


def _field(data: Any, name: str) -> Any:
    if isinstance(data, Mapping):
        return data.get(name)
    return getattr(data, name, None)


def _coerce_player(value: Any) -> Optional[Player]:
    if value is None or isinstance(value, Player):
        return value
    if isinstance(value, Mapping):
        return Player.from_dict(value)
    # Host objects exposing steamID/eosID attributes
    return Player.from_dict({
        'name': getattr(value, 'name', None),
        'steamID': getattr(value, 'steamID', getattr(value, 'steam_id', None)),
        'eosID': getattr(value, 'eosID', getattr(value, 'eos_id', None)),
    })


@dataclass
class RoundEndedPayload:
    """Payload for ROUND_ENDED"""
    winner: Optional[str] = None

    @classmethod
    def from_raw(cls, data: Any) -> 'RoundEndedPayload':
        if isinstance(data, cls):
            return data
        if data is None:
            return cls()
        winner = _field(data, 'winner')
        return cls(winner=str(winner) if winner else None)


@dataclass
class PlayerConnectedPayload:
    """Payload for PLAYER_CONNECTED"""
    player: Player

    @classmethod
    def from_raw(cls, data: Any) -> 'PlayerConnectedPayload':
        if isinstance(data, cls):
            return data
        if data is None:
            raise PayloadError("No data received in PLAYER_CONNECTED event")
        player = _coerce_player(_field(data, 'player'))
        if player is None:
            raise PayloadError("Player object not available in connection event")
        return cls(player=player)


@dataclass
class RosterUpdatePayload:
    """Payload for UPDATED_PLAYER_INFORMATION; players is None when the event carries no roster"""
    players: Optional[List[Player]] = None

    @classmethod
    def from_raw(cls, data: Any) -> 'RosterUpdatePayload':
        if isinstance(data, cls):
            return data
        if data is None:
            return cls()
        players = _field(data, 'players')
        if players is None:
            return cls()
        if not isinstance(players, (list, tuple)):
            raise PayloadError(f"Roster update players must be a list, got {type(players).__name__}")
        return cls(players=[_coerce_player(p) for p in players if p is not None])


class EventBus:
    """
    Minimal asyncio event bus.

    Every handler for an event runs as its own task, so a slow handler
    (e.g. one sleeping before it looks for a file) never delays the others.
    Handler exceptions are logged and never reach the emitter.
    """

    def __init__(self):
        self.logger = get_logger('event_bus')
        self._handlers: Dict[str, List[EventHandler]] = {}
        self._tasks: Set[asyncio.Task] = set()

    @staticmethod
    def _key(event: Union[ServerEvent, str]) -> str:
        return event.value if isinstance(event, ServerEvent) else str(event)

    def on(self, event: Union[ServerEvent, str], handler: EventHandler):
        """Subscribe a handler to an event"""
        handlers = self._handlers.setdefault(self._key(event), [])
        if handler not in handlers:
            handlers.append(handler)

    def remove_listener(self, event: Union[ServerEvent, str], handler: EventHandler):
        """Unsubscribe a handler from an event"""
        handlers = self._handlers.get(self._key(event), [])
        if handler in handlers:
            handlers.remove(handler)

    def listener_count(self, event: Union[ServerEvent, str]) -> int:
        return len(self._handlers.get(self._key(event), []))

    def emit(self, event: Union[ServerEvent, str], payload: Any = None) -> List[asyncio.Task]:
        """Schedule all handlers for an event and return their tasks"""
        name = self._key(event)
        tasks = []
        for handler in list(self._handlers.get(name, [])):
            task = asyncio.create_task(self._run_handler(name, handler, payload))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            tasks.append(task)
        return tasks

    async def emit_and_wait(self, event: Union[ServerEvent, str], payload: Any = None):
        """Emit an event and wait for every handler to finish"""
        tasks = self.emit(event, payload)
        if tasks:
            await asyncio.gather(*tasks)

    async def _run_handler(self, name: str, handler: EventHandler, payload: Any):
        try:
            await handler(payload)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.error(f"Unhandled error in {name} handler {getattr(handler, '__qualname__', handler)}: {e}",
                              exc_info=True)

    async def drain(self):
        """Wait for all in-flight handler tasks"""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
