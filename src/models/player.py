"""
Player and layer data models for SquadRelay

Defines the roster entries and map/layer information exposed by the host server.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class Player:
    """A connected player as reported by the host server"""
    name: Optional[str] = None
    steam_id: Optional[str] = None
    eos_id: Optional[str] = None

    def has_link_ids(self) -> bool:
        """Check if both platform identifiers are present"""
        return bool(self.steam_id) and bool(self.eos_id)

    def link_key(self) -> Optional[str]:
        """Composite key identifying this player's identifier pair"""
        if not self.has_link_ids():
            return None
        return f"{self.steam_id}_{self.eos_id}"

    @property
    def display_name(self) -> str:
        return self.name or "Unknown"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            'name': self.name,
            'steamID': self.steam_id,
            'eosID': self.eos_id
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Player':
        """Create from dictionary, accepting host and snake_case key spellings"""
        steam_id = data.get('steamID', data.get('steam_id'))
        eos_id = data.get('eosID', data.get('eos_id'))
        return cls(
            name=data.get('name'),
            steam_id=str(steam_id) if steam_id else None,
            eos_id=str(eos_id) if eos_id else None
        )


@dataclass
class Layer:
    """Currently active map/layer"""
    name: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Layer':
        return cls(name=data.get('name'))
