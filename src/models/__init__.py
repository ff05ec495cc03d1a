"""
Data models for SquadRelay

Contains the data classes shared by the host server state and plugins.
"""

from .player import Player, Layer

__all__ = ['Player', 'Layer']
